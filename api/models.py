import uuid

from django.conf import settings
from django.contrib.auth.models import AbstractUser
from django.core.validators import MinValueValidator, MaxValueValidator
from django.db import models


# Custom User model
class User(AbstractUser):
    FARMER = 'farmer'
    LGU_ADMIN = 'lgu_admin'

    ROLE_CHOICES = [
        (FARMER, 'Farmer'),
        (LGU_ADMIN, 'LGU Administrator'),
    ]

    phone = models.CharField(max_length=20, blank=True)
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default=FARMER)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'users'

    def is_lgu_admin(self):
        return self.role == self.LGU_ADMIN

    def is_farmer(self):
        return self.role == self.FARMER

    @property
    def display_name(self):
        return self.get_full_name() or self.username


class DetectionStatus(models.TextChoices):
    PENDING = 'pending', 'Pending Review'
    VERIFIED = 'verified', 'Verified'
    REJECTED = 'rejected', 'Rejected'


# Statuses a reviewer may move a pending detection into
REVIEW_TARGETS = (DetectionStatus.VERIFIED, DetectionStatus.REJECTED)


class FarmerFarm(models.Model):
    """
    A saved farm location. Each farmer owns a small fixed number of slots
    (``farm_number`` 1..MAX_FARMS_PER_FARMER). Detections copy the farm's
    coordinates at capture time.
    """
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='farms')
    farm_number = models.PositiveSmallIntegerField(
        validators=[MinValueValidator(1), MaxValueValidator(settings.MAX_FARMS_PER_FARMER)]
    )
    farm_name = models.CharField(max_length=200, null=True, blank=True)
    landmark = models.CharField(max_length=255, null=True, blank=True)
    address = models.CharField(max_length=255, null=True, blank=True)
    latitude = models.FloatField(
        null=True, blank=True,
        validators=[MinValueValidator(-90.0), MaxValueValidator(90.0)],
    )
    longitude = models.FloatField(
        null=True, blank=True,
        validators=[MinValueValidator(-180.0), MaxValueValidator(180.0)],
    )
    size = models.CharField(max_length=50, null=True, blank=True, help_text='Size in hectares')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'farmer_farms'
        ordering = ['farm_number']
        constraints = [
            models.UniqueConstraint(fields=['user', 'farm_number'], name='unique_farm_slot_per_user'),
        ]

    def __str__(self):
        return f"{self.farm_name or f'Farm {self.farm_number}'} - {self.user.username}"

    @property
    def has_location(self):
        return self.latitude is not None and self.longitude is not None


class PestDetection(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='detections')
    farm = models.ForeignKey(
        FarmerFarm, on_delete=models.SET_NULL, null=True, blank=True, related_name='detections'
    )
    image = models.ImageField(upload_to='detection-images/', max_length=255)
    pest_type = models.CharField(max_length=200)
    confidence = models.FloatField(
        default=0.0,
        validators=[MinValueValidator(0.0), MaxValueValidator(1.0)],
    )
    crop_type = models.CharField(max_length=100)
    latitude = models.FloatField(null=True, blank=True)
    longitude = models.FloatField(null=True, blank=True)
    location_name = models.CharField(max_length=255, blank=True)
    farmer_notes = models.TextField(blank=True)

    # Review metadata - only written by the transition procedure
    status = models.CharField(
        max_length=20, choices=DetectionStatus.choices, default=DetectionStatus.PENDING
    )
    verified_by = models.ForeignKey(
        User, on_delete=models.SET_NULL, null=True, blank=True, related_name='reviewed_detections'
    )
    verified_at = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True)

    # LGU response
    intervention_type = models.CharField(max_length=100, blank=True)
    lgu_response_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'pest_detections'
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.pest_type} - {self.crop_type} ({self.status})"

    @property
    def has_location(self):
        """A detection is mappable only with both coordinates in range."""
        if self.latitude is None or self.longitude is None:
            return False
        return -90.0 <= self.latitude <= 90.0 and -180.0 <= self.longitude <= 180.0


class Advisory(models.Model):
    """Broadcast alert from a reviewer to farmers"""
    SEVERITY_CHOICES = [
        ('low', 'Low'),
        ('medium', 'Medium'),
        ('high', 'High'),
        ('critical', 'Critical'),
    ]

    title = models.CharField(max_length=200)
    content = models.TextField()
    severity = models.CharField(max_length=20, choices=SEVERITY_CHOICES, default='medium')
    category = models.CharField(max_length=100, null=True, blank=True)
    affected_crops = models.JSONField(default=list, blank=True)
    affected_regions = models.JSONField(default=list, blank=True)
    target_farmer = models.ForeignKey(
        User, on_delete=models.CASCADE, null=True, blank=True, related_name='targeted_advisories'
    )
    is_active = models.BooleanField(default=True)
    created_by = models.ForeignKey(User, on_delete=models.CASCADE, related_name='advisories')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'advisories'
        ordering = ['-created_at']
        verbose_name_plural = 'advisories'

    def __str__(self):
        return self.title


class Message(models.Model):
    """Free-text note between a farmer and a reviewer"""
    sender = models.ForeignKey(User, on_delete=models.CASCADE, related_name='sent_messages')
    recipient = models.ForeignKey(User, on_delete=models.CASCADE, related_name='received_messages')
    detection = models.ForeignKey(
        PestDetection, on_delete=models.SET_NULL, null=True, blank=True, related_name='messages'
    )
    content = models.TextField()
    is_read = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'messages'
        ordering = ['created_at']

    def __str__(self):
        return f"{self.sender.username} -> {self.recipient.username}"


# UserActivity model
class UserActivity(models.Model):
    """Track user activities for admin monitoring"""
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='activities')
    action = models.CharField(max_length=100)
    details = models.TextField(blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    timestamp = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'user_activities'
        ordering = ['-timestamp']

    def __str__(self):
        return f"{self.user.username} - {self.action}"
