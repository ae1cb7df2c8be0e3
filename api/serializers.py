from django.conf import settings
from django.contrib.auth import authenticate
from rest_framework import serializers

from .models import (
    User,
    FarmerFarm,
    PestDetection,
    Advisory,
    Message,
    UserActivity,
)


class UserSerializer(serializers.ModelSerializer):
    display_name = serializers.CharField(read_only=True)

    class Meta:
        model = User
        fields = ['id', 'username', 'email', 'phone', 'first_name', 'last_name', 'display_name', 'role', 'date_joined']
        read_only_fields = ['id', 'role', 'date_joined']


class RegisterSerializer(serializers.ModelSerializer):
    password = serializers.CharField(write_only=True, min_length=8)
    password_confirm = serializers.CharField(write_only=True)

    class Meta:
        model = User
        fields = ['username', 'email', 'password', 'password_confirm', 'first_name', 'last_name', 'phone']

    def validate(self, data):
        if data['password'] != data['password_confirm']:
            raise serializers.ValidationError("Passwords do not match")
        return data

    def create(self, validated_data):
        validated_data.pop('password_confirm')
        # Role is fixed at signup; reviewers are provisioned by an admin
        return User.objects.create_user(role=User.FARMER, **validated_data)


class LoginSerializer(serializers.Serializer):
    username = serializers.CharField()
    password = serializers.CharField(write_only=True)

    def validate(self, data):
        user = authenticate(**data)
        if user and user.is_active:
            return user
        raise serializers.ValidationError("Invalid credentials")


class FarmerFarmSerializer(serializers.ModelSerializer):
    user_name = serializers.CharField(source='user.username', read_only=True)
    farm_number = serializers.IntegerField(min_value=1, max_value=settings.MAX_FARMS_PER_FARMER)
    latitude = serializers.FloatField(min_value=-90.0, max_value=90.0, allow_null=True, required=False)
    longitude = serializers.FloatField(min_value=-180.0, max_value=180.0, allow_null=True, required=False)

    class Meta:
        model = FarmerFarm
        fields = [
            'id', 'farm_number', 'farm_name', 'landmark', 'address',
            'latitude', 'longitude', 'size', 'user_name', 'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'user_name', 'created_at', 'updated_at']
        # Slot uniqueness is handled by the upsert in the view and by validate()
        validators = []

    def validate(self, attrs):
        farm_number = attrs.get('farm_number')
        if self.instance is not None and farm_number is not None:
            taken = FarmerFarm.objects.filter(
                user=self.instance.user, farm_number=farm_number,
            ).exclude(pk=self.instance.pk).exists()
            if taken:
                raise serializers.ValidationError({
                    'farm_number': f'Farm slot {farm_number} is already registered',
                })
        return attrs


class PestDetectionSerializer(serializers.ModelSerializer):
    """
    Read model for detections.

    ``farmer_name``/``farmer_email`` are the submitter's profile joined in
    for reviewer views; ``image_url`` is the public URL of the stored photo.
    """
    image_url = serializers.SerializerMethodField()
    farmer_name = serializers.CharField(source='user.display_name', read_only=True)
    farmer_email = serializers.EmailField(source='user.email', read_only=True)
    farm_name = serializers.CharField(source='farm.farm_name', read_only=True, allow_null=True, default=None)
    verified_by_name = serializers.CharField(source='verified_by.display_name', read_only=True, allow_null=True, default=None)

    class Meta:
        model = PestDetection
        fields = [
            'id', 'user', 'farmer_name', 'farmer_email', 'image_url',
            'pest_type', 'confidence', 'crop_type',
            'latitude', 'longitude', 'location_name', 'farmer_notes',
            'farm', 'farm_name',
            'status', 'verified_by', 'verified_by_name', 'verified_at', 'notes',
            'intervention_type', 'lgu_response_at',
            'created_at', 'updated_at',
        ]
        read_only_fields = fields

    def get_image_url(self, obj):
        if not obj.image:
            return None
        url = obj.image.url
        request = self.context.get('request')
        return request.build_absolute_uri(url) if request else url


class DetectionCreateSerializer(serializers.Serializer):
    """Input for a farmer's submission: a multipart ``image`` or a base64 ``image_base64``."""
    pest_type = serializers.CharField(max_length=200)
    confidence = serializers.FloatField(min_value=0.0, max_value=1.0)
    crop_type = serializers.CharField(max_length=100)
    latitude = serializers.FloatField(min_value=-90.0, max_value=90.0, required=False, allow_null=True)
    longitude = serializers.FloatField(min_value=-180.0, max_value=180.0, required=False, allow_null=True)
    location_name = serializers.CharField(max_length=255, required=False, allow_blank=True, allow_null=True)
    farmer_notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    farm_id = serializers.IntegerField(required=False, allow_null=True)
    image = serializers.FileField(required=False)
    image_base64 = serializers.CharField(required=False, allow_blank=False)

    def validate(self, data):
        if not data.get('image') and not data.get('image_base64'):
            raise serializers.ValidationError({'image': 'An image is required'})
        return data


class TransitionSerializer(serializers.Serializer):
    detection_id = serializers.CharField()
    status = serializers.CharField()
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True, default='')


class LGUResponseSerializer(serializers.Serializer):
    intervention_type = serializers.CharField(max_length=100)
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class RequestInfoSerializer(serializers.Serializer):
    message = serializers.CharField()


class PestAnalysisSerializer(serializers.Serializer):
    image_base64 = serializers.CharField()
    crop_type = serializers.CharField(required=False, allow_blank=True, default='')


class AdvisorySerializer(serializers.ModelSerializer):
    creator_name = serializers.CharField(source='created_by.display_name', read_only=True)
    affected_crops = serializers.ListField(child=serializers.CharField(), required=False)
    affected_regions = serializers.ListField(child=serializers.CharField(), required=False)

    class Meta:
        model = Advisory
        fields = [
            'id', 'title', 'content', 'severity', 'category',
            'affected_crops', 'affected_regions', 'target_farmer',
            'is_active', 'created_by', 'creator_name', 'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'created_by', 'creator_name', 'created_at', 'updated_at']


class MessageSerializer(serializers.ModelSerializer):
    sender_name = serializers.CharField(source='sender.display_name', read_only=True)
    recipient_name = serializers.CharField(source='recipient.display_name', read_only=True)

    class Meta:
        model = Message
        fields = [
            'id', 'detection', 'sender', 'sender_name', 'recipient', 'recipient_name',
            'content', 'is_read', 'created_at',
        ]
        read_only_fields = ['id', 'sender', 'sender_name', 'recipient_name', 'is_read', 'created_at']


class FarmerSummarySerializer(serializers.ModelSerializer):
    """Farmer directory row for reviewers, with report tallies annotated by the queryset."""
    display_name = serializers.CharField(read_only=True)
    total_reports = serializers.IntegerField(read_only=True)
    verified_reports = serializers.IntegerField(read_only=True)
    pending_reports = serializers.IntegerField(read_only=True)

    class Meta:
        model = User
        fields = [
            'id', 'username', 'display_name', 'email', 'phone', 'date_joined',
            'total_reports', 'verified_reports', 'pending_reports',
        ]
        read_only_fields = fields


class UserActivitySerializer(serializers.ModelSerializer):
    user_name = serializers.CharField(source='user.username', read_only=True)
    user_role = serializers.CharField(source='user.role', read_only=True)

    class Meta:
        model = UserActivity
        fields = ['id', 'user', 'user_name', 'user_role', 'action', 'details', 'ip_address', 'timestamp']
        read_only_fields = ['id', 'timestamp']
