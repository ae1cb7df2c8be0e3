"""
Detection Lifecycle Service

Handles the pest detection workflow:
- Farmers submitting detections (image stored first, then the row)
- Reviewers moving a pending detection to verified/rejected
- Listing the detections a caller may see
- Status tallies
- LGU responses and requests for more information
"""

import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.utils import timezone

from api.exceptions import AuthError, ForbiddenError, NotFoundError, ValidationError
from api.models import DetectionStatus, FarmerFarm, PestDetection, REVIEW_TARGETS
from api.storage import save_detection_image
from .message_service import send_message

logger = logging.getLogger(__name__)


def _require_user(user):
    if user is None or not user.is_authenticated:
        raise AuthError()


def _require_reviewer(user):
    _require_user(user)
    if not user.is_lgu_admin():
        raise ForbiddenError()


def _get_detection(detection_id):
    try:
        return PestDetection.objects.select_related('user').get(pk=detection_id)
    except (PestDetection.DoesNotExist, DjangoValidationError, ValueError, TypeError):
        # malformed ids are reported as missing
        raise NotFoundError()


def _parse_coordinate(value, name, low, high):
    if value is None or value == '':
        return None
    try:
        coordinate = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{name} must be a number')
    if not low <= coordinate <= high:
        raise ValidationError(f'{name} must be between {low} and {high}')
    return coordinate


def _parse_confidence(value):
    if value is None or value == '':
        raise ValidationError('confidence is required')
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        raise ValidationError('confidence must be a number')
    if not 0.0 <= confidence <= 1.0:
        raise ValidationError('confidence must be between 0 and 1')
    return confidence


def create_detection(user, pest_type, confidence, crop_type, image,
                     latitude=None, longitude=None, location_name='',
                     farmer_notes='', farm_id=None):
    """
    Submit a new pest detection for ``user``.

    The image is persisted before the row is inserted; a new detection
    always starts as pending.

    Raises:
        AuthError: caller is not logged in
        ValidationError: a required field is missing or out of range
        UploadError: the image could not be stored
    """
    _require_user(user)

    missing = [
        name for name, value in (('pest_type', pest_type), ('crop_type', crop_type), ('image', image))
        if not value
    ]
    if missing:
        raise ValidationError(f"Missing required field(s): {', '.join(missing)}")

    confidence = _parse_confidence(confidence)
    latitude = _parse_coordinate(latitude, 'latitude', -90.0, 90.0)
    longitude = _parse_coordinate(longitude, 'longitude', -180.0, 180.0)
    if (latitude is None) != (longitude is None):
        raise ValidationError('latitude and longitude must be given together')

    farm = None
    if farm_id:
        try:
            farm = FarmerFarm.objects.filter(pk=int(farm_id), user=user).first()
        except (TypeError, ValueError):
            farm = None
        if farm is None:
            raise ValidationError('Farm not found')

    image_name = save_detection_image(user, image)

    detection = PestDetection.objects.create(
        user=user,
        farm=farm,
        image=image_name,
        pest_type=pest_type,
        confidence=confidence,
        crop_type=crop_type,
        latitude=latitude,
        longitude=longitude,
        location_name=location_name or '',
        farmer_notes=farmer_notes or '',
        status=DetectionStatus.PENDING,
    )
    logger.info("Detection created: %s by user %s", detection.id, user.pk)
    return detection


@transaction.atomic
def transition_detection(user, detection_id, new_status, notes=''):
    """
    Move a detection to verified or rejected.

    Last write wins: calling again overwrites status, note, reviewer and
    timestamp even if another reviewer already handled the detection.

    Raises:
        ForbiddenError: caller is not an LGU admin
        ValidationError: ``new_status`` is not a review target
        NotFoundError: no detection with ``detection_id``
    """
    _require_reviewer(user)

    if new_status not in REVIEW_TARGETS:
        raise ValidationError('Invalid request - detection_id and valid status required')

    detection = _get_detection(detection_id)
    previous = detection.status

    detection.status = new_status
    detection.notes = notes or ''
    detection.verified_by = user
    detection.verified_at = timezone.now()
    detection.save(update_fields=['status', 'notes', 'verified_by', 'verified_at', 'updated_at'])

    if previous != DetectionStatus.PENDING:
        logger.warning(
            "Detection %s was already %s; overwritten with %s by %s",
            detection.id, previous, new_status, user.pk,
        )
    logger.info("Detection %s updated to %s by %s", detection.id, new_status, user.pk)
    return detection


def list_detections(user, status=None, crop_type=None):
    """
    Detections ``user`` may see, newest first.

    Farmers get only their own reports; reviewers get every report with the
    submitter joined for display.
    """
    _require_user(user)

    queryset = PestDetection.objects.select_related('user', 'farm', 'verified_by')
    if not user.is_lgu_admin():
        queryset = queryset.filter(user=user)

    if status:
        if status not in DetectionStatus.values:
            raise ValidationError(f'Unknown status: {status}')
        queryset = queryset.filter(status=status)
    if crop_type:
        queryset = queryset.filter(crop_type__iexact=crop_type)

    return queryset.order_by('-created_at')


def detection_stats(detections):
    """Counts by status over any iterable of detections (or dicts with a ``status`` key)."""
    counts = {value: 0 for value in DetectionStatus.values}
    total = 0
    for detection in detections:
        detection_status = detection['status'] if isinstance(detection, dict) else detection.status
        counts[detection_status] += 1
        total += 1
    return {
        'total': total,
        'pending': counts[DetectionStatus.PENDING],
        'verified': counts[DetectionStatus.VERIFIED],
        'rejected': counts[DetectionStatus.REJECTED],
    }


@transaction.atomic
def record_lgu_response(user, detection_id, intervention_type, notes=''):
    """
    Record the intervention the LGU made for a detection and tell the farmer.

    Status is left untouched.
    """
    _require_reviewer(user)
    if not intervention_type:
        raise ValidationError('Please select an intervention type')

    detection = _get_detection(detection_id)
    detection.intervention_type = intervention_type
    detection.lgu_response_at = timezone.now()
    detection.notes = notes or f'Intervention: {intervention_type}'
    detection.save(update_fields=['intervention_type', 'lgu_response_at', 'notes', 'updated_at'])

    message = f'LGU Response: {intervention_type}'
    if notes:
        message = f'{message} - {notes}'
    send_message(user, detection.user, message, detection=detection)

    logger.info("LGU response %s recorded for detection %s", intervention_type, detection.id)
    return detection


def request_more_info(user, detection_id, content):
    """Ask the submitting farmer for details. The detection stays pending."""
    _require_reviewer(user)
    if not content or not content.strip():
        raise ValidationError('Please enter a message for the farmer')

    detection = _get_detection(detection_id)
    return send_message(user, detection.user, content.strip(), detection=detection)
