"""
Farmer's capture flow: location -> camera -> diagnosis -> success.

Each captured image is analysed on its own and becomes its own detection on
submit. A report whose upload fails is saved whole to the offline queue and
the flow still finishes, so farmers in the field are never blocked.
"""
import base64
import logging
import uuid
from datetime import datetime, timezone

from .errors import BantayAniError, ValidationError
from .location import GPS_TIMEOUT_SECONDS, UNSUPPORTED, Coordinates, LocationError

logger = logging.getLogger(__name__)

LOCATION = 'location'
CAMERA = 'camera'
DIAGNOSIS = 'diagnosis'
SUCCESS = 'success'

MAX_IMAGES = 4

ANALYSIS_FAILED = {'pest': 'Unknown', 'scientific_name': 'Analysis failed', 'confidence': 0}
NO_PEST = {'pest': 'No pest detected', 'scientific_name': '', 'confidence': 0}
ANALYSIS_ERROR = {'pest': 'Analysis error', 'scientific_name': 'Please try again', 'confidence': 0}


def to_data_url(image_bytes, mime_type='image/jpeg'):
    return f'data:{mime_type};base64,' + base64.b64encode(image_bytes).decode('ascii')


class CapturedImage:
    def __init__(self, data_url, image_id=None, detection=None):
        self.id = image_id or str(uuid.uuid4())
        self.data_url = data_url
        self.detection = detection

    def as_dict(self):
        return {'id': self.id, 'data_url': self.data_url, 'detection': self.detection}


class SubmitResult:
    def __init__(self, uploaded=0, queued=False, error=None):
        self.uploaded = uploaded
        self.queued = queued
        self.error = error

    @property
    def offline(self):
        return self.queued


def analyse_image(client, image, crop_type):
    """One inference call, degraded to a sentinel result instead of raising."""
    try:
        result = client.detect_pest(image.data_url, crop_type)
    except BantayAniError as e:
        if e.status_code is not None:
            logger.error("AI detection error: %s", e.payload or e.message)
            return dict(ANALYSIS_FAILED)
        logger.error("Error analyzing image: %s", e)
        return dict(ANALYSIS_ERROR)
    except Exception as e:
        logger.error("Error analyzing image: %s", e)
        return dict(ANALYSIS_ERROR)

    if result and result.get('success') and result.get('detection'):
        detection = result['detection']
        return {
            'pest': detection.get('pest_type') or 'None detected',
            'scientific_name': detection.get('scientific_name') or '',
            'confidence': detection.get('confidence') or 0,
        }
    return dict(NO_PEST)


def upload_report(client, report):
    """Create one detection per analysed image of a serialized report."""
    location = report.get('location') or {}
    uploaded = 0
    for image in report.get('images', []):
        detection = image.get('detection')
        if not detection:
            continue
        client.upload_detection(
            pest_type=detection['pest'],
            confidence=detection['confidence'],
            crop_type=report.get('crop_type'),
            image_base64=image['data_url'],
            latitude=location.get('latitude'),
            longitude=location.get('longitude'),
            farmer_notes=report.get('farmer_notes'),
            farm_id=report.get('farm_id'),
        )
        uploaded += 1
    return uploaded


class ScanFlow:
    def __init__(self, client, queue, location_provider=None, farms=None, crop_type='Rice'):
        self.client = client
        self.queue = queue
        self.location_provider = location_provider
        self.farms = farms
        self.default_crop = crop_type
        self.reset()

    def reset(self):
        self.step = LOCATION
        self.location = None
        self.location_error = None
        self.selected_farm_number = None
        self.images = []
        self.crop_type = self.default_crop
        self.farmer_notes = ''
        self.last_result = None

    # ---------- location ----------
    def request_location(self):
        self.location_error = None
        if self.location_provider is None:
            self.location_error = LocationError(UNSUPPORTED).message
            return False
        try:
            self.location = self.location_provider.current_position(timeout=GPS_TIMEOUT_SECONDS)
        except LocationError as e:
            self.location_error = e.message
            logger.info("Location request failed: %s", e.reason)
            return False
        self.step = CAMERA
        return True

    def use_farm_location(self, farm_number):
        farm = self.farms.by_number(farm_number) if self.farms is not None else None
        if not farm or farm.get('latitude') is None or farm.get('longitude') is None:
            self.location_error = 'This farm has no GPS coordinates saved'
            return False

        self.location = Coordinates(farm['latitude'], farm['longitude'], 0)
        self.selected_farm_number = farm_number
        self.location_error = None
        self.step = CAMERA
        return True

    def _require_step(self, step):
        if self.step != step:
            raise ValidationError(f'Not available during the {self.step} step')

    # ---------- camera ----------
    def capture(self, image_bytes, mime_type='image/jpeg'):
        self._require_step(CAMERA)
        if len(self.images) >= MAX_IMAGES:
            raise ValidationError(f'Maximum {MAX_IMAGES} images allowed')
        image = CapturedImage(to_data_url(image_bytes, mime_type))
        self.images.append(image)
        return image

    def add_files(self, files):
        """Add picked files up to the free slots; returns the images added."""
        self._require_step(CAMERA)
        available = MAX_IMAGES - len(self.images)
        if available <= 0:
            raise ValidationError(f'Maximum {MAX_IMAGES} images allowed')
        added = []
        for image_bytes in list(files)[:available]:
            added.append(self.capture(image_bytes))
        return added

    def remove_image(self, image_id):
        self.images = [img for img in self.images if img.id != image_id]

    # ---------- diagnosis ----------
    def proceed_to_diagnosis(self, crop_type=None):
        self._require_step(CAMERA)
        if self.location is None:
            raise ValidationError('Location is required')
        if not self.images:
            raise ValidationError('Please capture at least one image')
        if crop_type:
            self.crop_type = crop_type

        for image in self.images:
            image.detection = analyse_image(self.client, image, self.crop_type)
        self.step = DIAGNOSIS
        return [image.detection for image in self.images]

    def set_notes(self, text):
        self.farmer_notes = text or ''

    def retake(self):
        self.images = []
        self.step = CAMERA

    # ---------- submit ----------
    def _farm_id(self):
        if self.selected_farm_number is None or self.farms is None:
            return None
        farm = self.farms.by_number(self.selected_farm_number)
        return farm.get('id') if farm else None

    def report(self):
        return {
            'location': self.location.as_dict() if self.location else None,
            'images': [image.as_dict() for image in self.images],
            'crop_type': self.crop_type,
            'farmer_notes': self.farmer_notes,
            'selected_farm_number': self.selected_farm_number,
            'farm_id': self._farm_id(),
            'timestamp': datetime.now(timezone.utc).isoformat(),
        }

    def submit(self):
        self._require_step(DIAGNOSIS)
        if self.location is None or not self.images:
            raise ValidationError('Missing required data')
        if any(image.detection is None for image in self.images):
            raise ValidationError('Every image must be analysed before submitting')

        report = self.report()
        result = SubmitResult()
        try:
            result.uploaded = upload_report(self.client, report)
        except Exception as e:
            logger.warning("Upload failed, saving report offline: %s", e)
            self.queue.append(report)
            result.queued = True
            result.error = e

        self.step = SUCCESS
        self.last_result = result
        return result

    def flush_offline(self):
        return self.queue.flush(lambda report: upload_report(self.client, report))
