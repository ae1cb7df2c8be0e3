"""In-memory stand-ins for the API client, used by the mobile tests."""
import itertools

from .errors import ForbiddenError, NetworkError
from .location import LocationError, LocationProvider


class FakeClient:
    """
    Minimal server double.

    ``detect_results`` is consumed one item per ``detect_pest`` call; an
    exception instance is raised instead of returned. ``fail_uploads`` makes
    ``upload_detection`` raise ``NetworkError``.
    """

    def __init__(self, role='farmer', detections=None, farms=None, detect_results=None):
        self.role = role
        self.detections = list(detections or [])
        self.farms = list(farms or [])
        self.advisories = []
        self.messages = []
        self.detect_results = list(detect_results or [])
        self.fail_uploads = False
        self.fail_reads = False
        self.versions = {'pest_detections': 0, 'advisories': 0, 'farmer_farms': 0, 'messages': 0}
        self.calls = []
        self._ids = itertools.count(1)

    def _record(self, name, *args):
        self.calls.append((name,) + args)

    def _read(self, name, items):
        self._record(name)
        if self.fail_reads:
            raise NetworkError('Cannot reach BantayAni server')
        return [dict(item) for item in items]

    def bump(self, table):
        self.versions[table] += 1

    def list_detections(self, status=None, crop_type=None):
        return self._read('list_detections', self.detections)

    def list_farms(self):
        return self._read('list_farms', self.farms)

    def list_advisories(self):
        return self._read('list_advisories', self.advisories)

    def list_messages(self, detection_id=None):
        return self._read('list_messages', self.messages)

    def changes(self):
        self._record('changes')
        if self.fail_reads:
            raise NetworkError('Cannot reach BantayAni server')
        return dict(self.versions)

    def detect_pest(self, image_base64, crop_type):
        self._record('detect_pest', crop_type)
        result = self.detect_results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result

    def upload_detection(self, **fields):
        self._record('upload_detection', fields)
        if self.fail_uploads:
            raise NetworkError('Cannot reach BantayAni server')
        detection = dict(fields, id=f'det-{next(self._ids)}', status='pending')
        self.detections.insert(0, detection)
        self.bump('pest_detections')
        return detection

    def update_detection_status(self, detection_id, status, notes=None):
        self._record('update_detection_status', detection_id, status, notes)
        if self.role != 'lgu_admin':
            raise ForbiddenError('Forbidden - Admin access required', status_code=403)
        for detection in self.detections:
            if detection['id'] == detection_id:
                detection.update(status=status, notes=notes)
                self.bump('pest_detections')
                return dict(detection)
        raise AssertionError(f'unknown detection {detection_id}')

    def record_response(self, detection_id, intervention_type, notes=''):
        self._record('record_response', detection_id, intervention_type, notes)
        return {'id': detection_id, 'intervention_type': intervention_type}

    def request_more_info(self, detection_id, message):
        self._record('request_more_info', detection_id, message)
        return {'detection': detection_id, 'content': message}

    def logout(self):
        self._record('logout')


class StubLocationProvider(LocationProvider):
    def __init__(self, coordinates=None, reason=None):
        self.coordinates = coordinates
        self.reason = reason
        self.timeouts = []

    def current_position(self, timeout=10):
        self.timeouts.append(timeout)
        if self.reason:
            raise LocationError(self.reason)
        return self.coordinates


def detection_row(detection_id, status='pending', **extra):
    row = {
        'id': detection_id,
        'status': status,
        'pest_type': 'Rice Stem Borer',
        'crop_type': 'Rice',
        'confidence': 0.9,
        'latitude': 15.2,
        'longitude': 120.6,
        'user': 7,
    }
    row.update(extra)
    return row
