"""
HTTP client for the BantayAni API.

Wraps a ``requests.Session`` holding the JWT access token and maps error
responses onto :mod:`mobile.errors`.
"""
import base64
import logging
import os

import requests

from .errors import BantayAniError, NetworkError, STATUS_ERRORS, UPLOAD_STATUS_ERRORS

logger = logging.getLogger(__name__)

DEFAULT_API_URL = os.environ.get('BANTAYANI_API_URL', 'http://localhost:8000/api')
DEFAULT_TIMEOUT = 30


def encode_image(image_bytes):
    """Base64 data URL for raw image bytes."""
    return 'data:image/jpeg;base64,' + base64.b64encode(image_bytes).decode('ascii')


class BantayAniClient:
    def __init__(self, base_url=None, timeout=DEFAULT_TIMEOUT, session=None):
        self.base_url = (base_url or DEFAULT_API_URL).rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()
        self.access_token = None
        self.refresh_token = None
        self.user = None

    # ---------- plumbing ----------
    def _url(self, path):
        if path.startswith('http://') or path.startswith('https://'):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    def _request(self, method, path, errors=STATUS_ERRORS, **kwargs):
        headers = kwargs.pop('headers', {})
        if self.access_token:
            headers['Authorization'] = f'Bearer {self.access_token}'
        kwargs.setdefault('timeout', self.timeout)

        try:
            response = self.session.request(method, self._url(path), headers=headers, **kwargs)
        except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as e:
            raise NetworkError(f'Cannot reach BantayAni server: {e}')

        if response.status_code >= 400:
            raise self._error_for(response, errors)
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    @staticmethod
    def _error_for(response, errors=STATUS_ERRORS):
        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if isinstance(payload, dict):
            message = payload.get('detail') or payload.get('error') or str(payload)
        else:
            message = str(payload)

        error_class = errors.get(response.status_code)
        if error_class is None:
            error_class = NetworkError if response.status_code >= 500 else BantayAniError
        logger.debug("API error %s: %s", response.status_code, message)
        return error_class(message, status_code=response.status_code, payload=payload)

    def _get_all(self, path, params=None):
        """GET a list endpoint, following pagination links."""
        data = self._request('GET', path, params=params)
        if not isinstance(data, dict) or 'results' not in data:
            return data
        items = list(data['results'])
        while data.get('next'):
            data = self._request('GET', data['next'])
            items.extend(data['results'])
        return items

    # ---------- auth ----------
    def login(self, username, password):
        data = self._request('POST', 'auth/login/', json={'username': username, 'password': password})
        self.access_token = data['tokens']['access']
        self.refresh_token = data['tokens']['refresh']
        self.user = data['user']
        return self.user

    def logout(self):
        try:
            if self.refresh_token:
                self._request('POST', 'auth/logout/', json={'refresh_token': self.refresh_token})
        finally:
            self.access_token = None
            self.refresh_token = None
            self.user = None

    @property
    def is_authenticated(self):
        return self.access_token is not None

    # ---------- detections ----------
    def list_detections(self, status=None, crop_type=None):
        params = {key: value for key, value in (('status', status), ('crop_type', crop_type)) if value}
        return self._get_all('detections/', params=params or None)

    def upload_detection(self, pest_type, confidence, crop_type, image_base64,
                         latitude=None, longitude=None, location_name=None,
                         farmer_notes=None, farm_id=None):
        payload = {
            'pest_type': pest_type,
            'confidence': confidence,
            'crop_type': crop_type,
            'image_base64': image_base64,
            'latitude': latitude,
            'longitude': longitude,
            'location_name': location_name or '',
            'farmer_notes': farmer_notes or '',
            'farm_id': farm_id,
        }
        return self._request('POST', 'detections/', errors=UPLOAD_STATUS_ERRORS, json=payload)

    def update_detection_status(self, detection_id, status, notes=None):
        data = self._request('POST', 'detections/verify/', json={
            'detection_id': str(detection_id),
            'status': status,
            'notes': notes or '',
        })
        return data['detection']

    def record_response(self, detection_id, intervention_type, notes=''):
        return self._request('POST', f'detections/{detection_id}/respond/', json={
            'intervention_type': intervention_type,
            'notes': notes,
        })

    def request_more_info(self, detection_id, message):
        return self._request('POST', f'detections/{detection_id}/request-info/', json={'message': message})

    def detection_statistics(self):
        return self._request('GET', 'detections/statistics/')

    def detect_pest(self, image_base64, crop_type):
        return self._request('POST', 'detect-pest/', json={'image_base64': image_base64, 'crop_type': crop_type})

    # ---------- farms ----------
    def list_farms(self):
        return self._get_all('farms/')

    def save_farm(self, farm_number, **fields):
        return self._request('POST', 'farms/', json={'farm_number': farm_number, **fields})

    def delete_farm(self, farm_id):
        return self._request('DELETE', f'farms/{farm_id}/')

    # ---------- advisories ----------
    def list_advisories(self):
        return self._get_all('advisories/')

    def create_advisory(self, title, content, severity, affected_crops=(), affected_regions=(), **fields):
        return self._request('POST', 'advisories/', json={
            'title': title,
            'content': content,
            'severity': severity,
            'affected_crops': list(affected_crops),
            'affected_regions': list(affected_regions),
            **fields,
        })

    def update_advisory(self, advisory_id, **updates):
        return self._request('PATCH', f'advisories/{advisory_id}/', json=updates)

    def toggle_advisory(self, advisory_id):
        return self._request('POST', f'advisories/{advisory_id}/toggle-active/')

    def delete_advisory(self, advisory_id):
        return self._request('DELETE', f'advisories/{advisory_id}/')

    # ---------- messages ----------
    def list_messages(self, detection_id=None):
        params = {'detection_id': str(detection_id)} if detection_id else None
        return self._get_all('messages/', params=params)

    def send_message(self, recipient_id, content, detection_id=None):
        return self._request('POST', 'messages/', json={
            'recipient': recipient_id,
            'content': content,
            'detection': str(detection_id) if detection_id else None,
        })

    def mark_message_read(self, message_id):
        return self._request('POST', f'messages/{message_id}/mark-read/')

    # ---------- change feed ----------
    def changes(self):
        return self._request('GET', 'changes/')


__all__ = ['BantayAniClient', 'BantayAniError', 'encode_image']
