"""
Device position for a report.

The scan flow only sees the ``LocationProvider`` interface; the host app
plugs in whatever GPS source the device exposes.
"""
GPS_TIMEOUT_SECONDS = 10

PERMISSION_DENIED = 'permission_denied'
POSITION_UNAVAILABLE = 'position_unavailable'
TIMEOUT = 'timeout'
UNSUPPORTED = 'unsupported'

LOCATION_MESSAGES = {
    PERMISSION_DENIED: 'Location permission denied. Please enable GPS access.',
    POSITION_UNAVAILABLE: 'Location unavailable. Please check your GPS settings.',
    TIMEOUT: 'Location request timed out. Please try again.',
    UNSUPPORTED: 'Geolocation is not supported on this device',
}
DEFAULT_LOCATION_MESSAGE = 'Unable to get your location'


class Coordinates:
    def __init__(self, latitude, longitude, accuracy=0.0):
        self.latitude = float(latitude)
        self.longitude = float(longitude)
        self.accuracy = float(accuracy or 0.0)

    def as_dict(self):
        return {'latitude': self.latitude, 'longitude': self.longitude, 'accuracy': self.accuracy}

    def __eq__(self, other):
        if not isinstance(other, Coordinates):
            return NotImplemented
        return self.as_dict() == other.as_dict()

    def __repr__(self):
        return f'Coordinates({self.latitude}, {self.longitude}, accuracy={self.accuracy})'


class LocationError(Exception):
    def __init__(self, reason, message=None):
        self.reason = reason
        self.message = message or LOCATION_MESSAGES.get(reason, DEFAULT_LOCATION_MESSAGE)
        super().__init__(self.message)


class LocationProvider:
    """Source of a one-shot position fix."""

    def current_position(self, timeout=GPS_TIMEOUT_SECONDS):
        """Return ``Coordinates`` or raise ``LocationError``."""
        raise LocationError(UNSUPPORTED)


class FixedLocationProvider(LocationProvider):
    """Always reports the same position; for kiosks and desktop testing."""

    def __init__(self, latitude, longitude, accuracy=0.0):
        self.coordinates = Coordinates(latitude, longitude, accuracy)

    def current_position(self, timeout=GPS_TIMEOUT_SECONDS):
        return self.coordinates
