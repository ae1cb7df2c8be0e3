"""
View models fed by the API and kept fresh by the change feed.

Each store owns one snapshot of server state. ``refresh()`` re-reads the
whole list; a failed read keeps the previous snapshot and records the error
so the screen can show cached data with a notice.
"""
import logging

from . import feed as tables
from .errors import BantayAniError

logger = logging.getLogger(__name__)

PENDING = 'pending'
VERIFIED = 'verified'
REJECTED = 'rejected'
STATUSES = (PENDING, VERIFIED, REJECTED)


class Store:
    table = None

    def __init__(self, client, feed=None):
        self.client = client
        self.items = []
        self.error = None
        self.loaded = False
        self._listeners = []
        self._unsubscribe = None
        if feed is not None and self.table:
            self._unsubscribe = feed.subscribe(self.table, self._on_change)

    def fetch(self):
        raise NotImplementedError

    def refresh(self):
        try:
            items = self.fetch()
        except BantayAniError as e:
            logger.warning("%s refresh failed: %s", type(self).__name__, e)
            self.error = e
            return self.items

        self.items = list(items or [])
        self.error = None
        self.loaded = True
        for listener in list(self._listeners):
            listener(self)
        return self.items

    def add_listener(self, callback):
        """``callback(store)`` runs after every successful refresh."""
        self._listeners.append(callback)

        def remove():
            if callback in self._listeners:
                self._listeners.remove(callback)

        return remove

    def _on_change(self, table):
        self.refresh()

    def close(self):
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None
        self._listeners = []
        self.items = []
        self.error = None
        self.loaded = False

    def __len__(self):
        return len(self.items)

    def __iter__(self):
        return iter(self.items)


def detection_stats(detections):
    """Status tallies; the three counts always sum to ``total``."""
    stats = {'total': 0, PENDING: 0, VERIFIED: 0, REJECTED: 0}
    for detection in detections:
        stats['total'] += 1
        status = detection.get('status')
        if status in stats:
            stats[status] += 1
    return stats


def has_location(detection):
    lat = detection.get('latitude')
    lng = detection.get('longitude')
    if lat is None or lng is None:
        return False
    return -90 <= lat <= 90 and -180 <= lng <= 180


class DetectionStore(Store):
    table = tables.DETECTIONS

    def fetch(self):
        return self.client.list_detections()

    def get(self, detection_id):
        detection_id = str(detection_id)
        for detection in self.items:
            if str(detection['id']) == detection_id:
                return detection
        return None

    def stats(self):
        return detection_stats(self.items)

    def filter(self, status=None, crop_type=None):
        result = self.items
        if status:
            result = [d for d in result if d.get('status') == status]
        if crop_type:
            result = [d for d in result if (d.get('crop_type') or '').lower() == crop_type.lower()]
        return list(result)

    def pending(self):
        return self.filter(status=PENDING)

    def mappable(self):
        return [d for d in self.items if has_location(d)]


class AdvisoryStore(Store):
    table = tables.ADVISORIES

    def fetch(self):
        return self.client.list_advisories()

    def active(self):
        return [a for a in self.items if a.get('is_active')]


class FarmStore(Store):
    table = tables.FARMS

    def fetch(self):
        return self.client.list_farms()

    def by_number(self, farm_number):
        for farm in self.items:
            if farm.get('farm_number') == farm_number:
                return farm
        return None


class MessageStore(Store):
    table = tables.MESSAGES

    def fetch(self):
        return self.client.list_messages()

    def for_detection(self, detection_id):
        detection_id = str(detection_id)
        return [m for m in self.items if str(m.get('detection')) == detection_id]

    def unread_count(self, user_id):
        return sum(1 for m in self.items if m.get('recipient') == user_id and not m.get('is_read'))
