"""
Reviewer's verification queue over the pending detections of a ``DetectionStore``.
"""
import logging

from .errors import ValidationError
from .stores import VERIFIED, REJECTED

logger = logging.getLogger(__name__)

INTERVENTION_TYPES = [
    'Pheromone Lure',
    'Biological Control Agent',
    'Pesticide Application',
    'Crop Rotation Advice',
    'Quarantine Measures',
    'Educational Visit',
    'Other',
]

REJECTION_REASONS = [
    'Blurry or unclear image',
    'Not a recognizable pest',
    'Image does not match the reported pest type',
    'Duplicate report',
    'Insufficient evidence',
    'Other',
]

DEFAULT_VERIFY_NOTE = 'Verified by LGU admin'


class ReviewQueue:
    """
    Cursor over pending detections in store order.

    A refresh that removes the current item (another reviewer handled it)
    moves the cursor to the first pending item, or clears it when the queue
    is empty. New pending ids seen on refresh bump ``new_report_count``.
    """

    def __init__(self, store, client):
        self.store = store
        self.client = client
        self.current_id = None
        self.new_report_count = 0
        self._seen_ids = {str(d['id']) for d in store.pending()}
        self._remove_listener = store.add_listener(self._on_refresh)
        self._reconcile()

    @property
    def pending(self):
        return self.store.pending()

    @property
    def current(self):
        if self.current_id is None:
            return None
        for detection in self.pending:
            if str(detection['id']) == self.current_id:
                return detection
        return None

    @property
    def current_index(self):
        for index, detection in enumerate(self.pending):
            if str(detection['id']) == self.current_id:
                return index
        return -1

    def select(self, detection_id):
        self.current_id = str(detection_id)
        self._reconcile()

    def go_previous(self):
        index = self.current_index
        if index > 0:
            self.current_id = str(self.pending[index - 1]['id'])
        return self.current

    def go_next(self):
        pending = self.pending
        index = self.current_index
        if 0 <= index < len(pending) - 1:
            self.current_id = str(pending[index + 1]['id'])
        return self.current

    def acknowledge_new_reports(self):
        self.new_report_count = 0

    def close(self):
        self._remove_listener()

    # ---------- actions ----------
    def verify(self, note=DEFAULT_VERIFY_NOTE):
        return self._transition(VERIFIED, note)

    def reject(self, reason, custom_note=''):
        note = custom_note if reason == 'Other' else reason
        if not note or not note.strip():
            raise ValidationError('Please provide a rejection reason')
        return self._transition(REJECTED, note.strip())

    def request_info(self, message):
        detection = self.current
        if detection is None:
            return None
        if not message or not message.strip():
            raise ValidationError('Please enter a message for the farmer')
        return self.client.request_more_info(detection['id'], message.strip())

    def respond(self, intervention_type, notes=''):
        detection = self.current
        if detection is None:
            return None
        if not intervention_type:
            raise ValidationError('Please select an intervention type')
        updated = self.client.record_response(detection['id'], intervention_type, notes)
        self.store.refresh()
        return updated

    def _transition(self, status, note):
        detection = self.current
        if detection is None:
            return None

        pending = self.pending
        index = self.current_index
        next_id = str(pending[index + 1]['id']) if index + 1 < len(pending) else None

        updated = self.client.update_detection_status(detection['id'], status, note)
        logger.info("Detection %s marked %s", detection['id'], status)

        self.current_id = next_id
        self.store.refresh()
        self._reconcile()
        return updated

    # ---------- store sync ----------
    def _on_refresh(self, store):
        ids = {str(d['id']) for d in store.pending()}
        new_ids = ids - self._seen_ids
        if new_ids:
            self.new_report_count += len(new_ids)
        self._seen_ids |= ids
        self._reconcile()

    def _reconcile(self):
        if self.current is not None:
            return
        pending = self.pending
        self.current_id = str(pending[0]['id']) if pending else None
