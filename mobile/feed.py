"""
Client side of the change feed.

The server exposes a version counter per table at ``/api/changes/``. Each
``poll()`` compares the counters with the last ones seen and calls the
subscribers of every table that moved. Events carry no payload, so
subscribers re-fetch.
"""
import logging
from collections import defaultdict

from .errors import BantayAniError

logger = logging.getLogger(__name__)

DETECTIONS = 'pest_detections'
ADVISORIES = 'advisories'
FARMS = 'farmer_farms'
MESSAGES = 'messages'


class PollingChangeFeed:
    def __init__(self, client):
        self.client = client
        self._versions = None
        self._subscribers = defaultdict(list)

    def subscribe(self, table, callback):
        self._subscribers[table].append(callback)

        def unsubscribe():
            if callback in self._subscribers[table]:
                self._subscribers[table].remove(callback)

        return unsubscribe

    def close(self):
        self._subscribers.clear()
        self._versions = None

    def poll(self):
        """Fetch counters and notify; returns the tables that changed."""
        try:
            versions = self.client.changes() or {}
        except BantayAniError as e:
            logger.warning("Change feed poll failed: %s", e)
            return []

        if self._versions is None:
            # First poll only sets the baseline
            self._versions = versions
            return []

        changed = [
            table for table, version in versions.items()
            if self._versions.get(table) != version
        ]
        self._versions = versions

        for table in changed:
            for callback in list(self._subscribers.get(table, ())):
                try:
                    callback(table)
                except Exception:
                    logger.exception("Change subscriber for %s failed", table)
        return changed
