# api/realtime.py
"""
Row-level change notifications.

Every save or delete on a watched table bumps that table's version counter
in the cache and calls any in-process subscribers. Events carry only the
table name; consumers re-fetch. Remote clients poll ``/api/changes/`` and
compare versions.
"""
import logging
import threading

from django.core.cache import cache
from django.db.models.signals import post_delete, post_save

from .models import Advisory, FarmerFarm, Message, PestDetection

logger = logging.getLogger(__name__)

WATCHED_TABLES = {
    PestDetection: 'pest_detections',
    Advisory: 'advisories',
    FarmerFarm: 'farmer_farms',
    Message: 'messages',
}

VERSION_KEY = 'changes:{table}'

_subscribers = {}
_lock = threading.Lock()


def subscribe(table, callback):
    """
    Register ``callback(table)`` for changes on ``table``.

    Returns a function that removes the subscription.
    """
    with _lock:
        _subscribers.setdefault(table, []).append(callback)

    def unsubscribe():
        with _lock:
            callbacks = _subscribers.get(table, [])
            if callback in callbacks:
                callbacks.remove(callback)

    return unsubscribe


def get_versions():
    keys = {VERSION_KEY.format(table=table): table for table in WATCHED_TABLES.values()}
    stored = cache.get_many(list(keys))
    return {table: stored.get(key, 0) for key, table in keys.items()}


def publish(table):
    key = VERSION_KEY.format(table=table)
    # add() is a no-op when the key exists, so incr() always has a value
    cache.add(key, 0, timeout=None)
    version = cache.incr(key)

    with _lock:
        callbacks = list(_subscribers.get(table, []))

    for callback in callbacks:
        try:
            callback(table)
        except Exception:
            logger.exception("Change subscriber for %s failed", table)
    return version


def _on_change(sender, **kwargs):
    publish(WATCHED_TABLES[sender])


def connect_signals():
    for model in WATCHED_TABLES:
        post_save.connect(_on_change, sender=model, dispatch_uid=f'realtime-save-{model.__name__}')
        post_delete.connect(_on_change, sender=model, dispatch_uid=f'realtime-delete-{model.__name__}')
