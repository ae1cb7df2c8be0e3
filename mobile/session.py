"""
Application state for one logged-in user.

An ``AppSession`` is created by ``login()`` and passed to whatever needs it;
``logout()`` closes the feed subscriptions and empties the stores.
"""
import logging

from .api_client import BantayAniClient
from .errors import AuthError, BantayAniError
from .feed import PollingChangeFeed
from .offline_queue import OfflineQueue
from .review_queue import ReviewQueue
from .scan_flow import ScanFlow
from .stores import DetectionStore, AdvisoryStore, FarmStore, MessageStore

logger = logging.getLogger(__name__)

FARMER = 'farmer'
LGU_ADMIN = 'lgu_admin'


class AppSession:
    def __init__(self, client, user, queue=None):
        self.client = client
        self.user = user
        self.queue = queue or OfflineQueue()
        self.feed = PollingChangeFeed(client)
        self.detections = DetectionStore(client, self.feed)
        self.advisories = AdvisoryStore(client, self.feed)
        self.farms = FarmStore(client, self.feed)
        self.messages = MessageStore(client, self.feed)
        self.active = True

    @classmethod
    def login(cls, username, password, base_url=None, queue=None, client=None):
        client = client or BantayAniClient(base_url)
        user = client.login(username, password)
        session = cls(client, user, queue=queue)
        logger.info("Logged in as %s (%s)", user.get('username'), session.role)
        session.refresh_all()
        return session

    @property
    def role(self):
        return self.user.get('role') if self.user else None

    @property
    def is_reviewer(self):
        return self.role == LGU_ADMIN

    @property
    def stores(self):
        return [self.detections, self.advisories, self.farms, self.messages]

    def refresh_all(self):
        for store in self.stores:
            store.refresh()

    def poll(self):
        return self.feed.poll()

    def scan_flow(self, location_provider=None, crop_type='Rice'):
        if self.role != FARMER:
            raise AuthError('Only farmers can submit reports')
        return ScanFlow(self.client, self.queue, location_provider=location_provider,
                        farms=self.farms, crop_type=crop_type)

    def review_queue(self):
        if not self.is_reviewer:
            raise AuthError('Reviewer access required')
        return ReviewQueue(self.detections, self.client)

    def unread_messages(self):
        return self.messages.unread_count(self.user.get('id'))

    def logout(self):
        if not self.active:
            return
        try:
            self.client.logout()
        except BantayAniError as e:
            logger.warning("Server logout failed, closing locally: %s", e)
        finally:
            self.feed.close()
            for store in self.stores:
                store.close()
            self.user = None
            self.active = False
            logger.info("Session closed")
