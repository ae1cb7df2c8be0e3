from unittest import mock

import pytest

from mobile.errors import AuthError, NetworkError
from mobile.feed import PollingChangeFeed
from mobile.session import AppSession
from mobile.stores import DetectionStore, FarmStore, MessageStore, detection_stats
from mobile.testing import FakeClient, detection_row


@pytest.fixture
def client():
    return FakeClient(detections=[
        detection_row('d1', crop_type='Rice'),
        detection_row('d2', status='verified', crop_type='Corn'),
        detection_row('d3', status='rejected', latitude=None, longitude=None),
        detection_row('d4', crop_type='rice', latitude=95.0),
    ])


class TestDetectionStore:
    def test_stats_sum_to_total(self, client):
        store = DetectionStore(client)
        store.refresh()

        stats = store.stats()
        assert stats == {'total': 4, 'pending': 2, 'verified': 1, 'rejected': 1}
        assert stats['pending'] + stats['verified'] + stats['rejected'] == stats['total']

    def test_filtered_stats_never_exceed_full(self, client):
        store = DetectionStore(client)
        store.refresh()
        full = store.stats()

        for sublist in (store.pending(), store.filter(crop_type='RICE'), store.filter(status='verified')):
            sub = detection_stats(sublist)
            assert all(sub[key] <= full[key] for key in full)

    def test_crop_filter_is_case_insensitive(self, client):
        store = DetectionStore(client)
        store.refresh()
        assert [d['id'] for d in store.filter(crop_type='Rice')] == ['d1', 'd3', 'd4']

    def test_mappable_skips_missing_and_invalid_coordinates(self, client):
        store = DetectionStore(client)
        store.refresh()
        assert [d['id'] for d in store.mappable()] == ['d1', 'd2']

    def test_failed_refresh_keeps_last_snapshot(self, client):
        store = DetectionStore(client)
        store.refresh()

        client.fail_reads = True
        store.refresh()

        assert len(store) == 4
        assert isinstance(store.error, NetworkError)

        client.fail_reads = False
        store.refresh()
        assert store.error is None


class TestChangeFeed:
    def test_moved_version_refreshes_subscribed_store(self, client):
        feed = PollingChangeFeed(client)
        store = DetectionStore(client, feed)
        feed.poll()

        client.detections.append(detection_row('d9'))
        client.bump('pest_detections')

        assert feed.poll() == ['pest_detections']
        assert store.get('d9') is not None

    def test_unchanged_tables_not_notified(self, client):
        feed = PollingChangeFeed(client)
        callback = mock.Mock()
        feed.subscribe('advisories', callback)
        feed.poll()

        client.bump('pest_detections')
        feed.poll()

        callback.assert_not_called()

    def test_unsubscribe(self, client):
        feed = PollingChangeFeed(client)
        callback = mock.Mock()
        unsubscribe = feed.subscribe('messages', callback)
        feed.poll()
        unsubscribe()

        client.bump('messages')
        feed.poll()
        callback.assert_not_called()

    def test_poll_failure_is_not_fatal(self, client):
        feed = PollingChangeFeed(client)
        client.fail_reads = True
        assert feed.poll() == []


class TestOtherStores:
    def test_farm_by_number(self):
        client = FakeClient(farms=[{'id': 3, 'farm_number': 2, 'farm_name': 'Upland'}])
        farms = FarmStore(client)
        farms.refresh()

        assert farms.by_number(2)['farm_name'] == 'Upland'
        assert farms.by_number(1) is None

    def test_unread_count(self):
        client = FakeClient()
        client.messages = [
            {'id': 1, 'recipient': 7, 'is_read': False, 'detection': 'd1'},
            {'id': 2, 'recipient': 7, 'is_read': True, 'detection': 'd1'},
            {'id': 3, 'recipient': 8, 'is_read': False, 'detection': None},
        ]
        messages = MessageStore(client)
        messages.refresh()

        assert messages.unread_count(7) == 1
        assert len(messages.for_detection('d1')) == 2


class TestAppSession:
    def test_logout_tears_down_state(self, client, tmp_path):
        client.login = mock.Mock(return_value={'id': 7, 'username': 'juan', 'role': 'farmer'})
        session = AppSession.login('juan', 'secret', client=client, queue=mock.Mock())

        assert len(session.detections) == 4
        assert session.scan_flow() is not None
        with pytest.raises(AuthError):
            session.review_queue()

        session.logout()

        assert session.user is None
        assert len(session.detections) == 0
        assert ('logout',) in client.calls

        # closed stores no longer follow the feed
        client.bump('pest_detections')
        assert session.poll() == []

    def test_reviewer_gets_review_queue(self):
        client = FakeClient(role='lgu_admin', detections=[detection_row('d1')])
        client.login = mock.Mock(return_value={'id': 1, 'username': 'lgu', 'role': 'lgu_admin'})
        session = AppSession.login('lgu', 'secret', client=client, queue=mock.Mock())

        assert session.review_queue().current['id'] == 'd1'
        with pytest.raises(AuthError):
            session.scan_flow()
