import pytest

from mobile import scan_flow
from mobile.errors import NetworkError, ValidationError
from mobile.location import Coordinates, GPS_TIMEOUT_SECONDS, LOCATION_MESSAGES, TIMEOUT, PERMISSION_DENIED
from mobile.offline_queue import OfflineQueue
from mobile.scan_flow import ScanFlow, MAX_IMAGES
from mobile.stores import FarmStore
from mobile.testing import FakeClient, StubLocationProvider

RICE_STEM_BORER = {'success': True, 'detection': {
    'pest_type': 'Rice Stem Borer', 'scientific_name': 'Scirpophaga incertulas', 'confidence': 0.9,
}}


@pytest.fixture
def queue(tmp_path):
    return OfflineQueue(str(tmp_path / 'pendingUploads.json'))


def make_flow(client, queue, coordinates=Coordinates(15.2149, 120.6604, 5)):
    flow = ScanFlow(client, queue, location_provider=StubLocationProvider(coordinates), crop_type='Rice')
    assert flow.request_location()
    return flow


class TestLocationStep:
    def test_gps_fix_moves_to_camera(self, queue):
        provider = StubLocationProvider(Coordinates(15.2, 120.6, 8))
        flow = ScanFlow(FakeClient(), queue, location_provider=provider)

        assert flow.request_location()
        assert flow.step == scan_flow.CAMERA
        assert flow.location.latitude == 15.2
        assert provider.timeouts == [GPS_TIMEOUT_SECONDS]

    def test_gps_timeout_has_specific_message_and_stays(self, queue):
        flow = ScanFlow(FakeClient(), queue, location_provider=StubLocationProvider(reason=TIMEOUT))

        assert not flow.request_location()
        assert flow.step == scan_flow.LOCATION
        assert flow.location_error == LOCATION_MESSAGES[TIMEOUT]
        assert 'timed out' in flow.location_error

    def test_permission_denied_message(self, queue):
        flow = ScanFlow(FakeClient(), queue, location_provider=StubLocationProvider(reason=PERMISSION_DENIED))

        flow.request_location()
        assert flow.location_error == LOCATION_MESSAGES[PERMISSION_DENIED]

    def test_no_provider_is_unsupported(self, queue):
        flow = ScanFlow(FakeClient(), queue)
        assert not flow.request_location()
        assert 'not supported' in flow.location_error

    def test_saved_farm_location(self, queue):
        client = FakeClient(farms=[
            {'id': 11, 'farm_number': 1, 'latitude': 15.1, 'longitude': 120.5},
            {'id': 12, 'farm_number': 2, 'latitude': None, 'longitude': None},
        ])
        farms = FarmStore(client)
        farms.refresh()
        flow = ScanFlow(client, queue, farms=farms)

        assert not flow.use_farm_location(2)
        assert flow.step == scan_flow.LOCATION

        assert flow.use_farm_location(1)
        assert flow.step == scan_flow.CAMERA
        assert flow.report()['farm_id'] == 11


class TestCameraStep:
    def test_at_most_four_images(self, queue):
        flow = make_flow(FakeClient(), queue)
        added = flow.add_files([b'img'] * 6)

        assert len(added) == MAX_IMAGES
        with pytest.raises(ValidationError):
            flow.capture(b'one more')

    def test_remove_image(self, queue):
        flow = make_flow(FakeClient(), queue)
        first = flow.capture(b'a')
        flow.capture(b'b')

        flow.remove_image(first.id)
        assert len(flow.images) == 1
        assert flow.images[0].data_url.startswith('data:image/jpeg;base64,')

    def test_zero_images_rejected_before_network(self, queue):
        client = FakeClient()
        flow = make_flow(client, queue)

        with pytest.raises(ValidationError):
            flow.proceed_to_diagnosis()
        assert client.calls == []
        assert flow.step == scan_flow.CAMERA


class TestDiagnosisAndSubmit:
    def test_one_failed_inference_gets_sentinel(self, queue):
        client = FakeClient(detect_results=[RICE_STEM_BORER, NetworkError('connection reset')])
        flow = make_flow(client, queue)
        flow.add_files([b'image-a', b'image-b'])

        results = flow.proceed_to_diagnosis()

        assert flow.step == scan_flow.DIAGNOSIS
        assert results[0] == {'pest': 'Rice Stem Borer', 'scientific_name': 'Scirpophaga incertulas', 'confidence': 0.9}
        assert results[1] == scan_flow.ANALYSIS_ERROR
        assert [c[1] for c in client.calls if c[0] == 'detect_pest'] == ['Rice', 'Rice']

        result = flow.submit()

        assert result.uploaded == 2 and not result.queued
        uploads = [c[1] for c in client.calls if c[0] == 'upload_detection']
        assert [(u['pest_type'], u['confidence']) for u in uploads] == [
            ('Rice Stem Borer', 0.9), ('Analysis error', 0),
        ]
        assert all(u['crop_type'] == 'Rice' for u in uploads)

    def test_non_ok_response_and_empty_detection(self, queue):
        client = FakeClient(detect_results=[
            NetworkError('AI analysis failed', status_code=502),
            {'success': True, 'detection': None},
        ])
        flow = make_flow(client, queue)
        flow.add_files([b'a', b'b'])

        assert flow.proceed_to_diagnosis() == [scan_flow.ANALYSIS_FAILED, scan_flow.NO_PEST]

    def test_inference_calls_bounded_by_images(self, queue):
        client = FakeClient(detect_results=[RICE_STEM_BORER] * MAX_IMAGES)
        flow = make_flow(client, queue)
        flow.add_files([b'x'] * MAX_IMAGES)

        flow.proceed_to_diagnosis()
        flow.submit()

        assert sum(1 for c in client.calls if c[0] == 'detect_pest') == MAX_IMAGES
        assert sum(1 for c in client.calls if c[0] == 'upload_detection') == MAX_IMAGES

    def test_failed_uploads_queue_report_once(self, queue):
        client = FakeClient(detect_results=[RICE_STEM_BORER, RICE_STEM_BORER])
        client.fail_uploads = True
        flow = make_flow(client, queue)
        flow.add_files([b'a', b'b'])
        flow.proceed_to_diagnosis()
        flow.set_notes('Leaves are yellowing')

        result = flow.submit()

        assert result.queued
        assert flow.step == scan_flow.SUCCESS
        assert len(queue) == 1
        report = queue.items()[0]
        assert len(report['images']) == 2
        assert report['crop_type'] == 'Rice'
        assert report['farmer_notes'] == 'Leaves are yellowing'
        assert report['location']['latitude'] == 15.2149

    def test_queued_report_flushes_later(self, queue):
        client = FakeClient(detect_results=[RICE_STEM_BORER])
        client.fail_uploads = True
        flow = make_flow(client, queue)
        flow.capture(b'a')
        flow.proceed_to_diagnosis()
        flow.submit()

        client.fail_uploads = False
        assert flow.flush_offline() == 1
        assert len(queue) == 0
        assert client.detections[0]['pest_type'] == 'Rice Stem Borer'

    def test_retake_and_reset(self, queue):
        client = FakeClient(detect_results=[RICE_STEM_BORER])
        flow = make_flow(client, queue)
        flow.capture(b'a')
        flow.proceed_to_diagnosis()

        flow.retake()
        assert flow.step == scan_flow.CAMERA and flow.images == []

        flow.reset()
        assert flow.step == scan_flow.LOCATION and flow.location is None


class TestStepOrder:
    def test_submit_before_diagnosis_is_rejected(self, queue):
        client = FakeClient()
        flow = make_flow(client, queue)
        flow.add_files([b'a', b'b'])

        with pytest.raises(ValidationError):
            flow.submit()

        assert flow.step == scan_flow.CAMERA
        assert client.calls == []
        assert len(queue) == 0

    def test_unanalysed_image_blocks_submit(self, queue):
        client = FakeClient(detect_results=[RICE_STEM_BORER])
        flow = make_flow(client, queue)
        flow.capture(b'a')
        flow.proceed_to_diagnosis()
        flow.images.append(scan_flow.CapturedImage(scan_flow.to_data_url(b'late')))

        with pytest.raises(ValidationError):
            flow.submit()
        assert flow.step == scan_flow.DIAGNOSIS
        assert not any(c[0] == 'upload_detection' for c in client.calls)

    def test_camera_needs_a_bound_location(self, queue):
        client = FakeClient(detect_results=[RICE_STEM_BORER])
        flow = ScanFlow(client, queue)
        assert not flow.request_location()

        with pytest.raises(ValidationError):
            flow.capture(b'img')
        with pytest.raises(ValidationError):
            flow.add_files([b'img'])
        with pytest.raises(ValidationError):
            flow.proceed_to_diagnosis()

        assert flow.step == scan_flow.LOCATION
        assert flow.images == []
        assert client.calls == []

    def test_no_capture_after_success(self, queue):
        client = FakeClient(detect_results=[RICE_STEM_BORER])
        flow = make_flow(client, queue)
        flow.capture(b'a')
        flow.proceed_to_diagnosis()
        flow.submit()

        with pytest.raises(ValidationError):
            flow.capture(b'b')
        with pytest.raises(ValidationError):
            flow.submit()
        assert sum(1 for c in client.calls if c[0] == 'upload_detection') == 1
