from unittest import mock

import pytest
import requests

from mobile.api_client import BantayAniClient
from mobile.errors import AuthError, ForbiddenError, NetworkError, UploadError, ValidationError


def http_response(status_code=200, body=None):
    response = mock.Mock()
    response.status_code = status_code
    response.content = b'{}' if body is not None else b''
    response.json.return_value = body
    return response


@pytest.fixture
def session():
    return mock.Mock(spec=requests.Session)


@pytest.fixture
def client(session):
    client = BantayAniClient('http://bantayani.test/api/', session=session)
    client.access_token = 'token-abc'
    return client


class TestRequests:
    def test_bearer_token_sent(self, client, session):
        session.request.return_value = http_response(body={'pest_detections': 1})

        client.changes()

        method, url = session.request.call_args.args
        assert (method, url) == ('GET', 'http://bantayani.test/api/changes/')
        assert session.request.call_args.kwargs['headers']['Authorization'] == 'Bearer token-abc'

    def test_login_stores_tokens(self, session):
        client = BantayAniClient('http://bantayani.test/api', session=session)
        session.request.return_value = http_response(body={
            'user': {'id': 1, 'username': 'juan', 'role': 'farmer'},
            'tokens': {'access': 'a', 'refresh': 'r'},
        })

        user = client.login('juan', 'secret')

        assert user['role'] == 'farmer'
        assert client.is_authenticated
        assert client.refresh_token == 'r'

    def test_logout_clears_tokens_even_on_failure(self, client, session):
        client.refresh_token = 'r'
        session.request.side_effect = requests.exceptions.ConnectionError('offline')

        with pytest.raises(NetworkError):
            client.logout()
        assert not client.is_authenticated

    def test_list_follows_pagination(self, client, session):
        session.request.side_effect = [
            http_response(body={'count': 3, 'next': 'http://bantayani.test/api/detections/?page=2',
                                'results': [{'id': 'a'}, {'id': 'b'}]}),
            http_response(body={'count': 3, 'next': None, 'results': [{'id': 'c'}]}),
        ]

        detections = client.list_detections(status='pending')

        assert [d['id'] for d in detections] == ['a', 'b', 'c']
        assert session.request.call_args_list[0].kwargs['params'] == {'status': 'pending'}
        assert session.request.call_args_list[1].args[1] == 'http://bantayani.test/api/detections/?page=2'

    def test_update_status_unwraps_detection(self, client, session):
        session.request.return_value = http_response(body={'success': True, 'detection': {'id': 'x', 'status': 'verified'}})

        detection = client.update_detection_status('x', 'verified', 'ok')

        assert detection['status'] == 'verified'
        assert session.request.call_args.kwargs['json'] == {'detection_id': 'x', 'status': 'verified', 'notes': 'ok'}


class TestErrors:
    @pytest.mark.parametrize('status_code, error', [
        (400, ValidationError),
        (401, AuthError),
        (403, ForbiddenError),
        (502, NetworkError),
        (500, NetworkError),
        (503, NetworkError),
    ])
    def test_status_mapping(self, client, session, status_code, error):
        session.request.return_value = http_response(status_code, {'detail': 'nope'})

        with pytest.raises(error) as exc:
            client.list_farms()
        assert exc.value.status_code == status_code
        assert exc.value.message == 'nope'

    def test_502_is_upload_error_only_when_storing_a_detection(self, client, session):
        session.request.return_value = http_response(502, {'detail': 'Failed to upload image'})

        with pytest.raises(UploadError):
            client.upload_detection('Rice Bug', 0.7, 'Rice', 'data:image/png;base64,AAAA')

        session.request.return_value = http_response(502, {'error': 'AI analysis failed'})
        with pytest.raises(NetworkError) as exc:
            client.detect_pest('data:image/png;base64,AAAA', 'Rice')
        assert not isinstance(exc.value, UploadError)
        assert exc.value.status_code == 502

    @pytest.mark.parametrize('failure', [requests.exceptions.ConnectionError, requests.exceptions.Timeout])
    def test_unreachable_server(self, client, session, failure):
        session.request.side_effect = failure('down')

        with pytest.raises(NetworkError) as exc:
            client.list_advisories()
        assert exc.value.status_code is None
