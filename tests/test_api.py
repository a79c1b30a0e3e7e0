import pytest
import requests

from events.api import ApiError, ApiUnavailable, GestifyClient, SessionExpired, format_api_errors
from tests.factories import fake_response


class TestFormatApiErrors:

    def test_field_errors_are_joined_per_key(self):
        payload = {'event_name': ['This field is required.'], 'date': ['Invalid date.', 'In the past.']}
        assert format_api_errors(payload) == (
            'event_name: This field is required. | date: Invalid date., In the past.'
        )

    def test_nested_list_of_objects(self):
        payload = {'ticket_type': [{'price': 'Invalid'}, {'maximun_capacity': 'Too big'}]}
        assert format_api_errors(payload) == 'ticket_type: Invalid; Too big'

    def test_single_message_key_is_used_verbatim(self):
        assert format_api_errors({'detail': 'Not found.'}) == 'Not found.'
        assert format_api_errors({'error': 'Sold out'}) == 'Sold out'

    def test_plain_values(self):
        assert format_api_errors('Server exploded') == 'Server exploded'
        assert format_api_errors(['a', 'b']) == 'a, b'
        assert format_api_errors(None, 'Fallback') == 'Fallback'


class TestGestifyClient:

    def setup_method(self):
        self.base_url = 'http://api.test/api/'

    def make_client(self, http_session, token=None):
        return GestifyClient(token=token, base_url=self.base_url, timeout=3, session=http_session)

    def test_authenticated_requests_send_the_token(self, http_session):
        http_session.request.return_value = fake_response(200, {'id': 7})
        client = self.make_client(http_session, token='abc')

        assert client.get_profile() == {'id': 7}
        http_session.request.assert_called_once_with(
            'GET', 'http://api.test/api/users/profile/',
            headers={'Authorization': 'Token abc'}, timeout=3,
        )

    def test_anonymous_requests_send_no_authorization_header(self, http_session):
        http_session.request.return_value = fake_response(200, [])
        self.make_client(http_session).list_events()

        _, kwargs = http_session.request.call_args
        assert 'Authorization' not in kwargs['headers']

    def test_rejected_token_raises_session_expired(self, http_session):
        http_session.request.return_value = fake_response(401, {'detail': 'Invalid token.'})
        with pytest.raises(SessionExpired):
            self.make_client(http_session, token='stale').my_tickets()

    def test_failed_login_is_an_api_error(self, http_session):
        http_session.request.return_value = fake_response(401, {'non_field_errors': ['Wrong password']})
        with pytest.raises(ApiError) as excinfo:
            self.make_client(http_session).login('a@b.co', 'x')
        assert excinfo.value.status == 401
        assert excinfo.value.message == 'non_field_errors: Wrong password'

    def test_error_without_body_uses_the_default_message(self, http_session):
        http_session.request.return_value = fake_response(500)
        with pytest.raises(ApiError) as excinfo:
            self.make_client(http_session, token='t').delete_event(3)
        assert str(excinfo.value) == 'The event could not be deleted.'

    def test_connection_errors_become_api_unavailable(self, http_session):
        http_session.request.side_effect = requests.ConnectionError('refused')
        with pytest.raises(ApiUnavailable) as excinfo:
            self.make_client(http_session).list_events()
        assert excinfo.value.message == 'Could not connect to the server.'

    def test_no_content_returns_none(self, http_session):
        http_session.request.return_value = fake_response(204)
        assert self.make_client(http_session, token='t').delete_user(4) is None

    def test_purchase_posts_ticket_and_quantity(self, http_session):
        http_session.request.return_value = fake_response(201, {'checkout_url': 'https://pay.test/x'})
        result = self.make_client(http_session, token='t').purchase(12, 31, 2)

        assert result == {'checkout_url': 'https://pay.test/x'}
        args, kwargs = http_session.request.call_args
        assert args == ('POST', 'http://api.test/api/events/12/purchase/')
        assert kwargs['json'] == {'ticket_type_id': 31, 'quantity': 2}

    def test_cities_are_filtered_by_department(self, http_session):
        http_session.request.return_value = fake_response(200, [])
        self.make_client(http_session).cities(department_id='4')

        _, kwargs = http_session.request.call_args
        assert kwargs['params'] == {'department_id': '4'}

    def test_event_create_is_multipart(self, http_session):
        http_session.request.return_value = fake_response(201, {'id': 40})
        files = {'image': ('poster.png', b'png', 'image/png')}
        self.make_client(http_session, token='t').create_event({'event_name': 'Expo'}, files=files)

        args, kwargs = http_session.request.call_args
        assert args == ('POST', 'http://api.test/api/events/')
        assert kwargs['data'] == {'event_name': 'Expo'}
        assert kwargs['files'] == files
