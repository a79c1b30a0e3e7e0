import time
from unittest.mock import MagicMock

import pytest
from django.contrib.messages import get_messages
from django.contrib.messages.storage.session import SessionStorage
from django.contrib.sessions.backends.cache import SessionStore
from django.http import HttpResponse
from django.test import RequestFactory

from events.api import ApiError, SessionExpired
from events.auth import (
    REFRESHED_AT_KEY,
    TOKEN_KEY,
    USER_KEY,
    AuthSession,
    anonymous_required,
    role_required,
    token_required,
)
from tests.factories import make_user


def build_request(path='/dashboard/'):
    request = RequestFactory().get(path)
    request.session = SessionStore()
    request._messages = SessionStorage(request)
    request.auth = AuthSession(request)
    return request


class TestAuthSession:

    def setup_method(self):
        self.request = build_request()
        self.auth = self.request.auth

    def test_login_and_logout(self):
        assert not self.auth.is_authenticated
        self.auth.login('tok', {'id': '7'})

        assert self.auth.is_authenticated
        assert self.auth.token == 'tok'
        assert self.auth.user == {'id': '7'}

        self.auth.logout()
        assert not self.auth.is_authenticated
        for key in (TOKEN_KEY, USER_KEY, REFRESHED_AT_KEY):
            assert key not in self.request.session

    def test_is_superuser_reads_the_profile(self):
        self.auth.login('tok', make_user('Administrador', is_superuser=True))
        assert self.auth.is_superuser

    def test_fresh_profile_needs_no_refresh(self):
        self.auth.login('tok', make_user('Participante'))
        assert not self.auth.needs_refresh()

    def test_stale_or_missing_profile_needs_refresh(self):
        self.auth.login('tok', make_user('Participante'))
        self.request.session[REFRESHED_AT_KEY] = time.time() - 3600
        assert self.auth.needs_refresh()

        self.request.session[USER_KEY] = None
        assert self.auth.needs_refresh()

    def test_refresh_replaces_the_stored_user(self):
        self.auth.login('tok', {'id': '7', 'email': 'laura@example.com'})
        profile = make_user('Organizador')
        client = MagicMock()
        client.get_profile.return_value = profile

        assert self.auth.refresh_profile(client) == profile
        assert self.auth.user['role'] == ['Organizador']

    @pytest.mark.parametrize('error', [ApiError('boom', status=500), SessionExpired('users/profile/')])
    def test_failed_refresh_signs_out(self, error):
        self.auth.login('tok', {'id': '7'})
        client = MagicMock()
        client.get_profile.side_effect = error

        assert self.auth.refresh_profile(client) is None
        assert not self.auth.is_authenticated


class TestDecorators:

    def test_token_required_redirects_anonymous_users_with_next(self):
        view = token_required(lambda request: HttpResponse('ok'))
        response = view(build_request('/my-tickets/?status=Confirmado'))

        assert response.status_code == 302
        assert response.url == '/signin/?next=%2Fmy-tickets%2F%3Fstatus%3DConfirmado'

    def test_token_required_handles_an_expired_session(self):
        def view(request):
            raise SessionExpired('events/')

        request = build_request('/events/')
        request.auth.login('stale', make_user('Participante'))
        response = token_required(view)(request)

        assert response.status_code == 302
        assert response.url.startswith('/signin/')
        assert not request.auth.is_authenticated
        assert [str(m) for m in get_messages(request)] == ['Your session has expired. Please sign in again.']

    def test_anonymous_required_sends_members_to_the_dashboard(self):
        request = build_request('/signin/')
        request.auth.login('tok', make_user('Participante'))
        response = anonymous_required(lambda request: HttpResponse('ok'))(request)

        assert response.status_code == 302
        assert response.url == '/dashboard/'

    def test_role_required_rejects_other_roles(self):
        request = build_request('/create-event/')
        request.auth.login('tok', make_user('Participante'))
        response = role_required('Administrador', 'Organizador')(lambda request: HttpResponse('ok'))(request)

        assert response.status_code == 302
        assert response.url == '/dashboard/'
        assert [str(m) for m in get_messages(request)] == ['You do not have permission to view this page.']

    def test_role_required_lets_matching_roles_through(self):
        request = build_request('/create-event/')
        request.auth.login('tok', make_user('Participante', 'Organizador'))
        response = role_required('Administrador', 'Organizador')(lambda request: HttpResponse('ok'))(request)

        assert response.status_code == 200
