import logging
import time
from functools import wraps
from urllib.parse import urlencode

from django.conf import settings
from django.contrib import messages
from django.shortcuts import redirect
from django.urls import reverse

from .api import ApiError, GestifyClient, SessionExpired
from .navigation import has_access

logger = logging.getLogger(__name__)

TOKEN_KEY = 'auth_token'
USER_KEY = 'auth_user'
REFRESHED_AT_KEY = 'auth_refreshed_at'


class AuthSession:
    """
    The signed-in user's API token and profile, kept in the Django session.
    """

    def __init__(self, request):
        self.session = request.session

    @property
    def token(self):
        return self.session.get(TOKEN_KEY)

    @property
    def user(self):
        return self.session.get(USER_KEY)

    @property
    def is_authenticated(self):
        return bool(self.token)

    @property
    def is_superuser(self):
        return bool(self.user and self.user.get('is_superuser'))

    def client(self):
        return GestifyClient(token=self.token)

    def login(self, token, user):
        self.session.cycle_key()
        self.session[TOKEN_KEY] = token
        self.session[USER_KEY] = user
        self.session[REFRESHED_AT_KEY] = time.time()

    def logout(self):
        for key in (TOKEN_KEY, USER_KEY, REFRESHED_AT_KEY):
            self.session.pop(key, None)

    def needs_refresh(self):
        if not self.is_authenticated:
            return False
        if not self.user:
            return True
        refreshed_at = self.session.get(REFRESHED_AT_KEY) or 0
        return time.time() - refreshed_at > settings.GESTIFY_PROFILE_REFRESH_SECONDS

    def refresh_profile(self, client=None):
        """Fetches a fresh profile with the stored token; an unusable token signs the user out."""
        if not self.is_authenticated:
            return None
        client = client or self.client()
        try:
            profile = client.get_profile()
        except (ApiError, SessionExpired) as exc:
            logger.warning("Profile refresh failed, clearing session: %s", exc)
            self.logout()
            return None
        self.session[USER_KEY] = profile
        self.session[REFRESHED_AT_KEY] = time.time()
        return profile


class AuthSessionMiddleware:
    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        request.auth = AuthSession(request)
        if request.auth.needs_refresh():
            request.auth.refresh_profile()
        return self.get_response(request)


def _signin_redirect(request):
    query = urlencode({'next': request.get_full_path()})
    return redirect(f"{reverse('signin')}?{query}")


def handles_expired_session(view_func):
    """Signs the user out and sends them to sign-in when the API rejects their token mid-request."""
    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        try:
            return view_func(request, *args, **kwargs)
        except SessionExpired:
            request.auth.logout()
            messages.error(request, 'Your session has expired. Please sign in again.')
            return _signin_redirect(request)
    return wrapper


def token_required(view_func):
    guarded = handles_expired_session(view_func)

    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        if not request.auth.is_authenticated:
            return _signin_redirect(request)
        return guarded(request, *args, **kwargs)
    return wrapper


def anonymous_required(view_func):
    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        if request.auth.is_authenticated:
            return redirect('dashboard')
        return view_func(request, *args, **kwargs)
    return wrapper


def role_required(*roles):
    def decorator(view_func):
        @wraps(view_func)
        def wrapper(request, *args, **kwargs):
            if not has_access(list(roles), request.auth.user):
                messages.error(request, 'You do not have permission to view this page.')
                return redirect('dashboard')
            return view_func(request, *args, **kwargs)
        return token_required(wrapper)
    return decorator
