"""
Thin client for the GestiFy REST API.

Every screen of the frontend reads and writes through this module; the backend
owns the data, ticket issuance and payments.
"""
import logging

import requests
from django.conf import settings

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """A non-2xx answer from the API, with the backend's error payload flattened into the message."""

    def __init__(self, message, status=None, payload=None):
        super().__init__(message)
        self.message = message
        self.status = status
        self.payload = payload

    def __str__(self):
        return self.message


class ApiUnavailable(ApiError):
    """The API could not be reached at all."""


class SessionExpired(Exception):
    """The API rejected the stored token (401 on an authenticated call)."""


def format_api_errors(payload, default='The request could not be completed.'):
    """
    Flattens a DRF-style error payload into one line, e.g.
    {'event_name': ['Required.'], 'ticket_type': [{'price': 'Invalid'}]}
    becomes 'event_name: Required. | ticket_type: Invalid'.
    """
    if not payload:
        return default
    if isinstance(payload, str):
        return payload
    if isinstance(payload, list):
        return ', '.join(str(item) for item in payload)
    if not isinstance(payload, dict):
        return default

    for key in ('message', 'error', 'detail'):
        if len(payload) == 1 and isinstance(payload.get(key), str):
            return payload[key]

    parts = []
    for key, error in payload.items():
        if isinstance(error, list):
            if error and isinstance(error[0], dict):
                nested = '; '.join(', '.join(str(v) for v in item.values()) for item in error)
                parts.append(f'{key}: {nested}')
            else:
                parts.append(f"{key}: {', '.join(str(e) for e in error)}")
        else:
            parts.append(f'{key}: {error}')
    return ' | '.join(parts) or default


def _payload(response):
    try:
        return response.json()
    except ValueError:
        return response.text


class GestifyClient:
    def __init__(self, token=None, base_url=None, timeout=None, session=None):
        self.token = token
        self.base_url = (base_url or settings.GESTIFY_API_URL).rstrip('/')
        self.timeout = timeout or settings.GESTIFY_API_TIMEOUT
        self.session = session or requests.Session()

    def _url(self, path):
        return f"{self.base_url}/{path.lstrip('/')}"

    def request(self, method, path, default_error=None, **kwargs):
        headers = kwargs.pop('headers', {})
        if self.token:
            headers['Authorization'] = f'Token {self.token}'
        url = self._url(path)
        try:
            response = self.session.request(method, url, headers=headers, timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            logger.error("Could not reach %s %s: %s", method, url, exc)
            raise ApiUnavailable('Could not connect to the server.') from exc

        if response.status_code == 401 and self.token:
            logger.info("%s %s rejected the session token", method, url)
            raise SessionExpired(url)

        if not response.ok:
            payload = _payload(response)
            message = format_api_errors(payload, default_error or 'The request could not be completed.')
            logger.warning("%s %s returned %s: %s", method, url, response.status_code, message)
            raise ApiError(message, status=response.status_code, payload=payload)

        if response.status_code == 204 or not response.content:
            return None
        return _payload(response)

    def get(self, path, **kwargs):
        return self.request('GET', path, **kwargs)

    def post(self, path, **kwargs):
        return self.request('POST', path, **kwargs)

    def put(self, path, **kwargs):
        return self.request('PUT', path, **kwargs)

    def patch(self, path, **kwargs):
        return self.request('PATCH', path, **kwargs)

    def delete(self, path, **kwargs):
        return self.request('DELETE', path, **kwargs)

    # --- Authentication ---

    def login(self, email, password):
        return self.post('users/login/', json={'email': email, 'password': password},
                         default_error='Invalid credentials.')

    def register(self, data):
        return self.post('users/register/', json=data)

    def verify_email(self, token):
        return self.get('users/verify-email/', params={'token': token})

    def request_password_reset(self, email):
        return self.post('users/password-reset/', json={'email': email},
                         default_error='The recovery email could not be sent.')

    def confirm_password_reset(self, token, password, password_confirm):
        return self.post('users/password-reset-confirm/',
                         json={'token': token, 'password': password, 'password_confirm': password_confirm},
                         default_error='The password could not be reset.')

    # --- Profile ---

    def get_profile(self):
        return self.get('users/profile/')

    def update_profile(self, data):
        return self.patch('users/profile/', json=data, default_error='The profile could not be updated.')

    # --- Catalogs ---

    def ticket_types(self):
        return self.get('ticket-types/', default_error='Ticket types could not be loaded.')

    def departments(self):
        return self.get('departments/', default_error='Departments could not be loaded.')

    def cities(self, department_id=None):
        params = {'department_id': department_id} if department_id else None
        return self.get('cities/', params=params, default_error='Cities could not be loaded.')

    def document_types(self):
        return self.get('catalogs/document-types/')

    def create_ticket_type(self, data):
        return self.post('ticket-types/', json=data)

    def update_ticket_type(self, ticket_type_id, data):
        return self.put(f'ticket-types/{ticket_type_id}/', json=data)

    def delete_ticket_type(self, ticket_type_id):
        return self.delete(f'ticket-types/{ticket_type_id}/',
                           default_error='The ticket type could not be deleted. It may be in use.')

    # --- Events ---

    def list_events(self):
        return self.get('events/', default_error='Events could not be loaded.')

    def get_event(self, event_id):
        return self.get(f'events/{event_id}/', default_error='The event could not be loaded.')

    def event_availability(self, event_id):
        return self.get(f'events/{event_id}/availability/', default_error='Availability could not be loaded.')

    def event_attendees(self, event_id):
        return self.get(f'events/{event_id}/attendees/', default_error='Attendees could not be loaded.')

    def create_event(self, data, files=None):
        return self.post('events/', data=data, files=files, default_error='The event could not be created.')

    def update_event(self, event_id, data, files=None):
        return self.put(f'events/{event_id}/', data=data, files=files,
                        default_error='The event could not be updated.')

    def delete_event(self, event_id):
        return self.delete(f'events/{event_id}/', default_error='The event could not be deleted.')

    def cancel_event(self, event_id):
        return self.post(f'events/{event_id}/cancel/', default_error='The event could not be cancelled.')

    def organizer_events(self):
        return self.get('organizer/my-events/', default_error='Events could not be loaded.')

    def my_tickets(self):
        return self.get('events/mis-eventos/', default_error='Your tickets could not be loaded.')

    def ask_ai(self, event_id, question):
        return self.post(f'events/{event_id}/ask-ai/', json={'question': question},
                         default_error='Your question could not be processed right now.')

    def purchase(self, event_id, ticket_type_id, quantity):
        return self.post(f'events/{event_id}/purchase/',
                         json={'ticket_type_id': ticket_type_id, 'quantity': quantity},
                         default_error='The purchase could not be started.')

    # --- User administration ---

    def list_users(self):
        return self.get('users/', default_error='Users could not be loaded.')

    def update_user(self, user_id, data):
        return self.patch(f'users/{user_id}/', json=data, default_error='The user could not be updated.')

    def assign_role(self, user_id, role):
        return self.post(f'users/{user_id}/assign-role/', json={'role': role},
                         default_error='The role could not be assigned.')

    def delete_user(self, user_id):
        return self.delete(f'users/{user_id}/', default_error='The user could not be deleted.')
