import time
from unittest.mock import MagicMock, patch

import pytest
import requests

from events.auth import REFRESHED_AT_KEY, TOKEN_KEY, USER_KEY
from tests.factories import make_user


@pytest.fixture
def http_session():
    return MagicMock(spec=requests.Session)


@pytest.fixture
def api():
    """One mocked GestifyClient shared by the views and the auth session."""
    instance = MagicMock()
    with patch('events.views.GestifyClient', return_value=instance), \
            patch('events.auth.GestifyClient', return_value=instance):
        yield instance


@pytest.fixture
def sign_in(client):
    """Puts a token and a freshly refreshed profile in the test client's session."""
    def _sign_in(user=None, token='tok-123'):
        session = client.session
        session[TOKEN_KEY] = token
        session[USER_KEY] = user if user is not None else make_user('Participante')
        session[REFRESHED_AT_KEY] = time.time()
        session.save()
        return client
    return _sign_in


@pytest.fixture
def event():
    return {
        'id': 12,
        'event_name': 'Festival Estéreo Picnic',
        'description': 'Three days of music.',
        'organizer': 'Páramo Presenta',
        'category': 'musica',
        'status': 'activo',
        'country': 'Colombia',
        'location': 5,
        'location_details': {'id': 5, 'name': 'Bogotá', 'department': {'id': 1, 'name': 'Cundinamarca'}},
        'start_datetime': '2025-11-15T20:00:00-05:00',
        'end_datetime': '2025-11-15T23:59:00-05:00',
        'date': '2025-11-15',
        'max_capacity': 300,
        'image': '',
        'types_of_tickets_available': [{'price': '150000.00'}, {'price': '80000.00'}],
        'ticket_type': [
            {'ticket_type': {'id': 1, 'name': 'General'}, 'price': '80000.00', 'maximun_capacity': 200},
            {'ticket_type': {'id': 2, 'name': 'VIP'}, 'price': '150000.00', 'maximun_capacity': 100},
        ],
    }


@pytest.fixture
def availability():
    return [
        {'id': 31, 'ticket_type': 'General', 'price': '80000.00', 'maximun_capacity': 200, 'capacity_sold': 50},
        {'id': 32, 'ticket_type': 'VIP', 'price': '150000.00', 'maximun_capacity': 100, 'capacity_sold': 100},
    ]
