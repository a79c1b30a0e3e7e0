from unittest.mock import MagicMock


def fake_response(status_code=200, data=None, text=''):
    """Stands in for a requests.Response coming back from the GestiFy API."""
    response = MagicMock()
    response.status_code = status_code
    response.ok = status_code < 400
    if data is not None:
        response.json.return_value = data
        response.content = b'{...}'
    else:
        response.json.side_effect = ValueError('No JSON')
        response.content = text.encode()
    response.text = text
    return response


def make_user(*roles, **extra):
    user = {
        'id': '7',
        'username': 'laura_g',
        'first_name': 'Laura',
        'last_name': 'Gómez',
        'email': 'laura@example.com',
        'phone': '3001234567',
        'document': '1020304050',
        'role': list(roles),
        'is_superuser': False,
        'is_staff': False,
        'is_active': True,
    }
    user.update(extra)
    return user



def event_form_data(**overrides):
    data = {
        'event_name': 'Hackathon Medellín',
        'description': 'Build things with the Medellín developer community.',
        'organizer': 'Ruta N',
        'category': 'tecnologia',
        'date': '2025-12-01',
        'start_datetime': '2025-12-01T09:00',
        'end_datetime': '2025-12-01T18:00',
        'country': 'Colombia',
        'status': 'programado',
        'location': '8',
        'max_capacity': '300',
    }
    data.update(overrides)
    return data


def ticket_rows(*rows):
    """Management form plus one ticket formset row per (type id, price, capacity)."""
    data = {'tickets-TOTAL_FORMS': str(len(rows)), 'tickets-INITIAL_FORMS': '0'}
    for index, (ticket_type_id, price, capacity) in enumerate(rows):
        data[f'tickets-{index}-ticket_type_id'] = ticket_type_id
        data[f'tickets-{index}-price'] = price
        data[f'tickets-{index}-maximun_capacity'] = capacity
    return data
