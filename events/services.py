"""
Pure derivations over API payloads: prices, availability, KPIs, list filters
and the small formatting helpers the templates rely on.
"""
import csv
import io
import json
import re
from datetime import datetime, time
from decimal import Decimal, InvalidOperation

from django.templatetags.static import static
from django.utils import numberformat, timezone
from django.utils.dateparse import parse_date, parse_datetime

from .navigation import PARTICIPANT

ALL_CITIES = 'Todas'
ALL_GENRES = 'Todos'
ALL_ROLES = 'All'

CATEGORY_CHOICES = (
    ('musica', 'Music'),
    ('deporte', 'Sports'),
    ('educacion', 'Education'),
    ('tecnologia', 'Technology'),
    ('arte', 'Art'),
    ('otros', 'Other'),
)

STATUS_CHOICES = (
    ('programado', 'Scheduled'),
    ('activo', 'Active'),
    ('cancelado', 'Cancelled'),
    ('finalizado', 'Finished'),
)

DEFAULT_EVENT_IMAGE = 'events/img/event-default.svg'
CATEGORY_IMAGES = {category: DEFAULT_EVENT_IMAGE for category, _ in CATEGORY_CHOICES}

GROUPED_AMOUNT = re.compile(r'^\d{1,3}([.,]\d{3})+$')


# --- Prices ---

def clean_price(value):
    if value is None or value == '':
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        return Decimal(str(value))

    text = re.sub(r'[\s$]', '', str(value))
    if GROUPED_AMOUNT.match(text):
        text = re.sub(r'[.,]', '', text)
    try:
        price = Decimal(text)
    except InvalidOperation:
        return None
    return price if price.is_finite() else None


def lowest_price(event):
    prices = [clean_price(t.get('price')) for t in event.get('types_of_tickets_available') or []]
    prices = [p for p in prices if p is not None]
    return min(prices) if prices else None


# --- Event list filtering ---

def _as_datetime(value):
    if isinstance(value, datetime):
        return value
    if not value:
        return None
    try:
        parsed = parse_datetime(str(value).replace(' ', 'T'))
        if parsed is None:
            day = parse_date(str(value))
            if day is None:
                return None
            parsed = datetime.combine(day, time.min)
    except ValueError:
        return None
    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed)
    return parsed


def _as_date(value):
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if hasattr(value, 'year'):
        return value
    try:
        return parse_date(str(value))
    except ValueError:
        return None


def filters_active(filters):
    return any([
        filters.get('search'),
        filters.get('date_from'),
        filters.get('date_to'),
        filters.get('city') not in (None, '', ALL_CITIES),
        filters.get('genre') not in (None, '', ALL_GENRES),
        filters.get('min_price') not in (None, ''),
        filters.get('max_price') not in (None, ''),
    ])


def city_options(events):
    """(location id, label) pairs for the city filter, one per location seen in the catalog."""
    options = {}
    for event in events:
        location = event.get('location')
        if location in (None, ''):
            continue
        city, region = location_labels(event)
        options.setdefault(str(location), f'{city}, {region}' if region else city)
    return sorted(options.items(), key=lambda option: option[1])


def filter_events(events, filters):
    """
    Applies the catalog filters. With no filter set the list comes back as-is;
    once any filter is set, events without a priced ticket type are dropped.
    """
    events = list(events)
    if not filters_active(filters):
        return events

    search = (filters.get('search') or '').lower()
    city = filters.get('city')
    genre = filters.get('genre')
    date_from = _as_date(filters.get('date_from'))
    date_to = _as_date(filters.get('date_to'))
    min_price = clean_price(filters.get('min_price'))
    max_price = clean_price(filters.get('max_price'))

    if search:
        events = [e for e in events if search in (e.get('event_name') or '').lower()]
    if city and city != ALL_CITIES:
        events = [e for e in events if str(e.get('location')) == str(city)]
    if genre and genre != ALL_GENRES:
        events = [e for e in events if e.get('category') == genre]
    if date_from or date_to:
        dated = []
        for event in events:
            start = _as_datetime(event.get('start_datetime'))
            if start is None:
                continue
            start_day = timezone.localtime(start).date()
            if date_from and start_day < date_from:
                continue
            if date_to and start_day > date_to:
                continue
            dated.append(event)
        events = dated

    priced = []
    for event in events:
        price = lowest_price(event)
        if price is None:
            continue
        if min_price is not None and price < min_price:
            continue
        if max_price is not None and price > max_price:
            continue
        priced.append(event)
    return priced


# --- Availability and checkout ---

def remaining(entry):
    return (entry.get('maximun_capacity') or 0) - (entry.get('capacity_sold') or 0)


def first_available_ticket(availability):
    return next((t for t in availability or [] if remaining(t) > 0), None)


def find_ticket(availability, ticket_id):
    return next((t for t in availability or [] if str(t.get('id')) == str(ticket_id)), None)


def purchase_state(event, selected):
    """Label for the buy button and whether it is disabled."""
    status = event.get('status')
    if status == 'programado':
        return 'Sales open soon', True
    if status == 'cancelado':
        return 'Event cancelled', True
    if status == 'finalizado':
        return 'Event finished', True
    if not selected:
        return 'Sold out', True
    if remaining(selected) <= 0:
        return 'Ticket type sold out', True
    return 'Get tickets', False


def checkout_totals(ticket, quantity):
    price = clean_price(ticket.get('price')) if ticket else None
    subtotal = (price or Decimal('0')) * quantity if ticket else Decimal('0')
    service_fee = Decimal('0')
    return {'subtotal': subtotal, 'service_fee': service_fee, 'total': subtotal + service_fee}


def _percent(part, whole):
    if not whole:
        return 0
    return part / whole * 100


def event_kpis(availability):
    sold = sum(t.get('capacity_sold') or 0 for t in availability)
    capacity = sum(t.get('maximun_capacity') or 0 for t in availability)
    revenue = sum(
        ((t.get('capacity_sold') or 0) * (clean_price(t.get('price')) or Decimal('0')) for t in availability),
        Decimal('0'),
    )
    return {'sold': sold, 'capacity': capacity, 'revenue': revenue, 'progress': _percent(sold, capacity)}


def sales_progress(event, availability):
    sold = sum(t.get('capacity_sold') or 0 for t in availability)
    return {'sold': sold, 'progress': _percent(sold, event.get('max_capacity') or 0)}


def ticket_type_name(entry):
    ticket_type = entry.get('ticket_type')
    if isinstance(ticket_type, dict):
        return ticket_type.get('name') or ticket_type.get('ticket_name') or ''
    return ticket_type or ''


def capacity_chart(availability):
    return {
        'categories': [ticket_type_name(t) for t in availability],
        'sold': [t.get('capacity_sold') or 0 for t in availability],
        'available': [remaining(t) for t in availability],
    }


# --- Attendees ---

def search_attendees(attendees, term):
    if not term:
        return list(attendees)
    term = term.lower()

    def matches(attendee):
        user = attendee.get('user') or {}
        fields = (user.get('first_name'), user.get('last_name'), user.get('email'), attendee.get('unique_code'))
        return any(term in (value or '').lower() for value in fields)

    return [a for a in attendees if matches(a)]


def format_short_date(value):
    moment = _as_datetime(value)
    if moment is None:
        return ''
    return timezone.localtime(moment).strftime('%d/%m/%Y')


def attendees_csv(attendees):
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(['Name', 'Email', 'Ticket type', 'Status', 'Code', 'Purchase date'])
    for attendee in attendees:
        user = attendee.get('user') or {}
        writer.writerow([
            f"{user.get('first_name', '')} {user.get('last_name', '')}".strip(),
            user.get('email', ''),
            ticket_type_name(attendee),
            attendee.get('status', ''),
            attendee.get('unique_code', ''),
            format_short_date(attendee.get('date_of_purchase')),
        ])
    return buffer.getvalue()


def attendees_filename(event):
    name = (event or {}).get('event_name') or 'event'
    return f"attendees_{name.replace(' ', '_')}.csv"


# --- Users, tickets, ticket types ---

def filter_users(users, search='', role=ALL_ROLES):
    search = (search or '').lower()
    result = []
    for user in users:
        full_name = f"{user.get('first_name', '')} {user.get('last_name', '')}".lower()
        if search and search not in full_name and search not in (user.get('email') or '').lower():
            continue
        if role and role != ALL_ROLES and role not in (user.get('role') or []):
            continue
        result.append(user)
    return result


def primary_role(user):
    roles = (user or {}).get('role') or []
    return roles[0] if roles else PARTICIPANT


def filter_tickets(tickets, status='', search=''):
    tickets = list(tickets)
    if status:
        tickets = [t for t in tickets if t.get('estado') == status]
    if search:
        search = search.lower()
        tickets = [t for t in tickets if search in (t.get('nombre') or '').lower()]
    return tickets


def filter_ticket_types(ticket_types, search=''):
    search = (search or '').lower()
    return [t for t in ticket_types if search in (t.get('ticket_name') or '').lower()]


# --- Ticket configuration for event forms ---

def configured_capacity(tickets):
    return sum(int(t.get('maximun_capacity') or 0) for t in tickets)


def remaining_capacity(max_capacity, tickets):
    return (max_capacity or 0) - configured_capacity(tickets)


def dump_ticket_config(tickets):
    return json.dumps(tickets)


def normalize_ticket_config(event):
    """Read-side ticket entries ({ticket_type: {id}, ...}) to the shape the write API expects."""
    normalized = []
    for entry in (event or {}).get('ticket_type') or []:
        ticket_type = entry.get('ticket_type')
        ticket_type_id = ticket_type.get('id') if isinstance(ticket_type, dict) else ticket_type
        normalized.append({
            'ticket_type_id': ticket_type_id,
            'price': float(clean_price(entry.get('price')) or 0),
            'maximun_capacity': entry.get('maximun_capacity'),
        })
    return normalized


# --- Presentation ---

def format_cop(amount):
    amount = clean_price(amount) or Decimal('0')
    decimal_pos = 0 if amount == amount.to_integral_value() else 2
    return numberformat.format(
        amount, decimal_sep=',', decimal_pos=decimal_pos, grouping=3, thousand_sep='.', force_grouping=True,
    )


def format_price(price):
    if price is None:
        return ''
    if clean_price(price) == 0:
        return 'Free'
    return f'From ${format_cop(price)}'


def format_card_date(value):
    moment = _as_datetime(value)
    if moment is None:
        return ''
    moment = timezone.localtime(moment)
    return f"{moment.strftime('%a').upper()}, {moment.day} {moment.strftime('%b').upper()}"


def location_labels(event):
    details = event.get('location_details')
    if event.get('country') == 'Colombia' and details:
        department = details.get('department') or {}
        return details.get('name') or '', department.get('name') or ''
    return event.get('city_text') or 'Location to be confirmed', event.get('department_text') or ''


def event_image(event):
    image = (event.get('image') or '').strip()
    if image:
        return image
    category = (event.get('category') or '').lower()
    if category in CATEGORY_IMAGES:
        return static(CATEGORY_IMAGES[category])
    return None


def status_label(status):
    if not status:
        return 'N/A'
    return status[:1].upper() + status[1:]


def event_card(event):
    """Everything a catalog card shows, derived once per event."""
    city, region = location_labels(event)
    return {
        'event': event,
        'image': event_image(event),
        'date_label': format_card_date(event.get('start_datetime')),
        'price_label': format_price(lowest_price(event)),
        'city': city,
        'region': region,
        'status_label': status_label(event.get('status')),
    }
