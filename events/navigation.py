from django.urls import reverse

ADMIN = 'Administrador'
ORGANIZER = 'Organizador'
PARTICIPANT = 'Participante'
STAFF = 'Staff'

ROLE_CHOICES = (
    (ADMIN, 'Admin'),
    (STAFF, 'Staff'),
    (PARTICIPANT, 'Participant'),
    (ORGANIZER, 'Organizer'),
)

# Items without roles are shown to every signed-in user.
NAV_ITEMS = [
    {
        'name': 'Dashboard',
        'icon': 'grid',
        'sub_items': [{'name': 'Overview', 'url_name': 'dashboard'}],
    },
    {'name': 'Events', 'icon': 'list', 'url_name': 'all_events'},
    {'name': 'Create event', 'icon': 'page', 'url_name': 'create_event', 'roles': [ADMIN, ORGANIZER]},
    {'name': 'My events', 'icon': 'list', 'url_name': 'my_events', 'roles': [ADMIN, ORGANIZER]},
    {'name': 'My tickets', 'icon': 'task', 'url_name': 'my_tickets', 'roles': [PARTICIPANT, ORGANIZER, ADMIN]},
    {'name': 'Ticket types', 'icon': 'page', 'url_name': 'ticket_types', 'roles': [ADMIN, STAFF]},
    {'name': 'User profile', 'icon': 'user', 'url_name': 'profile'},
    {'name': 'Admin users', 'icon': 'user', 'url_name': 'user_management', 'roles': [ADMIN]},
]


def user_roles(user):
    if not user or not isinstance(user.get('role'), list):
        return []
    return user['role']


def has_access(item_roles, user):
    """True when the item is unrestricted or the user holds at least one of its roles."""
    if not item_roles:
        return True
    return any(role in item_roles for role in user_roles(user))


def filter_nav_items(items, user):
    """
    Drops the items and sub-items the user may not see. An item that had
    sub-items and lost all of them is dropped as well.
    """
    visible = []
    for item in items:
        if not has_access(item.get('roles'), user):
            continue
        item = dict(item)
        if item.get('sub_items') is not None:
            item['sub_items'] = [sub for sub in item['sub_items'] if has_access(sub.get('roles'), user)]
            if not item['sub_items']:
                continue
        visible.append(item)
    return visible


def build_sidebar(user, current_path):
    """Filtered menu with resolved URLs and the entry matching the current path marked active."""
    sidebar = []
    for item in filter_nav_items(NAV_ITEMS, user):
        if item.get('url_name'):
            item['url'] = reverse(item['url_name'])
            item['active'] = item['url'] == current_path
        if item.get('sub_items'):
            item['sub_items'] = [
                dict(sub, url=reverse(sub['url_name']), active=reverse(sub['url_name']) == current_path)
                for sub in item['sub_items']
            ]
            item['active'] = any(sub['active'] for sub in item['sub_items'])
        sidebar.append(item)
    return sidebar
