from events.navigation import NAV_ITEMS, build_sidebar, filter_nav_items, has_access, user_roles
from tests.factories import make_user


def visible_names(user):
    return [item['name'] for item in filter_nav_items(NAV_ITEMS, user)]


class TestHasAccess:

    def test_unrestricted_items_are_open_to_everyone(self):
        assert has_access(None, None)
        assert has_access([], make_user())

    def test_restricted_items_need_a_user_with_a_role_list(self):
        assert not has_access(['Administrador'], None)
        assert not has_access(['Administrador'], {'role': 'Administrador'})
        assert not has_access(['Administrador'], {'id': '1'})

    def test_user_roles(self):
        assert user_roles(make_user('Organizador')) == ['Organizador']
        assert user_roles({'role': 'Organizador'}) == []
        assert user_roles(None) == []

    def test_any_shared_role_grants_access(self):
        user = make_user('Participante', 'Staff')
        assert has_access(['Administrador', 'Staff'], user)
        assert not has_access(['Administrador', 'Organizador'], user)


class TestMenuFiltering:

    def test_participant_menu(self):
        assert visible_names(make_user('Participante')) == [
            'Dashboard', 'Events', 'My tickets', 'User profile',
        ]

    def test_staff_menu(self):
        assert visible_names(make_user('Staff')) == [
            'Dashboard', 'Events', 'Ticket types', 'User profile',
        ]

    def test_admin_sees_everything(self):
        assert visible_names(make_user('Administrador')) == [item['name'] for item in NAV_ITEMS]

    def test_item_whose_sub_items_are_all_hidden_is_dropped(self):
        items = [
            {'name': 'Reports', 'sub_items': [{'name': 'Sales', 'url_name': 'dashboard', 'roles': ['Administrador']}]},
            {'name': 'Help', 'url_name': 'dashboard'},
        ]
        assert [i['name'] for i in filter_nav_items(items, make_user('Participante'))] == ['Help']

    def test_filtering_does_not_touch_the_source_items(self):
        items = [{'name': 'Mixed', 'sub_items': [
            {'name': 'Open', 'url_name': 'dashboard'},
            {'name': 'Admin', 'url_name': 'dashboard', 'roles': ['Administrador']},
        ]}]
        filtered = filter_nav_items(items, make_user('Participante'))

        assert [s['name'] for s in filtered[0]['sub_items']] == ['Open']
        assert len(items[0]['sub_items']) == 2


class TestSidebar:

    def test_urls_are_resolved_and_current_entry_is_active(self):
        sidebar = build_sidebar(make_user('Participante'), '/my-tickets/')
        by_name = {item['name']: item for item in sidebar}

        assert by_name['My tickets']['url'] == '/my-tickets/'
        assert by_name['My tickets']['active']
        assert not by_name['Events']['active']

    def test_parent_is_active_when_a_sub_item_is(self):
        sidebar = build_sidebar(make_user('Participante'), '/dashboard/')
        dashboard = sidebar[0]

        assert dashboard['active']
        assert dashboard['sub_items'][0]['url'] == '/dashboard/'
