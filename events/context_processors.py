from .navigation import build_sidebar


def auth(request):
    session = getattr(request, 'auth', None)
    if session is None:
        return {'auth_user': None, 'is_authenticated': False, 'is_superuser': False}
    return {
        'auth_user': session.user,
        'is_authenticated': session.is_authenticated,
        'is_superuser': session.is_superuser,
    }


def sidebar(request):
    session = getattr(request, 'auth', None)
    if session is None or not session.is_authenticated:
        return {'sidebar': []}
    return {'sidebar': build_sidebar(session.user, request.path)}
