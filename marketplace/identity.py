"""
Session gate.

Views never look at cookies directly: ``SessionAuthentication`` resolves
``request.user`` and the helpers here turn that into "username or None".
"""

import logging

from django.contrib.auth import login, logout

from .exceptions import Unauthenticated

logger = logging.getLogger(__name__)


def current_user(request):
    """Return the authenticated user for ``request``, or None."""
    user = getattr(request, 'user', None)
    if user is None or not user.is_authenticated:
        return None
    return user


def current_username(request):
    user = current_user(request)
    return user.username if user is not None else None


def require_user(request):
    """
    Return the authenticated user or raise ``Unauthenticated``.
    """
    user = current_user(request)
    if user is None:
        raise Unauthenticated()
    return user


def start_session(request, user):
    """Bind ``user`` to a fresh session; the session key is rotated by ``login``."""
    # DRF wraps the Django request; login() needs the underlying HttpRequest
    login(getattr(request, '_request', request), user)
    logger.info(f"Session started for user: {user.username}")


def end_session(request):
    """Flush the session. Safe to call without one."""
    username = current_username(request)
    logout(getattr(request, '_request', request))
    if username:
        logger.info(f"Session ended for user: {username}")
