"""
RBAC presentation guard — decorators for served page views.

    @pages_bp.route("/app/users")
    @rbac_guard("users", action="read")
    def users_page():
        ...

    @pages_bp.route("/app/bulk-import")
    @role_guard("ADMIN", "SYS_ADMIN")
    def bulk_import_page():
        ...

A denied request renders ``fallback`` when one is given (a response or a
zero-argument callable returning one), otherwise it is redirected (302) to
the fixed access-denied page.

These guards only decide what a client is shown. They never replace the
server-side checks in services/proposal_workflow.py and
services/helpers/scoped_queries.py.
"""

import functools
import logging

from flask import redirect, url_for

from research_portal.middleware.auth_required import current_user
from research_portal.services.rbac import can_access_page, check_view_access, has_role

logger = logging.getLogger(__name__)

ACCESS_DENIED_ENDPOINT = "pages.access_denied"


def _deny(view_name, reason, fallback):
    user = current_user()
    logger.info(
        "Page denied view=%s user=%s role=%s reason=%s",
        view_name,
        user.id if user else None,
        user.role.value if user else None,
        reason,
    )
    if fallback is not None:
        return fallback() if callable(fallback) else fallback
    return redirect(url_for(ACCESS_DENIED_ENDPOINT))


def _guard(check, reason, fallback):
    def decorator(f):
        @functools.wraps(f)
        def decorated(*args, **kwargs):
            user = current_user()
            if user is None or not check(user.role):
                return _deny(f.__name__, reason, fallback)
            return f(*args, **kwargs)
        return decorated
    return decorator


def rbac_guard(resource, action="read", roles=None, fallback=None):
    """
    Allow the view only if the caller's role can open *resource*, holds
    *action* on it and, when *roles* is given, is one of *roles*.
    """
    def check(role):
        if not check_view_access(role, resource, action):
            return False
        return roles is None or has_role(role, roles)

    return _guard(check, f"{resource}:{action}", fallback)


def page_guard(page, fallback=None):
    """Allow the view if the caller's role has *page* in its page list."""
    return _guard(lambda role: can_access_page(role, page), f"page:{page}", fallback)


def role_guard(*roles, fallback=None):
    """Allow the view only for the listed roles."""
    return _guard(lambda role: has_role(role, roles), f"roles:{','.join(map(str, roles))}", fallback)
