"""
Authentication decorators for API routes.

Usage:
    @proposal_bp.route("/proposals", methods=["GET"])
    @login_required
    def list_proposals():
        user = current_user()
        ...

Role and ownership rules are NOT checked here: the workflow service
decides those after loading the proposal, so a missing proposal is always
reported as 404 before any 403.
"""

import functools

from flask import g

from research_portal.core.exceptions import AuthenticationError


def current_user():
    """The authenticated User for this request, or None."""
    return getattr(g, "current_user", None)


def login_required(f):
    """Reject the request with 401 unless a valid bearer token was presented."""

    @functools.wraps(f)
    def decorated(*args, **kwargs):
        if current_user() is None:
            raise AuthenticationError(getattr(g, "jwt_error", None) or "Authentication required")
        return f(*args, **kwargs)

    return decorated
