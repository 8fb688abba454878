"""
JWT Auth Middleware — parses the bearer token and loads the caller.

Sets on ``flask.g`` for every /api/ and page request:
  g.current_user  → User or None
  g.jwt_user_id   → token subject or None
  g.jwt_error     → reason the token was rejected, if one was presented

Endpoints that need an authenticated caller use
``middleware.auth_required.login_required``; this hook never blocks a
request by itself.
"""

import logging

import jwt as pyjwt
from flask import g, request

from research_portal.models import db
from research_portal.models.auth import User
from research_portal.services.jwt_service import decode_access_token

logger = logging.getLogger(__name__)

# Paths that skip JWT parsing entirely
JWT_SKIP_PREFIXES = (
    "/api/v1/auth/login",
    "/api/v1/health",
    "/static/",
)


def init_jwt_middleware(app):
    """Register JWT middleware as a before_request hook."""

    @app.before_request
    def _jwt_auth():
        g.current_user = None
        g.jwt_user_id = None
        g.jwt_error = None

        path = request.path
        for prefix in JWT_SKIP_PREFIXES:
            if path.startswith(prefix):
                return

        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            return

        token = auth_header[7:]

        try:
            payload = decode_access_token(token)
        except pyjwt.ExpiredSignatureError:
            g.jwt_error = "Token expired"
            return
        except pyjwt.InvalidTokenError:
            g.jwt_error = "Invalid token"
            return

        user_id = payload.get("sub")
        user = db.session.get(User, user_id) if user_id else None
        if user is None or not user.is_active:
            g.jwt_error = "User not found or inactive"
            logger.warning("Rejected token for unknown/inactive user sub=%s", user_id)
            return

        g.jwt_user_id = user.id
        g.current_user = user
