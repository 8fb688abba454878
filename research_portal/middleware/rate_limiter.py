"""
Rate limiting configuration.

The Limiter instance is created in research_portal/__init__.py with no
default limits; this module applies per-blueprint limits.

Usage:
    from research_portal.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

from flask import g, request as flask_request

logger = logging.getLogger(__name__)

LOGIN_LIMIT = "10/minute"
WRITE_LIMIT = "60/minute"
READ_LIMIT = "200/minute"


def rate_limit_key():
    """Authenticated user id if known, else remote IP."""
    user = getattr(g, "current_user", None)
    if user is not None:
        return f"user:{user.id}"
    return flask_request.remote_addr or "unknown"


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits:
        - Login:            10/minute per IP (applied on the route itself)
        - Proposal API:     60/minute
        - Reference data:   200/minute

    Rate limiting is disabled in testing mode.
    """
    if app.config.get("TESTING") or not app.config.get("RATELIMIT_ENABLED", True):
        app.logger.info("Rate limiter disabled")
        return

    bp = app.blueprints.get("proposals")
    if bp:
        limiter.limit(WRITE_LIMIT, key_func=rate_limit_key)(bp)

    for bp_name in ("taxonomy", "pages"):
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit(READ_LIMIT, key_func=rate_limit_key)(bp)

    app.logger.info(
        "Rate limiter configured — login: %s, proposals: %s, read: %s",
        LOGIN_LIMIT, WRITE_LIMIT, READ_LIMIT,
    )
