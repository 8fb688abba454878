"""
JWT Service — access token generation and verification.

Access token:  8 hours (configurable via JWT_ACCESS_EXPIRES, seconds)
Algorithm:     HS256

Token payload:
{
    "sub": <user_id>,
    "role": "DIRECTOR",
    "type": "access",
    "iat": <issued_at>,
    "exp": <expires_at>,
    "jti": <unique_id>
}

The role in the token is informational; the middleware reloads the user
on every request so a role change takes effect immediately.
"""

import uuid
from datetime import datetime, timedelta, timezone

import jwt
from flask import current_app


DEFAULT_ACCESS_EXPIRES = 28800     # 8 hours
ALGORITHM = "HS256"


def _get_secret():
    """Get the JWT secret key from app config."""
    return current_app.config.get("JWT_SECRET_KEY") or current_app.config["SECRET_KEY"]


def _get_access_expires():
    return current_app.config.get("JWT_ACCESS_EXPIRES", DEFAULT_ACCESS_EXPIRES)


def generate_access_token(user_id: str, role: str) -> str:
    """Generate a signed access token for *user_id*."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "role": role,
        "type": "access",
        "iat": now,
        "exp": now + timedelta(seconds=_get_access_expires()),
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(payload, _get_secret(), algorithm=ALGORITHM)


def token_response(user_id: str, role: str) -> dict:
    """Login response body fragment."""
    return {
        "access_token": generate_access_token(user_id, role),
        "token_type": "Bearer",
        "expires_in": _get_access_expires(),
    }


def decode_access_token(token: str) -> dict:
    """
    Decode and verify an access token.

    Returns the payload dict on success.
    Raises jwt.ExpiredSignatureError / jwt.InvalidTokenError on failure.
    """
    payload = jwt.decode(token, _get_secret(), algorithms=[ALGORITHM])
    if payload.get("type") != "access":
        raise jwt.InvalidTokenError(f"Expected access token, got {payload.get('type')}")
    return payload
