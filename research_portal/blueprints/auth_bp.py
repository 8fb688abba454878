"""
Auth Blueprint — JWT authentication endpoints.

  POST /api/v1/auth/login   — Email + password → access token
  GET  /api/v1/auth/me      — Current user with RBAC permissions and pages
"""

from flask import Blueprint, jsonify, request

from research_portal import limiter
from research_portal.middleware.auth_required import current_user, login_required
from research_portal.middleware.rate_limiter import LOGIN_LIMIT
from research_portal.services.auth_service import authenticate_user
from research_portal.services.jwt_service import token_response
from research_portal.services.rbac import get_accessible_pages, get_permissions
from research_portal.utils.errors import register_api_error_handlers

auth_bp = Blueprint("auth", __name__, url_prefix="/api/v1/auth")

register_api_error_handlers(auth_bp)


def _me_payload(user) -> dict:
    payload = user.to_dict()
    payload["permissions"] = get_permissions(user.role)
    payload["pages"] = get_accessible_pages(user.role)
    return payload


# ═══════════════════════════════════════════════════════════════
# POST /api/v1/auth/login
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/login", methods=["POST"])
@limiter.limit(LOGIN_LIMIT)
def login():
    """
    Authenticate with email + password, return an access token.

    Body: { "email": "...", "password": "..." }
    """
    data = request.get_json(silent=True) or {}
    user = authenticate_user(data.get("email", ""), data.get("password", ""))

    body = token_response(user.id, user.role.value)
    body["user"] = _me_payload(user)
    return jsonify(body), 200


# ═══════════════════════════════════════════════════════════════
# GET /api/v1/auth/me
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/me", methods=["GET"])
@login_required
def me():
    return jsonify(_me_payload(current_user()))
