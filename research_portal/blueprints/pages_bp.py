"""
Served pages behind the RBAC presentation guard.

  GET /app/<page>       — page shell for one RBAC resource
  GET /app/proposals    — proposal workspace (any authenticated user)
  GET /access-denied    — fixed target of guard redirects

Pages answer with a small JSON descriptor (page name, caller summary and
the caller's permissions on that resource); rendering is left to the client.
Every page goes through ``rbac_guard`` (page access and ``read`` on the
resource). dg-dashboard, users and bulk-import also carry a role list, which
narrows that guard and never widens it.
"""

import logging

from flask import Blueprint, jsonify

from research_portal.middleware.auth_required import current_user, login_required
from research_portal.middleware.rbac_guard import rbac_guard
from research_portal.services.rbac import Resource, get_accessible_pages, get_permissions
from research_portal.utils.errors import E, api_error, register_api_error_handlers

logger = logging.getLogger(__name__)

pages_bp = Blueprint("pages", __name__)

register_api_error_handlers(pages_bp)

ROLE_GUARDED_PAGES = {
    Resource.DG_DASHBOARD: ("ADMIN", "SYS_ADMIN", "DIRECTOR"),
    Resource.USERS: ("ADMIN", "SYS_ADMIN", "DIRECTOR"),
    Resource.BULK_IMPORT: ("ADMIN", "SYS_ADMIN", "DIRECTOR", "SUPERVISOR", "BKMD"),
}


def _page_payload(page: str) -> dict:
    user = current_user()
    return {
        "page": page,
        "user": user.to_summary(),
        "role": user.role.value,
        "permissions": get_permissions(user.role).get(page, []),
    }


def _make_page_view(resource: Resource):
    def view():
        return jsonify(_page_payload(resource.value))

    view.__name__ = f"page_{resource.name.lower()}"
    return rbac_guard(resource.value, roles=ROLE_GUARDED_PAGES.get(resource))(view)


for _resource in Resource:
    pages_bp.add_url_rule(
        f"/app/{_resource.value}",
        endpoint=f"page_{_resource.name.lower()}",
        view_func=_make_page_view(_resource),
    )


@pages_bp.route("/app/proposals")
@login_required
def proposals_page():
    return jsonify({
        "page": "proposals",
        "user": current_user().to_summary(),
        "role": current_user().role.value,
    })


@pages_bp.route("/access-denied")
def access_denied():
    user = current_user()
    details = None
    if user is not None:
        details = {
            "role": user.role.value,
            "pages": get_accessible_pages(user.role),
        }
    return api_error(
        E.FORBIDDEN,
        "You don't have permission to access this page.",
        details=details,
    )
