"""
RBAC Authorization Layer — static permission matrix and page-access list.

Two immutable tables keyed by role:

  ROLE_PERMISSIONS   role → resource → frozenset of actions
  PAGE_ACCESS        role → frozenset of accessible resources

``manage`` does not imply any other action; every action is listed
explicitly per resource per role. The tables are built once at import and
exposed read-only, so they can be evaluated redundantly by the API and by
clients (via GET /api/v1/auth/me) with the same result.

This layer is a lookup only. Proposal visibility and workflow authorization
are enforced separately in services/helpers/scoped_queries.py and
services/proposal_workflow.py; the presentation guard built on top of this
module (middleware/rbac_guard.py) is advisory.

Usage:
    from research_portal.services.rbac import has_permission, can_access_page

    if can_access_page("DIRECTOR", "users") and has_permission("DIRECTOR", "users", "read"):
        ...
"""

from enum import Enum
from types import MappingProxyType

from research_portal.models.auth import ADMIN_ROLES, UserRole


class Resource(str, Enum):
    DASHBOARD = "dashboard"
    DG_DASHBOARD = "dg-dashboard"
    PROJECTS = "projects"
    FINANCE = "finance"
    STAFF = "staff"
    RC_MEETINGS = "rc-meetings"
    DOCUMENTS = "documents"
    REPORTS = "reports"
    TIMELINE = "timeline"
    SETTINGS = "settings"
    USERS = "users"
    PROFILE = "profile"
    BULK_IMPORT = "bulk-import"
    ARCHIVE = "archive"


class Action(str, Enum):
    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    MANAGE = "manage"


_CRUD_MANAGE = ("read", "create", "update", "delete", "manage")

_ADMIN_PERMISSIONS = {
    "dashboard": ("read", "manage"),
    "dg-dashboard": ("read", "manage"),
    "projects": _CRUD_MANAGE,
    "finance": _CRUD_MANAGE,
    "staff": _CRUD_MANAGE,
    "rc-meetings": _CRUD_MANAGE,
    "documents": _CRUD_MANAGE,
    "reports": _CRUD_MANAGE,
    "timeline": ("read", "manage"),
    "settings": ("read", "update", "manage"),
    "users": _CRUD_MANAGE,
    "profile": ("read", "update"),
    "bulk-import": ("read", "create", "manage"),
    "archive": ("read", "manage"),
}

_SUPERVISOR_PERMISSIONS = {
    "dashboard": ("read",),
    "projects": ("read", "create", "update"),
    "finance": ("read", "create"),
    "staff": ("read",),
    "rc-meetings": ("read",),
    "documents": ("read", "create", "update"),
    "reports": ("read", "create"),
    "timeline": ("read",),
    "settings": ("read",),
    "profile": ("read", "update"),
    "archive": ("read",),
}

_RAW_PERMISSIONS = {
    UserRole.ADMIN: _ADMIN_PERMISSIONS,
    UserRole.SYS_ADMIN: _ADMIN_PERMISSIONS,
    UserRole.DIRECTOR: {
        "dashboard": ("read",),
        "dg-dashboard": ("read", "manage"),
        "projects": ("read", "create", "update", "manage"),
        "finance": ("read", "create", "update", "manage"),
        "staff": ("read", "manage"),
        "rc-meetings": ("read", "create", "update", "manage"),
        "documents": ("read", "create", "update"),
        "reports": ("read", "create", "manage"),
        "timeline": ("read",),
        "settings": ("read",),
        "users": ("read",),
        "profile": ("read", "update"),
        "bulk-import": ("read",),
        "archive": ("read",),
    },
    UserRole.SUPERVISOR: _SUPERVISOR_PERMISSIONS,
    UserRole.BKMD: _SUPERVISOR_PERMISSIONS,
    UserRole.PROJECT_HEAD: {
        "dashboard": ("read",),
        "projects": ("read", "update"),
        "finance": ("read", "create"),
        "staff": ("read",),
        "rc-meetings": ("read",),
        "documents": ("read", "create", "update"),
        "reports": ("read", "create"),
        "timeline": ("read",),
        "profile": ("read", "update"),
    },
    UserRole.EMPLOYEE: {
        "dashboard": ("read",),
        "projects": ("read",),
        "finance": ("read",),
        "documents": ("read", "create"),
        "timeline": ("read",),
        "profile": ("read", "update"),
    },
    UserRole.EXTERNAL_OWNER: {
        "dashboard": ("read",),
        "projects": ("read",),
        "finance": ("read",),
        "documents": ("read",),
        "reports": ("read",),
        "timeline": ("read",),
        "profile": ("read", "update"),
    },
}

_ALL_PAGES = tuple(r.value for r in Resource)

_SUPERVISOR_PAGES = (
    "dashboard", "projects", "finance", "staff", "rc-meetings",
    "documents", "reports", "timeline", "settings", "profile", "archive",
)

_RAW_PAGES = {
    UserRole.ADMIN: _ALL_PAGES,
    UserRole.SYS_ADMIN: _ALL_PAGES,
    UserRole.DIRECTOR: _ALL_PAGES,
    UserRole.SUPERVISOR: _SUPERVISOR_PAGES,
    UserRole.BKMD: _SUPERVISOR_PAGES,
    UserRole.PROJECT_HEAD: (
        "dashboard", "projects", "finance", "staff", "rc-meetings",
        "documents", "reports", "timeline", "profile",
    ),
    UserRole.EMPLOYEE: (
        "dashboard", "projects", "finance", "documents", "timeline", "profile",
    ),
    UserRole.EXTERNAL_OWNER: (
        "dashboard", "projects", "finance", "documents", "reports", "timeline", "profile",
    ),
}


def _freeze_permissions(raw):
    frozen = {}
    for role, resources in raw.items():
        per_role = {}
        for resource, actions in resources.items():
            per_role[Resource(resource)] = frozenset(Action(a) for a in actions)
        frozen[role] = MappingProxyType(per_role)
    return MappingProxyType(frozen)


def _freeze_pages(raw):
    return MappingProxyType({
        role: frozenset(Resource(page) for page in pages)
        for role, pages in raw.items()
    })


ROLE_PERMISSIONS = _freeze_permissions(_RAW_PERMISSIONS)
PAGE_ACCESS = _freeze_pages(_RAW_PAGES)

_missing = [r.value for r in UserRole if r not in ROLE_PERMISSIONS or r not in PAGE_ACCESS]
if _missing:
    raise RuntimeError(f"RBAC tables have no entry for role(s): {', '.join(_missing)}")


# ── Coercion ─────────────────────────────────────────────────────────────────

def _coerce(enum_cls, value):
    if isinstance(value, enum_cls):
        return value
    if value is None:
        return None
    try:
        return enum_cls(value)
    except ValueError:
        return None


def _role(value):
    return UserRole.parse(value) if value is not None else None


# ── Public contract ──────────────────────────────────────────────────────────

def has_permission(role, resource, action) -> bool:
    """True only if *action* is listed for *resource* under *role*."""
    role = _role(role)
    resource = _coerce(Resource, resource)
    action = _coerce(Action, action)
    if role is None or resource is None or action is None:
        return False
    permissions = ROLE_PERMISSIONS.get(role)
    if not permissions:
        return False
    allowed = permissions.get(resource)
    if not allowed:
        return False
    return action in allowed


def can_access_page(role, resource) -> bool:
    """True only if *resource* is in the page list of *role*."""
    role = _role(role)
    resource = _coerce(Resource, resource)
    if role is None or resource is None:
        return False
    return resource in PAGE_ACCESS.get(role, frozenset())


def has_role(role, candidate_roles) -> bool:
    """Membership test of *role* in *candidate_roles* (names or members)."""
    role = _role(role)
    if role is None:
        return False
    candidates = {_role(c) for c in candidate_roles}
    return role in candidates


def is_admin(role) -> bool:
    return _role(role) in ADMIN_ROLES


def check_view_access(role, resource, action="read") -> bool:
    """Composite guard for a protected view: page access AND action permission."""
    return can_access_page(role, resource) and has_permission(role, resource, action)


def get_permissions(role) -> dict[str, list[str]]:
    """Serialisable copy of the permission entry for *role* ({} if unknown)."""
    role = _role(role)
    if role is None:
        return {}
    return {
        resource.value: sorted(a.value for a in actions)
        for resource, actions in ROLE_PERMISSIONS.get(role, {}).items()
    }


def get_accessible_pages(role) -> list[str]:
    """Pages *role* may open, in the canonical Resource order."""
    role = _role(role)
    if role is None:
        return []
    pages = PAGE_ACCESS.get(role, frozenset())
    return [r.value for r in Resource if r in pages]
