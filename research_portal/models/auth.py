"""
Auth Models — users and the closed role enumeration.

Every user carries exactly one role. The role is the only input the RBAC
tables (services/rbac.py) and the proposal workflow use for authorization;
there are no per-user permission overrides.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum

from research_portal.models import db


class UserRole(str, Enum):
    ADMIN = "ADMIN"
    SYS_ADMIN = "SYS_ADMIN"
    DIRECTOR = "DIRECTOR"
    SUPERVISOR = "SUPERVISOR"
    BKMD = "BKMD"
    PROJECT_HEAD = "PROJECT_HEAD"
    EMPLOYEE = "EMPLOYEE"
    EXTERNAL_OWNER = "EXTERNAL_OWNER"

    @classmethod
    def parse(cls, value):
        """Coerce a role name (or member) to a UserRole; None if unknown."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).upper())
        except ValueError:
            return None


# Roles that bypass ownership checks on proposals.
ADMIN_ROLES = frozenset({UserRole.ADMIN, UserRole.SYS_ADMIN})


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = db.Column(db.String(200), unique=True, nullable=False)
    password_hash = db.Column(db.String(256))
    first_name = db.Column(db.String(100), nullable=False, default="")
    last_name = db.Column(db.String(100), nullable=False, default="")
    designation = db.Column(db.String(150))
    department = db.Column(db.String(150))
    role = db.Column(
        db.Enum(UserRole, name="user_role", native_enum=False, length=20),
        nullable=False,
        default=UserRole.EMPLOYEE,
    )
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    last_login_at = db.Column(db.DateTime(timezone=True))
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()

    def to_summary(self):
        """Compact reference embedded in proposal/project payloads."""
        return {
            "id": self.id,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "designation": self.designation,
        }

    def to_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "designation": self.designation,
            "department": self.department,
            "role": self.role.value if self.role else None,
            "isActive": self.is_active,
            "lastLoginAt": self.last_login_at.isoformat() if self.last_login_at else None,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<User {self.email} ({self.role.value if self.role else '?'})>"
