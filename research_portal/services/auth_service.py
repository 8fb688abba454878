"""User lookup, creation and password authentication."""

import logging
from datetime import datetime, timezone

from email_validator import EmailNotValidError, validate_email
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from research_portal.core.exceptions import (
    AuthenticationError,
    ConflictError,
    ForbiddenError,
    ValidationError,
)
from research_portal.models import db
from research_portal.models.auth import User, UserRole
from research_portal.utils.crypto import hash_password, verify_password

logger = logging.getLogger(__name__)


def normalize_email(email) -> str:
    return str(email or "").strip().lower()


def get_user_by_email(email: str) -> User | None:
    return db.session.execute(
        select(User).where(func.lower(User.email) == normalize_email(email))
    ).scalar_one_or_none()


def create_user(
    *,
    email: str,
    password: str | None,
    role,
    first_name: str = "",
    last_name: str = "",
    designation: str | None = None,
    department: str | None = None,
    commit: bool = True,
) -> User:
    """Create a user with a bcrypt password hash.

    Raises:
        ValidationError: Empty email or unknown role.
        ConflictError: Email already registered.
    """
    email = normalize_email(email)
    if not email:
        raise ValidationError("email is required", details={"email": "required"})
    try:
        email = validate_email(email, check_deliverability=False).normalized.lower()
    except EmailNotValidError as e:
        raise ValidationError(f"Invalid email: {e}", details={"email": "invalid"})
    parsed_role = UserRole.parse(role)
    if parsed_role is None:
        raise ValidationError(f"Unknown role: {role}", details={"role": "unknown role"})

    user = User(
        email=email,
        password_hash=hash_password(password) if password else None,
        role=parsed_role,
        first_name=first_name,
        last_name=last_name,
        designation=designation,
        department=department,
    )
    db.session.add(user)
    try:
        db.session.flush()
    except IntegrityError as exc:
        db.session.rollback()
        raise ConflictError("User", f"User {email} already exists") from exc
    if commit:
        db.session.commit()
    logger.info("User created email=%s role=%s", email, parsed_role.value)
    return user


def authenticate_user(email: str, password: str) -> User:
    """Authenticate with email + password. Returns the User on success.

    Raises:
        ValidationError: Email or password missing.
        AuthenticationError: Unknown email or wrong password.
        ForbiddenError: Account deactivated.
    """
    if not normalize_email(email) or not password:
        raise ValidationError("Email and password are required")

    user = get_user_by_email(email)
    if user is None or not verify_password(password, user.password_hash):
        logger.warning("Failed login for email=%s", normalize_email(email))
        raise AuthenticationError("Invalid email or password")

    if not user.is_active:
        raise ForbiddenError("Account is inactive", user_id=user.id, action="login")

    user.last_login_at = datetime.now(timezone.utc)
    db.session.commit()
    return user
