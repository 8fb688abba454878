"""
Reference data: thrust-area verticals, special areas and RC meetings.

``seed_reference_data`` is idempotent (rows are matched on their natural
key) and backs the ``flask seed-reference-data`` CLI command. RC meetings are
scheduled through ``create_rc_meeting`` by roles holding ``create`` on
rc-meetings; an RC review can only reference a meeting that exists.
"""

import logging

from flask import current_app
from sqlalchemy import func, select

from research_portal.core.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from research_portal.models import db
from research_portal.models.auth import UserRole
from research_portal.models.taxonomy import RCMeeting, SpecialArea, Vertical
from research_portal.services.auth_service import create_user, get_user_by_email
from research_portal.services.rbac import has_permission
from research_portal.utils.helpers import parse_date_input

logger = logging.getLogger(__name__)

DEFAULT_VERTICALS = (
    ("SHMLE", "Structural Health Monitoring & Life Extension",
     "Monitoring structural health and extending service life of structures"),
    ("DM", "Disaster Mitigation",
     "Natural and man-made disaster mitigation strategies and structural resilience"),
    ("AMSS", "Advanced Materials for Sustainable Structure",
     "Research on sustainable construction materials and green building technologies"),
    ("SMFS", "Special and Multi functional Structures",
     "Design and analysis of specialized and multi-functional structural systems"),
    ("EI", "Energy Infrastructure",
     "Structures for energy sector including renewable energy and power transmission"),
    ("OS", "Offshore Structures",
     "Offshore platforms, coastal structures, and marine infrastructure"),
)

DEFAULT_SPECIAL_AREAS = (
    ("Structural Health Monitoring & Life Extension", "Monitoring structural health and extending service life"),
    ("Disaster Mitigation", "Natural and man-made disaster mitigation strategies"),
    ("Advanced Materials for Sustainable Structures", "Research on sustainable construction materials"),
    ("Special and Multi-functional Structures", "Design of specialized structural systems"),
    ("Energy Infrastructure", "Structures for energy sector including renewable energy"),
    ("Offshore Structures", "Offshore platforms and coastal structures"),
)


def list_verticals() -> list[Vertical]:
    return db.session.execute(select(Vertical).order_by(Vertical.code)).scalars().all()


def list_special_areas() -> list[SpecialArea]:
    return db.session.execute(select(SpecialArea).order_by(SpecialArea.name)).scalars().all()


def list_rc_meetings() -> list[RCMeeting]:
    return db.session.execute(
        select(RCMeeting).order_by(RCMeeting.date.desc(), RCMeeting.meeting_number.desc())
    ).scalars().all()


def get_rc_meeting(meeting_id: str) -> RCMeeting:
    meeting = db.session.get(RCMeeting, meeting_id) if meeting_id else None
    if meeting is None:
        raise NotFoundError(resource="RC meeting", resource_id=meeting_id)
    return meeting


def create_rc_meeting(data: dict, user) -> RCMeeting:
    """Schedule a Research Council meeting.

    ``meetingNumber`` defaults to one past the highest existing number.

    Raises:
        ForbiddenError: Caller lacks ``create`` on rc-meetings.
        ValidationError: Missing title/date, bad date or meeting number.
        ConflictError: Meeting number already used.
    """
    if not has_permission(user.role, "rc-meetings", "create"):
        logger.warning("Denied RC meeting create user=%s role=%s", user.id, user.role.value)
        raise ForbiddenError("Not authorized to schedule RC meetings",
                             user_id=user.id, action="create")

    data = data or {}
    errors = {}
    title = str(data.get("title") or "").strip()
    if not title:
        errors["title"] = "required"
    elif len(title) > 200:
        errors["title"] = "must be at most 200 characters"

    meeting_date = None
    try:
        meeting_date = parse_date_input(data.get("date"))
    except ValueError as exc:
        errors["date"] = str(exc)
    else:
        if meeting_date is None:
            errors["date"] = "required"

    number = data.get("meetingNumber")
    if number not in (None, ""):
        try:
            number = int(number)
        except (TypeError, ValueError):
            number = None
            errors["meetingNumber"] = "must be a positive integer"
        else:
            if number < 1:
                errors["meetingNumber"] = "must be a positive integer"
    else:
        number = None

    if errors:
        raise ValidationError("Invalid RC meeting fields", details=errors)

    if number is None:
        highest = db.session.execute(select(func.max(RCMeeting.meeting_number))).scalar()
        number = (highest or 0) + 1
    elif db.session.execute(
        select(RCMeeting.id).where(RCMeeting.meeting_number == number)
    ).first() is not None:
        raise ConflictError("RC meeting", f"RC meeting number {number} already exists")

    meeting = RCMeeting(meeting_number=number, title=title, date=meeting_date)
    db.session.add(meeting)
    db.session.commit()
    logger.info("RC meeting scheduled id=%s number=%s user=%s", meeting.id, number, user.id)
    return meeting


def seed_reference_data() -> dict:
    """Insert missing verticals, special areas and the bootstrap admin.

    Returns:
        Counts of rows created per kind.
    """
    created = {"verticals": 0, "special_areas": 0, "admin": 0}

    existing_codes = set(db.session.execute(select(Vertical.code)).scalars())
    for code, name, description in DEFAULT_VERTICALS:
        if code not in existing_codes:
            db.session.add(Vertical(code=code, name=name, description=description))
            created["verticals"] += 1

    existing_areas = set(db.session.execute(select(SpecialArea.name)).scalars())
    for name, description in DEFAULT_SPECIAL_AREAS:
        if name not in existing_areas:
            db.session.add(SpecialArea(name=name, description=description))
            created["special_areas"] += 1

    email = current_app.config.get("BOOTSTRAP_ADMIN_EMAIL")
    password = current_app.config.get("BOOTSTRAP_ADMIN_PASSWORD")
    if email and password:
        if get_user_by_email(email) is None:
            create_user(
                email=email,
                password=password,
                role=UserRole.ADMIN,
                first_name="System",
                last_name="Administrator",
                designation="System Admin",
                commit=False,
            )
            created["admin"] = 1
    elif email or password:
        logger.warning("BOOTSTRAP_ADMIN_EMAIL and BOOTSTRAP_ADMIN_PASSWORD must both be set; "
                       "skipping admin bootstrap")

    db.session.commit()
    logger.info("Reference data seeded: %s", created)
    return created
