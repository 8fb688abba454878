"""
Reference taxonomy — thrust areas (verticals), special areas and Research
Council meetings.

These rows are looked up by the proposal workflow, never created by it.
They are loaded by ``flask seed-reference-data`` (see services/taxonomy_service.py).
"""

import uuid
from datetime import datetime, timezone

from research_portal.models import db


def _uuid():
    return str(uuid.uuid4())


class Vertical(db.Model):
    """Top-level research thrust area. ``code`` feeds project-code generation."""

    __tablename__ = "verticals"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    code = db.Column(db.String(20), unique=True, nullable=False)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "description": self.description,
        }


class SpecialArea(db.Model):
    __tablename__ = "special_areas"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    name = db.Column(db.String(200), unique=True, nullable=False)
    description = db.Column(db.Text)

    def to_dict(self):
        return {"id": self.id, "name": self.name, "description": self.description}


class RCMeeting(db.Model):
    """Research Council meeting a proposal decision can be attached to."""

    __tablename__ = "rc_meetings"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    meeting_number = db.Column(db.Integer)
    title = db.Column(db.String(200), nullable=False)
    date = db.Column(db.Date)

    def to_dict(self):
        return {
            "id": self.id,
            "meetingNumber": self.meeting_number,
            "title": self.title,
            "date": self.date.isoformat() if self.date else None,
        }
