"""Project domain model — created only by converting an RC-approved proposal."""

import uuid
from datetime import datetime, timezone

from research_portal.models import db

PROJECT_STATUSES = {"ACTIVE", "ON_HOLD", "COMPLETED", "TERMINATED"}


class Project(db.Model):
    """Tracked research project. ``code`` is globally unique and never reissued."""

    __tablename__ = "projects"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    code = db.Column(db.String(50), unique=True, nullable=False)
    title = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text)
    category = db.Column(db.String(10), nullable=False)
    vertical_id = db.Column(db.String(36), db.ForeignKey("verticals.id"), nullable=True)
    special_area_id = db.Column(
        db.String(36), db.ForeignKey("special_areas.id", ondelete="SET NULL"), nullable=True,
    )
    project_head_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False)
    objectives = db.Column(db.Text)
    methodology = db.Column(db.Text)
    expected_outcome = db.Column(db.Text)
    start_date = db.Column(db.Date)
    end_date = db.Column(db.Date)
    sanctioned_budget = db.Column(db.Numeric(14, 2), nullable=True)
    status = db.Column(db.String(20), nullable=False, default="ACTIVE")

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

    vertical = db.relationship("Vertical")
    project_head = db.relationship("User")

    def to_dict(self):
        return {
            "id": self.id,
            "code": self.code,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "verticalId": self.vertical_id,
            "specialAreaId": self.special_area_id,
            "projectHeadId": self.project_head_id,
            "projectHead": self.project_head.to_summary() if self.project_head else None,
            "objectives": self.objectives,
            "methodology": self.methodology,
            "expectedOutcome": self.expected_outcome,
            "startDate": self.start_date.isoformat() if self.start_date else None,
            "endDate": self.end_date.isoformat() if self.end_date else None,
            "sanctionedBudget": (
                float(self.sanctioned_budget) if self.sanctioned_budget is not None else None
            ),
            "status": self.status,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<Project {self.code}>"


class ProjectCodeSequence(db.Model):
    """High-water mark per ``{CATEGORY}-{YEAR}-{VERTICAL}`` code prefix.

    The row is locked for the duration of a conversion so two conversions on
    the same prefix cannot allocate the same number, and it survives project
    deletion so numbers are never handed out twice.
    """

    __tablename__ = "project_code_sequences"

    prefix = db.Column(db.String(40), primary_key=True)
    last_seq = db.Column(db.Integer, nullable=False, default=0)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self):
        return f"<ProjectCodeSequence {self.prefix}={self.last_seq}>"
