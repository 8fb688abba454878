"""
Research Project Portal
Proposal domain model.

Lifecycle:
    DRAFT → SUBMITTED → (BKMD_REVIEW) → DIRECTOR_REVIEW → DIRECTOR_APPROVED
          → (RC_PENDING) → RC_APPROVED → CONVERTED
    Rejection branches: DIRECTOR_REJECTED, RC_REJECTED
    BKMD may return SUBMITTED / BKMD_REVIEW proposals to DRAFT.

The transition table below only encodes state legality (from → to).
Who may fire each action lives in services/proposal_workflow.py.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum

from research_portal.models import db


class ProposalStatus(str, Enum):
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    BKMD_REVIEW = "BKMD_REVIEW"
    DIRECTOR_REVIEW = "DIRECTOR_REVIEW"
    DIRECTOR_APPROVED = "DIRECTOR_APPROVED"
    DIRECTOR_REJECTED = "DIRECTOR_REJECTED"
    RC_PENDING = "RC_PENDING"
    RC_APPROVED = "RC_APPROVED"
    RC_REJECTED = "RC_REJECTED"
    CONVERTED = "CONVERTED"


# ── Constants ────────────────────────────────────────────────────────────────

PROJECT_CATEGORIES = {
    "GAP": "Grant-in-Aid",
    "CNP": "Consultancy",
    "OLP": "Other Lab",
    "EFP": "Externally Funded",
    "BMP": "Bilateral Mission",
    "FBR": "Focus Basic Research",
    "FTC": "Fast Track Commercialisation",
    "FTT": "Fast Track Translation",
    "MMP": "Mission Mode",
    "NCP": "Niche Creating",
    "NMITLI": "NMITLI",
    "MLP": "Multi Lab",
    "SSP": "Sponsored Scheme",
    "STS": "Short Term Service",
}

TERMINAL_STATUSES = frozenset({
    ProposalStatus.DIRECTOR_REJECTED,
    ProposalStatus.RC_REJECTED,
    ProposalStatus.CONVERTED,
})

PENDING_RC_STATUSES = (ProposalStatus.DIRECTOR_APPROVED, ProposalStatus.RC_PENDING)

PROPOSAL_TRANSITIONS = {
    "submit": {
        "from": frozenset({ProposalStatus.DRAFT}),
        "to": ProposalStatus.SUBMITTED,
    },
    "bkmd_forward": {
        "from": frozenset({ProposalStatus.SUBMITTED, ProposalStatus.BKMD_REVIEW}),
        "to": ProposalStatus.DIRECTOR_REVIEW,
    },
    "bkmd_return": {
        "from": frozenset({ProposalStatus.SUBMITTED, ProposalStatus.BKMD_REVIEW}),
        "to": ProposalStatus.DRAFT,
    },
    "director_approve": {
        "from": frozenset({ProposalStatus.DIRECTOR_REVIEW}),
        "to": ProposalStatus.DIRECTOR_APPROVED,
    },
    "director_reject": {
        "from": frozenset({ProposalStatus.DIRECTOR_REVIEW}),
        "to": ProposalStatus.DIRECTOR_REJECTED,
    },
    "rc_approve": {
        "from": frozenset(PENDING_RC_STATUSES),
        "to": ProposalStatus.RC_APPROVED,
    },
    "rc_reject": {
        "from": frozenset(PENDING_RC_STATUSES),
        "to": ProposalStatus.RC_REJECTED,
    },
    "convert": {
        "from": frozenset({ProposalStatus.RC_APPROVED}),
        "to": ProposalStatus.CONVERTED,
    },
}


def _iso(value):
    return value.isoformat() if value else None


class Proposal(db.Model):
    """A project proposal owned by its submitter until conversion."""

    __tablename__ = "proposals"
    __table_args__ = (
        db.Index("ix_proposals_status", "status"),
        db.Index("ix_proposals_submitted_by", "submitted_by_id"),
    )

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    title = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text)
    category = db.Column(db.String(10), nullable=False)
    vertical_id = db.Column(
        db.String(36), db.ForeignKey("verticals.id"), nullable=False,
    )
    special_area_id = db.Column(
        db.String(36), db.ForeignKey("special_areas.id", ondelete="SET NULL"), nullable=True,
    )
    submitted_by_id = db.Column(
        db.String(36), db.ForeignKey("users.id"), nullable=False,
    )
    objectives = db.Column(db.Text)
    methodology = db.Column(db.Text)
    expected_outcome = db.Column(db.Text)
    proposed_start_date = db.Column(db.Date, nullable=False)
    proposed_end_date = db.Column(db.Date, nullable=False)
    estimated_budget = db.Column(db.Numeric(14, 2), nullable=True)

    status = db.Column(
        db.Enum(ProposalStatus, name="proposal_status", native_enum=False, length=20),
        nullable=False,
        default=ProposalStatus.DRAFT,
    )

    # ── BKMD review ──
    bkmd_reviewer_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=True)
    bkmd_reviewed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    bkmd_comments = db.Column(db.Text)

    # ── Director review ──
    director_reviewer_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=True)
    director_reviewed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    director_comments = db.Column(db.Text)

    # ── Research Council ──
    rc_meeting_id = db.Column(
        db.String(36), db.ForeignKey("rc_meetings.id", ondelete="SET NULL"), nullable=True,
    )
    rc_comments = db.Column(db.Text)

    converted_project_id = db.Column(
        db.String(36), db.ForeignKey("projects.id", ondelete="SET NULL"), nullable=True,
    )

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

    vertical = db.relationship("Vertical", lazy="joined")
    special_area = db.relationship("SpecialArea")
    submitted_by = db.relationship("User", foreign_keys=[submitted_by_id])
    bkmd_reviewer = db.relationship("User", foreign_keys=[bkmd_reviewer_id])
    director_reviewer = db.relationship("User", foreign_keys=[director_reviewer_id])
    rc_meeting = db.relationship("RCMeeting")

    @property
    def is_terminal(self):
        return self.status in TERMINAL_STATUSES

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "verticalId": self.vertical_id,
            "vertical": self.vertical.to_dict() if self.vertical else None,
            "specialAreaId": self.special_area_id,
            "specialArea": self.special_area.to_dict() if self.special_area else None,
            "submittedById": self.submitted_by_id,
            "submittedBy": self.submitted_by.to_summary() if self.submitted_by else None,
            "objectives": self.objectives,
            "methodology": self.methodology,
            "expectedOutcome": self.expected_outcome,
            "proposedStartDate": _iso(self.proposed_start_date),
            "proposedEndDate": _iso(self.proposed_end_date),
            "estimatedBudget": (
                float(self.estimated_budget) if self.estimated_budget is not None else None
            ),
            "status": self.status.value if self.status else None,
            "bkmdReviewerId": self.bkmd_reviewer_id,
            "bkmdReviewer": self.bkmd_reviewer.to_summary() if self.bkmd_reviewer else None,
            "bkmdReviewedAt": _iso(self.bkmd_reviewed_at),
            "bkmdComments": self.bkmd_comments,
            "directorReviewerId": self.director_reviewer_id,
            "directorReviewer": (
                self.director_reviewer.to_summary() if self.director_reviewer else None
            ),
            "directorReviewedAt": _iso(self.director_reviewed_at),
            "directorComments": self.director_comments,
            "rcMeetingId": self.rc_meeting_id,
            "rcMeeting": self.rc_meeting.to_dict() if self.rc_meeting else None,
            "rcComments": self.rc_comments,
            "convertedProjectId": self.converted_project_id,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }

    def __repr__(self):
        return f"<Proposal {self.id}: {self.title!r} [{self.status.value if self.status else '?'}]>"
