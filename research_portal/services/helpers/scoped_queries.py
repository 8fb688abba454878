"""
Role-scoped proposal queries.

Every proposal listing in the portal MUST be built through
``scoped_proposal_select`` so the caller only ever receives rows their
role is entitled to see. This is the authoritative visibility rule; the
presentation guard (middleware/rbac_guard.py) does not replace it.

Visibility by role:
  EMPLOYEE, PROJECT_HEAD,
  SUPERVISOR, EXTERNAL_OWNER  → proposals they submitted
  BKMD                        → SUBMITTED / BKMD_REVIEW, plus any they reviewed
  DIRECTOR                    → DIRECTOR_REVIEW / _APPROVED / _REJECTED,
                                plus any they reviewed
  ADMIN, SYS_ADMIN            → everything

Usage:
    stmt = scoped_proposal_select(user, status="SUBMITTED")
    proposals = db.session.execute(stmt).scalars().all()
"""

import logging

from sqlalchemy import false, or_, select

from research_portal.core.exceptions import ValidationError
from research_portal.models.auth import UserRole
from research_portal.models.proposal import Proposal, ProposalStatus

logger = logging.getLogger(__name__)

_BKMD_QUEUE = (ProposalStatus.SUBMITTED, ProposalStatus.BKMD_REVIEW)
_DIRECTOR_QUEUE = (
    ProposalStatus.DIRECTOR_REVIEW,
    ProposalStatus.DIRECTOR_APPROVED,
    ProposalStatus.DIRECTOR_REJECTED,
)


def role_visibility_clause(user):
    """SQL predicate restricting proposals to what *user* may see (None = unrestricted)."""
    role = user.role
    if role in (UserRole.ADMIN, UserRole.SYS_ADMIN):
        return None
    if role == UserRole.BKMD:
        return or_(
            Proposal.status.in_(_BKMD_QUEUE),
            Proposal.bkmd_reviewer_id == user.id,
        )
    if role == UserRole.DIRECTOR:
        return or_(
            Proposal.status.in_(_DIRECTOR_QUEUE),
            Proposal.director_reviewer_id == user.id,
        )
    if role in (
        UserRole.EMPLOYEE,
        UserRole.PROJECT_HEAD,
        UserRole.SUPERVISOR,
        UserRole.EXTERNAL_OWNER,
    ):
        return Proposal.submitted_by_id == user.id

    logger.warning("No proposal visibility rule for role=%s user=%s", role, user.id)
    return false()


def scoped_proposal_select(user, *, status=None, category=None):
    """Build the role-filtered SELECT for proposal listings.

    Args:
        user: Authenticated caller.
        status: Optional ProposalStatus name to narrow the result.
        category: Optional category code to narrow the result.

    Raises:
        ValidationError: If *status* is not a known ProposalStatus.
    """
    stmt = select(Proposal)

    clause = role_visibility_clause(user)
    if clause is not None:
        stmt = stmt.where(clause)

    if status:
        try:
            stmt = stmt.where(Proposal.status == ProposalStatus(str(status).upper()))
        except ValueError:
            raise ValidationError(f"Unknown proposal status: {status}")
    if category:
        stmt = stmt.where(Proposal.category == str(category).upper())

    return stmt.order_by(Proposal.created_at.desc())
