"""Proposal CRUD service: create, edit-while-draft, delete and scoped listing.

Status never changes here; every status move goes through
services/proposal_workflow.py. Edits and deletes still use the same
compare-and-swap on status, so a draft that is submitted concurrently is
never edited or removed behind the submitter's back.
"""

from __future__ import annotations

import logging

from sqlalchemy import delete, select

from research_portal.core.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    ValidationError,
)
from research_portal.models import db
from research_portal.models.audit import write_audit
from research_portal.models.auth import ADMIN_ROLES
from research_portal.models.proposal import (
    PENDING_RC_STATUSES,
    PROJECT_CATEGORIES,
    Proposal,
    ProposalStatus,
)
from research_portal.models.taxonomy import SpecialArea, Vertical
from research_portal.services.helpers.scoped_queries import scoped_proposal_select
from research_portal.services.proposal_workflow import compare_and_set, get_proposal_or_404
from research_portal.utils.helpers import parse_date_input, parse_decimal_input

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("title", "category", "verticalId", "proposedStartDate", "proposedEndDate")

# wire name → column; nothing outside this map is ever written from a payload
EDITABLE_FIELDS = {
    "title": "title",
    "description": "description",
    "category": "category",
    "verticalId": "vertical_id",
    "specialAreaId": "special_area_id",
    "objectives": "objectives",
    "methodology": "methodology",
    "expectedOutcome": "expected_outcome",
    "proposedStartDate": "proposed_start_date",
    "proposedEndDate": "proposed_end_date",
    "estimatedBudget": "estimated_budget",
}

_TEXT_FIELDS = ("description", "objectives", "methodology", "expectedOutcome")


def _is_blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _clean_payload(data: dict) -> dict:
    """Validate the editable fields present in *data*; return column → value."""
    values: dict = {}
    errors: dict = {}

    if "title" in data:
        title = str(data.get("title") or "").strip()
        if not title:
            errors["title"] = "cannot be empty"
        elif len(title) > 300:
            errors["title"] = "must be at most 300 characters"
        values["title"] = title

    if "category" in data:
        category = str(data.get("category") or "").strip().upper()
        if category not in PROJECT_CATEGORIES:
            errors["category"] = f"unknown category: {data.get('category')!r}"
        values["category"] = category

    if "verticalId" in data:
        vertical_id = data.get("verticalId")
        if _is_blank(vertical_id) or db.session.get(Vertical, str(vertical_id)) is None:
            errors["verticalId"] = "does not exist"
        values["vertical_id"] = vertical_id

    if "specialAreaId" in data:
        special_area_id = data.get("specialAreaId") or None
        if special_area_id and db.session.get(SpecialArea, str(special_area_id)) is None:
            errors["specialAreaId"] = "does not exist"
        values["special_area_id"] = special_area_id

    for wire, column in (("proposedStartDate", "proposed_start_date"),
                         ("proposedEndDate", "proposed_end_date")):
        if wire in data:
            try:
                parsed = parse_date_input(data.get(wire))
            except ValueError as exc:
                errors[wire] = str(exc)
                continue
            if parsed is None:
                errors[wire] = "cannot be empty"
            values[column] = parsed

    if "estimatedBudget" in data:
        try:
            budget = parse_decimal_input(data.get("estimatedBudget"))
        except ValueError as exc:
            errors["estimatedBudget"] = str(exc)
        else:
            if budget is not None and budget < 0:
                errors["estimatedBudget"] = "must not be negative"
            values["estimated_budget"] = budget

    for wire in _TEXT_FIELDS:
        if wire in data:
            value = data.get(wire)
            values[EDITABLE_FIELDS[wire]] = None if value is None else str(value)

    if errors:
        raise ValidationError("Invalid proposal fields", details=errors)
    return values


def _check_date_order(start, end) -> None:
    if start and end and end < start:
        raise ValidationError(
            "Proposed end date must not be before the start date",
            details={"proposedEndDate": "must be on or after proposedStartDate"},
        )


def _is_owner_or_admin(proposal: Proposal, user) -> bool:
    return proposal.submitted_by_id == user.id or user.role in ADMIN_ROLES


# ── Queries ──────────────────────────────────────────────────────────────────


def list_proposals(user, *, status=None, category=None) -> list[Proposal]:
    """Proposals *user* may see, newest first."""
    stmt = scoped_proposal_select(user, status=status, category=category)
    return db.session.execute(stmt).unique().scalars().all()


def list_pending_rc() -> list[Proposal]:
    """Proposals awaiting a Research Council decision, most recently updated first."""
    stmt = (
        select(Proposal)
        .where(Proposal.status.in_(PENDING_RC_STATUSES))
        .order_by(Proposal.updated_at.desc())
    )
    return db.session.execute(stmt).unique().scalars().all()


def get_proposal(proposal_id: str) -> Proposal:
    return get_proposal_or_404(proposal_id)


# ── Commands ─────────────────────────────────────────────────────────────────


def create_proposal(data: dict, user) -> Proposal:
    """Create a DRAFT proposal owned by *user*.

    Raises:
        ValidationError: Missing required fields, unknown category,
            unknown vertical/special area, unparseable dates or budget.
    """
    data = data or {}
    missing = [f for f in REQUIRED_FIELDS if _is_blank(data.get(f))]
    if missing:
        raise ValidationError(
            "Missing required fields", details={f: "required" for f in missing},
        )

    values = _clean_payload({k: v for k, v in data.items() if k in EDITABLE_FIELDS})
    _check_date_order(values.get("proposed_start_date"), values.get("proposed_end_date"))

    proposal = Proposal(
        submitted_by_id=user.id,
        status=ProposalStatus.DRAFT,
        **values,
    )
    db.session.add(proposal)
    db.session.flush()
    write_audit(
        entity_type="proposal",
        entity_id=proposal.id,
        action="proposal.create",
        actor_user_id=user.id,
        actor_role=user.role.value,
        diff={"status": {"old": None, "new": ProposalStatus.DRAFT.value},
              "title": {"old": None, "new": proposal.title}},
    )
    db.session.commit()

    logger.info("Proposal created id=%s category=%s user=%s",
                proposal.id, proposal.category, user.id)
    return proposal


def update_proposal(proposal_id: str, data: dict, user) -> Proposal:
    """Edit a DRAFT proposal. Submitter or administrator only.

    Unknown keys and non-editable fields (status, reviewer fields) in *data*
    are ignored.
    """
    proposal = get_proposal_or_404(proposal_id)

    if not _is_owner_or_admin(proposal, user):
        logger.warning("Denied update proposal=%s user=%s role=%s",
                       proposal.id, user.id, user.role.value)
        raise ForbiddenError("Not authorized to update this proposal",
                             user_id=user.id, action="update")

    if proposal.status != ProposalStatus.DRAFT:
        raise InvalidStateError("Only draft proposals can be edited",
                                action="update", current_status=proposal.status.value)

    payload = {k: v for k, v in (data or {}).items() if k in EDITABLE_FIELDS}
    values = _clean_payload(payload)
    _check_date_order(
        values.get("proposed_start_date", proposal.proposed_start_date),
        values.get("proposed_end_date", proposal.proposed_end_date),
    )

    diff = {}
    for column, new in values.items():
        old = getattr(proposal, column)
        if old != new:
            diff[column] = {"old": old, "new": new}

    if not diff:
        return proposal

    try:
        compare_and_set(proposal, ProposalStatus.DRAFT, values)
        write_audit(
            entity_type="proposal",
            entity_id=proposal.id,
            action="proposal.update",
            actor_user_id=user.id,
            actor_role=user.role.value,
            diff=diff,
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    db.session.refresh(proposal)
    logger.info("Proposal updated id=%s fields=%s user=%s",
                proposal.id, ",".join(sorted(diff)), user.id)
    return proposal


def delete_proposal(proposal_id: str, user) -> None:
    """Delete a proposal.

    The submitter may delete only while DRAFT. Administrators may delete in
    any status; those deletes keep the prior status in the audit row.
    """
    proposal = get_proposal_or_404(proposal_id)
    is_admin = user.role in ADMIN_ROLES

    if not _is_owner_or_admin(proposal, user):
        logger.warning("Denied delete proposal=%s user=%s role=%s",
                       proposal.id, user.id, user.role.value)
        raise ForbiddenError("Not authorized to delete this proposal",
                             user_id=user.id, action="delete")

    if proposal.status != ProposalStatus.DRAFT and not is_admin:
        raise InvalidStateError("Only draft proposals can be deleted",
                                action="delete", current_status=proposal.status.value)

    seen = proposal.status
    pid = proposal.id
    try:
        result = db.session.execute(
            delete(Proposal)
            .where(Proposal.id == pid, Proposal.status == seen)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConflictError(
                "Proposal",
                f"Proposal {pid} was modified by another request; reload and try again",
            )
        write_audit(
            entity_type="proposal",
            entity_id=pid,
            action="proposal.delete",
            actor_user_id=user.id,
            actor_role=user.role.value,
            diff={"status": {"old": seen.value, "new": None},
                  "title": {"old": proposal.title, "new": None}},
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    if proposal in db.session:
        db.session.expunge(proposal)
    if seen != ProposalStatus.DRAFT:
        logger.warning("Administrator deleted non-draft proposal=%s status=%s user=%s",
                       pid, seen.value, user.id)
    else:
        logger.info("Proposal deleted id=%s user=%s", pid, user.id)
