"""
Proposal Workflow Engine

Manages proposal status transitions with:
  - Transition validation (PROPOSAL_TRANSITIONS)
  - Actor checks per workflow stage
  - Side effects (reviewer/timestamp/comments, RC meeting, project creation)
  - Audit trail via write_audit, in the same transaction

Workflow stages and the actions they resolve to:
  submit            → submit
  bkmd_review       → forward: bkmd_forward     | return: bkmd_return
  director_review   → approve: director_approve | reject: director_reject
  rc_review         → approve: rc_approve       | reject: rc_reject
  convert           → convert

Every stage checks, in order: proposal exists (NotFoundError), caller may act
(ForbiddenError), decision is known (ValidationError), current status allows
the action (InvalidStateError). The status write is a compare-and-swap on the
status that was read, so a concurrent transition makes this one fail with
ConflictError instead of overwriting it.

Usage:
    from research_portal.services.proposal_workflow import review_proposal

    proposal = review_proposal(proposal_id, "bkmd_review", "forward", user,
                               comments="Looks complete")
"""

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from research_portal.core.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from research_portal.models import db
from research_portal.models.audit import write_audit
from research_portal.models.auth import UserRole
from research_portal.models.project import Project
from research_portal.models.proposal import (
    PROPOSAL_TRANSITIONS,
    Proposal,
    ProposalStatus,
)
from research_portal.models.taxonomy import RCMeeting
from research_portal.services.code_generator import allocate_project_code

logger = logging.getLogger(__name__)

SUBMITTER = "submitter"

_REVIEWERS_BKMD = frozenset({UserRole.BKMD, UserRole.ADMIN, UserRole.SYS_ADMIN})
_REVIEWERS_DIRECTOR = frozenset({UserRole.DIRECTOR, UserRole.ADMIN, UserRole.SYS_ADMIN})

# Stage → who may act
STAGE_ACTORS = {
    "submit": SUBMITTER,
    "bkmd_review": _REVIEWERS_BKMD,
    "director_review": _REVIEWERS_DIRECTOR,
    "rc_review": _REVIEWERS_DIRECTOR,
    "convert": _REVIEWERS_DIRECTOR,
}

# Stage → decision → action
STAGE_DECISIONS = {
    "submit": {None: "submit"},
    "bkmd_review": {"forward": "bkmd_forward", "return": "bkmd_return"},
    "director_review": {"approve": "director_approve", "reject": "director_reject"},
    "rc_review": {"approve": "rc_approve", "reject": "rc_reject"},
    "convert": {None: "convert"},
}

_ACTION_STAGE = {
    action: stage
    for stage, decisions in STAGE_DECISIONS.items()
    for action in decisions.values()
}

_STAGE_DENIED = {
    "submit": "Only the submitter can submit the proposal",
    "bkmd_review": "Only BKMD or an administrator can perform BKMD review",
    "director_review": "Only the Director or an administrator can perform Director review",
    "rc_review": "Only the Director or an administrator can record the RC decision",
    "convert": "Only the Director or an administrator can convert proposals to projects",
}

_STATE_DENIED = {
    "submit": "Only draft proposals can be submitted",
    "bkmd_review": "Proposal is not pending BKMD review",
    "director_review": "Proposal is not pending Director review",
    "rc_review": "Proposal is not pending RC review",
    "convert": "Only RC-approved proposals can be converted to projects",
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Checks ───────────────────────────────────────────────────────────────────


def get_proposal_or_404(proposal_id: str) -> Proposal:
    proposal = db.session.get(Proposal, proposal_id) if proposal_id else None
    if proposal is None:
        raise NotFoundError(resource="Proposal", resource_id=proposal_id)
    return proposal


def can_act(proposal: Proposal, stage: str, user) -> bool:
    """True if *user* satisfies the actor requirement of *stage* on *proposal*."""
    actors = STAGE_ACTORS[stage]
    if actors == SUBMITTER:
        return proposal.submitted_by_id == user.id
    return user.role in actors


def validate_transition(proposal: Proposal, action: str) -> dict:
    """
    Validate whether an action is valid for the current state.

    Returns:
        {"valid": bool, "from": str, "to": str|None, "reason": str|None}
    """
    current = proposal.status.value if proposal.status else None
    rule = PROPOSAL_TRANSITIONS.get(action)
    if not rule:
        return {"valid": False, "from": current, "to": None,
                "reason": f"Unknown action: {action}"}

    if proposal.status not in rule["from"]:
        return {"valid": False, "from": current, "to": rule["to"].value,
                "reason": f"Cannot '{action}' from status '{current}'"}

    return {"valid": True, "from": current, "to": rule["to"].value, "reason": None}


def get_available_transitions(proposal: Proposal, user) -> list[str]:
    """Actions *user* may legally perform on *proposal* right now."""
    actions = []
    for action, rule in PROPOSAL_TRANSITIONS.items():
        if proposal.status in rule["from"] and can_act(proposal, _ACTION_STAGE[action], user):
            actions.append(action)
    return actions


def _resolve_action(stage: str, decision: str | None) -> str:
    decisions = STAGE_DECISIONS[stage]
    key = decision.strip().lower() if isinstance(decision, str) and decision.strip() else None
    if None in decisions:
        return decisions[None]
    if key not in decisions:
        allowed = " or ".join(f"'{d}'" for d in decisions)
        raise ValidationError(f"action must be {allowed}", details={"action": f"must be {allowed}"})
    return decisions[key]


# ── Persistence ──────────────────────────────────────────────────────────────


def compare_and_set(proposal: Proposal, expected: ProposalStatus, values: dict) -> None:
    """Apply *values* only if the stored status still equals *expected*."""
    result = db.session.execute(
        update(Proposal)
        .where(Proposal.id == proposal.id, Proposal.status == expected)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise ConflictError(
            "Proposal",
            f"Proposal {proposal.id} was modified by another request; reload and try again",
        )


def _side_effects(proposal: Proposal, action: str, user, now, *, comments, rc_meeting_id) -> dict:
    if action in ("bkmd_forward", "bkmd_return"):
        return {
            "bkmd_reviewer_id": user.id,
            "bkmd_reviewed_at": now,
            "bkmd_comments": comments,
        }
    if action in ("director_approve", "director_reject"):
        return {
            "director_reviewer_id": user.id,
            "director_reviewed_at": now,
            "director_comments": comments,
        }
    if action in ("rc_approve", "rc_reject"):
        if rc_meeting_id and db.session.get(RCMeeting, rc_meeting_id) is None:
            raise ValidationError(
                f"Unknown RC meeting: {rc_meeting_id}",
                details={"rcMeetingId": "does not exist"},
            )
        return {"rc_meeting_id": rc_meeting_id or None, "rc_comments": comments}
    if action == "convert":
        project = _create_project(proposal)
        return {"converted_project_id": project.id}
    return {}


def _create_project(proposal: Proposal) -> Project:
    vertical_code = proposal.vertical.code if proposal.vertical else None
    project = Project(
        id=str(uuid.uuid4()),
        code=allocate_project_code(proposal.category, vertical_code),
        title=proposal.title,
        description=proposal.description,
        category=proposal.category,
        vertical_id=proposal.vertical_id,
        special_area_id=proposal.special_area_id,
        project_head_id=proposal.submitted_by_id,
        objectives=proposal.objectives,
        methodology=proposal.methodology,
        expected_outcome=proposal.expected_outcome,
        start_date=proposal.proposed_start_date,
        end_date=proposal.proposed_end_date,
        sanctioned_budget=proposal.estimated_budget,
        status="ACTIVE",
    )
    db.session.add(project)
    db.session.flush()
    return project


# ── Public API ───────────────────────────────────────────────────────────────


def run_stage(
    proposal_id: str,
    stage: str,
    user,
    *,
    decision: str | None = None,
    comments: str | None = None,
    rc_meeting_id: str | None = None,
) -> tuple[Proposal, str, Project | None]:
    """
    Execute one workflow stage for *proposal_id* as *user*.

    Returns:
        (proposal, action, project) — project is set only for "convert".

    Raises:
        NotFoundError, ForbiddenError, ValidationError,
        InvalidStateError, ConflictError
    """
    if stage not in STAGE_ACTORS:
        raise ValidationError(f"Unknown workflow stage: {stage}")

    proposal = get_proposal_or_404(proposal_id)

    if not can_act(proposal, stage, user):
        logger.warning(
            "Denied proposal=%s stage=%s user=%s role=%s",
            proposal.id, stage, user.id, user.role.value,
        )
        raise ForbiddenError(_STAGE_DENIED[stage], user_id=user.id, action=stage)

    action = _resolve_action(stage, decision)

    validation = validate_transition(proposal, action)
    if not validation["valid"]:
        raise InvalidStateError(
            _STATE_DENIED[stage], action=action, current_status=validation["from"],
        )

    expected = proposal.status
    target = PROPOSAL_TRANSITIONS[action]["to"]
    now = _utcnow()

    try:
        values = {"status": target, "updated_at": now}
        values.update(_side_effects(
            proposal, action, user, now, comments=comments, rc_meeting_id=rc_meeting_id,
        ))
        compare_and_set(proposal, expected, values)

        diff = {"status": {"old": expected.value, "new": target.value}}
        if comments:
            diff["comments"] = {"old": None, "new": comments}
        if values.get("rc_meeting_id"):
            diff["rc_meeting_id"] = {"old": proposal.rc_meeting_id, "new": values["rc_meeting_id"]}
        if values.get("converted_project_id"):
            diff["converted_project_id"] = {"old": None, "new": values["converted_project_id"]}
        write_audit(
            entity_type="proposal",
            entity_id=proposal.id,
            action=f"proposal.{action}",
            actor_user_id=user.id,
            actor_role=user.role.value,
            diff=diff,
        )
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        logger.warning("Integrity error on proposal=%s action=%s: %s", proposal_id, action, exc.orig)
        raise ConflictError(
            "Proposal",
            "A concurrent change collided with this transition; reload and try again",
        ) from exc
    except Exception:
        db.session.rollback()
        raise

    db.session.refresh(proposal)
    project = db.session.get(Project, proposal.converted_project_id) if action == "convert" else None

    logger.info(
        "proposal=%s action=%s %s→%s user=%s",
        proposal.id, action, expected.value, target.value, user.id,
    )
    return proposal, action, project


def submit_proposal(proposal_id: str, user) -> Proposal:
    proposal, _, _ = run_stage(proposal_id, "submit", user)
    return proposal


def review_proposal(
    proposal_id: str,
    stage: str,
    decision: str | None,
    user,
    *,
    comments: str | None = None,
    rc_meeting_id: str | None = None,
) -> tuple[Proposal, str]:
    """BKMD / Director / RC review. Returns (proposal, resolved action)."""
    if stage not in ("bkmd_review", "director_review", "rc_review"):
        raise ValidationError(f"Unknown review stage: {stage}")
    proposal, action, _ = run_stage(
        proposal_id, stage, user,
        decision=decision, comments=comments, rc_meeting_id=rc_meeting_id,
    )
    return proposal, action


def convert_to_project(proposal_id: str, user) -> tuple[Proposal, Project]:
    """RC_APPROVED → CONVERTED; creates the Project in the same transaction."""
    proposal, _, project = run_stage(proposal_id, "convert", user)
    return proposal, project
