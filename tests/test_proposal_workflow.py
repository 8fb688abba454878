"""
Proposal Workflow Engine Tests — service-level coverage for:
  - Transition table legality (validate_transition)
  - Check order: NotFound → Forbidden → InvalidState
  - Side effects per stage (reviewer, timestamps, comments, RC meeting)
  - No mutation on rejected requests
  - Compare-and-swap conflict on a stale status
  - Conversion: project creation, code allocation, atomic rollback
  - Available actions per caller
  - Edit / delete guards
  - Audit trail rows
"""

from datetime import date

import pytest
from sqlalchemy import select

from research_portal.core.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from research_portal.models import db
from research_portal.models.audit import AuditLog
from research_portal.models.project import Project
from research_portal.models.proposal import PROPOSAL_TRANSITIONS, Proposal, ProposalStatus
from research_portal.services import proposal_service, proposal_workflow
from research_portal.services.proposal_workflow import (
    compare_and_set,
    convert_to_project,
    get_available_transitions,
    review_proposal,
    submit_proposal,
    validate_transition,
)


# ═══════════════════════════════════════════════════════════════════════════
# Helpers
# ═══════════════════════════════════════════════════════════════════════════


def _draft(user, make_payload, **overrides):
    return proposal_service.create_proposal(make_payload(**overrides), user)


def _stored_status(proposal_id):
    db.session.expire_all()
    return db.session.get(Proposal, proposal_id).status


def _to_rc_approved(proposal, submitter, bkmd, director, meeting_id=None):
    submit_proposal(proposal.id, submitter)
    review_proposal(proposal.id, "bkmd_review", "forward", bkmd)
    review_proposal(proposal.id, "director_review", "approve", director)
    review_proposal(proposal.id, "rc_review", "approve", director, rc_meeting_id=meeting_id)
    return db.session.get(Proposal, proposal.id)


def _audit_actions(proposal_id):
    return db.session.execute(
        select(AuditLog.action)
        .where(AuditLog.entity_type == "proposal", AuditLog.entity_id == proposal_id)
        .order_by(AuditLog.id)
    ).scalars().all()


# ═══════════════════════════════════════════════════════════════════════════
# Transition table
# ═══════════════════════════════════════════════════════════════════════════


class TestTransitionTable:

    def test_every_target_is_a_known_status(self):
        for rule in PROPOSAL_TRANSITIONS.values():
            assert isinstance(rule["to"], ProposalStatus)
            assert all(isinstance(s, ProposalStatus) for s in rule["from"])

    def test_terminal_states_have_no_outgoing_action(self):
        terminal = {ProposalStatus.DIRECTOR_REJECTED, ProposalStatus.RC_REJECTED,
                    ProposalStatus.CONVERTED}
        for rule in PROPOSAL_TRANSITIONS.values():
            assert not (rule["from"] & terminal)

    def test_validate_transition(self, vertical, employee, make_payload):
        proposal = _draft(employee, make_payload)
        ok = validate_transition(proposal, "submit")
        assert ok == {"valid": True, "from": "DRAFT", "to": "SUBMITTED", "reason": None}

        bad = validate_transition(proposal, "convert")
        assert bad["valid"] is False
        assert bad["from"] == "DRAFT"

        unknown = validate_transition(proposal, "publish")
        assert unknown["valid"] is False
        assert "Unknown action" in unknown["reason"]


# ═══════════════════════════════════════════════════════════════════════════
# Submit
# ═══════════════════════════════════════════════════════════════════════════


class TestSubmit:

    def test_submitter_submits_draft(self, vertical, employee, make_payload):
        proposal = _draft(employee, make_payload)
        result = submit_proposal(proposal.id, employee)
        assert result.status == ProposalStatus.SUBMITTED

    def test_submit_twice_is_invalid_state(self, vertical, employee, make_payload):
        proposal = _draft(employee, make_payload)
        submit_proposal(proposal.id, employee)
        with pytest.raises(InvalidStateError):
            submit_proposal(proposal.id, employee)
        assert _stored_status(proposal.id) == ProposalStatus.SUBMITTED

    def test_only_submitter_may_submit(self, vertical, employee, admin, make_payload):
        proposal = _draft(employee, make_payload)
        with pytest.raises(ForbiddenError):
            submit_proposal(proposal.id, admin)
        assert _stored_status(proposal.id) == ProposalStatus.DRAFT

    def test_unknown_proposal_is_not_found(self, employee):
        with pytest.raises(NotFoundError):
            submit_proposal("does-not-exist", employee)

    def test_not_found_precedes_forbidden(self, director):
        with pytest.raises(NotFoundError):
            review_proposal("does-not-exist", "bkmd_review", "forward", director)

    def test_forbidden_precedes_invalid_state(self, vertical, employee, other_employee, make_payload):
        proposal = _draft(employee, make_payload)
        submit_proposal(proposal.id, employee)
        with pytest.raises(ForbiddenError):
            submit_proposal(proposal.id, other_employee)


# ═══════════════════════════════════════════════════════════════════════════
# Reviews
# ═══════════════════════════════════════════════════════════════════════════


class TestBkmdReview:

    def test_forward_sets_reviewer_fields(self, vertical, employee, bkmd, make_payload):
        proposal = _draft(employee, make_payload)
        submit_proposal(proposal.id, employee)
        result, action = review_proposal(proposal.id, "bkmd_review", "forward", bkmd,
                                         comments="Complete")
        assert action == "bkmd_forward"
        assert result.status == ProposalStatus.DIRECTOR_REVIEW
        assert result.bkmd_reviewer_id == bkmd.id
        assert result.bkmd_reviewed_at is not None
        assert result.bkmd_comments == "Complete"

    def test_return_goes_back_to_draft_and_allows_resubmit(self, vertical, employee, bkmd, make_payload):
        proposal = _draft(employee, make_payload)
        submit_proposal(proposal.id, employee)
        result, action = review_proposal(proposal.id, "bkmd_review", "return", bkmd,
                                         comments="Budget justification missing")
        assert action == "bkmd_return"
        assert result.status == ProposalStatus.DRAFT
        assert result.bkmd_comments == "Budget justification missing"

        edited = proposal_service.update_proposal(proposal.id, {"estimatedBudget": 900000}, employee)
        assert float(edited.estimated_budget) == 900000.0
        assert submit_proposal(proposal.id, employee).status == ProposalStatus.SUBMITTED

    def test_employee_cannot_forward(self, vertical, employee, make_payload):
        proposal = _draft(employee, make_payload)
        submit_proposal(proposal.id, employee)
        with pytest.raises(ForbiddenError):
            review_proposal(proposal.id, "bkmd_review", "forward", employee)
        db.session.expire_all()
        stored = db.session.get(Proposal, proposal.id)
        assert stored.status == ProposalStatus.SUBMITTED
        assert stored.bkmd_reviewer_id is None

    def test_unknown_decision_is_rejected(self, vertical, employee, bkmd, make_payload):
        proposal = _draft(employee, make_payload)
        submit_proposal(proposal.id, employee)
        with pytest.raises(ValidationError):
            review_proposal(proposal.id, "bkmd_review", "approve", bkmd)
        with pytest.raises(ValidationError):
            review_proposal(proposal.id, "bkmd_review", None, bkmd)
        assert _stored_status(proposal.id) == ProposalStatus.SUBMITTED

    def test_draft_is_not_pending_bkmd_review(self, vertical, employee, bkmd, make_payload):
        proposal = _draft(employee, make_payload)
        with pytest.raises(InvalidStateError, match="not pending BKMD review"):
            review_proposal(proposal.id, "bkmd_review", "forward", bkmd)

    def test_admin_may_review(self, vertical, employee, admin, make_payload):
        proposal = _draft(employee, make_payload)
        submit_proposal(proposal.id, employee)
        result, _ = review_proposal(proposal.id, "bkmd_review", "forward", admin)
        assert result.status == ProposalStatus.DIRECTOR_REVIEW


class TestDirectorAndRcReview:

    def test_director_reject_is_terminal(self, vertical, employee, bkmd, director, make_payload):
        proposal = _draft(employee, make_payload)
        submit_proposal(proposal.id, employee)
        review_proposal(proposal.id, "bkmd_review", "forward", bkmd)
        result, _ = review_proposal(proposal.id, "director_review", "reject", director,
                                    comments="Out of mandate")
        assert result.status == ProposalStatus.DIRECTOR_REJECTED
        assert result.director_comments == "Out of mandate"
        assert result.is_terminal
        with pytest.raises(InvalidStateError):
            review_proposal(proposal.id, "rc_review", "approve", director)

    def test_bkmd_cannot_do_director_review(self, vertical, employee, bkmd, make_payload):
        proposal = _draft(employee, make_payload)
        submit_proposal(proposal.id, employee)
        review_proposal(proposal.id, "bkmd_review", "forward", bkmd)
        with pytest.raises(ForbiddenError):
            review_proposal(proposal.id, "director_review", "approve", bkmd)

    def test_rc_approve_attaches_meeting(self, vertical, rc_meeting, employee, bkmd, director, make_payload):
        proposal = _draft(employee, make_payload)
        result = _to_rc_approved(proposal, employee, bkmd, director, meeting_id="M1")
        assert result.status == ProposalStatus.RC_APPROVED
        assert result.rc_meeting_id == "M1"

    def test_rc_unknown_meeting_rejected_without_mutation(self, vertical, employee, bkmd, director, make_payload):
        proposal = _draft(employee, make_payload)
        submit_proposal(proposal.id, employee)
        review_proposal(proposal.id, "bkmd_review", "forward", bkmd)
        review_proposal(proposal.id, "director_review", "approve", director)
        with pytest.raises(ValidationError):
            review_proposal(proposal.id, "rc_review", "approve", director, rc_meeting_id="M404")
        assert _stored_status(proposal.id) == ProposalStatus.DIRECTOR_APPROVED

    def test_rc_pending_accepts_rc_decision(self, vertical, employee, director, make_payload):
        proposal = _draft(employee, make_payload)
        db.session.execute(
            Proposal.__table__.update()
            .where(Proposal.id == proposal.id)
            .values(status=ProposalStatus.RC_PENDING.value)
        )
        db.session.commit()
        result, action = review_proposal(proposal.id, "rc_review", "reject", director)
        assert action == "rc_reject"
        assert result.status == ProposalStatus.RC_REJECTED


# ═══════════════════════════════════════════════════════════════════════════
# Compare-and-swap
# ═══════════════════════════════════════════════════════════════════════════


class TestConcurrency:

    def test_stale_status_raises_conflict(self, vertical, employee, make_payload):
        proposal = _draft(employee, make_payload)
        submit_proposal(proposal.id, employee)
        with pytest.raises(ConflictError):
            compare_and_set(proposal, ProposalStatus.DRAFT,
                            {"status": ProposalStatus.SUBMITTED})
        db.session.rollback()
        assert _stored_status(proposal.id) == ProposalStatus.SUBMITTED

    def test_lost_race_leaves_row_untouched(self, vertical, employee, bkmd, make_payload, monkeypatch):
        proposal = _draft(employee, make_payload)
        submit_proposal(proposal.id, employee)

        real_cas = proposal_workflow.compare_and_set

        def _racing_cas(target, expected, values):
            # Another reviewer returns the proposal between our read and write.
            db.session.execute(
                Proposal.__table__.update()
                .where(Proposal.id == target.id)
                .values(status=ProposalStatus.DRAFT.value)
            )
            return real_cas(target, expected, values)

        monkeypatch.setattr(proposal_workflow, "compare_and_set", _racing_cas)
        with pytest.raises(ConflictError):
            review_proposal(proposal.id, "bkmd_review", "forward", bkmd)

        # The racing write was in the same rolled-back transaction.
        db.session.expire_all()
        stored = db.session.get(Proposal, proposal.id)
        assert stored.status == ProposalStatus.SUBMITTED
        assert stored.bkmd_reviewer_id is None
        assert "proposal.bkmd_forward" not in _audit_actions(proposal.id)


# ═══════════════════════════════════════════════════════════════════════════
# Conversion
# ═══════════════════════════════════════════════════════════════════════════


class TestConvert:

    def test_convert_creates_active_project(self, vertical, rc_meeting, employee, bkmd, director, make_payload):
        proposal = _draft(employee, make_payload)
        _to_rc_approved(proposal, employee, bkmd, director, meeting_id="M1")

        converted, project = convert_to_project(proposal.id, director)

        year = date.today().year
        assert converted.status == ProposalStatus.CONVERTED
        assert converted.converted_project_id == project.id
        assert project.code == f"GAP-{year}-SHMLE-001"
        assert project.status == "ACTIVE"
        assert project.project_head_id == employee.id
        assert project.title == proposal.title
        assert project.start_date == date(2025, 1, 1)
        assert project.end_date == date(2026, 12, 31)
        assert float(project.sanctioned_budget) == 1250000.50

    def test_second_conversion_on_prefix_gets_next_number(self, vertical, employee, bkmd, director, make_payload):
        codes = []
        for i in range(3):
            proposal = _draft(employee, make_payload, title=f"Proposal {i}")
            _to_rc_approved(proposal, employee, bkmd, director)
            codes.append(convert_to_project(proposal.id, director)[1].code)
        year = date.today().year
        assert codes == [f"GAP-{year}-SHMLE-00{n}" for n in (1, 2, 3)]

    def test_convert_requires_rc_approval(self, vertical, employee, bkmd, director, make_payload):
        proposal = _draft(employee, make_payload)
        submit_proposal(proposal.id, employee)
        review_proposal(proposal.id, "bkmd_review", "forward", bkmd)
        review_proposal(proposal.id, "director_review", "approve", director)
        with pytest.raises(InvalidStateError, match="RC-approved"):
            convert_to_project(proposal.id, director)
        assert db.session.execute(select(Project)).first() is None

    def test_employee_cannot_convert(self, vertical, employee, bkmd, director, make_payload):
        proposal = _draft(employee, make_payload)
        _to_rc_approved(proposal, employee, bkmd, director)
        with pytest.raises(ForbiddenError):
            convert_to_project(proposal.id, employee)

    def test_convert_twice_is_invalid_state(self, vertical, employee, bkmd, director, make_payload):
        proposal = _draft(employee, make_payload)
        _to_rc_approved(proposal, employee, bkmd, director)
        convert_to_project(proposal.id, director)
        with pytest.raises(InvalidStateError):
            convert_to_project(proposal.id, director)
        assert len(db.session.execute(select(Project)).scalars().all()) == 1

    def test_failed_conversion_rolls_back_project(self, vertical, employee, bkmd, director, make_payload, monkeypatch):
        proposal = _draft(employee, make_payload)
        _to_rc_approved(proposal, employee, bkmd, director)

        def _conflict(*args, **kwargs):
            raise ConflictError("Proposal", "simulated race")

        monkeypatch.setattr(proposal_workflow, "compare_and_set", _conflict)
        with pytest.raises(ConflictError):
            convert_to_project(proposal.id, director)

        db.session.expire_all()
        assert db.session.execute(select(Project)).first() is None
        assert db.session.get(Proposal, proposal.id).status == ProposalStatus.RC_APPROVED


# ═══════════════════════════════════════════════════════════════════════════
# Available actions
# ═══════════════════════════════════════════════════════════════════════════


class TestAvailableTransitions:

    def test_per_caller(self, vertical, employee, bkmd, director, admin, make_payload):
        proposal = _draft(employee, make_payload)
        assert get_available_transitions(proposal, employee) == ["submit"]
        assert get_available_transitions(proposal, admin) == []

        submitted = submit_proposal(proposal.id, employee)
        assert get_available_transitions(submitted, employee) == []
        assert get_available_transitions(submitted, bkmd) == ["bkmd_forward", "bkmd_return"]
        assert get_available_transitions(submitted, director) == []


# ═══════════════════════════════════════════════════════════════════════════
# Edit / delete guards
# ═══════════════════════════════════════════════════════════════════════════


class TestEditDeleteGuards:

    def test_other_user_cannot_edit(self, vertical, employee, other_employee, make_payload):
        proposal = _draft(employee, make_payload)
        with pytest.raises(ForbiddenError):
            proposal_service.update_proposal(proposal.id, {"title": "Hijack"}, other_employee)

    def test_admin_can_edit_draft(self, vertical, employee, admin, make_payload):
        proposal = _draft(employee, make_payload)
        updated = proposal_service.update_proposal(proposal.id, {"title": "Renamed"}, admin)
        assert updated.title == "Renamed"

    def test_submitted_cannot_be_edited_even_by_admin(self, vertical, employee, admin, make_payload):
        proposal = _draft(employee, make_payload)
        submit_proposal(proposal.id, employee)
        with pytest.raises(InvalidStateError):
            proposal_service.update_proposal(proposal.id, {"title": "Late change"}, admin)

    def test_update_ignores_status_and_review_fields(self, vertical, employee, make_payload):
        proposal = _draft(employee, make_payload)
        updated = proposal_service.update_proposal(
            proposal.id,
            {"status": "RC_APPROVED", "bkmdComments": "self-approved", "title": "Still draft"},
            employee,
        )
        assert updated.status == ProposalStatus.DRAFT
        assert updated.bkmd_comments is None
        assert updated.title == "Still draft"

    def test_update_rejects_end_before_start(self, vertical, employee, make_payload):
        proposal = _draft(employee, make_payload)
        with pytest.raises(ValidationError):
            proposal_service.update_proposal(proposal.id, {"proposedEndDate": "2024-06-30"}, employee)

    def test_submitter_deletes_draft(self, vertical, employee, make_payload):
        proposal = _draft(employee, make_payload)
        pid = proposal.id
        proposal_service.delete_proposal(pid, employee)
        assert db.session.get(Proposal, pid) is None
        assert _audit_actions(pid)[-1] == "proposal.delete"

    def test_submitter_cannot_delete_submitted(self, vertical, employee, make_payload):
        proposal = _draft(employee, make_payload)
        submit_proposal(proposal.id, employee)
        with pytest.raises(InvalidStateError):
            proposal_service.delete_proposal(proposal.id, employee)

    def test_admin_deletes_non_draft_with_audit(self, vertical, employee, admin, make_payload):
        proposal = _draft(employee, make_payload)
        submit_proposal(proposal.id, employee)
        pid = proposal.id
        proposal_service.delete_proposal(pid, admin)
        assert db.session.get(Proposal, pid) is None
        row = db.session.execute(
            select(AuditLog).where(AuditLog.entity_id == pid, AuditLog.action == "proposal.delete")
        ).scalar_one()
        assert row.diff["status"]["old"] == "SUBMITTED"
        assert row.actor_role == "ADMIN"

    def test_other_user_cannot_delete(self, vertical, employee, other_employee, make_payload):
        proposal = _draft(employee, make_payload)
        with pytest.raises(ForbiddenError):
            proposal_service.delete_proposal(proposal.id, other_employee)


# ═══════════════════════════════════════════════════════════════════════════
# Audit trail
# ═══════════════════════════════════════════════════════════════════════════


class TestAuditTrail:

    def test_full_walk_is_audited_in_order(self, vertical, employee, bkmd, director, make_payload):
        proposal = _draft(employee, make_payload)
        _to_rc_approved(proposal, employee, bkmd, director)
        convert_to_project(proposal.id, director)
        assert _audit_actions(proposal.id) == [
            "proposal.create",
            "proposal.submit",
            "proposal.bkmd_forward",
            "proposal.director_approve",
            "proposal.rc_approve",
            "proposal.convert",
        ]
