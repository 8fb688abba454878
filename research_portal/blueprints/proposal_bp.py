"""Proposal blueprint — proposal CRUD and the approval workflow.

Endpoint groups:
  CRUD        GET/POST        /api/v1/proposals
              GET             /api/v1/proposals/pending-rc
              GET/PUT/DELETE  /api/v1/proposals/<id>
  Workflow    POST /api/v1/proposals/<id>/submit
              POST /api/v1/proposals/<id>/bkmd-review        {action: forward|return, comments}
              POST /api/v1/proposals/<id>/director-review    {action: approve|reject, comments}
              POST /api/v1/proposals/<id>/rc-review          {action: approve|reject, comments, rcMeetingId}
              POST /api/v1/proposals/<id>/convert-to-project

All endpoints require a bearer token. Role, ownership and state checks live
in the service layer, which owns all business logic and commits.
"""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request

import research_portal.services.proposal_service as proposals
from research_portal.middleware.auth_required import current_user, login_required
from research_portal.services.proposal_workflow import (
    convert_to_project,
    get_available_transitions,
    review_proposal,
    submit_proposal,
)
from research_portal.utils.errors import register_api_error_handlers

logger = logging.getLogger(__name__)

proposal_bp = Blueprint("proposals", __name__, url_prefix="/api/v1")

register_api_error_handlers(proposal_bp)

# Resolved workflow action → response message
TRANSITION_MESSAGES = {
    "submit": "Proposal submitted for BKMD review",
    "bkmd_forward": "Proposal forwarded to Director for review",
    "bkmd_return": "Proposal returned to submitter for revision",
    "director_approve": "Proposal approved by Director - pending RC approval",
    "director_reject": "Proposal rejected by Director",
    "rc_approve": "Proposal approved by Research Council",
    "rc_reject": "Proposal rejected by Research Council",
    "convert": "Proposal converted to project",
}


def _body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


# ═════════════════════════════════════════════════════════════════════════
# CRUD
# ═════════════════════════════════════════════════════════════════════════


@proposal_bp.route("/proposals", methods=["GET"])
@login_required
def list_proposals():
    """Proposals visible to the caller. Query: ?status=&category="""
    items = proposals.list_proposals(
        current_user(),
        status=request.args.get("status") or None,
        category=request.args.get("category") or None,
    )
    return jsonify([p.to_dict() for p in items])


@proposal_bp.route("/proposals/pending-rc", methods=["GET"])
@login_required
def list_pending_rc():
    return jsonify([p.to_dict() for p in proposals.list_pending_rc()])


@proposal_bp.route("/proposals/<proposal_id>", methods=["GET"])
@login_required
def get_proposal(proposal_id):
    proposal = proposals.get_proposal(proposal_id)
    payload = proposal.to_dict()
    payload["available_actions"] = get_available_transitions(proposal, current_user())
    return jsonify(payload)


@proposal_bp.route("/proposals", methods=["POST"])
@login_required
def create_proposal():
    proposal = proposals.create_proposal(_body(), current_user())
    return jsonify(proposal.to_dict()), 201


@proposal_bp.route("/proposals/<proposal_id>", methods=["PUT"])
@login_required
def update_proposal(proposal_id):
    proposal = proposals.update_proposal(proposal_id, _body(), current_user())
    return jsonify(proposal.to_dict())


@proposal_bp.route("/proposals/<proposal_id>", methods=["DELETE"])
@login_required
def delete_proposal(proposal_id):
    proposals.delete_proposal(proposal_id, current_user())
    return jsonify({"message": "Proposal deleted successfully"})


# ═════════════════════════════════════════════════════════════════════════
# Workflow
# ═════════════════════════════════════════════════════════════════════════


@proposal_bp.route("/proposals/<proposal_id>/submit", methods=["POST"])
@login_required
def submit(proposal_id):
    proposal = submit_proposal(proposal_id, current_user())
    return jsonify({"message": TRANSITION_MESSAGES["submit"], "proposal": proposal.to_dict()})


def _review(proposal_id, stage):
    data = _body()
    proposal, action = review_proposal(
        proposal_id,
        stage,
        data.get("action"),
        current_user(),
        comments=data.get("comments"),
        rc_meeting_id=data.get("rcMeetingId") if stage == "rc_review" else None,
    )
    return jsonify({"message": TRANSITION_MESSAGES[action], "proposal": proposal.to_dict()})


@proposal_bp.route("/proposals/<proposal_id>/bkmd-review", methods=["POST"])
@login_required
def bkmd_review(proposal_id):
    """Body: {"action": "forward" | "return", "comments": "..."}"""
    return _review(proposal_id, "bkmd_review")


@proposal_bp.route("/proposals/<proposal_id>/director-review", methods=["POST"])
@login_required
def director_review(proposal_id):
    """Body: {"action": "approve" | "reject", "comments": "..."}"""
    return _review(proposal_id, "director_review")


@proposal_bp.route("/proposals/<proposal_id>/rc-review", methods=["POST"])
@login_required
def rc_review(proposal_id):
    """Body: {"action": "approve" | "reject", "comments": "...", "rcMeetingId": "..."}"""
    return _review(proposal_id, "rc_review")


@proposal_bp.route("/proposals/<proposal_id>/convert-to-project", methods=["POST"])
@login_required
def convert(proposal_id):
    _proposal, project = convert_to_project(proposal_id, current_user())
    return jsonify({"message": TRANSITION_MESSAGES["convert"], "project": project.to_dict()})
