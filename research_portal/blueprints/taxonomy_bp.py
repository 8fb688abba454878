"""Reference data endpoints for proposal forms, plus RC meeting scheduling."""

from flask import Blueprint, jsonify, request

from research_portal.middleware.auth_required import current_user, login_required
from research_portal.models.proposal import PROJECT_CATEGORIES
from research_portal.services import taxonomy_service
from research_portal.utils.errors import register_api_error_handlers

taxonomy_bp = Blueprint("taxonomy", __name__, url_prefix="/api/v1")

register_api_error_handlers(taxonomy_bp)


@taxonomy_bp.route("/verticals", methods=["GET"])
@login_required
def list_verticals():
    return jsonify([v.to_dict() for v in taxonomy_service.list_verticals()])


@taxonomy_bp.route("/special-areas", methods=["GET"])
@login_required
def list_special_areas():
    return jsonify([a.to_dict() for a in taxonomy_service.list_special_areas()])


@taxonomy_bp.route("/rc-meetings", methods=["GET"])
@login_required
def list_rc_meetings():
    return jsonify([m.to_dict() for m in taxonomy_service.list_rc_meetings()])


@taxonomy_bp.route("/rc-meetings", methods=["POST"])
@login_required
def create_rc_meeting():
    data = request.get_json(silent=True)
    meeting = taxonomy_service.create_rc_meeting(data if isinstance(data, dict) else {}, current_user())
    return jsonify(meeting.to_dict()), 201


@taxonomy_bp.route("/rc-meetings/<meeting_id>", methods=["GET"])
@login_required
def get_rc_meeting(meeting_id):
    return jsonify(taxonomy_service.get_rc_meeting(meeting_id).to_dict())


@taxonomy_bp.route("/project-categories", methods=["GET"])
@login_required
def list_project_categories():
    return jsonify([{"code": code, "label": label} for code, label in PROJECT_CATEGORIES.items()])
