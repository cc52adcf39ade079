"""
Tool Blueprint — tool vote counts and member tool proposals.

Endpoints:
    GET  /api/v1/teamrooms/<id>/tools/categories/<cid>/votes     — per-tool counts
    POST /api/v1/teamrooms/<id>/tools/proposals                  — propose a tool
    GET  /api/v1/teamrooms/<id>/tools/proposals                  — list (?decision=PENDING)
    GET  /api/v1/teamrooms/<id>/tools/proposals/<pid>            — detail (host / leader)
    POST /api/v1/teamrooms/<id>/tools/proposals/<pid>/decision   — approve / reject
"""

import logging

from flask import Blueprint, jsonify, request

from collab.core.exceptions import ValidationError
from collab.models.collabtool import PROPOSAL_DECISIONS
from collab.services.team_room_service import require_member
from collab.services.tracks import get_track
from collab.utils.helpers import current_user_id, json_body

logger = logging.getLogger(__name__)

tool_bp = Blueprint("tool_bp", __name__, url_prefix="/api/v1")


def _tools():
    return get_track("tool")


@tool_bp.route("/teamrooms/<int:team_room_id>/tools/categories/<int:category_id>/votes",
               methods=["GET"])
def category_vote_counts(team_room_id, category_id):
    require_member(team_room_id, current_user_id())
    return jsonify(_tools().vote_counts(team_room_id, category_id))


@tool_bp.route("/teamrooms/<int:team_room_id>/tools/proposals", methods=["POST"])
def propose_tool(team_room_id):
    data = json_body()
    for field in ("category_id", "tool_id"):
        if data.get(field) is None:
            raise ValidationError(f"{field} is required", details={field: "missing"})
    proposal = _tools().propose(team_room_id, current_user_id(),
                                data["category_id"], data["tool_id"])
    return jsonify(proposal.to_dict()), 201


@tool_bp.route("/teamrooms/<int:team_room_id>/tools/proposals", methods=["GET"])
def list_proposals(team_room_id):
    decision = request.args.get("decision")
    if decision and decision not in PROPOSAL_DECISIONS:
        raise ValidationError(f"decision must be one of {sorted(PROPOSAL_DECISIONS)}")
    items = _tools().list_proposals(team_room_id, current_user_id(), decision=decision)
    return jsonify({"items": [p.to_dict() for p in items], "total": len(items)})


@tool_bp.route("/teamrooms/<int:team_room_id>/tools/proposals/<int:proposal_id>", methods=["GET"])
def get_proposal(team_room_id, proposal_id):
    proposal = _tools().get_proposal(team_room_id, proposal_id, current_user_id())
    return jsonify(proposal.to_dict())


@tool_bp.route("/teamrooms/<int:team_room_id>/tools/proposals/<int:proposal_id>/decision",
               methods=["POST"])
def decide_proposal(team_room_id, proposal_id):
    data = json_body()
    approved = data.get("approved")
    if not isinstance(approved, bool):
        raise ValidationError("approved must be true or false", details={"approved": "boolean required"})
    proposal = _tools().decide_proposal(team_room_id, proposal_id, current_user_id(), approved)
    return jsonify(proposal.to_dict())
