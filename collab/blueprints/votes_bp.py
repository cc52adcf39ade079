"""
Votes Blueprint — submissions and results shared by every subject.

``<subject>`` is one of tool, rule, meeting (plural forms accepted).

Endpoints:
    POST /api/v1/teamrooms/<id>/<subject>/votes          — submit a vote
    GET  /api/v1/teamrooms/<id>/<subject>/participation  — voted / not voted members
    GET  /api/v1/teamrooms/<id>/<subject>/outcome        — confirmed outcome (409 before)
"""

import logging

from flask import Blueprint, jsonify

from collab.services.tracks import get_track
from collab.services.team_room_service import require_member
from collab.utils.helpers import current_user_id, json_body

logger = logging.getLogger(__name__)

votes_bp = Blueprint("votes_bp", __name__, url_prefix="/api/v1")

_SUBJECT_ALIASES = {"tools": "tool", "rules": "rule", "meetings": "meeting"}


def _track(subject: str):
    return get_track(_SUBJECT_ALIASES.get(subject, subject))


@votes_bp.route("/teamrooms/<int:team_room_id>/<subject>/votes", methods=["POST"])
def submit_votes(team_room_id, subject):
    """Submit the caller's vote for a subject."""
    track = _track(subject)
    result = track.submit(team_room_id, current_user_id(), json_body())
    return jsonify(result), 201


@votes_bp.route("/teamrooms/<int:team_room_id>/<subject>/participation", methods=["GET"])
def participation(team_room_id, subject):
    track = _track(subject)
    require_member(team_room_id, current_user_id())
    return jsonify(track.participation(team_room_id))


@votes_bp.route("/teamrooms/<int:team_room_id>/<subject>/outcome", methods=["GET"])
def outcome(team_room_id, subject):
    track = _track(subject)
    require_member(team_room_id, current_user_id())
    return jsonify(track.get_outcome(team_room_id))
