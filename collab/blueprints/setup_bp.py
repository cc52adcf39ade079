"""
Setup Blueprint — onboarding window of a team room.

Endpoints:
    POST /api/v1/teamrooms/<id>/setup   — open the setup window (PENDING -> SETUP)
    GET  /api/v1/teamrooms/<id>/setup   — deadline, per-subject flags, workflow
"""

import logging

from flask import Blueprint, jsonify

from collab.services import setup_service
from collab.services.team_room_service import require_manager, require_member
from collab.utils.helpers import current_user_id, is_admin, require_user_id

logger = logging.getLogger(__name__)

setup_bp = Blueprint("setup_bp", __name__, url_prefix="/api/v1")


@setup_bp.route("/teamrooms/<int:team_room_id>/setup", methods=["POST"])
def start_setup(team_room_id):
    """Start the setup phase. Called when leader selection has finished.

    Allowed for the room's host / leader and for administrators.
    """
    user_id = require_user_id()
    if not is_admin(user_id):
        require_manager(team_room_id, user_id)
    setup_service.start_setup(team_room_id)
    return jsonify(setup_service.setup_status(team_room_id)), 201


@setup_bp.route("/teamrooms/<int:team_room_id>/setup", methods=["GET"])
def get_setup(team_room_id):
    require_member(team_room_id, current_user_id())
    return jsonify(setup_service.setup_status(team_room_id))
