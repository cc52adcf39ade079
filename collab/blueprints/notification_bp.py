"""
Notification Blueprint — in-app notifications of a team room.

Endpoints:
    GET  /api/v1/teamrooms/<id>/notifications            — newest first (?unread_only=true)
    POST /api/v1/teamrooms/<id>/notifications/<nid>/read — mark one as read
    POST /api/v1/teamrooms/<id>/notifications/read-all   — mark all as read
"""

import logging

from flask import Blueprint, jsonify, request

from collab.core.exceptions import NotFoundError
from collab.models import db
from collab.models.notification import Notification
from collab.services.notification import NotificationService
from collab.services.team_room_service import require_member
from collab.utils.helpers import current_user_id, pagination_args

logger = logging.getLogger(__name__)

notification_bp = Blueprint("notification_bp", __name__, url_prefix="/api/v1")


@notification_bp.route("/teamrooms/<int:team_room_id>/notifications", methods=["GET"])
def list_notifications(team_room_id):
    user_id = current_user_id()
    require_member(team_room_id, user_id)
    limit, offset = pagination_args()
    unread_only = request.args.get("unread_only", "false").lower() == "true"
    items, total = NotificationService.list_for_team_room(
        team_room_id, recipient=user_id, unread_only=unread_only, limit=limit, offset=offset,
    )
    return jsonify({"items": [n.to_dict() for n in items], "total": total})


@notification_bp.route("/teamrooms/<int:team_room_id>/notifications/<int:notification_id>/read",
                       methods=["POST"])
def mark_read(team_room_id, notification_id):
    require_member(team_room_id, current_user_id())
    notif = db.session.get(Notification, notification_id)
    if not notif or notif.team_room_id != team_room_id:
        raise NotFoundError(resource="Notification", resource_id=notification_id)
    NotificationService.mark_read(notification_id)
    return jsonify(notif.to_dict())


@notification_bp.route("/teamrooms/<int:team_room_id>/notifications/read-all", methods=["POST"])
def mark_all_read(team_room_id):
    user_id = current_user_id()
    require_member(team_room_id, user_id)
    count = NotificationService.mark_all_read(team_room_id, user_id)
    return jsonify({"marked_read": count})
