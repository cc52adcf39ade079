"""
Workflow Gate — team room workflow transitions.

    PENDING -> SETUP       when the setup window opens (start_setup)
    SETUP   -> COMPLETED   only once the setup reports is_all_completed()

COMPLETED is terminal. Any other edge raises InvalidTransitionError.
"""

from __future__ import annotations

import logging

from sqlalchemy import update

from collab.core.clock import get_clock
from collab.models import db
from collab.models.teamroom import (
    WORKFLOW_COMPLETED,
    WORKFLOW_SETUP,
    TeamRoom,
    TeamRoomSetup,
    validate_workflow_transition,
)
from collab.services.notification import NotificationService
from collab.services.team_room_service import get_team_room

logger = logging.getLogger(__name__)


def transition(room: TeamRoom, target: str) -> None:
    """Validate and apply an edge on the ORM object. Caller commits."""
    previous = room.workflow
    room.transition_to(target)
    logger.info(
        "Workflow %s -> %s", previous, target, extra={"team_room_id": room.id},
    )


def complete_if_ready(team_room_id: int) -> bool:
    """Move SETUP -> COMPLETED when all three subjects are confirmed.

    Returns True only for the caller that performed the transition; a room
    that is already COMPLETED is left alone.
    """
    room = get_team_room(team_room_id)
    if room.workflow == WORKFLOW_COMPLETED:
        return False

    setup = TeamRoomSetup.query.filter_by(team_room_id=team_room_id).first()
    if setup is None or not setup.is_all_completed():
        return False

    validate_workflow_transition(room.workflow, WORKFLOW_COMPLETED)
    result = db.session.execute(
        update(TeamRoom)
        .where(TeamRoom.id == team_room_id, TeamRoom.workflow == WORKFLOW_SETUP)
        .values(workflow=WORKFLOW_COMPLETED)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.session.rollback()
        return False

    setup.completed_at = get_clock().now()
    db.session.commit()
    logger.info(
        "Workflow SETUP -> COMPLETED", extra={"team_room_id": team_room_id},
    )

    try:
        NotificationService.notify_setup_completed(team_room_id)
    except Exception:
        db.session.rollback()
        logger.exception("Failed to create setup-completed notification")
    return True
