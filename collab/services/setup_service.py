"""
Team Collaboration Setup Engine
Setup Service — lifecycle of a team room's onboarding window.

The flags on ``team_room_setups`` are the only setup state shared between
request handlers and the sweeper. They are written with a single-row
conditional UPDATE, so concurrent writers can only ever move a flag from
false to true.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from flask import current_app, has_app_context
from sqlalchemy import or_, update
from sqlalchemy.exc import IntegrityError

from collab.core.clock import as_utc, get_clock
from collab.core.exceptions import ConflictError, NotFoundError
from collab.models import db
from collab.models.teamroom import WORKFLOW_SETUP, TeamRoom, TeamRoomSetup, subject_flag
from collab.services import workflow_gate
from collab.services.team_room_service import get_team_room

logger = logging.getLogger(__name__)

DEFAULT_SETUP_HOURS = 6


def _setup_duration() -> timedelta:
    hours = DEFAULT_SETUP_HOURS
    if has_app_context():
        hours = current_app.config.get("SETUP_DURATION_HOURS", DEFAULT_SETUP_HOURS)
    return timedelta(hours=hours)


def start_setup(team_room_id: int, now: datetime | None = None) -> TeamRoomSetup:
    """Open the setup window and move the room PENDING -> SETUP.

    Raises:
        NotFoundError: unknown team room.
        ConflictError: a setup already exists for the room.
        InvalidTransitionError: the room is not PENDING.
    """
    room = get_team_room(team_room_id)
    if TeamRoomSetup.query.filter_by(team_room_id=team_room_id).first():
        raise ConflictError(f"Setup already started for team room {team_room_id}")

    now = now or get_clock().now()
    workflow_gate.transition(room, WORKFLOW_SETUP)
    setup = TeamRoomSetup.create(team_room_id, now, _setup_duration())
    db.session.add(setup)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(f"Setup already started for team room {team_room_id}") from None

    logger.info(
        "Setup started, deadline %s", setup.deadline.isoformat(),
        extra={"team_room_id": team_room_id},
    )
    return setup


def get_setup(team_room_id: int) -> TeamRoomSetup:
    setup = TeamRoomSetup.query.filter_by(team_room_id=team_room_id).first()
    if not setup:
        raise NotFoundError(resource="TeamRoomSetup", resource_id=team_room_id)
    return setup


def mark_subject_completed(team_room_id: int, subject: str) -> bool:
    """Set one completion flag. Returns True only for the caller that flipped it.

    Missing setups are logged and ignored: the flag is set by the sweeper
    once a setup exists, since confirm is idempotent.
    """
    column = getattr(TeamRoomSetup, subject_flag(subject))
    result = db.session.execute(
        update(TeamRoomSetup)
        .where(TeamRoomSetup.team_room_id == team_room_id, column.is_(False))
        .values({column: True})
        .execution_options(synchronize_session=False)
    )
    # commit() expires loaded TeamRoomSetup instances, so readers see the new flag
    db.session.commit()
    flipped = result.rowcount == 1

    if flipped:
        logger.info(
            "Setup flag %s set", subject_flag(subject),
            extra={"team_room_id": team_room_id, "subject": subject},
        )
    elif not TeamRoomSetup.query.filter_by(team_room_id=team_room_id).count():
        logger.warning(
            "No setup to mark %s completed", subject,
            extra={"team_room_id": team_room_id, "subject": subject},
        )
    return flipped


def find_expired_incomplete(now: datetime | None = None) -> list[TeamRoomSetup]:
    """Setups past their deadline that still need work.

    Either a flag is still false, or every flag is set but the room never
    left SETUP (the workflow gate failed after the last flag).
    """
    now = as_utc(now or get_clock().now())
    return (
        TeamRoomSetup.query.join(TeamRoom, TeamRoom.id == TeamRoomSetup.team_room_id)
        .filter(
            TeamRoomSetup.deadline < now,
            or_(
                TeamRoomSetup.tool_completed.is_(False),
                TeamRoomSetup.rule_completed.is_(False),
                TeamRoomSetup.meeting_completed.is_(False),
                TeamRoom.workflow == WORKFLOW_SETUP,
            ),
        )
        .order_by(TeamRoomSetup.id)
        .all()
    )


def setup_status(team_room_id: int, now: datetime | None = None) -> dict:
    room = get_team_room(team_room_id)
    setup = get_setup(team_room_id)
    now = now or get_clock().now()
    status = setup.to_dict()
    status["workflow"] = room.workflow
    status["is_expired"] = setup.is_expired(now)
    status["pending_subjects"] = setup.pending_subjects()
    return status
