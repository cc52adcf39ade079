"""
Meeting track — weekly availability and preferred time block, once per member.

Ballot:
    {"availability": {"mon": [32 bools], ..., "sun": [...]},
     "preferred_block": "BLOCK_20_24"}

Confirm picks the best weekly slot (see ``meeting_schedule``) and creates an
INITIAL_REGULAR series with one occurrence per week until the team room
deadline, every team member a participant of each occurrence.
"""

import logging

from flask import current_app, has_app_context

from collab.core.clock import as_utc
from collab.core.exceptions import ValidationError
from collab.models import db
from collab.models.meeting import (
    MEETING_TYPE_INITIAL_REGULAR,
    PREFERRED_BLOCKS,
    Meeting,
    MeetingParticipant,
    MeetingSeries,
    slot_start_time,
)
from collab.models.teamroom import SUBJECT_MEETING, TeamMember
from collab.services import meeting_schedule, vote_ledger
from collab.services.team_room_service import get_team_room, member_count
from collab.services.tracks.base import SubjectTrack

logger = logging.getLogger(__name__)

INITIAL_MEETING_TITLE = "Regular meeting"
DEFAULT_DURATION_MINUTES = 60


class MeetingTrack(SubjectTrack):
    subject = SUBJECT_MEETING

    def validate_payload(self, team_room_id, payload) -> dict:
        payload = payload or {}
        if "availability" not in payload:
            raise ValidationError("availability is required",
                                  details={"availability": "missing"})
        block = payload.get("preferred_block")
        if block not in PREFERRED_BLOCKS:
            raise ValidationError(
                "preferred_block is invalid",
                details={"preferred_block": f"one of {sorted(PREFERRED_BLOCKS)}"},
            )
        return {
            "bitmaps": meeting_schedule.availability_to_bitmaps(payload["availability"]),
            "preferred_block": block,
        }

    def is_completion_condition_met(self, team_room_id) -> bool:
        participation = vote_ledger.list_participation(self.subject, team_room_id)
        return participation["total"] > 0 and participation["voted_count"] == participation["total"]

    def derive_outcome(self, team_room_id, now) -> dict:
        room = get_team_room(team_room_id)
        submissions = vote_ledger.tally(self.subject, team_room_id)
        best = meeting_schedule.pick_best_slot(submissions, member_count(team_room_id))

        duration = DEFAULT_DURATION_MINUTES
        if has_app_context():
            duration = current_app.config.get("MEETING_DURATION_MINUTES", DEFAULT_DURATION_MINUTES)

        occurrences = meeting_schedule.weekly_occurrences(
            best.day, best.start_time, as_utc(now), as_utc(room.deadline),
        )
        logger.info(
            "Meeting slot %s %s (%d available, %d preferred), %d occurrence(s)",
            best.day, best.start_time.strftime("%H:%M"),
            best.available_count, best.preferred_count, len(occurrences),
            extra={"team_room_id": team_room_id, "subject": self.subject},
        )
        outcome = best.to_dict()
        outcome["duration_minutes"] = duration
        outcome["meeting_type"] = MEETING_TYPE_INITIAL_REGULAR
        outcome["occurrences"] = [o.isoformat() for o in occurrences]
        return outcome

    def write_details(self, team_room_id, outcome, now) -> None:
        best_time = slot_start_time(outcome["start_slot"])
        series = MeetingSeries(
            team_room_id=team_room_id,
            meeting_type=outcome["meeting_type"],
            day_of_week=outcome["day_of_week"],
            start_time=best_time,
            duration_minutes=outcome["duration_minutes"],
            created_at=now,
        )
        db.session.add(series)
        db.session.flush()
        room = get_team_room(team_room_id)
        member_ids = [m.id for m in TeamMember.query.filter_by(team_room_id=team_room_id)
                      .order_by(TeamMember.id)]
        for start_at in meeting_schedule.weekly_occurrences(
            outcome["day_of_week"], best_time, as_utc(now), as_utc(room.deadline),
        ):
            meeting = Meeting(
                series_id=series.id,
                team_room_id=team_room_id,
                title=INITIAL_MEETING_TITLE,
                start_at=start_at,
                duration_minutes=outcome["duration_minutes"],
            )
            meeting.participants = [MeetingParticipant(member_id=mid) for mid in member_ids]
            db.session.add(meeting)

    def summarize(self, outcome) -> str:
        return (f"Every {outcome['day_of_week'].upper()} at {outcome['start_time']}, "
                f"{len(outcome['occurrences'])} meeting(s) scheduled.")
