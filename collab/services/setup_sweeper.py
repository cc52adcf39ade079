"""
Confirmation Sweeper — forces confirmation of subjects left open at the deadline.

Each tick:
    1. finds setups past their deadline with a flag still false, or with
       every flag set while the room is still in SETUP
    2. per setup, tries every incomplete track in order (tool, rule, meeting);
       a track failure is recorded and never stops its siblings
    3. sets the flag of each track that confirmed
    4. runs the workflow gate in its own fault boundary; the flags already
       set stay set if the gate fails

A setup that is still incomplete stays eligible for the next tick.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime

from collab.core.clock import get_clock
from collab.core.exceptions import ConfirmationError
from collab.models import db
from collab.services import setup_service, workflow_gate
from collab.services.tracks import TRACKS

logger = logging.getLogger(__name__)


@dataclass
class TrackResult:
    subject: str
    ok: bool
    error: str | None = None
    flag_set: bool = False

    def to_dict(self):
        return {"subject": self.subject, "ok": self.ok, "error": self.error,
                "flag_set": self.flag_set}


@dataclass
class SetupSweep:
    team_room_id: int
    tracks: list[TrackResult] = field(default_factory=list)
    all_completed: bool = False
    workflow_completed: bool = False
    gate_error: str | None = None

    def to_dict(self):
        return {
            "team_room_id": self.team_room_id,
            "tracks": [t.to_dict() for t in self.tracks],
            "all_completed": self.all_completed,
            "workflow_completed": self.workflow_completed,
            "gate_error": self.gate_error,
        }


@dataclass
class SweepReport:
    now: datetime
    setups: list[SetupSweep] = field(default_factory=list)
    duration_ms: int = 0

    @property
    def failures(self) -> int:
        return sum(1 for s in self.setups for t in s.tracks if not t.ok)

    def to_dict(self):
        return {
            "now": self.now.isoformat(),
            "setups_scanned": len(self.setups),
            "tracks_confirmed": sum(1 for s in self.setups for t in s.tracks if t.ok),
            "tracks_failed": self.failures,
            "workflows_completed": sum(1 for s in self.setups if s.workflow_completed),
            "duration_ms": self.duration_ms,
            "setups": [s.to_dict() for s in self.setups],
        }


class SetupSweeper:
    """Runs one sweep over expired setups per ``run_tick`` call."""

    def __init__(self, tracks=None, clock=None):
        self.tracks = tuple(tracks) if tracks is not None else TRACKS
        self._clock = clock

    @property
    def clock(self):
        return self._clock or get_clock()

    def run_tick(self, now: datetime | None = None) -> SweepReport:
        now = now or self.clock.now()
        start = time.monotonic()
        report = SweepReport(now=now)

        setups = setup_service.find_expired_incomplete(now)
        # Plain ids: every confirm commits or rolls back, expiring the ORM rows
        pending = [(s.team_room_id, s.pending_subjects()) for s in setups]
        for team_room_id, subjects in pending:
            report.setups.append(self._sweep_setup(team_room_id, subjects, now))

        report.duration_ms = int((time.monotonic() - start) * 1000)
        if report.setups:
            logger.info(
                "Sweep tick: %d setup(s), %d track failure(s)",
                len(report.setups), report.failures,
                extra={"duration_ms": report.duration_ms},
            )
        return report

    def _sweep_setup(self, team_room_id: int, subjects: list[str], now: datetime) -> SetupSweep:
        result = SetupSweep(team_room_id=team_room_id)
        for track in self.tracks:
            if track.subject not in subjects:
                continue
            outcome = self._confirm_isolated(track, team_room_id, now)
            if outcome.ok:
                outcome.flag_set = self._mark_isolated(team_room_id, track.subject)
            result.tracks.append(outcome)

        try:
            setup = setup_service.get_setup(team_room_id)
            result.all_completed = setup.is_all_completed()
            if result.all_completed:
                result.workflow_completed = workflow_gate.complete_if_ready(team_room_id)
        except Exception as exc:
            db.session.rollback()
            result.gate_error = str(exc)
            logger.exception(
                "Workflow gate failed after sweep", extra={"team_room_id": team_room_id},
            )
        return result

    def _confirm_isolated(self, track, team_room_id: int, now: datetime) -> TrackResult:
        try:
            track.confirm(team_room_id, now=now)
        except ConfirmationError as exc:
            logger.warning(
                "Sweep could not confirm %s: %s", track.subject, exc.reason,
                extra={"team_room_id": team_room_id, "subject": track.subject},
            )
            return TrackResult(track.subject, ok=False, error=exc.reason)
        except Exception as exc:
            db.session.rollback()
            logger.exception(
                "Sweep failed confirming %s", track.subject,
                extra={"team_room_id": team_room_id, "subject": track.subject},
            )
            return TrackResult(track.subject, ok=False, error=str(exc))
        return TrackResult(track.subject, ok=True)

    def _mark_isolated(self, team_room_id: int, subject: str) -> bool:
        try:
            return setup_service.mark_subject_completed(team_room_id, subject)
        except Exception:
            db.session.rollback()
            logger.exception(
                "Failed to set %s flag", subject,
                extra={"team_room_id": team_room_id, "subject": subject},
            )
            return False
