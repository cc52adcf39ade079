"""
Subject track base class.

A track owns one decision domain of the setup phase (tools, rules, meeting):
member submissions go through ``submit``; ``confirm`` derives the winning
outcome from the ledger tally and persists it exactly once.

``confirm`` never touches the setup flags. Whoever calls it (the early
completion path in ``submit`` or the deadline sweeper) advances the flag
after a successful confirm.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime

from sqlalchemy.exc import IntegrityError

from collab.core.clock import get_clock
from collab.core.exceptions import ConfirmationError, NotConfirmedError, SubjectClosedError
from collab.models import db
from collab.models.outcome import ConfirmedOutcome
from collab.services import setup_service, vote_ledger, workflow_gate
from collab.services.notification import NotificationService
from collab.services.team_room_service import get_team_room, require_member

logger = logging.getLogger(__name__)


class SubjectTrack(ABC):
    subject: str = ""

    # ── Hooks implemented per subject ────────────────────────────────────

    @abstractmethod
    def validate_payload(self, team_room_id: int, payload) -> dict:
        """Check a raw submission and return the ledger payload."""

    @abstractmethod
    def is_completion_condition_met(self, team_room_id: int) -> bool:
        """Whether the subject may confirm before the deadline."""

    @abstractmethod
    def derive_outcome(self, team_room_id: int, now: datetime) -> dict:
        """Compute the JSON outcome from the tally. Raise ConfirmationError if impossible."""

    @abstractmethod
    def write_details(self, team_room_id: int, outcome: dict, now: datetime) -> None:
        """Add the subject's detail rows to the session (no commit)."""

    def summarize(self, outcome: dict) -> str:
        return ""

    # ── Submission ───────────────────────────────────────────────────────

    def submit(self, team_room_id: int, user_id, payload) -> dict:
        """Record a member's vote, then confirm early when the condition holds.

        Raises:
            NotATeamMemberError, ValidationError, SubjectClosedError,
            DuplicateVoteError
        """
        member = require_member(team_room_id, user_id)
        if self.find_outcome(team_room_id) is not None:
            raise SubjectClosedError(self.subject, team_room_id)

        ledger_payload = self.validate_payload(team_room_id, payload)
        vote_ledger.record_vote(self.subject, team_room_id, member.id, ledger_payload)

        early = self._try_early_completion(team_room_id)
        return {
            "subject": self.subject,
            "team_room_id": team_room_id,
            "member_id": member.id,
            "early_completed": early,
        }

    def _try_early_completion(self, team_room_id: int) -> bool:
        if not self.is_completion_condition_met(team_room_id):
            return False
        try:
            self.confirm(team_room_id)
        except ConfirmationError as exc:
            # The vote stays recorded; the sweeper retries after the deadline
            logger.warning(
                "Early %s confirmation failed: %s", self.subject, exc.reason,
                extra={"team_room_id": team_room_id, "subject": self.subject},
            )
            return False

        # Outcome is committed; flag and gate errors are left to the sweeper
        try:
            setup_service.mark_subject_completed(team_room_id, self.subject)
            workflow_gate.complete_if_ready(team_room_id)
        except Exception:
            db.session.rollback()
            logger.exception(
                "Failed to finalize early %s confirmation", self.subject,
                extra={"team_room_id": team_room_id, "subject": self.subject},
            )
        return True

    # ── Confirmation ─────────────────────────────────────────────────────

    def find_outcome(self, team_room_id: int) -> ConfirmedOutcome | None:
        return ConfirmedOutcome.query.filter_by(
            subject=self.subject, team_room_id=team_room_id,
        ).first()

    def confirm(self, team_room_id: int, now: datetime | None = None) -> ConfirmedOutcome:
        """Persist the outcome once; later calls return the stored row.

        Raises:
            ConfirmationError: nothing was persisted, safe to retry.
        """
        existing = self.find_outcome(team_room_id)
        if existing is not None:
            return existing

        now = now or get_clock().now()
        try:
            get_team_room(team_room_id)
            outcome = self.derive_outcome(team_room_id, now)
            row = ConfirmedOutcome(
                subject=self.subject,
                team_room_id=team_room_id,
                payload=outcome,
                confirmed_at=now,
            )
            db.session.add(row)
            db.session.flush()
            self.write_details(team_room_id, outcome, now)
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            winner = self.find_outcome(team_room_id)
            if winner is None:
                raise ConfirmationError(self.subject, team_room_id,
                                        "integrity error while writing outcome") from None
            logger.info(
                "%s already confirmed by a concurrent caller", self.subject,
                extra={"team_room_id": team_room_id, "subject": self.subject},
            )
            return winner
        except ConfirmationError:
            db.session.rollback()
            raise
        except Exception as exc:
            db.session.rollback()
            raise ConfirmationError(self.subject, team_room_id, str(exc)) from exc

        logger.info(
            "Confirmed %s", self.subject,
            extra={"team_room_id": team_room_id, "subject": self.subject},
        )
        self._notify_confirmed(team_room_id, outcome)
        return row

    def _notify_confirmed(self, team_room_id: int, outcome: dict) -> None:
        try:
            NotificationService.notify_subject_confirmed(
                team_room_id, self.subject, self.summarize(outcome),
            )
        except Exception:
            db.session.rollback()
            logger.exception("Failed to create %s confirmation notification", self.subject)

    # ── Reads ────────────────────────────────────────────────────────────

    def get_outcome(self, team_room_id: int) -> dict:
        get_team_room(team_room_id)
        row = self.find_outcome(team_room_id)
        if row is None:
            raise NotConfirmedError(self.subject, team_room_id)
        return row.to_dict()

    def participation(self, team_room_id: int) -> dict:
        get_team_room(team_room_id)
        return vote_ledger.list_participation(self.subject, team_room_id)

    def tally(self, team_room_id: int):
        return vote_ledger.tally(self.subject, team_room_id)

    def __repr__(self):
        return f"<{type(self).__name__} subject={self.subject}>"
