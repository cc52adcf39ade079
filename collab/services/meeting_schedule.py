"""
Regular meeting slot selection.

Every (weekday, start slot) pair that fits a one-hour meeting is scored and
the best one wins. Ranking, highest priority first:

    1. members available for both half-hour slots
    2. of those, members whose preferred block contains the meeting
    3. earlier weekday (Monday first)
    4. earlier start slot

Members without a submission count as fully available and preferring
``DEFAULT_PREFERRED_BLOCK``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone

from collab.core.exceptions import ValidationError
from collab.models.meeting import (
    DAYS,
    DEFAULT_PREFERRED_BLOCK,
    PREFERRED_BLOCKS,
    SLOT_COUNT,
    slot_start_time,
)

FULL_DAY = (1 << SLOT_COUNT) - 1
# A one-hour meeting needs two consecutive slots, so the last slot cannot start one
CANDIDATE_SLOTS = range(SLOT_COUNT - 1)


@dataclass(frozen=True)
class SlotCandidate:
    day: str
    slot: int
    available_count: int
    preferred_count: int

    def sort_key(self):
        return (-self.available_count, -self.preferred_count, DAYS.index(self.day), self.slot)

    @property
    def start_time(self) -> time:
        return slot_start_time(self.slot)

    def to_dict(self):
        return {
            "day_of_week": self.day,
            "start_slot": self.slot,
            "start_time": self.start_time.strftime("%H:%M"),
            "available_count": self.available_count,
            "preferred_count": self.preferred_count,
        }


def availability_to_bitmaps(availability) -> dict[str, int]:
    """Convert ``{"mon": [32 bools], ...}`` into per-day bitmaps.

    Missing days are treated as unavailable.
    """
    if not isinstance(availability, dict):
        raise ValidationError("availability must be an object keyed by weekday")
    unknown = sorted(set(availability) - set(DAYS))
    if unknown:
        raise ValidationError(f"Unknown weekday keys: {unknown}", details={"availability": unknown})

    bitmaps = {}
    for day in DAYS:
        slots = availability.get(day, [False] * SLOT_COUNT)
        if not isinstance(slots, list) or len(slots) != SLOT_COUNT:
            raise ValidationError(
                f"availability.{day} must list {SLOT_COUNT} half-hour slots",
                details={"availability": day},
            )
        if not all(isinstance(s, bool) for s in slots):
            raise ValidationError(f"availability.{day} must contain booleans only")
        bitmap = 0
        for i, free in enumerate(slots):
            if free:
                bitmap |= 1 << i
        bitmaps[day] = bitmap
    return bitmaps


def can_attend(bitmap: int, slot: int) -> bool:
    return bool(bitmap >> slot & 1) and bool(bitmap >> (slot + 1) & 1)


def prefers(block: str, slot: int) -> bool:
    start, end = PREFERRED_BLOCKS[block]
    return start <= slot and slot + 1 <= end


def score_candidates(submissions: list[dict], member_total: int) -> list[SlotCandidate]:
    """Score every candidate slot.

    ``submissions`` are ledger tally rows ``{"bitmaps", "preferred_block"}``.
    """
    participants = [(s["bitmaps"], s["preferred_block"]) for s in submissions]
    missing = max(member_total - len(participants), 0)
    participants.extend(
        ({day: FULL_DAY for day in DAYS}, DEFAULT_PREFERRED_BLOCK) for _ in range(missing)
    )

    candidates = []
    for day in DAYS:
        for slot in CANDIDATE_SLOTS:
            available = preferred = 0
            for bitmaps, block in participants:
                if can_attend(bitmaps.get(day, 0), slot):
                    available += 1
                    if prefers(block, slot):
                        preferred += 1
            candidates.append(SlotCandidate(day, slot, available, preferred))
    return candidates


def pick_best_slot(submissions: list[dict], member_total: int) -> SlotCandidate:
    return min(score_candidates(submissions, member_total), key=SlotCandidate.sort_key)


def weekly_occurrences(day: str, start: time, after: datetime, until: datetime) -> list[datetime]:
    """Meeting start times on ``day``, from the next such weekday after
    ``after``'s date up to ``until``'s date (inclusive), one per week.
    """
    target = DAYS.index(day)
    first: date = after.date() + timedelta(days=(target - after.weekday() - 1) % 7 + 1)
    last: date = until.date()

    occurrences = []
    current = first
    while current <= last:
        occurrences.append(datetime.combine(current, start, tzinfo=timezone.utc))
        current += timedelta(weeks=1)
    return occurrences
