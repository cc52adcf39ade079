"""
Team Collaboration Setup Engine
Meeting models — recurring series, concrete occurrences and their participants.

Availability grid:
    32 half-hour slots per weekday, slot 0 = 08:00, slot 31 = 23:30.
    A one-hour meeting starting at slot ``i`` occupies slots ``i`` and ``i + 1``.
"""

from datetime import datetime, time, timezone

from collab.models import db

# ── Constants ────────────────────────────────────────────────────────────────

DAYS = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")
SLOT_COUNT = 32
SLOT_MINUTES = 30
DAY_START = time(8, 0)

# block name -> (first slot, last slot), both inclusive
PREFERRED_BLOCKS = {
    "BLOCK_08_12": (0, 7),
    "BLOCK_12_16": (8, 15),
    "BLOCK_16_20": (16, 23),
    "BLOCK_20_24": (24, 31),
}
# Assumed for members who never submitted availability
DEFAULT_PREFERRED_BLOCK = "BLOCK_20_24"

MEETING_TYPE_INITIAL_REGULAR = "INITIAL_REGULAR"
MEETING_TYPE_ADDITIONAL = "ADDITIONAL"


def slot_start_time(slot: int) -> time:
    """Wall-clock start of a half-hour slot."""
    minutes = DAY_START.hour * 60 + DAY_START.minute + slot * SLOT_MINUTES
    return time(minutes // 60, minutes % 60)


class MeetingSeries(db.Model):
    """Weekly recurring meeting confirmed for a team room."""

    __tablename__ = "meeting_series"

    id = db.Column(db.Integer, primary_key=True)
    team_room_id = db.Column(db.Integer, db.ForeignKey("team_rooms.id", ondelete="CASCADE"),
                             nullable=False, index=True)
    meeting_type = db.Column(db.String(30), nullable=False, default=MEETING_TYPE_INITIAL_REGULAR)
    day_of_week = db.Column(db.String(3), nullable=False, comment="mon..sun")
    start_time = db.Column(db.Time, nullable=False)
    duration_minutes = db.Column(db.Integer, nullable=False, default=60)
    created_at = db.Column(db.DateTime(timezone=True),
                           default=lambda: datetime.now(timezone.utc))

    meetings = db.relationship("Meeting", back_populates="series",
                               cascade="all, delete-orphan", lazy="select",
                               order_by="Meeting.start_at")

    def to_dict(self, include_meetings=False):
        d = {
            "id": self.id,
            "team_room_id": self.team_room_id,
            "meeting_type": self.meeting_type,
            "day_of_week": self.day_of_week,
            "start_time": self.start_time.strftime("%H:%M") if self.start_time else None,
            "duration_minutes": self.duration_minutes,
        }
        if include_meetings:
            d["meetings"] = [m.to_dict() for m in self.meetings]
        return d

    def __repr__(self):
        return f"<MeetingSeries room={self.team_room_id} {self.day_of_week} {self.start_time}>"


class Meeting(db.Model):
    """One occurrence of a MeetingSeries."""

    __tablename__ = "meetings"

    id = db.Column(db.Integer, primary_key=True)
    series_id = db.Column(db.Integer, db.ForeignKey("meeting_series.id", ondelete="CASCADE"),
                          nullable=False, index=True)
    team_room_id = db.Column(db.Integer, db.ForeignKey("team_rooms.id", ondelete="CASCADE"),
                             nullable=False, index=True)
    title = db.Column(db.String(100), nullable=False)
    start_at = db.Column(db.DateTime(timezone=True), nullable=False)
    duration_minutes = db.Column(db.Integer, nullable=False, default=60)

    series = db.relationship("MeetingSeries", back_populates="meetings")
    participants = db.relationship("MeetingParticipant", back_populates="meeting",
                                   cascade="all, delete-orphan", lazy="select")

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "start_at": self.start_at.isoformat() if self.start_at else None,
            "duration_minutes": self.duration_minutes,
            "participant_member_ids": sorted(p.member_id for p in self.participants),
        }


class MeetingParticipant(db.Model):
    """A team member invited to one meeting occurrence."""

    __tablename__ = "meeting_participants"
    __table_args__ = (
        db.UniqueConstraint("meeting_id", "member_id", name="uq_meeting_participant"),
    )

    id = db.Column(db.Integer, primary_key=True)
    meeting_id = db.Column(db.Integer, db.ForeignKey("meetings.id", ondelete="CASCADE"),
                           nullable=False, index=True)
    member_id = db.Column(db.Integer, db.ForeignKey("team_members.id", ondelete="CASCADE"),
                          nullable=False, index=True)

    meeting = db.relationship("Meeting", back_populates="participants")

    def __repr__(self):
        return f"<MeetingParticipant meeting={self.meeting_id} member={self.member_id}>"
