"""
Team Collaboration Setup Engine
Vote ledger models.

Two submission modes:
    - bulk:     one VoteBallot per (subject, team room, member). The unique
                constraint on the ballot is the storage-level arbiter of
                "first writer wins"; detail rows hang off the ballot and are
                never mutated.
    - per_item: RuleVote rows keyed by (team room, member, rule template),
                updated in place until the subject is confirmed.
"""

from datetime import datetime, timezone

from collab.models import db

SUBMISSION_BULK = "bulk"
SUBMISSION_PER_ITEM = "per_item"

SUBMISSION_MODES = {
    "tool": SUBMISSION_BULK,
    "rule": SUBMISSION_PER_ITEM,
    "meeting": SUBMISSION_BULK,
}


class VoteBallot(db.Model):
    """Header row for a bulk submission."""

    __tablename__ = "vote_ballots"
    __table_args__ = (
        db.UniqueConstraint("subject", "team_room_id", "member_id",
                            name="uq_vote_ballot_subject_room_member"),
    )

    id = db.Column(db.Integer, primary_key=True)
    subject = db.Column(db.String(20), nullable=False, comment="tool, meeting")
    team_room_id = db.Column(db.Integer, db.ForeignKey("team_rooms.id", ondelete="CASCADE"),
                             nullable=False, index=True)
    member_id = db.Column(db.Integer, db.ForeignKey("team_members.id", ondelete="CASCADE"),
                          nullable=False)
    submitted_at = db.Column(db.DateTime(timezone=True), nullable=False,
                             default=lambda: datetime.now(timezone.utc))

    def __repr__(self):
        return f"<VoteBallot {self.subject} room={self.team_room_id} member={self.member_id}>"


class ToolVote(db.Model):
    """One selected tool inside a member's tool ballot."""

    __tablename__ = "member_tool_votes"
    __table_args__ = (
        db.UniqueConstraint("ballot_id", "category_id", "tool_id",
                            name="uq_tool_vote_ballot_category_tool"),
        db.Index("ix_tool_vote_room_category", "team_room_id", "category_id"),
    )

    id = db.Column(db.Integer, primary_key=True)
    ballot_id = db.Column(db.Integer, db.ForeignKey("vote_ballots.id", ondelete="CASCADE"),
                          nullable=False, index=True)
    team_room_id = db.Column(db.Integer, db.ForeignKey("team_rooms.id", ondelete="CASCADE"),
                             nullable=False)
    member_id = db.Column(db.Integer, nullable=False)
    category_id = db.Column(db.Integer, nullable=False)
    tool_id = db.Column(db.Integer, nullable=False)


class RuleVote(db.Model):
    """Agree / disagree on one rule template; mutable until rules are confirmed."""

    __tablename__ = "member_rule_votes"
    __table_args__ = (
        db.UniqueConstraint("team_room_id", "member_id", "rule_template_id",
                            name="uq_rule_vote_room_member_rule"),
    )

    id = db.Column(db.Integer, primary_key=True)
    team_room_id = db.Column(db.Integer, db.ForeignKey("team_rooms.id", ondelete="CASCADE"),
                             nullable=False, index=True)
    member_id = db.Column(db.Integer, db.ForeignKey("team_members.id", ondelete="CASCADE"),
                          nullable=False)
    rule_template_id = db.Column(db.Integer, db.ForeignKey("rule_templates.id", ondelete="CASCADE"),
                                 nullable=False)
    is_agree = db.Column(db.Boolean, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True),
                           default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(db.DateTime(timezone=True),
                           default=lambda: datetime.now(timezone.utc),
                           onupdate=lambda: datetime.now(timezone.utc))

    def __repr__(self):
        return f"<RuleVote member={self.member_id} rule={self.rule_template_id} agree={self.is_agree}>"


class MeetingAvailability(db.Model):
    """Weekly availability bitmaps + preferred block inside a meeting ballot.

    Bit ``i`` of a day's bitmap means the half-hour slot starting at
    08:00 + 30*i minutes is free.
    """

    __tablename__ = "meeting_availabilities"

    id = db.Column(db.Integer, primary_key=True)
    ballot_id = db.Column(db.Integer, db.ForeignKey("vote_ballots.id", ondelete="CASCADE"),
                          nullable=False, unique=True)
    team_room_id = db.Column(db.Integer, db.ForeignKey("team_rooms.id", ondelete="CASCADE"),
                             nullable=False, index=True)
    member_id = db.Column(db.Integer, nullable=False)
    availability_mon = db.Column(db.BigInteger, nullable=False, default=0)
    availability_tue = db.Column(db.BigInteger, nullable=False, default=0)
    availability_wed = db.Column(db.BigInteger, nullable=False, default=0)
    availability_thu = db.Column(db.BigInteger, nullable=False, default=0)
    availability_fri = db.Column(db.BigInteger, nullable=False, default=0)
    availability_sat = db.Column(db.BigInteger, nullable=False, default=0)
    availability_sun = db.Column(db.BigInteger, nullable=False, default=0)
    preferred_block = db.Column(db.String(20), nullable=False)

    def bitmaps(self) -> dict[str, int]:
        return {
            "mon": self.availability_mon,
            "tue": self.availability_tue,
            "wed": self.availability_wed,
            "thu": self.availability_thu,
            "fri": self.availability_fri,
            "sat": self.availability_sat,
            "sun": self.availability_sun,
        }
