"""
Team Collaboration Setup Engine
Confirmed outcome header.

One row per (subject, team room). The detail rows of the subject
(TeamTool, TeamRule, MeetingSeries/Meeting) are written in the same
transaction, so the presence of this row means the whole outcome exists.
"""

from collab.core.clock import as_utc
from collab.models import db


class ConfirmedOutcome(db.Model):
    __tablename__ = "confirmed_outcomes"
    __table_args__ = (
        db.UniqueConstraint("subject", "team_room_id", name="uq_confirmed_outcome_subject_room"),
    )

    id = db.Column(db.Integer, primary_key=True)
    subject = db.Column(db.String(20), nullable=False, comment="tool, rule, meeting")
    team_room_id = db.Column(db.Integer, db.ForeignKey("team_rooms.id", ondelete="CASCADE"),
                             nullable=False, index=True)
    payload = db.Column(db.JSON, nullable=False, default=dict,
                        comment="Snapshot of the derived outcome")
    confirmed_at = db.Column(db.DateTime(timezone=True), nullable=False)

    def to_dict(self):
        return {
            "subject": self.subject,
            "team_room_id": self.team_room_id,
            "payload": self.payload,
            "confirmed_at": as_utc(self.confirmed_at).isoformat() if self.confirmed_at else None,
        }

    def __repr__(self):
        return f"<ConfirmedOutcome {self.subject} room={self.team_room_id}>"
