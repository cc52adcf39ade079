"""
Team Collaboration Setup Engine
Notification domain model.

Models:
    - Notification: in-app notification record with read tracking
"""

from datetime import datetime, timezone

from collab.models import db

# ── Constants ────────────────────────────────────────────────────────────────

NOTIFICATION_CATEGORIES = {"tool", "rule", "meeting", "setup", "system"}
NOTIFICATION_SEVERITIES = {"info", "warning", "success"}


class Notification(db.Model):
    """
    In-app notification entity.

    One record per recipient per event; ``recipient="all"`` addresses every
    member of the team room.
    """

    __tablename__ = "notifications"

    id = db.Column(db.Integer, primary_key=True)
    team_room_id = db.Column(
        db.Integer, db.ForeignKey("team_rooms.id", ondelete="CASCADE"), nullable=True, index=True,
    )
    recipient = db.Column(db.String(150), default="all", index=True, comment="User id or 'all' for broadcast")
    title = db.Column(db.String(300), nullable=False)
    message = db.Column(db.Text, default="")
    category = db.Column(db.String(30), default="system")
    severity = db.Column(db.String(20), default="info")

    entity_type = db.Column(db.String(30), default="", comment="team_room/tool_proposal/...")
    entity_id = db.Column(db.Integer, nullable=True)

    is_read = db.Column(db.Boolean, default=False)
    read_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    def mark_read(self):
        self.is_read = True
        self.read_at = datetime.now(timezone.utc)

    def to_dict(self):
        return {
            "id": self.id,
            "team_room_id": self.team_room_id,
            "recipient": self.recipient,
            "title": self.title,
            "message": self.message,
            "category": self.category,
            "severity": self.severity,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "is_read": self.is_read,
            "read_at": self.read_at.isoformat() if self.read_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Notification {self.id}: {self.title[:40]}>"
