"""
Team Collaboration Setup Engine
Team room, membership and setup-window models.

Models:
    - TeamRoom: workflow axis (PENDING -> SETUP -> COMPLETED) + lifecycle axis
    - TeamMember: membership with HOST / LEADER / MEMBER role
    - TeamRoomSetup: per-room onboarding window (deadline + one flag per subject)
"""

from datetime import datetime, timedelta, timezone

from collab.core.clock import as_utc
from collab.core.exceptions import InvalidTransitionError, ValidationError
from collab.models import db

# ── Constants ────────────────────────────────────────────────────────────────

WORKFLOW_PENDING = "PENDING"
WORKFLOW_SETUP = "SETUP"
WORKFLOW_COMPLETED = "COMPLETED"

LIFECYCLE_ACTIVE = "ACTIVE"
LIFECYCLE_ARCHIVED = "ARCHIVED"

WORKFLOW_TRANSITIONS = {
    WORKFLOW_PENDING:   [WORKFLOW_SETUP],
    WORKFLOW_SETUP:     [WORKFLOW_COMPLETED],
    WORKFLOW_COMPLETED: [],
}

ROLE_HOST = "HOST"
ROLE_LEADER = "LEADER"
ROLE_MEMBER = "MEMBER"
TEAM_ROLES = {ROLE_HOST, ROLE_LEADER, ROLE_MEMBER}

SUBJECT_TOOL = "tool"
SUBJECT_RULE = "rule"
SUBJECT_MEETING = "meeting"
# Fixed attempt order for the sweeper
SUBJECTS = (SUBJECT_TOOL, SUBJECT_RULE, SUBJECT_MEETING)

_SUBJECT_FLAGS = {
    SUBJECT_TOOL: "tool_completed",
    SUBJECT_RULE: "rule_completed",
    SUBJECT_MEETING: "meeting_completed",
}


def validate_workflow_transition(current: str, target: str) -> None:
    """Raise InvalidTransitionError unless current -> target is an allowed edge."""
    if target not in WORKFLOW_TRANSITIONS.get(current, []):
        raise InvalidTransitionError(current, target)


def subject_flag(subject: str) -> str:
    """Column name of the completion flag for a subject."""
    try:
        return _SUBJECT_FLAGS[subject]
    except KeyError:
        raise ValidationError(
            f"Unknown subject '{subject}'",
            details={"subject": f"must be one of {', '.join(SUBJECTS)}"},
        ) from None


class TeamRoom(db.Model):
    """A team's shared workspace."""

    __tablename__ = "team_rooms"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(100), nullable=False)
    description = db.Column(db.String(500), default="")
    deadline = db.Column(db.DateTime(timezone=True), nullable=False,
                         comment="Project deadline; meeting occurrences stop here")
    workflow = db.Column(db.String(20), nullable=False, default=WORKFLOW_PENDING,
                         comment="PENDING, SETUP, COMPLETED")
    lifecycle = db.Column(db.String(20), nullable=False, default=LIFECYCLE_ACTIVE,
                          comment="ACTIVE, ARCHIVED")

    created_at = db.Column(db.DateTime(timezone=True),
                           default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(db.DateTime(timezone=True),
                           default=lambda: datetime.now(timezone.utc),
                           onupdate=lambda: datetime.now(timezone.utc))

    members = db.relationship("TeamMember", back_populates="team_room",
                              cascade="all, delete-orphan", lazy="select")

    def transition_to(self, target: str) -> None:
        validate_workflow_transition(self.workflow, target)
        self.workflow = target

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "deadline": self.deadline.isoformat() if self.deadline else None,
            "workflow": self.workflow,
            "lifecycle": self.lifecycle,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<TeamRoom #{self.id} {self.title!r} [{self.workflow}]>"


class TeamMember(db.Model):
    """Membership of a user in a team room."""

    __tablename__ = "team_members"
    __table_args__ = (
        db.UniqueConstraint("team_room_id", "user_id", name="uq_team_member_room_user"),
    )

    id = db.Column(db.Integer, primary_key=True)
    team_room_id = db.Column(db.Integer, db.ForeignKey("team_rooms.id", ondelete="CASCADE"),
                             nullable=False, index=True)
    user_id = db.Column(db.Integer, nullable=False, index=True,
                        comment="Identity issued by the auth gateway")
    name = db.Column(db.String(100), default="")
    role = db.Column(db.String(20), nullable=False, default=ROLE_MEMBER,
                     comment="HOST, LEADER, MEMBER")
    created_at = db.Column(db.DateTime(timezone=True),
                           default=lambda: datetime.now(timezone.utc))

    team_room = db.relationship("TeamRoom", back_populates="members")

    def has_management_authority(self) -> bool:
        return self.role in (ROLE_HOST, ROLE_LEADER)

    def to_dict(self):
        return {
            "member_id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "role": self.role,
        }

    def __repr__(self):
        return f"<TeamMember room={self.team_room_id} user={self.user_id} {self.role}>"


class TeamRoomSetup(db.Model):
    """
    Onboarding window of a team room.

    Created once when leader selection ends. Each ``*_completed`` flag moves
    false -> true exactly once, by whichever path (early completion or the
    deadline sweeper) confirms that subject first.
    """

    __tablename__ = "team_room_setups"

    id = db.Column(db.Integer, primary_key=True)
    team_room_id = db.Column(db.Integer, db.ForeignKey("team_rooms.id", ondelete="CASCADE"),
                             nullable=False, unique=True)
    deadline = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    tool_completed = db.Column(db.Boolean, nullable=False, default=False)
    rule_completed = db.Column(db.Boolean, nullable=False, default=False)
    meeting_completed = db.Column(db.Boolean, nullable=False, default=False)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False)

    team_room = db.relationship("TeamRoom")

    @classmethod
    def create(cls, team_room_id: int, now: datetime, duration: timedelta) -> "TeamRoomSetup":
        return cls(
            team_room_id=team_room_id,
            deadline=as_utc(now) + duration,
            tool_completed=False,
            rule_completed=False,
            meeting_completed=False,
            created_at=as_utc(now),
        )

    def is_completed(self, subject: str) -> bool:
        return bool(getattr(self, subject_flag(subject)))

    def mark_completed(self, subject: str) -> bool:
        """Set one flag. Returns False when it was already set."""
        flag = subject_flag(subject)
        if getattr(self, flag):
            return False
        setattr(self, flag, True)
        return True

    def is_all_completed(self) -> bool:
        return bool(self.tool_completed and self.rule_completed and self.meeting_completed)

    def is_expired(self, now: datetime) -> bool:
        return as_utc(now) > as_utc(self.deadline)

    def pending_subjects(self) -> list[str]:
        return [s for s in SUBJECTS if not self.is_completed(s)]

    def to_dict(self):
        return {
            "team_room_id": self.team_room_id,
            "deadline": as_utc(self.deadline).isoformat() if self.deadline else None,
            "tool_completed": bool(self.tool_completed),
            "rule_completed": bool(self.rule_completed),
            "meeting_completed": bool(self.meeting_completed),
            "is_all_completed": self.is_all_completed(),
            "completed_at": as_utc(self.completed_at).isoformat() if self.completed_at else None,
        }

    def __repr__(self):
        flags = "".join("1" if self.is_completed(s) else "0" for s in SUBJECTS)
        return f"<TeamRoomSetup room={self.team_room_id} flags={flags}>"
