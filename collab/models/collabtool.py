"""
Team Collaboration Setup Engine
Collaboration tool models — catalogue, proposals and confirmed team tools.
"""

from datetime import datetime, timezone

from collab.models import db

# ── Constants ────────────────────────────────────────────────────────────────

TOOL_CATEGORIES = {
    1: "communication",
    2: "documentation",
    3: "design",
    4: "development",
}

# category_id -> built-in tool ids offered to every team
TOOL_CATALOG = {
    1: frozenset({101, 102, 103, 104}),   # slack, discord, kakaotalk, teams
    2: frozenset({201, 202, 203}),        # notion, google docs, confluence
    3: frozenset({301, 302, 303}),        # figma, canva, miro
    4: frozenset({401, 402, 403}),        # github, gitlab, jira
}

PROPOSAL_PENDING = "PENDING"
PROPOSAL_APPROVED = "APPROVED"
PROPOSAL_REJECTED = "REJECTED"
PROPOSAL_DECISIONS = {PROPOSAL_PENDING, PROPOSAL_APPROVED, PROPOSAL_REJECTED}


class ToolProposal(db.Model):
    """
    A member's request to add a tool that is not in the built-in catalogue.

    Decided exactly once by a member with management authority; APPROVED
    proposals become eligible choices for tool ballots of the same room.
    """

    __tablename__ = "team_tool_proposals"
    __table_args__ = (
        db.Index("ix_tool_proposal_room_decision", "team_room_id", "decision"),
    )

    id = db.Column(db.Integer, primary_key=True)
    team_room_id = db.Column(db.Integer, db.ForeignKey("team_rooms.id", ondelete="CASCADE"),
                             nullable=False)
    category_id = db.Column(db.Integer, nullable=False)
    tool_id = db.Column(db.Integer, nullable=False)
    proposer_member_id = db.Column(db.Integer, db.ForeignKey("team_members.id", ondelete="SET NULL"),
                                   nullable=True)
    decision = db.Column(db.String(20), nullable=False, default=PROPOSAL_PENDING,
                         comment="PENDING, APPROVED, REJECTED")
    decided_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True),
                           default=lambda: datetime.now(timezone.utc))

    def is_pending(self) -> bool:
        return self.decision == PROPOSAL_PENDING

    def to_dict(self):
        return {
            "id": self.id,
            "team_room_id": self.team_room_id,
            "category_id": self.category_id,
            "tool_id": self.tool_id,
            "proposer_member_id": self.proposer_member_id,
            "decision": self.decision,
            "decided_at": self.decided_at.isoformat() if self.decided_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<ToolProposal #{self.id} {self.category_id}/{self.tool_id} [{self.decision}]>"


class TeamTool(db.Model):
    """A confirmed tool of a team room (written by the tool track's confirm)."""

    __tablename__ = "team_tools"
    __table_args__ = (
        db.UniqueConstraint("team_room_id", "category_id", "tool_id",
                            name="uq_team_tool_room_category_tool"),
    )

    id = db.Column(db.Integer, primary_key=True)
    team_room_id = db.Column(db.Integer, db.ForeignKey("team_rooms.id", ondelete="CASCADE"),
                             nullable=False, index=True)
    category_id = db.Column(db.Integer, nullable=False)
    tool_id = db.Column(db.Integer, nullable=False)
    vote_count = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True),
                           default=lambda: datetime.now(timezone.utc))
