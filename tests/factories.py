"""ORM factories shared by the test modules. Every factory commits."""

from datetime import datetime, timedelta, timezone

from collab.models import db
from collab.models.rule import RuleTemplate
from collab.models.teamroom import (
    ROLE_HOST,
    ROLE_LEADER,
    ROLE_MEMBER,
    WORKFLOW_PENDING,
    TeamMember,
    TeamRoom,
)

# Monday 10:00 UTC
T0 = datetime(2026, 3, 2, 10, 0, tzinfo=timezone.utc)


def make_room(title="Capstone Team", deadline=None, workflow=WORKFLOW_PENDING):
    room = TeamRoom(
        title=title,
        deadline=deadline or T0 + timedelta(days=30),
        workflow=workflow,
    )
    db.session.add(room)
    db.session.commit()
    return room


def make_member(room, user_id, role=ROLE_MEMBER, name=None):
    member = TeamMember(
        team_room_id=room.id,
        user_id=user_id,
        role=role,
        name=name or f"user-{user_id}",
    )
    db.session.add(member)
    db.session.commit()
    return member


def make_templates(*contents):
    templates = [RuleTemplate(content=c, is_active=True) for c in contents]
    db.session.add_all(templates)
    db.session.commit()
    return templates


def auth(user_id):
    """Request headers for the acting user."""
    return {"X-User-Id": str(user_id)}


class Team:
    """A team room plus its members, addressed by user id."""

    def __init__(self, room, members):
        self.room = room
        self.members = members

    @property
    def id(self):
        return self.room.id

    @property
    def user_ids(self):
        return [m.user_id for m in self.members]

    def member(self, user_id):
        return next(m for m in self.members if m.user_id == user_id)


def make_team(user_ids=(1, 2, 3, 4), deadline=None, workflow=WORKFLOW_PENDING):
    """First user is HOST, second LEADER, the rest MEMBER."""
    room = make_room(deadline=deadline, workflow=workflow)
    roles = [ROLE_HOST, ROLE_LEADER]
    members = [
        make_member(room, uid, role=roles[i] if i < len(roles) else ROLE_MEMBER)
        for i, uid in enumerate(user_ids)
    ]
    return Team(room, members)


# ── Ballot builders ──────────────────────────────────────────────────────


def day_slots(*free_slots):
    """32 half-hour flags with the given slots free."""
    return [i in free_slots for i in range(32)]


def availability(**days):
    """``availability(mon=[10, 11])`` -> full 7-day payload."""
    return {
        day: day_slots(*days.get(day, ()))
        for day in ("mon", "tue", "wed", "thu", "fri", "sat", "sun")
    }
