"""Team room lookups and membership checks shared by the subject tracks."""

from collab.core.exceptions import NotATeamMemberError, NotFoundError, PermissionDeniedError
from collab.models import db
from collab.models.teamroom import TeamMember, TeamRoom


def get_team_room(team_room_id: int) -> TeamRoom:
    room = db.session.get(TeamRoom, team_room_id)
    if not room:
        raise NotFoundError(resource="TeamRoom", resource_id=team_room_id)
    return room


def require_member(team_room_id: int, user_id) -> TeamMember:
    """Return the caller's membership or raise NotATeamMemberError."""
    get_team_room(team_room_id)
    member = None
    if user_id is not None:
        member = TeamMember.query.filter_by(team_room_id=team_room_id, user_id=user_id).first()
    if not member:
        raise NotATeamMemberError(team_room_id, user_id)
    return member


def require_manager(team_room_id: int, user_id) -> TeamMember:
    member = require_member(team_room_id, user_id)
    if not member.has_management_authority():
        raise PermissionDeniedError("Only the team host or leader can do this")
    return member


def member_count(team_room_id: int) -> int:
    return TeamMember.query.filter_by(team_room_id=team_room_id).count()
