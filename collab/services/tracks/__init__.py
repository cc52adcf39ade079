"""Subject track registry, in the fixed order the sweeper attempts them."""

from collab.core.exceptions import ValidationError
from collab.services.tracks.base import SubjectTrack
from collab.services.tracks.meeting_track import MeetingTrack
from collab.services.tracks.rule_track import RuleTrack
from collab.services.tracks.tool_track import ToolTrack

TRACKS: tuple[SubjectTrack, ...] = (ToolTrack(), RuleTrack(), MeetingTrack())

_BY_SUBJECT = {t.subject: t for t in TRACKS}


def get_track(subject: str) -> SubjectTrack:
    try:
        return _BY_SUBJECT[subject]
    except KeyError:
        raise ValidationError(
            f"Unknown subject '{subject}'",
            details={"subject": f"must be one of {', '.join(_BY_SUBJECT)}"},
        ) from None


__all__ = ["TRACKS", "SubjectTrack", "ToolTrack", "RuleTrack", "MeetingTrack", "get_track"]
