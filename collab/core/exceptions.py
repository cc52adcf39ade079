"""
Platform-wide exception hierarchy.

Services raise these types; ``collab.utils.errors.register_error_handlers``
maps them to HTTP responses once, so blueprints never translate errors by hand.

Usage:
    from collab.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="TeamRoom", resource_id=42)
    raise ValidationError("tool_votes is required", details={"tool_votes": "missing"})
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist.

    Args:
        resource: Human-readable model/entity name (e.g. "TeamRoom", "ToolProposal").
        resource_id: The PK that was looked up. Included in logs, not in HTTP response.
    """

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input fails business-rule validation in the service layer.

    Maps to HTTP 422 in the error handlers.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when an operation collides with existing state.

    Maps to HTTP 409.
    """


class AuthenticationError(Exception):
    """Raised when the request carries no caller identity.

    Maps to HTTP 401.
    """


class PermissionDeniedError(Exception):
    """Raised when the acting member lacks the authority for an operation.

    Maps to HTTP 403.
    """


# ── Setup-engine specific ──────────────────────────────────────────────────


class NotATeamMemberError(PermissionDeniedError):
    """The acting user is not a current member of the team room."""

    def __init__(self, team_room_id: int, user_id: int | None) -> None:
        self.team_room_id = team_room_id
        self.user_id = user_id
        super().__init__(f"User {user_id} is not a member of team room {team_room_id}")


class DuplicateVoteError(ConflictError):
    """A bulk submission already exists for (subject, member).

    Raised by the ledger pre-check and, authoritatively, when the storage
    unique constraint rejects a racing insert.
    """

    def __init__(self, subject: str, member_id: int) -> None:
        self.subject = subject
        self.member_id = member_id
        super().__init__(f"Member {member_id} has already submitted {subject} votes")


class SubjectClosedError(ConflictError):
    """Voting on a subject that has already been confirmed."""

    def __init__(self, subject: str, team_room_id: int) -> None:
        self.subject = subject
        self.team_room_id = team_room_id
        super().__init__(f"{subject} voting is closed for team room {team_room_id}")


class NotConfirmedError(ConflictError):
    """The subject has no confirmed outcome yet (not a permanent failure)."""

    def __init__(self, subject: str, team_room_id: int) -> None:
        self.subject = subject
        self.team_room_id = team_room_id
        super().__init__(f"{subject} is not yet confirmed for team room {team_room_id}")


class InvalidTransitionError(ConflictError):
    """A team room workflow transition outside the allowed edges."""

    def __init__(self, current: str, target: str) -> None:
        self.current = current
        self.target = target
        super().__init__(f"Invalid workflow transition {current} -> {target}")


class ConfirmationError(Exception):
    """A track could not derive its outcome yet.

    Nothing is persisted when this is raised, so the caller may retry.
    """

    def __init__(self, subject: str, team_room_id: int, reason: str) -> None:
        self.subject = subject
        self.team_room_id = team_room_id
        self.reason = reason
        super().__init__(f"{subject} confirmation failed for team room {team_room_id}: {reason}")
