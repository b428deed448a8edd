"""
Domain error taxonomy.

Every error raised by the voting engine and the membership workflow carries a
stable machine-readable ``reason`` plus a human-readable ``message``. The API
layer renders them as ``{"reason": ..., "detail": ...}`` with the class's
HTTP status code.
"""

from fastapi import status


class DomainError(Exception):
    """Base class for all expected, user-facing failures."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    default_reason: str = "domain_error"

    def __init__(self, message: str, reason: str | None = None):
        super().__init__(message)
        self.message = message
        self.reason = reason or self.default_reason

    def to_dict(self) -> dict[str, str]:
        return {"reason": self.reason, "detail": self.message}


class ValidationError(DomainError):
    """Malformed or unacceptable input."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_reason = "validation_error"


class AuthorizationError(DomainError):
    """Caller lacks the role or is not the addressee of the action."""

    status_code = status.HTTP_403_FORBIDDEN
    default_reason = "forbidden"


class NotFoundError(DomainError):
    """Referenced room, ballot, user or notification does not exist."""

    status_code = status.HTTP_404_NOT_FOUND
    default_reason = "not_found"


class ConflictError(DomainError):
    """Action collides with existing state (already voted, duplicate pending)."""

    status_code = status.HTTP_409_CONFLICT
    default_reason = "conflict"


class StateError(ConflictError):
    """Notification is not in a state that permits the requested transition."""

    default_reason = "invalid_state"


class ConcurrencyError(DomainError):
    """Optimistic write kept losing to concurrent writers."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_reason = "concurrent_modification"


class DownstreamError(Exception):
    """
    Failure of a best-effort external sink (the vote ledger).

    Not a DomainError: it is logged at the call site and never reaches the
    caller of the primary operation.
    """

    def __init__(self, operation: str, message: str):
        super().__init__(f"{operation}: {message}")
        self.operation = operation
        self.message = message


# ============================================================================
# Reason codes
# ============================================================================


class Reason:
    """Stable reason strings returned to clients."""

    # Voting
    LINKAGE_MISMATCH = "linkage_mismatch"
    NOT_A_MEMBER = "not_a_member"
    VOTING_NOT_STARTED = "voting_not_started"
    VOTING_CLOSED = "voting_closed"
    INVALID_SELECTION = "invalid_selection"
    TOO_MANY_CHOICES = "too_many_choices"
    UNKNOWN_CHOICE = "unknown_choice"
    ALREADY_VOTED = "already_voted"
    INVALID_BALLOT = "invalid_ballot"
    BALLOT_NOT_FOUND = "ballot_not_found"

    # Rooms and membership
    ROOM_NOT_FOUND = "room_not_found"
    INVALID_ROOM = "invalid_room"
    NOT_ADMIN = "not_admin"
    ADMIN_CANNOT_LEAVE = "admin_cannot_leave"
    ALREADY_MEMBER = "already_member"
    NOT_PUBLIC = "not_public"
    INVALID_ROLE = "invalid_role"
    UNKNOWN_USER = "unknown_user"
    CANNOT_INVITE_SELF = "cannot_invite_self"

    # Notifications
    NOTIFICATION_NOT_FOUND = "notification_not_found"
    JOIN_REQUEST_NOT_FOUND = "join_request_not_found"
    DUPLICATE_PENDING = "duplicate_pending"
    NOT_RECIPIENT = "not_recipient"
    WRONG_RECIPIENT = "wrong_recipient"
    INVALID_STATE = "invalid_state"
    INVALID_ACTION = "invalid_action"
