"""Document models module."""

from models.cosmos_documents import (
    BallotChoiceDocument,
    BallotDocument,
    InvitationPayload,
    JoinRequestPayload,
    MemberRole,
    NotificationData,
    NotificationDocument,
    NotificationType,
    RequestStatus,
    RoomDocument,
    RoomMember,
    RoomVisibility,
    UserDocument,
    VotingSystem,
)

__all__ = [
    "BallotChoiceDocument",
    "BallotDocument",
    "InvitationPayload",
    "JoinRequestPayload",
    "MemberRole",
    "NotificationData",
    "NotificationDocument",
    "NotificationType",
    "RequestStatus",
    "RoomDocument",
    "RoomMember",
    "RoomVisibility",
    "UserDocument",
    "VotingSystem",
]
