"""
Repository provider for dependency injection.

This module provides a unified interface for accessing repositories
using Cosmos DB as the primary data store.

Usage:
    from repositories.provider import get_room_repository

    # In FastAPI dependencies:
    async def some_endpoint(
        room_repo: RoomRepositoryProtocol = Depends(get_room_repository),
    ):
        room = await room_repo.get_by_id(room_id)
"""

import logging
from typing import Optional, Protocol, runtime_checkable

from core.config import settings
from models.cosmos_documents import (
    BallotDocument,
    MemberRole,
    NotificationDocument,
    NotificationType,
    RequestStatus,
    RoomDocument,
    UserDocument,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Repository Protocols (Interfaces)
# =============================================================================


@runtime_checkable
class UserRepositoryProtocol(Protocol):
    """Protocol defining user lookup operations."""

    async def get_by_id(self, user_id: str) -> Optional[UserDocument]: ...
    async def get_by_username(self, username: str) -> Optional[UserDocument]: ...


@runtime_checkable
class RoomRepositoryProtocol(Protocol):
    """Protocol defining room membership operations."""

    async def get_by_id(self, room_id: str) -> Optional[RoomDocument]: ...
    async def create(self, room: RoomDocument) -> RoomDocument: ...
    async def add_member_if_absent(
        self, room_id: str, user_id: str, role: MemberRole | str
    ) -> tuple[Optional[RoomDocument], bool]: ...
    async def remove_member(self, room_id: str, user_id: str) -> tuple[Optional[RoomDocument], bool]: ...


@runtime_checkable
class BallotRepositoryProtocol(Protocol):
    """Protocol defining ballot operations."""

    async def get_by_id(self, ballot_id: str) -> Optional[BallotDocument]: ...
    async def list_for_room(self, room_id: str) -> list[BallotDocument]: ...
    async def create(self, ballot: BallotDocument) -> BallotDocument: ...
    async def apply_vote(
        self, ballot_id: str, voter_id: str, choice_ids: list[str]
    ) -> Optional[BallotDocument]: ...


@runtime_checkable
class NotificationRepositoryProtocol(Protocol):
    """Protocol defining notification operations."""

    async def get_by_id(self, notification_id: str) -> Optional[NotificationDocument]: ...
    async def find_pending(
        self,
        notification_type: NotificationType,
        room_id: str,
        recipient_id: Optional[str] = None,
        performer_id: Optional[str] = None,
    ) -> Optional[NotificationDocument]: ...
    async def list_for_user(
        self, user_id: str, unread_only: bool = False, limit: int = 50
    ) -> list[NotificationDocument]: ...
    async def create(self, notification: NotificationDocument) -> NotificationDocument: ...
    async def resolve(
        self, notification_id: str, message: str, request_status: Optional[RequestStatus] = None
    ) -> Optional[NotificationDocument]: ...
    async def unresolve(
        self, notification_id: str, message: str, request_status: Optional[RequestStatus] = None
    ) -> Optional[NotificationDocument]: ...
    async def mark_read(self, notification_id: str) -> Optional[NotificationDocument]: ...
    async def delete_pending_join_request(self, room_id: str, requester_id: str) -> bool: ...


# =============================================================================
# Repository Factory Functions
# =============================================================================


def _require_cosmos() -> None:
    if not settings.cosmos_enabled:
        raise RuntimeError(
            "Cosmos DB is not configured. Set AZURE_COSMOS_ENDPOINT or AZURE_COSMOS_CONNECTION_STRING."
        )


async def get_user_repository() -> UserRepositoryProtocol:
    """Get the user repository."""
    _require_cosmos()
    from repositories.cosmos_user_repository import CosmosUserRepository

    return CosmosUserRepository()


async def get_room_repository() -> RoomRepositoryProtocol:
    """Get the room repository."""
    _require_cosmos()
    from repositories.cosmos_room_repository import CosmosRoomRepository

    return CosmosRoomRepository()


async def get_ballot_repository() -> BallotRepositoryProtocol:
    """Get the ballot repository."""
    _require_cosmos()
    from repositories.cosmos_ballot_repository import CosmosBallotRepository

    return CosmosBallotRepository()


async def get_notification_repository() -> NotificationRepositoryProtocol:
    """Get the notification repository."""
    _require_cosmos()
    from repositories.cosmos_notification_repository import CosmosNotificationRepository

    return CosmosNotificationRepository()
