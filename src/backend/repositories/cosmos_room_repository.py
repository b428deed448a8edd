"""
Cosmos DB Room repository.

Owns the authoritative member list of every room. Membership changes are
atomic "add if absent" / "remove if present" updates guarded by the room
document's ETag.
"""

import logging
from typing import Optional

from core.config import settings
from db.cosmos_session import ROOMS_CONTAINER, create_item, read_item
from models.cosmos_documents import MemberRole, RoomDocument
from repositories.concurrency import optimistic_update

logger = logging.getLogger(__name__)


class CosmosRoomRepository:
    """Repository for room and membership operations using Cosmos DB."""

    # ========================================================================
    # Read Operations
    # ========================================================================

    async def get_by_id(self, room_id: str) -> Optional[RoomDocument]:
        """Get a room by ID (direct point read)."""
        data = await read_item(ROOMS_CONTAINER, room_id, partition_key=room_id)
        if data is None:
            return None
        return RoomDocument(**data)

    async def has_member(self, room_id: str, user_id: str) -> bool:
        room = await self.get_by_id(room_id)
        return room is not None and room.has_member(user_id)

    async def has_role(self, room_id: str, user_id: str, role: MemberRole) -> bool:
        room = await self.get_by_id(room_id)
        return room is not None and room.has_role(user_id, role)

    # ========================================================================
    # Write Operations
    # ========================================================================

    async def create(self, room: RoomDocument) -> RoomDocument:
        """Create a room document."""
        saved = await create_item(ROOMS_CONTAINER, room.to_item())
        logger.debug(f"Created room {room.id} with {len(room.members)} members")
        return RoomDocument(**saved)

    async def add_member_if_absent(
        self,
        room_id: str,
        user_id: str,
        role: MemberRole | str,
    ) -> tuple[Optional[RoomDocument], bool]:
        """
        Atomically append a member unless they are already in the room.

        Returns:
            (room, added). ``room`` is None if the room doesn't exist.
        """
        room, added = await optimistic_update(
            ROOMS_CONTAINER,
            room_id,
            RoomDocument,
            lambda doc: doc.add_member(user_id, role),
            settings.ROOM_WRITE_MAX_RETRIES,
        )
        if added:
            logger.debug(f"Added member {user_id} to room {room_id}")
        return room, added

    async def remove_member(self, room_id: str, user_id: str) -> tuple[Optional[RoomDocument], bool]:
        """
        Atomically remove a non-admin member.

        Returns:
            (room, removed). ``room`` is None if the room doesn't exist.
        """
        room, removed = await optimistic_update(
            ROOMS_CONTAINER,
            room_id,
            RoomDocument,
            lambda doc: doc.remove_member(user_id),
            settings.ROOM_WRITE_MAX_RETRIES,
        )
        if removed:
            logger.debug(f"Removed member {user_id} from room {room_id}")
        return room, removed
