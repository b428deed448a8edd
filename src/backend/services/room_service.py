"""
Room Service

Room creation and lookup. The creator becomes the admin; optional initial
candidates are resolved by username and silently skipped when unknown.
"""

from typing import Optional

import structlog

from core.exceptions import AuthorizationError, NotFoundError, Reason, ValidationError
from models.cosmos_documents import (
    MemberRole,
    RoomDocument,
    RoomMember,
    RoomVisibility,
    VotingSystem,
)
from repositories.provider import RoomRepositoryProtocol, UserRepositoryProtocol
from services.ledger_service import LedgerService

logger = structlog.get_logger(__name__)


class RoomService:
    """Service for creating and reading rooms."""

    def __init__(
        self,
        rooms: RoomRepositoryProtocol,
        users: UserRepositoryProtocol,
        ledger: LedgerService,
    ):
        self.rooms = rooms
        self.users = users
        self.ledger = ledger

    async def create_room(
        self,
        actor_id: str,
        name: str,
        visibility: RoomVisibility = RoomVisibility.PUBLIC,
        voting_system: VotingSystem = VotingSystem.SIMPLE_MAJORITY,
        description: Optional[str] = None,
        tags: Optional[list[str]] = None,
        rules: Optional[str] = None,
        candidate_usernames: Optional[list[str]] = None,
    ) -> RoomDocument:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Missing required fields (name, visibility, votingSystem)", Reason.INVALID_ROOM)

        members: list[RoomMember] = []
        for username in candidate_usernames or []:
            user = await self.users.get_by_username(username)
            if user is None:
                logger.info("candidate_not_found", username=username)
                continue
            if user.id == actor_id or any(m.user_id == user.id for m in members):
                continue
            members.append(RoomMember(user_id=user.id, role=MemberRole.CANDIDATE))

        room = RoomDocument(
            name=name,
            description=description,
            admin_id=actor_id,
            members=members,
            visibility=visibility,
            voting_system=voting_system,
            tags=[tag.strip() for tag in tags or [] if tag and tag.strip()],
            rules=rules,
        )
        created = await self.rooms.create(room)
        logger.info("room_created", room_id=created.id, candidates=len(members))

        self.ledger.mirror_room(created)
        return created

    async def get_room(self, room_id: str, actor_id: str) -> RoomDocument:
        """Get a room. Private rooms are visible to their members only."""
        room = await self.rooms.get_by_id(room_id)
        if room is None:
            raise NotFoundError("Room not found", Reason.ROOM_NOT_FOUND)
        if room.visibility == RoomVisibility.PRIVATE.value and not room.has_member(actor_id):
            raise AuthorizationError("Access denied: You are not a member of this room.", Reason.NOT_A_MEMBER)
        return room
