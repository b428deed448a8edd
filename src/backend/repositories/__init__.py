"""Repository modules for database access."""

from repositories.cosmos_ballot_repository import CosmosBallotRepository
from repositories.cosmos_notification_repository import CosmosNotificationRepository
from repositories.cosmos_room_repository import CosmosRoomRepository
from repositories.cosmos_user_repository import CosmosUserRepository

__all__ = [
    "CosmosBallotRepository",
    "CosmosNotificationRepository",
    "CosmosRoomRepository",
    "CosmosUserRepository",
]
