"""
Cosmos DB User repository.

Read-only access to user profiles owned by the account service, with a
secondary index for username lookups.
"""

import logging
from typing import Optional

from db.cosmos_session import USERNAME_LOOKUP_CONTAINER, USERS_CONTAINER, read_item
from models.cosmos_documents import UserDocument

logger = logging.getLogger(__name__)


class CosmosUserRepository:
    """Repository for user lookups using Cosmos DB."""

    async def get_by_id(self, user_id: str) -> Optional[UserDocument]:
        """Get a user by ID (direct point read - very efficient)."""
        data = await read_item(USERS_CONTAINER, user_id, partition_key=user_id)
        if data is None:
            return None
        return UserDocument(**data)

    async def get_by_username(self, username: str) -> Optional[UserDocument]:
        """
        Get a user by username using secondary index lookup.

        Two-step process:
        1. Look up user_id from username-lookup container
        2. Point read user from users container
        """
        username_lower = username.strip().lower()
        if not username_lower:
            return None

        lookup_data = await read_item(
            USERNAME_LOOKUP_CONTAINER,
            username_lower,  # lower-cased username is the ID in lookup container
            partition_key=username_lower,
        )
        if lookup_data is None:
            return None

        user_id = lookup_data.get("user_id")
        if not user_id:
            logger.warning(f"Username lookup for {username_lower} has no user_id")
            return None

        return await self.get_by_id(user_id)
