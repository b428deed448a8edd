"""
Cosmos DB Notification repository.

Notifications double as the durable "pending action" record of the membership
workflows. Resolving or cancelling one is a compare-and-swap on its ETag, so
exactly one of several racing resolvers (or a resolver racing a cancel) wins.
"""

import logging
from typing import Any, Optional

from core.config import settings
from db.cosmos_session import (
    NOTIFICATIONS_CONTAINER,
    PreconditionFailed,
    create_item,
    delete_item,
    query_items,
    read_item,
)
from models.cosmos_documents import NotificationDocument, NotificationType, RequestStatus
from repositories.concurrency import optimistic_update

logger = logging.getLogger(__name__)


class CosmosNotificationRepository:
    """Repository for notification operations using Cosmos DB."""

    # ========================================================================
    # Read Operations
    # ========================================================================

    async def get_by_id(self, notification_id: str) -> Optional[NotificationDocument]:
        """Get a notification by ID (direct point read)."""
        data = await read_item(NOTIFICATIONS_CONTAINER, notification_id, partition_key=notification_id)
        if data is None:
            return None
        return NotificationDocument(**data)

    async def find_pending(
        self,
        notification_type: NotificationType,
        room_id: str,
        recipient_id: Optional[str] = None,
        performer_id: Optional[str] = None,
    ) -> Optional[NotificationDocument]:
        """
        Find an unresolved actionable notification for a room.

        Args:
            notification_type: room_invitation or join_request_received
            room_id: Room the proposed change applies to
            recipient_id: Restrict to notifications addressed to this user
            performer_id: Restrict to notifications proposed by this user
        """
        conditions = [
            "c.type = @type",
            "c.data.room_id = @room_id",
            "c.is_read = false",
        ]
        parameters: list[dict[str, Any]] = [
            {"name": "@type", "value": notification_type.value},
            {"name": "@room_id", "value": room_id},
        ]
        if recipient_id is not None:
            conditions.append("c.user_id = @recipient_id")
            parameters.append({"name": "@recipient_id", "value": recipient_id})
        if performer_id is not None:
            conditions.append("c.data.performer_id = @performer_id")
            parameters.append({"name": "@performer_id", "value": performer_id})

        query = f"SELECT * FROM c WHERE {' AND '.join(conditions)}"
        results = await query_items(
            NOTIFICATIONS_CONTAINER,
            query,
            parameters=parameters,
            max_items=1,
        )
        if not results:
            return None
        return NotificationDocument(**results[0])

    async def list_for_user(
        self,
        user_id: str,
        unread_only: bool = False,
        limit: int = 50,
    ) -> list[NotificationDocument]:
        """Get a user's notifications, newest first."""
        unread_clause = "AND c.is_read = false" if unread_only else ""
        query = f"""
            SELECT * FROM c
            WHERE c.user_id = @user_id
              {unread_clause}
            ORDER BY c.created_at DESC
            OFFSET 0 LIMIT @limit
        """
        results = await query_items(
            NOTIFICATIONS_CONTAINER,
            query,
            parameters=[
                {"name": "@user_id", "value": user_id},
                {"name": "@limit", "value": limit},
            ],
        )
        return [NotificationDocument(**r) for r in results]

    # ========================================================================
    # Write Operations
    # ========================================================================

    async def create(self, notification: NotificationDocument) -> NotificationDocument:
        """Create a notification document."""
        saved = await create_item(NOTIFICATIONS_CONTAINER, notification.to_item())
        logger.debug(f"Created {notification.type} notification for user {notification.user_id}")
        return NotificationDocument(**saved)

    async def resolve(
        self,
        notification_id: str,
        message: str,
        request_status: Optional[RequestStatus] = None,
    ) -> Optional[NotificationDocument]:
        """
        Mark an actionable notification resolved, exactly once.

        Raises:
            StateError: It was already resolved, including by a concurrent
                request that committed first.
        """

        def _resolve(notification: NotificationDocument) -> bool:
            notification.resolve(message, request_status)
            return True

        notification, _ = await optimistic_update(
            NOTIFICATIONS_CONTAINER,
            notification_id,
            NotificationDocument,
            _resolve,
            settings.NOTIFICATION_WRITE_MAX_RETRIES,
        )
        return notification

    async def unresolve(
        self,
        notification_id: str,
        message: str,
        request_status: Optional[RequestStatus] = None,
    ) -> Optional[NotificationDocument]:
        """Put a resolved notification back to pending with its original message and status."""
        notification, reopened = await optimistic_update(
            NOTIFICATIONS_CONTAINER,
            notification_id,
            NotificationDocument,
            lambda n: n.reopen(message, request_status),
            settings.NOTIFICATION_WRITE_MAX_RETRIES,
        )
        if reopened:
            logger.info(f"Reopened notification {notification_id} after a failed membership change")
        return notification

    async def mark_read(self, notification_id: str) -> Optional[NotificationDocument]:
        """Mark an informational notification read (no-op if already read)."""

        def _mark(notification: NotificationDocument) -> bool:
            if notification.is_read:
                return False
            notification.is_read = True
            return True

        notification, _ = await optimistic_update(
            NOTIFICATIONS_CONTAINER,
            notification_id,
            NotificationDocument,
            _mark,
            settings.NOTIFICATION_WRITE_MAX_RETRIES,
        )
        return notification

    async def delete_pending_join_request(self, room_id: str, requester_id: str) -> bool:
        """
        Delete a requester's unresolved join request for a room.

        The delete is conditional on the ETag observed while pending, so a
        request resolved in the meantime is never deleted.

        Returns:
            True if a pending request was deleted, False if none exists.
        """
        for attempt in range(1, settings.NOTIFICATION_WRITE_MAX_RETRIES + 1):
            pending = await self.find_pending(
                NotificationType.JOIN_REQUEST_RECEIVED,
                room_id,
                performer_id=requester_id,
            )
            if pending is None:
                return False
            try:
                deleted = await delete_item(
                    NOTIFICATIONS_CONTAINER,
                    pending.id,
                    partition_key=pending.id,
                    etag=pending.etag,
                )
            except PreconditionFailed:
                logger.info(f"Join request {pending.id} changed while cancelling (attempt {attempt}), re-checking")
                continue
            if deleted:
                logger.debug(f"Deleted join request {pending.id} for room {room_id}")
                return True
        return False
