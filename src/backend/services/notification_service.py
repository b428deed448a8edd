"""
Room Notification Service

Builds the notifications exchanged by the membership workflows and ballot
creation, and serves the recipient-facing inbox operations.

Message wording is centralised here so every workflow addresses users the
same way.
"""

from typing import Optional

import structlog

from core.exceptions import AuthorizationError, NotFoundError, Reason, StateError
from models.cosmos_documents import (
    BallotDocument,
    MemberRole,
    NotificationData,
    NotificationDocument,
    NotificationType,
    RequestStatus,
    RoomDocument,
)
from repositories.provider import NotificationRepositoryProtocol

logger = structlog.get_logger(__name__)


class NotificationService:
    """
    Service for creating and reading room notifications.

    Features:
    - Typed builders for invitations, join requests and their outcomes
    - ``new_ballot`` fan-out to the non-admin members of a room
    - Inbox listing and read marking for informational notifications
    """

    def __init__(self, notifications: NotificationRepositoryProtocol):
        self.notifications = notifications

    # ========================================================================
    # Membership workflow notifications
    # ========================================================================

    async def send_invitation(
        self,
        room: RoomDocument,
        inviter_id: str,
        inviter_name: str,
        target_user_id: str,
        role: MemberRole,
    ) -> NotificationDocument:
        """Create a pending ``room_invitation`` addressed to the target."""
        notification = NotificationDocument(
            user_id=target_user_id,
            type=NotificationType.ROOM_INVITATION,
            message=f'{inviter_name} has invited you to join room "{room.name}" as a {role.value}.',
            data=NotificationData(
                room_id=room.id,
                room_name=room.name,
                invited_role=role,
                performer_id=inviter_id,
                performer_name=inviter_name,
                target_user_id=target_user_id,
            ),
        )
        created = await self.notifications.create(notification)
        logger.info("invitation_sent", room_id=room.id, notification_id=created.id, role=role.value)
        return created

    async def send_invitation_outcome(
        self,
        room: RoomDocument,
        inviter_id: str,
        invitee_id: str,
        invitee_name: str,
        accepted: bool,
    ) -> NotificationDocument:
        """Tell the inviter whether their invitation was accepted."""
        verb = "accepted" if accepted else "declined"
        notification = NotificationDocument(
            user_id=inviter_id,
            type=NotificationType.INVITATION_ACCEPTED if accepted else NotificationType.INVITATION_DECLINED,
            message=f'{invitee_name} {verb} your invitation to join room "{room.name}".',
            data=NotificationData(
                room_id=room.id,
                room_name=room.name,
                performer_id=invitee_id,
                performer_name=invitee_name,
            ),
        )
        return await self.notifications.create(notification)

    async def send_join_request(
        self,
        room: RoomDocument,
        requester_id: str,
        requester_name: str,
    ) -> NotificationDocument:
        """Create a pending ``join_request_received`` addressed to the room admin."""
        notification = NotificationDocument(
            user_id=room.admin_id,
            type=NotificationType.JOIN_REQUEST_RECEIVED,
            message=f'{requester_name} requested to join "{room.name}".',
            data=NotificationData(
                room_id=room.id,
                room_name=room.name,
                performer_id=requester_id,
                performer_name=requester_name,
                target_user_id=requester_id,
                request_status=RequestStatus.PENDING,
            ),
        )
        created = await self.notifications.create(notification)
        logger.info("join_request_sent", room_id=room.id, notification_id=created.id)
        return created

    async def send_join_outcome(
        self,
        room: RoomDocument,
        admin_id: str,
        requester_id: str,
        approved: bool,
    ) -> NotificationDocument:
        """Tell the requester whether the admin approved their join request."""
        verb = "approved" if approved else "declined"
        notification = NotificationDocument(
            user_id=requester_id,
            type=NotificationType.JOIN_REQUEST_APPROVED if approved else NotificationType.JOIN_REQUEST_DECLINED,
            message=f'Your request to join room "{room.name}" has been {verb}.',
            data=NotificationData(
                room_id=room.id,
                room_name=room.name,
                performer_id=admin_id,
                request_status=RequestStatus.APPROVED if approved else RequestStatus.DECLINED,
            ),
        )
        return await self.notifications.create(notification)

    # ========================================================================
    # Ballot notifications
    # ========================================================================

    async def notify_new_ballot(self, room: RoomDocument, ballot: BallotDocument) -> int:
        """
        Notify every non-admin member of a room about a new ballot.

        Returns:
            Number of notifications created
        """
        sent = 0
        for member in room.members:
            if member.user_id == room.admin_id:
                continue
            await self.notifications.create(
                NotificationDocument(
                    user_id=member.user_id,
                    type=NotificationType.NEW_BALLOT,
                    message=f'A new ballot "{ballot.title}" has been created in room "{room.name}".',
                    data=NotificationData(
                        room_id=room.id,
                        room_name=room.name,
                        ballot_id=ballot.id,
                        ballot_title=ballot.title,
                        performer_id=room.admin_id,
                    ),
                )
            )
            sent += 1

        logger.info("new_ballot_notifications_sent", room_id=room.id, ballot_id=ballot.id, sent=sent)
        return sent

    # ========================================================================
    # Inbox
    # ========================================================================

    async def list_for_user(self, user_id: str, unread_only: bool = False, limit: int = 50) -> list[NotificationDocument]:
        return await self.notifications.list_for_user(user_id, unread_only=unread_only, limit=limit)

    async def mark_read(self, notification_id: str, user_id: str) -> NotificationDocument:
        """
        Mark one of the caller's notifications read.

        Pending invitations and join requests can only be cleared by acting
        on them.
        """
        notification = await self.notifications.get_by_id(notification_id)
        if notification is None:
            raise NotFoundError("Notification not found", Reason.NOTIFICATION_NOT_FOUND)
        if notification.user_id != user_id:
            raise AuthorizationError("Notification not intended for this user", Reason.NOT_RECIPIENT)
        if notification.is_pending:
            raise StateError("Respond to this notification to clear it", Reason.INVALID_STATE)

        updated = await self.notifications.mark_read(notification_id)
        if updated is None:
            raise NotFoundError("Notification not found", Reason.NOTIFICATION_NOT_FOUND)
        return updated

    async def mark_all_read(self, user_id: str, limit: Optional[int] = None) -> int:
        """
        Mark every informational unread notification of a user read.

        Returns:
            Number of notifications marked
        """
        unread = await self.notifications.list_for_user(user_id, unread_only=True, limit=limit or 500)
        marked = 0
        for notification in unread:
            if notification.is_pending:
                continue
            await self.notifications.mark_read(notification.id)
            marked += 1

        logger.info("notifications_marked_read", user_id=user_id, marked=marked)
        return marked
