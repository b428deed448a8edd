"""
Room Membership Workflow

Two small state machines decide how users become room members:

    Invitation (admin -> user):   proposed -> accepted | declined
    Join request (user -> admin): proposed -> approved | declined, or cancelled

The pending notification is the durable record of a proposal. Resolving it
is claimed first with a compare-and-swap on the notification, and only the
claimant applies the membership change, so a proposal resolves exactly once
even when two resolvers (or a resolver and a cancel) race. Membership is
applied with an idempotent add-if-absent, so replaying an approval never
duplicates a member. If the membership change fails after the claim, the
claim is reverted and the proposal is pending again.
"""

from typing import Optional

import structlog

from core.exceptions import (
    AuthorizationError,
    ConflictError,
    DomainError,
    NotFoundError,
    Reason,
    StateError,
    ValidationError,
)
from models.cosmos_documents import (
    INVITABLE_ROLES,
    InvitationPayload,
    JoinRequestPayload,
    MemberRole,
    NotificationDocument,
    NotificationType,
    RequestStatus,
    RoomDocument,
    RoomVisibility,
)
from repositories.provider import (
    NotificationRepositoryProtocol,
    RoomRepositoryProtocol,
    UserRepositoryProtocol,
)
from services.notification_service import NotificationService

logger = structlog.get_logger(__name__)

INVITATION_ACTIONS = ("accept", "decline")
JOIN_REQUEST_ACTIONS = ("approve", "decline")


class MembershipWorkflow:
    """Invitations, join requests and leaving a room."""

    def __init__(
        self,
        rooms: RoomRepositoryProtocol,
        users: UserRepositoryProtocol,
        notifications: NotificationRepositoryProtocol,
        notifier: NotificationService,
    ):
        self.rooms = rooms
        self.users = users
        self.notifications = notifications
        self.notifier = notifier

    async def _get_room(self, room_id: str) -> RoomDocument:
        room = await self.rooms.get_by_id(room_id)
        if room is None:
            raise NotFoundError("Room not found", Reason.ROOM_NOT_FOUND)
        return room

    async def _get_notification(self, notification_id: str) -> NotificationDocument:
        notification = await self.notifications.get_by_id(notification_id)
        if notification is None:
            raise NotFoundError("Notification not found", Reason.NOTIFICATION_NOT_FOUND)
        return notification

    async def _display_name(self, user_id: str, fallback: Optional[str] = None) -> str:
        user = await self.users.get_by_id(user_id)
        if user is not None:
            return user.label
        return fallback or user_id

    async def _claim(
        self,
        notification: NotificationDocument,
        message: str,
        request_status: Optional[RequestStatus] = None,
    ) -> NotificationDocument:
        """Resolve a pending notification, or fail if someone else already did."""
        resolved = await self.notifications.resolve(notification.id, message, request_status)
        if resolved is None:
            raise StateError("Invalid or processed notification", Reason.INVALID_STATE)
        return resolved

    async def _add_member_or_reopen(
        self,
        notification: NotificationDocument,
        room_id: str,
        user_id: str,
        role: MemberRole | str,
    ) -> tuple[RoomDocument, bool]:
        """
        Apply the membership change of a claimed notification.

        If the change cannot be applied the claim is undone, so the proposal
        is pending again and can be resolved by a retry.
        """
        try:
            updated, added = await self.rooms.add_member_if_absent(room_id, user_id, role)
            if updated is None:
                raise NotFoundError("Room not found", Reason.ROOM_NOT_FOUND)
        except DomainError:
            await self.notifications.unresolve(
                notification.id,
                notification.message,
                notification.data.request_status,
            )
            logger.warning("membership_change_reverted", notification_id=notification.id, room_id=room_id)
            raise
        return updated, added

    # ========================================================================
    # Invitations
    # ========================================================================

    async def propose_invitation(
        self,
        room_id: str,
        inviter_id: str,
        target_username: str,
        role: str,
    ) -> NotificationDocument:
        """
        Invite a user into a room with a voter or candidate role.

        Raises:
            ValidationError: Role not invitable, or inviting yourself.
            NotFoundError: Unknown room or user.
            AuthorizationError: Inviter is not the room admin.
            ConflictError: Target is already a member or already has a
                pending invitation to this room.
        """
        role_value = role.value if isinstance(role, MemberRole) else str(role or "").strip().lower()
        if role_value not in INVITABLE_ROLES:
            raise ValidationError("Invalid role for invitation", Reason.INVALID_ROLE)

        room = await self._get_room(room_id)
        if not room.is_admin(inviter_id):
            raise AuthorizationError("Only room admin can send invitations", Reason.NOT_ADMIN)

        username = (target_username or "").strip().lower()
        target = await self.users.get_by_username(username) if username else None
        if target is None:
            raise NotFoundError(f"User @{username} not found", Reason.UNKNOWN_USER)
        if target.id == inviter_id:
            raise ValidationError("You cannot invite yourself", Reason.CANNOT_INVITE_SELF)
        if room.has_member(target.id):
            raise ConflictError(f"{target.label} is already a member of this room", Reason.ALREADY_MEMBER)

        existing = await self.notifications.find_pending(
            NotificationType.ROOM_INVITATION,
            room.id,
            recipient_id=target.id,
        )
        if existing is not None:
            raise ConflictError(
                f"An invitation has already been sent to {target.label} for this room.",
                Reason.DUPLICATE_PENDING,
            )

        inviter_name = await self._display_name(inviter_id)
        return await self.notifier.send_invitation(room, inviter_id, inviter_name, target.id, MemberRole(role_value))

    async def resolve_invitation(self, notification_id: str, actor_id: str, action: str) -> RoomDocument:
        """
        Accept or decline an invitation addressed to the actor.

        Returns:
            The room after the decision
        """
        if action not in INVITATION_ACTIONS:
            raise ValidationError("Invalid action", Reason.INVALID_ACTION)

        notification = await self._get_notification(notification_id)
        payload: InvitationPayload = notification.payload(NotificationType.ROOM_INVITATION)
        if notification.user_id != actor_id:
            raise AuthorizationError("This invitation is not for you", Reason.NOT_RECIPIENT)
        if notification.is_read:
            raise StateError("Invalid or processed invitation notification", Reason.INVALID_STATE)

        room = await self._get_room(payload.room_id)
        accepted = action == "accept"
        verb = "accepted" if accepted else "declined"

        await self._claim(notification, f"You {verb} the invitation to join {room.name}.")

        if accepted:
            room, added = await self._add_member_or_reopen(notification, room.id, actor_id, payload.invited_role)
            logger.info("invitation_accepted", room_id=room.id, role=payload.invited_role, added=added)
        else:
            logger.info("invitation_declined", room_id=room.id)

        invitee_name = await self._display_name(actor_id)
        await self.notifier.send_invitation_outcome(room, payload.performer_id, actor_id, invitee_name, accepted)
        return room

    # ========================================================================
    # Join requests
    # ========================================================================

    async def request_to_join(self, room_id: str, requester_id: str) -> NotificationDocument:
        """Ask the admin of a public room to let the requester in."""
        room = await self._get_room(room_id)
        if room.visibility != RoomVisibility.PUBLIC.value:
            raise AuthorizationError("Can only request to join public rooms", Reason.NOT_PUBLIC)
        if room.has_member(requester_id):
            raise ConflictError("You are already a member of this room", Reason.ALREADY_MEMBER)

        existing = await self.notifications.find_pending(
            NotificationType.JOIN_REQUEST_RECEIVED,
            room.id,
            performer_id=requester_id,
        )
        if existing is not None:
            raise ConflictError(
                "A join request for this room is already pending admin approval.",
                Reason.DUPLICATE_PENDING,
            )

        requester_name = await self._display_name(requester_id)
        return await self.notifier.send_join_request(room, requester_id, requester_name)

    async def cancel_join_request(self, room_id: str, requester_id: str) -> None:
        deleted = await self.notifications.delete_pending_join_request(room_id, requester_id)
        if not deleted:
            raise NotFoundError(
                "No active join request found to cancel, or it was already processed.",
                Reason.JOIN_REQUEST_NOT_FOUND,
            )
        logger.info("join_request_cancelled", room_id=room_id)

    async def resolve_join_request(self, notification_id: str, admin_id: str, action: str) -> RoomDocument:
        """
        Approve or decline a join request as the room admin.

        Returns:
            The room after the decision
        """
        if action not in JOIN_REQUEST_ACTIONS:
            raise ValidationError("Invalid action", Reason.INVALID_ACTION)

        notification = await self._get_notification(notification_id)
        payload: JoinRequestPayload = notification.payload(NotificationType.JOIN_REQUEST_RECEIVED)

        room = await self._get_room(payload.room_id)
        if not room.is_admin(admin_id):
            raise AuthorizationError("Unauthorized: Only room admin can process this request", Reason.NOT_ADMIN)
        if notification.user_id != admin_id:
            raise AuthorizationError("Notification not intended for this user", Reason.WRONG_RECIPIENT)
        if notification.is_read:
            raise StateError("Invalid or processed notification", Reason.INVALID_STATE)

        approved = action == "approve"
        requester_id = payload.target_user_id
        requester_name = await self._display_name(requester_id, notification.data.performer_name)
        verb = "approved" if approved else "declined"

        await self._claim(
            notification,
            f"You {verb} {requester_name}'s request to join {room.name}.",
            RequestStatus.APPROVED if approved else RequestStatus.DECLINED,
        )

        if approved:
            room, added = await self._add_member_or_reopen(notification, room.id, requester_id, MemberRole.VOTER)
            logger.info("join_request_approved", room_id=room.id, added=added)
        else:
            logger.info("join_request_declined", room_id=room.id)

        await self.notifier.send_join_outcome(room, admin_id, requester_id, approved)
        return room

    # ========================================================================
    # Leaving
    # ========================================================================

    async def leave_room(self, room_id: str, actor_id: str) -> RoomDocument:
        """
        Remove the actor from a room. Votes they already cast stay recorded.
        """
        room = await self._get_room(room_id)
        if room.is_admin(actor_id):
            raise AuthorizationError(
                "Admin cannot leave the room. Please delete the room or transfer ownership.",
                Reason.ADMIN_CANNOT_LEAVE,
            )
        if not room.has_member(actor_id):
            raise ValidationError("You are not a member of this room", Reason.NOT_A_MEMBER)

        updated, removed = await self.rooms.remove_member(room.id, actor_id)
        if updated is None:
            raise NotFoundError("Room not found", Reason.ROOM_NOT_FOUND)
        if not removed:
            raise ValidationError("You are not a member of this room", Reason.NOT_A_MEMBER)

        logger.info("room_left", room_id=room.id)
        return updated
