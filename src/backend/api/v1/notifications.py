"""
Notification endpoints.

The caller's inbox, plus the resolution side of the membership workflows:
responding to an invitation or to a join request.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from api.deps import CurrentUserId, get_membership_workflow, get_notification_service
from schemas.converters import notification_to_schema, room_to_schema
from schemas.notification import MarkAllReadResponse, Notification, NotificationAction, NotificationList
from schemas.room import RoomActionResponse
from services.membership_workflow import MembershipWorkflow
from services.notification_service import NotificationService

router = APIRouter()


@router.get("", response_model=NotificationList)
async def list_notifications(
    user_id: CurrentUserId,
    notifier: Annotated[NotificationService, Depends(get_notification_service)],
    unread_only: bool = False,
    limit: int = Query(default=50, ge=1, le=200),
) -> NotificationList:
    """Get the caller's notifications, newest first."""
    notifications = await notifier.list_for_user(user_id, unread_only=unread_only, limit=limit)
    return NotificationList(
        notifications=[notification_to_schema(n) for n in notifications],
        unread_count=sum(1 for n in notifications if not n.is_read),
    )


@router.put("/read-all", response_model=MarkAllReadResponse)
async def mark_all_read(
    user_id: CurrentUserId,
    notifier: Annotated[NotificationService, Depends(get_notification_service)],
) -> MarkAllReadResponse:
    """Mark every informational notification read. Pending requests stay unread."""
    marked = await notifier.mark_all_read(user_id)
    return MarkAllReadResponse(message="All notifications marked as read", marked=marked)


@router.put("/{notification_id}/read", response_model=Notification)
async def mark_read(
    notification_id: str,
    user_id: CurrentUserId,
    notifier: Annotated[NotificationService, Depends(get_notification_service)],
) -> Notification:
    notification = await notifier.mark_read(notification_id, user_id)
    return notification_to_schema(notification)


@router.post("/action/invitation/{notification_id}", response_model=RoomActionResponse)
async def respond_to_invitation(
    notification_id: str,
    decision: NotificationAction,
    user_id: CurrentUserId,
    workflow: Annotated[MembershipWorkflow, Depends(get_membership_workflow)],
) -> RoomActionResponse:
    """Accept or decline a room invitation addressed to the caller."""
    room = await workflow.resolve_invitation(notification_id, user_id, decision.action)
    message = "Invitation accepted successfully" if decision.action == "accept" else "Invitation declined"
    return RoomActionResponse(message=message, room=room_to_schema(room))


@router.post("/action/join-request/{notification_id}", response_model=RoomActionResponse)
async def respond_to_join_request(
    notification_id: str,
    decision: NotificationAction,
    user_id: CurrentUserId,
    workflow: Annotated[MembershipWorkflow, Depends(get_membership_workflow)],
) -> RoomActionResponse:
    """Approve or decline a join request as the room admin."""
    room = await workflow.resolve_join_request(notification_id, user_id, decision.action)
    message = "Join request approved successfully" if decision.action == "approve" else "Join request declined"
    return RoomActionResponse(message=message, room=room_to_schema(room))
