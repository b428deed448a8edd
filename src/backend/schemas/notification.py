"""
Notification-related Pydantic schemas.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class NotificationPayload(BaseModel):
    """Context carried by a notification."""

    room_id: Optional[str] = None
    room_name: Optional[str] = None
    ballot_id: Optional[str] = None
    ballot_title: Optional[str] = None
    invited_role: Optional[str] = None
    performer_id: Optional[str] = None
    performer_name: Optional[str] = None
    target_user_id: Optional[str] = None
    request_status: Optional[str] = None


class Notification(BaseModel):
    """Notification as returned by the API."""

    id: str
    type: str
    message: str
    is_read: bool
    data: NotificationPayload
    created_at: datetime
    updated_at: datetime


class NotificationList(BaseModel):
    """A page of the caller's notifications, newest first."""

    notifications: list[Notification]
    unread_count: int


class NotificationAction(BaseModel):
    """Decision on an invitation (accept/decline) or join request (approve/decline)."""

    action: str


class MarkAllReadResponse(BaseModel):
    """Result of marking every informational notification read."""

    message: str
    marked: int
