"""Schemas module initialization."""

from schemas.ballot import Ballot, BallotCreate, VoteCast, VoteResponse
from schemas.notification import Notification, NotificationAction, NotificationList
from schemas.room import InviteRequest, Room, RoomActionResponse, RoomCreate

__all__ = [
    "Ballot",
    "BallotCreate",
    "VoteCast",
    "VoteResponse",
    "Notification",
    "NotificationAction",
    "NotificationList",
    "InviteRequest",
    "Room",
    "RoomActionResponse",
    "RoomCreate",
]
