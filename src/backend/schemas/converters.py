"""
Schema converter functions.

Centralized helper functions for converting Cosmos DB documents to Pydantic
response schemas. These are the single source of truth for document-to-schema
conversions.
"""

from typing import Optional

from models.cosmos_documents import BallotDocument, NotificationDocument, RoomDocument
from schemas.ballot import Ballot, BallotChoice
from schemas.notification import Notification, NotificationPayload
from schemas.room import Room, RoomMemberSchema, RoomVisibilityEnum, VotingSystemEnum


def room_to_schema(room: RoomDocument) -> Room:
    return Room(
        id=room.id,
        name=room.name,
        description=room.description,
        admin_id=room.admin_id,
        members=[RoomMemberSchema(user_id=m.user_id, role=m.role) for m in room.members],
        visibility=RoomVisibilityEnum(room.visibility),
        voting_system=VotingSystemEnum(room.voting_system),
        tags=list(room.tags),
        rules=room.rules,
        created_at=room.created_at,
        updated_at=room.updated_at,
    )


def ballot_to_schema(ballot: BallotDocument, viewer_id: Optional[str] = None) -> Ballot:
    """
    Convert a ballot document for a given viewer.

    The per-user vote ledger is reduced to the viewer's own selection.
    """
    return Ballot(
        id=ballot.id,
        room_id=ballot.room_id,
        title=ballot.title,
        description=ballot.description,
        choices=[BallotChoice(id=c.id, text=c.text, vote_count=c.vote_count) for c in ballot.choices],
        start_time=ballot.start_time,
        end_time=ballot.end_time,
        max_choices_per_voter=ballot.max_choices_per_voter,
        total_votes=ballot.total_votes,
        voter_count=ballot.voter_count,
        has_voted=viewer_id is not None and ballot.has_voted(viewer_id),
        my_choice_ids=ballot.selection_of(viewer_id) if viewer_id else [],
        created_at=ballot.created_at,
    )


def notification_to_schema(notification: NotificationDocument) -> Notification:
    return Notification(
        id=notification.id,
        type=notification.type,
        message=notification.message,
        is_read=notification.is_read,
        data=NotificationPayload(**notification.data.model_dump()),
        created_at=notification.created_at,
        updated_at=notification.updated_at,
    )
