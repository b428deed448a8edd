"""
Room endpoints.

Room creation and lookup, ballots scoped to a room, and the proposal side of
the membership workflows (invite, request to join, cancel, leave).
"""

from typing import Annotated

from fastapi import APIRouter, Depends, status

from api.deps import (
    CurrentUserId,
    get_ballot_service,
    get_membership_workflow,
    get_room_service,
)
from schemas.ballot import Ballot, BallotCreate
from schemas.converters import ballot_to_schema, room_to_schema
from schemas.room import InviteRequest, Room, RoomActionResponse, RoomCreate
from services.ballot_service import BallotService
from services.membership_workflow import MembershipWorkflow
from services.room_service import RoomService

router = APIRouter()


@router.post("", response_model=Room, status_code=status.HTTP_201_CREATED)
async def create_room(
    room_data: RoomCreate,
    user_id: CurrentUserId,
    rooms: Annotated[RoomService, Depends(get_room_service)],
) -> Room:
    """Create a room. The caller becomes its admin."""
    room = await rooms.create_room(
        actor_id=user_id,
        name=room_data.name,
        visibility=room_data.visibility.value,
        voting_system=room_data.voting_system.value,
        description=room_data.description,
        tags=room_data.tags,
        rules=room_data.rules,
        candidate_usernames=room_data.candidate_usernames,
    )
    return room_to_schema(room)


@router.get("/{room_id}", response_model=Room)
async def get_room(
    room_id: str,
    user_id: CurrentUserId,
    rooms: Annotated[RoomService, Depends(get_room_service)],
) -> Room:
    room = await rooms.get_room(room_id, user_id)
    return room_to_schema(room)


@router.post("/{room_id}/leave", response_model=RoomActionResponse)
async def leave_room(
    room_id: str,
    user_id: CurrentUserId,
    workflow: Annotated[MembershipWorkflow, Depends(get_membership_workflow)],
) -> RoomActionResponse:
    """Leave a room. The admin cannot leave."""
    await workflow.leave_room(room_id, user_id)
    return RoomActionResponse(message="Successfully left the room")


# =============================================================================
# Ballots
# =============================================================================


@router.post("/{room_id}/ballots", response_model=Ballot, status_code=status.HTTP_201_CREATED)
async def create_ballot(
    room_id: str,
    ballot_data: BallotCreate,
    user_id: CurrentUserId,
    ballots: Annotated[BallotService, Depends(get_ballot_service)],
) -> Ballot:
    """
    Create a ballot in a room.

    Only the room admin may create ballots. Every other member is notified.
    """
    ballot = await ballots.create_ballot(
        room_id=room_id,
        actor_id=user_id,
        title=ballot_data.title,
        choices=[choice.text for choice in ballot_data.choices],
        description=ballot_data.description,
        start_time=ballot_data.start_time,
        end_time=ballot_data.end_time,
        max_choices_per_voter=ballot_data.max_choices_per_voter,
    )
    return ballot_to_schema(ballot, user_id)


@router.get("/{room_id}/ballots", response_model=list[Ballot])
async def list_ballots(
    room_id: str,
    user_id: CurrentUserId,
    ballots: Annotated[BallotService, Depends(get_ballot_service)],
) -> list[Ballot]:
    """List a room's ballots, newest first. Members only."""
    results = await ballots.list_ballots(room_id, user_id)
    return [ballot_to_schema(ballot, user_id) for ballot in results]


# =============================================================================
# Membership proposals
# =============================================================================


@router.post("/{room_id}/invite", response_model=RoomActionResponse)
async def invite_user(
    room_id: str,
    invite: InviteRequest,
    user_id: CurrentUserId,
    workflow: Annotated[MembershipWorkflow, Depends(get_membership_workflow)],
) -> RoomActionResponse:
    """Invite a user by username as a voter or candidate. Admin only."""
    await workflow.propose_invitation(room_id, user_id, invite.target_username, invite.role)
    return RoomActionResponse(message=f"Invitation sent to {invite.target_username}")


@router.post("/{room_id}/join-request", response_model=RoomActionResponse)
async def request_to_join(
    room_id: str,
    user_id: CurrentUserId,
    workflow: Annotated[MembershipWorkflow, Depends(get_membership_workflow)],
) -> RoomActionResponse:
    """Ask to join a public room."""
    await workflow.request_to_join(room_id, user_id)
    return RoomActionResponse(message="Join request sent successfully. Awaiting admin approval.")


@router.delete("/{room_id}/join-request", response_model=RoomActionResponse)
async def cancel_join_request(
    room_id: str,
    user_id: CurrentUserId,
    workflow: Annotated[MembershipWorkflow, Depends(get_membership_workflow)],
) -> RoomActionResponse:
    """Withdraw a join request the admin has not acted on yet."""
    await workflow.cancel_join_request(room_id, user_id)
    return RoomActionResponse(message="Join request cancelled successfully.")
