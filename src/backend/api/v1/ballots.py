"""
Ballot endpoints.

Voting is exactly-once per user and ballot: the selection is validated, then
committed together with the tally in a single guarded write.
"""

from typing import Annotated

from fastapi import APIRouter, Depends

from api.deps import CurrentUserId, get_ballot_service
from schemas.ballot import Ballot, VoteCast, VoteResponse
from schemas.converters import ballot_to_schema
from services.ballot_service import BallotService

router = APIRouter()


@router.get("/{ballot_id}", response_model=Ballot)
async def get_ballot(
    ballot_id: str,
    user_id: CurrentUserId,
    ballots: Annotated[BallotService, Depends(get_ballot_service)],
) -> Ballot:
    ballot = await ballots.get_ballot(ballot_id)
    return ballot_to_schema(ballot, user_id)


@router.post("/{ballot_id}/vote", response_model=VoteResponse)
async def cast_vote(
    ballot_id: str,
    vote: VoteCast,
    user_id: CurrentUserId,
    ballots: Annotated[BallotService, Depends(get_ballot_service)],
) -> VoteResponse:
    """
    Cast a vote on a ballot.

    Requirements:
    - The ballot must belong to ``room_id`` and the caller must be a member
    - The voting window must be open
    - Between 1 and ``max_choices_per_voter`` existing choices
    - The caller has not voted on this ballot before
    """
    ballot = await ballots.cast_vote(
        ballot_id=ballot_id,
        room_id=vote.room_id,
        voter_id=user_id,
        choice_id_or_ids=vote.choice_id_or_ids,
    )
    return VoteResponse(message="Vote cast successfully", ballot=ballot_to_schema(ballot, user_id))
