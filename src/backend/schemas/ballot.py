"""
Ballot-related Pydantic schemas.

Vote requests accept either a single choice id or a list of ids in the same
field, under both snake_case and camelCase names.
"""

from datetime import datetime
from typing import Optional, Union

from pydantic import AliasChoices, BaseModel, Field


class BallotChoiceCreate(BaseModel):
    """Schema for a choice when creating a ballot."""

    text: str = Field(..., max_length=200)


class BallotCreate(BaseModel):
    """
    Schema for creating a ballot in a room.

    Blank titles, too few choices and out-of-range bounds are rejected by the
    service after the room and admin checks.
    """

    title: str = Field("", max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    choices: list[BallotChoiceCreate] = Field(default_factory=list, max_length=50)
    start_time: Optional[datetime] = Field(None, validation_alias=AliasChoices("start_time", "startTime"))
    end_time: Optional[datetime] = Field(None, validation_alias=AliasChoices("end_time", "endTime"))
    max_choices_per_voter: Optional[int] = Field(
        None,
        validation_alias=AliasChoices("max_choices_per_voter", "maxChoicesPerVoter"),
    )


class VoteCast(BaseModel):
    """Schema for casting a vote."""

    # Null entries are accepted here and rejected as a blank selection
    choice_id_or_ids: Optional[Union[str, list[Optional[str]]]] = Field(
        None,
        validation_alias=AliasChoices("choice_id_or_ids", "choiceIdOrIds"),
    )
    room_id: Optional[str] = Field(None, validation_alias=AliasChoices("room_id", "roomId"))


class BallotChoice(BaseModel):
    """A ballot choice with its current tally."""

    id: str
    text: str
    vote_count: int


class Ballot(BaseModel):
    """
    Ballot as returned by the API.

    Individual voters are not listed; the caller only sees their own
    selection.
    """

    id: str
    room_id: str
    title: str
    description: Optional[str] = None
    choices: list[BallotChoice]
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    max_choices_per_voter: int
    total_votes: int
    voter_count: int
    has_voted: bool = False
    my_choice_ids: list[str] = Field(default_factory=list)
    created_at: datetime


class VoteResponse(BaseModel):
    """Response after successfully casting a vote."""

    success: bool = True
    message: str
    ballot: Ballot
