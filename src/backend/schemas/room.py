"""
Room-related Pydantic schemas.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import AliasChoices, BaseModel, Field


class RoomVisibilityEnum(str, Enum):
    """Room visibility."""

    PUBLIC = "public"
    PRIVATE = "private"


class VotingSystemEnum(str, Enum):
    """How a room decides."""

    SIMPLE_MAJORITY = "simple_majority"
    DISCUSSION_ONLY = "discussion_only"


class RoomCreate(BaseModel):
    """Schema for creating a room. The caller becomes its admin."""

    name: str = Field(..., max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    visibility: RoomVisibilityEnum = Field(RoomVisibilityEnum.PUBLIC)
    voting_system: VotingSystemEnum = Field(
        VotingSystemEnum.SIMPLE_MAJORITY,
        validation_alias=AliasChoices("voting_system", "votingSystem"),
    )
    tags: list[str] = Field(default_factory=list, max_length=20)
    rules: Optional[str] = Field(None, max_length=5000)
    candidate_usernames: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("candidate_usernames", "candidateUsernames"),
        description="Usernames added as candidates; unknown names are skipped",
    )


class RoomMemberSchema(BaseModel):
    """A (user, role) pair."""

    user_id: str
    role: str


class Room(BaseModel):
    """Room as returned by the API."""

    id: str
    name: str
    description: Optional[str] = None
    admin_id: str
    members: list[RoomMemberSchema]
    visibility: RoomVisibilityEnum
    voting_system: VotingSystemEnum
    tags: list[str] = Field(default_factory=list)
    rules: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class InviteRequest(BaseModel):
    """Schema for inviting a user into a room."""

    target_username: str = Field(..., validation_alias=AliasChoices("target_username", "targetUsername"))
    role: str = Field(..., description="voter or candidate")


class RoomActionResponse(BaseModel):
    """Outcome of a membership action."""

    success: bool = True
    message: str
    room: Optional[Room] = None
