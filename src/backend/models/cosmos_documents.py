"""
Cosmos DB document models for RoomVote.

These Pydantic models define the document structure stored in Cosmos DB.
Relationships are embedded where one document owns the data (a room owns its
member list, a ballot owns its choices and vote ledger) and referenced by id
otherwise (notifications point at rooms and users).

Container Strategy:
- users: User profiles (partition: /id)
- username-lookup: Secondary index for lower-cased username -> user_id (partition: /id)
- rooms: Rooms with embedded members (partition: /id)
- ballots: Ballots with embedded choices and vote ledger (partition: /id)
- notifications: Addressed notification records (partition: /id)

The guard methods on these models (``RoomDocument.add_member``,
``BallotDocument.record_vote``, ``NotificationDocument.resolve``) are the
single place the state invariants are checked. Repositories call them on a
freshly read document and then commit with an ETag precondition, re-running
the guard on conflict.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, Field, PrivateAttr, field_validator, model_validator

from core.exceptions import ConflictError, Reason, StateError, ValidationError

# ============================================================================
# Enums
# ============================================================================


class MemberRole(str, Enum):
    """Role a user holds within a room."""

    ADMIN = "admin"
    CANDIDATE = "candidate"
    VOTER = "voter"


class RoomVisibility(str, Enum):
    """Whether non-members may request to join."""

    PUBLIC = "public"
    PRIVATE = "private"


class VotingSystem(str, Enum):
    """How a room decides."""

    SIMPLE_MAJORITY = "simple_majority"
    DISCUSSION_ONLY = "discussion_only"


class NotificationType(str, Enum):
    """Closed set of notification kinds."""

    NEW_BALLOT = "new_ballot"
    ROOM_INVITATION = "room_invitation"
    JOIN_REQUEST_RECEIVED = "join_request_received"
    JOIN_REQUEST_APPROVED = "join_request_approved"
    JOIN_REQUEST_DECLINED = "join_request_declined"
    INVITATION_ACCEPTED = "invitation_accepted"
    INVITATION_DECLINED = "invitation_declined"


class RequestStatus(str, Enum):
    """Outcome recorded on a join request notification."""

    PENDING = "pending"
    APPROVED = "approved"
    DECLINED = "declined"


# Roles an admin may hand out through an invitation
INVITABLE_ROLES = frozenset({MemberRole.VOTER.value, MemberRole.CANDIDATE.value})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes as UTC so window comparisons never mix kinds."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ============================================================================
# Base Document Model
# ============================================================================


class CosmosDocument(BaseModel):
    """
    Base class for Cosmos DB documents.

    All documents have:
    - id: Unique identifier (also used as partition key)
    - _etag: ETag for optimistic concurrency (managed by Cosmos DB). Exposed
      as ``etag`` and never written back in the document body.
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    etag: Optional[str] = Field(default=None, alias="_etag", exclude=True)

    class Config:
        # Allow extra fields for Cosmos DB system properties (_ts, _rid, etc.)
        extra = "allow"
        # Use enum values for serialization
        use_enum_values = True
        populate_by_name = True

    def to_item(self) -> dict[str, Any]:
        """Serialize for a Cosmos write."""
        return self.model_dump(mode="json")


# ============================================================================
# User Documents
# ============================================================================


class UserDocument(CosmosDocument):
    """
    User document stored in the 'users' container.

    Profiles are owned by the account service; this service only reads the
    fields it needs to address notifications.
    """

    username: str
    display_name: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)

    @property
    def label(self) -> str:
        """Name shown in notification messages."""
        return self.display_name or self.username


class UsernameLookupDocument(CosmosDocument):
    """
    Secondary index: username -> user_id lookup.

    The document id is the lower-cased username.
    """

    user_id: str


# ============================================================================
# Room Documents
# ============================================================================


class RoomMember(BaseModel):
    """Embedded (user, role) pair within RoomDocument."""

    user_id: str
    role: MemberRole

    class Config:
        use_enum_values = True


class RoomDocument(CosmosDocument):
    """
    Room document stored in the 'rooms' container.

    ``members`` keeps insertion order for display; lookups go through an
    index keyed by user id that is rebuilt lazily after each mutation.
    """

    name: str
    description: Optional[str] = None
    admin_id: str
    members: list[RoomMember] = Field(default_factory=list)
    visibility: RoomVisibility = RoomVisibility.PUBLIC
    voting_system: VotingSystem = VotingSystem.SIMPLE_MAJORITY
    tags: list[str] = Field(default_factory=list)
    rules: Optional[str] = None

    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    _member_index: Optional[dict[str, str]] = PrivateAttr(default=None)

    @model_validator(mode="after")
    def _admin_is_first_member(self) -> "RoomDocument":
        """The admin is always a member with the admin role, listed first."""
        seen: set[str] = {self.admin_id}
        members = [RoomMember(user_id=self.admin_id, role=MemberRole.ADMIN)]
        for member in self.members:
            if member.user_id in seen:
                continue
            seen.add(member.user_id)
            members.append(member)
        self.members = members
        return self

    def _index(self) -> dict[str, str]:
        if self._member_index is None:
            self._member_index = {m.user_id: m.role for m in self.members}
        return self._member_index

    def has_member(self, user_id: str) -> bool:
        return user_id in self._index()

    def role_of(self, user_id: str) -> Optional[str]:
        return self._index().get(user_id)

    def has_role(self, user_id: str, role: MemberRole) -> bool:
        return self.role_of(user_id) == role.value

    def is_admin(self, user_id: str) -> bool:
        return self.admin_id == user_id

    def add_member(self, user_id: str, role: MemberRole | str) -> bool:
        """
        Append a member unless already present.

        Returns:
            True if the member list changed
        """
        if self.has_member(user_id):
            return False
        self.members.append(RoomMember(user_id=user_id, role=MemberRole(role)))
        self._member_index = None
        self.updated_at = _utcnow()
        return True

    def remove_member(self, user_id: str) -> bool:
        """
        Remove a non-admin member.

        Returns:
            True if the member list changed
        """
        if user_id == self.admin_id or not self.has_member(user_id):
            return False
        self.members = [m for m in self.members if m.user_id != user_id]
        self._member_index = None
        self.updated_at = _utcnow()
        return True


# ============================================================================
# Ballot Documents
# ============================================================================


class BallotChoiceDocument(BaseModel):
    """Embedded ballot choice within BallotDocument."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    text: str
    vote_count: int = Field(default=0, ge=0)


class BallotDocument(CosmosDocument):
    """
    Ballot document stored in the 'ballots' container.

    ``voted_user_ids`` maps a voter's id to the choice id they picked (single
    choice ballots) or the list of ids (multi-choice ballots). It is the only
    record of who voted; entries are never overwritten or removed.
    """

    room_id: str
    title: str
    description: Optional[str] = None

    # Embedded choices, fixed at creation
    choices: list[BallotChoiceDocument] = Field(default_factory=list)

    # Voting window (either bound optional, both inclusive)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None

    max_choices_per_voter: int = Field(default=1, ge=1)

    voted_user_ids: dict[str, Union[str, list[str]]] = Field(default_factory=dict)

    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @field_validator("start_time", "end_time")
    @classmethod
    def _window_is_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(v)

    @property
    def choice_ids(self) -> list[str]:
        return [c.id for c in self.choices]

    @property
    def total_votes(self) -> int:
        return sum(c.vote_count for c in self.choices)

    @property
    def voter_count(self) -> int:
        return len(self.voted_user_ids)

    def has_voted(self, user_id: str) -> bool:
        return user_id in self.voted_user_ids

    def selection_of(self, user_id: str) -> list[str]:
        """Choice ids recorded for a voter (empty if they haven't voted)."""
        recorded = self.voted_user_ids.get(user_id)
        if recorded is None:
            return []
        if isinstance(recorded, str):
            return [recorded]
        return list(recorded)

    def ledger_size(self) -> int:
        """Number of individual selections recorded in the vote ledger."""
        return sum(len(self.selection_of(user_id)) for user_id in self.voted_user_ids)

    def is_tally_consistent(self) -> bool:
        return self.total_votes == self.ledger_size()

    def record_vote(self, voter_id: str, choice_ids: list[str]) -> None:
        """
        Apply one voter's selection to the tally and the vote ledger.

        ``choice_ids`` must already be de-duplicated and shape-checked.

        Raises:
            ValidationError: A choice id does not belong to this ballot.
            ConflictError: The voter already has an entry in the ledger.
        """
        by_id = {c.id: c for c in self.choices}
        unknown = [cid for cid in choice_ids if cid not in by_id]
        if unknown:
            raise ValidationError("Invalid choice ID provided", Reason.UNKNOWN_CHOICE)
        if self.has_voted(voter_id):
            raise ConflictError("You have already voted on this ballot.", Reason.ALREADY_VOTED)

        for cid in choice_ids:
            by_id[cid].vote_count += 1

        if self.max_choices_per_voter == 1:
            self.voted_user_ids[voter_id] = choice_ids[0]
        else:
            self.voted_user_ids[voter_id] = list(choice_ids)
        self.updated_at = _utcnow()


# ============================================================================
# Notification Documents
# ============================================================================


class NotificationData(BaseModel):
    """Payload embedded in a notification; immutable once created."""

    room_id: Optional[str] = None
    room_name: Optional[str] = None
    ballot_id: Optional[str] = None
    ballot_title: Optional[str] = None
    invited_role: Optional[MemberRole] = None
    performer_id: Optional[str] = None
    performer_name: Optional[str] = None
    target_user_id: Optional[str] = None
    request_status: Optional[RequestStatus] = None

    class Config:
        use_enum_values = True


class InvitationPayload(BaseModel):
    """Typed view of a ``room_invitation`` payload."""

    room_id: str
    invited_role: MemberRole
    performer_id: str
    target_user_id: Optional[str] = None

    class Config:
        use_enum_values = True


class JoinRequestPayload(BaseModel):
    """Typed view of a ``join_request_received`` payload."""

    room_id: str
    performer_id: str
    target_user_id: str


# Notification types that require the recipient to act, with their payloads
ACTIONABLE_PAYLOADS: dict[str, type[BaseModel]] = {
    NotificationType.ROOM_INVITATION.value: InvitationPayload,
    NotificationType.JOIN_REQUEST_RECEIVED.value: JoinRequestPayload,
}


class NotificationDocument(CosmosDocument):
    """
    Notification document stored in the 'notifications' container.

    For actionable types ``is_read`` doubles as "resolved": it flips to True
    exactly once, when the recipient acts.
    """

    user_id: str  # Recipient
    type: NotificationType
    message: str = Field(max_length=500)
    data: NotificationData = Field(default_factory=NotificationData)
    is_read: bool = False

    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @property
    def is_actionable(self) -> bool:
        return self.type in ACTIONABLE_PAYLOADS

    @property
    def is_pending(self) -> bool:
        return self.is_actionable and not self.is_read

    def payload(self, expected: NotificationType) -> Any:
        """
        Parse the typed payload for an actionable notification.

        Raises:
            StateError: The notification is not of the expected type or its
                payload is incomplete.
        """
        if self.type != expected.value:
            raise StateError("Invalid or processed notification", Reason.INVALID_STATE)
        payload_cls = ACTIONABLE_PAYLOADS[expected.value]
        try:
            return payload_cls.model_validate(self.data.model_dump())
        except ValueError as e:
            raise StateError("Invalid or processed notification", Reason.INVALID_STATE) from e

    def resolve(self, message: str, request_status: Optional[RequestStatus] = None) -> None:
        """
        Mark the notification resolved and rewrite its message.

        Raises:
            StateError: The notification was already resolved.
        """
        if self.is_read:
            raise StateError("This notification has already been processed", Reason.INVALID_STATE)
        self.is_read = True
        self.message = message
        if request_status is not None:
            self.data.request_status = request_status
        self.updated_at = _utcnow()

    def reopen(self, message: str, request_status: Optional[RequestStatus] = None) -> bool:
        """
        Undo ``resolve`` after the follow-up membership change failed.

        Returns:
            True if the notification went back to pending
        """
        if not self.is_read:
            return False
        self.is_read = False
        self.message = message
        self.data.request_status = request_status
        self.updated_at = _utcnow()
        return True
