"""
Ballot Service

Creates ballots and casts votes. A vote is accepted by the validator, then
committed in one guarded write on the ballot document, then mirrored to the
ledger after the commit.
"""

from datetime import datetime, timezone
from typing import Optional

import structlog

from core.config import settings
from core.exceptions import (
    AuthorizationError,
    NotFoundError,
    Reason,
    ValidationError,
)
from models.cosmos_documents import BallotChoiceDocument, BallotDocument, RoomDocument
from repositories.provider import BallotRepositoryProtocol, RoomRepositoryProtocol
from services.ledger_service import LedgerService
from services.notification_service import NotificationService
from services.vote_validator import ChoiceSelection, validate_vote

logger = structlog.get_logger(__name__)


class BallotService:
    """Service for ballot creation, listing and voting."""

    def __init__(
        self,
        ballots: BallotRepositoryProtocol,
        rooms: RoomRepositoryProtocol,
        notifier: NotificationService,
        ledger: LedgerService,
    ):
        self.ballots = ballots
        self.rooms = rooms
        self.notifier = notifier
        self.ledger = ledger

    async def _get_room(self, room_id: str) -> RoomDocument:
        room = await self.rooms.get_by_id(room_id)
        if room is None:
            raise NotFoundError("Room not found", Reason.ROOM_NOT_FOUND)
        return room

    async def _get_ballot(self, ballot_id: str) -> BallotDocument:
        ballot = await self.ballots.get_by_id(ballot_id)
        if ballot is None:
            raise NotFoundError("Ballot not found", Reason.BALLOT_NOT_FOUND)
        return ballot

    # ========================================================================
    # Ballots
    # ========================================================================

    async def create_ballot(
        self,
        room_id: str,
        actor_id: str,
        title: str,
        choices: list[str],
        description: Optional[str] = None,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
        max_choices_per_voter: Optional[int] = None,
    ) -> BallotDocument:
        """
        Create a ballot in a room the actor administers.

        Every non-admin member gets a ``new_ballot`` notification and the
        ballot is mirrored to the ledger.
        """
        room = await self._get_room(room_id)
        if not room.is_admin(actor_id):
            raise AuthorizationError("Only the room admin can create ballots", Reason.NOT_ADMIN)

        title = (title or "").strip()
        texts = [text.strip() for text in choices if text and text.strip()]
        if not title or len(texts) < settings.BALLOT_MIN_CHOICES:
            raise ValidationError("Ballot title and at least two choices are required", Reason.INVALID_BALLOT)

        max_choices = 1 if max_choices_per_voter is None else max_choices_per_voter
        if not 1 <= max_choices <= len(texts):
            raise ValidationError(
                f"Max choices per voter must be between 1 and {len(texts)}",
                Reason.INVALID_BALLOT,
            )

        ballot = BallotDocument(
            room_id=room.id,
            title=title,
            description=description,
            choices=[BallotChoiceDocument(text=text) for text in texts],
            start_time=start_time,
            end_time=end_time,
            max_choices_per_voter=max_choices,
        )
        if ballot.start_time is not None and ballot.end_time is not None and ballot.end_time <= ballot.start_time:
            raise ValidationError("End time must be after start time", Reason.INVALID_BALLOT)

        created = await self.ballots.create(ballot)
        logger.info("ballot_created", ballot_id=created.id, room_id=room.id, choices=len(texts))

        await self.notifier.notify_new_ballot(room, created)
        self.ledger.mirror_ballot(created)
        return created

    async def list_ballots(self, room_id: str, actor_id: str) -> list[BallotDocument]:
        """List a room's ballots, newest first. Members only."""
        room = await self._get_room(room_id)
        if not room.has_member(actor_id):
            raise AuthorizationError("Access denied: You are not a member of this room.", Reason.NOT_A_MEMBER)
        return await self.ballots.list_for_room(room.id)

    async def get_ballot(self, ballot_id: str) -> BallotDocument:
        return await self._get_ballot(ballot_id)

    # ========================================================================
    # Voting
    # ========================================================================

    async def cast_vote(
        self,
        ballot_id: str,
        room_id: Optional[str],
        voter_id: str,
        choice_id_or_ids: ChoiceSelection,
        now: Optional[datetime] = None,
    ) -> BallotDocument:
        """
        Cast a vote on a ballot.

        Args:
            ballot_id: Ballot to vote on
            room_id: Room the caller believes the ballot belongs to
            voter_id: Authenticated caller
            choice_id_or_ids: One choice id or a list of choice ids
            now: Evaluation time for the voting window (defaults to now)

        Returns:
            The ballot as committed, including the new tally

        Raises:
            DomainError: The first failed check, in validation order.
        """
        if not room_id or not str(room_id).strip():
            raise ValidationError("Valid Room ID is required", Reason.INVALID_ROOM)

        ballot = await self._get_ballot(ballot_id)
        if ballot.room_id != room_id:
            raise ValidationError("Ballot does not belong to this room", Reason.LINKAGE_MISMATCH)

        room = await self.rooms.get_by_id(room_id)
        if room is None:
            raise NotFoundError("Room not found, cannot verify membership.", Reason.ROOM_NOT_FOUND)

        now = now or datetime.now(timezone.utc)
        selection = validate_vote(ballot, room, voter_id, choice_id_or_ids, now=now)

        updated = await self.ballots.apply_vote(ballot.id, voter_id, selection)
        if updated is None:
            raise NotFoundError("Ballot not found", Reason.BALLOT_NOT_FOUND)

        logger.info(
            "vote_cast",
            ballot_id=updated.id,
            room_id=updated.room_id,
            selections=len(selection),
            total_votes=updated.total_votes,
        )
        self.ledger.mirror_vote(updated, voter_id, selection)
        return updated

