"""
Cosmos DB Ballot repository.

Ballots embed their choices and the per-user vote ledger, so a vote is a
single-document update: the "already voted" check, the tally increments and
the ledger insert commit together under the ballot's ETag.
"""

import logging
from typing import Optional

from core.config import settings
from db.cosmos_session import BALLOTS_CONTAINER, create_item, query_items, read_item
from models.cosmos_documents import BallotDocument
from repositories.concurrency import optimistic_update

logger = logging.getLogger(__name__)


class CosmosBallotRepository:
    """Repository for ballot operations using Cosmos DB."""

    # ========================================================================
    # Read Operations
    # ========================================================================

    async def get_by_id(self, ballot_id: str) -> Optional[BallotDocument]:
        """Get a ballot by ID (direct point read)."""
        data = await read_item(BALLOTS_CONTAINER, ballot_id, partition_key=ballot_id)
        if data is None:
            return None
        return BallotDocument(**data)

    async def list_for_room(self, room_id: str) -> list[BallotDocument]:
        """Get all ballots of a room, newest first."""
        query = """
            SELECT * FROM c
            WHERE c.room_id = @room_id
            ORDER BY c.created_at DESC
        """
        results = await query_items(
            BALLOTS_CONTAINER,
            query,
            parameters=[{"name": "@room_id", "value": room_id}],
        )
        return [BallotDocument(**r) for r in results]

    # ========================================================================
    # Write Operations
    # ========================================================================

    async def create(self, ballot: BallotDocument) -> BallotDocument:
        """Create a ballot document."""
        saved = await create_item(BALLOTS_CONTAINER, ballot.to_item())
        logger.debug(f"Created ballot {ballot.id} in room {ballot.room_id}")
        return BallotDocument(**saved)

    async def apply_vote(
        self,
        ballot_id: str,
        voter_id: str,
        choice_ids: list[str],
    ) -> Optional[BallotDocument]:
        """
        Record a vote exactly once.

        The choice-existence and already-voted checks are re-run against
        the copy being replaced, so of two concurrent votes by the same user
        only one can commit; the other fails with ``already_voted``.

        Returns:
            The updated ballot, or None if it doesn't exist.
        """

        def _record(ballot: BallotDocument) -> bool:
            ballot.record_vote(voter_id, choice_ids)
            return True

        ballot, _ = await optimistic_update(
            BALLOTS_CONTAINER,
            ballot_id,
            BallotDocument,
            _record,
            settings.BALLOT_WRITE_MAX_RETRIES,
        )
        if ballot is not None:
            logger.debug(f"Recorded {len(choice_ids)} selection(s) on ballot {ballot_id}")
        return ballot
