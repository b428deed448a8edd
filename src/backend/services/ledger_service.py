"""
Vote Ledger Mirror Service

Mirrors committed rooms, ballots and votes to the external ledger node over
HTTP. The mirror is strictly best-effort:

- it only runs after the primary Cosmos DB write has committed
- calls are scheduled as background tasks, so the API response never waits
  on the ledger
- failures are logged and dropped; nothing is retried or rolled back

Voting success is defined by the local commit alone.
"""

import asyncio
from typing import Any, Optional

import httpx
import structlog

from core.config import settings
from core.exceptions import DownstreamError
from models.cosmos_documents import BallotDocument, RoomDocument

logger = structlog.get_logger(__name__)


class LedgerService:
    """
    Client for the external vote ledger.

    Usage:
        ledger = get_ledger_service()
        ledger.mirror_vote(ballot, voter_id, ["choice-1"])  # returns immediately
        ...
        await ledger.drain()  # on shutdown, or in tests
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        enabled: Optional[bool] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.LEDGER_API_URL).rstrip("/")
        self.enabled = settings.LEDGER_ENABLED if enabled is None else enabled
        self.timeout = timeout if timeout is not None else settings.LEDGER_TIMEOUT_SECONDS
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._pending: set[asyncio.Task] = set()

    @property
    def is_available(self) -> bool:
        return self.enabled and bool(self.base_url)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    # ========================================================================
    # Public mirror hooks (fire and forget)
    # ========================================================================

    def mirror_room(self, room: RoomDocument) -> None:
        """Mirror a newly created room."""
        self._submit("create_room", [("/api/rooms", {"roomId": room.id})])

    def mirror_ballot(self, ballot: BallotDocument) -> None:
        """Mirror a newly created ballot."""
        payload = {
            "roomId": ballot.room_id,
            "ballotId": ballot.id,
            "title": ballot.title,
            "description": ballot.description or "",
            "options": [choice.text for choice in ballot.choices],
        }
        self._submit("create_ballot", [("/api/ballots", payload)])

    def mirror_vote(self, ballot: BallotDocument, voter_id: str, choice_ids: list[str]) -> None:
        """Mirror a committed vote, one ledger entry per selected choice."""
        requests = [
            (
                "/api/vote",
                {
                    "roomId": ballot.room_id,
                    "ballotId": ballot.id,
                    "userId": voter_id,
                    "choiceId": str(choice_id),
                },
            )
            for choice_id in choice_ids
        ]
        self._submit("cast_vote", requests)

    # ========================================================================
    # Internals
    # ========================================================================

    def _submit(self, operation: str, requests: list[tuple[str, dict[str, Any]]]) -> None:
        if not self.is_available:
            return
        task = asyncio.create_task(self._run(operation, requests))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _run(self, operation: str, requests: list[tuple[str, dict[str, Any]]]) -> None:
        for path, payload in requests:
            try:
                await self._post(operation, path, payload)
            except DownstreamError as e:
                logger.warning(
                    "ledger_mirror_failed",
                    operation=e.operation,
                    error=e.message,
                    path=path,
                )
                return
        logger.debug("ledger_mirror_succeeded", operation=operation, entries=len(requests))

    async def _post(self, operation: str, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            response = await self._get_client().post(path, json=payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise DownstreamError(operation, f"ledger responded {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise DownstreamError(operation, str(e) or type(e).__name__) from e
        try:
            return response.json()
        except ValueError:
            return {}

    async def drain(self) -> None:
        """Wait for all scheduled mirror calls to finish."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def close(self) -> None:
        """Drain pending mirror calls and close the HTTP client."""
        await self.drain()
        if self._client is not None:
            await self._client.aclose()
            self._client = None


_ledger_service: Optional[LedgerService] = None


def get_ledger_service() -> LedgerService:
    """Get the process-wide ledger service."""
    global _ledger_service
    if _ledger_service is None:
        _ledger_service = LedgerService()
    return _ledger_service


async def close_ledger_service() -> None:
    """Close the process-wide ledger service, if one was created."""
    global _ledger_service
    if _ledger_service is not None:
        await _ledger_service.close()
        _ledger_service = None
