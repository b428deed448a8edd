"""
Pytest fixtures for RoomVote backend tests.
"""

import os
from collections.abc import AsyncGenerator, Callable
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient

# Set test environment variables before importing app
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-testing")
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("LEDGER_ENABLED", "false")

from core.security import create_access_token  # noqa: E402
from fakes import (  # noqa: E402
    ADMIN_ID,
    BOB_ID,
    CAROL_ID,
    OUTSIDER_ID,
    InMemoryBallotRepository,
    InMemoryCosmos,
    InMemoryNotificationRepository,
)
from models.cosmos_documents import (  # noqa: E402
    MemberRole,
    RoomDocument,
    RoomMember,
    RoomVisibility,
)
from repositories.cosmos_room_repository import CosmosRoomRepository  # noqa: E402
from repositories.cosmos_user_repository import CosmosUserRepository  # noqa: E402
from services.ballot_service import BallotService  # noqa: E402
from services.ledger_service import LedgerService  # noqa: E402
from services.membership_workflow import MembershipWorkflow  # noqa: E402
from services.notification_service import NotificationService  # noqa: E402
from services.room_service import RoomService  # noqa: E402


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    """Use asyncio backend for async tests."""
    return "asyncio"


# =============================================================================
# Data layer
# =============================================================================


@pytest.fixture
def cosmos(monkeypatch: pytest.MonkeyPatch) -> InMemoryCosmos:
    """In-memory document store wired into every repository module."""
    store = InMemoryCosmos()
    store.install(monkeypatch)
    store.add_user(ADMIN_ID, "alice", "Alice")
    store.add_user(BOB_ID, "bob", "Bob")
    store.add_user(CAROL_ID, "carol")
    store.add_user(OUTSIDER_ID, "dave", "Dave")
    return store


@pytest.fixture
def room_repo(cosmos: InMemoryCosmos) -> CosmosRoomRepository:
    return CosmosRoomRepository()


@pytest.fixture
def user_repo(cosmos: InMemoryCosmos) -> CosmosUserRepository:
    return CosmosUserRepository()


@pytest.fixture
def ballot_repo(cosmos: InMemoryCosmos) -> InMemoryBallotRepository:
    return InMemoryBallotRepository(cosmos)


@pytest.fixture
def notification_repo(cosmos: InMemoryCosmos) -> InMemoryNotificationRepository:
    return InMemoryNotificationRepository(cosmos)


@pytest.fixture
def make_room(room_repo: CosmosRoomRepository) -> Callable[..., Any]:
    """Persist a room owned by Alice with the given extra members."""

    async def _make_room(
        members: dict[str, MemberRole] | None = None,
        visibility: RoomVisibility = RoomVisibility.PUBLIC,
        name: str = "Book Club",
    ) -> RoomDocument:
        room = RoomDocument(
            name=name,
            admin_id=ADMIN_ID,
            visibility=visibility,
            members=[RoomMember(user_id=uid, role=role) for uid, role in (members or {}).items()],
        )
        return await room_repo.create(room)

    return _make_room


# =============================================================================
# Services
# =============================================================================


@pytest.fixture
def ledger() -> LedgerService:
    """Ledger mirror switched off; tests that exercise it build their own."""
    return LedgerService(enabled=False)


@pytest.fixture
def notifier(notification_repo: InMemoryNotificationRepository) -> NotificationService:
    return NotificationService(notification_repo)


@pytest.fixture
def ballot_service(
    ballot_repo: InMemoryBallotRepository,
    room_repo: CosmosRoomRepository,
    notifier: NotificationService,
    ledger: LedgerService,
) -> BallotService:
    return BallotService(ballot_repo, room_repo, notifier, ledger)


@pytest.fixture
def room_service(
    room_repo: CosmosRoomRepository,
    user_repo: CosmosUserRepository,
    ledger: LedgerService,
) -> RoomService:
    return RoomService(room_repo, user_repo, ledger)


@pytest.fixture
def workflow(
    room_repo: CosmosRoomRepository,
    user_repo: CosmosUserRepository,
    notification_repo: InMemoryNotificationRepository,
    notifier: NotificationService,
) -> MembershipWorkflow:
    return MembershipWorkflow(room_repo, user_repo, notification_repo, notifier)


# =============================================================================
# HTTP
# =============================================================================


@pytest.fixture
async def app(
    room_repo: CosmosRoomRepository,
    user_repo: CosmosUserRepository,
    ballot_repo: InMemoryBallotRepository,
    notification_repo: InMemoryNotificationRepository,
    ledger: LedgerService,
) -> AsyncGenerator[Any, None]:
    """FastAPI application with repositories backed by the in-memory store."""
    from api.deps import get_ledger
    from main import app as fastapi_app
    from repositories.provider import (
        get_ballot_repository,
        get_notification_repository,
        get_room_repository,
        get_user_repository,
    )

    fastapi_app.dependency_overrides.update(
        {
            get_room_repository: lambda: room_repo,
            get_user_repository: lambda: user_repo,
            get_ballot_repository: lambda: ballot_repo,
            get_notification_repository: lambda: notification_repo,
            get_ledger: lambda: ledger,
        }
    )
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
async def client(app: Any) -> AsyncGenerator[AsyncClient, None]:
    """Create async test client."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers={"Origin": "http://localhost:3000"},
    ) as ac:
        yield ac


@pytest.fixture
def auth_headers() -> Callable[[str], dict[str, str]]:
    """Build bearer headers for a user id."""

    def _headers(user_id: str) -> dict[str, str]:
        token = create_access_token({"sub": user_id})
        return {"Authorization": f"Bearer {token}"}

    return _headers
