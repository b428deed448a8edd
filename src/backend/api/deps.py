"""
Shared dependencies for API endpoints.

Includes:
- Caller identity from the bearer JWT issued by the login service
- Service factories wired to the Cosmos DB repositories
"""

from typing import Annotated, Optional

import structlog
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from core.security import decode_token, extract_user_id
from repositories.provider import (
    BallotRepositoryProtocol,
    NotificationRepositoryProtocol,
    RoomRepositoryProtocol,
    UserRepositoryProtocol,
    get_ballot_repository,
    get_notification_repository,
    get_room_repository,
    get_user_repository,
)
from services.ballot_service import BallotService
from services.ledger_service import LedgerService, get_ledger_service
from services.membership_workflow import MembershipWorkflow
from services.notification_service import NotificationService
from services.room_service import RoomService

logger = structlog.get_logger(__name__)

# Missing credentials are reported as 401 rather than FastAPI's default 403
security = HTTPBearer(auto_error=False)


# =============================================================================
# User Authentication (JWT-based)
# =============================================================================


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user_id(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
) -> str:
    """
    Extract the caller's user id from the bearer token.

    Raises:
        HTTPException: 401 if the token is missing, invalid, or has no user id.
    """
    if credentials is None:
        raise _unauthorized("Authentication required")

    payload = decode_token(credentials.credentials)
    if payload is None:
        raise _unauthorized("Invalid or expired token")

    user_id = extract_user_id(payload)
    if user_id is None:
        logger.warning("token_without_user_id")
        raise _unauthorized("Invalid token payload")

    return user_id


CurrentUserId = Annotated[str, Depends(get_current_user_id)]


# =============================================================================
# Services
# =============================================================================


def get_ledger() -> LedgerService:
    return get_ledger_service()


def get_notification_service(
    notifications: NotificationRepositoryProtocol = Depends(get_notification_repository),
) -> NotificationService:
    return NotificationService(notifications)


def get_ballot_service(
    ballots: BallotRepositoryProtocol = Depends(get_ballot_repository),
    rooms: RoomRepositoryProtocol = Depends(get_room_repository),
    notifier: NotificationService = Depends(get_notification_service),
    ledger: LedgerService = Depends(get_ledger),
) -> BallotService:
    return BallotService(ballots, rooms, notifier, ledger)


def get_room_service(
    rooms: RoomRepositoryProtocol = Depends(get_room_repository),
    users: UserRepositoryProtocol = Depends(get_user_repository),
    ledger: LedgerService = Depends(get_ledger),
) -> RoomService:
    return RoomService(rooms, users, ledger)


def get_membership_workflow(
    rooms: RoomRepositoryProtocol = Depends(get_room_repository),
    users: UserRepositoryProtocol = Depends(get_user_repository),
    notifications: NotificationRepositoryProtocol = Depends(get_notification_repository),
    notifier: NotificationService = Depends(get_notification_service),
) -> MembershipWorkflow:
    return MembershipWorkflow(rooms, users, notifications, notifier)
