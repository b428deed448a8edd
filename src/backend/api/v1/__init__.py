"""
API v1 router aggregating all endpoints.
"""

from fastapi import APIRouter

from api.v1.ballots import router as ballots_router
from api.v1.notifications import router as notifications_router
from api.v1.rooms import router as rooms_router

router = APIRouter()

router.include_router(rooms_router, prefix="/rooms", tags=["Rooms"])
router.include_router(ballots_router, prefix="/ballots", tags=["Ballots"])
router.include_router(notifications_router, prefix="/notifications", tags=["Notifications"])
