"""
Application lifecycle event handlers.

Manages startup and shutdown tasks for the Cosmos DB client and the ledger
mirror.
"""

from typing import Callable

import structlog
from fastapi import FastAPI

from core.config import settings
from db import close_cosmos, ensure_containers
from services.ledger_service import close_ledger_service

logger = structlog.get_logger(__name__)


def create_start_app_handler(app: FastAPI) -> Callable:
    """Create startup event handler."""

    async def start_app() -> None:
        logger.info("Starting RoomVote API...")

        if not settings.cosmos_enabled:
            logger.warning("cosmos_not_configured")
        elif settings.AZURE_COSMOS_CREATE_CONTAINERS:
            await ensure_containers()
            logger.info("Cosmos DB containers ready")

        if settings.LEDGER_ENABLED:
            logger.info("ledger_mirror_enabled", url=settings.LEDGER_API_URL)

        logger.info("RoomVote API started successfully")

    return start_app


def create_stop_app_handler(app: FastAPI) -> Callable:
    """Create shutdown event handler."""

    async def stop_app() -> None:
        logger.info("Shutting down RoomVote API...")

        # Let in-flight ledger mirror calls finish before the loop stops
        try:
            await close_ledger_service()
        except Exception as e:
            logger.warning(f"Ledger mirror cleanup failed: {e}")

        await close_cosmos()

        logger.info("RoomVote API shutdown complete")

    return stop_app
