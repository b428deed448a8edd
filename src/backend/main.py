"""
RoomVote Backend Application

Rooms, time-windowed ballots with exactly-once voting, and invitation /
join-request membership workflows.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from api.v1 import router as api_v1_router
from core.config import settings
from core.events import create_start_app_handler, create_stop_app_handler
from core.exceptions import DomainError, ValidationError
from core.middleware import REQUEST_ID_HEADER, RequestContextMiddleware, SecurityHeadersMiddleware

logger = structlog.get_logger(__name__)


def _describe_validation_error(error: dict) -> str:
    # loc starts with "body", "query" or "path"
    location = [str(part) for part in error.get("loc", ())]
    field = ".".join(location[1:]) or ".".join(location) or "request"
    return f"{field}: {error.get('msg', 'invalid value')}"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup and shutdown events."""
    # Startup
    await create_start_app_handler(app)()
    yield
    # Shutdown
    await create_stop_app_handler(app)()


def create_application() -> FastAPI:
    """Create and configure the FastAPI application."""
    application = FastAPI(
        title=settings.APP_NAME,
        description="Rooms, ballots and membership workflows",
        version="1.0.0",
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
        openapi_url="/openapi.json" if settings.DEBUG else None,
        lifespan=lifespan,
    )

    # Add middleware (order matters - processed in reverse)
    # 1. Security headers - added to all responses
    application.add_middleware(SecurityHeadersMiddleware)

    # 2. Request context - request id bound into every log line
    application.add_middleware(RequestContextMiddleware)

    # 3. CORS - restricted to specific methods and headers
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=[
            "Authorization",
            "Content-Type",
            REQUEST_ID_HEADER,
        ],
        expose_headers=[REQUEST_ID_HEADER],
    )

    # 4. GZip compression for responses
    application.add_middleware(GZipMiddleware, minimum_size=1000)

    # Include routers
    application.include_router(api_v1_router, prefix="/api/v1")

    @application.exception_handler(DomainError)
    async def domain_exception_handler(request: Request, exc: DomainError) -> JSONResponse:
        """Render expected failures as ``{"reason", "detail"}`` with their status."""
        logger.info(
            "request_rejected",
            reason=exc.reason,
            status_code=exc.status_code,
            path=request.url.path,
        )
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @application.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """Malformed bodies and parameters are a 400 in the domain error shape."""
        problems = [_describe_validation_error(error) for error in exc.errors()]
        logger.info("request_invalid", path=request.url.path, errors=len(problems))
        error = ValidationError("; ".join(problems) or "Invalid request")
        return JSONResponse(status_code=error.status_code, content=error.to_dict())

    @application.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Last resort: log with traceback and answer 500 in the domain error shape."""
        logger.exception(
            "request_failed",
            error_type=type(exc).__name__,
            method=request.method,
            path=request.url.path,
        )
        content = {"reason": "internal_error", "detail": "Internal server error"}
        if settings.DEBUG:
            content["detail"] = f"{type(exc).__name__}: {exc}"
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=content)

    return application


app = create_application()


@app.get("/health", tags=["Health"])
async def health_check() -> dict[str, str]:
    """Liveness probe. Does not touch Cosmos DB."""
    return {"status": "healthy", "service": "roomvote-api"}


@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    return {"name": settings.APP_NAME, "api": "/api/v1"}
