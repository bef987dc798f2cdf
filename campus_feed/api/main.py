"""
FastAPI application for the campus feed service.

This module initializes and configures the FastAPI application that serves
the feed, poll voting, comment and like endpoints.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import AsyncGenerator, Dict, Type

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse

from campus_feed.api.endpoints import comments, feed, likes, polls
from campus_feed.config.settings import settings
from campus_feed.errors import (
    AuthRequired,
    BallotSubmissionFailed,
    CampusFeedError,
    CommentNotFound,
    FetchFailure,
    InvalidBallot,
    InvalidComment,
    MembershipRequired,
    NotCommentAuthor,
    PollClosed,
    PollNotFound,
)
from campus_feed.utils.db_health import check_db_connection
from campus_feed.utils.db_session import get_async_engine
from campus_feed.utils.logging_utils import setup_logging

logger = logging.getLogger(__name__)

ERROR_STATUS_CODES: Dict[Type[CampusFeedError], int] = {
    AuthRequired: status.HTTP_401_UNAUTHORIZED,
    InvalidBallot: status.HTTP_422_UNPROCESSABLE_ENTITY,
    InvalidComment: status.HTTP_422_UNPROCESSABLE_ENTITY,
    MembershipRequired: status.HTTP_403_FORBIDDEN,
    NotCommentAuthor: status.HTTP_403_FORBIDDEN,
    PollNotFound: status.HTTP_404_NOT_FOUND,
    CommentNotFound: status.HTTP_404_NOT_FOUND,
    PollClosed: status.HTTP_409_CONFLICT,
    BallotSubmissionFailed: status.HTTP_503_SERVICE_UNAVAILABLE,
    FetchFailure: status.HTTP_502_BAD_GATEWAY,
}


def status_code_for(error: CampusFeedError) -> int:
    """Most specific mapped status for the error's class, 500 when unmapped."""
    for cls in type(error).__mro__:
        if cls in ERROR_STATUS_CODES:
            return ERROR_STATUS_CODES[cls]
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def campus_feed_error_handler(request: Request, exc: CampusFeedError) -> JSONResponse:
    status_code = status_code_for(exc)
    body = {"detail": str(exc), "error": type(exc).__name__}
    if isinstance(exc, BallotSubmissionFailed):
        body.update(retry_safe=exc.retry_safe, stage=exc.stage)
        logger.warning(f"{request.method} {request.url.path} failed at ballot stage '{exc.stage}': {exc}")
    elif status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(status_code=status_code, content=body)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager for startup and shutdown events.

    Configures logging and checks the database on startup; disposes of the
    engine's connection pool on shutdown.
    """
    setup_logging(Path(settings.LOGGING_CONFIG_PATH))
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    if not await check_db_connection():
        logger.warning("Database is not reachable at startup; requests will fail until it is.")

    yield

    logger.info(f"Shutting down {settings.APP_NAME}")
    await get_async_engine().dispose()


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        FastAPI: Configured FastAPI application instance.
    """
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="""Campus feed API for university organizations.

        This API provides endpoints for:
        - The merged feed of posts, announcements and polls
        - Poll voting with single-ballot-per-user semantics
        - Comment threads, replies and deletion
        - Post likes
        - Health monitoring""",
        debug=settings.DEBUG,
        lifespan=lifespan,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
        openapi_tags=[
            {"name": "feed", "description": "Merged organization feed"},
            {"name": "polls", "description": "Poll voting"},
            {"name": "comments", "description": "Post comment threads"},
            {"name": "likes", "description": "Post likes"},
            {"name": "health", "description": "Health check and monitoring"},
        ],
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS if not settings.DEBUG else ["*"],
        allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
        allow_methods=settings.CORS_ALLOW_METHODS,
        allow_headers=settings.CORS_ALLOW_HEADERS,
    )

    app.add_middleware(
        TrustedHostMiddleware,
        allowed_hosts=settings.ALLOWED_HOSTS if not settings.DEBUG else ["*"]
    )

    app.add_exception_handler(CampusFeedError, campus_feed_error_handler)

    app.include_router(feed.router, prefix="/api/v1", tags=["feed"])
    app.include_router(polls.router, prefix="/api/v1", tags=["polls"])
    app.include_router(comments.router, prefix="/api/v1", tags=["comments"])
    app.include_router(likes.router, prefix="/api/v1", tags=["likes"])

    @app.get("/health", tags=["health"], summary="Health Check")
    async def health_check():
        """
        Health check endpoint.

        Returns:
            dict: Service status, version, timestamp and database reachability.
        """
        database_ok = await check_db_connection()
        return {
            "status": "healthy" if database_ok else "degraded",
            "service": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "database": "connected" if database_ok else "unreachable",
            "debug_mode": settings.DEBUG,
        }

    return app


# Create the application instance
app = create_app()
