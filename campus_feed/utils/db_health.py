"""Database health check utilities for startup scripts and the health endpoint."""

import logging

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from campus_feed.utils.db_session import get_async_engine

logger = logging.getLogger(__name__)


async def check_db_connection() -> bool:
    """
    Test database connection for startup health checks.

    Returns:
        bool: True if connection successful, False otherwise.
    """
    try:
        engine = get_async_engine()
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except (SQLAlchemyError, OSError) as e:
        logger.warning(f"Database health check failed: {e}")
        return False
