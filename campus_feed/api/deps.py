"""
FastAPI dependencies shared by the campus feed endpoints.
"""
from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from campus_feed.core.ballot_engine import PollBallotEngine
from campus_feed.core.ballot_repository import SqlAlchemyBallotRepository
from campus_feed.core.comment_service import CommentService
from campus_feed.core.feed_pipeline import FeedPipeline
from campus_feed.core.like_service import LikeService
from campus_feed.utils.db_session import get_db_session


async def get_viewer_id(x_viewer_id: Optional[str] = Header(None)) -> Optional[str]:
    """The authenticated viewer, as forwarded by the gateway; blank means anonymous."""
    if x_viewer_id is None or not x_viewer_id.strip():
        return None
    return x_viewer_id.strip()


async def get_feed_pipeline() -> FeedPipeline:
    return FeedPipeline()


async def get_ballot_engine() -> PollBallotEngine:
    # No shared session: every ballot primitive commits in a session of its own.
    return PollBallotEngine(SqlAlchemyBallotRepository())


async def get_comment_service(session: AsyncSession = Depends(get_db_session)) -> CommentService:
    return CommentService(session=session)


async def get_like_service(session: AsyncSession = Depends(get_db_session)) -> LikeService:
    return LikeService(session=session)
