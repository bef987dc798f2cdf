"""
Like Service: toggles a viewer's like on a post.
"""
import logging
from typing import Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from campus_feed.errors import AuthRequired
from campus_feed.models import LikeState, PostLikeORM
from campus_feed.models.base import new_id
from campus_feed.utils.db_session import get_db_session_context_manager as get_async_db_session

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"


def is_unique_violation(error: IntegrityError) -> bool:
    """True when the driver reports a duplicate key (SQLSTATE 23505)."""
    orig = getattr(error, "orig", None)
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    return code == UNIQUE_VIOLATION


class LikeService:
    def __init__(self, session: Optional[AsyncSession] = None):
        self._shared_session = session

    async def toggle_like(self, post_id: str, viewer_id: Optional[str]) -> LikeState:
        """
        Likes the post if the viewer has not liked it yet, otherwise removes the like.

        A duplicate-key error on insert means another request already recorded
        the like, and is reported as liked. The returned count is re-read after
        the write.

        Raises:
            AuthRequired: If there is no viewer.
        """
        if not viewer_id:
            raise AuthRequired("like posts")

        async with get_async_db_session(existing_session=self._shared_session) as session:
            try:
                existing = await session.execute(
                    select(PostLikeORM.like_id).where(
                        (PostLikeORM.post_id == post_id) & (PostLikeORM.user_id == viewer_id)
                    )
                )
                like_id = existing.scalars().first()
                if like_id is not None:
                    await session.execute(delete(PostLikeORM).where(PostLikeORM.like_id == like_id))
                    await session.commit()
                    liked = False
                else:
                    try:
                        session.add(PostLikeORM(like_id=new_id(), post_id=post_id, user_id=viewer_id))
                        await session.commit()
                    except IntegrityError as e:
                        await session.rollback()
                        if not is_unique_violation(e):
                            raise
                        logger.info(f"Post {post_id} was already liked by user {viewer_id}")
                    liked = True

                count = await session.execute(
                    select(func.count(PostLikeORM.like_id)).where(PostLikeORM.post_id == post_id)
                )
                like_count = count.scalar_one()
            except SQLAlchemyError as e:
                logger.error(f"Database error toggling like on post {post_id}: {e}", exc_info=True)
                await session.rollback()
                raise

        logger.info(f"User {viewer_id} {'liked' if liked else 'unliked'} post {post_id}")
        return LikeState(post_id=post_id, liked=liked, like_count=like_count or 0)
