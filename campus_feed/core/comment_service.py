"""
Comment Service for the campus feed.

Loads a post's comment thread as a tree and handles the comment write paths:
adding comments and replies, and author-only deletion.
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from campus_feed.config.settings import settings
from campus_feed.core.comment_tree import build_comment_tree, count_nodes
from campus_feed.core.data_fetcher import fetch_comments, fetch_profiles
from campus_feed.errors import AuthRequired, CommentNotFound, FetchFailure, InvalidComment, NotCommentAuthor
from campus_feed.models import Comment, CommentThread, PostCommentORM
from campus_feed.models.base import new_id
from campus_feed.utils.db_session import get_db_session_context_manager as get_async_db_session

logger = logging.getLogger(__name__)


def _to_comment(row: PostCommentORM) -> Comment:
    return Comment(
        id=row.comment_id,
        post_id=row.post_id,
        author_id=row.user_id,
        content=row.content or "",
        created_at=row.created_at,
        parent_comment_id=row.parent_comment_id,
    )


class CommentService:
    """
    Reads and writes post comments.
    """

    def __init__(self, session: Optional[AsyncSession] = None):
        """
        Args:
            session: An optional AsyncSession to use for every operation.
                     If None, a new session is created per operation.
        """
        self._shared_session = session

    async def load_thread(self, post_id: str) -> CommentThread:
        """
        Fetch a post's comments and build the reply tree.

        Missing author profiles only drop the `author` attachment; a failure to
        load the comments themselves raises FetchFailure.
        """
        comments = await fetch_comments(self._shared_session, post_id)
        try:
            authors = await fetch_profiles(self._shared_session, [comment.author_id for comment in comments])
        except FetchFailure as e:
            logger.warning(f"Showing comments of post {post_id} without author profiles: {e}", exc_info=True)
            authors = {}

        forest = build_comment_tree(comments, authors)
        return CommentThread(
            post_id=post_id,
            comments=forest,
            total=count_nodes(forest),
            max_reply_depth=settings.COMMENT_MAX_REPLY_DEPTH,
        )

    async def add_comment(
        self,
        post_id: str,
        content: Optional[str],
        viewer_id: Optional[str],
        parent_comment_id: Optional[str] = None,
    ) -> Comment:
        """
        Adds a comment, or a reply when `parent_comment_id` is given.

        Raises:
            AuthRequired: If there is no viewer.
            InvalidComment: If the stripped content is empty or too long, or the
                            parent is not a comment of the same post.
        """
        if not viewer_id:
            raise AuthRequired("comment")
        text = (content or "").strip()
        if not text:
            raise InvalidComment("Comment cannot be empty")
        if len(text) > settings.COMMENT_MAX_LENGTH:
            raise InvalidComment(f"Comment cannot exceed {settings.COMMENT_MAX_LENGTH} characters")

        async with get_async_db_session(existing_session=self._shared_session) as session:
            try:
                if parent_comment_id is not None:
                    result = await session.execute(
                        select(PostCommentORM).where(PostCommentORM.comment_id == parent_comment_id)
                    )
                    parent = result.scalars().first()
                    if parent is None or parent.post_id != post_id:
                        raise InvalidComment(f"Comment {parent_comment_id} is not a comment on post {post_id}")

                row = PostCommentORM(
                    comment_id=new_id(),
                    post_id=post_id,
                    user_id=viewer_id,
                    content=text,
                    parent_comment_id=parent_comment_id,
                    created_at=datetime.now(timezone.utc),
                )
                session.add(row)
                await session.commit()
                logger.info(f"User {viewer_id} added comment {row.comment_id} on post {post_id}")
                return _to_comment(row)
            except SQLAlchemyError as e:
                logger.error(f"Database error adding comment on post {post_id}: {e}", exc_info=True)
                await session.rollback()
                raise

    async def delete_comment(self, comment_id: str, viewer_id: Optional[str]) -> None:
        """
        Deletes one comment authored by the viewer. Replies are left in place.

        Raises:
            AuthRequired: If there is no viewer.
            CommentNotFound: If the comment does not exist.
            NotCommentAuthor: If the viewer did not write the comment.
        """
        if not viewer_id:
            raise AuthRequired("delete comments")

        async with get_async_db_session(existing_session=self._shared_session) as session:
            try:
                result = await session.execute(
                    select(PostCommentORM).where(PostCommentORM.comment_id == comment_id)
                )
                row = result.scalars().first()
                if row is None:
                    raise CommentNotFound(comment_id)
                if row.user_id != viewer_id:
                    raise NotCommentAuthor(comment_id)

                await session.execute(delete(PostCommentORM).where(PostCommentORM.comment_id == comment_id))
                await session.commit()
                logger.info(f"User {viewer_id} deleted comment {comment_id}")
            except SQLAlchemyError as e:
                logger.error(f"Database error deleting comment {comment_id}: {e}", exc_info=True)
                await session.rollback()
                raise
