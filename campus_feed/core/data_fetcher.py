"""
Content Fetchers for the campus feed.

Each fetcher runs its queries against the store and returns plain row
dictionaries in the shape the normalizer reads (posts, announcements and polls
carry their joined organization record under ``organizations``). Store errors,
including a refused or dropped connection, are logged and raised as
``FetchFailure``; deciding whether a failed source
degrades to an empty list is left to the caller.
"""
import asyncio
import logging
from typing import Any, Dict, Iterable, List, Optional, Set

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from campus_feed.config.settings import settings
from campus_feed.errors import FetchFailure
from campus_feed.models import (
    AnnouncementORM,
    Comment,
    CommentAuthor,
    FeedScope,
    MembershipORM,
    OrganizationORM,
    PollOptionORM,
    PollORM,
    PollVoteORM,
    PostCommentORM,
    PostLikeORM,
    PostORM,
    ProfileORM,
)
from campus_feed.utils.db_session import get_db_session_context_manager as get_async_db_session

logger = logging.getLogger(__name__)

# asyncpg surfaces an unreachable server as OSError or a timeout, not SQLAlchemyError
STORE_ERRORS = (SQLAlchemyError, OSError, asyncio.TimeoutError)


def _organization_record(org: Optional[OrganizationORM]) -> Optional[Dict[str, Any]]:
    if org is None:
        return None
    return {"org_id": org.org_id, "org_name": org.org_name, "org_pic": org.org_pic}


def _scoped_org_ids(scope: FeedScope, org_ids: Optional[Iterable[str]]) -> Optional[List[str]]:
    """
    The organization ids a query must be restricted to, or None for no restriction.

    An empty list means the query can only return nothing.
    """
    if FeedScope(scope) is FeedScope.VIEWER_ORGS or org_ids is not None:
        return sorted(set(org_ids or []))
    return None


async def fetch_viewer_organization_ids(db_session: Optional[AsyncSession], viewer_id: Optional[str]) -> Set[str]:
    """
    Returns the ids of every organization the viewer is a member of.

    An anonymous viewer belongs to no organization.
    """
    if not viewer_id:
        return set()
    try:
        async with get_async_db_session(existing_session=db_session) as session:
            result = await session.execute(
                select(MembershipORM.org_id).where(MembershipORM.user_id == viewer_id)
            )
            return set(result.scalars().all())
    except STORE_ERRORS as e:
        logger.error(f"Database error fetching memberships of user {viewer_id}: {e}", exc_info=True)
        raise FetchFailure("memberships") from e


async def fetch_posts(
    db_session: Optional[AsyncSession],
    scope: FeedScope = FeedScope.ALL,
    viewer_id: Optional[str] = None,
    org_ids: Optional[Iterable[str]] = None,
    limit: int = settings.FEED_FETCH_LIMIT,
) -> List[Dict[str, Any]]:
    """
    Fetches the most recent organization posts with their like and comment counts.

    Args:
        db_session: Session to run on; a new one is opened when None.
        scope: ALL for every organization, VIEWER_ORGS to restrict to `org_ids`.
        viewer_id: When given, each row carries `viewer_has_liked`.
        org_ids: Organization ids to restrict to.
        limit: Maximum number of posts, newest first.

    Returns:
        Row dictionaries, newest first.

    Raises:
        FetchFailure: If the store query fails.
    """
    restrict_to = _scoped_org_ids(scope, org_ids)
    if restrict_to is not None and not restrict_to:
        return []

    like_counts = (
        select(PostLikeORM.post_id, func.count(PostLikeORM.like_id).label("like_count"))
        .group_by(PostLikeORM.post_id)
        .subquery()
    )
    comment_counts = (
        select(PostCommentORM.post_id, func.count(PostCommentORM.comment_id).label("comment_count"))
        .group_by(PostCommentORM.post_id)
        .subquery()
    )
    stmt = (
        select(
            PostORM,
            OrganizationORM,
            func.coalesce(like_counts.c.like_count, 0),
            func.coalesce(comment_counts.c.comment_count, 0),
        )
        .outerjoin(OrganizationORM, OrganizationORM.org_id == PostORM.org_id)
        .outerjoin(like_counts, like_counts.c.post_id == PostORM.post_id)
        .outerjoin(comment_counts, comment_counts.c.post_id == PostORM.post_id)
        .order_by(PostORM.created_at.desc())
        .limit(limit)
    )
    if restrict_to is not None:
        stmt = stmt.where(PostORM.org_id.in_(restrict_to))

    try:
        async with get_async_db_session(existing_session=db_session) as session:
            rows = (await session.execute(stmt)).all()
            liked_post_ids: Set[str] = set()
            if viewer_id and rows:
                liked = await session.execute(
                    select(PostLikeORM.post_id).where(
                        (PostLikeORM.user_id == viewer_id)
                        & (PostLikeORM.post_id.in_([post.post_id for post, *_ in rows]))
                    )
                )
                liked_post_ids = set(liked.scalars().all())
    except STORE_ERRORS as e:
        logger.error(f"Database error fetching posts: {e}", exc_info=True)
        raise FetchFailure("posts") from e

    logger.debug(f"Fetched {len(rows)} posts (scope={FeedScope(scope).value}).")
    return [
        {
            "post_id": post.post_id,
            "org_id": post.org_id,
            "author_id": post.author_id,
            "title": post.title,
            "content": post.content,
            "media_url": post.media_url,
            "media_urls": post.media_urls,
            "visibility": post.visibility,
            "created_at": post.created_at,
            "like_count": like_count,
            "comment_count": comment_count,
            "viewer_has_liked": post.post_id in liked_post_ids,
            "organizations": _organization_record(org),
        }
        for post, org, like_count, comment_count in rows
    ]


async def fetch_announcements(
    db_session: Optional[AsyncSession],
    scope: FeedScope = FeedScope.VIEWER_ORGS,
    org_ids: Optional[Iterable[str]] = None,
    limit: int = settings.FEED_FETCH_LIMIT,
) -> List[Dict[str, Any]]:
    """Fetches the most recent announcements, newest first. Raises FetchFailure on store errors."""
    restrict_to = _scoped_org_ids(scope, org_ids)
    if restrict_to is not None and not restrict_to:
        return []

    stmt = (
        select(AnnouncementORM, OrganizationORM)
        .outerjoin(OrganizationORM, OrganizationORM.org_id == AnnouncementORM.org_id)
        .order_by(AnnouncementORM.created_at.desc())
        .limit(limit)
    )
    if restrict_to is not None:
        stmt = stmt.where(AnnouncementORM.org_id.in_(restrict_to))

    try:
        async with get_async_db_session(existing_session=db_session) as session:
            rows = (await session.execute(stmt)).all()
    except STORE_ERRORS as e:
        logger.error(f"Database error fetching announcements: {e}", exc_info=True)
        raise FetchFailure("announcements") from e

    return [
        {
            "announcement_id": announcement.announcement_id,
            "org_id": announcement.org_id,
            "title": announcement.title,
            "content": announcement.content,
            "image": announcement.image,
            "created_at": announcement.created_at,
            "organizations": _organization_record(org),
        }
        for announcement, org in rows
    ]


async def fetch_polls(
    db_session: Optional[AsyncSession],
    scope: FeedScope = FeedScope.ALL,
    viewer_id: Optional[str] = None,
    org_ids: Optional[Iterable[str]] = None,
    limit: int = settings.FEED_FETCH_LIMIT,
) -> List[Dict[str, Any]]:
    """
    Fetches the most recent polls with their options and the viewer's selections.

    Options are ordered by position. `user_votes` lists the option ids the viewer
    has selected and is empty for anonymous viewers.

    Raises:
        FetchFailure: If any of the store queries fails.
    """
    restrict_to = _scoped_org_ids(scope, org_ids)
    if restrict_to is not None and not restrict_to:
        return []

    stmt = (
        select(PollORM, OrganizationORM)
        .outerjoin(OrganizationORM, OrganizationORM.org_id == PollORM.org_id)
        .order_by(PollORM.created_at.desc())
        .limit(limit)
    )
    if restrict_to is not None:
        stmt = stmt.where(PollORM.org_id.in_(restrict_to))

    options_by_poll: Dict[str, List[Dict[str, Any]]] = {}
    votes_by_poll: Dict[str, List[str]] = {}
    try:
        async with get_async_db_session(existing_session=db_session) as session:
            rows = (await session.execute(stmt)).all()
            poll_ids = [poll.poll_id for poll, _ in rows]
            if poll_ids:
                options = await session.execute(
                    select(PollOptionORM)
                    .where(PollOptionORM.poll_id.in_(poll_ids))
                    .order_by(PollOptionORM.poll_id, PollOptionORM.position.asc())
                )
                for option in options.scalars().all():
                    options_by_poll.setdefault(option.poll_id, []).append({
                        "option_id": option.option_id,
                        "option_text": option.option_text,
                        "vote_count": option.vote_count,
                    })
            if poll_ids and viewer_id:
                votes = await session.execute(
                    select(PollVoteORM.poll_id, PollVoteORM.option_id).where(
                        (PollVoteORM.user_id == viewer_id) & (PollVoteORM.poll_id.in_(poll_ids))
                    )
                )
                for poll_id, option_id in votes.all():
                    votes_by_poll.setdefault(poll_id, []).append(option_id)
    except STORE_ERRORS as e:
        logger.error(f"Database error fetching polls: {e}", exc_info=True)
        raise FetchFailure("polls") from e

    return [
        {
            "poll_id": poll.poll_id,
            "org_id": poll.org_id,
            "question": poll.question,
            "visibility": poll.visibility,
            "allow_multiple": poll.allow_multiple,
            "expires_at": poll.expires_at,
            "created_at": poll.created_at,
            "options": options_by_poll.get(poll.poll_id, []),
            "user_votes": votes_by_poll.get(poll.poll_id, []),
            "organizations": _organization_record(org),
        }
        for poll, org in rows
    ]


async def fetch_comments(db_session: Optional[AsyncSession], post_id: str) -> List[Comment]:
    """Fetches every comment of a post as a flat list, oldest first."""
    try:
        async with get_async_db_session(existing_session=db_session) as session:
            result = await session.execute(
                select(PostCommentORM)
                .where(PostCommentORM.post_id == post_id)
                .order_by(PostCommentORM.created_at.asc())
            )
            rows = result.scalars().all()
    except STORE_ERRORS as e:
        logger.error(f"Database error fetching comments of post {post_id}: {e}", exc_info=True)
        raise FetchFailure("comments") from e

    return [
        Comment(
            id=row.comment_id,
            post_id=row.post_id,
            author_id=row.user_id,
            content=row.content or "",
            created_at=row.created_at,
            parent_comment_id=row.parent_comment_id,
        )
        for row in rows
    ]


async def fetch_profiles(db_session: Optional[AsyncSession], user_ids: Iterable[str]) -> Dict[str, CommentAuthor]:
    """Fetches display profiles keyed by user id; unknown ids are simply absent."""
    wanted = sorted({user_id for user_id in user_ids if user_id})
    if not wanted:
        return {}
    try:
        async with get_async_db_session(existing_session=db_session) as session:
            result = await session.execute(select(ProfileORM).where(ProfileORM.user_id.in_(wanted)))
            profiles = result.scalars().all()
    except STORE_ERRORS as e:
        logger.error(f"Database error fetching {len(wanted)} profiles: {e}", exc_info=True)
        raise FetchFailure("profiles") from e
    return {profile.user_id: CommentAuthor.model_validate(profile) for profile in profiles}
