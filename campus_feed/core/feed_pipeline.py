"""
Feed Pipeline for the campus feed service.

Coordinates the read path: viewer memberships, the three concurrent source
fetches, visibility filtering, normalization, merging and the tab, search and
pagination steps. A failing source degrades to an empty list; only when every
source that was queried fails does the page carry a notice.
"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set

from campus_feed.config.settings import settings
from campus_feed.core import feed_merger
from campus_feed.core.data_fetcher import (
    fetch_announcements,
    fetch_polls,
    fetch_posts,
    fetch_viewer_organization_ids,
)
from campus_feed.core.normalizer import normalize_many
from campus_feed.core.visibility import filter_visible
from campus_feed.errors import FetchFailure
from campus_feed.models.dtos import FeedItemKind, FeedOrder, FeedPage, FeedScope, FeedTab

logger = logging.getLogger(__name__)

FEED_LOAD_FAILED_NOTICE = "Failed to load feed data."


class FeedPipeline:
    """
    Orchestrates one feed load.

    Every fetch opens its own session, so the three sources can run
    concurrently under asyncio.gather.
    """

    def __init__(self, fetch_limit: int = settings.FEED_FETCH_LIMIT):
        self.fetch_limit = fetch_limit

    async def _viewer_org_ids(self, viewer_id: Optional[str]) -> Optional[Set[str]]:
        """The viewer's organization ids; None when the lookup failed."""
        if not viewer_id:
            return set()
        try:
            return await fetch_viewer_organization_ids(None, viewer_id)
        except FetchFailure as e:
            logger.warning(f"Could not load memberships of user {viewer_id}; showing public content only: {e}", exc_info=True)
            return None

    @staticmethod
    async def _source_unavailable(source: str) -> List[Dict[str, Any]]:
        raise FetchFailure(source)

    async def load_feed(
        self,
        viewer_id: Optional[str] = None,
        scope: FeedScope = FeedScope.ALL,
        tab: FeedTab = FeedTab.ALL,
        query: Optional[str] = None,
        order: FeedOrder = FeedOrder.RECENT,
        page: int = 1,
        page_size: int = settings.FEED_PAGE_SIZE,
        now: Optional[datetime] = None,
    ) -> FeedPage:
        """
        Load, merge and page the feed for one viewer.

        Args:
            viewer_id: Authenticated viewer, or None for an anonymous load.
            scope: ALL for every organization, VIEWER_ORGS for the viewer's only.
                   Announcements are always limited to the viewer's organizations.
            tab: Which content kinds to keep after merging.
            query: Optional case-insensitive search text.
            order: RECENT or POPULAR.
            page: 1-based page number.
            page_size: Items per page.
            now: Reference instant for poll expiry; defaults to the wall clock.

        Returns:
            The requested FeedPage. Never raises for source failures.

        Raises:
            ValueError: If page or page_size is less than 1.
        """
        scope = FeedScope(scope)
        if page < 1 or page_size < 1:
            raise ValueError("page and page_size must be >= 1")

        known_org_ids = await self._viewer_org_ids(viewer_id)
        memberships_unknown = known_org_ids is None
        org_ids = set() if memberships_unknown else known_org_ids
        viewer_orgs_only = scope is FeedScope.VIEWER_ORGS
        scoped_org_ids = org_ids if viewer_orgs_only else None

        # A membership-scoped source fails while memberships are unknown and is
        # skipped when the viewer belongs to no organization.
        sources = (
            (FeedItemKind.POST, viewer_orgs_only,
             lambda: fetch_posts(None, scope, viewer_id=viewer_id, org_ids=scoped_org_ids, limit=self.fetch_limit)),
            (FeedItemKind.ANNOUNCEMENT, True,
             lambda: fetch_announcements(None, FeedScope.VIEWER_ORGS, org_ids=org_ids, limit=self.fetch_limit)),
            (FeedItemKind.POLL, viewer_orgs_only,
             lambda: fetch_polls(None, scope, viewer_id=viewer_id, org_ids=scoped_org_ids, limit=self.fetch_limit)),
        )
        fetches = {}
        for kind, membership_scoped, fetch in sources:
            if membership_scoped and memberships_unknown:
                fetches[kind] = self._source_unavailable(kind.value)
            elif org_ids or not membership_scoped:
                fetches[kind] = fetch()

        results = await asyncio.gather(*fetches.values(), return_exceptions=True)

        loaded: Dict[FeedItemKind, List[Dict[str, Any]]] = {kind: [] for kind, _, _ in sources}
        failures = 0
        for kind, result in zip(fetches, results):
            if isinstance(result, FetchFailure):
                failures += 1
                logger.warning(f"Feed source '{kind.value}' failed; continuing without it: {result}", exc_info=result)
            elif isinstance(result, BaseException):
                raise result
            else:
                loaded[kind] = result

        reference = now or datetime.now(timezone.utc)
        posts = filter_visible(normalize_many(loaded[FeedItemKind.POST], FeedItemKind.POST, now=reference), org_ids)
        announcements = normalize_many(loaded[FeedItemKind.ANNOUNCEMENT], FeedItemKind.ANNOUNCEMENT, now=reference)
        polls = filter_visible(normalize_many(loaded[FeedItemKind.POLL], FeedItemKind.POLL, now=reference), org_ids)

        merged = feed_merger.merge(posts, announcements, polls, order=order)
        selected = feed_merger.search_feed(feed_merger.filter_by_tab(merged, tab), query)

        notice = FEED_LOAD_FAILED_NOTICE if fetches and failures == len(fetches) else None
        if notice:
            logger.error("Every feed source failed to load.")
        logger.info(
            f"Feed loaded for viewer {viewer_id or 'anonymous'}: {len(posts)} posts, "
            f"{len(announcements)} announcements, {len(polls)} polls, {len(selected)} after tab/search."
        )
        return feed_merger.paginate(selected, page=page, page_size=page_size, notice=notice)
