"""
Feed API endpoint.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from campus_feed.api.deps import get_feed_pipeline, get_viewer_id
from campus_feed.config.settings import settings
from campus_feed.core.feed_pipeline import FeedPipeline
from campus_feed.models.dtos import FeedOrder, FeedPage, FeedScope, FeedTab

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/feed", response_model=FeedPage)
async def get_feed(
    scope: FeedScope = Query(FeedScope.ALL, description="all organizations, or only the viewer's"),
    tab: FeedTab = Query(FeedTab.ALL, description="Content kinds to show"),
    q: Optional[str] = Query(None, max_length=200, description="Search in title, content and organization name"),
    order: FeedOrder = Query(FeedOrder.RECENT, description="recent or popular"),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.FEED_PAGE_SIZE, ge=1, le=settings.FEED_MAX_PAGE_SIZE),
    viewer_id: Optional[str] = Depends(get_viewer_id),
    pipeline: FeedPipeline = Depends(get_feed_pipeline),
) -> FeedPage:
    """
    Merged feed of posts, announcements and polls visible to the viewer.

    Source failures never fail the request; when every source failed the page
    is empty and carries a `notice`.
    """
    logger.info(f"Loading feed: viewer={viewer_id or 'anonymous'} scope={scope.value} tab={tab.value} page={page}")
    return await pipeline.load_feed(
        viewer_id=viewer_id,
        scope=scope,
        tab=tab,
        query=q,
        order=order,
        page=page,
        page_size=page_size,
    )
