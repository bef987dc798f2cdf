"""
Feed Merger: combines normalized posts, announcements and polls into a single
ordered stream, and provides the tab, search and pagination steps applied to
the merged stream before it is handed to a screen.
"""
from typing import Iterable, List, Optional, Sequence

from campus_feed.models.dtos import FeedItem, FeedItemKind, FeedOrder, FeedPage, FeedTab

_POST_TAB_KINDS = frozenset({FeedItemKind.POST, FeedItemKind.POLL})


def _recency_key(item: FeedItem):
    # Missing timestamps sort after every dated item.
    if item.created_at is None:
        return (1, 0.0)
    return (0, -item.created_at.timestamp())


def _popularity_key(item: FeedItem):
    # Announcements and polls carry the default like_count of 0.
    return -item.like_count


def merge(
    post_items: Iterable[FeedItem],
    announcement_items: Iterable[FeedItem],
    poll_items: Iterable[FeedItem],
    order: FeedOrder = FeedOrder.RECENT,
) -> List[FeedItem]:
    """
    Concatenate the three sources and sort them into one stream.

    The sort is stable, so ties keep fetch order (posts, then announcements,
    then polls, each most-recent-first). Nothing is dropped or duplicated.

    Args:
        post_items: Normalized, visibility-filtered posts.
        announcement_items: Normalized announcements.
        poll_items: Normalized, visibility-filtered polls.
        order: RECENT sorts by created_at descending; POPULAR by like count descending.

    Returns:
        A new list containing every input item exactly once.
    """
    combined = [*post_items, *announcement_items, *poll_items]
    key = _popularity_key if FeedOrder(order) is FeedOrder.POPULAR else _recency_key
    return sorted(combined, key=key)


def filter_by_tab(items: Iterable[FeedItem], tab: FeedTab = FeedTab.ALL) -> List[FeedItem]:
    tab = FeedTab(tab)
    if tab is FeedTab.ANNOUNCEMENTS:
        return [item for item in items if item.kind is FeedItemKind.ANNOUNCEMENT]
    if tab is FeedTab.POSTS:
        return [item for item in items if item.kind in _POST_TAB_KINDS]
    return list(items)


def search_feed(items: Iterable[FeedItem], query: Optional[str]) -> List[FeedItem]:
    """Case-insensitive substring match on title, content and organization name."""
    needle = (query or "").strip().casefold()
    if not needle:
        return list(items)
    return [
        item for item in items
        if needle in item.title.casefold()
        or needle in item.content.casefold()
        or needle in item.organization_name.casefold()
    ]


def paginate(items: Sequence[FeedItem], page: int = 1, page_size: int = 20, notice: Optional[str] = None) -> FeedPage:
    """
    Slice an already merged and filtered feed into a 1-based page.

    Raises:
        ValueError: If page or page_size is less than 1.
    """
    if page < 1:
        raise ValueError("page must be >= 1")
    if page_size < 1:
        raise ValueError("page_size must be >= 1")
    start = (page - 1) * page_size
    end = start + page_size
    return FeedPage(
        items=list(items[start:end]),
        page=page,
        page_size=page_size,
        total=len(items),
        has_more=end < len(items),
        notice=notice,
    )
