from datetime import datetime, timezone

import pytest

from campus_feed.core.feed_merger import filter_by_tab, merge, paginate, search_feed
from campus_feed.core.visibility import filter_visible, is_visible
from campus_feed.models.dtos import FeedItem, FeedItemKind, FeedOrder, FeedTab


def _item(item_id, kind, created_at=None, like_count=0, **fields):
    return FeedItem(
        id=item_id,
        kind=kind,
        created_at=datetime.fromisoformat(created_at).replace(tzinfo=timezone.utc) if created_at else None,
        like_count=like_count,
        **fields,
    )


def _ids(items):
    return [item.id for item in items]


def test_merge_recent_example():
    posts = [_item("1", FeedItemKind.POST, "2024-01-02", like_count=5)]
    announcements = [_item("A", FeedItemKind.ANNOUNCEMENT, "2024-01-03")]

    merged = merge(posts, announcements, [])

    assert _ids(merged) == ["A", "1"]
    assert search_feed(merged, "xyz") == []


def test_merge_is_total_and_sorted_descending():
    posts = [_item("p1", FeedItemKind.POST, "2024-01-01"), _item("p2", FeedItemKind.POST, "2024-03-01")]
    announcements = [_item("a1", FeedItemKind.ANNOUNCEMENT, "2024-02-01")]
    polls = [_item("q1", FeedItemKind.POLL, "2024-01-15")]

    merged = merge(posts, announcements, polls, order=FeedOrder.RECENT)

    assert sorted(_ids(merged)) == sorted(["p1", "p2", "a1", "q1"])
    assert _ids(merged) == ["p2", "a1", "q1", "p1"]


def test_merge_places_undated_items_last_keeping_fetch_order():
    posts = [_item("undated-post", FeedItemKind.POST)]
    polls = [_item("undated-poll", FeedItemKind.POLL), _item("dated", FeedItemKind.POLL, "2020-01-01")]

    assert _ids(merge(posts, [], polls)) == ["dated", "undated-post", "undated-poll"]


def test_merge_ties_keep_source_order():
    same = "2024-01-01"
    merged = merge(
        [_item("post", FeedItemKind.POST, same)],
        [_item("ann", FeedItemKind.ANNOUNCEMENT, same)],
        [_item("poll", FeedItemKind.POLL, same)],
    )

    assert _ids(merged) == ["post", "ann", "poll"]


def test_merge_popular_orders_by_likes():
    posts = [
        _item("low", FeedItemKind.POST, "2024-03-01", like_count=1),
        _item("high", FeedItemKind.POST, "2024-01-01", like_count=9),
    ]
    announcements = [_item("ann", FeedItemKind.ANNOUNCEMENT, "2024-04-01")]

    assert _ids(merge(posts, announcements, [], order=FeedOrder.POPULAR)) == ["high", "low", "ann"]


def test_filter_by_tab():
    items = [
        _item("p", FeedItemKind.POST),
        _item("a", FeedItemKind.ANNOUNCEMENT),
        _item("q", FeedItemKind.POLL),
    ]

    assert _ids(filter_by_tab(items, FeedTab.ALL)) == ["p", "a", "q"]
    assert _ids(filter_by_tab(items, FeedTab.ANNOUNCEMENTS)) == ["a"]
    assert _ids(filter_by_tab(items, FeedTab.POSTS)) == ["p", "q"]


def test_search_matches_title_content_and_organization_case_insensitively():
    items = [
        _item("1", FeedItemKind.POST, title="Spring Gala"),
        _item("2", FeedItemKind.POST, content="tickets for the GALA"),
        _item("3", FeedItemKind.POST, organization_name="Gala Committee"),
        _item("4", FeedItemKind.POST, title="Chess night"),
    ]

    assert _ids(search_feed(items, "gala")) == ["1", "2", "3"]
    assert _ids(search_feed(items, "   ")) == ["1", "2", "3", "4"]
    assert _ids(search_feed(items, None)) == ["1", "2", "3", "4"]


def test_paginate():
    items = [_item(str(i), FeedItemKind.POST) for i in range(5)]

    first = paginate(items, page=1, page_size=2)
    last = paginate(items, page=3, page_size=2)
    beyond = paginate(items, page=4, page_size=2)

    assert _ids(first.items) == ["0", "1"]
    assert first.has_more is True
    assert first.total == 5
    assert _ids(last.items) == ["4"]
    assert last.has_more is False
    assert beyond.items == []


@pytest.mark.parametrize("page, page_size", [(0, 10), (1, 0), (-1, -1)])
def test_paginate_rejects_invalid_bounds(page, page_size):
    with pytest.raises(ValueError):
        paginate([], page=page, page_size=page_size)


# --- Visibility filter ---

def test_visibility_filter_fails_closed():
    items = [
        _item("public", FeedItemKind.POST, visibility="public", organization_id="org-1"),
        _item("mine", FeedItemKind.POST, visibility="members", organization_id="org-1"),
        _item("theirs", FeedItemKind.POLL, visibility="members", organization_id="org-2"),
        _item("odd", FeedItemKind.POST, visibility="friends", organization_id="org-1"),
    ]

    assert _ids(filter_visible(items, {"org-1"})) == ["public", "mine"]
    assert _ids(filter_visible(items, set())) == ["public"]


def test_is_visible_for_anonymous_viewer():
    members_item = _item("m", FeedItemKind.POST, visibility="members", organization_id="org-1")

    assert is_visible(members_item, frozenset()) is False
