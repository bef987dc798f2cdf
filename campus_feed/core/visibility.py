"""
Visibility filter for feed content.

Applied to posts and polls. Announcements are scoped at the fetch boundary and
never pass through here.
"""
from typing import AbstractSet, Iterable, List

from campus_feed.models.dtos import FeedItem, Visibility


def is_visible(item: FeedItem, viewer_org_ids: AbstractSet[str]) -> bool:
    """
    Decide whether the viewer may see a feed item.

    'public' items are always visible, 'members' items only to members of the
    owning organization. Any other visibility value is treated as hidden.
    """
    if item.visibility == Visibility.PUBLIC.value:
        return True
    if item.visibility == Visibility.MEMBERS.value:
        return item.organization_id in viewer_org_ids
    return False


def filter_visible(items: Iterable[FeedItem], viewer_org_ids: AbstractSet[str]) -> List[FeedItem]:
    return [item for item in items if is_visible(item, viewer_org_ids)]
