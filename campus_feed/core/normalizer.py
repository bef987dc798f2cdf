"""
Content Normalizer for the campus feed.

Maps the raw row shapes produced by the data fetcher (posts, announcements and
polls with their joined organization record) onto the unified FeedItem shape.
Every function here is pure and total: missing or malformed optional fields
fall back to empty/zero defaults instead of raising.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Iterable, List, Mapping, Optional, Sequence

from dateutil.parser import isoparse

from campus_feed.models.dtos import FeedItem, FeedItemKind, PollOption, Visibility

logger = logging.getLogger(__name__)

# Legacy visibility spellings still present in older rows
_VISIBILITY_ALIASES = {
    "members_only": Visibility.MEMBERS.value,
}

_ID_KEYS = {
    FeedItemKind.POST: "post_id",
    FeedItemKind.ANNOUNCEMENT: "announcement_id",
    FeedItemKind.POLL: "poll_id",
}


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse a source timestamp into an aware UTC datetime.

    Accepts datetimes and ISO-8601 strings; naive values are read as UTC.
    Returns None for anything missing or unparsable.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        if not value.strip():
            return None
        try:
            parsed = isoparse(value.strip())
        except (ValueError, OverflowError):
            logger.debug(f"Unparsable timestamp {value!r}; treating as missing.")
            return None
    else:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def _as_count(value: Any) -> int:
    """Coerce a stored counter to a non-negative int; garbage counts as zero."""
    if isinstance(value, bool):
        return 0
    try:
        count = int(value)
    except (TypeError, ValueError):
        return 0
    return max(count, 0)


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "t", "1", "yes")
    return bool(value)


def _row_id(row: Mapping[str, Any], kind: FeedItemKind) -> str:
    value = row.get(_ID_KEYS[kind])
    if value is None:
        value = row.get("id")
    return _as_text(value)


def _organization(row: Mapping[str, Any]) -> Mapping[str, Any]:
    """The joined organization record may be a mapping, a one-element list, or absent."""
    org = row.get("organizations")
    if isinstance(org, Sequence) and not isinstance(org, (str, bytes)):
        org = org[0] if org else None
    return org if isinstance(org, Mapping) else {}


def normalize_visibility(value: Any) -> str:
    """
    Canonicalize a stored visibility value.

    Known values come back as 'public' or 'members'; a missing value is read as
    'members'. Unknown values are returned as-is so the visibility filter can
    reject them.
    """
    if value is None:
        return Visibility.MEMBERS.value
    text = _as_text(value).strip().lower()
    if not text:
        return Visibility.MEMBERS.value
    return _VISIBILITY_ALIASES.get(text, text)


def coalesce_media_urls(media_urls: Any, media_url: Any) -> List[str]:
    """
    Merge the two legacy media columns into one ordered list.

    The array form wins when present (blank entries dropped); otherwise the
    singular field is wrapped; otherwise the result is empty.
    """
    if isinstance(media_urls, Sequence) and not isinstance(media_urls, (str, bytes)):
        return [url.strip() for url in media_urls if isinstance(url, str) and url.strip()]
    if isinstance(media_url, str) and media_url.strip():
        return [media_url.strip()]
    return []


def _normalize_options(raw_options: Any) -> List[PollOption]:
    if not isinstance(raw_options, Sequence) or isinstance(raw_options, (str, bytes)):
        return []
    options = []
    for raw in raw_options:
        if not isinstance(raw, Mapping):
            continue
        option_id = raw.get("option_id", raw.get("id"))
        options.append(PollOption(
            id=_as_text(option_id),
            label=_as_text(raw.get("option_text", raw.get("label"))),
            vote_count=_as_count(raw.get("vote_count")),
        ))
    return options


def _selected_option_ids(raw_votes: Any) -> set:
    if not isinstance(raw_votes, Iterable) or isinstance(raw_votes, (str, bytes, Mapping)):
        return set()
    return {_as_text(option_id) for option_id in raw_votes if option_id is not None}


def normalize(raw_row: Mapping[str, Any], kind: FeedItemKind, now: Optional[datetime] = None) -> FeedItem:
    """
    Map one raw fetcher row onto a FeedItem.

    Args:
        raw_row: Row as produced by the data fetcher.
        kind: Which source the row came from.
        now: Reference instant for poll expiry. Defaults to the wall clock;
             expiry is evaluated once, here, and not re-evaluated later.

    Returns:
        The normalized FeedItem.
    """
    kind = FeedItemKind(kind)
    if not isinstance(raw_row, Mapping):
        raw_row = {}

    org = _organization(raw_row)
    organization_id = _as_text(raw_row.get("org_id", org.get("org_id")))
    organization_name = _as_text(org.get("org_name")).strip() or f"Organization {organization_id}"
    logo = org.get("org_pic")

    item = {
        "id": _row_id(raw_row, kind),
        "kind": kind,
        "title": _as_text(raw_row.get("title")),
        "content": _as_text(raw_row.get("content")),
        "organization_id": organization_id,
        "organization_name": organization_name,
        "organization_logo_url": logo if isinstance(logo, str) and logo else None,
        "created_at": parse_timestamp(raw_row.get("created_at")),
        "visibility": normalize_visibility(raw_row.get("visibility")),
    }

    if kind is FeedItemKind.POST:
        item.update(
            author_id=_as_text(raw_row.get("author_id")) or None,
            media_urls=coalesce_media_urls(raw_row.get("media_urls"), raw_row.get("media_url")),
            like_count=_as_count(raw_row.get("like_count")),
            comment_count=_as_count(raw_row.get("comment_count")),
            viewer_has_liked=_as_bool(raw_row.get("viewer_has_liked")),
        )
    elif kind is FeedItemKind.ANNOUNCEMENT:
        item.update(
            visibility=Visibility.MEMBERS.value,
            media_urls=coalesce_media_urls(raw_row.get("media_urls"), raw_row.get("image")),
        )
    else:
        question = _as_text(raw_row.get("question"))
        options = _normalize_options(raw_row.get("options"))
        expires_at = parse_timestamp(raw_row.get("expires_at"))
        reference = parse_timestamp(now) or datetime.now(timezone.utc)
        item.update(
            title=item["title"] or question,
            content=question,
            options=options,
            total_votes=sum(option.vote_count for option in options),
            expires_at=expires_at,
            allow_multiple_selections=_as_bool(raw_row.get("allow_multiple")),
            viewer_selected_option_ids=_selected_option_ids(raw_row.get("user_votes")),
            is_expired=expires_at is not None and reference > expires_at,
        )

    return FeedItem(**item)


def normalize_many(raw_rows: Iterable[Mapping[str, Any]], kind: FeedItemKind, now: Optional[datetime] = None) -> List[FeedItem]:
    """Normalize a batch of rows from one source, sharing one expiry reference instant."""
    reference = now or datetime.now(timezone.utc)
    return [normalize(row, kind, now=reference) for row in raw_rows or []]
