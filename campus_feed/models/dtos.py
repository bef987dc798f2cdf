"""
Pydantic Data Transfer Objects (DTOs) for the campus feed service.

These models are the unified shapes handed to callers (feed items, ballots,
comment trees) and the request bodies accepted by the API.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional, Set

from pydantic import BaseModel, Field


class FeedItemKind(str, Enum):
    POST = "post"
    ANNOUNCEMENT = "announcement"
    POLL = "poll"


class Visibility(str, Enum):
    PUBLIC = "public"
    MEMBERS = "members"


class FeedScope(str, Enum):
    """Fetch qualifier: every organization, or only the viewer's memberships."""
    ALL = "all"
    VIEWER_ORGS = "viewer_orgs"


class FeedTab(str, Enum):
    ALL = "all"
    ANNOUNCEMENTS = "announcements"
    POSTS = "posts"


class FeedOrder(str, Enum):
    RECENT = "recent"
    POPULAR = "popular"


class BallotStatus(str, Enum):
    CREATED = "created"
    UPDATED = "updated"


class PollOption(BaseModel):
    id: str
    label: str = ""
    vote_count: int = 0

    model_config = {"from_attributes": True}


class FeedItem(BaseModel):
    """
    One normalized unit of displayable content.

    Post-only and poll-only fields keep their empty defaults on the other kinds.
    `visibility` stays a plain string so unknown values reach the visibility
    filter untouched and are rejected there.
    """
    id: str
    kind: FeedItemKind
    title: str = ""
    content: str = ""
    organization_id: str = ""
    organization_name: str = ""
    organization_logo_url: Optional[str] = None
    created_at: Optional[datetime] = None
    visibility: str = Visibility.MEMBERS.value

    # Post-only
    author_id: Optional[str] = None
    media_urls: List[str] = Field(default_factory=list)
    like_count: int = 0
    comment_count: int = 0
    viewer_has_liked: bool = False

    # Poll-only
    options: List[PollOption] = Field(default_factory=list)
    total_votes: int = 0
    expires_at: Optional[datetime] = None
    allow_multiple_selections: bool = False
    viewer_selected_option_ids: Set[str] = Field(default_factory=set)
    is_expired: bool = False


class FeedPage(BaseModel):
    """A page of the merged feed, plus a non-blocking notice when every source failed."""
    items: List[FeedItem] = Field(default_factory=list)
    page: int = 1
    page_size: int
    total: int = 0
    has_more: bool = False
    notice: Optional[str] = None


class BallotResult(BaseModel):
    status: BallotStatus
    poll_id: str
    selected_option_ids: List[str]
    options: List[PollOption] = Field(default_factory=list)
    total_votes: int = 0


class CommentAuthor(BaseModel):
    user_id: str
    full_name: Optional[str] = None
    profile_image: Optional[str] = None

    model_config = {"from_attributes": True}


class Comment(BaseModel):
    id: str
    post_id: str
    author_id: str
    content: str = ""
    created_at: Optional[datetime] = None
    parent_comment_id: Optional[str] = None

    model_config = {"from_attributes": True}


class CommentNode(Comment):
    author: Optional[CommentAuthor] = None
    depth: int = 0
    replies: List["CommentNode"] = Field(default_factory=list)


CommentNode.model_rebuild()


class CommentThread(BaseModel):
    post_id: str
    comments: List[CommentNode] = Field(default_factory=list)
    total: int = 0
    max_reply_depth: int


class LikeState(BaseModel):
    post_id: str
    liked: bool
    like_count: int


class VoteRequest(BaseModel):
    option_ids: List[str] = Field(..., description="Option ids making up the viewer's ballot.")


class CommentCreateRequest(BaseModel):
    content: str = Field(..., description="Comment body.")
    parent_comment_id: Optional[str] = Field(None, description="Comment being replied to, if any.")
