"""
Models package for the campus feed service.

This package contains SQLAlchemy ORM models and Pydantic DTOs.
"""

# Import Base and ORM models so every table is registered with Base.metadata
from .base import Base
from .organization_orm import MembershipORM, OrganizationORM
from .profile_orm import ProfileORM
from .post_orm import PostCommentORM, PostLikeORM, PostORM
from .announcement_orm import AnnouncementORM
from .poll_orm import PollOptionORM, PollORM, PollVoteORM

# Import DTOs for easy access
from .dtos import (
    BallotResult,
    BallotStatus,
    Comment,
    CommentAuthor,
    CommentCreateRequest,
    CommentNode,
    CommentThread,
    FeedItem,
    FeedItemKind,
    FeedOrder,
    FeedPage,
    FeedScope,
    FeedTab,
    LikeState,
    PollOption,
    Visibility,
    VoteRequest,
)

__all__ = [
    # Base
    "Base",
    # ORMs
    "AnnouncementORM",
    "MembershipORM",
    "OrganizationORM",
    "PollOptionORM",
    "PollORM",
    "PollVoteORM",
    "PostCommentORM",
    "PostLikeORM",
    "PostORM",
    "ProfileORM",
    # DTOs
    "BallotResult",
    "BallotStatus",
    "Comment",
    "CommentAuthor",
    "CommentCreateRequest",
    "CommentNode",
    "CommentThread",
    "FeedItem",
    "FeedItemKind",
    "FeedOrder",
    "FeedPage",
    "FeedScope",
    "FeedTab",
    "LikeState",
    "PollOption",
    "Visibility",
    "VoteRequest",
]
