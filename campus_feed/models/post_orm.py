"""
SQLAlchemy ORM models for posts and the per-post interaction tables
('organization_posts', 'post_likes', 'post_comments').
"""
from datetime import datetime
from typing import List, Optional

from sqlalchemy import ForeignKey, Index, Text, TIMESTAMP, UniqueConstraint
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from .base import Base, new_id


class PostORM(Base):
    """
    An organization post.

    Attributes:
        post_id (str): Primary key.
        org_id (str): Owning organization.
        author_id (str, optional): User who created the post.
        title (str, optional): Post title.
        content (str): Body text.
        media_url (str, optional): Legacy single media URL.
        media_urls (list[str], optional): Ordered media URLs; preferred over media_url.
        visibility (str): 'public' or 'members'.
        created_at (datetime): Creation timestamp; the feed sort key.
    """
    __tablename__ = "organization_posts"

    post_id: Mapped[str] = mapped_column(Text, primary_key=True, default=new_id)
    org_id: Mapped[str] = mapped_column(
        Text, ForeignKey("organizations.org_id", ondelete="CASCADE"), nullable=False
    )
    author_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    title: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    media_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    media_urls: Mapped[Optional[List[str]]] = mapped_column(ARRAY(Text), nullable=True)
    visibility: Mapped[str] = mapped_column(Text, nullable=False, default="public")
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("idx_organization_posts_created_at", "created_at"),
        Index("idx_organization_posts_org_id", "org_id"),
    )

    def __repr__(self) -> str:
        return f"<PostORM(post_id='{self.post_id}', org_id='{self.org_id}', visibility='{self.visibility}')>"


class PostLikeORM(Base):
    """One like per (post, user)."""
    __tablename__ = "post_likes"

    like_id: Mapped[str] = mapped_column(Text, primary_key=True, default=new_id)
    post_id: Mapped[str] = mapped_column(
        Text, ForeignKey("organization_posts.post_id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("post_id", "user_id", name="uq_post_likes_post_user"),
    )


class PostCommentORM(Base):
    """
    A comment or reply on a post.

    parent_comment_id has no foreign key. Deleting a comment removes only that
    row; replies that still point at it are shown as top-level comments.
    """
    __tablename__ = "post_comments"

    comment_id: Mapped[str] = mapped_column(Text, primary_key=True, default=new_id)
    post_id: Mapped[str] = mapped_column(
        Text, ForeignKey("organization_posts.post_id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(Text, nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    parent_comment_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("idx_post_comments_post_created", "post_id", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<PostCommentORM(comment_id='{self.comment_id}', post_id='{self.post_id}', "
            f"parent='{self.parent_comment_id}')>"
        )
