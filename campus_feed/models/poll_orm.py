"""
SQLAlchemy ORM models for polls ('polls', 'poll_options', 'poll_votes').
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    Text,
    TIMESTAMP,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from .base import Base, new_id


class PollORM(Base):
    """
    A poll owned by an organization.

    Attributes:
        poll_id (str): Primary key.
        org_id (str): Owning organization.
        question (str): The poll question; shown as the feed item content.
        expires_at (datetime, optional): Voting closes after this instant.
        allow_multiple (bool): Whether a ballot may select several options.
        visibility (str): 'public' or 'members' ('members_only' in older rows).
        created_by (str, optional): User who created the poll.
        created_at (datetime): Creation timestamp; the feed sort key.
    """
    __tablename__ = "polls"

    poll_id: Mapped[str] = mapped_column(Text, primary_key=True, default=new_id)
    org_id: Mapped[str] = mapped_column(
        Text, ForeignKey("organizations.org_id", ondelete="CASCADE"), nullable=False
    )
    question: Mapped[str] = mapped_column(Text, nullable=False)
    expires_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    allow_multiple: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    visibility: Mapped[str] = mapped_column(Text, nullable=False, default="members")
    created_by: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("idx_polls_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<PollORM(poll_id='{self.poll_id}', org_id='{self.org_id}', allow_multiple={self.allow_multiple})>"


class PollOptionORM(Base):
    """A selectable option. vote_count is the stored aggregate kept by the ballot engine."""
    __tablename__ = "poll_options"

    option_id: Mapped[str] = mapped_column(Text, primary_key=True, default=new_id)
    poll_id: Mapped[str] = mapped_column(
        Text, ForeignKey("polls.poll_id", ondelete="CASCADE"), nullable=False
    )
    option_text: Mapped[str] = mapped_column(Text, nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    vote_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        CheckConstraint("vote_count >= 0", name="ck_poll_options_vote_count_non_negative"),
        Index("idx_poll_options_poll_id", "poll_id"),
    )

    def __repr__(self) -> str:
        return f"<PollOptionORM(option_id='{self.option_id}', vote_count={self.vote_count})>"


class PollVoteORM(Base):
    """One selection of one option by one user."""
    __tablename__ = "poll_votes"

    vote_id: Mapped[str] = mapped_column(Text, primary_key=True, default=new_id)
    poll_id: Mapped[str] = mapped_column(
        Text, ForeignKey("polls.poll_id", ondelete="CASCADE"), nullable=False
    )
    option_id: Mapped[str] = mapped_column(
        Text, ForeignKey("poll_options.option_id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(Text, nullable=False)
    voted_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("poll_id", "user_id", "option_id", name="uq_poll_votes_poll_user_option"),
        Index("idx_poll_votes_poll_user", "poll_id", "user_id"),
    )

    def __repr__(self) -> str:
        return f"<PollVoteORM(poll_id='{self.poll_id}', user_id='{self.user_id}', option_id='{self.option_id}')>"
