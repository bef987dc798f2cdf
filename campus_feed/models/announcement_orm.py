"""
SQLAlchemy ORM model for the 'announcements' table.
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import ForeignKey, Index, Text, TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from .base import Base, new_id


class AnnouncementORM(Base):
    """Organization announcement. Always scoped to the organization's members."""
    __tablename__ = "announcements"

    announcement_id: Mapped[str] = mapped_column(Text, primary_key=True, default=new_id)
    org_id: Mapped[str] = mapped_column(
        Text, ForeignKey("organizations.org_id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    image: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("idx_announcements_org_created", "org_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<AnnouncementORM(announcement_id='{self.announcement_id}', org_id='{self.org_id}')>"
