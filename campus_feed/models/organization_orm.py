"""
SQLAlchemy ORM models for the 'organizations' and 'organization_members' tables.
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import ForeignKey, Index, Text, TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from .base import Base, new_id


class OrganizationORM(Base):
    """
    A university organization that owns posts, announcements and polls.

    Attributes:
        org_id (str): Primary key.
        org_name (str): Display name shown on feed cards.
        description (str, optional): Free-text description.
        status (str, optional): Lifecycle status as managed by the admin screens.
        org_pic (str, optional): Logo URL.
        created_at (datetime): Creation timestamp.
    """
    __tablename__ = "organizations"

    org_id: Mapped[str] = mapped_column(Text, primary_key=True, default=new_id)
    org_name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    org_pic: Mapped[Optional[str]] = mapped_column(Text, nullable=True, comment="Logo URL.")
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), server_default=func.now())

    def __repr__(self) -> str:
        return f"<OrganizationORM(org_id='{self.org_id}', org_name='{self.org_name}')>"


class MembershipORM(Base):
    """
    Membership of a user in an organization. Membership grants visibility of
    'members' content and the right to vote on members-only polls.
    """
    __tablename__ = "organization_members"

    org_id: Mapped[str] = mapped_column(
        Text, ForeignKey("organizations.org_id", ondelete="CASCADE"), primary_key=True
    )
    user_id: Mapped[str] = mapped_column(Text, primary_key=True)
    base_role: Mapped[str] = mapped_column(Text, nullable=False, default="member")
    joined_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("idx_organization_members_user_id", "user_id"),
    )

    def __repr__(self) -> str:
        return f"<MembershipORM(org_id='{self.org_id}', user_id='{self.user_id}', role='{self.base_role}')>"
