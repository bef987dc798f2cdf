"""
SQLAlchemy ORM model for the 'profiles' table.
"""
from typing import Optional

from sqlalchemy import Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class ProfileORM(Base):
    """Public profile data attached to comments as submitter information."""
    __tablename__ = "profiles"

    user_id: Mapped[str] = mapped_column(Text, primary_key=True)
    full_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    profile_image: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<ProfileORM(user_id='{self.user_id}', full_name='{self.full_name}')>"
