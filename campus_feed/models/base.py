"""Declarative base shared by every campus_feed ORM model."""
import uuid

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


def new_id() -> str:
    """Default primary key factory: opaque UUID text, as issued by the hosted store."""
    return str(uuid.uuid4())
