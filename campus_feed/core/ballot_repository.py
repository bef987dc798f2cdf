"""
Ballot repository: the store primitives the Poll Ballot Engine composes.

The engine only depends on the BallotRepository protocol. The SQLAlchemy
implementation commits every primitive on its own, matching a store with no
multi-statement transaction; moving the whole replace into one transaction or
a stored procedure only needs another implementation of the protocol.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Protocol, Sequence

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from campus_feed.models import MembershipORM, PollOptionORM, PollORM, PollVoteORM
from campus_feed.models.dtos import PollOption
from campus_feed.utils.db_session import get_db_session_context_manager as get_async_db_session

logger = logging.getLogger(__name__)


@dataclass
class PollBallotContext:
    """What the engine needs to know about a poll before accepting a ballot."""
    poll_id: str
    organization_id: str
    visibility: str
    allow_multiple: bool
    expires_at: Optional[datetime] = None
    option_ids: List[str] = field(default_factory=list)


class BallotRepository(Protocol):
    """A protocol that defines the store operations behind a ballot."""

    async def load_poll(self, poll_id: str) -> Optional[PollBallotContext]:
        """Loads the poll's rules and option ids, or None if it does not exist."""
        ...

    async def is_member(self, organization_id: str, user_id: str) -> bool:
        ...

    async def load_selections(self, poll_id: str, user_id: str) -> List[str]:
        """Loads the option ids the user currently has selected on the poll."""
        ...

    async def delete_selections(self, poll_id: str, user_id: str) -> int:
        """Deletes every selection of the user on the poll; returns the number removed."""
        ...

    async def insert_selections(self, poll_id: str, user_id: str, option_ids: Sequence[str]) -> None:
        ...

    async def adjust_option_count(self, option_id: str, delta: int) -> None:
        """Adds delta to the option's stored vote_count, never going below zero."""
        ...

    async def load_options(self, poll_id: str) -> List[PollOption]:
        ...


class SqlAlchemyBallotRepository:
    """
    BallotRepository backed by the poll tables.

    Every method runs in its own short session (or the shared one, if given)
    and commits before returning. Store errors are logged, rolled back and
    re-raised for the engine to classify.
    """

    def __init__(self, session: Optional[AsyncSession] = None):
        """
        Args:
            session: An optional AsyncSession shared by every call. If None,
                     a new session is opened per call.
        """
        self._shared_session = session

    async def load_poll(self, poll_id: str) -> Optional[PollBallotContext]:
        async with get_async_db_session(existing_session=self._shared_session) as session:
            poll_result = await session.execute(select(PollORM).where(PollORM.poll_id == poll_id))
            poll = poll_result.scalars().first()
            if poll is None:
                return None
            options_result = await session.execute(
                select(PollOptionORM.option_id)
                .where(PollOptionORM.poll_id == poll_id)
                .order_by(PollOptionORM.position.asc())
            )
            return PollBallotContext(
                poll_id=poll.poll_id,
                organization_id=poll.org_id,
                visibility=poll.visibility,
                allow_multiple=bool(poll.allow_multiple),
                expires_at=poll.expires_at,
                option_ids=list(options_result.scalars().all()),
            )

    async def is_member(self, organization_id: str, user_id: str) -> bool:
        async with get_async_db_session(existing_session=self._shared_session) as session:
            result = await session.execute(
                select(MembershipORM.user_id).where(
                    (MembershipORM.org_id == organization_id) & (MembershipORM.user_id == user_id)
                )
            )
            return result.scalars().first() is not None

    async def load_selections(self, poll_id: str, user_id: str) -> List[str]:
        async with get_async_db_session(existing_session=self._shared_session) as session:
            result = await session.execute(
                select(PollVoteORM.option_id).where(
                    (PollVoteORM.poll_id == poll_id) & (PollVoteORM.user_id == user_id)
                )
            )
            return list(result.scalars().all())

    async def delete_selections(self, poll_id: str, user_id: str) -> int:
        async with get_async_db_session(existing_session=self._shared_session) as session:
            try:
                result = await session.execute(
                    delete(PollVoteORM).where(
                        (PollVoteORM.poll_id == poll_id) & (PollVoteORM.user_id == user_id)
                    )
                )
                await session.commit()
                logger.info(f"Deleted {result.rowcount} selection(s) of user {user_id} on poll {poll_id}")
                return result.rowcount or 0
            except SQLAlchemyError as e:
                logger.error(f"Database error deleting selections on poll {poll_id}: {e}", exc_info=True)
                await session.rollback()
                raise

    async def insert_selections(self, poll_id: str, user_id: str, option_ids: Sequence[str]) -> None:
        async with get_async_db_session(existing_session=self._shared_session) as session:
            try:
                session.add_all([
                    PollVoteORM(poll_id=poll_id, user_id=user_id, option_id=option_id)
                    for option_id in option_ids
                ])
                await session.commit()
                logger.info(f"Recorded {len(option_ids)} selection(s) of user {user_id} on poll {poll_id}")
            except SQLAlchemyError as e:
                logger.error(f"Database error recording selections on poll {poll_id}: {e}", exc_info=True)
                await session.rollback()
                raise

    async def adjust_option_count(self, option_id: str, delta: int) -> None:
        async with get_async_db_session(existing_session=self._shared_session) as session:
            try:
                await session.execute(
                    update(PollOptionORM)
                    .where(PollOptionORM.option_id == option_id)
                    .values(vote_count=func.greatest(PollOptionORM.vote_count + delta, 0))
                )
                await session.commit()
            except SQLAlchemyError as e:
                logger.error(f"Database error adjusting vote count of option {option_id} by {delta}: {e}", exc_info=True)
                await session.rollback()
                raise

    async def load_options(self, poll_id: str) -> List[PollOption]:
        async with get_async_db_session(existing_session=self._shared_session) as session:
            result = await session.execute(
                select(PollOptionORM)
                .where(PollOptionORM.poll_id == poll_id)
                .order_by(PollOptionORM.position.asc())
            )
            return [
                PollOption(id=option.option_id, label=option.option_text, vote_count=max(option.vote_count or 0, 0))
                for option in result.scalars().all()
            ]
