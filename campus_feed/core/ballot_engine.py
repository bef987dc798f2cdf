"""
Poll Ballot Engine.

Accepts a viewer's ballot for a poll and replaces any earlier ballot of the
same viewer: delete the old selections, decrement their options, insert the new
selections, increment their options. The sequence is ordered by awaiting each
store call in turn; nothing serializes two voters, so concurrent ballots on the
same option can make stored counts drift.
"""
import logging
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional

from campus_feed.core.ballot_repository import BallotRepository, PollBallotContext
from campus_feed.errors import (
    AuthRequired,
    BallotSubmissionFailed,
    InvalidBallot,
    MembershipRequired,
    PartialBallotFailure,
    PollClosed,
    PollNotFound,
)
from campus_feed.core.normalizer import normalize_visibility
from campus_feed.models.dtos import BallotResult, BallotStatus, Visibility

logger = logging.getLogger(__name__)


def _distinct(option_ids: Iterable[str]) -> List[str]:
    """Drop duplicate ids, keeping first-seen order."""
    return list(dict.fromkeys(str(option_id) for option_id in option_ids or [] if option_id is not None))


class PollBallotEngine:
    """
    Applies single-ballot-per-user semantics on top of a BallotRepository.
    """

    def __init__(self, repository: BallotRepository, clock: Optional[Callable[[], datetime]] = None):
        """
        Args:
            repository: Store primitives for polls, options and votes.
            clock: Returns the current aware datetime; used for the expiry check.
        """
        self._repository = repository
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def _validate(self, poll: PollBallotContext, selection: List[str], viewer_id: str) -> None:
        unknown = [option_id for option_id in selection if option_id not in set(poll.option_ids)]
        if unknown:
            raise InvalidBallot(f"Options {unknown} do not belong to poll {poll.poll_id}")
        if not poll.allow_multiple and len(selection) != 1:
            raise InvalidBallot(f"Poll {poll.poll_id} accepts exactly one option")
        if poll.expires_at is not None and self._clock() > poll.expires_at:
            raise PollClosed(poll.poll_id)
        if normalize_visibility(poll.visibility) != Visibility.PUBLIC.value:
            try:
                is_member = await self._repository.is_member(poll.organization_id, viewer_id)
            except Exception as e:
                raise BallotSubmissionFailed(poll.poll_id, "membership_check") from e
            if not is_member:
                raise MembershipRequired(poll.organization_id)

    async def submit_vote(self, poll_id: str, selected_option_ids: Iterable[str], viewer_id: Optional[str]) -> BallotResult:
        """
        Record the viewer's ballot, replacing any earlier one.

        Args:
            poll_id: The poll being voted on.
            selected_option_ids: The complete new ballot; must be non-empty, and
                                 hold exactly one id on single-selection polls.
            viewer_id: The authenticated viewer.

        Returns:
            BallotResult with status 'created' or 'updated' and the reloaded
            option counts, total_votes being their sum.

        Raises:
            AuthRequired, InvalidBallot, PollNotFound, PollClosed, MembershipRequired:
                rejected before any write.
            BallotSubmissionFailed: a store step failed before the old ballot changed.
            PartialBallotFailure: a store step failed after the old ballot was removed
                                  or after the new one was inserted. Retrying is safe.
        """
        if not viewer_id:
            raise AuthRequired("vote")
        selection = _distinct(selected_option_ids)
        if not selection:
            raise InvalidBallot("Select at least one option")

        try:
            poll = await self._repository.load_poll(poll_id)
        except Exception as e:
            raise BallotSubmissionFailed(poll_id, "load_poll") from e
        if poll is None:
            raise PollNotFound(poll_id)
        await self._validate(poll, selection, viewer_id)

        try:
            removed = _distinct(await self._repository.load_selections(poll_id, viewer_id))
            if removed:
                await self._repository.delete_selections(poll_id, viewer_id)
        except Exception as e:
            logger.error(f"Failed to clear previous ballot of user {viewer_id} on poll {poll_id}: {e}", exc_info=True)
            raise BallotSubmissionFailed(poll_id, "clear_previous_ballot") from e

        stage = "decrement_previous"
        try:
            for option_id in removed:
                await self._repository.adjust_option_count(option_id, -1)
            stage = "insert_selections"
            await self._repository.insert_selections(poll_id, viewer_id, selection)
            stage = "increment_selected"
            for option_id in selection:
                await self._repository.adjust_option_count(option_id, 1)
        except Exception as e:
            logger.error(f"Ballot for poll {poll_id} failed at stage '{stage}': {e}", exc_info=True)
            if removed or stage == "increment_selected":
                raise PartialBallotFailure(poll_id, stage) from e
            raise BallotSubmissionFailed(poll_id, stage) from e

        try:
            options = await self._repository.load_options(poll_id)
        except Exception as e:
            raise BallotSubmissionFailed(poll_id, "reload_counts") from e

        status = BallotStatus.UPDATED if removed else BallotStatus.CREATED
        logger.info(f"Ballot {status.value} for user {viewer_id} on poll {poll_id}: {selection}")
        return BallotResult(
            status=status,
            poll_id=poll_id,
            selected_option_ids=selection,
            options=options,
            total_votes=sum(option.vote_count for option in options),
        )
