import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from campus_feed.core.ballot_engine import PollBallotEngine
from campus_feed.errors import (
    AuthRequired,
    BallotSubmissionFailed,
    InvalidBallot,
    MembershipRequired,
    PartialBallotFailure,
    PollClosed,
    PollNotFound,
)
from campus_feed.models.dtos import BallotStatus

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def engine(ballot_repository):
    return PollBallotEngine(ballot_repository, clock=lambda: NOW)


def _counts(result):
    return {option.id: option.vote_count for option in result.options}


# --- Rejections before any write ---

@pytest.mark.asyncio
async def test_submit_vote_requires_viewer(engine, ballot_repository):
    ballot_repository.add_poll("p1", {"o1": 0, "o2": 0})

    with pytest.raises(AuthRequired):
        await engine.submit_vote("p1", ["o1"], None)

    assert ballot_repository.calls == []


@pytest.mark.asyncio
async def test_submit_vote_rejects_empty_selection(engine, ballot_repository):
    ballot_repository.add_poll("p1", {"o1": 0})

    with pytest.raises(InvalidBallot):
        await engine.submit_vote("p1", [], "u1")

    assert ballot_repository.write_calls() == []


@pytest.mark.asyncio
async def test_submit_vote_rejects_foreign_option(engine, ballot_repository):
    ballot_repository.add_poll("p1", {"o1": 0, "o2": 0})
    ballot_repository.add_poll("p2", {"x1": 0})

    with pytest.raises(InvalidBallot):
        await engine.submit_vote("p1", ["x1"], "u1")

    assert ballot_repository.write_calls() == []


@pytest.mark.asyncio
async def test_single_selection_poll_rejects_two_options(engine, ballot_repository):
    ballot_repository.add_poll("p1", {"o1": 0, "o2": 0}, allow_multiple=False)

    with pytest.raises(InvalidBallot):
        await engine.submit_vote("p1", ["o1", "o2"], "u1")

    assert ballot_repository.write_calls() == []
    assert ballot_repository.counts == {"o1": 0, "o2": 0}


@pytest.mark.asyncio
async def test_duplicate_ids_count_once(engine, ballot_repository):
    ballot_repository.add_poll("p1", {"o1": 0, "o2": 0}, allow_multiple=False)

    result = await engine.submit_vote("p1", ["o1", "o1"], "u1")

    assert result.selected_option_ids == ["o1"]
    assert _counts(result) == {"o1": 1, "o2": 0}


@pytest.mark.asyncio
async def test_unknown_poll(engine):
    with pytest.raises(PollNotFound):
        await engine.submit_vote("missing", ["o1"], "u1")


@pytest.mark.asyncio
async def test_expired_poll_is_closed(engine, ballot_repository):
    ballot_repository.add_poll("p1", {"o1": 0}, expires_at=NOW - timedelta(minutes=1))

    with pytest.raises(PollClosed):
        await engine.submit_vote("p1", ["o1"], "u1")

    assert ballot_repository.write_calls() == []


@pytest.mark.asyncio
@pytest.mark.parametrize("visibility", ["members", "members_only"])
async def test_members_poll_rejects_non_member(engine, ballot_repository, visibility):
    ballot_repository.add_poll("p1", {"o1": 0}, organization_id="org-9", visibility=visibility)

    with pytest.raises(MembershipRequired):
        await engine.submit_vote("p1", ["o1"], "outsider")

    assert ballot_repository.write_calls() == []


@pytest.mark.asyncio
async def test_members_poll_accepts_member(engine, ballot_repository):
    ballot_repository.add_poll("p1", {"o1": 0}, organization_id="org-9", visibility="members")
    ballot_repository.add_member("org-9", "u1")

    result = await engine.submit_vote("p1", ["o1"], "u1")

    assert result.status == BallotStatus.CREATED
    assert result.total_votes == 1


@pytest.mark.asyncio
async def test_public_poll_skips_membership_check(engine, ballot_repository):
    ballot_repository.add_poll("p1", {"o1": 0}, visibility="public")

    await engine.submit_vote("p1", ["o1"], "anyone")

    assert "is_member" not in ballot_repository.calls


# --- Replace algorithm ---

@pytest.mark.asyncio
async def test_first_vote_creates_ballot(engine, ballot_repository):
    ballot_repository.add_poll("p1", {"o1": 0, "o2": 0})

    result = await engine.submit_vote("p1", ["o2"], "u1")

    assert result.status == BallotStatus.CREATED
    assert result.poll_id == "p1"
    assert _counts(result) == {"o1": 0, "o2": 1}
    assert result.total_votes == 1
    assert ballot_repository.selections_of("p1", "u1") == ["o2"]
    assert "delete_selections" not in ballot_repository.calls


@pytest.mark.asyncio
async def test_switching_vote_moves_the_count(engine, ballot_repository):
    # O1 already holds 3 votes, one of them this user's.
    ballot_repository.add_poll("p1", {"O1": 3, "O2": 0}, allow_multiple=False)
    ballot_repository.add_vote("p1", "u1", "O1")

    result = await engine.submit_vote("p1", ["O2"], "u1")

    assert result.status == BallotStatus.UPDATED
    assert _counts(result) == {"O1": 2, "O2": 1}
    assert result.total_votes == 3
    assert ballot_repository.selections_of("p1", "u1") == ["O2"]


@pytest.mark.asyncio
async def test_vote_count_conservation_on_multi_select(engine, ballot_repository):
    ballot_repository.add_poll("p1", {"a": 0, "b": 0, "c": 0}, allow_multiple=True)

    first = await engine.submit_vote("p1", ["a", "b"], "u1")
    second = await engine.submit_vote("p1", ["b", "c"], "u1")

    assert first.total_votes == 2
    assert _counts(second) == {"a": 0, "b": 1, "c": 1}
    # Net change of the total equals new selection size minus old selection size.
    assert second.total_votes - first.total_votes == 2 - 2


@pytest.mark.asyncio
async def test_resubmitting_same_ballot_is_idempotent(engine, ballot_repository):
    ballot_repository.add_poll("p1", {"o1": 4, "o2": 1})

    first = await engine.submit_vote("p1", ["o1"], "u1")
    second = await engine.submit_vote("p1", ["o1"], "u1")

    assert _counts(first) == _counts(second) == {"o1": 5, "o2": 1}
    assert second.status == BallotStatus.UPDATED
    assert ballot_repository.selections_of("p1", "u1") == ["o1"]


@pytest.mark.asyncio
async def test_decrement_floors_at_zero(engine, ballot_repository):
    # Stored count already drifted below the user's recorded vote.
    ballot_repository.add_poll("p1", {"o1": 0, "o2": 0})
    ballot_repository.add_vote("p1", "u1", "o1")

    result = await engine.submit_vote("p1", ["o2"], "u1")

    assert _counts(result) == {"o1": 0, "o2": 1}


@pytest.mark.asyncio
async def test_other_users_ballots_are_untouched(engine, ballot_repository):
    ballot_repository.add_poll("p1", {"o1": 2, "o2": 0})
    ballot_repository.add_vote("p1", "u1", "o1")
    ballot_repository.add_vote("p1", "u2", "o1")

    await engine.submit_vote("p1", ["o2"], "u1")

    assert ballot_repository.selections_of("p1", "u2") == ["o1"]
    assert ballot_repository.counts == {"o1": 1, "o2": 1}


# --- Failure semantics ---

@pytest.mark.asyncio
async def test_failure_before_any_change_is_submission_failure(engine, ballot_repository):
    ballot_repository.add_poll("p1", {"o1": 0})
    ballot_repository.failures["insert_selections"] = RuntimeError("insert refused")

    with pytest.raises(BallotSubmissionFailed) as excinfo:
        await engine.submit_vote("p1", ["o1"], "u1")

    assert not isinstance(excinfo.value, PartialBallotFailure)
    assert excinfo.value.retry_safe is True
    assert isinstance(excinfo.value.__cause__, RuntimeError)
    assert ballot_repository.counts == {"o1": 0}


@pytest.mark.asyncio
async def test_delete_failure_is_submission_failure(engine, ballot_repository):
    ballot_repository.add_poll("p1", {"o1": 1, "o2": 0})
    ballot_repository.add_vote("p1", "u1", "o1")
    ballot_repository.failures["delete_selections"] = RuntimeError("delete refused")

    with pytest.raises(BallotSubmissionFailed) as excinfo:
        await engine.submit_vote("p1", ["o2"], "u1")

    assert not isinstance(excinfo.value, PartialBallotFailure)
    assert ballot_repository.selections_of("p1", "u1") == ["o1"]


@pytest.mark.asyncio
async def test_failure_after_deletion_is_partial(engine, ballot_repository):
    ballot_repository.add_poll("p1", {"o1": 1, "o2": 0})
    ballot_repository.add_vote("p1", "u1", "o1")
    ballot_repository.failures["insert_selections"] = RuntimeError("insert refused")

    with pytest.raises(PartialBallotFailure) as excinfo:
        await engine.submit_vote("p1", ["o2"], "u1")

    assert excinfo.value.retry_safe is True
    assert excinfo.value.stage == "insert_selections"
    assert ballot_repository.selections_of("p1", "u1") == []


@pytest.mark.asyncio
async def test_retry_after_partial_failure_converges(engine, ballot_repository):
    ballot_repository.add_poll("p1", {"o1": 1, "o2": 0})
    ballot_repository.add_vote("p1", "u1", "o1")
    ballot_repository.failures["insert_selections"] = RuntimeError("insert refused")

    with pytest.raises(PartialBallotFailure):
        await engine.submit_vote("p1", ["o2"], "u1")
    result = await engine.submit_vote("p1", ["o2"], "u1")

    assert ballot_repository.selections_of("p1", "u1") == ["o2"]
    assert _counts(result) == {"o1": 0, "o2": 1}
    assert result.status == BallotStatus.CREATED


@pytest.mark.asyncio
async def test_failure_while_incrementing_is_partial(engine, ballot_repository):
    ballot_repository.add_poll("p1", {"o1": 0})
    # First adjust call is the increment (no earlier ballot to decrement).
    ballot_repository.failures["adjust_option_count"] = RuntimeError("update refused")

    with pytest.raises(PartialBallotFailure) as excinfo:
        await engine.submit_vote("p1", ["o1"], "u1")

    assert excinfo.value.stage == "increment_selected"


@pytest.mark.asyncio
async def test_store_error_loading_poll_is_submission_failure(engine, ballot_repository):
    ballot_repository.failures["load_poll"] = RuntimeError("connection lost")

    with pytest.raises(BallotSubmissionFailed) as excinfo:
        await engine.submit_vote("p1", ["o1"], "u1")

    assert excinfo.value.stage == "load_poll"


# --- Concurrency ---

@pytest.mark.asyncio
async def test_concurrent_ballots_can_drift_counts(ballot_repository):
    """
    Ballots of different users are not serialized. When two count updates on
    the same option interleave, one increment is lost: an accepted
    approximation of the current store design.
    """
    ballot_repository.add_poll("p1", {"o1": 0})
    ballot_repository.interleave_adjust = True
    engine = PollBallotEngine(ballot_repository, clock=lambda: NOW)

    await asyncio.gather(
        engine.submit_vote("p1", ["o1"], "u1"),
        engine.submit_vote("p1", ["o1"], "u2"),
    )

    assert len(ballot_repository.votes) == 2
    assert ballot_repository.counts["o1"] == 1
