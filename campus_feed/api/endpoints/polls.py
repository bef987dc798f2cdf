"""
Poll voting API endpoint.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends

from campus_feed.api.deps import get_ballot_engine, get_viewer_id
from campus_feed.core.ballot_engine import PollBallotEngine
from campus_feed.models.dtos import BallotResult, VoteRequest

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/polls/{poll_id}/votes", response_model=BallotResult)
async def submit_vote(
    poll_id: str,
    request: VoteRequest,
    viewer_id: Optional[str] = Depends(get_viewer_id),
    engine: PollBallotEngine = Depends(get_ballot_engine),
) -> BallotResult:
    """
    Submit the viewer's complete ballot for a poll, replacing any earlier one.

    Returns the reloaded option counts. A 503 response carries
    `retry_safe: true`; resubmitting the same ballot converges.
    """
    return await engine.submit_vote(poll_id, request.option_ids, viewer_id)
