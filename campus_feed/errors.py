"""
Error taxonomy for the campus feed core.

Read paths degrade instead of raising (see ``FetchFailure``); write paths reject
invalid requests before touching the store and wrap store failures so callers
can tell a clean rejection from a partially applied ballot.
"""
from typing import Optional


class CampusFeedError(Exception):
    """Base class for all campus feed errors."""


class FetchFailure(CampusFeedError):
    """A content, vote or comment query against the store failed."""

    def __init__(self, source: str, message: Optional[str] = None):
        self.source = source
        super().__init__(message or f"Failed to fetch {source}")


class AuthRequired(CampusFeedError):
    """A write was attempted without an authenticated viewer."""

    def __init__(self, action: str = "perform this action"):
        self.action = action
        super().__init__(f"You must be logged in to {action}")


class InvalidBallot(CampusFeedError, ValueError):
    """The selected option ids violate the poll's selection rules."""


class PollNotFound(CampusFeedError):
    def __init__(self, poll_id: str):
        self.poll_id = poll_id
        super().__init__(f"Poll {poll_id} does not exist")


class PollClosed(CampusFeedError):
    def __init__(self, poll_id: str):
        self.poll_id = poll_id
        super().__init__(f"Poll {poll_id} has ended")


class MembershipRequired(CampusFeedError):
    """Only members of the owning organization may act on this content."""

    def __init__(self, organization_id: str):
        self.organization_id = organization_id
        super().__init__("Only organization members can vote on this poll")


class BallotSubmissionFailed(CampusFeedError):
    """
    The store rejected a step of the ballot replace sequence.

    Re-running ``submit_vote`` with the same arguments converges to a
    consistent ballot, so callers should offer a retry.
    """

    retry_safe = True

    def __init__(self, poll_id: str, stage: str, message: Optional[str] = None):
        self.poll_id = poll_id
        self.stage = stage
        super().__init__(message or f"Failed to submit vote for poll {poll_id} (stage: {stage})")


class PartialBallotFailure(BallotSubmissionFailed):
    """The old ballot was removed but the new one was not fully recorded."""


class InvalidComment(CampusFeedError, ValueError):
    pass


class CommentNotFound(CampusFeedError):
    def __init__(self, comment_id: str):
        self.comment_id = comment_id
        super().__init__(f"Comment {comment_id} does not exist")


class NotCommentAuthor(CampusFeedError):
    def __init__(self, comment_id: str):
        self.comment_id = comment_id
        super().__init__("You can only delete your own comments")
