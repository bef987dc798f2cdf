"""
Core components for the campus feed service.
"""

from .ballot_engine import PollBallotEngine
from .ballot_repository import BallotRepository, PollBallotContext, SqlAlchemyBallotRepository
from .comment_service import CommentService
from .comment_tree import build_comment_tree, count_nodes, iter_comment_tree
from .feed_merger import filter_by_tab, merge, paginate, search_feed
from .feed_pipeline import FeedPipeline
from .like_service import LikeService
from .normalizer import normalize, normalize_many
from .visibility import filter_visible, is_visible

__all__ = [
    "PollBallotEngine",
    "BallotRepository",
    "PollBallotContext",
    "SqlAlchemyBallotRepository",
    "CommentService",
    "build_comment_tree",
    "count_nodes",
    "iter_comment_tree",
    "filter_by_tab",
    "merge",
    "paginate",
    "search_feed",
    "FeedPipeline",
    "LikeService",
    "normalize",
    "normalize_many",
    "filter_visible",
    "is_visible",
]
