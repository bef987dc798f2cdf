from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import SQLAlchemyError

from campus_feed.config.settings import settings
from campus_feed.core.comment_service import CommentService
from campus_feed.errors import AuthRequired, CommentNotFound, FetchFailure, InvalidComment, NotCommentAuthor
from campus_feed.models import Comment, CommentAuthor, PostCommentORM
from campus_feed.tests.stubs.db_session_stub import make_result

MODULE = "campus_feed.core.comment_service"
CREATED = datetime(2024, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def service():
    return CommentService()


@pytest.fixture
def patched_session(patch_db_session):
    return patch_db_session(MODULE)


def _comment(comment_id, parent=None, author="u1"):
    return Comment(id=comment_id, post_id="post-1", author_id=author, created_at=CREATED, parent_comment_id=parent)


# --- load_thread ---

@pytest.mark.asyncio
async def test_load_thread_builds_tree_with_authors(mocker, service):
    mocker.patch(f"{MODULE}.fetch_comments", new_callable=AsyncMock, return_value=[
        _comment("c1"), _comment("r1", parent="c1", author="u2"), _comment("c2"),
    ])
    fetch_profiles = mocker.patch(f"{MODULE}.fetch_profiles", new_callable=AsyncMock, return_value={
        "u1": CommentAuthor(user_id="u1", full_name="Ada"),
    })

    thread = await service.load_thread("post-1")

    assert thread.post_id == "post-1"
    assert thread.total == 3
    assert [node.id for node in thread.comments] == ["c1", "c2"]
    assert thread.comments[0].replies[0].id == "r1"
    assert thread.comments[0].author.full_name == "Ada"
    assert thread.max_reply_depth == settings.COMMENT_MAX_REPLY_DEPTH
    assert fetch_profiles.call_args.args[1] == ["u1", "u2", "u1"]


@pytest.mark.asyncio
async def test_load_thread_without_profiles_still_shows_comments(mocker, service):
    mocker.patch(f"{MODULE}.fetch_comments", new_callable=AsyncMock, return_value=[_comment("c1")])
    mocker.patch(f"{MODULE}.fetch_profiles", new_callable=AsyncMock, side_effect=FetchFailure("profiles"))

    thread = await service.load_thread("post-1")

    assert thread.total == 1
    assert thread.comments[0].author is None


@pytest.mark.asyncio
async def test_load_thread_propagates_comment_fetch_failure(mocker, service):
    mocker.patch(f"{MODULE}.fetch_comments", new_callable=AsyncMock, side_effect=FetchFailure("comments"))

    with pytest.raises(FetchFailure):
        await service.load_thread("post-1")


@pytest.mark.asyncio
async def test_load_thread_unreachable_database_raises_fetch_failure(service, patch_db_session, mock_session):
    patch_db_session("campus_feed.core.data_fetcher")
    mock_session.execute.side_effect = ConnectionRefusedError(111, "Connect call failed ('127.0.0.1', 1)")

    with pytest.raises(FetchFailure) as excinfo:
        await service.load_thread("post-1")

    assert excinfo.value.source == "comments"


# --- add_comment ---

@pytest.mark.asyncio
async def test_add_comment_strips_and_saves(service, patched_session, mock_session):
    comment = await service.add_comment("post-1", "  Great event!  ", "u1")

    assert comment.content == "Great event!"
    assert comment.author_id == "u1"
    assert comment.parent_comment_id is None
    assert comment.id
    mock_session.add.assert_called_once()
    saved = mock_session.add.call_args.args[0]
    assert isinstance(saved, PostCommentORM)
    assert saved.post_id == "post-1"
    mock_session.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_add_reply_checks_parent_belongs_to_post(service, patched_session, mock_session):
    parent = PostCommentORM(comment_id="c1", post_id="post-1", user_id="u2", content="Hi")
    mock_session.execute.return_value = make_result(scalars=[parent])

    reply = await service.add_comment("post-1", "Thanks", "u1", parent_comment_id="c1")

    assert reply.parent_comment_id == "c1"


@pytest.mark.asyncio
@pytest.mark.parametrize("parent_rows", [[], [PostCommentORM(comment_id="c9", post_id="other-post", user_id="u2", content="x")]])
async def test_add_reply_rejects_unknown_or_foreign_parent(service, patched_session, mock_session, parent_rows):
    mock_session.execute.return_value = make_result(scalars=parent_rows)

    with pytest.raises(InvalidComment):
        await service.add_comment("post-1", "Thanks", "u1", parent_comment_id="c9")

    mock_session.add.assert_not_called()


@pytest.mark.asyncio
@pytest.mark.parametrize("content", ["", "   ", None])
async def test_add_comment_rejects_blank_content(service, content):
    with pytest.raises(InvalidComment):
        await service.add_comment("post-1", content, "u1")


@pytest.mark.asyncio
async def test_add_comment_rejects_overlong_content(service):
    with pytest.raises(InvalidComment):
        await service.add_comment("post-1", "x" * (settings.COMMENT_MAX_LENGTH + 1), "u1")


@pytest.mark.asyncio
async def test_add_comment_requires_viewer(service):
    with pytest.raises(AuthRequired):
        await service.add_comment("post-1", "Hello", None)


@pytest.mark.asyncio
async def test_add_comment_store_error_rolls_back(service, patched_session, mock_session):
    mock_session.commit.side_effect = SQLAlchemyError("insert failed")

    with pytest.raises(SQLAlchemyError):
        await service.add_comment("post-1", "Hello", "u1")

    mock_session.rollback.assert_awaited_once()


# --- delete_comment ---

@pytest.mark.asyncio
async def test_delete_own_comment(service, patched_session, mock_session):
    row = PostCommentORM(comment_id="c1", post_id="post-1", user_id="u1", content="Hi")
    mock_session.execute.side_effect = [make_result(scalars=[row]), make_result(rowcount=1)]

    await service.delete_comment("c1", "u1")

    assert mock_session.execute.await_count == 2
    mock_session.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_delete_someone_elses_comment_is_forbidden(service, patched_session, mock_session):
    row = PostCommentORM(comment_id="c1", post_id="post-1", user_id="author", content="Hi")
    mock_session.execute.return_value = make_result(scalars=[row])

    with pytest.raises(NotCommentAuthor):
        await service.delete_comment("c1", "intruder")

    mock_session.commit.assert_not_awaited()


@pytest.mark.asyncio
async def test_delete_missing_comment(service, patched_session, mock_session):
    mock_session.execute.return_value = make_result(scalars=[])

    with pytest.raises(CommentNotFound):
        await service.delete_comment("gone", "u1")


@pytest.mark.asyncio
async def test_delete_requires_viewer(service):
    with pytest.raises(AuthRequired):
        await service.delete_comment("c1", "")
