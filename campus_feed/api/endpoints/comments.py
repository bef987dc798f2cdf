"""
Comment API endpoints: thread loading, adding comments and replies, deletion.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Response, status

from campus_feed.api.deps import get_comment_service, get_viewer_id
from campus_feed.core.comment_service import CommentService
from campus_feed.models.dtos import Comment, CommentCreateRequest, CommentThread

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/posts/{post_id}/comments", response_model=CommentThread)
async def get_comment_thread(
    post_id: str,
    service: CommentService = Depends(get_comment_service),
) -> CommentThread:
    """Comments of a post as a reply tree, oldest first at every level."""
    return await service.load_thread(post_id)


@router.post("/posts/{post_id}/comments", response_model=Comment, status_code=status.HTTP_201_CREATED)
async def add_comment(
    post_id: str,
    request: CommentCreateRequest,
    viewer_id: Optional[str] = Depends(get_viewer_id),
    service: CommentService = Depends(get_comment_service),
) -> Comment:
    return await service.add_comment(
        post_id,
        request.content,
        viewer_id,
        parent_comment_id=request.parent_comment_id,
    )


@router.delete("/comments/{comment_id}", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
async def delete_comment(
    comment_id: str,
    viewer_id: Optional[str] = Depends(get_viewer_id),
    service: CommentService = Depends(get_comment_service),
) -> Response:
    """Delete one of the viewer's own comments. Replies to it stay, shown as top-level comments."""
    await service.delete_comment(comment_id, viewer_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
