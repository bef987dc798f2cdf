"""
Post like API endpoint.
"""
from typing import Optional

from fastapi import APIRouter, Depends

from campus_feed.api.deps import get_like_service, get_viewer_id
from campus_feed.core.like_service import LikeService
from campus_feed.models.dtos import LikeState

router = APIRouter()


@router.post("/posts/{post_id}/like", response_model=LikeState)
async def toggle_like(
    post_id: str,
    viewer_id: Optional[str] = Depends(get_viewer_id),
    service: LikeService = Depends(get_like_service),
) -> LikeState:
    """Like the post, or remove the viewer's like if it is already liked."""
    return await service.toggle_like(post_id, viewer_id)
