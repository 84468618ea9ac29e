"""
Likes, ratings and comments on photos.
"""
from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from services.db import get_db
from services.auth import get_optional_viewer
from services.comments import CommentService
from services.likes import LikeService
from services.ratings import RatingService
from services.realtime import ChangeBroadcaster, get_broadcaster
from schemas.engagement import (
    CommentCreate, CommentNode, CommentThread, LikeState, RatingInput, RatingOut, RatingSummary
)

router = APIRouter()

# ==========================================
# LIKES
# ==========================================

@router.post("/photos/{photo_id}/like", response_model=LikeState)
async def toggle_like(
    photo_id: int,
    viewer_id: Optional[int] = Depends(get_optional_viewer),
    db: AsyncSession = Depends(get_db),
    broadcaster: ChangeBroadcaster = Depends(get_broadcaster),
):
    return await LikeService(db, broadcaster).toggle_like(viewer_id, photo_id)

@router.get("/photos/{photo_id}/likes", response_model=LikeState)
async def get_like_state(
    photo_id: int,
    viewer_id: Optional[int] = Depends(get_optional_viewer),
    db: AsyncSession = Depends(get_db),
):
    return await LikeService(db).get_like_state(viewer_id, photo_id)

# ==========================================
# RATINGS
# ==========================================

@router.put("/photos/{photo_id}/ratings", response_model=RatingOut)
async def submit_rating(
    photo_id: int,
    rating: RatingInput,
    viewer_id: Optional[int] = Depends(get_optional_viewer),
    db: AsyncSession = Depends(get_db),
):
    """Create or replace the caller's rating of a photo."""
    return await RatingService(db).submit_rating(viewer_id, photo_id, rating)

@router.delete("/photos/{photo_id}/ratings")
async def delete_rating(
    photo_id: int,
    viewer_id: Optional[int] = Depends(get_optional_viewer),
    db: AsyncSession = Depends(get_db),
):
    deleted = await RatingService(db).delete_rating(viewer_id, photo_id)
    return {"deleted": deleted}

@router.get("/photos/{photo_id}/ratings", response_model=RatingSummary)
async def get_ratings(
    photo_id: int,
    viewer_id: Optional[int] = Depends(get_optional_viewer),
    db: AsyncSession = Depends(get_db),
):
    return await RatingService(db).get_ratings(viewer_id, photo_id)

# ==========================================
# COMMENTS
# ==========================================

@router.get("/photos/{photo_id}/comments", response_model=CommentThread)
async def list_comments(
    photo_id: int,
    max_depth: Optional[int] = Query(None, ge=1, le=20),
    viewer_id: Optional[int] = Depends(get_optional_viewer),
    db: AsyncSession = Depends(get_db),
):
    return await CommentService(db).list_comments(viewer_id, photo_id, max_depth)

@router.post("/photos/{photo_id}/comments", response_model=CommentNode,
             status_code=status.HTTP_201_CREATED)
async def add_comment(
    photo_id: int,
    comment: CommentCreate,
    viewer_id: Optional[int] = Depends(get_optional_viewer),
    db: AsyncSession = Depends(get_db),
    broadcaster: ChangeBroadcaster = Depends(get_broadcaster),
):
    return await CommentService(db, broadcaster).add_comment(
        viewer_id, photo_id, comment.content, comment.parent_id
    )

@router.delete("/comments/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_comment(
    comment_id: int,
    viewer_id: Optional[int] = Depends(get_optional_viewer),
    db: AsyncSession = Depends(get_db),
):
    await CommentService(db).delete_comment(viewer_id, comment_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
