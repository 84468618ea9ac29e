from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from services.db import get_db
from services.auth import get_optional_viewer
from services.notifications import NotificationService
from schemas.notification import MarkReadRequest, MarkReadResult, NotificationOut, UnreadCount

router = APIRouter()

@router.get("", response_model=List[NotificationOut])
async def list_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    viewer_id: Optional[int] = Depends(get_optional_viewer),
    db: AsyncSession = Depends(get_db),
):
    return await NotificationService(db).list_notifications(viewer_id, unread_only, limit)

@router.get("/unread-count", response_model=UnreadCount)
async def unread_count(
    viewer_id: Optional[int] = Depends(get_optional_viewer),
    db: AsyncSession = Depends(get_db),
):
    return UnreadCount(unread=await NotificationService(db).unread_count(viewer_id))

@router.post("/read", response_model=MarkReadResult)
async def mark_as_read(
    body: MarkReadRequest,
    viewer_id: Optional[int] = Depends(get_optional_viewer),
    db: AsyncSession = Depends(get_db),
):
    """Only the caller's own notifications are touched; other ids are ignored."""
    return MarkReadResult(updated=await NotificationService(db).mark_as_read(viewer_id, body.ids))

@router.post("/read-all", response_model=MarkReadResult)
async def mark_all_as_read(
    viewer_id: Optional[int] = Depends(get_optional_viewer),
    db: AsyncSession = Depends(get_db),
):
    return MarkReadResult(updated=await NotificationService(db).mark_all_as_read(viewer_id))
