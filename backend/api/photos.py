"""
Photo feed, upload and management endpoints.
"""
from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile, status
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
import logging

from services.db import get_db
from services.auth import get_optional_viewer
from services.config import app_config
from services.errors import InputValidationError
from services.feed import FeedService
from services.file_storage import ObjectStore, get_object_store
from services.hotness import HotnessScorer, get_hotness_scorer
from services.photos import PhotoService
from services.realtime import ChangeBroadcaster, get_broadcaster
from schemas.photo import FeedPage, PhotoCreate, PhotoDetail, PhotoFilter, PhotoSummary, SortOrder, ViewCount

router = APIRouter()
logger = logging.getLogger(__name__)

def get_photo_service(
    db: AsyncSession = Depends(get_db),
    store: ObjectStore = Depends(get_object_store),
    broadcaster: ChangeBroadcaster = Depends(get_broadcaster),
) -> PhotoService:
    return PhotoService(db, store=store, broadcaster=broadcaster)

# ==========================================
# FEED
# ==========================================

@router.get("/photos", response_model=FeedPage)
async def get_feed(
    sort: SortOrder = Query(SortOrder.LATEST),
    filter: PhotoFilter = Query(PhotoFilter.ALL),
    page: int = Query(1, ge=1),
    page_size: Optional[int] = Query(None, ge=1, le=app_config.feed_max_page_size),
    viewer_id: Optional[int] = Depends(get_optional_viewer),
    scorer: HotnessScorer = Depends(get_hotness_scorer),
    db: AsyncSession = Depends(get_db),
):
    """
    Photos visible to the caller.

    ``mine``, ``friends`` and ``following`` need a signed-in viewer. With
    ``all`` a signed-in viewer sees their own photos first, then photos of
    friends and followed users, then everything else.
    """
    return await FeedService(db, scorer).get_feed(viewer_id, sort, filter, page, page_size)

@router.get("/users/{user_id}/photos", response_model=List[PhotoSummary])
async def list_user_photos(
    user_id: int,
    viewer_id: Optional[int] = Depends(get_optional_viewer),
    service: PhotoService = Depends(get_photo_service),
):
    return await service.list_user_photos(viewer_id, user_id)

# ==========================================
# PHOTO UPLOAD AND MANAGEMENT
# ==========================================

@router.post("/photos", response_model=PhotoDetail, status_code=status.HTTP_201_CREATED)
async def upload_photo(
    files: List[UploadFile] = File(...),
    metadata: str = Form(...),  # JSON string with title, description, camera_equipment, ...
    viewer_id: Optional[int] = Depends(get_optional_viewer),
    service: PhotoService = Depends(get_photo_service),
):
    """
    Upload one photo made of up to ``MAX_IMAGES_PER_PHOTO`` images.
    If any image fails validation or storage, nothing is created.
    """
    try:
        data = PhotoCreate.model_validate_json(metadata)
    except ValidationError as e:
        first = e.errors()[0]
        raise InputValidationError(f"Invalid metadata: {first.get('msg', 'malformed')}") from e

    uploads = []
    for upload in files:
        # Read one byte past the limit so oversized files are detected without buffering them whole
        content = await upload.read(app_config.max_upload_bytes + 1)
        uploads.append((upload.filename or "upload", content))
        await upload.close()

    return await service.create_photo(viewer_id, data, uploads)

@router.get("/photos/{photo_id}", response_model=PhotoDetail)
async def get_photo(
    photo_id: int,
    viewer_id: Optional[int] = Depends(get_optional_viewer),
    service: PhotoService = Depends(get_photo_service),
):
    return await service.get_photo(viewer_id, photo_id)

@router.delete("/photos/{photo_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_photo(
    photo_id: int,
    viewer_id: Optional[int] = Depends(get_optional_viewer),
    service: PhotoService = Depends(get_photo_service),
):
    await service.delete_photo(viewer_id, photo_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

@router.post("/photos/{photo_id}/views", response_model=ViewCount)
async def record_view(
    photo_id: int,
    viewer_id: Optional[int] = Depends(get_optional_viewer),
    service: PhotoService = Depends(get_photo_service),
):
    return await service.record_view(viewer_id, photo_id)
