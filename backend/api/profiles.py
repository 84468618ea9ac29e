from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from services.db import get_db
from services.auth import get_optional_viewer
from services.errors import require_viewer
from services.profiles import ProfileService
from schemas.profile import DisplayNameAvailability, ProfileCreate, ProfileOut, ProfileUpdate

router = APIRouter()

@router.get("/display-name/available", response_model=DisplayNameAvailability)
async def display_name_available(
    name: str = Query(..., max_length=40),
    db: AsyncSession = Depends(get_db),
):
    return await ProfileService(db).check_display_name(name)

@router.get("/me", response_model=ProfileOut)
async def read_my_profile(
    viewer_id: Optional[int] = Depends(get_optional_viewer),
    db: AsyncSession = Depends(get_db),
):
    return await ProfileService(db).get_profile(require_viewer(viewer_id))

@router.post("/me", response_model=ProfileOut, status_code=status.HTTP_201_CREATED)
async def create_my_profile(
    body: ProfileCreate,
    viewer_id: Optional[int] = Depends(get_optional_viewer),
    db: AsyncSession = Depends(get_db),
):
    return await ProfileService(db).create_profile(viewer_id, body)

@router.put("/me", response_model=ProfileOut)
async def update_my_profile(
    body: ProfileUpdate,
    viewer_id: Optional[int] = Depends(get_optional_viewer),
    db: AsyncSession = Depends(get_db),
):
    """Display name can be set once; the other fields can change freely."""
    return await ProfileService(db).update_profile(viewer_id, body)

@router.get("/{user_id}", response_model=ProfileOut)
async def read_profile(user_id: int, db: AsyncSession = Depends(get_db)):
    return await ProfileService(db).get_profile(user_id)
