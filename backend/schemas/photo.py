"""
Pydantic schemas for photo upload, detail and feed responses.
"""
from pydantic import BaseModel, Field, field_validator
from typing import List, Optional
from datetime import datetime
from enum import Enum
import re

from models.photo import Visibility

MAX_TITLE_LENGTH = 200
MAX_DESCRIPTION_LENGTH = 2000
MAX_CAMERA_LENGTH = 200
MAX_EXIF_TEXT_LENGTH = 100

class SortOrder(str, Enum):
    """Feed orderings."""
    LATEST = "latest"
    LIKES = "likes"
    COMMENTS = "comments"
    VIEWS = "views"
    HOT = "hot"

class PhotoFilter(str, Enum):
    """Feed audiences."""
    ALL = "all"
    FRIENDS = "friends"
    MINE = "mine"
    FOLLOWING = "following"

class ExposureSettings(BaseModel):
    """Free-form exposure metadata, filled from EXIF when the uploader gives none."""
    iso: Optional[int] = Field(None, ge=1)
    aperture: Optional[str] = Field(None, max_length=20)
    shutter_speed: Optional[str] = Field(None, max_length=20)
    focal_length: Optional[str] = Field(None, max_length=20)
    make: Optional[str] = Field(None, max_length=MAX_EXIF_TEXT_LENGTH)
    model: Optional[str] = Field(None, max_length=MAX_EXIF_TEXT_LENGTH)

class PhotoCreate(BaseModel):
    """Metadata sent alongside the image files of an upload."""
    title: str = Field(..., max_length=MAX_TITLE_LENGTH)
    description: Optional[str] = Field(None, max_length=MAX_DESCRIPTION_LENGTH)
    camera_equipment: Optional[str] = Field(None, max_length=MAX_CAMERA_LENGTH)
    exposure_settings: Optional[ExposureSettings] = None
    visibility: Visibility = Visibility.PUBLIC

    @field_validator('title')
    def validate_title(cls, v):
        """Strip markup characters; an empty title is rejected."""
        v = re.sub(r'[<>]', '', v.strip())
        if not v:
            raise ValueError("Title is required")
        return v

    @field_validator('description', 'camera_equipment')
    def strip_optional_text(cls, v):
        if v:
            v = re.sub(r'[<>]', '', v.strip())
            if len(v) == 0:
                return None
        return v

class OwnerProfile(BaseModel):
    """Denormalized author identity shown next to a photo or comment."""
    user_id: int
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None

class PhotoSummary(BaseModel):
    """Feed item."""
    id: int
    owner_id: int
    title: str
    description: Optional[str] = None
    image_urls: List[str]
    cover_url: Optional[str] = None
    camera_equipment: Optional[str] = None
    exposure_settings: Optional[ExposureSettings] = None
    dominant_colors: Optional[List[str]] = None
    visibility: Visibility
    likes_count: int = 0
    views_count: int = 0
    comments_count: int = 0
    created_at: datetime
    owner: OwnerProfile
    hotness: Optional[float] = None

    class Config:
        from_attributes = True

class PhotoDetail(PhotoSummary):
    """Single photo view, with the viewer-specific flags."""
    is_liked: bool = False
    can_delete: bool = False
    updated_at: Optional[datetime] = None

class FeedPage(BaseModel):
    """One page of a feed with counts for 'page X of Y'."""
    photos: List[PhotoSummary]
    total_count: int
    page: int
    page_size: int
    total_pages: int
    has_next: bool
    has_previous: bool
    sort: SortOrder
    filter: PhotoFilter

class ViewCount(BaseModel):
    photo_id: int
    views_count: int
