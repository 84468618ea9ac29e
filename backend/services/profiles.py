"""
User profiles and display name rules.
"""
from typing import Optional, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
import logging
import re

from dao.profile_dao import ProfileDAO
from models.profile import Profile
from schemas.profile import DisplayNameAvailability, ProfileCreate, ProfileUpdate
from services.errors import (
    ConflictError, InputValidationError, NotFoundError, require_viewer, translate_store_errors
)

logger = logging.getLogger(__name__)

MIN_DISPLAY_NAME_LENGTH = 2
MAX_DISPLAY_NAME_LENGTH = 20
DISPLAY_NAME_PATTERN = re.compile(r'^[a-zA-Z0-9\u4e00-\u9fa5_\-.]+$')

def validate_display_name(name: Optional[str]) -> Tuple[bool, Optional[str]]:
    """
    Check length and character set of a display name.

    Returns:
        (valid, message) where message explains the first failed rule
    """
    if not name or not name.strip():
        return False, "Display name cannot be empty"
    if len(name) < MIN_DISPLAY_NAME_LENGTH:
        return False, f"Display name must be at least {MIN_DISPLAY_NAME_LENGTH} characters"
    if len(name) > MAX_DISPLAY_NAME_LENGTH:
        return False, f"Display name cannot exceed {MAX_DISPLAY_NAME_LENGTH} characters"
    if not DISPLAY_NAME_PATTERN.match(name):
        return False, "Display name may only contain letters, digits, CJK characters, '_', '-' and '.'"
    return True, None

def ensure_valid_display_name(name: Optional[str]) -> str:
    valid, message = validate_display_name(name)
    if not valid:
        raise InputValidationError(message)
    return name

class ProfileService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.dao = ProfileDAO(db)

    @translate_store_errors
    async def is_display_name_available(self, name: str) -> bool:
        if not name or not name.strip():
            return False
        return await self.dao.get_by_display_name(name.strip()) is None

    @translate_store_errors
    async def check_display_name(self, name: str) -> DisplayNameAvailability:
        valid, message = validate_display_name(name)
        available = valid and await self.is_display_name_available(name)
        if valid and not available:
            message = "Display name is already taken"
        return DisplayNameAvailability(display_name=name, valid=valid, available=available,
                                       message=message)

    @translate_store_errors
    async def get_profile(self, user_id: int) -> Profile:
        profile = await self.dao.get(user_id)
        if profile is None:
            raise NotFoundError("Profile not found")
        return profile

    @translate_store_errors
    async def create_profile(self, viewer_id: Optional[int], data: ProfileCreate) -> Profile:
        viewer_id = require_viewer(viewer_id)
        name = ensure_valid_display_name(data.display_name)
        if await self.dao.get(viewer_id) is not None:
            raise ConflictError("Profile already exists", code="profile_exists")
        if not await self.is_display_name_available(name):
            raise ConflictError("Display name is already taken", code="name_taken")

        profile = Profile(
            user_id=viewer_id,
            display_name=name,
            avatar_url=data.avatar_url,
            bio=data.bio,
            favorite_camera=data.favorite_camera,
        )
        self.db.add(profile)
        await self.db.commit()
        await self.db.refresh(profile)
        logger.info(f"Profile created for user {viewer_id}")
        return profile

    @translate_store_errors
    async def update_profile(self, viewer_id: Optional[int], data: ProfileUpdate) -> Profile:
        """
        Create or update the viewer's profile. A display name can be set once;
        sending a different one afterwards is rejected.
        """
        viewer_id = require_viewer(viewer_id)
        changes = data.model_dump(exclude_unset=True)
        profile = await self.dao.get(viewer_id)

        name = changes.pop("display_name", None)
        if name is not None:
            if profile is not None and profile.display_name:
                if name != profile.display_name:
                    raise InputValidationError("Display name cannot be changed once set")
            else:
                ensure_valid_display_name(name)
                if not await self.is_display_name_available(name):
                    raise ConflictError("Display name is already taken", code="name_taken")
                changes["display_name"] = name

        if profile is None:
            profile = Profile(user_id=viewer_id, **changes)
            self.db.add(profile)
        else:
            for field, value in changes.items():
                setattr(profile, field, value)

        await self.db.commit()
        await self.db.refresh(profile)
        logger.info(f"Profile updated for user {viewer_id}: {sorted(changes)}")
        return profile
