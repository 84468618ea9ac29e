"""
Photo lifecycle: multi-image upload, detail view, view counting and deletion.
"""
from typing import List, Optional, Sequence, Tuple
from sqlalchemy import and_, delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from dao.photo_dao import PhotoDAO, visibility_clause
from dao.profile_dao import ProfileDAO
from dao.relationship_dao import RelationshipDAO
from models.notification import Notification, NotificationType
from models.photo import Photo, PhotoComment, PhotoLike, PhotoRating, Visibility
from schemas.photo import PhotoCreate, PhotoDetail, PhotoSummary, ViewCount
from services.config import app_config
from services.errors import (
    InputValidationError, NotAuthorizedError, NotFoundError, UpstreamUnavailableError,
    require_viewer, translate_store_errors
)
from services.feed import build_summary
from services.file_storage import (
    FileValidationError, FileValidator, ObjectStore, StorageError, StoredObject,
    build_object_key, get_object_store
)
from services.image_analysis import camera_from_exposure, extract_dominant_colors, extract_exposure
from services.notifications import NotificationService
from services.realtime import ChangeBroadcaster
from services.security import SecurityUtils

logger = logging.getLogger(__name__)

# Notification types whose related_id is a photo id
PHOTO_NOTIFICATION_TYPES = (NotificationType.COMMENT, NotificationType.LIKE, NotificationType.FRIEND_POST)

UploadedFile = Tuple[str, bytes]

class PhotoService:
    def __init__(self, db: AsyncSession, store: Optional[ObjectStore] = None,
                 broadcaster: Optional[ChangeBroadcaster] = None):
        self.db = db
        self.store = store or get_object_store()
        self.photos = PhotoDAO(db)
        self.profiles = ProfileDAO(db)
        self.relationships = RelationshipDAO(db)
        self.notifications = NotificationService(db, broadcaster)
        self.validator = FileValidator()

    @translate_store_errors
    async def create_photo(self, viewer_id: Optional[int], data: PhotoCreate,
                           files: Sequence[UploadedFile]) -> PhotoDetail:
        """
        Store every image, then create the photo row.

        All files are validated before anything is stored. If any upload fails
        the blobs stored so far are removed and nothing is created. EXIF
        exposure data and colors come from the first image when available;
        exposure settings sent by the uploader take precedence.

        Raises:
            InputValidationError: no files, too many files, or an invalid image
            UpstreamUnavailableError: the object store failed
        """
        viewer_id = require_viewer(viewer_id)
        if not files:
            raise InputValidationError("At least one image is required")
        if len(files) > app_config.max_images_per_photo:
            raise InputValidationError(
                f"A photo can have at most {app_config.max_images_per_photo} images"
            )

        checked = []
        for filename, content in files:
            try:
                checked.append((content, self.validator.validate(content, filename)))
            except FileValidationError as e:
                SecurityUtils.log_security_event(
                    "upload_rejected", {"filename": filename, "reason": str(e)}, user_id=viewer_id
                )
                raise InputValidationError(str(e)) from e

        stored: List[StoredObject] = []
        try:
            for content, info in checked:
                key = build_object_key(viewer_id, info['extension'])
                stored.append(await self.store.put(key, content, info['mime_type']))
        except StorageError as e:
            logger.error(f"Upload for user {viewer_id} failed after {len(stored)} of {len(checked)} images")
            await self._discard(stored)
            raise UpstreamUnavailableError("Image upload failed, please retry") from e

        first_image = checked[0][0]
        if data.exposure_settings is not None:
            exposure = data.exposure_settings.model_dump(exclude_none=True) or None
        else:
            exposure = extract_exposure(first_image)
        camera = data.camera_equipment or camera_from_exposure(exposure)
        colors = extract_dominant_colors(first_image) or None

        photo = Photo(
            owner_id=viewer_id,
            title=data.title,
            description=data.description,
            image_urls=[obj.url for obj in stored],
            image_paths=[obj.path for obj in stored],
            camera_equipment=camera,
            exposure_settings=exposure,
            dominant_colors=colors,
            visibility=data.visibility,
            likes_count=0,
            views_count=0,
        )
        try:
            self.db.add(photo)
            await self.db.flush()

            friend_ids = set()
            if data.visibility != Visibility.PRIVATE:
                friend_ids = await self.relationships.accepted_friend_ids(viewer_id)
                profile = await self.profiles.get(viewer_id)
                author = profile.display_name if profile and profile.display_name else "A friend"
                for friend_id in friend_ids:
                    self.notifications.stage(
                        recipient_id=friend_id,
                        type=NotificationType.FRIEND_POST,
                        related_id=photo.id,
                        title="New photo from a friend",
                        message=f'{author} posted "{photo.title}"',
                        actor_id=viewer_id,
                    )
            await self.db.commit()
            await self.db.refresh(photo)
        except SQLAlchemyError:
            await self._discard(stored)
            raise

        if friend_ids:
            self.notifications.announce(friend_ids, NotificationType.FRIEND_POST.value)
        logger.info(f"Photo {photo.id} created by user {viewer_id} with {len(stored)} images")
        owners = await self.profiles.owner_profiles([viewer_id])
        return build_summary(photo, owners[viewer_id], 0, model=PhotoDetail,
                             is_liked=False, can_delete=True, updated_at=photo.updated_at)

    @translate_store_errors
    async def get_photo(self, viewer_id: Optional[int], photo_id: int) -> PhotoDetail:
        """Photos the viewer may not see are reported as missing."""
        photo = await self.photos.get_visible(photo_id, viewer_id)
        if photo is None:
            raise NotFoundError("Photo not found")

        counts = await self.photos.comment_counts([photo.id])
        owners = await self.profiles.owner_profiles([photo.owner_id])
        is_liked = False
        if viewer_id is not None:
            result = await self.db.execute(
                select(PhotoLike.id).where(
                    and_(PhotoLike.photo_id == photo.id, PhotoLike.user_id == viewer_id)
                )
            )
            is_liked = result.scalar_one_or_none() is not None
        return build_summary(photo, owners[photo.owner_id], counts[photo.id], model=PhotoDetail,
                             is_liked=is_liked, can_delete=photo.owner_id == viewer_id,
                             updated_at=photo.updated_at)

    @translate_store_errors
    async def record_view(self, viewer_id: Optional[int], photo_id: int) -> ViewCount:
        """Count one view with a single in-database increment."""
        if await self.photos.get_visible(photo_id, viewer_id) is None:
            raise NotFoundError("Photo not found")
        views = await self.photos.increment_views(photo_id)
        if views is None:
            raise NotFoundError("Photo not found")
        await self.db.commit()
        return ViewCount(photo_id=photo_id, views_count=views)

    @translate_store_errors
    async def delete_photo(self, viewer_id: Optional[int], photo_id: int):
        """
        Remove the stored images, then the photo with its likes, ratings,
        comments and notifications. If the object store fails nothing is
        deleted from the database.
        """
        viewer_id = require_viewer(viewer_id)
        photo = await self.photos.get(photo_id)
        if photo is None:
            raise NotFoundError("Photo not found")
        if photo.owner_id != viewer_id:
            if await self.photos.get_visible(photo_id, viewer_id) is None:
                raise NotFoundError("Photo not found")
            SecurityUtils.log_security_event(
                "photo_delete_denied",
                {"photo_id": photo_id, "owner_id": photo.owner_id},
                user_id=viewer_id
            )
            raise NotAuthorizedError("You can only delete your own photos")

        for path in photo.image_paths or []:
            try:
                await self.store.delete(path)
            except StorageError as e:
                raise UpstreamUnavailableError("Could not remove stored images, please retry") from e

        await self.db.execute(delete(PhotoLike).where(PhotoLike.photo_id == photo_id))
        await self.db.execute(delete(PhotoRating).where(PhotoRating.photo_id == photo_id))
        await self.db.execute(delete(PhotoComment).where(PhotoComment.photo_id == photo_id))
        await self.db.execute(
            delete(Notification).where(
                and_(Notification.related_id == photo_id,
                     Notification.type.in_(PHOTO_NOTIFICATION_TYPES))
            )
        )
        await self.db.delete(photo)
        await self.db.commit()
        logger.info(f"Photo {photo_id} deleted by owner {viewer_id}")

    @translate_store_errors
    async def list_user_photos(self, viewer_id: Optional[int], owner_id: int,
                               limit: int = 100) -> List[PhotoSummary]:
        """A user's gallery as the viewer may see it, newest first."""
        friend_ids = set()
        if viewer_id is not None:
            friend_ids = await self.relationships.accepted_friend_ids(viewer_id)
        result = await self.db.execute(
            select(Photo)
            .where(and_(Photo.owner_id == owner_id, visibility_clause(viewer_id, friend_ids)))
            .order_by(Photo.created_at.desc(), Photo.id.desc())
            .limit(limit)
        )
        photos = list(result.scalars().all())
        counts = await self.photos.comment_counts(p.id for p in photos)
        owners = await self.profiles.owner_profiles([owner_id])
        return [build_summary(p, owners[owner_id], counts[p.id]) for p in photos]

    async def _discard(self, stored: List[StoredObject]):
        for obj in stored:
            try:
                await self.store.delete(obj.path)
            except StorageError as e:
                logger.error(f"Could not remove orphaned image {obj.path}: {e}")
