from typing import Optional
from sqlalchemy import and_, delete
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from dao.photo_dao import PhotoDAO
from dao.profile_dao import ProfileDAO
from models.notification import NotificationType
from models.photo import Photo, PhotoLike
from schemas.engagement import LikeState
from services.db import dialect_insert
from services.errors import NotFoundError, require_viewer, translate_store_errors
from services.notifications import NotificationService
from services.realtime import ChangeBroadcaster

logger = logging.getLogger(__name__)

class LikeService:
    def __init__(self, db: AsyncSession, broadcaster: Optional[ChangeBroadcaster] = None):
        self.db = db
        self.photos = PhotoDAO(db)
        self.notifications = NotificationService(db, broadcaster)

    @translate_store_errors
    async def toggle_like(self, viewer_id: Optional[int], photo_id: int) -> LikeState:
        """
        Flip the viewer's like on a photo.

        The current state is re-read right before the write. The insert ignores
        a concurrent duplicate and the counter only moves when a row was
        actually inserted or deleted, so ``likes_count`` tracks the like rows.
        """
        viewer_id = require_viewer(viewer_id)
        photo = await self.photos.get_visible(photo_id, viewer_id)
        if photo is None:
            raise NotFoundError("Photo not found")
        owner_id, title = photo.owner_id, photo.title

        if await self._has_liked(viewer_id, photo_id):
            result = await self.db.execute(
                delete(PhotoLike).where(
                    and_(PhotoLike.photo_id == photo_id, PhotoLike.user_id == viewer_id)
                )
            )
            if result.rowcount:
                await self.photos.adjust_likes(photo_id, -1)
            liked = False
            notified = None
        else:
            stmt = dialect_insert(self.db, PhotoLike).values(
                photo_id=photo_id, user_id=viewer_id
            ).on_conflict_do_nothing(index_elements=["photo_id", "user_id"])
            result = await self.db.execute(stmt)
            notified = None
            if result.rowcount == 1:
                await self.photos.adjust_likes(photo_id, 1)
                profile = await ProfileDAO(self.db).get(viewer_id)
                liker = profile.display_name if profile and profile.display_name else "Someone"
                notified = self.notifications.stage(
                    recipient_id=owner_id,
                    type=NotificationType.LIKE,
                    related_id=photo_id,
                    title="New like",
                    message=f'{liker} liked your photo "{title}"',
                    actor_id=viewer_id,
                )
            liked = True

        await self.db.commit()
        if notified is not None:
            self.notifications.announce([owner_id], NotificationType.LIKE.value)

        logger.info(f"User {viewer_id} {'liked' if liked else 'unliked'} photo {photo_id}")
        return LikeState(photo_id=photo_id, liked=liked, likes_count=await self._likes_count(photo_id))

    @translate_store_errors
    async def get_like_state(self, viewer_id: Optional[int], photo_id: int) -> LikeState:
        photo = await self.photos.get_visible(photo_id, viewer_id)
        if photo is None:
            raise NotFoundError("Photo not found")
        liked = viewer_id is not None and await self._has_liked(viewer_id, photo_id)
        return LikeState(photo_id=photo_id, liked=liked, likes_count=await self._likes_count(photo_id))

    async def _has_liked(self, user_id: int, photo_id: int) -> bool:
        result = await self.db.execute(
            select(PhotoLike.id).where(
                and_(PhotoLike.photo_id == photo_id, PhotoLike.user_id == user_id)
            )
        )
        return result.scalar_one_or_none() is not None

    async def _likes_count(self, photo_id: int) -> int:
        result = await self.db.execute(select(Photo.likes_count).where(Photo.id == photo_id))
        return result.scalar_one()
