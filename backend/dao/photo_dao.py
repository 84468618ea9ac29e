from typing import Dict, Iterable, Optional, Set
from sqlalchemy import and_, or_, func, update, false
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession
from dao.relationship_dao import RelationshipDAO
from models.photo import Photo, PhotoComment, Visibility

def visibility_clause(viewer_id: Optional[int], friend_ids: Set[int]):
    """
    Rows the viewer may see: public to everyone, friends-only to the owner and
    accepted friends, private to the owner alone.
    """
    if viewer_id is None:
        return Photo.visibility == Visibility.PUBLIC

    clauses = [Photo.visibility == Visibility.PUBLIC, Photo.owner_id == viewer_id]
    if friend_ids:
        clauses.append(and_(Photo.visibility == Visibility.FRIENDS, Photo.owner_id.in_(friend_ids)))
    return or_(*clauses)

def owner_clause(owner_ids: Set[int]):
    if not owner_ids:
        return false()
    return Photo.owner_id.in_(owner_ids)

class PhotoDAO:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, photo_id: int) -> Optional[Photo]:
        return await self.db.get(Photo, photo_id)

    async def comment_counts(self, photo_ids: Iterable[int]) -> Dict[int, int]:
        """Live number of comment rows per photo; photos without comments map to 0."""
        ids = list(photo_ids)
        if not ids:
            return {}
        result = await self.db.execute(
            select(PhotoComment.photo_id, func.count(PhotoComment.id))
            .where(PhotoComment.photo_id.in_(ids))
            .group_by(PhotoComment.photo_id)
        )
        counts = {photo_id: 0 for photo_id in ids}
        counts.update({photo_id: count for photo_id, count in result.all()})
        return counts

    async def increment_views(self, photo_id: int) -> Optional[int]:
        result = await self.db.execute(
            update(Photo)
            .where(Photo.id == photo_id)
            .values(views_count=Photo.views_count + 1)
            .execution_options(synchronize_session="fetch")
        )
        if result.rowcount == 0:
            return None
        counter = await self.db.execute(select(Photo.views_count).where(Photo.id == photo_id))
        return counter.scalar_one()

    async def adjust_likes(self, photo_id: int, delta: int):
        stmt = update(Photo).where(Photo.id == photo_id)
        if delta < 0:
            stmt = stmt.where(Photo.likes_count > 0)
        await self.db.execute(
            stmt.values(likes_count=Photo.likes_count + delta)
            .execution_options(synchronize_session="fetch")
        )

    async def get_visible(self, photo_id: int, viewer_id: Optional[int]) -> Optional[Photo]:
        """The photo if the viewer may see it, else None."""
        photo = await self.get(photo_id)
        if photo is None:
            return None
        if photo.visibility == Visibility.PUBLIC or photo.owner_id == viewer_id:
            return photo
        if viewer_id is not None and photo.visibility == Visibility.FRIENDS:
            if await RelationshipDAO(self.db).are_friends(viewer_id, photo.owner_id):
                return photo
        return None
