"""
Photo ratings: one mutable rating per user per photo, stats recomputed on read.
"""
from typing import List, Optional
from sqlalchemy import and_, delete, func
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from dao.photo_dao import PhotoDAO
from dao.profile_dao import ProfileDAO
from models.photo import PhotoRating
from schemas.engagement import RatingInput, RatingOut, RatingStats, RatingSummary
from services.db import dialect_insert
from services.errors import InputValidationError, NotFoundError, require_viewer, translate_store_errors

logger = logging.getLogger(__name__)

MIN_SCORE = 0.0
MAX_SCORE = 10.0

def average_of(composition: float, storytelling: float, technique: float) -> float:
    return (composition + storytelling + technique) / 3

def rating_stats(ratings: List[PhotoRating]) -> RatingStats:
    """Per-category means and the mean of the per-rating averages."""
    if not ratings:
        return RatingStats()
    total = len(ratings)

    def mean(values):
        return round(sum(values) / total, 2)

    return RatingStats(
        average_composition=mean(r.composition_score for r in ratings),
        average_storytelling=mean(r.storytelling_score for r in ratings),
        average_technique=mean(r.technique_score for r in ratings),
        overall_average=mean(r.average_score for r in ratings),
        total_ratings=total,
    )

class RatingService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.photos = PhotoDAO(db)

    @translate_store_errors
    async def submit_rating(self, viewer_id: Optional[int], photo_id: int,
                            rating: RatingInput) -> RatingOut:
        """Insert or overwrite the viewer's rating; the average is computed here, never trusted."""
        viewer_id = require_viewer(viewer_id)
        scores = (rating.composition_score, rating.storytelling_score, rating.technique_score)
        if any(score < MIN_SCORE or score > MAX_SCORE for score in scores):
            raise InputValidationError(f"Scores must be between {MIN_SCORE:g} and {MAX_SCORE:g}")
        if await self.photos.get_visible(photo_id, viewer_id) is None:
            raise NotFoundError("Photo not found")

        values = {
            "composition_score": rating.composition_score,
            "storytelling_score": rating.storytelling_score,
            "technique_score": rating.technique_score,
            "average_score": average_of(*scores),
        }
        stmt = dialect_insert(self.db, PhotoRating).values(
            photo_id=photo_id, user_id=viewer_id, **values
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["photo_id", "user_id"],
            set_={**values, "updated_at": func.now()},
        )
        await self.db.execute(stmt)
        await self.db.commit()

        stored = await self._get(viewer_id, photo_id)
        await self.db.refresh(stored)
        logger.info(f"User {viewer_id} rated photo {photo_id}: {stored.average_score:.2f}")
        profiles = await ProfileDAO(self.db).owner_profiles([viewer_id])
        return self._out(stored, profiles[viewer_id])

    @translate_store_errors
    async def delete_rating(self, viewer_id: Optional[int], photo_id: int) -> bool:
        viewer_id = require_viewer(viewer_id)
        result = await self.db.execute(
            delete(PhotoRating).where(
                and_(PhotoRating.photo_id == photo_id, PhotoRating.user_id == viewer_id)
            )
        )
        await self.db.commit()
        return result.rowcount > 0

    @translate_store_errors
    async def get_ratings(self, viewer_id: Optional[int], photo_id: int) -> RatingSummary:
        if await self.photos.get_visible(photo_id, viewer_id) is None:
            raise NotFoundError("Photo not found")

        result = await self.db.execute(
            select(PhotoRating)
            .where(PhotoRating.photo_id == photo_id)
            .order_by(PhotoRating.created_at.desc(), PhotoRating.id.desc())
        )
        ratings = list(result.scalars().all())
        profiles = await ProfileDAO(self.db).owner_profiles(r.user_id for r in ratings)
        out = [self._out(r, profiles[r.user_id]) for r in ratings]
        user_rating = next((r for r in out if r.user_id == viewer_id), None)
        return RatingSummary(ratings=out, user_rating=user_rating, stats=rating_stats(ratings))

    async def _get(self, user_id: int, photo_id: int) -> PhotoRating:
        result = await self.db.execute(
            select(PhotoRating).where(
                and_(PhotoRating.photo_id == photo_id, PhotoRating.user_id == user_id)
            )
        )
        return result.scalar_one()

    @staticmethod
    def _out(rating: PhotoRating, profile) -> RatingOut:
        out = RatingOut.model_validate(rating)
        out.profile = profile
        return out
