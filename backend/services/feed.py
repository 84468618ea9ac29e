"""
Feed assembly: filter, visibility, ordering, friend prioritization and pagination.
"""
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Set
from sqlalchemy import and_, func
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession
import logging
import math

from dao.photo_dao import PhotoDAO, owner_clause, visibility_clause
from dao.profile_dao import ProfileDAO
from dao.relationship_dao import RelationshipDAO
from models.photo import Photo
from schemas.photo import FeedPage, OwnerProfile, PhotoFilter, PhotoSummary, SortOrder
from services.config import app_config
from services.errors import InputValidationError, require_viewer, translate_store_errors
from services.hotness import EngagementSnapshot, HotnessScorer, get_hotness_scorer

logger = logging.getLogger(__name__)

# Orderings the database can do on its own; the rest are ranked in Python.
# Equal keys fall back to the most recently inserted photo first.
SQL_ORDERINGS = {
    SortOrder.LATEST: (Photo.created_at.desc(), Photo.id.desc()),
    SortOrder.LIKES: (Photo.likes_count.desc(), Photo.created_at.desc(), Photo.id.desc()),
    SortOrder.VIEWS: (Photo.views_count.desc(), Photo.created_at.desc(), Photo.id.desc()),
}
DEFAULT_ORDERING = SQL_ORDERINGS[SortOrder.LATEST]

def build_summary(photo: Photo, owner: OwnerProfile, comments_count: int,
                  hotness: Optional[float] = None, model=PhotoSummary, **extra):
    return model(
        id=photo.id,
        owner_id=photo.owner_id,
        title=photo.title,
        description=photo.description,
        image_urls=photo.image_urls or [],
        cover_url=photo.cover_url,
        camera_equipment=photo.camera_equipment,
        exposure_settings=photo.exposure_settings,
        dominant_colors=photo.dominant_colors,
        visibility=photo.visibility,
        likes_count=photo.likes_count or 0,
        views_count=photo.views_count or 0,
        comments_count=comments_count,
        created_at=photo.created_at,
        owner=owner,
        hotness=hotness,
        **extra,
    )

def rank_by(photos: List[Photo], key: Dict[int, float]) -> List[Photo]:
    """Sort descending by ``key[photo.id]``; equal keys keep their incoming order."""
    return sorted(photos, key=lambda p: key.get(p.id, 0), reverse=True)

def prioritize(photos: List[Photo], viewer_id: int, close_ids: Set[int]) -> List[Photo]:
    """
    Stable three-bucket reorder: the viewer's own photos, then photos by
    friends or followed users, then everyone else. Order inside a bucket is
    the order the photos arrived in.
    """
    mine, close, others = [], [], []
    for photo in photos:
        if photo.owner_id == viewer_id:
            mine.append(photo)
        elif photo.owner_id in close_ids:
            close.append(photo)
        else:
            others.append(photo)
    return mine + close + others

def paginate(items: list, page: int, page_size: int) -> list:
    start = (page - 1) * page_size
    return items[start:start + page_size]

class FeedService:
    def __init__(self, db: AsyncSession, scorer: Optional[HotnessScorer] = None):
        self.db = db
        self.scorer = scorer or get_hotness_scorer()
        self.photos = PhotoDAO(db)
        self.relationships = RelationshipDAO(db)
        self.profiles = ProfileDAO(db)

    @translate_store_errors
    async def get_feed(self, viewer_id: Optional[int], sort: SortOrder = SortOrder.LATEST,
                       filter: PhotoFilter = PhotoFilter.ALL, page: int = 1,
                       page_size: Optional[int] = None) -> FeedPage:
        """
        One page of photos visible to ``viewer_id``.

        ``mine``, ``friends`` and ``following`` need a viewer. For ``all`` with a
        viewer the sorted result is regrouped into own, friends/followed and
        other photos. ``total_count`` comes from its own count query.
        """
        page_size = page_size or app_config.feed_default_page_size
        if page < 1:
            raise InputValidationError("page must be 1 or greater")
        if page_size < 1 or page_size > app_config.feed_max_page_size:
            raise InputValidationError(
                f"page_size must be between 1 and {app_config.feed_max_page_size}"
            )

        friend_ids: Set[int] = set()
        following_ids: Set[int] = set()
        if filter != PhotoFilter.ALL:
            require_viewer(viewer_id)
        if viewer_id is not None:
            friend_ids = await self.relationships.accepted_friend_ids(viewer_id)
            following_ids = await self.relationships.following_ids(viewer_id)

        conditions = [visibility_clause(viewer_id, friend_ids)]
        if filter == PhotoFilter.MINE:
            conditions.append(Photo.owner_id == viewer_id)
        elif filter == PhotoFilter.FRIENDS:
            conditions.append(owner_clause(friend_ids))
        elif filter == PhotoFilter.FOLLOWING:
            conditions.append(owner_clause(following_ids))
        where = and_(*conditions)

        empty_audience = (
            (filter == PhotoFilter.FRIENDS and not friend_ids)
            or (filter == PhotoFilter.FOLLOWING and not following_ids)
        )
        if empty_audience:
            return self._page([], 0, page, page_size, sort, filter)

        total_result = await self.db.execute(select(func.count(Photo.id)).where(where))
        total_count = total_result.scalar_one()

        prioritized = filter == PhotoFilter.ALL and viewer_id is not None
        query = select(Photo).where(where).order_by(*SQL_ORDERINGS.get(sort, DEFAULT_ORDERING))

        hotness: Dict[int, float] = {}
        if sort in SQL_ORDERINGS and not prioritized:
            result = await self.db.execute(
                query.offset((page - 1) * page_size).limit(page_size)
            )
            selected = list(result.scalars().all())
            counts = await self.photos.comment_counts(p.id for p in selected)
        else:
            result = await self.db.execute(query)
            candidates = list(result.scalars().all())
            if sort in SQL_ORDERINGS:
                ranked = candidates
                counts = None
            else:
                counts = await self.photos.comment_counts(p.id for p in candidates)
                if sort == SortOrder.HOT:
                    hotness = self.score(candidates, counts)
                    ranked = rank_by(candidates, hotness)
                else:
                    ranked = rank_by(candidates, counts)
            if prioritized:
                ranked = prioritize(ranked, viewer_id, friend_ids | following_ids)
            selected = paginate(ranked, page, page_size)
            if counts is None:
                counts = await self.photos.comment_counts(p.id for p in selected)

        owners = await self.profiles.owner_profiles(p.owner_id for p in selected)
        summaries = [
            build_summary(photo, owners[photo.owner_id], counts.get(photo.id, 0),
                          hotness.get(photo.id) if sort == SortOrder.HOT else None)
            for photo in selected
        ]
        logger.debug(f"Feed for viewer {viewer_id}: sort={sort.value} filter={filter.value} "
                     f"page={page} returned {len(summaries)} of {total_count}")
        return self._page(summaries, total_count, page, page_size, sort, filter)

    def score(self, photos: Iterable[Photo], comment_counts: Dict[int, int]) -> Dict[int, float]:
        now = datetime.now(timezone.utc)
        return {
            photo.id: self.scorer.score(
                EngagementSnapshot.from_photo(photo, comment_counts.get(photo.id, 0), now)
            )
            for photo in photos
        }

    @staticmethod
    def _page(summaries: List[PhotoSummary], total_count: int, page: int, page_size: int,
              sort: SortOrder, filter: PhotoFilter) -> FeedPage:
        total_pages = math.ceil(total_count / page_size) if total_count else 0
        return FeedPage(
            photos=summaries,
            total_count=total_count,
            page=page,
            page_size=page_size,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_previous=page > 1,
            sort=sort,
            filter=filter,
        )
