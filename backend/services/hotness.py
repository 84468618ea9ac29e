"""
Hotness scoring strategies for the "hot" feed ordering.

A scorer is a pure function of a photo's engagement counters and age. The
feed service only ever calls ``scorer.score(snapshot)``; a different ranking
is introduced by adding a ``HotnessScorer`` subclass and selecting it with
``HOTNESS_SCORER``.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional
import logging

from services.config import app_config

logger = logging.getLogger(__name__)

@dataclass(frozen=True)
class EngagementSnapshot:
    likes_count: int = 0
    views_count: int = 0
    comments_count: int = 0
    age_hours: float = 0.0

    @classmethod
    def from_photo(cls, photo, comments_count: int, now: Optional[datetime] = None) -> "EngagementSnapshot":
        now = now or datetime.now(timezone.utc)
        created_at = photo.created_at or now
        if created_at.tzinfo is None:
            # SQLite hands back naive timestamps
            created_at = created_at.replace(tzinfo=timezone.utc)
        age = (now - created_at).total_seconds() / 3600
        return cls(
            likes_count=photo.likes_count or 0,
            views_count=photo.views_count or 0,
            comments_count=comments_count,
            age_hours=max(age, 0.0),
        )

class HotnessScorer(ABC):
    """Abstract base class for hotness strategies"""

    def __init__(self, likes_weight: float, views_weight: float, comments_weight: float):
        for name, weight in (("likes_weight", likes_weight),
                             ("views_weight", views_weight),
                             ("comments_weight", comments_weight)):
            if weight < 0:
                raise ValueError(f"{name} must be non-negative")
        self.likes_weight = likes_weight
        self.views_weight = views_weight
        self.comments_weight = comments_weight

    def engagement(self, snapshot: EngagementSnapshot) -> float:
        return (
            self.likes_weight * snapshot.likes_count
            + self.views_weight * snapshot.views_count
            + self.comments_weight * snapshot.comments_count
        )

    @abstractmethod
    def score(self, snapshot: EngagementSnapshot) -> float:
        pass

class LinearHotnessScorer(HotnessScorer):
    """Weighted sum of counters, ignoring age."""

    def __init__(self, likes_weight: float = 2.0, views_weight: float = 0.1,
                 comments_weight: float = 0.0):
        super().__init__(likes_weight, views_weight, comments_weight)

    def score(self, snapshot: EngagementSnapshot) -> float:
        return self.engagement(snapshot)

class DecayingHotnessScorer(HotnessScorer):
    """
    Weighted engagement divided by ``(age_hours + offset_hours) ** gravity``.

    Higher gravity lets older photos sink faster. The offset keeps brand new
    photos from dividing by zero.
    """

    def __init__(self, likes_weight: float = 2.0, views_weight: float = 0.1,
                 comments_weight: float = 1.0, gravity: float = 1.5,
                 offset_hours: float = 2.0):
        super().__init__(likes_weight, views_weight, comments_weight)
        if gravity < 0:
            raise ValueError("gravity must be non-negative")
        if offset_hours <= 0:
            raise ValueError("offset_hours must be positive")
        self.gravity = gravity
        self.offset_hours = offset_hours

    def score(self, snapshot: EngagementSnapshot) -> float:
        age = max(snapshot.age_hours, 0.0)
        return self.engagement(snapshot) / ((age + self.offset_hours) ** self.gravity)

def get_hotness_scorer() -> HotnessScorer:
    """Scorer selected by configuration."""
    if app_config.hotness_scorer == "linear":
        return LinearHotnessScorer()
    return DecayingHotnessScorer(gravity=app_config.hotness_gravity)
