"""
Schemas for likes, ratings and comments.
"""
from pydantic import BaseModel, Field, field_validator
from typing import List, Optional
from datetime import datetime

from schemas.photo import OwnerProfile

MAX_COMMENT_LENGTH = 1000

class LikeState(BaseModel):
    photo_id: int
    liked: bool
    likes_count: int

class RatingInput(BaseModel):
    """Three sub-scores in [0, 10]. The average is always computed by the server."""
    composition_score: float = Field(..., ge=0, le=10)
    storytelling_score: float = Field(..., ge=0, le=10)
    technique_score: float = Field(..., ge=0, le=10)

class RatingOut(BaseModel):
    id: int
    photo_id: int
    user_id: int
    composition_score: float
    storytelling_score: float
    technique_score: float
    average_score: float
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    profile: Optional[OwnerProfile] = None

    class Config:
        from_attributes = True

class RatingStats(BaseModel):
    average_composition: float = 0.0
    average_storytelling: float = 0.0
    average_technique: float = 0.0
    overall_average: float = 0.0
    total_ratings: int = 0

class RatingSummary(BaseModel):
    ratings: List[RatingOut]
    user_rating: Optional[RatingOut] = None
    stats: RatingStats

class CommentCreate(BaseModel):
    content: str = Field(..., max_length=MAX_COMMENT_LENGTH)
    parent_id: Optional[int] = Field(None, gt=0)

    @field_validator('content')
    def validate_content(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Comment cannot be empty")
        return v

class CommentNode(BaseModel):
    id: int
    photo_id: int
    user_id: int
    parent_id: Optional[int] = None
    content: str
    created_at: Optional[datetime] = None
    author: OwnerProfile
    depth: int = 0
    parent_deleted: bool = False
    replies: List["CommentNode"] = []

class CommentThread(BaseModel):
    photo_id: int
    total_count: int
    comments: List[CommentNode]

CommentNode.model_rebuild()
