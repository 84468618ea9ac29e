"""
Photo and engagement models: photos, likes, ratings and threaded comments.
Engagement rows reference photos by id; nothing is embedded in the photo row.
"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text, Float, Enum as SQLEnum, Index
from sqlalchemy.sql import func
from sqlalchemy.types import JSON
from enum import Enum
from services.db import Base

class Visibility(str, Enum):
    """Who may see a photo in feeds and detail views."""
    PUBLIC = "public"
    FRIENDS = "friends"
    PRIVATE = "private"

def _enum_values(enum_cls):
    return [member.value for member in enum_cls]

class Photo(Base):
    """
    A post of one or more images with exposure metadata and engagement counters.
    ``likes_count`` and ``views_count`` are only ever changed with in-database
    increments; comment counts are never stored and always computed live.
    """
    __tablename__ = "photos"

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)

    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)

    # Parallel lists: public URL and object store path per image
    image_urls = Column(JSON, nullable=False, default=list)
    image_paths = Column(JSON, nullable=False, default=list)

    camera_equipment = Column(String(200), nullable=True)
    exposure_settings = Column(JSON, nullable=True)  # iso, aperture, shutter_speed, focal_length, make, model
    dominant_colors = Column(JSON, nullable=True)

    visibility = Column(
        SQLEnum(Visibility, name="photo_visibility", values_callable=_enum_values),
        default=Visibility.PUBLIC, nullable=False, index=True
    )

    likes_count = Column(Integer, default=0, nullable=False)
    views_count = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<Photo(id={self.id}, title='{self.title}', owner_id={self.owner_id})>"

    @property
    def cover_url(self):
        return self.image_urls[0] if self.image_urls else None

class PhotoLike(Base):
    """Presence of a row means the user likes the photo."""
    __tablename__ = "photo_likes"

    id = Column(Integer, primary_key=True, index=True)
    photo_id = Column(Integer, ForeignKey('photos.id', ondelete='CASCADE'), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index('idx_unique_photo_user_like', 'photo_id', 'user_id', unique=True),
    )

    def __repr__(self):
        return f"<PhotoLike(photo_id={self.photo_id}, user_id={self.user_id})>"

class PhotoRating(Base):
    """One mutable rating per user per photo; ``average_score`` is written by the server."""
    __tablename__ = "photo_ratings"

    id = Column(Integer, primary_key=True, index=True)
    photo_id = Column(Integer, ForeignKey('photos.id', ondelete='CASCADE'), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)

    composition_score = Column(Float, nullable=False)
    storytelling_score = Column(Float, nullable=False)
    technique_score = Column(Float, nullable=False)
    average_score = Column(Float, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        Index('idx_unique_photo_user_rating', 'photo_id', 'user_id', unique=True),
    )

    def __repr__(self):
        return f"<PhotoRating(photo_id={self.photo_id}, user_id={self.user_id}, average={self.average_score})>"

class PhotoComment(Base):
    """
    Threaded comment. ``parent_id`` has no foreign key: deleting a comment
    leaves its replies in place, pointing at a missing parent.
    """
    __tablename__ = "photo_comments"

    id = Column(Integer, primary_key=True, index=True)
    photo_id = Column(Integer, ForeignKey('photos.id', ondelete='CASCADE'), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    content = Column(Text, nullable=False)
    parent_id = Column(Integer, nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<PhotoComment(id={self.id}, photo_id={self.photo_id}, user_id={self.user_id})>"
