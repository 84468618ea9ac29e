from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from sqlalchemy.sql import func
from services.db import Base

class Profile(Base):
    """
    Public face of a user, created lazily after signup.
    ``display_name`` is unique and cannot change once set.
    """
    __tablename__ = "profiles"
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), primary_key=True)
    display_name = Column(String(20), unique=True, nullable=True, index=True)
    avatar_url = Column(String(500), nullable=True)
    bio = Column(Text, nullable=True)
    favorite_camera = Column(String(100), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<Profile(user_id={self.user_id}, display_name='{self.display_name}')>"
