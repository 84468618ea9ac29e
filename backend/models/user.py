from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.sql import func
from services.db import Base

class User(Base):
    """Authenticated identity. Everything social hangs off ``id``."""
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', active={self.is_active})>"
