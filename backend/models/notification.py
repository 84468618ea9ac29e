from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Enum as SQLEnum, Index
from sqlalchemy.sql import func
from enum import Enum
from services.db import Base

class NotificationType(str, Enum):
    COMMENT = "comment"
    LIKE = "like"
    FRIEND_REQUEST = "friend_request"
    FRIEND_POST = "friend_post"

class Notification(Base):
    """
    Derived event for a recipient. ``related_id`` is a photo id for
    comment/like/friend_post and a friend request id for friend_request.
    """
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    recipient_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    actor_id = Column(Integer, ForeignKey('users.id'), nullable=True)
    type = Column(
        SQLEnum(NotificationType, name="notification_type",
                values_callable=lambda e: [m.value for m in e]),
        nullable=False
    )
    related_id = Column(Integer, nullable=True)
    title = Column(String(200), nullable=False)
    message = Column(String(500), nullable=True)
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index('idx_notification_recipient_read', 'recipient_id', 'is_read'),
    )

    def __repr__(self):
        return f"<Notification(id={self.id}, recipient_id={self.recipient_id}, type={self.type})>"
