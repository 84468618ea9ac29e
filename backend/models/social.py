"""
Social graph models: friend requests, mirrored friendship edges and follows.
"""
from sqlalchemy import Column, Integer, DateTime, ForeignKey, Enum as SQLEnum, Index, UniqueConstraint, CheckConstraint, case, text
from sqlalchemy.sql import func
from enum import Enum
from services.db import Base

class FriendRequestStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"

class FriendshipStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    BLOCKED = "blocked"

def _enum_values(enum_cls):
    return [member.value for member in enum_cls]

class FriendRequest(Base):
    """
    A request from ``sender_id`` to ``receiver_id``.
    ``accepted`` and ``rejected`` are terminal; a fresh request is a new row.
    """
    __tablename__ = "friend_requests"

    id = Column(Integer, primary_key=True, index=True)
    sender_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    receiver_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    status = Column(
        SQLEnum(FriendRequestStatus, name="friend_request_status", values_callable=_enum_values),
        default=FriendRequestStatus.PENDING, nullable=False, index=True
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        Index('idx_friend_request_pair', 'sender_id', 'receiver_id'),
        CheckConstraint('sender_id != receiver_id', name='no_self_friend_request'),
    )

    def __repr__(self):
        return f"<FriendRequest(id={self.id}, {self.sender_id}->{self.receiver_id}, status={self.status})>"

# At most one pending request per unordered pair, whichever side sent it
_pair = FriendRequest.__table__.c
_pending_only = text("status = 'pending'")
Index(
    'uq_pending_friend_request_pair',
    case((_pair.sender_id < _pair.receiver_id, _pair.sender_id), else_=_pair.receiver_id),
    case((_pair.sender_id < _pair.receiver_id, _pair.receiver_id), else_=_pair.sender_id),
    unique=True,
    postgresql_where=_pending_only,
    sqlite_where=_pending_only,
)

class Friendship(Base):
    """
    Directed edge of a symmetric friendship. An accepted friendship is stored
    as two rows, (a, b) and (b, a).
    """
    __tablename__ = "friendships"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    friend_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    status = Column(
        SQLEnum(FriendshipStatus, name="friendship_status", values_callable=_enum_values),
        default=FriendshipStatus.ACCEPTED, nullable=False
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint('user_id', 'friend_id', name='unique_friendship'),
        CheckConstraint('user_id != friend_id', name='no_self_friendship'),
    )

    def __repr__(self):
        return f"<Friendship(user_id={self.user_id}, friend_id={self.friend_id}, status={self.status})>"

class Follow(Base):
    """One-directional, approval-free edge used for feed prioritization only."""
    __tablename__ = "follows"

    id = Column(Integer, primary_key=True, index=True)
    follower_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    following_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint('follower_id', 'following_id', name='unique_follow'),
        CheckConstraint('follower_id != following_id', name='no_self_follow'),
    )

    def __repr__(self):
        return f"<Follow(follower_id={self.follower_id}, following_id={self.following_id})>"
