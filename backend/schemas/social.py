"""
Schemas for friendships, friend requests and follows.
"""
from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime
from enum import Enum

from models.social import FriendRequestStatus
from schemas.photo import OwnerProfile

class FriendStatus(str, Enum):
    """Relation of a subject to the viewer, in priority order."""
    SELF = "self"
    FRIEND = "friend"
    PENDING = "pending"
    RECEIVED = "received"
    NONE = "none"

class RequestAction(str, Enum):
    ACCEPT = "accept"
    REJECT = "reject"

class FriendRequestCreate(BaseModel):
    receiver_id: int

class FriendRequestRespond(BaseModel):
    action: RequestAction

class FriendRequestOut(BaseModel):
    id: int
    sender_id: int
    receiver_id: int
    status: FriendRequestStatus
    created_at: Optional[datetime] = None
    sender_profile: Optional[OwnerProfile] = None
    receiver_profile: Optional[OwnerProfile] = None

    class Config:
        from_attributes = True

class FriendRequestList(BaseModel):
    incoming: List[FriendRequestOut]
    outgoing: List[FriendRequestOut]

class RespondResult(BaseModel):
    request: FriendRequestOut
    already_resolved: bool = False

class FriendOut(BaseModel):
    friend_id: int
    since: Optional[datetime] = None
    profile: OwnerProfile
    photo_score: float = 0.0

class FriendStatusOut(BaseModel):
    user_id: int
    status: FriendStatus

class FollowOut(BaseModel):
    follower_id: int
    following_id: int
    created_at: Optional[datetime] = None
    profile: Optional[OwnerProfile] = None

    class Config:
        from_attributes = True

class FollowState(BaseModel):
    user_id: int
    following: bool
