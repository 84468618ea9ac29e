"""
Friends, friend requests and follows.
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from services.db import get_db
from services.auth import get_optional_viewer
from services.relationships import RelationshipService
from services.realtime import ChangeBroadcaster, get_broadcaster
from schemas.social import (
    FollowOut, FollowState, FriendOut, FriendRequestCreate, FriendRequestList, FriendRequestOut,
    FriendRequestRespond, FriendStatusOut, RespondResult
)

router = APIRouter()

def get_relationship_service(
    db: AsyncSession = Depends(get_db),
    broadcaster: ChangeBroadcaster = Depends(get_broadcaster),
) -> RelationshipService:
    return RelationshipService(db, broadcaster)

# ==========================================
# FRIENDS
# ==========================================

@router.get("/friends", response_model=List[FriendOut])
async def list_friends(
    viewer_id: Optional[int] = Depends(get_optional_viewer),
    service: RelationshipService = Depends(get_relationship_service),
):
    return await service.list_friends(viewer_id)

@router.get("/friends/requests", response_model=FriendRequestList)
async def list_requests(
    viewer_id: Optional[int] = Depends(get_optional_viewer),
    service: RelationshipService = Depends(get_relationship_service),
):
    return await service.list_requests(viewer_id)

@router.post("/friends/requests", response_model=FriendRequestOut, status_code=status.HTTP_201_CREATED)
async def send_friend_request(
    body: FriendRequestCreate,
    viewer_id: Optional[int] = Depends(get_optional_viewer),
    service: RelationshipService = Depends(get_relationship_service),
):
    request = await service.send_friend_request(viewer_id, body.receiver_id)
    return FriendRequestOut.model_validate(request)

@router.post("/friends/requests/{request_id}/respond", response_model=RespondResult)
async def respond_to_request(
    request_id: int,
    body: FriendRequestRespond,
    viewer_id: Optional[int] = Depends(get_optional_viewer),
    service: RelationshipService = Depends(get_relationship_service),
):
    """Accept or reject. Answering an already resolved request reports ``already_resolved``."""
    return await service.respond_to_request(viewer_id, request_id, body.action)

@router.get("/friends/status/{user_id}", response_model=FriendStatusOut)
async def friend_status(
    user_id: int,
    viewer_id: Optional[int] = Depends(get_optional_viewer),
    service: RelationshipService = Depends(get_relationship_service),
):
    return FriendStatusOut(user_id=user_id, status=await service.friend_status(viewer_id, user_id))

@router.delete("/friends/{user_id}")
async def remove_friend(
    user_id: int,
    viewer_id: Optional[int] = Depends(get_optional_viewer),
    service: RelationshipService = Depends(get_relationship_service),
):
    return {"removed": await service.remove_friend(viewer_id, user_id)}

# ==========================================
# FOLLOWS
# ==========================================

@router.get("/follows/following", response_model=List[FollowOut])
async def list_following(
    viewer_id: Optional[int] = Depends(get_optional_viewer),
    service: RelationshipService = Depends(get_relationship_service),
):
    return await service.list_following(viewer_id)

@router.get("/follows/followers", response_model=List[FollowOut])
async def list_followers(
    viewer_id: Optional[int] = Depends(get_optional_viewer),
    service: RelationshipService = Depends(get_relationship_service),
):
    return await service.list_followers(viewer_id)

@router.get("/follows/{user_id}", response_model=FollowState)
async def follow_state(
    user_id: int,
    viewer_id: Optional[int] = Depends(get_optional_viewer),
    service: RelationshipService = Depends(get_relationship_service),
):
    return FollowState(user_id=user_id, following=await service.is_following(viewer_id, user_id))

@router.post("/follows/{user_id}", response_model=FollowState, status_code=status.HTTP_201_CREATED)
async def follow_user(
    user_id: int,
    viewer_id: Optional[int] = Depends(get_optional_viewer),
    service: RelationshipService = Depends(get_relationship_service),
):
    await service.follow_user(viewer_id, user_id)
    return FollowState(user_id=user_id, following=True)

@router.delete("/follows/{user_id}", response_model=FollowState)
async def unfollow_user(
    user_id: int,
    viewer_id: Optional[int] = Depends(get_optional_viewer),
    service: RelationshipService = Depends(get_relationship_service),
):
    await service.unfollow_user(viewer_id, user_id)
    return FollowState(user_id=user_id, following=False)
