"""
Friendship and follow graph.

Friend requests move ``pending -> accepted | rejected``. At most one pending
request or accepted friendship exists per unordered pair of users; an
accepted friendship is stored as two mirrored edges. Follows are independent
of friendship and need no approval.
"""
from typing import List, Optional, Set
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from dao.profile_dao import ProfileDAO
from dao.relationship_dao import RelationshipDAO
from dao.user_dao import UserDAO
from models.notification import NotificationType
from models.photo import Photo, PhotoRating
from models.social import Follow, FriendRequest, FriendRequestStatus, Friendship, FriendshipStatus
from schemas.social import (
    FollowOut, FriendOut, FriendRequestList, FriendRequestOut, FriendStatus, RequestAction, RespondResult
)
from services.errors import (
    ConflictError, InputValidationError, NotAuthorizedError, NotFoundError,
    require_viewer, translate_store_errors
)
from services.notifications import NotificationService
from services.realtime import (
    ChangeBroadcaster, TOPIC_FOLLOWS, TOPIC_FRIEND_REQUESTS, TOPIC_FRIENDS, get_broadcaster
)
from services.security import SecurityUtils

logger = logging.getLogger(__name__)

class RelationshipService:
    def __init__(self, db: AsyncSession, broadcaster: Optional[ChangeBroadcaster] = None):
        self.db = db
        self.dao = RelationshipDAO(db)
        self.profiles = ProfileDAO(db)
        self.broadcaster = broadcaster or get_broadcaster()
        self.notifications = NotificationService(db, self.broadcaster)

    # ==========================================
    # FRIEND REQUESTS
    # ==========================================

    @translate_store_errors
    async def send_friend_request(self, sender_id: Optional[int], receiver_id: int) -> FriendRequest:
        """
        Create a pending request and notify the receiver.

        Raises:
            InputValidationError: sender and receiver are the same user
            NotFoundError: receiver does not exist
            ConflictError: already friends, or a request is pending in either direction
        """
        sender_id = require_viewer(sender_id)
        if sender_id == receiver_id:
            raise InputValidationError("You cannot send a friend request to yourself")
        if not await UserDAO(self.db).exists(receiver_id):
            raise NotFoundError("User not found")

        if await self.dao.are_friends(sender_id, receiver_id):
            raise ConflictError("You are already friends", code="already_friends")
        if await self.dao.pending_request(sender_id, receiver_id):
            raise ConflictError("Friend request already sent", code="request_pending")
        if await self.dao.pending_request(receiver_id, sender_id):
            raise ConflictError("This user has already sent you a friend request",
                                code="request_received")

        request = FriendRequest(
            sender_id=sender_id,
            receiver_id=receiver_id,
            status=FriendRequestStatus.PENDING,
        )
        self.db.add(request)
        try:
            await self.db.flush()
        except IntegrityError as e:
            # the other side sent theirs between our check and insert
            await self.db.rollback()
            raise ConflictError("A friend request between you is already pending",
                                code="request_pending") from e

        sender_profile = await self.profiles.get(sender_id)
        sender_name = sender_profile.display_name if sender_profile and sender_profile.display_name else "Someone"
        self.notifications.stage(
            recipient_id=receiver_id,
            type=NotificationType.FRIEND_REQUEST,
            related_id=request.id,
            title="New friend request",
            message=f"{sender_name} wants to be your friend",
            actor_id=sender_id,
        )
        await self.db.commit()
        await self.db.refresh(request)

        logger.info(f"Friend request {request.id} sent from {sender_id} to {receiver_id}")
        self.broadcaster.publish([sender_id, receiver_id], TOPIC_FRIEND_REQUESTS, "request_sent")
        self.notifications.announce([receiver_id], NotificationType.FRIEND_REQUEST.value)
        return request

    @translate_store_errors
    async def respond_to_request(self, viewer_id: Optional[int], request_id: int,
                                 action: RequestAction) -> RespondResult:
        """
        Accept or reject a pending request addressed to the viewer.
        Responding to an already resolved request changes nothing and reports it.
        """
        viewer_id = require_viewer(viewer_id)
        request = await self.db.get(FriendRequest, request_id)
        if request is None:
            raise NotFoundError("Friend request not found")

        if request.receiver_id != viewer_id:
            SecurityUtils.log_security_event(
                "friend_request_response_denied",
                {"request_id": request_id, "receiver_id": request.receiver_id},
                user_id=viewer_id
            )
            raise NotAuthorizedError("Only the receiver can respond to this request")

        if request.status != FriendRequestStatus.PENDING:
            return RespondResult(request=await self._request_out(request), already_resolved=True)

        if action == RequestAction.ACCEPT:
            existing = {
                (edge.user_id, edge.friend_id): edge
                for edge in await self.dao.friendship_edges(request.sender_id, request.receiver_id)
            }
            for user_id, friend_id in ((request.receiver_id, request.sender_id),
                                       (request.sender_id, request.receiver_id)):
                edge = existing.get((user_id, friend_id))
                if edge is None:
                    self.db.add(Friendship(user_id=user_id, friend_id=friend_id,
                                           status=FriendshipStatus.ACCEPTED))
                else:
                    edge.status = FriendshipStatus.ACCEPTED
            request.status = FriendRequestStatus.ACCEPTED
        else:
            request.status = FriendRequestStatus.REJECTED

        await self.db.commit()
        logger.info(f"Friend request {request.id} {request.status.value} by {viewer_id}")

        affected = [request.sender_id, request.receiver_id]
        self.broadcaster.publish(affected, TOPIC_FRIEND_REQUESTS, f"request_{request.status.value}")
        if request.status == FriendRequestStatus.ACCEPTED:
            self.broadcaster.publish(affected, TOPIC_FRIENDS, "friend_added")
        return RespondResult(request=await self._request_out(request), already_resolved=False)

    @translate_store_errors
    async def list_requests(self, viewer_id: Optional[int]) -> FriendRequestList:
        """Pending requests the viewer received and sent."""
        viewer_id = require_viewer(viewer_id)
        requests = await self.dao.pending_requests_for(viewer_id)
        profiles = await self.profiles.owner_profiles(
            {r.sender_id for r in requests} | {r.receiver_id for r in requests}
        )
        incoming, outgoing = [], []
        for request in requests:
            out = self._request_out_with(request, profiles)
            (incoming if request.receiver_id == viewer_id else outgoing).append(out)
        return FriendRequestList(incoming=incoming, outgoing=outgoing)

    # ==========================================
    # FRIENDS
    # ==========================================

    @translate_store_errors
    async def remove_friend(self, viewer_id: Optional[int], friend_id: int) -> bool:
        """Delete both friendship edges. Follow edges are left alone."""
        viewer_id = require_viewer(viewer_id)
        removed = await self.dao.delete_friendship_edges(viewer_id, friend_id)
        await self.db.commit()
        if removed:
            logger.info(f"Friendship between {viewer_id} and {friend_id} removed")
            self.broadcaster.publish([viewer_id, friend_id], TOPIC_FRIENDS, "friend_removed")
        return removed > 0

    @translate_store_errors
    async def list_friends(self, viewer_id: Optional[int]) -> List[FriendOut]:
        viewer_id = require_viewer(viewer_id)
        result = await self.db.execute(
            select(Friendship).where(
                Friendship.user_id == viewer_id,
                Friendship.status == FriendshipStatus.ACCEPTED,
            ).order_by(Friendship.created_at.desc(), Friendship.id.desc())
        )
        edges = list(result.scalars().all())
        friend_ids = await self.dao.accepted_friend_ids(viewer_id)
        since = {edge.friend_id: edge.created_at for edge in edges}
        ordered = [edge.friend_id for edge in edges] + sorted(friend_ids - since.keys())

        profiles = await self.profiles.owner_profiles(friend_ids)
        scores = await self.photo_scores(friend_ids)
        return [
            FriendOut(
                friend_id=friend_id,
                since=since.get(friend_id),
                profile=profiles[friend_id],
                photo_score=scores.get(friend_id, 0.0),
            )
            for friend_id in ordered
        ]

    async def photo_scores(self, user_ids: Set[int]) -> dict:
        """Mean rating average over each user's photos."""
        if not user_ids:
            return {}
        result = await self.db.execute(
            select(Photo.owner_id, func.avg(PhotoRating.average_score))
            .join(PhotoRating, PhotoRating.photo_id == Photo.id)
            .where(Photo.owner_id.in_(user_ids))
            .group_by(Photo.owner_id)
        )
        return {owner_id: round(float(score), 2) for owner_id, score in result.all() if score is not None}

    @translate_store_errors
    async def friend_status(self, viewer_id: Optional[int], subject_id: int) -> FriendStatus:
        """Relation of ``subject_id`` to the viewer: self > friend > pending > received > none."""
        if viewer_id is None:
            return FriendStatus.NONE
        if viewer_id == subject_id:
            return FriendStatus.SELF
        if await self.dao.are_friends(viewer_id, subject_id):
            return FriendStatus.FRIEND
        if await self.dao.pending_request(viewer_id, subject_id):
            return FriendStatus.PENDING
        if await self.dao.pending_request(subject_id, viewer_id):
            return FriendStatus.RECEIVED
        return FriendStatus.NONE

    # ==========================================
    # FOLLOWS
    # ==========================================

    @translate_store_errors
    async def follow_user(self, follower_id: Optional[int], target_id: int) -> Follow:
        follower_id = require_viewer(follower_id)
        if follower_id == target_id:
            raise InputValidationError("You cannot follow yourself")
        if not await UserDAO(self.db).exists(target_id):
            raise NotFoundError("User not found")
        if await self.dao.get_follow(follower_id, target_id):
            raise ConflictError("You are already following this user", code="already_following")

        follow = Follow(follower_id=follower_id, following_id=target_id)
        self.db.add(follow)
        await self.db.commit()
        self.broadcaster.publish([follower_id, target_id], TOPIC_FOLLOWS, "followed")
        return follow

    @translate_store_errors
    async def unfollow_user(self, follower_id: Optional[int], target_id: int) -> bool:
        follower_id = require_viewer(follower_id)
        follow = await self.dao.get_follow(follower_id, target_id)
        if follow is None:
            return False
        await self.db.delete(follow)
        await self.db.commit()
        self.broadcaster.publish([follower_id, target_id], TOPIC_FOLLOWS, "unfollowed")
        return True

    @translate_store_errors
    async def is_following(self, follower_id: Optional[int], target_id: int) -> bool:
        if follower_id is None:
            return False
        return await self.dao.get_follow(follower_id, target_id) is not None

    @translate_store_errors
    async def list_following(self, viewer_id: Optional[int]) -> List[FollowOut]:
        viewer_id = require_viewer(viewer_id)
        return await self._follows(Follow.follower_id == viewer_id, profile_of="following")

    @translate_store_errors
    async def list_followers(self, viewer_id: Optional[int]) -> List[FollowOut]:
        viewer_id = require_viewer(viewer_id)
        return await self._follows(Follow.following_id == viewer_id, profile_of="follower")

    async def _follows(self, condition, profile_of: str) -> List[FollowOut]:
        result = await self.db.execute(
            select(Follow).where(condition).order_by(Follow.created_at.desc(), Follow.id.desc())
        )
        follows = list(result.scalars().all())
        ids = {getattr(f, f"{profile_of}_id") for f in follows}
        profiles = await self.profiles.owner_profiles(ids)
        return [
            FollowOut(
                follower_id=f.follower_id,
                following_id=f.following_id,
                created_at=f.created_at,
                profile=profiles[getattr(f, f"{profile_of}_id")],
            )
            for f in follows
        ]

    # ==========================================
    # HELPERS
    # ==========================================

    async def _request_out(self, request: FriendRequest) -> FriendRequestOut:
        profiles = await self.profiles.owner_profiles({request.sender_id, request.receiver_id})
        return self._request_out_with(request, profiles)

    @staticmethod
    def _request_out_with(request: FriendRequest, profiles: dict) -> FriendRequestOut:
        return FriendRequestOut(
            id=request.id,
            sender_id=request.sender_id,
            receiver_id=request.receiver_id,
            status=request.status,
            created_at=request.created_at,
            sender_profile=profiles.get(request.sender_id),
            receiver_profile=profiles.get(request.receiver_id),
        )
