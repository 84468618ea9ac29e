from typing import List, Optional, Set
from sqlalchemy import and_, or_, delete
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession
from models.social import Follow, FriendRequest, FriendRequestStatus, Friendship, FriendshipStatus

class RelationshipDAO:
    """Edge lookups shared by the relationship service and the feed."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def accepted_friend_ids(self, user_id: int) -> Set[int]:
        # Either direction counts, so a half-written pair still exposes the other side
        result = await self.db.execute(
            select(Friendship.user_id, Friendship.friend_id).where(
                and_(
                    Friendship.status == FriendshipStatus.ACCEPTED,
                    or_(Friendship.user_id == user_id, Friendship.friend_id == user_id),
                )
            )
        )
        return {
            row.friend_id if row.user_id == user_id else row.user_id
            for row in result
        }

    async def following_ids(self, user_id: int) -> Set[int]:
        result = await self.db.execute(
            select(Follow.following_id).where(Follow.follower_id == user_id)
        )
        return set(result.scalars().all())

    async def are_friends(self, a: int, b: int) -> bool:
        result = await self.db.execute(
            select(Friendship.id).where(
                and_(
                    Friendship.status == FriendshipStatus.ACCEPTED,
                    or_(
                        and_(Friendship.user_id == a, Friendship.friend_id == b),
                        and_(Friendship.user_id == b, Friendship.friend_id == a),
                    ),
                )
            ).limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def friendship_edges(self, a: int, b: int) -> List[Friendship]:
        result = await self.db.execute(
            select(Friendship).where(
                or_(
                    and_(Friendship.user_id == a, Friendship.friend_id == b),
                    and_(Friendship.user_id == b, Friendship.friend_id == a),
                )
            )
        )
        return list(result.scalars().all())

    async def delete_friendship_edges(self, a: int, b: int) -> int:
        result = await self.db.execute(
            delete(Friendship).where(
                or_(
                    and_(Friendship.user_id == a, Friendship.friend_id == b),
                    and_(Friendship.user_id == b, Friendship.friend_id == a),
                )
            )
        )
        return result.rowcount

    async def pending_request(self, sender_id: int, receiver_id: int) -> Optional[FriendRequest]:
        result = await self.db.execute(
            select(FriendRequest).where(
                and_(
                    FriendRequest.sender_id == sender_id,
                    FriendRequest.receiver_id == receiver_id,
                    FriendRequest.status == FriendRequestStatus.PENDING,
                )
            ).order_by(FriendRequest.id.desc()).limit(1)
        )
        return result.scalars().first()

    async def pending_requests_for(self, user_id: int) -> List[FriendRequest]:
        result = await self.db.execute(
            select(FriendRequest).where(
                and_(
                    FriendRequest.status == FriendRequestStatus.PENDING,
                    or_(FriendRequest.sender_id == user_id, FriendRequest.receiver_id == user_id),
                )
            ).order_by(FriendRequest.created_at.desc(), FriendRequest.id.desc())
        )
        return list(result.scalars().all())

    async def get_follow(self, follower_id: int, following_id: int) -> Optional[Follow]:
        result = await self.db.execute(
            select(Follow).where(
                and_(Follow.follower_id == follower_id, Follow.following_id == following_id)
            )
        )
        return result.scalars().first()
