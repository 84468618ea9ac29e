import pytest
from sqlalchemy import func
from sqlalchemy.future import select

from models.notification import Notification, NotificationType
from models.photo import PhotoLike, Visibility
from services.errors import NotAuthenticatedError, NotFoundError
from services.likes import LikeService

class TestLikeToggle:

    async def test_like_then_unlike(self, db_session, broadcaster, utils):
        owner = await utils.create_user(db_session, "o@example.com")
        fan = await utils.create_user(db_session, "f@example.com", "fan")
        photo_id = await utils.create_photo(db_session, owner, "Sunset")
        service = LikeService(db_session, broadcaster)

        liked = await service.toggle_like(fan, photo_id)
        assert liked.liked is True
        assert liked.likes_count == 1

        unliked = await service.toggle_like(fan, photo_id)
        assert unliked.liked is False
        assert unliked.likes_count == 0

        rows = await db_session.execute(select(func.count(PhotoLike.id)))
        assert rows.scalar_one() == 0

    async def test_count_matches_distinct_likers(self, db_session, broadcaster, utils):
        owner = await utils.create_user(db_session, "o@example.com")
        photo_id = await utils.create_photo(db_session, owner)
        service = LikeService(db_session, broadcaster)

        for i in range(3):
            fan = await utils.create_user(db_session, f"fan{i}@example.com")
            await service.toggle_like(fan, photo_id)

        state = await service.get_like_state(owner, photo_id)
        assert state.likes_count == 3
        assert state.liked is False

    async def test_like_notifies_owner(self, db_session, broadcaster, utils):
        owner = await utils.create_user(db_session, "o@example.com")
        fan = await utils.create_user(db_session, "f@example.com", "fan")
        photo_id = await utils.create_photo(db_session, owner, "Sunset")
        inbox = broadcaster.subscribe(owner)

        await LikeService(db_session, broadcaster).toggle_like(fan, photo_id)

        result = await db_session.execute(select(Notification))
        notification = result.scalar_one()
        assert notification.recipient_id == owner
        assert notification.type == NotificationType.LIKE
        assert notification.related_id == photo_id
        assert 'fan liked your photo "Sunset"' == notification.message
        assert inbox.get_nowait()["reason"] == "like"

    async def test_own_like_is_not_notified(self, db_session, broadcaster, utils):
        owner = await utils.create_user(db_session, "o@example.com")
        photo_id = await utils.create_photo(db_session, owner)

        await LikeService(db_session, broadcaster).toggle_like(owner, photo_id)

        result = await db_session.execute(select(func.count(Notification.id)))
        assert result.scalar_one() == 0

    async def test_invisible_or_missing_photo(self, db_session, broadcaster, utils):
        owner = await utils.create_user(db_session, "o@example.com")
        other = await utils.create_user(db_session, "x@example.com")
        private_id = await utils.create_photo(db_session, owner, visibility=Visibility.PRIVATE)
        service = LikeService(db_session, broadcaster)

        with pytest.raises(NotFoundError):
            await service.toggle_like(other, private_id)
        with pytest.raises(NotFoundError):
            await service.toggle_like(other, 9999)
        with pytest.raises(NotAuthenticatedError):
            await service.toggle_like(None, private_id)
