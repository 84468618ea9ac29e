import pytest

from models.notification import NotificationType
from services.errors import NotAuthenticatedError
from services.notifications import NotificationService
from services.realtime import TOPIC_NOTIFICATIONS

async def emit(service, recipient, actor=None, related_id=1):
    return await service.emit(recipient, NotificationType.COMMENT, related_id,
                              title="New comment", message="hello", actor_id=actor)

class TestNotificationService:

    async def test_emit_and_list_newest_first(self, db_session, broadcaster, utils):
        a = await utils.create_user(db_session, "a@example.com")
        b = await utils.create_user(db_session, "b@example.com")
        service = NotificationService(db_session, broadcaster)

        first = await emit(service, a, actor=b, related_id=1)
        second = await emit(service, a, actor=b, related_id=2)

        listed = await service.list_notifications(a)
        assert [n.id for n in listed] == [second.id, first.id]
        assert await service.list_notifications(b) == []

    async def test_self_notification_is_skipped(self, db_session, broadcaster, utils):
        a = await utils.create_user(db_session, "a@example.com")
        service = NotificationService(db_session, broadcaster)

        assert await emit(service, a, actor=a) is None
        assert await service.unread_count(a) == 0

    async def test_emit_announces_to_recipient(self, db_session, broadcaster, utils):
        a = await utils.create_user(db_session, "a@example.com")
        b = await utils.create_user(db_session, "b@example.com")
        queue = broadcaster.subscribe(a)

        await emit(NotificationService(db_session, broadcaster), a, actor=b)

        assert queue.get_nowait() == {"topic": TOPIC_NOTIFICATIONS, "reason": "comment"}

    async def test_mark_as_read_ignores_foreign_ids(self, db_session, broadcaster, utils):
        a = await utils.create_user(db_session, "a@example.com")
        b = await utils.create_user(db_session, "b@example.com")
        service = NotificationService(db_session, broadcaster)
        mine = await emit(service, a, actor=b)
        theirs = await emit(service, b, actor=a)

        updated = await service.mark_as_read(a, [mine.id, theirs.id])

        assert updated == 1
        assert await service.unread_count(a) == 0
        assert await service.unread_count(b) == 1

    async def test_mark_all_and_unread_filter(self, db_session, broadcaster, utils):
        a = await utils.create_user(db_session, "a@example.com")
        b = await utils.create_user(db_session, "b@example.com")
        service = NotificationService(db_session, broadcaster)
        for i in range(3):
            await emit(service, a, actor=b, related_id=i)

        assert await service.unread_count(a) == 3
        assert await service.mark_all_as_read(a) == 3
        assert await service.unread_count(a) == 0
        assert await service.list_notifications(a, unread_only=True) == []
        assert len(await service.list_notifications(a)) == 3

    async def test_requires_viewer(self, db_session, broadcaster):
        service = NotificationService(db_session, broadcaster)
        with pytest.raises(NotAuthenticatedError):
            await service.unread_count(None)
