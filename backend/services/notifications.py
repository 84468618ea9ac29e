"""
Notification emitter and reader.
"""
from typing import Iterable, List, Optional
from sqlalchemy import and_, func, update
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from models.notification import Notification, NotificationType
from services.errors import require_viewer, translate_store_errors
from services.realtime import ChangeBroadcaster, TOPIC_NOTIFICATIONS, get_broadcaster

logger = logging.getLogger(__name__)

class NotificationService:
    def __init__(self, db: AsyncSession, broadcaster: Optional[ChangeBroadcaster] = None):
        self.db = db
        self.broadcaster = broadcaster or get_broadcaster()

    def stage(self, recipient_id: int, type: NotificationType, related_id: Optional[int],
              title: str, message: Optional[str] = None,
              actor_id: Optional[int] = None) -> Optional[Notification]:
        """
        Add a notification to the current transaction without committing.
        Users are never notified about their own actions.
        """
        if actor_id is not None and actor_id == recipient_id:
            return None
        notification = Notification(
            recipient_id=recipient_id,
            actor_id=actor_id,
            type=type,
            related_id=related_id,
            title=title,
            message=message,
            is_read=False,
        )
        self.db.add(notification)
        return notification

    def announce(self, recipient_ids: Iterable[int], reason: str):
        """Tell connected recipients to re-fetch; call after the commit."""
        self.broadcaster.publish(recipient_ids, TOPIC_NOTIFICATIONS, reason)

    @translate_store_errors
    async def emit(self, recipient_id: int, type: NotificationType, related_id: Optional[int],
                   title: str, message: Optional[str] = None,
                   actor_id: Optional[int] = None) -> Optional[Notification]:
        notification = self.stage(recipient_id, type, related_id, title, message, actor_id)
        if notification is None:
            return None
        await self.db.commit()
        self.announce([recipient_id], type.value)
        return notification

    @translate_store_errors
    async def list_notifications(self, viewer_id: Optional[int], unread_only: bool = False,
                                 limit: int = 50) -> List[Notification]:
        viewer_id = require_viewer(viewer_id)
        query = select(Notification).where(Notification.recipient_id == viewer_id)
        if unread_only:
            query = query.where(Notification.is_read.is_(False))
        query = query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    @translate_store_errors
    async def unread_count(self, viewer_id: Optional[int]) -> int:
        viewer_id = require_viewer(viewer_id)
        result = await self.db.execute(
            select(func.count(Notification.id)).where(
                and_(Notification.recipient_id == viewer_id, Notification.is_read.is_(False))
            )
        )
        return result.scalar_one()

    @translate_store_errors
    async def mark_as_read(self, viewer_id: Optional[int], notification_ids: Iterable[int]) -> int:
        """Mark the viewer's own notifications as read; ids of other users are ignored."""
        viewer_id = require_viewer(viewer_id)
        ids = list(set(notification_ids))
        if not ids:
            return 0
        result = await self.db.execute(
            update(Notification)
            .where(and_(
                Notification.id.in_(ids),
                Notification.recipient_id == viewer_id,
                Notification.is_read.is_(False),
            ))
            .values(is_read=True)
            .execution_options(synchronize_session="fetch")
        )
        await self.db.commit()
        return result.rowcount

    @translate_store_errors
    async def mark_all_as_read(self, viewer_id: Optional[int]) -> int:
        viewer_id = require_viewer(viewer_id)
        result = await self.db.execute(
            update(Notification)
            .where(and_(Notification.recipient_id == viewer_id, Notification.is_read.is_(False)))
            .values(is_read=True)
            .execution_options(synchronize_session="fetch")
        )
        await self.db.commit()
        return result.rowcount
