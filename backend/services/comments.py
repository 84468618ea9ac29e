"""
Threaded photo comments.

Comments form a forest per photo. Deleting a comment leaves its replies in
place; when listing, a reply whose parent is gone is shown as a root and
flagged with ``parent_deleted``. Nesting is only capped when rendering the
tree: replies below ``max_depth`` are lifted onto the deepest allowed level.
"""
from collections import defaultdict
from typing import Dict, Iterable, List, Optional
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from dao.photo_dao import PhotoDAO
from dao.profile_dao import ProfileDAO
from models.notification import NotificationType
from models.photo import PhotoComment
from schemas.engagement import MAX_COMMENT_LENGTH, CommentNode, CommentThread
from schemas.photo import OwnerProfile
from services.config import app_config
from services.errors import (
    InputValidationError, NotAuthorizedError, NotFoundError, require_viewer, translate_store_errors
)
from services.notifications import NotificationService
from services.realtime import ChangeBroadcaster
from services.security import SecurityUtils

logger = logging.getLogger(__name__)

def build_thread(comments: List[PhotoComment], profiles: Dict[int, OwnerProfile],
                 max_depth: int) -> List[CommentNode]:
    """Arrange comments (oldest first) into nodes no deeper than ``max_depth`` levels."""
    by_id = {c.id: c for c in comments}
    children = defaultdict(list)
    roots = []
    for comment in comments:
        if comment.parent_id is not None and comment.parent_id in by_id:
            children[comment.parent_id].append(comment)
        else:
            roots.append(comment)

    def place(comment: PhotoComment, depth: int, container: List[CommentNode]):
        node = CommentNode(
            id=comment.id,
            photo_id=comment.photo_id,
            user_id=comment.user_id,
            parent_id=comment.parent_id,
            content=comment.content,
            created_at=comment.created_at,
            author=profiles[comment.user_id],
            depth=depth,
            parent_deleted=comment.parent_id is not None and comment.parent_id not in by_id,
        )
        container.append(node)
        for child in children[comment.id]:
            if depth + 1 < max_depth:
                place(child, depth + 1, node.replies)
            else:
                place(child, depth, container)

    forest: List[CommentNode] = []
    for root in roots:
        place(root, 0, forest)
    return forest

class CommentService:
    def __init__(self, db: AsyncSession, broadcaster: Optional[ChangeBroadcaster] = None):
        self.db = db
        self.photos = PhotoDAO(db)
        self.profiles = ProfileDAO(db)
        self.notifications = NotificationService(db, broadcaster)

    @translate_store_errors
    async def add_comment(self, viewer_id: Optional[int], photo_id: int, content: str,
                          parent_id: Optional[int] = None) -> CommentNode:
        viewer_id = require_viewer(viewer_id)
        content = (content or "").strip()
        if not content:
            raise InputValidationError("Comment cannot be empty")
        if len(content) > MAX_COMMENT_LENGTH:
            raise InputValidationError(f"Comment cannot exceed {MAX_COMMENT_LENGTH} characters")

        photo = await self.photos.get_visible(photo_id, viewer_id)
        if photo is None:
            raise NotFoundError("Photo not found")
        owner_id, title = photo.owner_id, photo.title

        if parent_id is not None:
            parent = await self.db.get(PhotoComment, parent_id)
            if parent is None:
                raise NotFoundError("Parent comment not found")
            if parent.photo_id != photo_id:
                raise InputValidationError("Parent comment belongs to a different photo")

        comment = PhotoComment(photo_id=photo_id, user_id=viewer_id, content=content,
                               parent_id=parent_id)
        self.db.add(comment)
        await self.db.flush()

        profiles = await self.profiles.owner_profiles([viewer_id])
        author = profiles[viewer_id]
        notified = self.notifications.stage(
            recipient_id=owner_id,
            type=NotificationType.COMMENT,
            related_id=photo_id,
            title="New comment",
            message=f'{author.display_name or "Someone"} commented on your photo "{title}"',
            actor_id=viewer_id,
        )
        await self.db.commit()
        await self.db.refresh(comment)
        if notified is not None:
            self.notifications.announce([owner_id], NotificationType.COMMENT.value)

        logger.info(f"Comment {comment.id} added to photo {photo_id} by user {viewer_id}")
        return CommentNode(
            id=comment.id,
            photo_id=comment.photo_id,
            user_id=comment.user_id,
            parent_id=comment.parent_id,
            content=comment.content,
            created_at=comment.created_at,
            author=author,
        )

    @translate_store_errors
    async def delete_comment(self, viewer_id: Optional[int], comment_id: int):
        """Delete a comment written by the viewer. Replies stay."""
        viewer_id = require_viewer(viewer_id)
        comment = await self.db.get(PhotoComment, comment_id)
        if comment is None:
            raise NotFoundError("Comment not found")
        if comment.user_id != viewer_id:
            SecurityUtils.log_security_event(
                "comment_delete_denied",
                {"comment_id": comment_id, "author_id": comment.user_id},
                user_id=viewer_id
            )
            raise NotAuthorizedError("You can only delete your own comments")

        await self.db.delete(comment)
        await self.db.commit()
        logger.info(f"Comment {comment_id} deleted by user {viewer_id}")

    @translate_store_errors
    async def list_comments(self, viewer_id: Optional[int], photo_id: int,
                            max_depth: Optional[int] = None) -> CommentThread:
        if max_depth is None:
            max_depth = app_config.comment_max_depth
        if max_depth < 1:
            raise InputValidationError("max_depth must be at least 1")
        if await self.photos.get_visible(photo_id, viewer_id) is None:
            raise NotFoundError("Photo not found")

        result = await self.db.execute(
            select(PhotoComment)
            .where(PhotoComment.photo_id == photo_id)
            .order_by(PhotoComment.created_at.asc(), PhotoComment.id.asc())
        )
        comments = list(result.scalars().all())
        profiles = await self.profiles.owner_profiles(c.user_id for c in comments)
        return CommentThread(
            photo_id=photo_id,
            total_count=len(comments),
            comments=build_thread(comments, profiles, max_depth),
        )

    @translate_store_errors
    async def count_comments(self, photo_ids: Iterable[int]) -> Dict[int, int]:
        return await self.photos.comment_counts(photo_ids)
