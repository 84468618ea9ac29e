from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime

from models.notification import NotificationType

class NotificationOut(BaseModel):
    id: int
    recipient_id: int
    actor_id: Optional[int] = None
    type: NotificationType
    related_id: Optional[int] = None
    title: str
    message: Optional[str] = None
    is_read: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class MarkReadRequest(BaseModel):
    ids: List[int] = Field(..., min_length=1, max_length=500)

class UnreadCount(BaseModel):
    unread: int

class MarkReadResult(BaseModel):
    updated: int
