# itasks/api/v1/schemas/notifications.py
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, UUID4

from itasks.db.models import NotificationType


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID4
    type: NotificationType
    title: str
    message: str
    task_id: Optional[UUID4] = None
    is_read: bool
    created_at: datetime

    @classmethod
    def from_model(cls, notification):
        return cls(
            id=notification.uuid,
            type=notification.type,
            title=notification.title,
            message=notification.message,
            task_id=notification.task_uuid,
            is_read=notification.is_read,
            created_at=notification.created_at,
        )


class NotificationSelection(BaseModel):
    ids: List[UUID4] = Field(..., min_length=1)


class UnreadCount(BaseModel):
    unread: int


class MarkResult(BaseModel):
    updated: int
