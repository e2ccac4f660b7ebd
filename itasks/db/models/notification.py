# itasks/db/models/notification.py
from sqlalchemy import Column, Integer, String, Text, ForeignKey, Enum, Boolean, DateTime, Uuid, Index, func

from itasks.db.models.base import Base, UUIDMixin
from itasks.db.models.enums import NotificationType


class Notification(Base, UUIDMixin):
    """In-app notification; keeps the task UUID loosely so it survives task deletion"""
    __tablename__ = "notifications"

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    type = Column(Enum(NotificationType), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    task_uuid = Column(Uuid(as_uuid=True), nullable=True)
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index('idx_notification_user_read', 'user_id', 'is_read'),
    )

    def __repr__(self):
        return f"<Notification user_id={self.user_id} type={self.type}>"
