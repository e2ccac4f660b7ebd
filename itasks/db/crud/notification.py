# itasks/db/crud/notification.py
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy import update, func
from typing import Optional, List, Tuple, Iterable
from uuid import UUID
from loguru import logger

from itasks.core.pagination import PaginationParams, paginate_query
from itasks.db.models import Notification, NotificationType


async def create_notifications(
        db: AsyncSession,
        user_ids: Iterable[int],
        notification_type: NotificationType,
        title: str,
        message: str,
        task_uuid: Optional[UUID] = None,
) -> List[Notification]:
    """One notification per recipient, committed together"""
    try:
        notifications = [
            Notification(
                user_id=user_id,
                type=notification_type,
                title=title,
                message=message,
                task_uuid=task_uuid,
            )
            for user_id in dict.fromkeys(user_ids)
        ]
        db.add_all(notifications)
        await db.commit()
        logger.debug(f"Created {len(notifications)} {notification_type.value} notifications")
        return notifications
    except Exception as e:
        logger.error(f"Failed to create notifications: {e}")
        await db.rollback()
        raise


async def list_user_notifications(
        db: AsyncSession,
        user_id: int,
        params: PaginationParams,
        unread_only: bool = False,
) -> Tuple[List[Notification], int]:
    query = select(Notification).filter(Notification.user_id == user_id)
    if unread_only:
        query = query.filter(Notification.is_read == False)  # noqa: E712
    query = query.order_by(Notification.created_at.desc(), Notification.id.desc())
    return await paginate_query(db, query, params)


async def get_unread_count(db: AsyncSession, user_id: int) -> int:
    result = await db.execute(
        select(func.count(Notification.id)).filter(
            Notification.user_id == user_id,
            Notification.is_read == False,  # noqa: E712
        )
    )
    return result.scalar() or 0


async def set_read_state(
        db: AsyncSession,
        user_id: int,
        is_read: bool,
        notification_uuids: Optional[Iterable[UUID]] = None,
) -> int:
    """Mark the user's notifications (all, or the selected ones) read or unread"""
    try:
        statement = update(Notification).where(Notification.user_id == user_id)
        if notification_uuids is not None:
            statement = statement.where(Notification.uuid.in_(list(notification_uuids)))
        result = await db.execute(statement.values(is_read=is_read))
        await db.commit()
        return result.rowcount or 0
    except Exception as e:
        logger.error(f"Failed to update notifications for user {user_id}: {e}")
        await db.rollback()
        raise
