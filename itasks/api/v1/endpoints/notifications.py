# itasks/api/v1/endpoints/notifications.py
"""In-app notifications for the current user"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from itasks.db.database import get_db
from itasks.db import crud
from itasks.db.models import User
from itasks.api.v1.schemas.notifications import NotificationResponse, NotificationSelection, UnreadCount, MarkResult
from itasks.auth.dependencies import get_current_user
from itasks.core.pagination import PaginationParams, PaginatedResponse, get_pagination

router = APIRouter()


@router.get("/", response_model=PaginatedResponse[NotificationResponse])
async def list_notifications(
        pagination: PaginationParams = Depends(get_pagination),
        unread_only: bool = Query(False, description="Only unread notifications"),
        db: AsyncSession = Depends(get_db),
        current_user: User = Depends(get_current_user),
):
    items, total = await crud.notification.list_user_notifications(db, current_user.id, pagination, unread_only)
    return PaginatedResponse[NotificationResponse].build(
        [NotificationResponse.from_model(n) for n in items], total, pagination
    )


@router.get("/unread-count", response_model=UnreadCount)
async def unread_count(
        db: AsyncSession = Depends(get_db),
        current_user: User = Depends(get_current_user),
):
    return UnreadCount(unread=await crud.notification.get_unread_count(db, current_user.id))


@router.post("/read", response_model=MarkResult)
async def mark_selected_read(
        selection: NotificationSelection,
        db: AsyncSession = Depends(get_db),
        current_user: User = Depends(get_current_user),
):
    updated = await crud.notification.set_read_state(db, current_user.id, True, selection.ids)
    return MarkResult(updated=updated)


@router.post("/unread", response_model=MarkResult)
async def mark_selected_unread(
        selection: NotificationSelection,
        db: AsyncSession = Depends(get_db),
        current_user: User = Depends(get_current_user),
):
    updated = await crud.notification.set_read_state(db, current_user.id, False, selection.ids)
    return MarkResult(updated=updated)


@router.post("/read-all", response_model=MarkResult)
async def mark_all_read(
        db: AsyncSession = Depends(get_db),
        current_user: User = Depends(get_current_user),
):
    return MarkResult(updated=await crud.notification.set_read_state(db, current_user.id, True))
