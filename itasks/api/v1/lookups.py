# itasks/api/v1/lookups.py
"""Public UUID to row lookups shared by the routers"""
from typing import List
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from itasks.db import crud
from itasks.db.models import Task, User
from itasks.exceptions.domain import NotFoundError


async def task_or_404(db: AsyncSession, task_id: UUID) -> Task:
    task = await crud.task.get_task_by_uuid(db, task_id)
    if task is None:
        raise NotFoundError("Task", task_id)
    return task


async def user_or_404(db: AsyncSession, user_id: UUID) -> User:
    user = await crud.get_user_by_uuid(db, user_id)
    if user is None:
        raise NotFoundError("User", user_id)
    return user


async def user_ids(db: AsyncSession, user_uuids: List[UUID]) -> List[int]:
    """Internal ids for the given UUIDs; every one must exist"""
    users = {user.uuid: user.id for user in await crud.get_users_by_uuids(db, user_uuids)}
    missing = [str(uuid) for uuid in user_uuids if uuid not in users]
    if missing:
        raise NotFoundError("User", ", ".join(missing))
    return [users[uuid] for uuid in user_uuids]
