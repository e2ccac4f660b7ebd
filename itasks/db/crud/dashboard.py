# itasks/db/crud/dashboard.py
"""Aggregate reads behind the dashboard.

Team-wide figures go through ``visible_tasks_clause``; the personal lists
(my day, my open tasks) only ever cover the user's own assignments.
"""
from datetime import datetime
from typing import Dict, List, Tuple

from sqlalchemy import func, or_, and_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload

from itasks.db.crud.task import TERMINAL_STATUSES, visible_tasks_clause
from itasks.db.models import AuditLog, Task, TaskPriority, TaskStatus, User

ACTIVE = Task.status.notin_(TERMINAL_STATUSES)


def _scoped(query, user: User):
    clause = visible_tasks_clause(user)
    return query if clause is None else query.filter(clause)


async def count_tasks(db: AsyncSession, user: User, *criteria) -> int:
    query = _scoped(select(func.count(Task.id)).select_from(Task), user).filter(*criteria)
    return (await db.execute(query)).scalar_one()


async def list_my_day(
        db: AsyncSession, user: User, day_start: datetime, day_end: datetime, now: datetime, limit: int = 7
) -> List[Task]:
    """Own tasks due today, plus own overdue tasks still open"""
    result = await db.execute(
        select(Task)
        .options(selectinload(Task.assignee))
        .filter(
            Task.assignee_id == user.id,
            or_(
                and_(Task.due_date >= day_start, Task.due_date < day_end),
                and_(Task.due_date < now, ACTIVE),
            ),
        )
        .order_by(Task.due_date.asc(), Task.id.asc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def list_my_open_tasks(db: AsyncSession, user: User) -> List[Task]:
    result = await db.execute(
        select(Task)
        .options(selectinload(Task.assignee))
        .filter(Task.assignee_id == user.id, Task.status == TaskStatus.OPEN)
    )
    return list(result.scalars().all())


async def list_creation_times(db: AsyncSession, user: User, since: datetime) -> List[datetime]:
    query = _scoped(select(Task.created_at), user).filter(Task.created_at >= since)
    return list((await db.execute(query)).scalars().all())


async def count_active_by_priority(db: AsyncSession, user: User) -> Dict[TaskPriority, int]:
    query = _scoped(select(Task.priority, func.count(Task.id)), user).filter(ACTIVE).group_by(Task.priority)
    return {priority: count for priority, count in (await db.execute(query)).all()}


async def count_active_by_branch(db: AsyncSession, user: User) -> List[Tuple[str, int]]:
    """(branch, count) pairs, busiest branch first"""
    count = func.count(Task.id)
    query = (
        _scoped(select(Task.branch, count), user)
        .filter(ACTIVE, Task.branch.isnot(None), Task.branch != "")
        .group_by(Task.branch)
        .order_by(count.desc(), Task.branch.asc())
    )
    return [(branch, total) for branch, total in (await db.execute(query)).all()]


async def list_stale_tasks(db: AsyncSession, user: User, before: datetime, limit: int = 10) -> List[Task]:
    """Active tasks untouched since ``before``, longest-idle first"""
    query = (
        _scoped(select(Task).options(selectinload(Task.assignee), selectinload(Task.creator)), user)
        .filter(ACTIVE, Task.updated_at < before)
        .order_by(Task.updated_at.asc(), Task.id.asc())
        .limit(limit)
    )
    return list((await db.execute(query)).scalars().all())


async def list_recent_activity(db: AsyncSession, user: User, limit: int = 10) -> List[Tuple[AuditLog, Task]]:
    """Latest audit entries on visible tasks, each with its task"""
    query = (
        _scoped(
            select(AuditLog, Task).join(Task, AuditLog.task_id == Task.id).options(selectinload(AuditLog.actor)),
            user,
        )
        .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        .limit(limit)
    )
    return [(entry, task) for entry, task in (await db.execute(query)).all()]
