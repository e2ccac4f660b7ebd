# itasks/db/crud/task.py
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy import or_, exists, distinct
from sqlalchemy.orm import selectinload
from typing import Optional, List, Tuple
from uuid import UUID

from itasks.core.pagination import PaginationParams, paginate_query
from itasks.db.models import (
    Task, TaskStatus, TaskPriority, TaskType, Comment, CommentMention, Attachment, task_subscribers,
    User, UserRole,
)

TERMINAL_STATUSES = (TaskStatus.RESOLVED, TaskStatus.CLOSED)


def task_load_options():
    """Eager loads every view of a task needs; async sessions cannot lazy load"""
    return (
        selectinload(Task.creator),
        selectinload(Task.assignee),
        selectinload(Task.subscribers),
        selectinload(Task.context),
        selectinload(Task.recurring_config),
    )


async def get_task_by_id(db: AsyncSession, task_id: int) -> Optional[Task]:
    """Get task by internal id with relationships loaded"""
    result = await db.execute(
        select(Task)
        .options(*task_load_options())
        .filter(Task.id == task_id)
        .execution_options(populate_existing=True)
    )
    return result.scalars().first()


async def get_task_by_uuid(db: AsyncSession, task_uuid: UUID) -> Optional[Task]:
    """Get task by UUID with relationships loaded"""
    result = await db.execute(
        select(Task)
        .options(*task_load_options())
        .filter(Task.uuid == task_uuid)
        .execution_options(populate_existing=True)
    )
    return result.scalars().first()


def tasks_query(
        status: Optional[TaskStatus] = None,
        priority: Optional[TaskPriority] = None,
        task_type: Optional[TaskType] = None,
        branch: Optional[str] = None,
        assignee_id: Optional[int] = None,
        creator_id: Optional[int] = None,
        search: Optional[str] = None,
        descending: bool = True,
):
    query = select(Task).options(*task_load_options())

    if status is not None:
        query = query.filter(Task.status == status)
    if priority is not None:
        query = query.filter(Task.priority == priority)
    if task_type is not None:
        query = query.filter(Task.type == task_type)
    if branch:
        query = query.filter(Task.branch == branch)
    if assignee_id is not None:
        query = query.filter(Task.assignee_id == assignee_id)
    if creator_id is not None:
        query = query.filter(Task.creator_id == creator_id)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(Task.title.ilike(pattern), Task.description.ilike(pattern)))

    order = Task.created_at.desc() if descending else Task.created_at.asc()
    return query.order_by(order, Task.id.desc() if descending else Task.id.asc())


async def list_tasks(
        db: AsyncSession,
        params: PaginationParams,
        **filters
) -> Tuple[List[Task], int]:
    """Filtered, paginated task list; returns (tasks, total)"""
    query = tasks_query(search=params.search, descending=params.sort_order == "desc", **filters)
    return await paginate_query(db, query, params)


async def list_user_tasks(
        db: AsyncSession,
        user_id: int,
        params: PaginationParams,
        status: Optional[TaskStatus] = None,
) -> Tuple[List[Task], int]:
    """Tasks assigned to the user or followed by them as a subscriber"""
    subscribed = exists().where(
        task_subscribers.c.task_id == Task.id,
        task_subscribers.c.user_id == user_id,
    )
    query = tasks_query(status=status, search=params.search, descending=params.sort_order == "desc")
    query = query.filter(or_(Task.assignee_id == user_id, subscribed))
    return await paginate_query(db, query, params)


def visible_tasks_clause(user: User):
    """
    Filter for the tasks a user's dashboard covers, or None for all of them.

    Admins see everything. A TeamLead with a team also sees tasks assigned
    to any member of that team. Everyone else sees tasks they are assigned
    to or created.
    """
    if user.role == UserRole.ADMIN:
        return None
    own = or_(Task.assignee_id == user.id, Task.creator_id == user.id)
    if user.role == UserRole.TEAM_LEAD and user.team_id is not None:
        team_members = select(User.id).where(User.team_id == user.team_id)
        return or_(own, Task.assignee_id.in_(team_members))
    return own


async def list_branches(db: AsyncSession) -> List[str]:
    """Distinct branch names used on any task, alphabetically"""
    result = await db.execute(
        select(distinct(Task.branch))
        .filter(Task.branch.isnot(None), Task.branch != "")
        .order_by(Task.branch.asc())
    )
    return list(result.scalars().all())


async def get_monitored_tasks(db: AsyncSession) -> List[Task]:
    """Non-terminal tasks carrying a due date or SLA deadline"""
    result = await db.execute(
        select(Task)
        .options(selectinload(Task.assignee), selectinload(Task.creator))
        .filter(
            Task.status.notin_(TERMINAL_STATUSES),
            or_(Task.due_date.isnot(None), Task.sla_deadline.isnot(None)),
        )
    )
    return list(result.scalars().all())


async def list_config_tasks(db: AsyncSession, config_id: int, limit: int = 10) -> List[Task]:
    """Most recent tasks generated from a recurring config"""
    result = await db.execute(
        select(Task)
        .options(selectinload(Task.assignee))
        .filter(Task.recurring_config_id == config_id)
        .order_by(Task.created_at.desc(), Task.id.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def list_task_comments(db: AsyncSession, task_id: int) -> List[Comment]:
    result = await db.execute(
        select(Comment)
        .options(selectinload(Comment.author), selectinload(Comment.mentions).selectinload(CommentMention.user))
        .filter(Comment.task_id == task_id)
        .order_by(Comment.created_at.asc(), Comment.id.asc())
    )
    return list(result.scalars().all())


async def get_comment_by_uuid(db: AsyncSession, comment_uuid: UUID) -> Optional[Comment]:
    result = await db.execute(
        select(Comment)
        .options(selectinload(Comment.author), selectinload(Comment.mentions).selectinload(CommentMention.user))
        .filter(Comment.uuid == comment_uuid)
    )
    return result.scalars().first()


async def get_comment_by_id(db: AsyncSession, comment_id: int) -> Optional[Comment]:
    result = await db.execute(
        select(Comment)
        .options(selectinload(Comment.author), selectinload(Comment.mentions).selectinload(CommentMention.user))
        .filter(Comment.id == comment_id)
        .execution_options(populate_existing=True)
    )
    return result.scalars().first()


async def get_commenter_ids(db: AsyncSession, task_id: int) -> List[int]:
    """Distinct authors who have commented on a task"""
    result = await db.execute(
        select(Comment.user_id).filter(Comment.task_id == task_id).distinct()
    )
    return list(result.scalars().all())


async def list_task_attachments(db: AsyncSession, task_id: int) -> List[Attachment]:
    result = await db.execute(
        select(Attachment)
        .options(selectinload(Attachment.uploader))
        .filter(Attachment.task_id == task_id)
        .order_by(Attachment.created_at.desc(), Attachment.id.desc())
    )
    return list(result.scalars().all())


async def get_attachment_by_uuid(db: AsyncSession, attachment_uuid: UUID) -> Optional[Attachment]:
    result = await db.execute(
        select(Attachment)
        .options(selectinload(Attachment.uploader))
        .filter(Attachment.uuid == attachment_uuid)
    )
    return result.scalars().first()
