# itasks/api/v1/endpoints/tasks.py
"""Task endpoints; every mutation goes through the lifecycle manager"""
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from itasks.db.database import get_db
from itasks.db import crud
from itasks.db.models import User, TaskStatus, TaskPriority, TaskType
from itasks.api.v1.lookups import task_or_404, user_or_404, user_ids
from itasks.api.v1.schemas.tasks import (
    TaskCreate, TaskUpdate, TaskResponse, TaskSummary, TaskStatusUpdate,
    TaskReassign, SubscriberRequest, AuditLogResponse, TaskDeleteResponse,
)
from itasks.auth.dependencies import get_current_user, get_lifecycle_manager
from itasks.core.lifecycle import TaskLifecycleManager
from itasks.core.pagination import PaginationParams, PaginatedResponse, get_pagination

router = APIRouter()


@router.post("/", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
async def create_task(
        task_in: TaskCreate,
        db: AsyncSession = Depends(get_db),
        current_user: User = Depends(get_current_user),
        lifecycle: TaskLifecycleManager = Depends(get_lifecycle_manager),
):
    data = task_in.model_dump(exclude={"assignee_id", "subscriber_ids", "context"})
    if task_in.assignee_id is not None:
        data["assignee_id"] = (await user_or_404(db, task_in.assignee_id)).id
    if task_in.subscriber_ids:
        data["subscriber_ids"] = await user_ids(db, task_in.subscriber_ids)
    if task_in.context is not None:
        data["context"] = task_in.context.model_dump()

    task = await lifecycle.create_task(data, actor=current_user)
    return TaskResponse.from_model(task)


@router.get("/", response_model=PaginatedResponse[TaskSummary])
async def list_tasks(
        pagination: PaginationParams = Depends(get_pagination),
        status_filter: Optional[TaskStatus] = Query(None, alias="status", description="Filter by status"),
        priority: Optional[TaskPriority] = Query(None, description="Filter by priority"),
        task_type: Optional[TaskType] = Query(None, alias="type", description="Filter by task type"),
        branch: Optional[str] = Query(None, description="Filter by branch/location"),
        assignee_id: Optional[UUID] = Query(None, description="Filter by assignee UUID"),
        creator_id: Optional[UUID] = Query(None, description="Filter by creator UUID"),
        db: AsyncSession = Depends(get_db),
        current_user: User = Depends(get_current_user),
):
    """List tasks with filters and free-text search over title and description"""
    filters = {"status": status_filter, "priority": priority, "task_type": task_type, "branch": branch}
    if assignee_id is not None:
        filters["assignee_id"] = (await user_or_404(db, assignee_id)).id
    if creator_id is not None:
        filters["creator_id"] = (await user_or_404(db, creator_id)).id

    tasks, total = await crud.task.list_tasks(db, pagination, **filters)
    return PaginatedResponse[TaskSummary].build([TaskSummary.from_model(t) for t in tasks], total, pagination)


@router.get("/mine", response_model=PaginatedResponse[TaskSummary])
async def list_my_tasks(
        pagination: PaginationParams = Depends(get_pagination),
        status_filter: Optional[TaskStatus] = Query(None, alias="status"),
        db: AsyncSession = Depends(get_db),
        current_user: User = Depends(get_current_user),
):
    """Tasks assigned to the current user or where they are a subscribed technician"""
    tasks, total = await crud.task.list_user_tasks(db, current_user.id, pagination, status=status_filter)
    return PaginatedResponse[TaskSummary].build([TaskSummary.from_model(t) for t in tasks], total, pagination)


@router.get("/branches", response_model=List[str])
async def list_task_branches(
        db: AsyncSession = Depends(get_db),
        current_user: User = Depends(get_current_user),
):
    """Every branch/location used on a task, for filter dropdowns"""
    return await crud.task.list_branches(db)


@router.get("/{task_id}", response_model=TaskResponse)
async def get_task(
        task_id: UUID,
        db: AsyncSession = Depends(get_db),
        current_user: User = Depends(get_current_user),
):
    return TaskResponse.from_model(await task_or_404(db, task_id))


@router.patch("/{task_id}", response_model=TaskResponse)
async def edit_task(
        task_id: UUID,
        updates: TaskUpdate,
        db: AsyncSession = Depends(get_db),
        current_user: User = Depends(get_current_user),
        lifecycle: TaskLifecycleManager = Depends(get_lifecycle_manager),
):
    task = await task_or_404(db, task_id)
    fields = updates.model_dump(exclude_unset=True)
    task = await lifecycle.edit_task(task.id, fields, current_user)
    return TaskResponse.from_model(task)


@router.post("/{task_id}/status", response_model=TaskResponse)
async def change_task_status(
        task_id: UUID,
        status_update: TaskStatusUpdate,
        db: AsyncSession = Depends(get_db),
        current_user: User = Depends(get_current_user),
        lifecycle: TaskLifecycleManager = Depends(get_lifecycle_manager),
):
    task = await task_or_404(db, task_id)
    task = await lifecycle.change_status(task.id, status_update.status, current_user, note=status_update.note)
    return TaskResponse.from_model(task)


@router.post("/{task_id}/assign", response_model=TaskResponse)
async def reassign_task(
        task_id: UUID,
        request: TaskReassign,
        db: AsyncSession = Depends(get_db),
        current_user: User = Depends(get_current_user),
        lifecycle: TaskLifecycleManager = Depends(get_lifecycle_manager),
):
    task = await task_or_404(db, task_id)
    assignee = await user_or_404(db, request.assignee_id)
    task = await lifecycle.reassign(task.id, assignee.id, current_user)
    return TaskResponse.from_model(task)


@router.post("/{task_id}/subscribers", response_model=TaskResponse)
async def add_task_subscriber(
        task_id: UUID,
        request: SubscriberRequest,
        db: AsyncSession = Depends(get_db),
        current_user: User = Depends(get_current_user),
        lifecycle: TaskLifecycleManager = Depends(get_lifecycle_manager),
):
    task = await task_or_404(db, task_id)
    user = await user_or_404(db, request.user_id)
    return TaskResponse.from_model(await lifecycle.add_subscriber(task.id, user.id, current_user))


@router.delete("/{task_id}/subscribers/{user_id}", response_model=TaskResponse)
async def remove_task_subscriber(
        task_id: UUID,
        user_id: UUID,
        db: AsyncSession = Depends(get_db),
        current_user: User = Depends(get_current_user),
        lifecycle: TaskLifecycleManager = Depends(get_lifecycle_manager),
):
    task = await task_or_404(db, task_id)
    user = await user_or_404(db, user_id)
    return TaskResponse.from_model(await lifecycle.remove_subscriber(task.id, user.id, current_user))


@router.delete("/{task_id}", response_model=TaskDeleteResponse)
async def delete_task(
        task_id: UUID,
        db: AsyncSession = Depends(get_db),
        current_user: User = Depends(get_current_user),
        lifecycle: TaskLifecycleManager = Depends(get_lifecycle_manager),
):
    task = await task_or_404(db, task_id)
    snapshot = await lifecycle.delete_task(task.id, current_user)
    return TaskDeleteResponse(id=snapshot["uuid"], title=snapshot["title"])


@router.get("/{task_id}/audit", response_model=List[AuditLogResponse])
async def get_task_audit_log(
        task_id: UUID,
        db: AsyncSession = Depends(get_db),
        current_user: User = Depends(get_current_user),
):
    task = await task_or_404(db, task_id)
    return [AuditLogResponse.from_model(entry) for entry in await crud.logs.list_task_audit_logs(db, task.id)]
