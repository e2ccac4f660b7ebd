# itasks/db/crud/logs.py
"""Audit and system log helpers.

The ``add_*`` helpers only stage rows on the session; the caller's
transaction commits them together with the mutation they describe.
"""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload
from typing import Optional, List, Tuple, Any
from uuid import UUID

from itasks.core.pagination import PaginationParams, paginate_query
from itasks.db.models import AuditLog, SystemLog, LogEntityType, LogActionType


def add_audit_log(
        db: AsyncSession,
        task_id: int,
        actor_id: Optional[int],
        action: str,
        old_value: Any = None,
        new_value: Any = None,
) -> AuditLog:
    entry = AuditLog(
        task_id=task_id,
        actor_id=actor_id,
        action=action,
        old_value=old_value,
        new_value=new_value,
    )
    db.add(entry)
    return entry


def add_system_log(
        db: AsyncSession,
        entity_type: LogEntityType,
        action_type: LogActionType,
        description: str,
        actor_id: Optional[int] = None,
        entity_id: Optional[str] = None,
        task=None,
        details: Optional[dict] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
) -> SystemLog:
    entry = SystemLog(
        entity_type=entity_type,
        action_type=action_type,
        description=description,
        actor_id=actor_id,
        entity_id=entity_id,
        task_id=task.id if task is not None else None,
        task_uuid=task.uuid if task is not None else None,
        task_title=task.title if task is not None else None,
        details=details,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    db.add(entry)
    return entry


async def list_task_audit_logs(db: AsyncSession, task_id: int) -> List[AuditLog]:
    result = await db.execute(
        select(AuditLog)
        .options(selectinload(AuditLog.actor))
        .filter(AuditLog.task_id == task_id)
        .order_by(AuditLog.created_at.asc(), AuditLog.id.asc())
    )
    return list(result.scalars().all())


async def list_system_logs(
        db: AsyncSession,
        params: PaginationParams,
        entity_type: Optional[LogEntityType] = None,
        action_type: Optional[LogActionType] = None,
        task_uuid: Optional[UUID] = None,
) -> Tuple[List[SystemLog], int]:
    query = select(SystemLog).options(selectinload(SystemLog.actor))
    if entity_type is not None:
        query = query.filter(SystemLog.entity_type == entity_type)
    if action_type is not None:
        query = query.filter(SystemLog.action_type == action_type)
    if task_uuid is not None:
        query = query.filter(SystemLog.task_uuid == task_uuid)
    if params.search:
        query = query.filter(SystemLog.description.ilike(f"%{params.search}%"))

    if params.sort_order == "asc":
        query = query.order_by(SystemLog.created_at.asc(), SystemLog.id.asc())
    else:
        query = query.order_by(SystemLog.created_at.desc(), SystemLog.id.desc())
    return await paginate_query(db, query, params)
