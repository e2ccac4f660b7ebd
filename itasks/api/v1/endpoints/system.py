# itasks/api/v1/endpoints/system.py
"""Admin-only system configuration and system log"""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from itasks.db.database import get_db
from itasks.db import crud
from itasks.db.models import User, LogEntityType, LogActionType
from itasks.api.v1.schemas.system import SystemConfigResponse, SystemConfigUpdate, SystemLogResponse
from itasks.auth.dependencies import require_admin
from itasks.core.pagination import PaginationParams, PaginatedResponse, get_pagination

router = APIRouter()


@router.get("/config", response_model=SystemConfigResponse)
async def get_configuration(
        db: AsyncSession = Depends(get_db),
        admin: User = Depends(require_admin),
):
    return SystemConfigResponse.from_model(await crud.system_config.get_or_create_system_config(db))


@router.put("/config", response_model=SystemConfigResponse)
async def update_configuration(
        updates: SystemConfigUpdate,
        db: AsyncSession = Depends(get_db),
        admin: User = Depends(require_admin),
):
    """Update any subset of the configuration; new SLA hours apply to tasks created afterwards"""
    changes = updates.model_dump(exclude_unset=True)
    config = await crud.system_config.update_system_config(db, changes)
    crud.logs.add_system_log(
        db, LogEntityType.SYSTEM_CONFIG, LogActionType.UPDATE,
        "System configuration updated",
        actor_id=admin.id,
        details={"fields": sorted(key for key in changes if key != "smtp_password")},
    )
    await db.commit()
    return SystemConfigResponse.from_model(config)


@router.get("/logs", response_model=PaginatedResponse[SystemLogResponse])
async def list_system_logs(
        pagination: PaginationParams = Depends(get_pagination),
        entity_type: Optional[LogEntityType] = Query(None),
        action_type: Optional[LogActionType] = Query(None),
        task_id: Optional[UUID] = Query(None, description="Filter by task UUID, including deleted tasks"),
        db: AsyncSession = Depends(get_db),
        admin: User = Depends(require_admin),
):
    entries, total = await crud.logs.list_system_logs(
        db, pagination, entity_type=entity_type, action_type=action_type, task_uuid=task_id,
    )
    return PaginatedResponse[SystemLogResponse].build(
        [SystemLogResponse.from_model(e) for e in entries], total, pagination
    )
