# itasks/api/v1/endpoints/recurring.py
"""Recurring task configuration endpoints"""
from typing import Any, Dict, List
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from itasks.db.database import get_db
from itasks.db import crud
from itasks.db.models import User, RecurringTaskConfig, LogEntityType, LogActionType
from itasks.api.v1.lookups import user_or_404
from itasks.api.v1.schemas.recurring import (
    RecurringConfigCreate, RecurringConfigUpdate, RecurringConfigResponse,
    GenerationRunResponse, GenerationFailureResponse,
)
from itasks.api.v1.schemas.tasks import TaskResponse, TaskSummary
from itasks.auth.dependencies import (
    get_current_user, require_manager, get_recurring_generator, get_scheduling_timezone,
)
from itasks.core import tracing
from itasks.core.recurring import RecurringTaskGenerator, next_run_after
from itasks.exceptions.domain import NotFoundError
from itasks.utils.helpers import utc_now

router = APIRouter()


async def _config_or_404(db: AsyncSession, config_id: UUID) -> RecurringTaskConfig:
    config = await crud.recurring.get_config_by_uuid(db, config_id)
    if config is None:
        raise NotFoundError("Recurring config", config_id)
    return config


async def _template_columns(db: AsyncSession, data: Dict[str, Any]) -> Dict[str, Any]:
    """Map request fields onto config columns: assignee UUID to id, context to template_* columns"""
    columns = dict(data)
    if "template_assignee_id" in columns:
        assignee_uuid = columns.pop("template_assignee_id")
        columns["template_assignee_id"] = (
            (await user_or_404(db, assignee_uuid)).id if assignee_uuid is not None else None
        )
    if "template_context" in columns:
        context = columns.pop("template_context") or {}
        for name in RecurringTaskConfig.TEMPLATE_CONTEXT_FIELDS:
            columns[f"template_{name}"] = context.get(name)
    return columns


@router.get("/", response_model=List[RecurringConfigResponse])
async def list_recurring_configs(
        db: AsyncSession = Depends(get_db),
        current_user: User = Depends(get_current_user),
):
    return [RecurringConfigResponse.from_model(config) for config in await crud.recurring.list_configs(db)]


@router.post("/", response_model=RecurringConfigResponse, status_code=status.HTTP_201_CREATED)
async def create_recurring_config(
        config_in: RecurringConfigCreate,
        db: AsyncSession = Depends(get_db),
        manager: User = Depends(require_manager),
        tz: str = Depends(get_scheduling_timezone),
):
    columns = await _template_columns(db, config_in.model_dump())
    columns["next_generation_at"] = next_run_after(config_in.cron, utc_now(), tz)

    config = await crud.recurring.create_config(db, columns)
    crud.logs.add_system_log(
        db, LogEntityType.RECURRING, LogActionType.CREATE,
        f"Recurring config '{config.name}' created ({config.cron})",
        actor_id=manager.id, entity_id=str(config.uuid),
    )
    await db.commit()
    return RecurringConfigResponse.from_model(config)


@router.post("/evaluate", response_model=GenerationRunResponse)
async def evaluate_recurring_configs(
        db: AsyncSession = Depends(get_db),
        manager: User = Depends(require_manager),
        generator: RecurringTaskGenerator = Depends(get_recurring_generator),
):
    """Run one evaluation pass over all enabled configs, as the scheduler does"""
    result = await generator.evaluate_recurring(await crud.recurring.list_configs(db, enabled_only=True))
    return GenerationRunResponse(
        generated=[TaskSummary.from_model(task) for task in result.generated],
        failures=[
            GenerationFailureResponse(config_name=f.config_name, error=f.error, error_type=f.error_type)
            for f in result.failures
        ],
    )


@router.get("/{config_id}", response_model=RecurringConfigResponse)
async def get_recurring_config(
        config_id: UUID,
        db: AsyncSession = Depends(get_db),
        current_user: User = Depends(get_current_user),
):
    """Config detail with its ten most recently generated tasks"""
    config = await _config_or_404(db, config_id)
    recent = await crud.task.list_config_tasks(db, config.id, limit=10)
    return RecurringConfigResponse.from_model(config, recent_tasks=recent)


@router.patch("/{config_id}", response_model=RecurringConfigResponse)
async def update_recurring_config(
        config_id: UUID,
        updates: RecurringConfigUpdate,
        db: AsyncSession = Depends(get_db),
        manager: User = Depends(require_manager),
        tz: str = Depends(get_scheduling_timezone),
):
    config = await _config_or_404(db, config_id)
    columns = await _template_columns(db, updates.model_dump(exclude_unset=True))
    if columns.get("cron") is None:
        columns.pop("cron", None)
    elif columns["cron"] != config.cron:
        columns["next_generation_at"] = next_run_after(columns["cron"], utc_now(), tz)

    config = await crud.recurring.update_config(db, config, columns)
    crud.logs.add_system_log(
        db, LogEntityType.RECURRING, LogActionType.UPDATE,
        f"Recurring config '{config.name}' updated",
        actor_id=manager.id, entity_id=str(config.uuid), details={"fields": sorted(columns)},
    )
    await db.commit()
    recent = await crud.task.list_config_tasks(db, config.id, limit=10)
    return RecurringConfigResponse.from_model(config, recent_tasks=recent)


@router.delete("/{config_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_recurring_config(
        config_id: UUID,
        db: AsyncSession = Depends(get_db),
        manager: User = Depends(require_manager),
):
    """Delete a config; tasks it generated stay and lose the link"""
    config = await _config_or_404(db, config_id)
    name, config_uuid = config.name, str(config.uuid)
    await crud.recurring.delete_config(db, config)
    crud.logs.add_system_log(
        db, LogEntityType.RECURRING, LogActionType.DELETE,
        f"Recurring config '{name}' deleted",
        actor_id=manager.id, entity_id=config_uuid,
    )
    await db.commit()


@router.post("/{config_id}/run", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
async def run_recurring_config(
        config_id: UUID,
        db: AsyncSession = Depends(get_db),
        manager: User = Depends(require_manager),
        generator: RecurringTaskGenerator = Depends(get_recurring_generator),
):
    """Generate a task from the config now and advance its schedule"""
    config = await _config_or_404(db, config_id)
    task = await generator.run_now(config.id)
    tracing.info("Recurring config run manually", config_id=config.id, user_id=manager.id)
    return TaskResponse.from_model(task)
