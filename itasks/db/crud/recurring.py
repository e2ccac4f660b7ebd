# itasks/db/crud/recurring.py
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy import update, delete
from sqlalchemy.orm import selectinload
from typing import Optional, List, Dict, Any
from uuid import UUID
from loguru import logger

from itasks.db.models import RecurringTaskConfig, Task


async def get_config_by_id(db: AsyncSession, config_id: int) -> Optional[RecurringTaskConfig]:
    """Fresh read of a config row, bypassing the identity map"""
    result = await db.execute(
        select(RecurringTaskConfig)
        .options(selectinload(RecurringTaskConfig.template_assignee))
        .filter(RecurringTaskConfig.id == config_id)
        .execution_options(populate_existing=True)
    )
    return result.scalars().first()


async def get_config_by_uuid(db: AsyncSession, config_uuid: UUID) -> Optional[RecurringTaskConfig]:
    result = await db.execute(
        select(RecurringTaskConfig)
        .options(selectinload(RecurringTaskConfig.template_assignee))
        .filter(RecurringTaskConfig.uuid == config_uuid)
        .execution_options(populate_existing=True)
    )
    return result.scalars().first()


async def list_configs(db: AsyncSession, enabled_only: bool = False) -> List[RecurringTaskConfig]:
    query = select(RecurringTaskConfig).options(selectinload(RecurringTaskConfig.template_assignee))
    if enabled_only:
        query = query.filter(RecurringTaskConfig.enabled == True)  # noqa: E712
    result = await db.execute(query.order_by(RecurringTaskConfig.name.asc(), RecurringTaskConfig.id.asc()))
    return list(result.scalars().all())


async def create_config(db: AsyncSession, config_data: Dict[str, Any]) -> RecurringTaskConfig:
    try:
        config = RecurringTaskConfig(**config_data)
        db.add(config)
        await db.commit()
        logger.info(f"Recurring config created: {config.name} ({config.cron})")
        return await get_config_by_id(db, config.id)
    except Exception as e:
        logger.error(f"Failed to create recurring config: {e}")
        await db.rollback()
        raise


async def update_config(
        db: AsyncSession, config: RecurringTaskConfig, updates: Dict[str, Any]
) -> RecurringTaskConfig:
    try:
        for key, value in updates.items():
            if hasattr(config, key):
                setattr(config, key, value)
            else:
                logger.warning(f"Attempt to update non-existent field: {key}")
        await db.commit()
        logger.info(f"Recurring config updated: {config.name}")
        return await get_config_by_id(db, config.id)
    except Exception as e:
        logger.error(f"Failed to update recurring config {config.id}: {e}")
        await db.rollback()
        raise


async def delete_config(db: AsyncSession, config: RecurringTaskConfig) -> None:
    """Delete a config; its generated tasks are detached and kept"""
    config_id, name = config.id, config.name
    try:
        detached = await db.execute(
            update(Task)
            .where(Task.recurring_config_id == config_id)
            .values(recurring_config_id=None)
        )
        await db.execute(delete(RecurringTaskConfig).where(RecurringTaskConfig.id == config_id))
        await db.commit()
        logger.info(f"Recurring config deleted: {name}, {detached.rowcount or 0} generated tasks kept")
    except Exception as e:
        logger.error(f"Failed to delete recurring config {config_id}: {e}")
        await db.rollback()
        raise
