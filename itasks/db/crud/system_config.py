# itasks/db/crud/system_config.py
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from typing import Optional, Dict, Any
from loguru import logger

from itasks.core.config import settings
from itasks.db.models import SystemConfig, SYSTEM_CONFIG_ID


async def get_system_config(db: AsyncSession) -> Optional[SystemConfig]:
    result = await db.execute(select(SystemConfig).filter(SystemConfig.id == SYSTEM_CONFIG_ID))
    return result.scalars().first()


async def get_or_create_system_config(db: AsyncSession) -> SystemConfig:
    """The single configuration row, seeded from environment settings on first use"""
    config = await get_system_config(db)
    if config is not None:
        return config

    try:
        config = SystemConfig(
            id=SYSTEM_CONFIG_ID,
            sla_critical_hours=settings.SLA_CRITICAL_HOURS,
            sla_high_hours=settings.SLA_HIGH_HOURS,
            sla_medium_hours=settings.SLA_MEDIUM_HOURS,
            sla_low_hours=settings.SLA_LOW_HOURS,
            smtp_enabled=settings.SMTP_ENABLED,
            smtp_host=settings.SMTP_HOST,
            smtp_port=settings.SMTP_PORT,
            smtp_user=settings.SMTP_USER or None,
            smtp_password=settings.SMTP_PASSWORD.get_secret_value() or None,
            smtp_from=settings.SMTP_FROM,
            smtp_use_tls=settings.SMTP_USE_TLS,
            app_name=settings.APP_NAME,
            timezone=settings.RECURRING_TIMEZONE,
        )
        db.add(config)
        await db.commit()
        await db.refresh(config)
        logger.info("System configuration initialised from settings")
        return config
    except Exception as e:
        logger.error(f"Failed to initialise system configuration: {e}")
        await db.rollback()
        raise


async def update_system_config(db: AsyncSession, updates: Dict[str, Any]) -> SystemConfig:
    config = await get_or_create_system_config(db)
    try:
        for key, value in updates.items():
            if key != "id" and hasattr(config, key):
                setattr(config, key, value)
        await db.commit()
        await db.refresh(config)
        logger.info(f"System configuration updated: {sorted(updates)}")
        return config
    except Exception as e:
        logger.error(f"Failed to update system configuration: {e}")
        await db.rollback()
        raise
