# itasks/db/crud/token.py
from datetime import datetime
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy import delete, and_
from loguru import logger

from itasks.db.models import BlacklistedToken
from itasks.utils.helpers import utc_now


async def add_to_blacklist(db: AsyncSession, jti: str, expires_at: datetime) -> BlacklistedToken:
    """Adds a JWT ID (jti) to the blacklist"""
    try:
        blacklisted_entry = BlacklistedToken(jti=jti, expires_at=expires_at)
        db.add(blacklisted_entry)
        await db.commit()
        await db.refresh(blacklisted_entry)
        logger.info(f"Token blacklisted: {jti}")
        return blacklisted_entry
    except Exception as e:
        logger.error(f"Failed to blacklist token {jti}: {e}")
        await db.rollback()
        raise


async def is_jti_blacklisted(db: AsyncSession, jti: str) -> bool:
    """Checks if a JWT ID (jti) is in the blacklist and not yet expired"""
    result = await db.execute(
        select(BlacklistedToken).filter(
            and_(
                BlacklistedToken.jti == jti,
                BlacklistedToken.expires_at > utc_now()
            )
        )
    )
    is_blacklisted = result.scalars().first() is not None
    if is_blacklisted:
        logger.warning(f"Blacklisted token used: {jti}")
    return is_blacklisted


async def delete_expired_blacklisted_tokens(db: AsyncSession) -> int:
    """Deletes blacklist entries whose token has expired anyway"""
    try:
        result = await db.execute(
            delete(BlacklistedToken).where(BlacklistedToken.expires_at <= utc_now())
        )
        await db.commit()
        deleted_count = result.rowcount or 0
        logger.info(f"Deleted {deleted_count} expired blacklisted tokens")
        return deleted_count
    except Exception as e:
        logger.error(f"Failed to delete expired blacklisted tokens: {e}")
        await db.rollback()
        raise
