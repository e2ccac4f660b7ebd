"""
Remove expired entries from the token blacklist
"""
import asyncio

from loguru import logger

from itasks.db.database import AsyncSessionLocal, engine
from itasks.db.crud.token import delete_expired_blacklisted_tokens


async def cleanup_tokens():
    async with AsyncSessionLocal() as db:
        removed = await delete_expired_blacklisted_tokens(db)
    logger.info(f"Removed {removed} expired blacklisted tokens")
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(cleanup_tokens())
