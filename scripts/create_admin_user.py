"""
Create the first iTasks administrator
"""
import asyncio
import getpass

from loguru import logger

from itasks.db.database import AsyncSessionLocal, init_db
from itasks.db.crud.user import create_user_db, get_user_by_email
from itasks.db.models import UserRole
from itasks.auth.security import Hasher


async def create_admin_user():
    """Create an Admin user interactively"""
    logger.info("Creating admin user for iTasks...")

    email = input("Enter admin email: ").strip().lower()
    if not email:
        logger.error("Email is required")
        return

    name = input("Enter admin name: ").strip() or email.split("@")[0]

    password = getpass.getpass("Enter admin password: ")
    if len(password) < 8:
        logger.error("Password must be at least 8 characters long")
        return

    if password != getpass.getpass("Confirm password: "):
        logger.error("Passwords don't match")
        return

    await init_db()
    async with AsyncSessionLocal() as db:
        if await get_user_by_email(db, email):
            logger.warning(f"User {email} already exists")
            return

        user = await create_user_db(db, {
            "email": email,
            "name": name,
            "hashed_password": Hasher.get_password_hash(password),
            "role": UserRole.ADMIN,
            "is_active": True,
        })
        logger.info(f"Admin user created: {user.email} (ID: {user.id})")


if __name__ == "__main__":
    asyncio.run(create_admin_user())
