# itasks/db/crud/user.py
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy import func, or_
from sqlalchemy.orm import selectinload
from typing import Optional, Dict, Any, List, Iterable
from uuid import UUID
from loguru import logger

from itasks.db.models import User, Team, UserRole


async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    """Retrieve a user by email address (case-insensitive)"""
    result = await db.execute(select(User).filter(func.lower(User.email) == email.lower().strip()))
    user = result.scalars().first()
    if user:
        logger.debug(f"User found: {email}")
    return user


async def get_user_by_id(db: AsyncSession, user_id: int) -> Optional[User]:
    result = await db.execute(select(User).filter(User.id == user_id))
    return result.scalars().first()


async def get_user_by_uuid(db: AsyncSession, user_uuid: UUID) -> Optional[User]:
    result = await db.execute(
        select(User).options(selectinload(User.team)).filter(User.uuid == user_uuid)
        .execution_options(populate_existing=True)
    )
    return result.scalars().first()


async def get_users_by_ids(db: AsyncSession, user_ids: Iterable[int]) -> List[User]:
    ids = list(set(user_ids))
    if not ids:
        return []
    result = await db.execute(select(User).filter(User.id.in_(ids)))
    return list(result.scalars().all())


async def get_users_by_uuids(db: AsyncSession, user_uuids: Iterable[UUID]) -> List[User]:
    uuids = list(set(user_uuids))
    if not uuids:
        return []
    result = await db.execute(select(User).filter(User.uuid.in_(uuids)))
    return list(result.scalars().all())


async def get_users_by_emails(db: AsyncSession, emails: Iterable[str]) -> List[User]:
    """Active users whose address is in ``emails``; used to resolve @mentions"""
    lowered = [e.lower() for e in emails]
    if not lowered:
        return []
    result = await db.execute(
        select(User).filter(func.lower(User.email).in_(lowered), User.is_active == True)  # noqa: E712
    )
    return list(result.scalars().all())


def users_query(
        search: Optional[str] = None,
        role: Optional[UserRole] = None,
        team_id: Optional[int] = None,
        is_active: Optional[bool] = None,
):
    query = select(User).options(selectinload(User.team))
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(User.name.ilike(pattern), User.email.ilike(pattern)))
    if role is not None:
        query = query.filter(User.role == role)
    if team_id is not None:
        query = query.filter(User.team_id == team_id)
    if is_active is not None:
        query = query.filter(User.is_active == is_active)
    return query.order_by(User.name.asc())


async def search_users(db: AsyncSession, term: str, limit: int = 10) -> List[User]:
    """Active users matching name or email, for mention pickers"""
    result = await db.execute(users_query(search=term, is_active=True).limit(limit))
    users = list(result.scalars().all())
    logger.debug(f"Found {len(users)} users matching: {term}")
    return users


async def create_user_db(db: AsyncSession, user_data: Dict[str, Any]) -> User:
    """Create a new user record"""
    try:
        if not user_data.get('email') or not user_data.get('hashed_password'):
            raise ValueError("Email and hashed_password are required")

        user = User(**user_data)
        db.add(user)
        await db.commit()
        await db.refresh(user)
        logger.info(f"User created successfully: {user.email}")
        return user
    except Exception as e:
        logger.error(f"Failed to create user: {e}")
        await db.rollback()
        raise


async def update_user_db(db: AsyncSession, user: User, updates: Dict[str, Any]) -> User:
    """Update an existing user record, ignoring protected and unknown fields"""
    try:
        protected_fields = {'id', 'uuid', 'created_at'}
        for field in protected_fields:
            if field in updates:
                logger.warning(f"Attempt to update protected field: {field}")
                updates.pop(field)

        for key, value in updates.items():
            if hasattr(user, key):
                setattr(user, key, value)
            else:
                logger.warning(f"Attempt to update non-existent field: {key}")

        await db.commit()
        await db.refresh(user)
        logger.info(f"User updated successfully: {user.email}")
        return user
    except Exception as e:
        logger.error(f"Failed to update user {user.email}: {e}")
        await db.rollback()
        raise


async def get_user_count(db: AsyncSession) -> int:
    result = await db.execute(select(func.count(User.id)))
    return result.scalar() or 0


# Teams

async def get_team_by_uuid(db: AsyncSession, team_uuid: UUID) -> Optional[Team]:
    result = await db.execute(select(Team).filter(Team.uuid == team_uuid))
    return result.scalars().first()


async def get_team_by_name(db: AsyncSession, name: str) -> Optional[Team]:
    result = await db.execute(select(Team).filter(Team.name == name))
    return result.scalars().first()


async def list_teams(db: AsyncSession) -> List[Team]:
    result = await db.execute(select(Team).order_by(Team.name.asc()))
    return list(result.scalars().all())


async def create_team(db: AsyncSession, name: str, description: Optional[str] = None) -> Team:
    try:
        team = Team(name=name, description=description)
        db.add(team)
        await db.commit()
        await db.refresh(team)
        logger.info(f"Team created: {team.name}")
        return team
    except Exception as e:
        logger.error(f"Failed to create team {name}: {e}")
        await db.rollback()
        raise


async def update_team(db: AsyncSession, team: Team, updates: Dict[str, Any]) -> Team:
    try:
        for key, value in updates.items():
            if key in ("name", "description"):
                setattr(team, key, value)
        await db.commit()
        await db.refresh(team)
        logger.info(f"Team updated: {team.name}")
        return team
    except Exception as e:
        logger.error(f"Failed to update team {team.name}: {e}")
        await db.rollback()
        raise
