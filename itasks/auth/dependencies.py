# itasks/auth/dependencies.py
from typing import Callable

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession
from jose import JWTError
from loguru import logger

from itasks.core import policy
from itasks.core.events import event_bus
from itasks.core.lifecycle import TaskLifecycleManager
from itasks.core.recurring import RecurringTaskGenerator, scheduling_timezone
from itasks.core.sla import SlaPolicy
from itasks.db.database import get_db
from itasks.auth.security import decode_token
from itasks.db import crud
from itasks.db.models import User
from itasks.exceptions.auth import InactiveUserError, InsufficientRoleError, TokenBlacklistedError
from itasks.integrations.storage import AttachmentStorage

# OAuth2PasswordBearer for token extraction
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")


async def get_token_payload(token: str = Depends(oauth2_scheme)) -> dict:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = decode_token(token)
    except JWTError as e:
        logger.warning(f"JWT decode error: {e}")
        raise credentials_exception

    if not all([payload.get("sub"), payload.get("user_id"), payload.get("jti")]):
        logger.warning("Invalid token payload - missing required fields")
        raise credentials_exception
    return payload


async def get_current_user(
        db: AsyncSession = Depends(get_db),
        payload: dict = Depends(get_token_payload),
) -> User:
    """Currently authenticated, active user"""
    if await crud.is_jti_blacklisted(db, payload["jti"]):
        raise TokenBlacklistedError()

    user = await crud.get_user_by_id(db, payload["user_id"])
    if not user:
        logger.warning(f"User not found | user_id={payload['user_id']}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        logger.warning(f"Inactive user authentication attempt | email={user.email}")
        raise InactiveUserError()

    logger.debug(f"User authenticated | email={user.email} | user_id={user.id}")
    return user


def require_policy(check: Callable[[User], bool], detail: str):
    """Dependency factory gating an endpoint on a rule from itasks.core.policy"""

    async def checker(current_user: User = Depends(get_current_user)) -> User:
        if not check(current_user):
            raise InsufficientRoleError(detail)
        return current_user

    return checker


require_admin = require_policy(policy.can_administer, "Forbidden: only Admin can perform this action")
require_manager = require_policy(policy.is_manager, "Forbidden: only Admin and TeamLead can perform this action")
require_sla_viewer = require_policy(
    policy.can_view_sla, "Forbidden: only Admin and TeamLead can view the SLA dashboard"
)


async def get_sla_policy(db: AsyncSession = Depends(get_db)) -> SlaPolicy:
    """SLA policy from the persisted system configuration"""
    return SlaPolicy.from_system_config(await crud.system_config.get_system_config(db))


async def get_scheduling_timezone(db: AsyncSession = Depends(get_db)) -> str:
    return scheduling_timezone(await crud.system_config.get_system_config(db))


def get_attachment_storage() -> AttachmentStorage:
    return AttachmentStorage()


def request_origin(request: Request) -> dict:
    return {
        "ip_address": request.client.host if request.client else None,
        "user_agent": request.headers.get("user-agent"),
    }


async def get_lifecycle_manager(
        request: Request,
        db: AsyncSession = Depends(get_db),
        sla_policy: SlaPolicy = Depends(get_sla_policy),
        storage: AttachmentStorage = Depends(get_attachment_storage),
) -> TaskLifecycleManager:
    return TaskLifecycleManager(db, sla_policy, event_bus, storage=storage, origin=request_origin(request))


async def get_recurring_generator(
        db: AsyncSession = Depends(get_db),
        sla_policy: SlaPolicy = Depends(get_sla_policy),
        tz: str = Depends(get_scheduling_timezone),
) -> RecurringTaskGenerator:
    return RecurringTaskGenerator(db, sla_policy, event_bus, timezone=tz)
