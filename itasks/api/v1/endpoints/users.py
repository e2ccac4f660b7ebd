# itasks/api/v1/endpoints/users.py
"""User administration and lookup endpoints"""
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from itasks.db.database import get_db
from itasks.db import crud
from itasks.db.models import User, UserRole, LogEntityType, LogActionType
from itasks.api.v1.lookups import user_or_404
from itasks.api.v1.schemas.users import UserCreate, UserUpdate, UserResponse, UserSummary
from itasks.auth.dependencies import get_current_user, require_admin
from itasks.auth.security import Hasher
from itasks.core import tracing
from itasks.core.pagination import PaginationParams, PaginatedResponse, get_pagination, paginate_query
from itasks.exceptions.auth import UserAlreadyExistsError
from itasks.exceptions.domain import NotFoundError

router = APIRouter()


async def _team_id(db: AsyncSession, team_uuid: Optional[UUID]) -> Optional[int]:
    if team_uuid is None:
        return None
    team = await crud.user.get_team_by_uuid(db, team_uuid)
    if team is None:
        raise NotFoundError("Team", team_uuid)
    return team.id


@router.get("/", response_model=PaginatedResponse[UserResponse])
async def list_users(
        pagination: PaginationParams = Depends(get_pagination),
        role: Optional[UserRole] = Query(None, description="Filter by role"),
        is_active: Optional[bool] = Query(None, description="Filter by active flag"),
        db: AsyncSession = Depends(get_db),
        admin: User = Depends(require_admin),
):
    query = crud.user.users_query(search=pagination.search, role=role, is_active=is_active)
    users, total = await paginate_query(db, query, pagination)
    return PaginatedResponse[UserResponse].build([UserResponse.from_model(u) for u in users], total, pagination)


@router.get("/search", response_model=List[UserSummary])
async def search_users(
        q: str = Query(..., min_length=1, description="Name or email fragment"),
        limit: int = Query(10, ge=1, le=50),
        db: AsyncSession = Depends(get_db),
        current_user: User = Depends(get_current_user),
):
    """Active users for assignee and @mention pickers"""
    return [UserSummary.from_model(user) for user in await crud.search_users(db, q, limit)]


@router.post("/", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
        user_in: UserCreate,
        db: AsyncSession = Depends(get_db),
        admin: User = Depends(require_admin),
):
    if await crud.get_user_by_email(db, user_in.email):
        raise UserAlreadyExistsError()

    team_id = await _team_id(db, user_in.team_id)
    try:
        user = await crud.create_user_db(db, {
            "email": user_in.email.lower(),
            "name": user_in.name,
            "hashed_password": Hasher.get_password_hash(user_in.password),
            "role": user_in.role,
            "team_id": team_id,
        })
        crud.logs.add_system_log(
            db, LogEntityType.USER, LogActionType.CREATE,
            f"User {user.email} created with role {user.role.value}",
            actor_id=admin.id, entity_id=str(user.uuid),
        )
        await db.commit()
    except Exception as e:
        tracing.error("Failed to create user", email=user_in.email, error=str(e))
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Could not create user.")

    tracing.info("User created", user_id=user.id, role=user.role.value, by=admin.id)
    return UserResponse.from_model(await crud.get_user_by_uuid(db, user.uuid))


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
        user_id: UUID,
        db: AsyncSession = Depends(get_db),
        current_user: User = Depends(get_current_user),
):
    return UserResponse.from_model(await user_or_404(db, user_id))


@router.patch("/{user_id}", response_model=UserResponse)
async def update_user(
        user_id: UUID,
        updates: UserUpdate,
        db: AsyncSession = Depends(get_db),
        admin: User = Depends(require_admin),
):
    """Change name, role, team, password or active flag"""
    user = await user_or_404(db, user_id)
    data = updates.model_dump(exclude_unset=True)

    if "team_id" in data:
        data["team_id"] = await _team_id(db, data["team_id"])
    if "password" in data:
        password = data.pop("password")
        if password:
            data["hashed_password"] = Hasher.get_password_hash(password)
    if user.id == admin.id and (data.get("is_active") is False or data.get("role", UserRole.ADMIN) != UserRole.ADMIN):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Admins cannot demote or deactivate themselves")

    user = await crud.update_user_db(db, user, data)
    crud.logs.add_system_log(
        db, LogEntityType.USER, LogActionType.UPDATE,
        f"User {user.email} updated: {', '.join(sorted(data))}",
        actor_id=admin.id, entity_id=str(user.uuid),
    )
    await db.commit()
    return UserResponse.from_model(await crud.get_user_by_uuid(db, user.uuid))
