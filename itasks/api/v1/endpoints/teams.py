# itasks/api/v1/endpoints/teams.py
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from itasks.db.database import get_db
from itasks.db import crud
from itasks.db.models import User, LogEntityType, LogActionType
from itasks.api.v1.schemas.users import TeamCreate, TeamUpdate, TeamResponse
from itasks.auth.dependencies import get_current_user, require_admin
from itasks.exceptions.domain import NotFoundError

router = APIRouter()


@router.get("/", response_model=List[TeamResponse])
async def list_teams(db: AsyncSession = Depends(get_db), current_user: User = Depends(get_current_user)):
    return [TeamResponse.from_model(team) for team in await crud.user.list_teams(db)]


@router.post("/", response_model=TeamResponse, status_code=status.HTTP_201_CREATED)
async def create_team(team_in: TeamCreate, db: AsyncSession = Depends(get_db), admin: User = Depends(require_admin)):
    if await crud.user.get_team_by_name(db, team_in.name):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Team with this name already exists")

    team = await crud.user.create_team(db, team_in.name, team_in.description)
    crud.logs.add_system_log(
        db, LogEntityType.TEAM, LogActionType.CREATE, f"Team {team.name} created",
        actor_id=admin.id, entity_id=str(team.uuid),
    )
    await db.commit()
    return TeamResponse.from_model(team)


@router.patch("/{team_id}", response_model=TeamResponse)
async def update_team(
        team_id: UUID,
        updates: TeamUpdate,
        db: AsyncSession = Depends(get_db),
        admin: User = Depends(require_admin),
):
    team = await crud.user.get_team_by_uuid(db, team_id)
    if team is None:
        raise NotFoundError("Team", team_id)

    team = await crud.user.update_team(db, team, updates.model_dump(exclude_unset=True))
    crud.logs.add_system_log(
        db, LogEntityType.TEAM, LogActionType.UPDATE, f"Team {team.name} updated",
        actor_id=admin.id, entity_id=str(team.uuid),
    )
    await db.commit()
    return TeamResponse.from_model(team)
