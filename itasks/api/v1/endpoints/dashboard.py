# itasks/api/v1/endpoints/dashboard.py
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from itasks.db.database import get_db
from itasks.db.models import User
from itasks.api.v1.schemas.dashboard import DashboardResponse
from itasks.auth.dependencies import get_current_user, get_scheduling_timezone
from itasks.core.dashboard import get_dashboard_stats

router = APIRouter()


@router.get("/", response_model=DashboardResponse)
async def get_dashboard(
        db: AsyncSession = Depends(get_db),
        current_user: User = Depends(get_current_user),
        tz: str = Depends(get_scheduling_timezone),
):
    """
    Dashboard for the current user.

    Admins see figures for every task, TeamLeads for their team, everyone
    else for tasks they are assigned to or created.
    """
    return DashboardResponse.from_stats(await get_dashboard_stats(db, current_user, tz))
