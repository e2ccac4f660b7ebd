# itasks/api/v1/endpoints/sla.py
from datetime import timedelta

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from itasks.db.database import get_db
from itasks.db import crud
from itasks.db.models import User
from itasks.api.v1.schemas.system import SlaReport, SlaTaskItem
from itasks.auth.dependencies import require_sla_viewer
from itasks.core.config import settings
from itasks.core.sla import classify_sla, hours_remaining
from itasks.utils.helpers import utc_now

router = APIRouter()


@router.get("/", response_model=SlaReport)
async def sla_dashboard(
        db: AsyncSession = Depends(get_db),
        current_user: User = Depends(require_sla_viewer),
):
    """Overdue and approaching open tasks, Critical first then soonest deadline"""
    now = utc_now()
    window_hours = settings.SLA_APPROACHING_WINDOW_HOURS
    classification = classify_sla(await crud.task.get_monitored_tasks(db), now, timedelta(hours=window_hours))
    return SlaReport(
        generated_at=now,
        approaching_window_hours=window_hours,
        overdue=[SlaTaskItem.from_task(task, hours_remaining(task, now)) for task in classification.overdue],
        approaching=[SlaTaskItem.from_task(task, hours_remaining(task, now)) for task in classification.approaching],
    )
