# itasks/core/dashboard.py
"""
Dashboard statistics.

Days are calendar days in the scheduling timezone, so "due today" and the
weekly volume line up with when recurring tasks are generated.
"""
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from typing import List, Optional, Tuple
from zoneinfo import ZoneInfo

from sqlalchemy.ext.asyncio import AsyncSession

from itasks.core import tracing
from itasks.db import crud
from itasks.db.models import AuditLog, Task, TaskPriority, TaskStatus, User
from itasks.utils.helpers import ensure_aware, utc_now

STALE_AFTER = timedelta(days=7)
WEEK_DAYS = 7


@dataclass
class DashboardStats:
    open: int
    overdue: int
    sla_breaches: int
    critical: int
    my_day: List[Task] = field(default_factory=list)
    my_open_tasks: List[Task] = field(default_factory=list)
    weekly_volume: List[Tuple[date, int]] = field(default_factory=list)
    priority_distribution: List[Tuple[TaskPriority, int]] = field(default_factory=list)
    branch_distribution: List[Tuple[str, int]] = field(default_factory=list)
    stale_tasks: List[Task] = field(default_factory=list)
    recent_activity: List[Tuple[AuditLog, Task]] = field(default_factory=list)


def _day_start(day: date, zone) -> datetime:
    return datetime.combine(day, time(), tzinfo=zone).astimezone(timezone.utc)


def open_task_order(task: Task):
    """Highest priority first, then earliest SLA deadline; tasks without one last"""
    deadline = ensure_aware(task.sla_deadline)
    return -task.priority.rank, deadline is None, deadline or datetime.min.replace(tzinfo=timezone.utc)


def weekly_buckets(created: List[datetime], today: date, zone) -> List[Tuple[date, int]]:
    days = [today - timedelta(days=offset) for offset in range(WEEK_DAYS - 1, -1, -1)]
    counts = dict.fromkeys(days, 0)
    for moment in created:
        day = ensure_aware(moment).astimezone(zone).date()
        if day in counts:
            counts[day] += 1
    return list(counts.items())


async def get_dashboard_stats(
        db: AsyncSession,
        user: User,
        tz: Optional[str] = "UTC",
        now: Optional[datetime] = None,
) -> DashboardStats:
    now = ensure_aware(now) or utc_now()
    zone = ZoneInfo(tz) if tz else timezone.utc
    today = now.astimezone(zone).date()
    active = crud.dashboard.ACTIVE

    stats = DashboardStats(
        open=await crud.dashboard.count_tasks(db, user, Task.status == TaskStatus.OPEN),
        overdue=await crud.dashboard.count_tasks(db, user, active, Task.due_date < now),
        sla_breaches=await crud.dashboard.count_tasks(db, user, active, Task.sla_deadline < now),
        critical=await crud.dashboard.count_tasks(db, user, Task.priority == TaskPriority.CRITICAL),
    )

    stats.my_day = await crud.dashboard.list_my_day(
        db, user, _day_start(today, zone), _day_start(today + timedelta(days=1), zone), now
    )
    stats.my_open_tasks = sorted(await crud.dashboard.list_my_open_tasks(db, user), key=open_task_order)

    first_day = today - timedelta(days=WEEK_DAYS - 1)
    created = await crud.dashboard.list_creation_times(db, user, _day_start(first_day, zone))
    stats.weekly_volume = weekly_buckets(created, today, zone)

    by_priority = await crud.dashboard.count_active_by_priority(db, user)
    stats.priority_distribution = [
        (priority, by_priority.get(priority, 0))
        for priority in sorted(TaskPriority, key=lambda p: p.rank, reverse=True)
    ]
    stats.branch_distribution = await crud.dashboard.count_active_by_branch(db, user)
    stats.stale_tasks = await crud.dashboard.list_stale_tasks(db, user, now - STALE_AFTER)
    stats.recent_activity = await crud.dashboard.list_recent_activity(db, user)

    tracing.debug(
        "Dashboard computed",
        user_id=user.id,
        open=stats.open,
        overdue=stats.overdue,
        sla_breaches=stats.sla_breaches,
    )
    return stats
