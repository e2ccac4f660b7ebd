# itasks/api/v1/schemas/dashboard.py
from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, UUID4

from itasks.api.v1.schemas.tasks import TaskSummary
from itasks.api.v1.schemas.users import UserSummary
from itasks.db.models import TaskPriority


class DailyVolume(BaseModel):
    day: date
    count: int


class PriorityCount(BaseModel):
    priority: TaskPriority
    count: int


class BranchCount(BaseModel):
    branch: str
    count: int


class ActivityEntry(BaseModel):
    task_id: UUID4
    task_title: str
    action: str
    actor: Optional[UserSummary] = None
    created_at: datetime

    @classmethod
    def from_model(cls, entry, task):
        return cls(
            task_id=task.uuid,
            task_title=task.title,
            action=entry.action,
            actor=UserSummary.from_model(entry.__dict__.get("actor")),
            created_at=entry.created_at,
        )


class DashboardResponse(BaseModel):
    """Headline counts are scoped by role; my_day and my_open_tasks are always personal"""
    open: int
    overdue: int
    sla_breaches: int
    critical: int
    my_day: List[TaskSummary]
    my_open_tasks: List[TaskSummary]
    weekly_volume: List[DailyVolume]
    priority_distribution: List[PriorityCount]
    branch_distribution: List[BranchCount]
    stale_tasks: List[TaskSummary]
    recent_activity: List[ActivityEntry]

    @classmethod
    def from_stats(cls, stats):
        return cls(
            open=stats.open,
            overdue=stats.overdue,
            sla_breaches=stats.sla_breaches,
            critical=stats.critical,
            my_day=[TaskSummary.from_model(t) for t in stats.my_day],
            my_open_tasks=[TaskSummary.from_model(t) for t in stats.my_open_tasks],
            weekly_volume=[DailyVolume(day=day, count=count) for day, count in stats.weekly_volume],
            priority_distribution=[
                PriorityCount(priority=priority, count=count) for priority, count in stats.priority_distribution
            ],
            branch_distribution=[BranchCount(branch=branch, count=count) for branch, count in stats.branch_distribution],
            stale_tasks=[TaskSummary.from_model(t) for t in stats.stale_tasks],
            recent_activity=[ActivityEntry.from_model(entry, task) for entry, task in stats.recent_activity],
        )
