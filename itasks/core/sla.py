# itasks/core/sla.py
"""SLA deadline derivation and overdue/approaching classification.

Everything here is pure: the policy is passed in explicitly and "now" is
always an argument, so the same functions serve the API, the recurring
generator and the tests.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional

from itasks.core.config import settings
from itasks.db.models.enums import TaskPriority, TaskStatus
from itasks.utils.helpers import ensure_aware

DEFAULT_SLA_HOURS = {
    TaskPriority.CRITICAL: 4,
    TaskPriority.HIGH: 24,
    TaskPriority.MEDIUM: 48,
    TaskPriority.LOW: 120,
}

DEFAULT_APPROACHING_WINDOW = timedelta(hours=24)


@dataclass(frozen=True)
class SlaPolicy:
    """Per-priority SLA offsets in hours; None or <= 0 means no deadline"""
    hours: Dict[TaskPriority, Optional[int]] = field(default_factory=lambda: dict(DEFAULT_SLA_HOURS))
    approaching_window: timedelta = DEFAULT_APPROACHING_WINDOW

    def hours_for(self, priority) -> Optional[int]:
        hours = self.hours.get(TaskPriority(priority))
        if hours is None or hours <= 0:
            return None
        return hours

    @classmethod
    def from_settings(cls) -> "SlaPolicy":
        return cls(
            hours={TaskPriority(name): hours for name, hours in settings.sla_default_hours.items()},
            approaching_window=timedelta(hours=settings.SLA_APPROACHING_WINDOW_HOURS),
        )

    @classmethod
    def from_system_config(cls, config) -> "SlaPolicy":
        """Build from the persisted system_config row, falling back to settings"""
        if config is None:
            return cls.from_settings()
        return cls(
            hours={
                TaskPriority.CRITICAL: config.sla_critical_hours,
                TaskPriority.HIGH: config.sla_high_hours,
                TaskPriority.MEDIUM: config.sla_medium_hours,
                TaskPriority.LOW: config.sla_low_hours,
            },
            approaching_window=timedelta(hours=settings.SLA_APPROACHING_WINDOW_HOURS),
        )


@dataclass
class SlaClassification:
    overdue: List = field(default_factory=list)
    approaching: List = field(default_factory=list)


def compute_sla_deadline(priority, created_at: datetime, policy: SlaPolicy) -> Optional[datetime]:
    """created_at + hours[priority], or None when the priority has no SLA"""
    hours = policy.hours_for(priority)
    if hours is None:
        return None
    return ensure_aware(created_at) + timedelta(hours=hours)


def is_terminal(status) -> bool:
    return TaskStatus(status).is_terminal


def is_overdue(task, now: datetime) -> bool:
    now = ensure_aware(now)
    due_date = ensure_aware(task.due_date)
    sla_deadline = ensure_aware(task.sla_deadline)
    return (due_date is not None and due_date < now) or (sla_deadline is not None and sla_deadline < now)


def is_approaching(task, now: datetime, window: timedelta = DEFAULT_APPROACHING_WINDOW) -> bool:
    now = ensure_aware(now)
    sla_deadline = ensure_aware(task.sla_deadline)
    if sla_deadline is None or is_overdue(task, now):
        return False
    return now <= sla_deadline <= now + window


def _overdue_deadline(task, now: datetime) -> datetime:
    passed = [
        deadline for deadline in (ensure_aware(task.due_date), ensure_aware(task.sla_deadline))
        if deadline is not None and deadline < now
    ]
    return min(passed)


def _display_order(task, deadline: datetime):
    return -TaskPriority(task.priority).rank, deadline


def classify_sla(
        tasks: Iterable,
        now: datetime,
        window: timedelta = DEFAULT_APPROACHING_WINDOW,
) -> SlaClassification:
    """
    Split tasks into overdue and approaching lists.

    Terminal tasks are never classified. Both lists are ordered by priority
    (Critical first) and then by the deadline that put the task there,
    soonest first.
    """
    now = ensure_aware(now)
    overdue, approaching = [], []

    for task in tasks:
        if is_terminal(task.status):
            continue
        if is_overdue(task, now):
            overdue.append((_display_order(task, _overdue_deadline(task, now)), task))
        elif is_approaching(task, now, window):
            approaching.append((_display_order(task, ensure_aware(task.sla_deadline)), task))

    overdue.sort(key=lambda pair: pair[0])
    approaching.sort(key=lambda pair: pair[0])
    return SlaClassification(
        overdue=[task for _, task in overdue],
        approaching=[task for _, task in approaching],
    )


def hours_remaining(task, now: datetime) -> Optional[int]:
    """Whole hours until the SLA deadline, floored and never negative"""
    sla_deadline = ensure_aware(task.sla_deadline)
    if sla_deadline is None:
        return None
    remaining = max(timedelta(0), sla_deadline - ensure_aware(now))
    return int(remaining // timedelta(hours=1))
