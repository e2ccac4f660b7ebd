# itasks/core/recurring.py
"""
Recurring task generation.

A config is a cron schedule plus a task template. ``evaluate_recurring``
materialises one task per due config and advances the schedule. Each
config is handled under its own lock and in its own transaction, so a
failing config is retried next cycle without affecting the others, and
overlapping runs cannot generate the same occurrence twice.
"""
import asyncio
import weakref
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional
from zoneinfo import ZoneInfo

from croniter import croniter
from sqlalchemy.ext.asyncio import AsyncSession

from itasks.core import tracing
from itasks.core.config import settings
from itasks.core.events import EventBus, RecurringTaskGenerated
from itasks.core.lifecycle import TaskLifecycleManager
from itasks.core.sla import SlaPolicy
from itasks.db import crud
from itasks.db.models import RecurringTaskConfig, Task, TaskType
from itasks.exceptions.domain import NotFoundError, ValidationError
from itasks.utils.helpers import ensure_aware, utc_now

# Process-wide: every generator in this process serialises on the same config.
# An entry lives only while some run holds or waits on its lock.
_config_locks: "weakref.WeakValueDictionary[int, asyncio.Lock]" = weakref.WeakValueDictionary()


def _config_lock(config_id: int) -> asyncio.Lock:
    lock = _config_locks.get(config_id)
    if lock is None:
        lock = asyncio.Lock()
        _config_locks[config_id] = lock
    return lock


def validate_cron(expr: str) -> str:
    """Normalised five-field cron expression, or ValidationError"""
    expr = " ".join((expr or "").split())
    if len(expr.split(" ")) != 5 or not croniter.is_valid(expr):
        raise ValidationError(f"Invalid cron expression: '{expr}'", field="cron")
    return expr


def _zone(tz: Optional[str]):
    return ZoneInfo(tz) if tz else timezone.utc


def next_run_after(expr: str, moment: datetime, tz: Optional[str] = "UTC") -> datetime:
    """Next cron match strictly after ``moment``, evaluated in ``tz``, returned in UTC"""
    local = ensure_aware(moment).astimezone(_zone(tz))
    return croniter(expr, local).get_next(datetime).astimezone(timezone.utc)


def cron_matches(expr: str, moment: datetime, tz: Optional[str] = "UTC") -> bool:
    """Whether the minute containing ``moment`` matches the expression"""
    minute_start = ensure_aware(moment).astimezone(_zone(tz)).replace(second=0, microsecond=0)
    candidate = croniter(expr, minute_start - timedelta(seconds=1)).get_next(datetime)
    return candidate == minute_start


def is_due(config, now: datetime, tz: Optional[str] = "UTC") -> bool:
    next_at = ensure_aware(config.next_generation_at)
    if next_at is not None:
        return next_at <= ensure_aware(now)
    return cron_matches(config.cron, now, tz)


@dataclass
class GenerationFailure:
    config_id: int
    config_name: str
    error: str
    error_type: str


@dataclass
class GenerationResult:
    generated: List[Task] = field(default_factory=list)
    updated_configs: List[RecurringTaskConfig] = field(default_factory=list)
    failures: List[GenerationFailure] = field(default_factory=list)

    def summary(self) -> dict:
        return {
            "generated": len(self.generated),
            "updated_configs": len(self.updated_configs),
            "failures": len(self.failures),
        }


def template_data(config: RecurringTaskConfig) -> dict:
    """Task creation data copied verbatim from the config template"""
    return {
        "title": config.template_title,
        "description": config.template_description or "",
        "priority": config.template_priority,
        "assignee_id": config.template_assignee_id,
        "branch": config.template_branch,
        "context": config.template_context(),
        "type": TaskType.RECURRING_INSTANCE,
    }


class RecurringTaskGenerator:

    def __init__(
            self,
            db: AsyncSession,
            sla_policy: SlaPolicy,
            events: EventBus,
            timezone: Optional[str] = "UTC",
    ):
        self.db = db
        self.timezone = timezone or "UTC"
        self.lifecycle = TaskLifecycleManager(db, sla_policy, events)

    async def evaluate_recurring(
            self,
            configs: Iterable[RecurringTaskConfig],
            now: Optional[datetime] = None,
    ) -> GenerationResult:
        """
        Generate one task for every due, enabled config.

        Configs with no ``next_generation_at`` are due only when the cron
        matches ``now``; otherwise their schedule is initialised without
        generating.
        """
        now = ensure_aware(now) or utc_now()
        result = GenerationResult()
        # Ids only: a rollback for one config expires every instance in the
        # session, including those from configs committed earlier in the run
        config_ids = [config.id for config in configs]
        generated_ids: List[int] = []
        updated_ids: List[int] = []

        for config_id in config_ids:
            async with _config_lock(config_id):
                config = await crud.recurring.get_config_by_id(self.db, config_id)
                if config is None or not config.enabled:
                    continue
                name = config.name

                try:
                    if not is_due(config, now, self.timezone):
                        if config.next_generation_at is None:
                            config.next_generation_at = next_run_after(config.cron, now, self.timezone)
                            await self.lifecycle.commit()
                            updated_ids.append(config_id)
                        continue

                    task = await self._generate(config, now)
                    generated_ids.append(task.id)
                    updated_ids.append(config_id)
                except Exception as e:
                    await self.lifecycle.rollback()
                    result.failures.append(GenerationFailure(config_id, name, str(e), type(e).__name__))
                    tracing.error(
                        "Recurring task generation failed",
                        config_id=config_id,
                        config_name=name,
                        error=str(e),
                        type=type(e).__name__,
                    )

        for task_id in generated_ids:
            task = await crud.task.get_task_by_id(self.db, task_id)
            if task is not None:
                result.generated.append(task)
        for config_id in updated_ids:
            config = await crud.recurring.get_config_by_id(self.db, config_id)
            if config is not None:
                result.updated_configs.append(config)

        tracing.info("Recurring evaluation finished", now=now.isoformat(), **result.summary())
        return result

    async def run_now(self, config_id: int, now: Optional[datetime] = None) -> Task:
        """Generate immediately regardless of the schedule, then advance it"""
        now = ensure_aware(now) or utc_now()
        async with _config_lock(config_id):
            config = await crud.recurring.get_config_by_id(self.db, config_id)
            if config is None:
                raise NotFoundError("Recurring config", config_id)
            try:
                return await self._generate(config, now)
            except Exception as e:
                await self.lifecycle.rollback()
                tracing.error("Manual recurring run failed", config_id=config_id, error=str(e))
                raise

    async def _generate(self, config: RecurringTaskConfig, now: datetime) -> Task:
        next_at = next_run_after(config.cron, now, self.timezone)

        if config.template_assignee_id is None:
            raise ValidationError("Recurring config has no template assignee", field="template_assignee_id")
        assignee = config.template_assignee
        if assignee is None:
            raise NotFoundError("User", config.template_assignee_id)

        task = await self.lifecycle.create_task(
            template_data(config),
            actor=assignee,
            created_at=now,
            recurring_config=config,
            commit=False,
        )
        config.last_generated_at = now
        config.next_generation_at = next_at
        self.lifecycle.queue(RecurringTaskGenerated(
            task_id=task.id, task_uuid=task.uuid, task_title=task.title, actor_id=None,
            config_id=config.id, config_name=config.name, assignee_id=assignee.id,
        ))
        await self.lifecycle.commit()

        tracing.info(
            "Recurring task generated",
            config_id=config.id,
            task_id=task.id,
            next_generation_at=next_at.isoformat(),
        )
        return await crud.task.get_task_by_id(self.db, task.id)


def scheduling_timezone(system_config) -> str:
    """Timezone cron expressions run in: system config, else settings"""
    if system_config is not None and system_config.timezone:
        return system_config.timezone
    return settings.RECURRING_TIMEZONE


async def evaluate_due_configs(db: AsyncSession, events: EventBus, now: Optional[datetime] = None) -> GenerationResult:
    """One scheduler pass over every enabled config, using the persisted SLA and timezone settings"""
    system_config = await crud.system_config.get_system_config(db)
    generator = RecurringTaskGenerator(
        db,
        SlaPolicy.from_system_config(system_config),
        events,
        timezone=scheduling_timezone(system_config),
    )
    configs = await crud.recurring.list_configs(db, enabled_only=True)
    return await generator.evaluate_recurring(configs, now)
