"""
Recurring task generation: cron scheduling, idempotency and failure isolation
"""
import pytest
from datetime import datetime, timezone
from sqlalchemy import select

from itasks.core import recurring
from itasks.core.events import RecurringTaskGenerated
from itasks.core.recurring import (
    RecurringTaskGenerator, cron_matches, is_due, next_run_after, validate_cron,
)
from itasks.db import crud
from itasks.db.models import Task, TaskType, TaskPriority
from itasks.exceptions.domain import ValidationError
from itasks.utils.helpers import ensure_aware

MARCH_1_9AM = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)
MARCH_1_10AM = datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc)
MARCH_2_9AM = datetime(2024, 3, 2, 9, 0, tzinfo=timezone.utc)


async def make_config(db, assignee_id, name="Daily backup check", **overrides):
    data = {
        "name": name,
        "cron": "0 9 * * *",
        "enabled": True,
        "template_title": "Check nightly backups",
        "template_description": "Verify the backup job logs",
        "template_priority": TaskPriority.HIGH,
        "template_assignee_id": assignee_id,
        "template_branch": "HQ",
        "template_server_name": "backup-01",
        "template_application": "Veeam",
        "next_generation_at": MARCH_1_9AM,
    }
    data.update(overrides)
    return await crud.recurring.create_config(db, data)


@pytest.fixture
def generator(db_session, sla_policy, events):
    return RecurringTaskGenerator(db_session, sla_policy, events, timezone="UTC")


async def generated_tasks(db, config_id=None):
    query = select(Task).where(Task.type == TaskType.RECURRING_INSTANCE)
    if config_id is not None:
        query = query.where(Task.recurring_config_id == config_id)
    return (await db.execute(query)).scalars().all()


class TestCron:

    def test_next_run_strictly_after(self):
        assert next_run_after("0 9 * * *", MARCH_1_9AM) == MARCH_2_9AM
        assert next_run_after("0 9 * * *", MARCH_1_10AM) == MARCH_2_9AM

    def test_next_run_in_timezone(self):
        # 09:00 in Athens (UTC+2 in winter) is 07:00 UTC
        assert next_run_after("0 9 * * *", MARCH_1_10AM, "Europe/Athens") == datetime(2024, 3, 2, 7, tzinfo=timezone.utc)

    def test_cron_matches_minute(self):
        assert cron_matches("0 9 * * *", datetime(2024, 3, 1, 9, 0, 42, tzinfo=timezone.utc))
        assert not cron_matches("0 9 * * *", datetime(2024, 3, 1, 9, 1, tzinfo=timezone.utc))

    @pytest.mark.parametrize("expr", ["", "0 9 * *", "61 9 * * *", "not a cron", "0 9 * * * *"])
    def test_invalid_expressions(self, expr):
        with pytest.raises(ValidationError):
            validate_cron(expr)

    def test_normalises_whitespace(self):
        assert validate_cron("  0   9 * *  1-5 ") == "0 9 * * 1-5"


class TestEvaluate:

    async def test_generates_once_and_advances(self, db_session, generator, tech, published):
        config = await make_config(db_session, tech.id)

        result = await generator.evaluate_recurring([config], MARCH_1_10AM)
        assert len(result.generated) == 1
        assert result.failures == []

        task = result.generated[0]
        assert task.title == "Check nightly backups"
        assert task.description == "Verify the backup job logs"
        assert task.priority == TaskPriority.HIGH
        assert task.assignee_id == tech.id
        assert task.branch == "HQ"
        assert task.context.server_name == "backup-01"
        assert task.context.application == "Veeam"
        assert task.type == TaskType.RECURRING_INSTANCE
        assert task.recurring_config_id == config.id

        config = await crud.recurring.get_config_by_id(db_session, config.id)
        assert ensure_aware(config.last_generated_at) == MARCH_1_10AM
        assert ensure_aware(config.next_generation_at) == MARCH_2_9AM
        assert any(isinstance(e, RecurringTaskGenerated) for e in published)

        again = await generator.evaluate_recurring([config], MARCH_1_10AM)
        assert again.generated == []
        assert len(await generated_tasks(db_session, config.id)) == 1

    async def test_disabled_config_skipped(self, db_session, generator, tech):
        config = await make_config(db_session, tech.id, enabled=False)
        result = await generator.evaluate_recurring([config], MARCH_1_10AM)
        assert result.generated == []

    async def test_unset_schedule_initialised_without_generating(self, db_session, generator, tech):
        config = await make_config(db_session, tech.id, next_generation_at=None)

        result = await generator.evaluate_recurring([config], MARCH_1_10AM)
        assert result.generated == []
        config = await crud.recurring.get_config_by_id(db_session, config.id)
        assert ensure_aware(config.next_generation_at) == MARCH_2_9AM

    async def test_unset_schedule_generates_on_matching_minute(self, db_session, generator, tech):
        config = await make_config(db_session, tech.id, next_generation_at=None)
        result = await generator.evaluate_recurring([config], MARCH_1_9AM)
        assert len(result.generated) == 1

    async def test_failure_is_isolated(self, db_session, generator, tech):
        broken = await make_config(db_session, None, name="Orphaned")
        healthy = await make_config(db_session, tech.id, name="Healthy")
        broken_id, healthy_id = broken.id, healthy.id

        result = await generator.evaluate_recurring([broken, healthy], MARCH_1_10AM)

        assert [f.config_name for f in result.failures] == ["Orphaned"]
        assert result.failures[0].error_type == "ValidationError"
        assert [t.recurring_config_id for t in result.generated] == [healthy_id]

        broken = await crud.recurring.get_config_by_id(db_session, broken_id)
        assert ensure_aware(broken.next_generation_at) == MARCH_1_9AM
        assert broken.last_generated_at is None

    async def test_failure_after_success_keeps_results_readable(self, db_session, generator, tech):
        healthy = await make_config(db_session, tech.id, name="A healthy")
        unscheduled = await make_config(db_session, tech.id, name="B unscheduled", next_generation_at=None)
        broken = await make_config(db_session, None, name="C broken")
        healthy_id, unscheduled_id = healthy.id, unscheduled.id

        result = await generator.evaluate_recurring([healthy, unscheduled, broken], MARCH_1_10AM)

        assert [f.config_name for f in result.failures] == ["C broken"]
        assert len(result.generated) == 1
        task = result.generated[0]
        assert task.title == "Check nightly backups"
        assert task.assignee.email == "tech@helpdesk.io"
        assert task.recurring_config_id == healthy_id
        assert [c.id for c in result.updated_configs] == [healthy_id, unscheduled_id]
        assert [c.name for c in result.updated_configs] == ["A healthy", "B unscheduled"]
        assert ensure_aware(result.updated_configs[0].next_generation_at) == MARCH_2_9AM
        assert ensure_aware(result.updated_configs[1].next_generation_at) == MARCH_2_9AM

    async def test_config_locks_are_released(self, db_session, generator, tech):
        config = await make_config(db_session, tech.id)
        config_id = config.id

        await generator.evaluate_recurring([config], MARCH_1_10AM)
        await generator.run_now(config_id, MARCH_1_10AM)

        assert config_id not in recurring._config_locks

    async def test_invalid_stored_cron_is_a_failure(self, db_session, generator, tech):
        config = await make_config(db_session, tech.id, cron="every morning")
        result = await generator.evaluate_recurring([config], MARCH_1_10AM)
        assert len(result.failures) == 1
        assert result.generated == []


class TestRunNow:

    async def test_run_now_then_evaluate_generates_once(self, db_session, generator, tech):
        config = await make_config(db_session, tech.id)

        task = await generator.run_now(config.id, MARCH_1_10AM)
        assert task.recurring_config_id == config.id

        result = await generator.evaluate_recurring([config], MARCH_1_10AM)
        assert result.generated == []
        assert len(await generated_tasks(db_session, config.id)) == 1

    async def test_run_now_ignores_schedule(self, db_session, generator, tech):
        config = await make_config(db_session, tech.id, next_generation_at=MARCH_2_9AM)
        await generator.run_now(config.id, MARCH_1_10AM)

        config = await crud.recurring.get_config_by_id(db_session, config.id)
        assert ensure_aware(config.last_generated_at) == MARCH_1_10AM


class TestDeleteConfig:

    async def test_generated_tasks_survive(self, db_session, generator, tech):
        config = await make_config(db_session, tech.id)
        task = await generator.run_now(config.id, MARCH_1_10AM)

        await crud.recurring.delete_config(db_session, config)

        assert await crud.recurring.get_config_by_id(db_session, config.id) is None
        stored = await crud.task.get_task_by_id(db_session, task.id)
        assert stored is not None
        assert stored.recurring_config_id is None
        assert stored.title == "Check nightly backups"
