"""
Run one recurring-task evaluation pass.

For deployments that disable the in-process scheduler
(RECURRING_SCHEDULER_ENABLED=false) and drive generation from cron or a
systemd timer instead. Exits non-zero when any config failed.
"""
import asyncio
import sys

from itasks.core import tracing
from itasks.core.events import event_bus
from itasks.core.recurring import evaluate_due_configs
from itasks.db.database import AsyncSessionLocal, engine
from itasks.integrations.notifier import NotificationDispatcher


async def main() -> int:
    tracing.setup_structured_logging()
    event_bus.subscribe(NotificationDispatcher(AsyncSessionLocal))

    async with AsyncSessionLocal() as db:
        result = await evaluate_due_configs(db, event_bus)

    for failure in result.failures:
        tracing.error(
            f"Config '{failure.config_name}' failed",
            config_id=failure.config_id,
            error=failure.error,
            error_type=failure.error_type,
        )
    tracing.info("Recurring generation run complete", **result.summary())
    await engine.dispose()
    return 1 if result.failures else 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
