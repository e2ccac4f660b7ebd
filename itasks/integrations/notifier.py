# itasks/integrations/notifier.py
"""Turns domain events into in-app notifications and emails"""
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from itasks.core import tracing
from itasks.core.config import settings
from itasks.core.events import (
    DomainEvent, TaskCreated, TaskUpdated, TaskStatusChanged, TaskAssigned,
    CommentAdded, UserMentioned, RecurringTaskGenerated,
)
from itasks.db import crud
from itasks.db.models import NotificationType
from itasks.exceptions.domain import DependencyFailure
from itasks.integrations.mailer import Mailer, SmtpSettings


@dataclass(frozen=True)
class Delivery:
    type: NotificationType
    recipient_ids: Tuple[int, ...]
    title: str
    message: str
    template: Optional[str]
    context: Dict


def _recipients(ids, actor_id) -> Tuple[int, ...]:
    return tuple(user_id for user_id in dict.fromkeys(ids) if user_id is not None and user_id != actor_id)


def plan_delivery(event: DomainEvent) -> Optional[Delivery]:
    """Who hears about an event and what they are told"""
    title = event.task_title
    if isinstance(event, RecurringTaskGenerated):
        return Delivery(
            NotificationType.RECURRING_GENERATED, _recipients([event.assignee_id], None),
            "Recurring task created", f"'{title}' was generated by schedule '{event.config_name}'",
            "recurring_generated", {"config_name": event.config_name},
        )
    if isinstance(event, TaskCreated):
        return Delivery(
            NotificationType.TASK_CREATED, _recipients([event.assignee_id], event.actor_id),
            "New task assigned", f"You have been assigned '{title}'",
            "task_created", {"priority": event.priority},
        )
    if isinstance(event, TaskStatusChanged):
        message = f"'{title}' moved from {event.old_status} to {event.new_status}"
        return Delivery(
            NotificationType.TASK_STATUS_CHANGED, _recipients(event.recipient_ids, event.actor_id),
            "Task status changed", message, "task_updated", {"message": message},
        )
    if isinstance(event, TaskUpdated):
        message = f"'{title}' changed: {', '.join(event.changed_fields)}"
        return Delivery(
            NotificationType.TASK_UPDATED, _recipients(event.recipient_ids, event.actor_id),
            "Task updated", message, "task_updated", {"message": message},
        )
    if isinstance(event, TaskAssigned):
        message = f"You have been assigned '{title}'"
        return Delivery(
            NotificationType.TASK_ASSIGNED, _recipients([event.new_assignee_id], event.actor_id),
            "Task assigned", message, "task_updated", {"message": message},
        )
    if isinstance(event, UserMentioned):
        return Delivery(
            NotificationType.USER_MENTIONED, _recipients([event.mentioned_user_id], event.actor_id),
            "You were mentioned", f"You were mentioned on '{title}'",
            "user_mentioned", {"excerpt": event.excerpt},
        )
    if isinstance(event, CommentAdded):
        return Delivery(
            NotificationType.TASK_COMMENTED, _recipients(event.recipient_ids, event.actor_id),
            "New comment", f"New comment on '{title}'",
            "task_commented", {"excerpt": event.excerpt},
        )
    return None


class NotificationDispatcher:
    """
    EventBus subscriber writing Notification rows, then sending email.

    Runs in its own session from ``session_factory``; email failures are
    logged and never undo the in-app notifications.
    """

    def __init__(self, session_factory: Callable, mailer_factory: Callable[[SmtpSettings], Mailer] = Mailer):
        self.session_factory = session_factory
        self.mailer_factory = mailer_factory

    async def __call__(self, event: DomainEvent) -> None:
        delivery = plan_delivery(event)
        if delivery is None or not delivery.recipient_ids:
            return

        async with self.session_factory() as db:
            await crud.notification.create_notifications(
                db, delivery.recipient_ids, delivery.type, delivery.title, delivery.message, event.task_uuid,
            )
            if delivery.template is None:
                return

            smtp = SmtpSettings.from_system_config(await crud.system_config.get_system_config(db))
            if not smtp.enabled:
                return

            users = await crud.get_users_by_ids(db, delivery.recipient_ids)
            actor = await crud.get_user_by_id(db, event.actor_id) if event.actor_id else None
            context = {
                "task_title": event.task_title,
                "task_url": f"{settings.APP_URL.rstrip('/')}/tasks/{event.task_uuid}",
                "actor_name": actor.name if actor else None,
                **delivery.context,
            }
            try:
                await self.mailer_factory(smtp).send(
                    [user.email for user in users if user.is_active], delivery.template, context,
                )
            except DependencyFailure as e:
                tracing.warning(
                    "Email notification failed",
                    event=event.name,
                    task_id=event.task_id,
                    error=e.message,
                )
