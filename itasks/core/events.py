# itasks/core/events.py
"""Domain events and the in-process bus that delivers them.

The lifecycle core publishes events after its transaction commits;
subscribers (in-app notifications, email) run afterwards and their
failures are contained here.
"""
import inspect
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple
from uuid import UUID

from itasks.core import tracing
from itasks.exceptions.domain import DependencyFailure


@dataclass(frozen=True)
class DomainEvent:
    task_id: int
    task_uuid: UUID
    task_title: str
    actor_id: Optional[int]

    @property
    def name(self) -> str:
        return type(self).__name__


@dataclass(frozen=True)
class TaskCreated(DomainEvent):
    assignee_id: int = None
    priority: str = None


@dataclass(frozen=True)
class TaskUpdated(DomainEvent):
    changed_fields: Tuple[str, ...] = ()
    recipient_ids: Tuple[int, ...] = ()


@dataclass(frozen=True)
class TaskStatusChanged(DomainEvent):
    old_status: str = None
    new_status: str = None
    recipient_ids: Tuple[int, ...] = ()


@dataclass(frozen=True)
class TaskAssigned(DomainEvent):
    old_assignee_id: Optional[int] = None
    new_assignee_id: int = None


@dataclass(frozen=True)
class CommentAdded(DomainEvent):
    comment_id: int = None
    excerpt: str = ""
    recipient_ids: Tuple[int, ...] = ()


@dataclass(frozen=True)
class UserMentioned(DomainEvent):
    comment_id: int = None
    mentioned_user_id: int = None
    excerpt: str = ""


@dataclass(frozen=True)
class RecurringTaskGenerated(DomainEvent):
    config_id: int = None
    config_name: str = None
    assignee_id: int = None


Handler = Callable[[DomainEvent], object]


@dataclass
class EventBus:
    """Fan-out to subscribers; a failing handler is logged and skipped"""
    handlers: List[Handler] = field(default_factory=list)

    def subscribe(self, handler: Handler) -> Handler:
        if handler not in self.handlers:
            self.handlers.append(handler)
        return handler

    def unsubscribe(self, handler: Handler) -> None:
        if handler in self.handlers:
            self.handlers.remove(handler)

    async def publish(self, event: DomainEvent) -> List[DependencyFailure]:
        failures = []
        for handler in list(self.handlers):
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                failure = DependencyFailure(getattr(handler, "__qualname__", repr(handler)), str(e))
                failures.append(failure)
                tracing.error(
                    f"Event handler failed for {event.name}",
                    handler=failure.dependency,
                    error=str(e),
                    type=type(e).__name__,
                    task_id=event.task_id,
                )
        return failures

    async def publish_all(self, events) -> List[DependencyFailure]:
        failures = []
        for event in events:
            failures.extend(await self.publish(event))
        return failures


# Application-wide bus; the notification dispatcher subscribes at startup
event_bus = EventBus()
