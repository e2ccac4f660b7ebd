# itasks/utils/helpers.py
from datetime import datetime, timezone
from typing import Optional, Dict, Any


def utc_now() -> datetime:
    """Get current UTC datetime"""
    return datetime.now(timezone.utc)


def ensure_aware(dt: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes (as returned by SQLite) as UTC"""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def format_datetime(dt: Optional[datetime]) -> Optional[str]:
    """Format datetime for API responses and log payloads"""
    dt = ensure_aware(dt)
    return dt.isoformat() if dt else None


def enum_value(value):
    return value.value if hasattr(value, "value") else value


def task_snapshot(task) -> Dict[str, Any]:
    """
    JSON-safe snapshot of a task's full state.

    Relationships must already be loaded (context, subscribers); this is what
    survives in the system log after the task row is gone.
    """
    context = task.__dict__.get("context")
    subscribers = task.__dict__.get("subscribers") or []
    return {
        "id": task.id,
        "uuid": str(task.uuid),
        "title": task.title,
        "description": task.description,
        "status": enum_value(task.status),
        "priority": enum_value(task.priority),
        "type": enum_value(task.type),
        "branch": task.branch,
        "due_date": format_datetime(task.due_date),
        "sla_deadline": format_datetime(task.sla_deadline),
        "creator_id": task.creator_id,
        "assignee_id": task.assignee_id,
        "recurring_config_id": task.recurring_config_id,
        "subscriber_ids": sorted(user.id for user in subscribers),
        "context": context.as_dict() if context is not None else None,
        "created_at": format_datetime(task.created_at),
        "updated_at": format_datetime(task.updated_at),
    }
