"""
Task lifecycle manager: creation, edits, status, assignment and deletion
"""
import pytest
from datetime import datetime, timedelta, timezone
from sqlalchemy import select, func

from itasks.core.events import TaskCreated, TaskStatusChanged, TaskUpdated, TaskAssigned
from itasks.core.lifecycle import TASK_DELETE_ORDER
from itasks.db import crud
from itasks.db.models import (
    Task, TaskContext, Comment, CommentMention, AuditLog, SystemLog, Notification,
    TaskStatus, TaskPriority, LogActionType, task_subscribers,
)
from itasks.db.database import AsyncSessionLocal
from itasks.exceptions.domain import AuthorizationError, ValidationError
from itasks.integrations.notifier import NotificationDispatcher
from itasks.utils.helpers import ensure_aware

CREATED = datetime(2024, 1, 1, tzinfo=timezone.utc)


async def count(db, model, *conditions):
    result = await db.execute(select(func.count()).select_from(model).where(*conditions))
    return result.scalar()


class TestCreateTask:

    @pytest.mark.parametrize("priority,hours", [
        (TaskPriority.CRITICAL, 4),
        (TaskPriority.HIGH, 24),
        (TaskPriority.MEDIUM, 48),
        (TaskPriority.LOW, 120),
    ])
    async def test_sla_deadline_from_priority(self, lifecycle, tech, priority, hours):
        task = await lifecycle.create_task({"title": "Printer jam", "priority": priority}, tech, created_at=CREATED)
        assert ensure_aware(task.sla_deadline) == CREATED + timedelta(hours=hours)

    async def test_explicit_deadline_wins(self, lifecycle, tech):
        deadline = CREATED + timedelta(hours=1)
        task = await lifecycle.create_task(
            {"title": "Urgent", "priority": TaskPriority.LOW, "sla_deadline": deadline}, tech, created_at=CREATED,
        )
        assert ensure_aware(task.sla_deadline) == deadline

    async def test_defaults_and_context(self, lifecycle, db_session, tech, other_tech, published):
        task = await lifecycle.create_task({
            "title": "  VPN down  ",
            "subscriber_ids": [other_tech.id],
            "context": {"server_name": "vpn-01", "ip_address": "10.0.0.5"},
        }, tech)

        assert task.title == "VPN down"
        assert task.status == TaskStatus.OPEN
        assert task.priority == TaskPriority.MEDIUM
        assert task.assignee_id == tech.id
        assert task.creator_id == tech.id
        assert [u.id for u in task.subscribers] == [other_tech.id]
        assert task.context.server_name == "vpn-01"
        assert task.context.application is None

        assert [type(e) for e in published] == [TaskCreated]
        assert await count(db_session, AuditLog, AuditLog.task_id == task.id, AuditLog.action == "create") == 1

    async def test_viewer_cannot_create(self, lifecycle, viewer):
        with pytest.raises(AuthorizationError) as exc:
            await lifecycle.create_task({"title": "Nope"}, viewer)
        assert exc.value.message == "Forbidden: viewers cannot create tasks"

    async def test_title_required(self, lifecycle, tech):
        with pytest.raises(ValidationError):
            await lifecycle.create_task({"title": "   "}, tech)

    async def test_sla_before_due_date_rejected(self, lifecycle, tech):
        with pytest.raises(ValidationError):
            await lifecycle.create_task({
                "title": "Bad dates",
                "due_date": CREATED + timedelta(days=2),
                "sla_deadline": CREATED + timedelta(days=1),
            }, tech, created_at=CREATED)


class TestEditTask:

    async def test_title_is_immutable(self, lifecycle, db_session, tech):
        task = await lifecycle.create_task({"title": "Original"}, tech)

        with pytest.raises(ValidationError) as exc:
            await lifecycle.edit_task(task.id, {"title": "Renamed", "description": "x"}, tech)
        assert exc.value.field == "title"

        stored = await crud.task.get_task_by_id(db_session, task.id)
        assert stored.title == "Original"
        assert stored.description == ""

    async def test_priority_change_rederives_deadline(self, lifecycle, tech, published):
        task = await lifecycle.create_task({"title": "Disk full", "priority": TaskPriority.LOW}, tech, created_at=CREATED)
        task = await lifecycle.edit_task(task.id, {"priority": TaskPriority.CRITICAL}, tech)

        assert task.priority == TaskPriority.CRITICAL
        assert ensure_aware(task.sla_deadline) == CREATED + timedelta(hours=4)
        assert isinstance(published[-1], TaskUpdated)
        assert "priority" in published[-1].changed_fields

    async def test_context_upsert(self, lifecycle, tech):
        task = await lifecycle.create_task({"title": "Laptop", "context": {"manufacturer": "Lenovo"}}, tech)
        task = await lifecycle.edit_task(task.id, {"context": {"version": "T14"}}, tech)

        assert task.context.version == "T14"
        assert task.context.manufacturer is None

    async def test_stranger_cannot_edit(self, lifecycle, tech, other_tech):
        task = await lifecycle.create_task({"title": "Mine"}, tech)
        with pytest.raises(AuthorizationError) as exc:
            await lifecycle.edit_task(task.id, {"description": "hijack"}, other_tech)
        assert exc.value.message == "Forbidden: only Admin, TeamLead, the assignee or the creator can edit this task"

    async def test_no_changes_publishes_nothing(self, lifecycle, tech, published):
        task = await lifecycle.create_task({"title": "Same", "branch": "HQ"}, tech)
        published.clear()
        await lifecycle.edit_task(task.id, {"branch": "HQ"}, tech)
        assert published == []


class TestStatus:

    async def test_any_status_to_any_status(self, lifecycle, tech, published):
        task = await lifecycle.create_task({"title": "Flexible"}, tech)

        for status in (TaskStatus.CLOSED, TaskStatus.OPEN, TaskStatus.PENDING_VENDOR, TaskStatus.RESOLVED):
            task = await lifecycle.change_status(task.id, status, tech)
            assert task.status == status

        changes = [e for e in published if isinstance(e, TaskStatusChanged)]
        assert [(e.old_status, e.new_status) for e in changes][:2] == [("Open", "Closed"), ("Closed", "Open")]

    async def test_note_becomes_comment(self, lifecycle, db_session, tech):
        task = await lifecycle.create_task({"title": "With note"}, tech)
        await lifecycle.change_status(task.id, TaskStatus.IN_PROGRESS, tech, note="Looking into it")

        comments = await crud.task.list_task_comments(db_session, task.id)
        assert [c.content for c in comments] == ["Looking into it"]

    async def test_invalid_status(self, lifecycle, tech):
        task = await lifecycle.create_task({"title": "Status"}, tech)
        with pytest.raises(ValidationError):
            await lifecycle.change_status(task.id, "Archived", tech)

    async def test_failing_handler_does_not_undo_change(self, lifecycle, db_session, events, tech, admin):
        task = await lifecycle.create_task({"title": "Notify me"}, tech)

        def broken_mailer(event):
            raise RuntimeError("smtp unreachable")

        events.subscribe(broken_mailer)
        updated = await lifecycle.change_status(task.id, TaskStatus.RESOLVED, admin)

        assert updated.status == TaskStatus.RESOLVED
        stored = await crud.task.get_task_by_id(db_session, task.id)
        assert stored.status == TaskStatus.RESOLVED

    async def test_dispatcher_notifies_followers(self, lifecycle, db_session, events, tech, other_tech, lead):
        events.subscribe(NotificationDispatcher(AsyncSessionLocal))
        task = await lifecycle.create_task({"title": "Follow me", "subscriber_ids": [other_tech.id]}, tech)

        await lifecycle.change_status(task.id, TaskStatus.IN_PROGRESS, lead)

        result = await db_session.execute(select(Notification.user_id).where(Notification.title == "Task status changed"))
        assert sorted(result.scalars().all()) == sorted([tech.id, other_tech.id])


class TestAssignment:

    async def test_only_managers_assign(self, lifecycle, tech, other_tech):
        task = await lifecycle.create_task({"title": "Assign"}, tech)
        with pytest.raises(AuthorizationError) as exc:
            await lifecycle.reassign(task.id, other_tech.id, tech)
        assert exc.value.message == "Forbidden: only Admin and TeamLead can assign tasks"

    async def test_reassign(self, lifecycle, db_session, tech, other_tech, lead, published):
        task = await lifecycle.create_task({"title": "Assign"}, tech)
        task = await lifecycle.reassign(task.id, other_tech.id, lead)

        assert task.assignee_id == other_tech.id
        assert isinstance(published[-1], TaskAssigned)
        assert published[-1].old_assignee_id == tech.id

    async def test_subscribers(self, lifecycle, tech, other_tech, lead):
        task = await lifecycle.create_task({"title": "Team effort"}, tech)
        task = await lifecycle.add_subscriber(task.id, other_tech.id, lead)
        assert [u.id for u in task.subscribers] == [other_tech.id]

        task = await lifecycle.remove_subscriber(task.id, other_tech.id, lead)
        assert task.subscribers == []


class TestDeleteTask:

    def test_delete_order_is_declared(self):
        assert [name for name, _ in TASK_DELETE_ORDER] == [
            "context", "comment_mentions", "comments", "attachments", "audit_logs", "subscribers",
        ]

    async def test_cascade_keeps_system_log(self, lifecycle, db_session, tech, other_tech, lead):
        task = await lifecycle.create_task({
            "title": "Doomed",
            "context": {"server_name": "srv-9"},
            "subscriber_ids": [other_tech.id],
        }, tech)
        task_id = task.id
        await lifecycle.add_comment(task_id, "ping @other@helpdesk.io", tech)

        snapshot = await lifecycle.delete_task(task_id, lead)
        assert snapshot["title"] == "Doomed"
        assert snapshot["subscriber_ids"] == [other_tech.id]
        assert snapshot["context"]["server_name"] == "srv-9"

        assert await count(db_session, Task, Task.id == task_id) == 0
        assert await count(db_session, TaskContext, TaskContext.task_id == task_id) == 0
        assert await count(db_session, Comment, Comment.task_id == task_id) == 0
        assert await count(db_session, CommentMention) == 0
        assert await count(db_session, AuditLog, AuditLog.task_id == task_id) == 0
        assert await count(db_session, task_subscribers, task_subscribers.c.task_id == task_id) == 0

        logs = (await db_session.execute(select(SystemLog).where(SystemLog.task_id == task_id))).scalars().all()
        assert len(logs) >= 2
        deletion = [log for log in logs if log.action_type == LogActionType.DELETE]
        assert len(deletion) == 1
        assert deletion[0].task_title == "Doomed"
        assert deletion[0].details["snapshot"]["id"] == task_id

    async def test_assignee_cannot_delete(self, lifecycle, db_session, tech, lead):
        task = await lifecycle.create_task({"title": "Keep", "assignee_id": tech.id}, lead)
        with pytest.raises(AuthorizationError):
            await lifecycle.delete_task(task.id, tech)
        assert await count(db_session, Task, Task.id == task.id) == 1
