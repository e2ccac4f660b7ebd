# itasks/core/lifecycle.py
"""
Task lifecycle: creation, status, assignment, edits, deletion and comments.

Every mutating operation follows the same shape: load, authorize through
``itasks.core.policy``, mutate, stage audit/system log rows, commit, then
publish domain events. Events only leave the manager after a successful
commit, so subscribers never observe state that was rolled back.
"""
from typing import Any, Dict, Iterable, List, Mapping, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from itasks.core import policy, tracing
from itasks.core.events import (
    EventBus, DomainEvent, TaskCreated, TaskUpdated, TaskStatusChanged,
    TaskAssigned, CommentAdded, UserMentioned,
)
from itasks.core.sla import SlaPolicy, compute_sla_deadline
from itasks.db import crud
from itasks.db.models import (
    Task, TaskContext, Comment, CommentMention, Attachment, AuditLog, User,
    TaskStatus, TaskPriority, TaskType, LogEntityType, LogActionType, task_subscribers,
)
from itasks.exceptions.domain import AuthorizationError, NotFoundError, ValidationError, DependencyFailure
from itasks.utils.helpers import utc_now, ensure_aware, enum_value, format_datetime, task_snapshot
from itasks.utils.mentions import extract_mention_emails, merge_mentions

FORBIDDEN_MANAGE = "Forbidden: only Admin, TeamLead, the assignee or the creator can {action} this task"
FORBIDDEN_ASSIGN = "Forbidden: only Admin and TeamLead can assign tasks"
FORBIDDEN_SUBSCRIBERS = "Forbidden: only Admin and TeamLead can change task technicians"
FORBIDDEN_DELETE = "Forbidden: only Admin, TeamLead or the creator can delete this task"
FORBIDDEN_COMMENT_DELETE = "Forbidden: only the author or an Admin can delete this comment"
FORBIDDEN_VIEWER = "Forbidden: viewers cannot {action}"

EDITABLE_FIELDS = ("description", "priority", "due_date", "sla_deadline", "branch", "context")
CREATE_FIELDS = (
    "title", "description", "priority", "assignee_id", "due_date", "sla_deadline",
    "branch", "context", "subscriber_ids", "type",
)

# Rows that reference a task, cleared in this order before the task row itself
TASK_DELETE_ORDER = (
    ("context", lambda task_id: delete(TaskContext).where(TaskContext.task_id == task_id)),
    ("comment_mentions", lambda task_id: delete(CommentMention).where(
        CommentMention.comment_id.in_(select(Comment.id).where(Comment.task_id == task_id))
    )),
    ("comments", lambda task_id: delete(Comment).where(Comment.task_id == task_id)),
    ("attachments", lambda task_id: delete(Attachment).where(Attachment.task_id == task_id)),
    ("audit_logs", lambda task_id: delete(AuditLog).where(AuditLog.task_id == task_id)),
    ("subscribers", lambda task_id: delete(task_subscribers).where(task_subscribers.c.task_id == task_id)),
)


def _parse_enum(enum_cls, value, field: str):
    try:
        return enum_cls(enum_value(value))
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(f"Invalid {field} '{value}'; expected one of: {allowed}", field=field)


def _context_values(context: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """All eight context fields; missing keys become None"""
    context = context or {}
    unknown = set(context) - set(TaskContext.FIELDS)
    if unknown:
        raise ValidationError(f"Unknown context field(s): {', '.join(sorted(unknown))}", field="context")
    return {name: context.get(name) for name in TaskContext.FIELDS}


def _check_deadlines(due_date, sla_deadline):
    if due_date is not None and sla_deadline is not None and ensure_aware(sla_deadline) < ensure_aware(due_date):
        raise ValidationError("SLA deadline cannot be before the due date", field="sla_deadline")


def _excerpt(content: str, length: int = 140) -> str:
    return content if len(content) <= length else content[:length - 3] + "..."


class TaskLifecycleManager:
    """Owns task state transitions and their side effects"""

    def __init__(
            self,
            db: AsyncSession,
            sla_policy: SlaPolicy,
            events: EventBus,
            storage=None,
            origin: Optional[Dict[str, str]] = None,
    ):
        self.db = db
        self.sla_policy = sla_policy
        self.events = events
        self.storage = storage
        self.origin = origin or {}
        self._pending: List[DomainEvent] = []

    # Transaction helpers

    def queue(self, event: DomainEvent) -> None:
        self._pending.append(event)

    async def commit(self) -> None:
        """Commit, then publish whatever the committed work emitted"""
        await self.db.commit()
        pending, self._pending = self._pending, []
        await self.events.publish_all(pending)

    async def rollback(self) -> None:
        self._pending = []
        await self.db.rollback()

    def _system_log(self, entity_type, action_type, description, actor=None, **kwargs):
        return crud.logs.add_system_log(
            self.db,
            entity_type=entity_type,
            action_type=action_type,
            description=description,
            actor_id=actor.id if actor is not None else None,
            ip_address=self.origin.get("ip_address"),
            user_agent=self.origin.get("user_agent"),
            **kwargs,
        )

    async def _load_task(self, task_id: int) -> Task:
        task = await crud.task.get_task_by_id(self.db, task_id)
        if task is None:
            raise NotFoundError("Task", task_id)
        return task

    async def _load_user(self, user_id: int) -> User:
        user = await crud.get_user_by_id(self.db, user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    @staticmethod
    def _followers(task: Task, exclude: Optional[int] = None) -> tuple:
        ids = [task.assignee_id, task.creator_id] + [user.id for user in task.subscribers]
        return tuple(user_id for user_id in dict.fromkeys(ids) if user_id is not None and user_id != exclude)

    # Creation

    async def create_task(
            self,
            data: Mapping[str, Any],
            actor: User,
            created_at=None,
            recurring_config=None,
            commit: bool = True,
    ) -> Task:
        """
        Create a task from a template or form data.

        ``data`` accepts title, description, priority, assignee_id, due_date,
        sla_deadline, branch, context (dict of the eight context fields),
        subscriber_ids and type. The assignee defaults to the actor and the
        SLA deadline is derived from the policy unless given explicitly.
        With ``commit=False`` the task is only flushed and its events stay
        queued until ``commit()``.
        """
        unknown = set(data) - set(CREATE_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown field(s): {', '.join(sorted(unknown))}")
        if recurring_config is None and not policy.can_create(actor):
            raise AuthorizationError(FORBIDDEN_VIEWER.format(action="create tasks"))

        title = (data.get("title") or "").strip()
        if not title:
            raise ValidationError("Title is required", field="title")

        priority = _parse_enum(TaskPriority, data.get("priority") or TaskPriority.MEDIUM, "priority")
        task_type = _parse_enum(
            TaskType,
            data.get("type") or (TaskType.RECURRING_INSTANCE if recurring_config is not None else TaskType.STANDARD),
            "type",
        )

        assignee = await self._load_user(data.get("assignee_id") or actor.id)
        if not assignee.is_active:
            raise ValidationError(f"Assignee {assignee.email} is inactive", field="assignee_id")

        subscribers = []
        for user_id in dict.fromkeys(data.get("subscriber_ids") or ()):
            subscribers.append(await self._load_user(user_id))

        created_at = ensure_aware(created_at) or utc_now()
        due_date = ensure_aware(data.get("due_date"))
        sla_deadline = ensure_aware(data.get("sla_deadline"))
        if sla_deadline is None:
            sla_deadline = compute_sla_deadline(priority, created_at, self.sla_policy)
        _check_deadlines(due_date, sla_deadline)

        context = data.get("context")
        context_values = _context_values(context) if context else None

        try:
            task = Task(
                title=title,
                description=data.get("description") or "",
                status=TaskStatus.OPEN,
                priority=priority,
                type=task_type,
                branch=data.get("branch"),
                due_date=due_date,
                sla_deadline=sla_deadline,
                creator_id=actor.id,
                assignee_id=assignee.id,
                recurring_config_id=recurring_config.id if recurring_config is not None else None,
                created_at=created_at,
                updated_at=created_at,
                subscribers=subscribers,
            )
            self.db.add(task)
            await self.db.flush()

            if context_values and any(context_values.values()):
                self.db.add(TaskContext(task_id=task.id, **context_values))

            crud.logs.add_audit_log(
                self.db, task.id, actor.id,
                "recurring_generate" if recurring_config is not None else "create",
                new_value={
                    "title": title,
                    "priority": priority.value,
                    "assignee_id": assignee.id,
                    "sla_deadline": format_datetime(sla_deadline),
                },
            )
            if recurring_config is not None:
                self._system_log(
                    LogEntityType.RECURRING, LogActionType.GENERATE,
                    f"Task '{title}' generated from recurring config '{recurring_config.name}'",
                    actor=actor, entity_id=str(recurring_config.uuid), task=task,
                )
            else:
                self._system_log(
                    LogEntityType.TASK, LogActionType.CREATE,
                    f"Task '{title}' created", actor=actor, entity_id=str(task.uuid), task=task,
                )

            self.queue(TaskCreated(
                task_id=task.id, task_uuid=task.uuid, task_title=title, actor_id=actor.id,
                assignee_id=assignee.id, priority=priority.value,
            ))

            if commit:
                await self.commit()
        except Exception as e:
            tracing.error("Task creation failed", error=str(e), type=type(e).__name__, title=title)
            await self.rollback()
            raise

        tracing.info(
            "Task created",
            task_id=task.id,
            priority=priority.value,
            assignee_id=assignee.id,
            recurring_config_id=task.recurring_config_id,
        )
        if not commit:
            return task
        return await crud.task.get_task_by_id(self.db, task.id)

    # Status, assignment, subscribers

    async def change_status(self, task_id: int, new_status, actor: User, note: Optional[str] = None) -> Task:
        """Set any status from any status; an optional note is stored as a comment"""
        task = await self._load_task(task_id)
        if not policy.can_manage(task, actor):
            raise AuthorizationError(FORBIDDEN_MANAGE.format(action="change the status of"))

        new_status = _parse_enum(TaskStatus, new_status, "status")
        note = (note or "").strip()
        old_status = task.status
        if new_status == old_status and not note:
            return task

        try:
            if new_status != old_status:
                task.status = new_status
                task.updated_at = utc_now()
                crud.logs.add_audit_log(
                    self.db, task.id, actor.id, "status_change",
                    old_value={"status": old_status.value}, new_value={"status": new_status.value},
                )
                self._system_log(
                    LogEntityType.TASK, LogActionType.STATUS_CHANGE,
                    f"Status changed from {old_status.value} to {new_status.value}",
                    actor=actor, entity_id=str(task.uuid), task=task,
                )
                self.queue(TaskStatusChanged(
                    task_id=task.id, task_uuid=task.uuid, task_title=task.title, actor_id=actor.id,
                    old_status=old_status.value, new_status=new_status.value,
                    recipient_ids=self._followers(task, exclude=actor.id),
                ))

            if note:
                comment = Comment(task_id=task.id, user_id=actor.id, content=note)
                self.db.add(comment)
                await self.db.flush()
                self.queue(CommentAdded(
                    task_id=task.id, task_uuid=task.uuid, task_title=task.title, actor_id=actor.id,
                    comment_id=comment.id, excerpt=_excerpt(note),
                    recipient_ids=await self._comment_recipients(task, actor.id),
                ))

            await self.commit()
        except Exception as e:
            tracing.error("Status change failed", error=str(e), task_id=task_id)
            await self.rollback()
            raise

        tracing.info("Task status changed", task_id=task_id, old=old_status.value, new=new_status.value)
        return await crud.task.get_task_by_id(self.db, task_id)

    async def reassign(self, task_id: int, new_assignee_id: int, actor: User) -> Task:
        task = await self._load_task(task_id)
        if not policy.can_assign(actor):
            raise AuthorizationError(FORBIDDEN_ASSIGN)

        assignee = await self._load_user(new_assignee_id)
        if not assignee.is_active:
            raise ValidationError(f"Assignee {assignee.email} is inactive", field="assignee_id")
        old_assignee_id = task.assignee_id
        if assignee.id == old_assignee_id:
            return task

        try:
            task.assignee_id = assignee.id
            task.updated_at = utc_now()
            crud.logs.add_audit_log(
                self.db, task.id, actor.id, "assign",
                old_value={"assignee_id": old_assignee_id}, new_value={"assignee_id": assignee.id},
            )
            self._system_log(
                LogEntityType.TASK, LogActionType.ASSIGN,
                f"Task reassigned to {assignee.name}",
                actor=actor, entity_id=str(task.uuid), task=task,
            )
            self.queue(TaskAssigned(
                task_id=task.id, task_uuid=task.uuid, task_title=task.title, actor_id=actor.id,
                old_assignee_id=old_assignee_id, new_assignee_id=assignee.id,
            ))
            await self.commit()
        except Exception as e:
            tracing.error("Reassignment failed", error=str(e), task_id=task_id)
            await self.rollback()
            raise

        tracing.info("Task reassigned", task_id=task_id, old=old_assignee_id, new=assignee.id)
        return await crud.task.get_task_by_id(self.db, task_id)

    async def add_subscriber(self, task_id: int, user_id: int, actor: User) -> Task:
        return await self._change_subscribers(task_id, user_id, actor, add=True)

    async def remove_subscriber(self, task_id: int, user_id: int, actor: User) -> Task:
        return await self._change_subscribers(task_id, user_id, actor, add=False)

    async def _change_subscribers(self, task_id: int, user_id: int, actor: User, add: bool) -> Task:
        task = await self._load_task(task_id)
        if not policy.can_assign(actor):
            raise AuthorizationError(FORBIDDEN_SUBSCRIBERS)

        user = await self._load_user(user_id)
        current = {subscriber.id for subscriber in task.subscribers}
        if (user.id in current) == add:
            return task

        try:
            if add:
                task.subscribers.append(user)
            else:
                task.subscribers = [subscriber for subscriber in task.subscribers if subscriber.id != user.id]
            crud.logs.add_audit_log(
                self.db, task.id, actor.id,
                "subscriber_add" if add else "subscriber_remove",
                new_value={"user_id": user.id},
            )
            if add:
                self.queue(TaskAssigned(
                    task_id=task.id, task_uuid=task.uuid, task_title=task.title, actor_id=actor.id,
                    old_assignee_id=None, new_assignee_id=user.id,
                ))
            await self.commit()
        except Exception as e:
            tracing.error("Subscriber change failed", error=str(e), task_id=task_id, user_id=user_id)
            await self.rollback()
            raise

        return await crud.task.get_task_by_id(self.db, task_id)

    # Edits

    async def edit_task(self, task_id: int, fields: Mapping[str, Any], actor: User) -> Task:
        """
        Update mutable task fields.

        The title is immutable: a ``title`` key fails the whole edit. A
        priority change without an explicit ``sla_deadline`` re-derives the
        deadline from the original creation time. ``context`` is an upsert
        that overwrites all eight context fields.
        """
        task = await self._load_task(task_id)
        if not policy.can_manage(task, actor):
            raise AuthorizationError(FORBIDDEN_MANAGE.format(action="edit"))

        if "title" in fields:
            raise ValidationError("Title cannot be changed after creation", field="title")
        unknown = set(fields) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown field(s): {', '.join(sorted(unknown))}")

        old_values, new_values = {}, {}

        def record(name, old, new):
            if old != new:
                old_values[name] = old
                new_values[name] = new

        priority = task.priority
        if "priority" in fields and fields["priority"] is not None:
            priority = _parse_enum(TaskPriority, fields["priority"], "priority")
        due_date = ensure_aware(fields["due_date"]) if "due_date" in fields else ensure_aware(task.due_date)
        sla_deadline = ensure_aware(task.sla_deadline)
        if "sla_deadline" in fields:
            sla_deadline = ensure_aware(fields["sla_deadline"])
        elif priority != task.priority:
            sla_deadline = compute_sla_deadline(priority, task.created_at, self.sla_policy)
        _check_deadlines(due_date, sla_deadline)

        context_values = _context_values(fields["context"]) if fields.get("context") is not None else None

        if "description" in fields:
            record("description", task.description, fields["description"] or "")
        if "branch" in fields:
            record("branch", task.branch, fields["branch"])
        record("priority", task.priority.value, priority.value)
        record("due_date", format_datetime(task.due_date), format_datetime(due_date))
        record("sla_deadline", format_datetime(task.sla_deadline), format_datetime(sla_deadline))
        if context_values is not None:
            record("context", task.context.as_dict() if task.context is not None else None, context_values)

        if not new_values:
            return task
        priority_changed = "priority" in new_values

        try:
            if "description" in new_values:
                task.description = fields["description"] or ""
            if "branch" in new_values:
                task.branch = fields["branch"]
            task.priority = priority
            task.due_date = due_date
            task.sla_deadline = sla_deadline
            if "context" in new_values:
                if task.context is None:
                    self.db.add(TaskContext(task_id=task.id, **context_values))
                else:
                    for name, value in context_values.items():
                        setattr(task.context, name, value)

            task.updated_at = utc_now()
            crud.logs.add_audit_log(self.db, task.id, actor.id, "update", old_value=old_values, new_value=new_values)
            self._system_log(
                LogEntityType.TASK,
                LogActionType.PRIORITY_CHANGE if priority_changed else LogActionType.UPDATE,
                f"Task updated: {', '.join(sorted(new_values))}",
                actor=actor, entity_id=str(task.uuid), task=task, details={"old": old_values, "new": new_values},
            )
            self.queue(TaskUpdated(
                task_id=task.id, task_uuid=task.uuid, task_title=task.title, actor_id=actor.id,
                changed_fields=tuple(sorted(new_values)),
                recipient_ids=self._followers(task, exclude=actor.id),
            ))
            await self.commit()
        except Exception as e:
            tracing.error("Task edit failed", error=str(e), task_id=task_id)
            await self.rollback()
            raise

        tracing.info("Task updated", task_id=task_id, fields=sorted(new_values))
        return await crud.task.get_task_by_id(self.db, task_id)

    # Deletion

    async def delete_task(self, task_id: int, actor: User) -> Dict[str, Any]:
        """
        Delete a task and everything that depends on it in one transaction.

        The full task state is written to the system log before anything is
        removed; that entry keeps the task id after the row is gone. Returns
        the snapshot.
        """
        task = await self._load_task(task_id)
        if not policy.can_delete(task, actor):
            raise AuthorizationError(FORBIDDEN_DELETE)

        snapshot = task_snapshot(task)
        attachments = await crud.task.list_task_attachments(self.db, task.id)
        file_paths = [attachment.file_path for attachment in attachments]
        removed = {}

        try:
            self._system_log(
                LogEntityType.TASK, LogActionType.DELETE,
                f"Task '{task.title}' deleted",
                actor=actor, entity_id=str(task.uuid), task=task, details={"snapshot": snapshot},
            )
            await self.db.flush()

            for name, statement in TASK_DELETE_ORDER:
                result = await self.db.execute(statement(task.id))
                removed[name] = result.rowcount or 0
            await self.db.execute(
                delete(Task).where(Task.id == task.id).execution_options(synchronize_session=False)
            )
            self.db.expunge(task)
            await self.commit()
        except Exception as e:
            tracing.error("Task deletion failed", error=str(e), task_id=task_id)
            await self.rollback()
            raise

        tracing.info("Task deleted", task_id=task_id, removed=removed)
        for path in file_paths:
            await self._remove_file(path)
        return snapshot

    # Comments

    async def _comment_recipients(self, task: Task, author_id: int) -> tuple:
        commenters = await crud.task.get_commenter_ids(self.db, task.id)
        ids = [task.assignee_id, task.creator_id] + commenters
        return tuple(user_id for user_id in dict.fromkeys(ids) if user_id != author_id)

    async def add_comment(
            self,
            task_id: int,
            content: str,
            actor: User,
            mentioned_user_ids: Iterable[int] = (),
    ) -> Comment:
        """
        Add a comment; mentions come from explicit ids and ``@email`` tokens.

        With mentions, only the mentioned users are notified. Without them the
        assignee, creator and earlier commenters are.
        """
        task = await self._load_task(task_id)
        if not policy.can_create(actor):
            raise AuthorizationError(FORBIDDEN_VIEWER.format(action="comment on tasks"))

        content = (content or "").strip()
        if not content:
            raise ValidationError("Comment content is required", field="content")

        explicit = []
        for user_id in mentioned_user_ids:
            explicit.append((await self._load_user(user_id)).id)
        resolved = [user.id for user in await crud.get_users_by_emails(self.db, extract_mention_emails(content))]
        mentions = merge_mentions(explicit, resolved, actor.id)

        try:
            recipients = () if mentions else await self._comment_recipients(task, actor.id)
            comment = Comment(task_id=task.id, user_id=actor.id, content=content)
            self.db.add(comment)
            await self.db.flush()
            for user_id in mentions:
                self.db.add(CommentMention(comment_id=comment.id, user_id=user_id))

            crud.logs.add_audit_log(
                self.db, task.id, actor.id, "comment",
                new_value={"comment_id": comment.id, "mentions": mentions},
            )
            task.updated_at = utc_now()

            excerpt = _excerpt(content)
            self.queue(CommentAdded(
                task_id=task.id, task_uuid=task.uuid, task_title=task.title, actor_id=actor.id,
                comment_id=comment.id, excerpt=excerpt, recipient_ids=recipients,
            ))
            for user_id in mentions:
                self.queue(UserMentioned(
                    task_id=task.id, task_uuid=task.uuid, task_title=task.title, actor_id=actor.id,
                    comment_id=comment.id, mentioned_user_id=user_id, excerpt=excerpt,
                ))
            await self.commit()
        except Exception as e:
            tracing.error("Adding comment failed", error=str(e), task_id=task_id)
            await self.rollback()
            raise

        tracing.info("Comment added", task_id=task_id, comment_id=comment.id, mentions=len(mentions))
        return await crud.task.get_comment_by_id(self.db, comment.id)

    async def delete_comment(self, comment_id: int, actor: User) -> None:
        comment = await crud.task.get_comment_by_id(self.db, comment_id)
        if comment is None:
            raise NotFoundError("Comment", comment_id)
        if not policy.can_delete_comment(comment, actor):
            raise AuthorizationError(FORBIDDEN_COMMENT_DELETE)

        task_id = comment.task_id
        try:
            await self.db.execute(delete(CommentMention).where(CommentMention.comment_id == comment_id))
            await self.db.execute(
                delete(Comment).where(Comment.id == comment_id).execution_options(synchronize_session=False)
            )
            self.db.expunge(comment)
            crud.logs.add_audit_log(
                self.db, task_id, actor.id, "comment_delete", old_value={"comment_id": comment_id},
            )
            await self.commit()
        except Exception as e:
            tracing.error("Deleting comment failed", error=str(e), comment_id=comment_id)
            await self.rollback()
            raise

        tracing.info("Comment deleted", task_id=task_id, comment_id=comment_id)

    # Attachments

    async def add_attachment(
            self,
            task_id: int,
            filename: str,
            mime_type: str,
            content: bytes,
            actor: User,
    ) -> Attachment:
        task = await self._load_task(task_id)
        if not policy.can_create(actor):
            raise AuthorizationError(FORBIDDEN_VIEWER.format(action="upload attachments"))
        self.storage.validate(filename, mime_type, len(content))

        file_path = await self.storage.save(task.uuid, filename, content)
        try:
            attachment = Attachment(
                task_id=task.id,
                uploader_id=actor.id,
                filename=filename,
                file_path=file_path,
                mime_type=mime_type,
                size_bytes=len(content),
            )
            self.db.add(attachment)
            await self.db.flush()
            crud.logs.add_audit_log(
                self.db, task.id, actor.id, "attachment_add",
                new_value={"attachment_id": attachment.id, "filename": filename},
            )
            self._system_log(
                LogEntityType.ATTACHMENT, LogActionType.CREATE,
                f"Attachment '{filename}' uploaded", actor=actor, entity_id=str(attachment.uuid), task=task,
            )
            await self.commit()
        except Exception as e:
            tracing.error("Saving attachment failed", error=str(e), task_id=task_id)
            await self.rollback()
            await self._remove_file(file_path)
            raise

        tracing.info("Attachment added", task_id=task_id, filename=filename, size=len(content))
        return await crud.task.get_attachment_by_uuid(self.db, attachment.uuid)

    async def delete_attachment(self, attachment: Attachment, actor: User) -> None:
        if not policy.can_delete_attachment(attachment, actor):
            raise AuthorizationError("Forbidden: only the uploader, Admin or TeamLead can delete this attachment")

        attachment_id, task_id, file_path = attachment.id, attachment.task_id, attachment.file_path
        try:
            await self.db.execute(
                delete(Attachment).where(Attachment.id == attachment_id).execution_options(synchronize_session=False)
            )
            self.db.expunge(attachment)
            crud.logs.add_audit_log(
                self.db, task_id, actor.id, "attachment_delete", old_value={"attachment_id": attachment_id},
            )
            await self.commit()
        except Exception as e:
            tracing.error("Deleting attachment failed", error=str(e), attachment_id=attachment_id)
            await self.rollback()
            raise

        await self._remove_file(file_path)

    async def _remove_file(self, path: str) -> None:
        if self.storage is None:
            return
        try:
            await self.storage.delete(path)
        except OSError as e:
            failure = DependencyFailure("attachment storage", str(e))
            tracing.warning("Attachment file removal failed", path=path, error=failure.message)
