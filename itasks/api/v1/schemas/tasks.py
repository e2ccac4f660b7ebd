# itasks/api/v1/schemas/tasks.py
from datetime import datetime
from typing import Optional, List

from pydantic import BaseModel, ConfigDict, Field, UUID4

from itasks.api.v1.schemas.users import UserSummary
from itasks.db.models import TaskStatus, TaskPriority, TaskType


class TaskContextSchema(BaseModel):
    """Structured IT context attached to a task"""
    model_config = ConfigDict(from_attributes=True)

    server_name: Optional[str] = Field(None, max_length=255)
    application: Optional[str] = Field(None, max_length=255)
    workstation_id: Optional[str] = Field(None, max_length=255)
    ad_user: Optional[str] = Field(None, max_length=255)
    environment: Optional[str] = Field(None, max_length=255)
    ip_address: Optional[str] = Field(None, max_length=64)
    manufacturer: Optional[str] = Field(None, max_length=255)
    version: Optional[str] = Field(None, max_length=255)


class TaskCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255, description="Task title, fixed after creation")
    description: Optional[str] = Field(None, description="Task description")
    priority: TaskPriority = TaskPriority.MEDIUM
    assignee_id: Optional[UUID4] = Field(None, description="Assignee UUID, defaults to the creator")
    subscriber_ids: List[UUID4] = Field(default_factory=list, description="Additional technicians")
    due_date: Optional[datetime] = None
    sla_deadline: Optional[datetime] = Field(None, description="Overrides the priority-derived SLA deadline")
    branch: Optional[str] = Field(None, max_length=255)
    context: Optional[TaskContextSchema] = None


class TaskUpdate(BaseModel):
    """
    Editable fields. ``title`` is accepted here only so that an attempt to
    change it is rejected with a clear message instead of being dropped.
    """
    title: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[TaskPriority] = None
    due_date: Optional[datetime] = None
    sla_deadline: Optional[datetime] = None
    branch: Optional[str] = Field(None, max_length=255)
    context: Optional[TaskContextSchema] = None


class TaskStatusUpdate(BaseModel):
    status: TaskStatus = Field(..., description="New task status")
    note: Optional[str] = Field(None, description="Progress note stored as a comment")


class TaskReassign(BaseModel):
    assignee_id: UUID4


class SubscriberRequest(BaseModel):
    user_id: UUID4


class TaskSummary(BaseModel):
    """Lightweight task for lists"""
    id: UUID4
    title: str
    status: TaskStatus
    priority: TaskPriority
    type: TaskType
    branch: Optional[str] = None
    assignee: Optional[UserSummary] = None
    due_date: Optional[datetime] = None
    sla_deadline: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, task):
        return cls(
            id=task.uuid,
            title=task.title,
            status=task.status,
            priority=task.priority,
            type=task.type,
            branch=task.branch,
            assignee=UserSummary.from_model(task.__dict__.get("assignee")),
            due_date=task.due_date,
            sla_deadline=task.sla_deadline,
            created_at=task.created_at,
            updated_at=task.updated_at,
        )


class TaskResponse(TaskSummary):
    """Full task with people and context"""
    description: str
    creator: Optional[UserSummary] = None
    subscribers: List[UserSummary] = Field(default_factory=list)
    context: Optional[TaskContextSchema] = None
    recurring_config_id: Optional[UUID4] = None

    @classmethod
    def from_model(cls, task):
        summary = TaskSummary.from_model(task).model_dump()
        recurring_config = task.__dict__.get("recurring_config")
        context = task.__dict__.get("context")
        return cls(
            **summary,
            description=task.description or "",
            creator=UserSummary.from_model(task.__dict__.get("creator")),
            subscribers=[UserSummary.from_model(user) for user in task.__dict__.get("subscribers") or []],
            context=TaskContextSchema.model_validate(context) if context is not None else None,
            recurring_config_id=recurring_config.uuid if recurring_config is not None else None,
        )


class AuditLogResponse(BaseModel):
    action: str
    actor: Optional[UserSummary] = None
    old_value: Optional[dict] = None
    new_value: Optional[dict] = None
    created_at: datetime

    @classmethod
    def from_model(cls, entry):
        return cls(
            action=entry.action,
            actor=UserSummary.from_model(entry.__dict__.get("actor")),
            old_value=entry.old_value,
            new_value=entry.new_value,
            created_at=entry.created_at,
        )


class TaskDeleteResponse(BaseModel):
    id: UUID4
    title: str
    deleted: bool = True
