# itasks/api/v1/schemas/recurring.py
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, UUID4, field_validator

from itasks.api.v1.schemas.tasks import TaskContextSchema, TaskSummary
from itasks.api.v1.schemas.users import UserSummary
from itasks.core.recurring import validate_cron
from itasks.db.models import TaskPriority
from itasks.exceptions.domain import ValidationError


def _cron(value):
    if value is None:
        return value
    try:
        return validate_cron(value)
    except ValidationError as e:
        raise ValueError(e.message)


class RecurringConfigCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    cron: str = Field(..., description="Five-field cron expression, e.g. '0 9 * * 1-5'")
    enabled: bool = True
    template_title: str = Field(..., min_length=1, max_length=255)
    template_description: Optional[str] = None
    template_priority: TaskPriority = TaskPriority.MEDIUM
    template_assignee_id: UUID4
    template_branch: Optional[str] = Field(None, max_length=255)
    template_context: Optional[TaskContextSchema] = None

    @field_validator("cron")
    @classmethod
    def validate_cron_expression(cls, v):
        return _cron(v)


class RecurringConfigUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    cron: Optional[str] = None
    enabled: Optional[bool] = None
    template_title: Optional[str] = Field(None, min_length=1, max_length=255)
    template_description: Optional[str] = None
    template_priority: Optional[TaskPriority] = None
    template_assignee_id: Optional[UUID4] = None
    template_branch: Optional[str] = Field(None, max_length=255)
    template_context: Optional[TaskContextSchema] = None

    @field_validator("cron")
    @classmethod
    def validate_cron_expression(cls, v):
        return _cron(v)


class RecurringConfigResponse(BaseModel):
    id: UUID4
    name: str
    cron: str
    enabled: bool
    template_title: str
    template_description: Optional[str] = None
    template_priority: TaskPriority
    template_assignee: Optional[UserSummary] = None
    template_branch: Optional[str] = None
    template_context: Optional[TaskContextSchema] = None
    last_generated_at: Optional[datetime] = None
    next_generation_at: Optional[datetime] = None
    recent_tasks: List[TaskSummary] = Field(default_factory=list)
    created_at: datetime

    @classmethod
    def from_model(cls, config, recent_tasks=None):
        context = config.template_context()
        return cls(
            id=config.uuid,
            name=config.name,
            cron=config.cron,
            enabled=config.enabled,
            template_title=config.template_title,
            template_description=config.template_description,
            template_priority=config.template_priority,
            template_assignee=UserSummary.from_model(config.__dict__.get("template_assignee")),
            template_branch=config.template_branch,
            template_context=TaskContextSchema(**context) if context else None,
            last_generated_at=config.last_generated_at,
            next_generation_at=config.next_generation_at,
            recent_tasks=[TaskSummary.from_model(task) for task in recent_tasks or []],
            created_at=config.created_at,
        )


class GenerationFailureResponse(BaseModel):
    config_name: str
    error: str
    error_type: str


class GenerationRunResponse(BaseModel):
    generated: List[TaskSummary]
    failures: List[GenerationFailureResponse]
