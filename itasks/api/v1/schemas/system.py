# itasks/api/v1/schemas/system.py
from datetime import datetime
from typing import List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, EmailStr, Field, UUID4, field_validator

from itasks.api.v1.schemas.tasks import TaskSummary
from itasks.api.v1.schemas.users import UserSummary
from itasks.db.models import LogEntityType, LogActionType


class SystemConfigResponse(BaseModel):
    sla_critical_hours: Optional[int] = None
    sla_high_hours: Optional[int] = None
    sla_medium_hours: Optional[int] = None
    sla_low_hours: Optional[int] = None
    smtp_enabled: bool
    smtp_host: Optional[str] = None
    smtp_port: Optional[int] = None
    smtp_user: Optional[str] = None
    smtp_password_set: bool
    smtp_from: Optional[str] = None
    smtp_use_tls: bool
    app_name: Optional[str] = None
    support_email: Optional[str] = None
    timezone: Optional[str] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, config):
        return cls(
            sla_critical_hours=config.sla_critical_hours,
            sla_high_hours=config.sla_high_hours,
            sla_medium_hours=config.sla_medium_hours,
            sla_low_hours=config.sla_low_hours,
            smtp_enabled=config.smtp_enabled,
            smtp_host=config.smtp_host,
            smtp_port=config.smtp_port,
            smtp_user=config.smtp_user,
            smtp_password_set=bool(config.smtp_password),
            smtp_from=config.smtp_from,
            smtp_use_tls=config.smtp_use_tls,
            app_name=config.app_name,
            support_email=config.support_email,
            timezone=config.timezone,
            updated_at=config.updated_at,
        )


class SystemConfigUpdate(BaseModel):
    """Any subset of the configuration; 0 or null SLA hours disable the deadline"""
    sla_critical_hours: Optional[int] = Field(None, ge=0, le=24 * 365)
    sla_high_hours: Optional[int] = Field(None, ge=0, le=24 * 365)
    sla_medium_hours: Optional[int] = Field(None, ge=0, le=24 * 365)
    sla_low_hours: Optional[int] = Field(None, ge=0, le=24 * 365)
    smtp_enabled: Optional[bool] = None
    smtp_host: Optional[str] = Field(None, max_length=255)
    smtp_port: Optional[int] = Field(None, ge=1, le=65535)
    smtp_user: Optional[str] = Field(None, max_length=255)
    smtp_password: Optional[str] = Field(None, max_length=255)
    smtp_from: Optional[EmailStr] = None
    smtp_use_tls: Optional[bool] = None
    app_name: Optional[str] = Field(None, max_length=255)
    support_email: Optional[EmailStr] = None
    timezone: Optional[str] = None

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v):
        if v is None:
            return v
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone: {v}")
        return v


class SlaTaskItem(TaskSummary):
    hours_remaining: Optional[int] = None

    @classmethod
    def from_task(cls, task, hours: Optional[int]):
        return cls(**TaskSummary.from_model(task).model_dump(), hours_remaining=hours)


class SlaReport(BaseModel):
    generated_at: datetime
    approaching_window_hours: int
    overdue: List[SlaTaskItem]
    approaching: List[SlaTaskItem]


class SystemLogResponse(BaseModel):
    id: int
    entity_type: LogEntityType
    action_type: LogActionType
    description: str
    actor: Optional[UserSummary] = None
    entity_id: Optional[str] = None
    task_id: Optional[int] = None
    task_uuid: Optional[UUID4] = None
    task_title: Optional[str] = None
    details: Optional[dict] = None
    ip_address: Optional[str] = None
    created_at: datetime

    @classmethod
    def from_model(cls, entry):
        return cls(
            id=entry.id,
            entity_type=entry.entity_type,
            action_type=entry.action_type,
            description=entry.description,
            actor=UserSummary.from_model(entry.__dict__.get("actor")),
            entity_id=entry.entity_id,
            task_id=entry.task_id,
            task_uuid=entry.task_uuid,
            task_title=entry.task_title,
            details=entry.details,
            ip_address=entry.ip_address,
            created_at=entry.created_at,
        )
