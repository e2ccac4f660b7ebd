# itasks/db/models/logs.py
"""Append-only logs.

AuditLog rows belong to a task and are deleted with it. SystemLog rows keep a
plain task id (no foreign key) so they outlive the task they describe.
"""
from sqlalchemy import Column, Integer, String, Text, ForeignKey, Enum, DateTime, JSON, Uuid, Index, func
from sqlalchemy.orm import relationship

from itasks.db.models.base import Base
from itasks.db.models.enums import LogEntityType, LogActionType


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    task_id = Column(Integer, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    actor_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    action = Column(String(64), nullable=False)
    old_value = Column(JSON, nullable=True)
    new_value = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    actor = relationship("User")

    def __repr__(self):
        return f"<AuditLog task_id={self.task_id} action={self.action}>"


class SystemLog(Base):
    __tablename__ = "system_logs"

    id = Column(Integer, primary_key=True, index=True)
    entity_type = Column(Enum(LogEntityType), nullable=False, index=True)
    action_type = Column(Enum(LogActionType), nullable=False, index=True)
    actor_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    entity_id = Column(String(64), nullable=True)
    task_id = Column(Integer, nullable=True, index=True)
    task_uuid = Column(Uuid(as_uuid=True), nullable=True)
    task_title = Column(String(255), nullable=True)
    description = Column(Text, nullable=False)
    details = Column(JSON, nullable=True)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(512), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    actor = relationship("User")

    __table_args__ = (
        Index('idx_system_log_entity_action', 'entity_type', 'action_type'),
        Index('idx_system_log_created', 'created_at'),
    )

    def __repr__(self):
        return f"<SystemLog {self.entity_type}:{self.action_type} task_id={self.task_id}>"
