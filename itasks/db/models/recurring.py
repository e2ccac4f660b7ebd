# itasks/db/models/recurring.py
"""Recurring task configuration: a cron schedule plus a task template"""
from sqlalchemy import Column, Integer, String, Text, ForeignKey, Enum, Boolean, DateTime, Index
from sqlalchemy.orm import relationship

from itasks.db.models.base import Base, TimestampMixin, UUIDMixin
from itasks.db.models.enums import TaskPriority


class RecurringTaskConfig(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "recurring_task_configs"

    TEMPLATE_CONTEXT_FIELDS = (
        "server_name", "application", "workstation_id", "ad_user",
        "environment", "ip_address", "manufacturer", "version",
    )

    name = Column(String(255), nullable=False)
    cron = Column(String(120), nullable=False)
    enabled = Column(Boolean, default=True, nullable=False)

    # Template
    template_title = Column(String(255), nullable=False)
    template_description = Column(Text, nullable=True)
    template_priority = Column(Enum(TaskPriority), nullable=False, default=TaskPriority.MEDIUM)
    template_assignee_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    template_branch = Column(String(255), nullable=True)
    template_server_name = Column(String(255), nullable=True)
    template_application = Column(String(255), nullable=True)
    template_workstation_id = Column(String(255), nullable=True)
    template_ad_user = Column(String(255), nullable=True)
    template_environment = Column(String(255), nullable=True)
    template_ip_address = Column(String(64), nullable=True)
    template_manufacturer = Column(String(255), nullable=True)
    template_version = Column(String(255), nullable=True)

    # Scheduling state
    last_generated_at = Column(DateTime(timezone=True), nullable=True)
    next_generation_at = Column(DateTime(timezone=True), nullable=True, index=True)

    template_assignee = relationship("User")
    # Generated tasks are history only; deleting a config detaches them
    tasks = relationship("Task", back_populates="recurring_config", passive_deletes=True)

    __table_args__ = (
        Index('idx_recurring_enabled_next', 'enabled', 'next_generation_at'),
    )

    def template_context(self):
        """Template context sub-fields keyed like TaskContext columns, or None when all empty"""
        values = {field: getattr(self, f"template_{field}") for field in self.TEMPLATE_CONTEXT_FIELDS}
        return values if any(values.values()) else None

    def __repr__(self):
        return f"<RecurringTaskConfig name={self.name} cron={self.cron}>"
