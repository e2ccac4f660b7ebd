# itasks/db/models/task.py
"""Task (ticket) model and its one-to-one IT context"""
from sqlalchemy import Column, Integer, String, Text, ForeignKey, Index, Enum, DateTime, Table
from sqlalchemy.orm import relationship

from itasks.db.models.base import Base, TimestampMixin, UUIDMixin
from itasks.db.models.enums import TaskStatus, TaskPriority, TaskType


task_subscribers = Table(
    "task_subscribers",
    Base.metadata,
    Column("task_id", Integer, ForeignKey("tasks.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)


class Task(Base, UUIDMixin, TimestampMixin):
    """Unit of helpdesk work. The title is fixed at creation."""
    __tablename__ = "tasks"

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")
    status = Column(Enum(TaskStatus), nullable=False, default=TaskStatus.OPEN, index=True)
    priority = Column(Enum(TaskPriority), nullable=False, default=TaskPriority.MEDIUM, index=True)
    type = Column(Enum(TaskType), nullable=False, default=TaskType.STANDARD)
    branch = Column(String(255), nullable=True)
    due_date = Column(DateTime(timezone=True), nullable=True)
    sla_deadline = Column(DateTime(timezone=True), nullable=True)

    # Foreign keys
    creator_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    assignee_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    recurring_config_id = Column(
        Integer, ForeignKey("recurring_task_configs.id", ondelete="SET NULL"), nullable=True
    )

    # Relationships
    creator = relationship("User", foreign_keys=[creator_id])
    assignee = relationship("User", foreign_keys=[assignee_id])
    subscribers = relationship("User", secondary=task_subscribers)
    context = relationship("TaskContext", back_populates="task", uselist=False)
    recurring_config = relationship("RecurringTaskConfig", back_populates="tasks")

    __table_args__ = (
        Index('idx_task_assignee_status', 'assignee_id', 'status'),
        Index('idx_task_sla_deadline', 'sla_deadline'),
        Index('idx_task_due_date', 'due_date'),
    )

    def __repr__(self):
        return f"<Task title={self.title} status={self.status}>"


class TaskContext(Base):
    """Structured IT context for a task (server, application, workstation...)"""
    __tablename__ = "task_contexts"

    FIELDS = (
        "server_name", "application", "workstation_id", "ad_user",
        "environment", "ip_address", "manufacturer", "version",
    )

    id = Column(Integer, primary_key=True, index=True)
    task_id = Column(Integer, ForeignKey("tasks.id", ondelete="CASCADE"), unique=True, nullable=False)

    server_name = Column(String(255), nullable=True)
    application = Column(String(255), nullable=True)
    workstation_id = Column(String(255), nullable=True)
    ad_user = Column(String(255), nullable=True)
    environment = Column(String(255), nullable=True)
    ip_address = Column(String(64), nullable=True)
    manufacturer = Column(String(255), nullable=True)
    version = Column(String(255), nullable=True)

    task = relationship("Task", back_populates="context")

    def as_dict(self):
        return {field: getattr(self, field) for field in self.FIELDS}

    def __repr__(self):
        return f"<TaskContext task_id={self.task_id}>"
