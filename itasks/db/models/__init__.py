# itasks/db/models/__init__.py
"""
Database models package
Imports all models for easy access
"""

# Import base classes and mixins
from itasks.db.models.base import Base, TimestampMixin, UUIDMixin

# Import all enums
from itasks.db.models.enums import (
    TaskStatus, TaskPriority, TaskType, UserRole,
    LogEntityType, LogActionType, NotificationType
)

# Users, teams and tokens
from itasks.db.models.auth import User, Team, BlacklistedToken

# Helpdesk models
from itasks.db.models.task import Task, TaskContext, task_subscribers
from itasks.db.models.comment import Comment, CommentMention, Attachment
from itasks.db.models.recurring import RecurringTaskConfig
from itasks.db.models.logs import AuditLog, SystemLog
from itasks.db.models.notification import Notification
from itasks.db.models.system_config import SystemConfig, SYSTEM_CONFIG_ID

__all__ = [
    # Base classes
    'Base', 'TimestampMixin', 'UUIDMixin',

    # Enums
    'TaskStatus', 'TaskPriority', 'TaskType', 'UserRole',
    'LogEntityType', 'LogActionType', 'NotificationType',

    # Users
    'User', 'Team', 'BlacklistedToken',

    # Helpdesk models
    'Task', 'TaskContext', 'task_subscribers',
    'Comment', 'CommentMention', 'Attachment',
    'RecurringTaskConfig',
    'AuditLog', 'SystemLog',
    'Notification',
    'SystemConfig', 'SYSTEM_CONFIG_ID',
]
