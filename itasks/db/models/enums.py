# itasks/db/models/enums.py
import enum


class TaskStatus(str, enum.Enum):
    OPEN = "Open"
    IN_PROGRESS = "InProgress"
    PENDING_VENDOR = "PendingVendor"
    PENDING_USER = "PendingUser"
    RESOLVED = "Resolved"
    CLOSED = "Closed"

    @property
    def is_terminal(self) -> bool:
        """Resolved and Closed tasks are excluded from SLA monitoring"""
        return self in (TaskStatus.RESOLVED, TaskStatus.CLOSED)


class TaskPriority(str, enum.Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"

    @property
    def rank(self) -> int:
        return PRIORITY_RANK[self]


PRIORITY_RANK = {
    TaskPriority.LOW: 0,
    TaskPriority.MEDIUM: 1,
    TaskPriority.HIGH: 2,
    TaskPriority.CRITICAL: 3,
}


class TaskType(str, enum.Enum):
    STANDARD = "Standard"
    RECURRING_INSTANCE = "Recurring_Instance"


class UserRole(str, enum.Enum):
    ADMIN = "Admin"
    TEAM_LEAD = "TeamLead"
    TECHNICIAN = "Technician"
    VIEWER = "Viewer"


class LogEntityType(str, enum.Enum):
    """Entity a system log entry is about"""
    TASK = "Task"
    COMMENT = "Comment"
    ATTACHMENT = "Attachment"
    RECURRING = "Recurring"
    USER = "User"
    TEAM = "Team"
    SYSTEM_CONFIG = "SystemConfig"


class LogActionType(str, enum.Enum):
    CREATE = "Create"
    UPDATE = "Update"
    DELETE = "Delete"
    STATUS_CHANGE = "StatusChange"
    PRIORITY_CHANGE = "PriorityChange"
    ASSIGN = "Assign"
    GENERATE = "Generate"


class NotificationType(str, enum.Enum):
    TASK_CREATED = "task.created"
    TASK_UPDATED = "task.updated"
    TASK_STATUS_CHANGED = "task.status_changed"
    TASK_ASSIGNED = "task.assigned"
    TASK_COMMENTED = "task.commented"
    USER_MENTIONED = "user.mentioned"
    RECURRING_GENERATED = "recurring.generated"
