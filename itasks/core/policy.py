# itasks/core/policy.py
"""Role rules for every mutating operation, kept in one place."""
from itasks.db.models.enums import UserRole

MANAGER_ROLES = (UserRole.ADMIN, UserRole.TEAM_LEAD)


def _role(user) -> UserRole:
    return UserRole(user.role)


def is_manager(user) -> bool:
    return _role(user) in MANAGER_ROLES


def can_manage(task, user) -> bool:
    """Admin, TeamLead, the task's assignee or its creator"""
    return is_manager(user) or user.id in (task.assignee_id, task.creator_id)


def can_assign(user) -> bool:
    return is_manager(user)


def can_delete(task, user) -> bool:
    return is_manager(user) or user.id == task.creator_id


def can_delete_comment(comment, user) -> bool:
    return _role(user) == UserRole.ADMIN or user.id == comment.user_id


def can_delete_attachment(attachment, user) -> bool:
    return is_manager(user) or user.id == attachment.uploader_id


def can_create(user) -> bool:
    """Viewers are read-only"""
    return _role(user) != UserRole.VIEWER


def can_administer(user) -> bool:
    return _role(user) == UserRole.ADMIN


def can_view_sla(user) -> bool:
    return is_manager(user)
