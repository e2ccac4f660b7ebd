"""CRUD operations for database models"""
from .user import (
    get_user_by_email,
    get_user_by_id,
    get_user_by_uuid,
    get_users_by_ids,
    get_users_by_uuids,
    get_users_by_emails,
    create_user_db,
    update_user_db,
    get_user_count,
    search_users,
)
from .token import (
    add_to_blacklist,
    is_jti_blacklisted,
    delete_expired_blacklisted_tokens,
)
from . import task
from . import dashboard
from . import recurring
from . import logs
from . import notification
from . import system_config

__all__ = [
    # User CRUD
    "get_user_by_email",
    "get_user_by_id",
    "get_user_by_uuid",
    "get_users_by_ids",
    "get_users_by_uuids",
    "get_users_by_emails",
    "create_user_db",
    "update_user_db",
    "get_user_count",
    "search_users",
    # Token CRUD
    "add_to_blacklist",
    "is_jti_blacklisted",
    "delete_expired_blacklisted_tokens",
    # Modules
    "task",
    "dashboard",
    "recurring",
    "logs",
    "notification",
    "system_config",
]
