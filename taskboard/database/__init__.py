"""
Database module for Taskboard.

Handles:
- Task, comment, activity and preference storage
- Accounts and login sessions
- Async engine and session lifecycle
"""

from .connection import (
    get_database,
    Database,
    init_database,
    close_database,
    normalize_database_url,
)
from .models import (
    Base,
    TaskDB,
    TaskCommentDB,
    TaskActivityDB,
    UserPreferencesDB,
    UserDB,
    SessionDB,
    TaskStatusEnum,
    TaskPriorityEnum,
    ActivityActionEnum,
    ThemeEnum,
    DefaultViewEnum,
)
from .exceptions import (
    DatabaseError,
    DatabaseConnectionError,
    DatabaseConstraintError,
    DatabaseOperationError,
)

__all__ = [
    "get_database",
    "Database",
    "init_database",
    "close_database",
    "normalize_database_url",
    "Base",
    "TaskDB",
    "TaskCommentDB",
    "TaskActivityDB",
    "UserPreferencesDB",
    "UserDB",
    "SessionDB",
    "TaskStatusEnum",
    "TaskPriorityEnum",
    "ActivityActionEnum",
    "ThemeEnum",
    "DefaultViewEnum",
    "DatabaseError",
    "DatabaseConnectionError",
    "DatabaseConstraintError",
    "DatabaseOperationError",
]
