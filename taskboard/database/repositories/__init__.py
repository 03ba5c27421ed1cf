"""
Repository classes for database operations.

Each repository handles CRUD and queries for its entity type and is the only
code that touches its table.
"""

from .tasks import TaskRepository
from .comments import CommentRepository
from .activity import ActivityRepository
from .preferences import PreferencesRepository
from .accounts import AccountRepository, normalize_email
from .store import DomainStore

__all__ = [
    "TaskRepository",
    "CommentRepository",
    "ActivityRepository",
    "PreferencesRepository",
    "AccountRepository",
    "normalize_email",
    "DomainStore",
]
