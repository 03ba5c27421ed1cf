"""
Domain store: the four domain repositories over one database handle.
"""

from dataclasses import dataclass
from typing import Callable, Optional

from ..connection import Database, get_database
from ...utils.datetime_utils import now_ms
from .tasks import TaskRepository
from .comments import CommentRepository
from .activity import ActivityRepository
from .preferences import PreferencesRepository


@dataclass
class DomainStore:
    tasks: TaskRepository
    comments: CommentRepository
    activity: ActivityRepository
    preferences: PreferencesRepository

    @classmethod
    def create(
        cls,
        db: Optional[Database] = None,
        clock: Callable[[], int] = now_ms,
    ) -> "DomainStore":
        """Build every repository over the same database and clock."""
        db = db or get_database()
        return cls(
            tasks=TaskRepository(db, clock),
            comments=CommentRepository(db, clock),
            activity=ActivityRepository(db, clock),
            preferences=PreferencesRepository(db, clock),
        )
