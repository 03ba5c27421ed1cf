"""
Audit trail for task mutations.

Every successful task or comment mutation appends one activity row. Rows are
never edited; a task's rows are purged when the task is deleted.
"""

import logging
from typing import Optional, Dict, Any, List

from ..database.models import TaskActivityDB, ActivityActionEnum
from ..database.repositories import ActivityRepository

logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 100


def created_metadata(title: str, priority: str) -> Dict[str, Any]:
    return {"title": title, "priority": priority}


def deleted_metadata(title: str) -> Dict[str, Any]:
    return {"title": title}


def comment_metadata(comment_id: int, content: str, change: Optional[str] = None) -> Dict[str, Any]:
    """Snapshot for a comment event: its id plus the first 100 characters."""
    metadata: Dict[str, Any] = {"comment_id": comment_id, "preview": content[:PREVIEW_LENGTH]}
    if change:
        metadata["change"] = change
    return metadata


class AuditTrail:
    """Append-only record of who did what to which task."""

    def __init__(self, repository: ActivityRepository):
        self.repository = repository

    async def record(
        self,
        task_id: int,
        user_id: str,
        action: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> TaskActivityDB:
        """Append one activity row."""
        action = ActivityActionEnum(action).value
        entry = await self.repository.create(task_id, user_id, action, metadata)
        logger.info(f"Audit: {action} on task {task_id} by {user_id}")
        return entry

    async def by_task(self, task_id: int) -> List[TaskActivityDB]:
        """Full history of a task, oldest first."""
        return await self.repository.get_by_task(task_id)

    async def by_user(self, user_id: str, limit: Optional[int] = None) -> List[TaskActivityDB]:
        """A user's activity, newest first."""
        return await self.repository.get_by_user(user_id, limit=limit)

    async def recent_by_task(self, task_id: int, limit: int = 10) -> List[TaskActivityDB]:
        return await self.repository.get_recent_by_task(task_id, limit=limit)

    async def recent_by_user(self, user_id: str, limit: int = 20) -> List[TaskActivityDB]:
        return await self.repository.get_recent_by_user(user_id, limit=limit)

    async def count_by_task(self, task_id: int) -> int:
        return await self.repository.count_by_task(task_id)

    async def purge_task(self, task_id: int) -> int:
        """Remove a deleted task's history. Returns the number of rows removed."""
        removed = await self.repository.delete_by_task(task_id)
        logger.info(f"Purged {removed} activity rows for task {task_id}")
        return removed
