"""
Task activity repository (the audit trail's storage).

Rows record:
- Which task changed (task_id)
- Who changed it (user_id)
- What happened (action)
- A snapshot of what changed (metadata)
- When it happened (created_at)

Rows are append-only: there is no update method. They are removed only in
bulk when their task is deleted.
"""

import logging
from typing import Optional, List, Dict, Any, Callable

from sqlalchemy import select, delete, func
from sqlalchemy.exc import IntegrityError

from ..connection import Database, get_database
from ..models import TaskActivityDB
from ..exceptions import DatabaseConstraintError, DatabaseOperationError
from ...utils.datetime_utils import now_ms

logger = logging.getLogger(__name__)


class ActivityRepository:
    """Repository for task activity operations."""

    def __init__(self, db: Optional[Database] = None, clock: Callable[[], int] = now_ms):
        self.db = db or get_database()
        self.clock = clock

    async def create(
        self,
        task_id: int,
        user_id: str,
        action: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> TaskActivityDB:
        """Append an activity row."""
        async with self.db.session() as session:
            try:
                entry = TaskActivityDB(
                    task_id=task_id,
                    user_id=user_id,
                    action=action,
                    metadata_=metadata,
                    created_at=self.clock(),
                )
                session.add(entry)
                await session.flush()

                logger.debug(f"Activity: {action} on task {task_id} by {user_id}")
                return entry

            except IntegrityError as e:
                logger.error(f"Constraint violation recording activity for task {task_id}: {e}")
                raise DatabaseConstraintError(f"Cannot record activity for task {task_id}")

            except Exception as e:
                logger.error(f"Error creating activity for task {task_id}: {e}", exc_info=True)
                raise DatabaseOperationError(f"Failed to record activity for task {task_id}: {e}")

    async def get_by_id(self, activity_id: int) -> Optional[TaskActivityDB]:
        async with self.db.session() as session:
            return await session.get(TaskActivityDB, activity_id)

    # ==================== QUERY METHODS ====================

    async def get_by_task(self, task_id: int) -> List[TaskActivityDB]:
        """Get full history for a task, oldest first."""
        async with self.db.session() as session:
            result = await session.execute(
                select(TaskActivityDB)
                .where(TaskActivityDB.task_id == task_id)
                .order_by(TaskActivityDB.created_at.asc(), TaskActivityDB.id.asc())
            )
            return list(result.scalars().all())

    async def get_by_user(self, user_id: str, limit: Optional[int] = None) -> List[TaskActivityDB]:
        """Get a user's activity, most recent first, optionally capped."""
        async with self.db.session() as session:
            query = (
                select(TaskActivityDB)
                .where(TaskActivityDB.user_id == user_id)
                .order_by(TaskActivityDB.created_at.desc(), TaskActivityDB.id.desc())
            )
            if limit is not None:
                query = query.limit(limit)

            result = await session.execute(query)
            return list(result.scalars().all())

    async def get_recent_by_task(self, task_id: int, limit: int = 10) -> List[TaskActivityDB]:
        """Get the last ``limit`` activities for a task, most recent first."""
        async with self.db.session() as session:
            result = await session.execute(
                select(TaskActivityDB)
                .where(TaskActivityDB.task_id == task_id)
                .order_by(TaskActivityDB.created_at.desc(), TaskActivityDB.id.desc())
                .limit(limit)
            )
            return list(result.scalars().all())

    async def get_recent_by_user(self, user_id: str, limit: int = 20) -> List[TaskActivityDB]:
        """Get the last ``limit`` activities by a user, most recent first."""
        return await self.get_by_user(user_id, limit=limit)

    async def count_by_task(self, task_id: int) -> int:
        async with self.db.session() as session:
            result = await session.execute(
                select(func.count(TaskActivityDB.id))
                .where(TaskActivityDB.task_id == task_id)
            )
            return result.scalar() or 0

    # ==================== DELETE ====================

    async def delete(self, activity_id: int) -> bool:
        async with self.db.session() as session:
            try:
                result = await session.execute(
                    delete(TaskActivityDB).where(TaskActivityDB.id == activity_id)
                )
                return result.rowcount > 0

            except Exception as e:
                logger.error(f"Activity deletion failed for {activity_id}: {e}", exc_info=True)
                raise DatabaseOperationError(f"Failed to delete activity {activity_id}: {e}")

    async def delete_by_task(self, task_id: int) -> int:
        """Delete every activity row for a task. Returns the number removed."""
        async with self.db.session() as session:
            try:
                result = await session.execute(
                    delete(TaskActivityDB).where(TaskActivityDB.task_id == task_id)
                )
                return result.rowcount

            except Exception as e:
                logger.error(f"Activity purge failed for task {task_id}: {e}", exc_info=True)
                raise DatabaseOperationError(f"Failed to delete activity of task {task_id}: {e}")
