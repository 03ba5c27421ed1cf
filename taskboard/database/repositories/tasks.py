"""
Task repository.

Handles:
- Task CRUD operations
- Owner-scoped listing (all, by status, by priority)
- Due-date scans (overdue, upcoming)
- Status counts for dashboards

This is the only module that reads or writes the tasks table. Patches never
validate; callers check well-formedness first.
"""

import logging
from typing import Optional, List, Dict, Any, Callable

from sqlalchemy import select, update, delete
from sqlalchemy.exc import IntegrityError

from ..connection import Database, get_database
from ..models import TaskDB, TaskStatusEnum, TaskPriorityEnum
from ..exceptions import DatabaseConstraintError, DatabaseOperationError
from ...utils.datetime_utils import now_ms, ONE_WEEK_MS

logger = logging.getLogger(__name__)

PATCHABLE_FIELDS = {"title", "description", "status", "priority", "due_date", "completed_at"}


class TaskRepository:
    """Repository for task operations."""

    def __init__(self, db: Optional[Database] = None, clock: Callable[[], int] = now_ms):
        self.db = db or get_database()
        self.clock = clock

    # ==================== TASK CRUD ====================

    async def create(
        self,
        user_id: str,
        title: str,
        priority: str = TaskPriorityEnum.MEDIUM.value,
        status: str = TaskStatusEnum.PENDING.value,
        description: Optional[str] = None,
        due_date: Optional[int] = None,
    ) -> TaskDB:
        """Create a new task."""
        now = self.clock()
        async with self.db.session() as session:
            try:
                task = TaskDB(
                    user_id=user_id,
                    title=title,
                    description=description,
                    status=status,
                    priority=priority,
                    due_date=due_date,
                    created_at=now,
                    updated_at=now,
                )
                session.add(task)
                await session.flush()

                logger.info(f"Created task {task.id} for user {user_id}")
                return task

            except IntegrityError as e:
                logger.error(f"Constraint violation creating task: {e}")
                raise DatabaseConstraintError(f"Cannot create task for {user_id}: constraint violation")

            except Exception as e:
                logger.error(f"CRITICAL: Task creation failed: {e}", exc_info=True)
                raise DatabaseOperationError(f"Failed to create task: {e}")

    async def get_by_id(self, task_id: int) -> Optional[TaskDB]:
        """Get task by primary key. Returns None if absent."""
        async with self.db.session() as session:
            return await session.get(TaskDB, task_id)

    async def update(self, task_id: int, updates: Dict[str, Any]) -> Optional[TaskDB]:
        """
        Patch a task.

        Merges the given fields and always refreshes updated_at.

        Returns:
            The updated task, or None if it does not exist
        """
        unknown = set(updates) - PATCHABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot patch task fields: {', '.join(sorted(unknown))}")

        values = dict(updates)
        values["updated_at"] = self.clock()

        async with self.db.session() as session:
            try:
                await session.execute(
                    update(TaskDB)
                    .where(TaskDB.id == task_id)
                    .values(**values)
                )

                result = await session.execute(
                    select(TaskDB).where(TaskDB.id == task_id)
                )
                return result.scalar_one_or_none()

            except IntegrityError as e:
                logger.error(f"Constraint violation updating task {task_id}: {e}")
                raise DatabaseConstraintError(f"Cannot update task {task_id}: constraint violation")

            except Exception as e:
                logger.error(f"CRITICAL: Task update failed for {task_id}: {e}", exc_info=True)
                raise DatabaseOperationError(f"Failed to update task {task_id}: {e}")

    async def delete(self, task_id: int) -> bool:
        """Delete a task. Returns False if it did not exist."""
        async with self.db.session() as session:
            try:
                result = await session.execute(
                    delete(TaskDB).where(TaskDB.id == task_id)
                )
                return result.rowcount > 0

            except Exception as e:
                logger.error(f"CRITICAL: Task deletion failed for {task_id}: {e}", exc_info=True)
                raise DatabaseOperationError(f"Failed to delete task {task_id}: {e}")

    # ==================== QUERY METHODS ====================

    async def get_by_user(self, user_id: str) -> List[TaskDB]:
        """Get all of a user's tasks, newest first."""
        async with self.db.session() as session:
            result = await session.execute(
                select(TaskDB)
                .where(TaskDB.user_id == user_id)
                .order_by(TaskDB.created_at.desc(), TaskDB.id.desc())
            )
            return list(result.scalars().all())

    async def get_by_user_and_status(self, user_id: str, status: str) -> List[TaskDB]:
        """Get a user's tasks with the given status, newest first."""
        async with self.db.session() as session:
            result = await session.execute(
                select(TaskDB)
                .where(TaskDB.user_id == user_id, TaskDB.status == status)
                .order_by(TaskDB.created_at.desc(), TaskDB.id.desc())
            )
            return list(result.scalars().all())

    async def get_by_user_and_priority(self, user_id: str, priority: str) -> List[TaskDB]:
        """Get a user's tasks with the given priority, newest first."""
        async with self.db.session() as session:
            result = await session.execute(
                select(TaskDB)
                .where(TaskDB.user_id == user_id, TaskDB.priority == priority)
                .order_by(TaskDB.created_at.desc(), TaskDB.id.desc())
            )
            return list(result.scalars().all())

    async def get_overdue_by_user(self, user_id: str, now: Optional[int] = None) -> List[TaskDB]:
        """
        Get a user's open tasks whose due date has passed.

        Filters the owner's full task list in memory; per-user volume is small.
        """
        now = self.clock() if now is None else now
        tasks = await self.get_by_user(user_id)
        return [
            task for task in tasks
            if task.due_date is not None
            and task.due_date < now
            and task.status != TaskStatusEnum.COMPLETED.value
        ]

    async def get_upcoming_by_user(self, user_id: str, now: Optional[int] = None) -> List[TaskDB]:
        """Get a user's open tasks due within the next 7 days (inclusive)."""
        now = self.clock() if now is None else now
        week_from_now = now + ONE_WEEK_MS
        tasks = await self.get_by_user(user_id)
        return [
            task for task in tasks
            if task.due_date is not None
            and now <= task.due_date <= week_from_now
            and task.status != TaskStatusEnum.COMPLETED.value
        ]

    async def get_counts_by_status(self, user_id: str) -> Dict[str, int]:
        """Get a user's task counts per status plus the total."""
        tasks = await self.get_by_user(user_id)
        counts = {status.value: 0 for status in TaskStatusEnum}
        for task in tasks:
            counts[task.status] = counts.get(task.status, 0) + 1
        counts["total"] = len(tasks)
        return counts

