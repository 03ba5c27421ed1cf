"""
Comment repository.

The only module that touches the task_comments table.
"""

import logging
from typing import Optional, List, Callable

from sqlalchemy import select, update, delete, func
from sqlalchemy.exc import IntegrityError

from ..connection import Database, get_database
from ..models import TaskCommentDB
from ..exceptions import DatabaseConstraintError, DatabaseOperationError
from ...utils.datetime_utils import now_ms

logger = logging.getLogger(__name__)


class CommentRepository:
    """Repository for task comment operations."""

    def __init__(self, db: Optional[Database] = None, clock: Callable[[], int] = now_ms):
        self.db = db or get_database()
        self.clock = clock

    async def create(self, task_id: int, user_id: str, content: str) -> TaskCommentDB:
        """Create a comment on a task."""
        now = self.clock()
        async with self.db.session() as session:
            try:
                comment = TaskCommentDB(
                    task_id=task_id,
                    user_id=user_id,
                    content=content,
                    created_at=now,
                    updated_at=now,
                )
                session.add(comment)
                await session.flush()

                logger.info(f"Created comment {comment.id} on task {task_id}")
                return comment

            except IntegrityError as e:
                logger.error(f"Constraint violation creating comment on task {task_id}: {e}")
                raise DatabaseConstraintError(f"Cannot create comment on task {task_id}: constraint violation")

            except Exception as e:
                logger.error(f"CRITICAL: Comment creation failed for task {task_id}: {e}", exc_info=True)
                raise DatabaseOperationError(f"Failed to create comment on task {task_id}: {e}")

    async def get_by_id(self, comment_id: int) -> Optional[TaskCommentDB]:
        """Get comment by primary key. Returns None if absent."""
        async with self.db.session() as session:
            return await session.get(TaskCommentDB, comment_id)

    async def get_by_task(self, task_id: int) -> List[TaskCommentDB]:
        """Get all comments on a task in chronological order."""
        async with self.db.session() as session:
            result = await session.execute(
                select(TaskCommentDB)
                .where(TaskCommentDB.task_id == task_id)
                .order_by(TaskCommentDB.created_at.asc(), TaskCommentDB.id.asc())
            )
            return list(result.scalars().all())

    async def get_by_user(self, user_id: str) -> List[TaskCommentDB]:
        """Get all comments written by a user, newest first."""
        async with self.db.session() as session:
            result = await session.execute(
                select(TaskCommentDB)
                .where(TaskCommentDB.user_id == user_id)
                .order_by(TaskCommentDB.created_at.desc(), TaskCommentDB.id.desc())
            )
            return list(result.scalars().all())

    async def get_recent_by_task(self, task_id: int, limit: int = 5) -> List[TaskCommentDB]:
        """Get the last ``limit`` comments on a task, oldest to newest."""
        async with self.db.session() as session:
            result = await session.execute(
                select(TaskCommentDB)
                .where(TaskCommentDB.task_id == task_id)
                .order_by(TaskCommentDB.created_at.desc(), TaskCommentDB.id.desc())
                .limit(limit)
            )
            comments = list(result.scalars().all())
        comments.reverse()
        return comments

    async def update(self, comment_id: int, content: str) -> Optional[TaskCommentDB]:
        """Replace a comment's content. Returns None if it does not exist."""
        async with self.db.session() as session:
            try:
                await session.execute(
                    update(TaskCommentDB)
                    .where(TaskCommentDB.id == comment_id)
                    .values(content=content, updated_at=self.clock())
                )
                result = await session.execute(
                    select(TaskCommentDB).where(TaskCommentDB.id == comment_id)
                )
                return result.scalar_one_or_none()

            except Exception as e:
                logger.error(f"CRITICAL: Comment update failed for {comment_id}: {e}", exc_info=True)
                raise DatabaseOperationError(f"Failed to update comment {comment_id}: {e}")

    async def delete(self, comment_id: int) -> bool:
        """Delete a comment. Returns False if it did not exist."""
        async with self.db.session() as session:
            try:
                result = await session.execute(
                    delete(TaskCommentDB).where(TaskCommentDB.id == comment_id)
                )
                return result.rowcount > 0

            except Exception as e:
                logger.error(f"CRITICAL: Comment deletion failed for {comment_id}: {e}", exc_info=True)
                raise DatabaseOperationError(f"Failed to delete comment {comment_id}: {e}")

    async def delete_by_task(self, task_id: int) -> int:
        """Delete every comment on a task. Returns the number removed."""
        async with self.db.session() as session:
            try:
                result = await session.execute(
                    delete(TaskCommentDB).where(TaskCommentDB.task_id == task_id)
                )
                return result.rowcount

            except Exception as e:
                logger.error(f"CRITICAL: Comment purge failed for task {task_id}: {e}", exc_info=True)
                raise DatabaseOperationError(f"Failed to delete comments of task {task_id}: {e}")

    async def count_by_task(self, task_id: int) -> int:
        """Count comments on a task."""
        async with self.db.session() as session:
            result = await session.execute(
                select(func.count(TaskCommentDB.id))
                .where(TaskCommentDB.task_id == task_id)
            )
            return result.scalar() or 0
