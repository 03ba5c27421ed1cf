"""
User preferences repository.

At most one row per user; rows are created lazily by ``get_or_create``.
"""

import logging
from typing import Optional, Dict, Any, Callable

from sqlalchemy import select, update, delete
from sqlalchemy.exc import IntegrityError

from ..connection import Database, get_database
from ..models import UserPreferencesDB, ThemeEnum, DefaultViewEnum
from ..exceptions import DatabaseConstraintError, DatabaseOperationError
from ...utils.datetime_utils import now_ms

logger = logging.getLogger(__name__)

PATCHABLE_FIELDS = {"theme", "default_view", "default_filter", "notifications_enabled"}

DEFAULT_PREFERENCES: Dict[str, Any] = {
    "theme": ThemeEnum.SYSTEM.value,
    "default_view": DefaultViewEnum.LIST.value,
    "notifications_enabled": True,
}


class PreferencesRepository:
    """Repository for user preference operations."""

    def __init__(self, db: Optional[Database] = None, clock: Callable[[], int] = now_ms):
        self.db = db or get_database()
        self.clock = clock

    async def create(
        self,
        user_id: str,
        theme: Optional[str] = None,
        default_view: Optional[str] = None,
        default_filter: Optional[str] = None,
        notifications_enabled: bool = True,
    ) -> UserPreferencesDB:
        """Create a preferences row. Fails if the user already has one."""
        now = self.clock()
        async with self.db.session() as session:
            try:
                preferences = UserPreferencesDB(
                    user_id=user_id,
                    theme=theme,
                    default_view=default_view,
                    default_filter=default_filter,
                    notifications_enabled=notifications_enabled,
                    created_at=now,
                    updated_at=now,
                )
                session.add(preferences)
                await session.flush()

                logger.info(f"Created preferences for user {user_id}")
                return preferences

            except IntegrityError as e:
                logger.warning(f"Preferences already exist for user {user_id}: {e}")
                raise DatabaseConstraintError(f"Preferences already exist for user {user_id}")

            except Exception as e:
                logger.error(f"CRITICAL: Preferences creation failed for {user_id}: {e}", exc_info=True)
                raise DatabaseOperationError(f"Failed to create preferences for {user_id}: {e}")

    async def get_by_id(self, preferences_id: int) -> Optional[UserPreferencesDB]:
        async with self.db.session() as session:
            return await session.get(UserPreferencesDB, preferences_id)

    async def get_by_user(self, user_id: str) -> Optional[UserPreferencesDB]:
        """Get a user's preferences, or None if never created."""
        async with self.db.session() as session:
            result = await session.execute(
                select(UserPreferencesDB).where(UserPreferencesDB.user_id == user_id)
            )
            return result.scalars().first()

    async def get_or_create(self, user_id: str) -> UserPreferencesDB:
        """
        Get a user's preferences, creating the defaults on first access.

        Two concurrent first accesses race on the unique user_id; the loser
        re-reads the winner's row.
        """
        existing = await self.get_by_user(user_id)
        if existing:
            return existing

        try:
            return await self.create(user_id, **DEFAULT_PREFERENCES)
        except DatabaseConstraintError:
            existing = await self.get_by_user(user_id)
            if existing is None:
                raise
            return existing

    async def update(self, preferences_id: int, updates: Dict[str, Any]) -> Optional[UserPreferencesDB]:
        """Patch preferences; refreshes updated_at. Returns None if absent."""
        unknown = set(updates) - PATCHABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot patch preference fields: {', '.join(sorted(unknown))}")

        values = dict(updates)
        values["updated_at"] = self.clock()

        async with self.db.session() as session:
            try:
                await session.execute(
                    update(UserPreferencesDB)
                    .where(UserPreferencesDB.id == preferences_id)
                    .values(**values)
                )
                result = await session.execute(
                    select(UserPreferencesDB).where(UserPreferencesDB.id == preferences_id)
                )
                return result.scalar_one_or_none()

            except Exception as e:
                logger.error(f"CRITICAL: Preferences update failed for {preferences_id}: {e}", exc_info=True)
                raise DatabaseOperationError(f"Failed to update preferences {preferences_id}: {e}")

    async def delete(self, preferences_id: int) -> bool:
        async with self.db.session() as session:
            result = await session.execute(
                delete(UserPreferencesDB).where(UserPreferencesDB.id == preferences_id)
            )
            return result.rowcount > 0

    async def delete_by_user(self, user_id: str) -> int:
        """Delete all preference rows for a user."""
        async with self.db.session() as session:
            result = await session.execute(
                delete(UserPreferencesDB).where(UserPreferencesDB.user_id == user_id)
            )
            return result.rowcount
