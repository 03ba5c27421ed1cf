"""
Account repository: registered users and their login sessions.

Backs the session identity provider. Emails are stored lower-cased; tokens
and user ids are opaque random strings.
"""

import logging
import secrets
from typing import Optional, Callable

from sqlalchemy import select, delete
from sqlalchemy.exc import IntegrityError

from ..connection import Database, get_database
from ..models import UserDB, SessionDB
from ..exceptions import DatabaseConstraintError, DatabaseOperationError
from ...utils.datetime_utils import now_ms

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


class AccountRepository:
    """Repository for users and sessions."""

    def __init__(self, db: Optional[Database] = None, clock: Callable[[], int] = now_ms):
        self.db = db or get_database()
        self.clock = clock

    # ==================== USERS ====================

    async def create_user(self, email: str, password_hash: str) -> UserDB:
        """
        Register a user.

        Raises:
            DatabaseConstraintError: If the email is already registered
        """
        email = normalize_email(email)
        async with self.db.session() as session:
            try:
                user = UserDB(
                    id=secrets.token_hex(16),
                    email=email,
                    password_hash=password_hash,
                    created_at=self.clock(),
                )
                session.add(user)
                await session.flush()

                logger.info(f"Registered user {user.id}")
                return user

            except IntegrityError:
                logger.warning("Signup rejected: email already registered")
                raise DatabaseConstraintError("Email already registered")

            except Exception as e:
                logger.error(f"CRITICAL: User creation failed: {e}", exc_info=True)
                raise DatabaseOperationError(f"Failed to create user: {e}")

    async def get_user_by_id(self, user_id: str) -> Optional[UserDB]:
        async with self.db.session() as session:
            return await session.get(UserDB, user_id)

    async def get_user_by_email(self, email: str) -> Optional[UserDB]:
        async with self.db.session() as session:
            result = await session.execute(
                select(UserDB).where(UserDB.email == normalize_email(email))
            )
            return result.scalars().first()

    # ==================== SESSIONS ====================

    async def create_session(self, user_id: str, ttl_ms: int) -> SessionDB:
        """Open a session that expires ``ttl_ms`` from now."""
        now = self.clock()
        async with self.db.session() as session:
            try:
                login_session = SessionDB(
                    token=secrets.token_urlsafe(32),
                    user_id=user_id,
                    created_at=now,
                    expires_at=now + ttl_ms,
                )
                session.add(login_session)
                await session.flush()

                logger.info(f"Opened session for user {user_id}")
                return login_session

            except Exception as e:
                logger.error(f"CRITICAL: Session creation failed for {user_id}: {e}", exc_info=True)
                raise DatabaseOperationError(f"Failed to create session for {user_id}: {e}")

    async def get_session(self, token: str) -> Optional[SessionDB]:
        """Get a session by token. Expired sessions are returned as-is."""
        async with self.db.session() as session:
            return await session.get(SessionDB, token)

    async def get_active_session(self, token: str) -> Optional[SessionDB]:
        """Get a session by token, or None if unknown or expired."""
        login_session = await self.get_session(token)
        if login_session is None or login_session.expires_at <= self.clock():
            return None
        return login_session

    async def delete_session(self, token: str) -> bool:
        async with self.db.session() as session:
            result = await session.execute(
                delete(SessionDB).where(SessionDB.token == token)
            )
            return result.rowcount > 0

    async def delete_expired_sessions(self) -> int:
        """Remove sessions past their expiry. Returns the number removed."""
        async with self.db.session() as session:
            result = await session.execute(
                delete(SessionDB).where(SessionDB.expires_at <= self.clock())
            )
            count = result.rowcount
        if count:
            logger.info(f"Removed {count} expired sessions")
        return count
