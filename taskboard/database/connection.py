"""
Database connection and session management with connection pooling.

Provides async SQLAlchemy engine and session factory. PostgreSQL URLs are
rewritten to the asyncpg driver; SQLite URLs (used by the test-suite) run on
aiosqlite with a single shared connection so in-memory databases persist
across sessions.
"""

import logging
from typing import AsyncGenerator, Optional, Dict, Any
from contextlib import asynccontextmanager

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    create_async_engine,
    AsyncSession,
    async_sessionmaker,
    AsyncEngine,
)
from sqlalchemy.pool import NullPool, QueuePool, StaticPool

from config import settings
from .models import Base
from .exceptions import DatabaseConnectionError

logger = logging.getLogger(__name__)


def normalize_database_url(database_url: str) -> str:
    """Convert postgres:// and postgresql:// to postgresql+asyncpg://."""
    if database_url.startswith("postgres://"):
        return database_url.replace("postgres://", "postgresql+asyncpg://", 1)
    if database_url.startswith("postgresql://"):
        return database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return database_url


class Database:
    """Database connection manager."""

    def __init__(self, database_url: Optional[str] = None):
        self.database_url = database_url if database_url is not None else settings.database_url
        self.engine: Optional[AsyncEngine] = None
        self.session_factory: Optional[async_sessionmaker[AsyncSession]] = None
        self._initialized = False

    def _engine_options(self, database_url: str) -> Dict[str, Any]:
        if database_url.startswith("sqlite"):
            return {
                "poolclass": StaticPool,
                "connect_args": {"check_same_thread": False},
            }

        if settings.environment == "test":
            logger.info("Using NullPool for test environment")
            return {"poolclass": NullPool}

        logger.info(
            f"Database pool config: size={settings.db_pool_size}, "
            f"max_overflow={settings.db_max_overflow}, "
            f"timeout={settings.db_pool_timeout}s"
        )
        return {
            "poolclass": QueuePool,
            "pool_size": settings.db_pool_size,
            "max_overflow": settings.db_max_overflow,
            "pool_timeout": settings.db_pool_timeout,
            "pool_recycle": settings.db_pool_recycle,
            "pool_pre_ping": True,
            "connect_args": {
                "server_settings": {
                    "application_name": "taskboard",
                    "jit": "off",
                }
            },
        }

    @property
    def backend(self) -> str:
        """Dialect name of the engine ("postgresql", "sqlite"), or "none"."""
        return self.engine.dialect.name if self.engine else "none"

    async def initialize(self) -> bool:
        """
        Create the engine and session factory, then create any missing tables.

        Returns False (and logs why) instead of raising, so the app can start
        and report an unhealthy database on /health.
        """
        if self._initialized:
            return True

        if not self.database_url:
            logger.warning("DATABASE_URL not configured")
            return False

        database_url = normalize_database_url(self.database_url)
        try:
            self.engine = create_async_engine(
                database_url,
                echo=settings.database_echo,
                **self._engine_options(database_url),
            )
            self.session_factory = async_sessionmaker(
                bind=self.engine,
                class_=AsyncSession,
                expire_on_commit=False,
                autoflush=False,
            )

            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)

            self._initialized = True
            logger.info(f"Database ready ({self.backend}, {len(Base.metadata.tables)} tables)")
            return True

        except Exception as e:
            logger.error(f"Database initialization failed: {e}", exc_info=True)
            return False

    async def close(self):
        """Dispose of the engine and its pooled connections."""
        if self.engine:
            await self.engine.dispose()
            self._initialized = False
            logger.info(f"Database connection closed ({self.backend})")

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        One unit of work. Commits when the block exits cleanly, rolls back and
        re-raises otherwise.

        Raises:
            DatabaseConnectionError: If the database cannot be initialized
        """
        if not self._initialized and not await self.initialize():
            raise DatabaseConnectionError("Database unavailable: check DATABASE_URL")

        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception as e:
                await session.rollback()
                logger.error(f"Database session error: {e}")
                raise

    async def health_check(self) -> Dict[str, Any]:
        """Run a trivial query and report the outcome with pool status."""
        try:
            async with self.session() as session:
                await session.execute(text("SELECT 1"))
        except Exception as e:
            return {"status": "unhealthy", "backend": self.backend, "error": str(e)}

        return {
            "status": "healthy",
            "backend": self.backend,
            "pool": self.get_pool_status(),
        }

    def get_pool_status(self) -> Dict[str, Any]:
        """Get connection pool status for monitoring."""
        if not self.engine:
            return {
                "status": "not_initialized",
                "error": "Engine not created"
            }

        pool = self.engine.pool
        if not isinstance(pool, QueuePool):
            return {
                "pool_type": type(pool).__name__,
                "status": "no_pooling",
            }

        size = pool.size()
        checked_out = pool.checkedout()
        max_connections = size + settings.db_max_overflow
        utilization = checked_out / max(max_connections, 1)

        if utilization > 0.9:
            health = "critical"
        elif utilization > 0.8:
            health = "warning"
        else:
            health = "healthy"

        return {
            "pool_type": "QueuePool",
            "status": health,
            "size": size,
            "checked_in": pool.checkedin(),
            "checked_out": checked_out,
            "overflow": pool.overflow(),
            "max_connections": max_connections,
            "utilization": f"{utilization:.1%}",
        }


# Singleton instance
_database: Optional[Database] = None


def get_database() -> Database:
    """Get the database singleton."""
    global _database
    if _database is None:
        _database = Database()
    return _database


async def init_database() -> bool:
    """Initialize the database."""
    db = get_database()
    return await db.initialize()


async def close_database():
    """Close the database connection."""
    global _database
    if _database:
        await _database.close()
        _database = None
