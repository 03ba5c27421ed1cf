"""
SQLAlchemy models for the Taskboard database.

Schema includes:
- Tasks owned by a single user
- Comments on tasks
- Task activity (audit trail)
- User preferences (one row per user)
- Accounts and sessions backing the identity provider

All timestamps are epoch milliseconds. Comments and activity reference their
task by id without a foreign key: comments outlive a deleted task, and
activity is purged explicitly by the delete pipeline.
"""

from typing import Optional
from sqlalchemy import (
    String,
    Text,
    Integer,
    BigInteger,
    Boolean,
    JSON,
    Index,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
import enum


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


# ==================== ENUMS ====================

class TaskStatusEnum(str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class TaskPriorityEnum(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ActivityActionEnum(str, enum.Enum):
    CREATED = "created"
    UPDATED = "updated"
    COMPLETED = "completed"
    DELETED = "deleted"
    COMMENTED = "commented"


class ThemeEnum(str, enum.Enum):
    LIGHT = "light"
    DARK = "dark"
    SYSTEM = "system"


class DefaultViewEnum(str, enum.Enum):
    LIST = "list"
    BOARD = "board"


# ==================== TASKS ====================

class TaskDB(Base):
    """To-do items, each owned by exactly one user."""
    __tablename__ = "tasks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)

    # Content
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Classification
    status: Mapped[str] = mapped_column(String(20), default=TaskStatusEnum.PENDING.value)
    priority: Mapped[str] = mapped_column(String(20), default=TaskPriorityEnum.MEDIUM.value)

    # Timing
    due_date: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    completed_at: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    updated_at: Mapped[int] = mapped_column(BigInteger, nullable=False)

    __table_args__ = (
        Index("idx_tasks_user", "user_id"),
        Index("idx_tasks_user_status", "user_id", "status"),
        Index("idx_tasks_user_priority", "user_id", "priority"),
        Index("idx_tasks_user_due_date", "user_id", "due_date"),
    )


# ==================== COMMENTS ====================

class TaskCommentDB(Base):
    """Notes attached to a task by its owner."""
    __tablename__ = "task_comments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    task_id: Mapped[int] = mapped_column(Integer, nullable=False)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)

    content: Mapped[str] = mapped_column(Text, nullable=False)

    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    updated_at: Mapped[int] = mapped_column(BigInteger, nullable=False)

    __table_args__ = (
        Index("idx_comments_task", "task_id"),
        Index("idx_comments_user", "user_id"),
        Index("idx_comments_task_created", "task_id", "created_at"),
    )


# ==================== ACTIVITY ====================

class TaskActivityDB(Base):
    """Append-only audit trail of task and comment changes."""
    __tablename__ = "task_activity"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    task_id: Mapped[int] = mapped_column(Integer, nullable=False)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)

    action: Mapped[str] = mapped_column(String(20), nullable=False)
    metadata_: Mapped[Optional[dict]] = mapped_column("metadata", JSON, nullable=True)

    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)

    __table_args__ = (
        Index("idx_activity_task", "task_id"),
        Index("idx_activity_user", "user_id"),
        Index("idx_activity_task_created", "task_id", "created_at"),
    )


# ==================== PREFERENCES ====================

class UserPreferencesDB(Base):
    """Per-user display and notification settings."""
    __tablename__ = "user_preferences"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)

    theme: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    default_view: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    default_filter: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    notifications_enabled: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    updated_at: Mapped[int] = mapped_column(BigInteger, nullable=False)

    __table_args__ = (
        Index("idx_preferences_user", "user_id"),
    )


# ==================== ACCOUNTS ====================

class UserDB(Base):
    """Registered accounts."""
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)


class SessionDB(Base):
    """Login sessions keyed by an opaque bearer token."""
    __tablename__ = "sessions"

    token: Mapped[str] = mapped_column(String(128), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    expires_at: Mapped[int] = mapped_column(BigInteger, nullable=False)

    __table_args__ = (
        Index("idx_sessions_user", "user_id"),
    )
