"""
Pydantic models for API request bodies.

These check shape and enumerated values only. Lengths and due-date sanity
are enforced by the endpoint layer so every caller gets the same messages.
"""

from typing import Optional, Literal, Union
from pydantic import BaseModel, Field, field_validator

from ..utils.datetime_utils import parse_due_date

TaskStatus = Literal["pending", "in_progress", "completed"]
TaskPriority = Literal["low", "medium", "high"]
Theme = Literal["light", "dark", "system"]
DefaultView = Literal["list", "board"]


class DueDateMixin(BaseModel):
    due_date: Optional[Union[int, str]] = None

    @field_validator("due_date")
    @classmethod
    def normalize_due_date(cls, v):
        """Accept epoch milliseconds, ISO datetimes or plain dates."""
        return parse_due_date(v)


# ============================================
# TASKS
# ============================================

class TaskCreateRequest(DueDateMixin):
    """Body of POST /api/tasks."""
    title: str
    description: Optional[str] = None
    priority: TaskPriority = "medium"


class TaskUpdateRequest(DueDateMixin):
    """Body of PATCH /api/tasks/{id}. Omitted fields are left unchanged."""
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None


# ============================================
# COMMENTS
# ============================================

class CommentRequest(BaseModel):
    """Body for creating or editing a comment."""
    content: str


# ============================================
# USER PREFERENCES
# ============================================

class PreferencesUpdateRequest(BaseModel):
    theme: Optional[Theme] = None
    default_view: Optional[DefaultView] = None
    default_filter: Optional[str] = None
    notifications_enabled: Optional[bool] = None


# ============================================
# ACCOUNTS
# ============================================

class CredentialsRequest(BaseModel):
    """Signup and login body."""
    email: str = Field(..., max_length=255)
    password: str
