"""
Response models for records returned by the API.

Built straight from ORM rows via ``from_attributes``.
"""

from typing import Optional, Dict, Any
from pydantic import BaseModel, ConfigDict, Field


class RecordModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class TaskRecord(RecordModel):
    id: int
    user_id: str
    title: str
    description: Optional[str] = None
    status: str
    priority: str
    due_date: Optional[int] = None
    completed_at: Optional[int] = None
    created_at: int
    updated_at: int


class CommentRecord(RecordModel):
    id: int
    task_id: int
    user_id: str
    content: str
    created_at: int
    updated_at: int


class ActivityRecord(RecordModel):
    id: int
    task_id: int
    user_id: str
    action: str
    metadata: Optional[Dict[str, Any]] = Field(default=None, validation_alias="metadata_")
    created_at: int


class PreferencesRecord(RecordModel):
    id: int
    user_id: str
    theme: Optional[str] = None
    default_view: Optional[str] = None
    default_filter: Optional[str] = None
    notifications_enabled: bool = True
    created_at: int
    updated_at: int


class SessionRecord(BaseModel):
    user_id: str
    token: str
    expires_at: int
