from .api_validation import (
    TaskCreateRequest,
    TaskUpdateRequest,
    CommentRequest,
    PreferencesUpdateRequest,
    CredentialsRequest,
)
from .records import (
    TaskRecord,
    CommentRecord,
    ActivityRecord,
    PreferencesRecord,
    SessionRecord,
)

__all__ = [
    "TaskCreateRequest",
    "TaskUpdateRequest",
    "CommentRequest",
    "PreferencesUpdateRequest",
    "CredentialsRequest",
    "TaskRecord",
    "CommentRecord",
    "ActivityRecord",
    "PreferencesRecord",
    "SessionRecord",
]
