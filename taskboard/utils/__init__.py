"""Utility modules for Taskboard."""

from .datetime_utils import (
    ONE_HOUR_MS,
    ONE_DAY_MS,
    ONE_WEEK_MS,
    now_ms,
    to_epoch_ms,
    from_epoch_ms,
    parse_due_date,
)

from .validation import (
    ValidationResult,
    sanitize_string,
    is_valid_task_title,
    is_valid_task_description,
    is_valid_comment_content,
    is_valid_due_date,
    is_valid_email,
    is_valid_password,
    validate_priority,
    validate_status,
    validate_task_fields,
    validate_preferences_fields,
)

from .passwords import hash_password, verify_password

__all__ = [
    # Datetime utilities
    "ONE_HOUR_MS",
    "ONE_DAY_MS",
    "ONE_WEEK_MS",
    "now_ms",
    "to_epoch_ms",
    "from_epoch_ms",
    "parse_due_date",
    # Validation utilities
    "ValidationResult",
    "sanitize_string",
    "is_valid_task_title",
    "is_valid_task_description",
    "is_valid_comment_content",
    "is_valid_due_date",
    "is_valid_email",
    "is_valid_password",
    "validate_priority",
    "validate_status",
    "validate_task_fields",
    "validate_preferences_fields",
    # Passwords
    "hash_password",
    "verify_password",
]
