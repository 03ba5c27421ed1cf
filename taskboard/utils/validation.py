"""
Input validation utilities.

Pure predicates over primitive values. Nothing in this module touches the
database or the request context; callers sanitize strings with
``sanitize_string`` before checking lengths and before storing them.
"""

import re
import logging
from typing import Optional, List
from dataclasses import dataclass

from .datetime_utils import ONE_DAY_MS

logger = logging.getLogger(__name__)

TASK_TITLE_MAX = 200
TASK_DESCRIPTION_MAX = 2000
COMMENT_CONTENT_MAX = 1000
PASSWORD_MIN = 8
PASSWORD_MAX = 128
DEFAULT_FILTER_MAX = 255

# Due dates may lag "now" by up to a day to absorb client timezone skew
DUE_DATE_TOLERANCE_MS = ONE_DAY_MS

VALID_STATUSES = {"pending", "in_progress", "completed"}
VALID_PRIORITIES = {"low", "medium", "high"}
VALID_THEMES = {"light", "dark", "system"}
VALID_VIEWS = {"list", "board"}


@dataclass
class ValidationResult:
    """Result of a validation check."""
    is_valid: bool
    errors: List[str]

    @classmethod
    def success(cls) -> "ValidationResult":
        """Create a successful validation result."""
        return cls(is_valid=True, errors=[])

    @classmethod
    def failure(cls, errors: List[str]) -> "ValidationResult":
        """Create a failed validation result."""
        return cls(is_valid=False, errors=errors)

    @property
    def reason(self) -> str:
        """All errors joined into a single human-readable message."""
        return "; ".join(self.errors)


def sanitize_string(value: str) -> str:
    """Remove leading/trailing whitespace."""
    return value.strip()


def is_valid_length(value: str, min_length: int = 0, max_length: Optional[int] = None) -> bool:
    """Check that a string's length falls within [min_length, max_length]."""
    if len(value) < min_length:
        return False
    return max_length is None or len(value) <= max_length


def is_valid_task_title(title: str) -> bool:
    return is_valid_length(title, 1, TASK_TITLE_MAX)


def is_valid_task_description(description: Optional[str]) -> bool:
    if description is None:
        return True
    return is_valid_length(description, 0, TASK_DESCRIPTION_MAX)


def is_valid_comment_content(content: str) -> bool:
    return is_valid_length(content, 1, COMMENT_CONTENT_MAX)


def is_valid_due_date(due_date: Optional[int], now: int) -> bool:
    """
    Check that a due date is not meaningfully in the past.

    Args:
        due_date: Epoch milliseconds, or None when unset
        now: Current time in epoch milliseconds

    Returns:
        True if unset or no more than 24 hours before ``now``
    """
    if due_date is None:
        return True
    return due_date >= now - DUE_DATE_TOLERANCE_MS


def is_valid_email(email: str) -> bool:
    """
    Validate email format.

    Args:
        email: Email address to validate

    Returns:
        True if valid email format
    """
    if not email:
        return False

    # Basic email regex - not exhaustive but catches most issues
    pattern = r'^[^\s@]+@[^\s@]+\.[^\s@]+$'
    return bool(re.match(pattern, email))


def is_valid_password(password: str) -> bool:
    return is_valid_length(password, PASSWORD_MIN, PASSWORD_MAX)


def validate_priority(priority: str) -> bool:
    """Validate priority value."""
    return priority in VALID_PRIORITIES


def validate_status(status: str) -> bool:
    """Validate status value."""
    return status in VALID_STATUSES


def validate_task_fields(
    now: int,
    title: Optional[str] = None,
    description: Optional[str] = None,
    status: Optional[str] = None,
    priority: Optional[str] = None,
    due_date: Optional[int] = None,
) -> ValidationResult:
    """
    Validate task fields before save.

    Only fields that are not None are checked, so the same function serves
    both creation (title always given) and partial updates. String fields
    must already be sanitized.

    Args:
        now: Current time in epoch milliseconds
        title: Task title
        description: Task description
        status: Task status
        priority: Priority level
        due_date: Due date in epoch milliseconds

    Returns:
        ValidationResult with errors
    """
    errors = []

    if title is not None and not is_valid_task_title(title):
        errors.append(f"Task title must be between 1 and {TASK_TITLE_MAX} characters")

    if not is_valid_task_description(description):
        errors.append(f"Task description must be at most {TASK_DESCRIPTION_MAX} characters")

    if status is not None and not validate_status(status):
        errors.append(f"Invalid status '{status}'. Valid: {', '.join(sorted(VALID_STATUSES))}")

    if priority is not None and not validate_priority(priority):
        errors.append(f"Invalid priority '{priority}'. Valid: {', '.join(sorted(VALID_PRIORITIES))}")

    if not is_valid_due_date(due_date, now):
        errors.append("Due date must not be in the past")

    if errors:
        return ValidationResult.failure(errors)
    return ValidationResult.success()


def validate_preferences_fields(
    theme: Optional[str] = None,
    default_view: Optional[str] = None,
    default_filter: Optional[str] = None,
) -> ValidationResult:
    """Validate the preference fields that were supplied."""
    errors = []

    if theme is not None and theme not in VALID_THEMES:
        errors.append(f"Invalid theme '{theme}'. Valid: {', '.join(sorted(VALID_THEMES))}")

    if default_view is not None and default_view not in VALID_VIEWS:
        errors.append(f"Invalid default view '{default_view}'. Valid: {', '.join(sorted(VALID_VIEWS))}")

    if default_filter is not None and not is_valid_length(default_filter, 0, DEFAULT_FILTER_MAX):
        errors.append(f"Default filter must be at most {DEFAULT_FILTER_MAX} characters")

    if errors:
        return ValidationResult.failure(errors)
    return ValidationResult.success()
