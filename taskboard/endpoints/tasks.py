"""
Task endpoints.

Create, update and delete are rate-limited and audited; every operation is
restricted to the caller's own tasks.
"""

import logging
from typing import Optional, List, Dict, Any

from ..database.models import TaskDB, TaskActivityDB, TaskStatusEnum, TaskPriorityEnum, ActivityActionEnum
from ..exceptions import ValidationError
from ..services.context import RequestContext
from ..services.guard import require_found, assert_owner
from ..services.audit_trail import created_metadata, deleted_metadata
from ..utils.validation import (
    sanitize_string,
    validate_task_fields,
    validate_status,
    validate_priority,
    VALID_STATUSES,
    VALID_PRIORITIES,
)
from .pipeline import authenticate, enforce_rate_limit, require_valid, record_activity

logger = logging.getLogger(__name__)

COMPLETED = TaskStatusEnum.COMPLETED.value


async def _get_owned_task(ctx: RequestContext, task_id: int, user_id: str, verb: str) -> TaskDB:
    task = await ctx.services.store.tasks.get_by_id(task_id)
    task = require_found(task, "Task", task_id)
    assert_owner(task, user_id, verb)
    return task


# ==================== MUTATIONS ====================

async def create_task(
    ctx: RequestContext,
    title: str,
    priority: str = TaskPriorityEnum.MEDIUM.value,
    description: Optional[str] = None,
    due_date: Optional[int] = None,
) -> int:
    """Create a pending task owned by the caller. Returns its id."""
    user_id = await authenticate(ctx)
    await enforce_rate_limit(ctx, "createTask", user_id)

    title = sanitize_string(title)
    if description is not None:
        description = sanitize_string(description)
    require_valid(validate_task_fields(
        ctx.services.clock(),
        title=title,
        description=description,
        priority=priority,
        due_date=due_date,
    ))

    task = await ctx.services.store.tasks.create(
        user_id=user_id,
        title=title,
        priority=priority,
        status=TaskStatusEnum.PENDING.value,
        description=description,
        due_date=due_date,
    )

    await record_activity(
        ctx, task.id, user_id, ActivityActionEnum.CREATED.value,
        created_metadata(title, priority),
    )
    return task.id


async def update_task(
    ctx: RequestContext,
    task_id: int,
    title: Optional[str] = None,
    description: Optional[str] = None,
    status: Optional[str] = None,
    priority: Optional[str] = None,
    due_date: Optional[int] = None,
) -> int:
    """
    Patch the given fields of a task. Returns its id.

    Moving the status into completed stamps completed_at; nothing clears it.
    """
    user_id = await authenticate(ctx)
    await enforce_rate_limit(ctx, "updateTask", user_id)
    task = await _get_owned_task(ctx, task_id, user_id, "update task")

    if title is not None:
        title = sanitize_string(title)
    if description is not None:
        description = sanitize_string(description)

    now = ctx.services.clock()
    require_valid(validate_task_fields(
        now,
        title=title,
        description=description,
        status=status,
        priority=priority,
        due_date=due_date,
    ))

    updates: Dict[str, Any] = {}
    if title is not None:
        updates["title"] = title
    if description is not None:
        updates["description"] = description
    if status is not None:
        updates["status"] = status
    if priority is not None:
        updates["priority"] = priority
    if due_date is not None:
        updates["due_date"] = due_date

    # completed_at records the first transition only; re-completing keeps it
    if status == COMPLETED and task.status != COMPLETED:
        updates["completed_at"] = now

    await ctx.services.store.tasks.update(task_id, updates)

    completed = status == COMPLETED
    action = ActivityActionEnum.COMPLETED if completed else ActivityActionEnum.UPDATED
    await record_activity(ctx, task_id, user_id, action.value, updates)
    return task_id


async def delete_task(ctx: RequestContext, task_id: int) -> int:
    """
    Delete a task and its history. Returns its id.

    The deletion is audited before the task goes; the task's activity is then
    purged with it. Comments on the task are left in place.
    """
    user_id = await authenticate(ctx)
    await enforce_rate_limit(ctx, "deleteTask", user_id)
    task = await _get_owned_task(ctx, task_id, user_id, "delete task")

    await record_activity(
        ctx, task_id, user_id, ActivityActionEnum.DELETED.value,
        deleted_metadata(task.title),
    )

    await ctx.services.store.tasks.delete(task_id)
    await ctx.services.audit.purge_task(task_id)

    logger.info(f"Deleted task {task_id} for user {user_id}")
    return task_id


# ==================== QUERIES ====================

async def get_task(ctx: RequestContext, task_id: int) -> TaskDB:
    user_id = await authenticate(ctx)
    return await _get_owned_task(ctx, task_id, user_id, "view task")


async def list_tasks(ctx: RequestContext) -> List[TaskDB]:
    """All of the caller's tasks, newest first."""
    user_id = await authenticate(ctx)
    return await ctx.services.store.tasks.get_by_user(user_id)


async def list_by_status(ctx: RequestContext, status: str) -> List[TaskDB]:
    user_id = await authenticate(ctx)
    if not validate_status(status):
        raise ValidationError(f"Invalid status '{status}'. Valid: {', '.join(sorted(VALID_STATUSES))}")
    return await ctx.services.store.tasks.get_by_user_and_status(user_id, status)


async def list_by_priority(ctx: RequestContext, priority: str) -> List[TaskDB]:
    user_id = await authenticate(ctx)
    if not validate_priority(priority):
        raise ValidationError(f"Invalid priority '{priority}'. Valid: {', '.join(sorted(VALID_PRIORITIES))}")
    return await ctx.services.store.tasks.get_by_user_and_priority(user_id, priority)


async def list_overdue(ctx: RequestContext) -> List[TaskDB]:
    """Open tasks whose due date has passed."""
    user_id = await authenticate(ctx)
    return await ctx.services.store.tasks.get_overdue_by_user(user_id, now=ctx.services.clock())


async def list_upcoming(ctx: RequestContext) -> List[TaskDB]:
    """Open tasks due within the next seven days."""
    user_id = await authenticate(ctx)
    return await ctx.services.store.tasks.get_upcoming_by_user(user_id, now=ctx.services.clock())


async def get_task_stats(ctx: RequestContext) -> Dict[str, int]:
    """Count of the caller's tasks per status, plus the total."""
    user_id = await authenticate(ctx)
    return await ctx.services.store.tasks.get_counts_by_status(user_id)


async def get_task_history(ctx: RequestContext, task_id: int) -> List[TaskActivityDB]:
    """A task's activity, oldest first."""
    user_id = await authenticate(ctx)
    await _get_owned_task(ctx, task_id, user_id, "view task history")
    return await ctx.services.audit.by_task(task_id)
