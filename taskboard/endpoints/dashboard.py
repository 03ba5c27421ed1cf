"""
Dashboard endpoints: read-only aggregates over the caller's tasks.
"""

import math
from typing import List, Dict

from ..database.models import TaskDB, TaskActivityDB, TaskStatusEnum, TaskPriorityEnum
from ..services.context import RequestContext
from ..utils.datetime_utils import ONE_WEEK_MS
from .pipeline import authenticate

COMPLETED = TaskStatusEnum.COMPLETED.value


async def dashboard_summary(ctx: RequestContext) -> Dict[str, int]:
    """Task counts by status plus overdue and upcoming counts."""
    user_id = await authenticate(ctx)
    tasks = ctx.services.store.tasks
    now = ctx.services.clock()

    counts = await tasks.get_counts_by_status(user_id)
    overdue = await tasks.get_overdue_by_user(user_id, now=now)
    upcoming = await tasks.get_upcoming_by_user(user_id, now=now)

    return {
        "total_tasks": counts["total"],
        "pending_tasks": counts[TaskStatusEnum.PENDING.value],
        "in_progress_tasks": counts[TaskStatusEnum.IN_PROGRESS.value],
        "completed_tasks": counts[COMPLETED],
        "overdue_tasks": len(overdue),
        "upcoming_tasks": len(upcoming),
    }


async def recent_tasks(ctx: RequestContext) -> List[TaskDB]:
    """The caller's most recently created tasks."""
    user_id = await authenticate(ctx)
    tasks = await ctx.services.store.tasks.get_by_user(user_id)
    return tasks[:ctx.services.settings.recent_tasks_limit]


async def recent_activity(ctx: RequestContext) -> List[TaskActivityDB]:
    """The caller's most recent audit entries across all tasks."""
    user_id = await authenticate(ctx)
    return await ctx.services.audit.recent_by_user(
        user_id, limit=ctx.services.settings.recent_activity_limit
    )


async def tasks_by_priority(ctx: RequestContext) -> Dict[str, int]:
    """Number of open (not completed) tasks per priority."""
    user_id = await authenticate(ctx)
    tasks = await ctx.services.store.tasks.get_by_user(user_id)

    counts = {priority.value: 0 for priority in reversed(TaskPriorityEnum)}
    for task in tasks:
        if task.status != COMPLETED:
            counts[task.priority] = counts.get(task.priority, 0) + 1
    return counts


async def completion_stats(ctx: RequestContext) -> Dict[str, int]:
    """
    Completion totals for the caller.

    completion_rate is a whole percentage rounded half up; recent_completions
    counts tasks completed within the last seven days.
    """
    user_id = await authenticate(ctx)
    tasks = await ctx.services.store.tasks.get_by_user(user_id)
    week_ago = ctx.services.clock() - ONE_WEEK_MS

    total = len(tasks)
    completed = sum(1 for task in tasks if task.status == COMPLETED)
    completion_rate = math.floor(completed / total * 100 + 0.5) if total else 0
    recent_completions = sum(
        1 for task in tasks
        if task.completed_at is not None and task.completed_at >= week_ago
    )

    return {
        "total_tasks": total,
        "completed_tasks": completed,
        "completion_rate": completion_rate,
        "recent_completions": recent_completions,
    }
