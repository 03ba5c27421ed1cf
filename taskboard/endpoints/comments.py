"""
Comment endpoints.

Only a task's owner may comment on it, so a comment's author is always the
owner of its task. Comments are checked against their own user_id for edits
and deletes, and against the parent task for listing.
"""

import logging
from typing import List

from ..database.models import TaskDB, TaskCommentDB, ActivityActionEnum
from ..exceptions import ValidationError
from ..services.context import RequestContext
from ..services.guard import require_found, assert_owner
from ..services.audit_trail import comment_metadata
from ..utils.validation import sanitize_string, is_valid_comment_content, COMMENT_CONTENT_MAX
from .pipeline import authenticate, enforce_rate_limit, record_activity

logger = logging.getLogger(__name__)

COMMENTED = ActivityActionEnum.COMMENTED.value


def _validate_content(content: str) -> None:
    if not is_valid_comment_content(content):
        raise ValidationError(f"Comment must be between 1 and {COMMENT_CONTENT_MAX} characters")


async def _get_owned_task(ctx: RequestContext, task_id: int, user_id: str, verb: str) -> TaskDB:
    task = require_found(await ctx.services.store.tasks.get_by_id(task_id), "Task", task_id)
    assert_owner(task, user_id, verb)
    return task


async def _get_owned_comment(ctx: RequestContext, comment_id: int, user_id: str, verb: str) -> TaskCommentDB:
    comment = require_found(await ctx.services.store.comments.get_by_id(comment_id), "Comment", comment_id)
    assert_owner(comment, user_id, verb)
    return comment


# ==================== MUTATIONS ====================

async def create_comment(ctx: RequestContext, task_id: int, content: str) -> int:
    """Comment on one of the caller's tasks. Returns the comment id."""
    user_id = await authenticate(ctx)
    await enforce_rate_limit(ctx, "createComment", user_id)
    await _get_owned_task(ctx, task_id, user_id, "comment on task")

    content = sanitize_string(content)
    _validate_content(content)

    comment = await ctx.services.store.comments.create(task_id, user_id, content)

    await record_activity(ctx, task_id, user_id, COMMENTED, comment_metadata(comment.id, content))
    return comment.id


async def update_comment(ctx: RequestContext, comment_id: int, content: str) -> int:
    """Replace a comment's content. Returns the comment id."""
    user_id = await authenticate(ctx)
    await enforce_rate_limit(ctx, "updateComment", user_id)
    comment = await _get_owned_comment(ctx, comment_id, user_id, "update comment")

    content = sanitize_string(content)
    _validate_content(content)

    await ctx.services.store.comments.update(comment_id, content)

    await record_activity(
        ctx, comment.task_id, user_id, COMMENTED,
        comment_metadata(comment_id, content, change="edited"),
    )
    return comment_id


async def delete_comment(ctx: RequestContext, comment_id: int) -> int:
    """Delete a comment. Returns the comment id."""
    user_id = await authenticate(ctx)
    await enforce_rate_limit(ctx, "deleteComment", user_id)
    comment = await _get_owned_comment(ctx, comment_id, user_id, "delete comment")

    await ctx.services.store.comments.delete(comment_id)

    await record_activity(
        ctx, comment.task_id, user_id, COMMENTED,
        comment_metadata(comment_id, comment.content, change="removed"),
    )
    return comment_id


# ==================== QUERIES ====================

async def get_comment(ctx: RequestContext, comment_id: int) -> TaskCommentDB:
    user_id = await authenticate(ctx)
    return await _get_owned_comment(ctx, comment_id, user_id, "view comment")


async def list_comments_by_task(ctx: RequestContext, task_id: int) -> List[TaskCommentDB]:
    """Comments on one of the caller's tasks, oldest first."""
    user_id = await authenticate(ctx)
    await _get_owned_task(ctx, task_id, user_id, "view comments on task")
    return await ctx.services.store.comments.get_by_task(task_id)


async def get_comment_count(ctx: RequestContext, task_id: int) -> int:
    user_id = await authenticate(ctx)
    await _get_owned_task(ctx, task_id, user_id, "view task")
    return await ctx.services.store.comments.count_by_task(task_id)
