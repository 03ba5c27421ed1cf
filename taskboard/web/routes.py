"""
HTTP routes for the task API.

Thin adapters: each route builds a RequestContext from the bearer token and
calls the matching endpoint operation. Domain errors are rendered by the
exception handlers registered in main.py.
"""

import logging
from typing import Optional, List

from fastapi import APIRouter, Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from ..endpoints import tasks, comments, preferences, dashboard, accounts
from ..models.api_validation import (
    TaskCreateRequest,
    TaskUpdateRequest,
    CommentRequest,
    PreferencesUpdateRequest,
    CredentialsRequest,
    TaskStatus,
    TaskPriority,
)
from ..models.records import (
    TaskRecord,
    CommentRecord,
    ActivityRecord,
    PreferencesRecord,
    SessionRecord,
)
from ..exceptions import ValidationError
from ..services.context import RequestContext

logger = logging.getLogger(__name__)

router = APIRouter()

bearer_scheme = HTTPBearer(auto_error=False)


def get_request_context(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> RequestContext:
    """Pair the application's services with this request's bearer token."""
    token = credentials.credentials if credentials else None
    return RequestContext(services=request.app.state.services, credentials=token)


# ============================================================================
# Tasks
# ============================================================================

@router.post("/api/tasks", status_code=201)
async def create_task(body: TaskCreateRequest, ctx: RequestContext = Depends(get_request_context)):
    task_id = await tasks.create_task(
        ctx,
        title=body.title,
        priority=body.priority,
        description=body.description,
        due_date=body.due_date,
    )
    return {"id": task_id}


@router.get("/api/tasks", response_model=List[TaskRecord])
async def list_tasks(
    status: Optional[TaskStatus] = None,
    priority: Optional[TaskPriority] = None,
    ctx: RequestContext = Depends(get_request_context),
):
    """List the caller's tasks, optionally filtered by status or priority."""
    if status and priority:
        raise ValidationError("Filter by status or priority, not both")
    if status:
        return await tasks.list_by_status(ctx, status)
    if priority:
        return await tasks.list_by_priority(ctx, priority)
    return await tasks.list_tasks(ctx)


@router.get("/api/tasks/overdue", response_model=List[TaskRecord])
async def list_overdue(ctx: RequestContext = Depends(get_request_context)):
    return await tasks.list_overdue(ctx)


@router.get("/api/tasks/upcoming", response_model=List[TaskRecord])
async def list_upcoming(ctx: RequestContext = Depends(get_request_context)):
    return await tasks.list_upcoming(ctx)


@router.get("/api/tasks/stats")
async def task_stats(ctx: RequestContext = Depends(get_request_context)):
    return await tasks.get_task_stats(ctx)


@router.get("/api/tasks/{task_id}", response_model=TaskRecord)
async def get_task(task_id: int, ctx: RequestContext = Depends(get_request_context)):
    return await tasks.get_task(ctx, task_id)


@router.patch("/api/tasks/{task_id}")
async def update_task(
    task_id: int,
    body: TaskUpdateRequest,
    ctx: RequestContext = Depends(get_request_context),
):
    await tasks.update_task(
        ctx,
        task_id,
        title=body.title,
        description=body.description,
        status=body.status,
        priority=body.priority,
        due_date=body.due_date,
    )
    return {"id": task_id}


@router.delete("/api/tasks/{task_id}")
async def delete_task(task_id: int, ctx: RequestContext = Depends(get_request_context)):
    await tasks.delete_task(ctx, task_id)
    return {"id": task_id}


@router.get("/api/tasks/{task_id}/history", response_model=List[ActivityRecord])
async def task_history(task_id: int, ctx: RequestContext = Depends(get_request_context)):
    return await tasks.get_task_history(ctx, task_id)


# ============================================================================
# Comments
# ============================================================================

@router.post("/api/tasks/{task_id}/comments", status_code=201)
async def create_comment(
    task_id: int,
    body: CommentRequest,
    ctx: RequestContext = Depends(get_request_context),
):
    comment_id = await comments.create_comment(ctx, task_id, body.content)
    return {"id": comment_id}


@router.get("/api/tasks/{task_id}/comments", response_model=List[CommentRecord])
async def list_comments(task_id: int, ctx: RequestContext = Depends(get_request_context)):
    return await comments.list_comments_by_task(ctx, task_id)


@router.get("/api/tasks/{task_id}/comments/count")
async def comment_count(task_id: int, ctx: RequestContext = Depends(get_request_context)):
    return {"count": await comments.get_comment_count(ctx, task_id)}


@router.get("/api/comments/{comment_id}", response_model=CommentRecord)
async def get_comment(comment_id: int, ctx: RequestContext = Depends(get_request_context)):
    return await comments.get_comment(ctx, comment_id)


@router.patch("/api/comments/{comment_id}")
async def update_comment(
    comment_id: int,
    body: CommentRequest,
    ctx: RequestContext = Depends(get_request_context),
):
    await comments.update_comment(ctx, comment_id, body.content)
    return {"id": comment_id}


@router.delete("/api/comments/{comment_id}")
async def delete_comment(comment_id: int, ctx: RequestContext = Depends(get_request_context)):
    await comments.delete_comment(ctx, comment_id)
    return {"id": comment_id}


# ============================================================================
# Preferences
# ============================================================================

@router.get("/api/preferences", response_model=PreferencesRecord)
async def get_preferences(ctx: RequestContext = Depends(get_request_context)):
    return await preferences.get_preferences(ctx)


@router.patch("/api/preferences", response_model=PreferencesRecord)
async def update_preferences(
    body: PreferencesUpdateRequest,
    ctx: RequestContext = Depends(get_request_context),
):
    return await preferences.update_preferences(
        ctx,
        theme=body.theme,
        default_view=body.default_view,
        default_filter=body.default_filter,
        notifications_enabled=body.notifications_enabled,
    )


@router.post("/api/preferences/init", response_model=PreferencesRecord)
async def init_preferences(ctx: RequestContext = Depends(get_request_context)):
    return await preferences.init_preferences(ctx)


# ============================================================================
# Dashboard
# ============================================================================

@router.get("/api/dashboard/summary")
async def dashboard_summary(ctx: RequestContext = Depends(get_request_context)):
    return await dashboard.dashboard_summary(ctx)


@router.get("/api/dashboard/recent-tasks", response_model=List[TaskRecord])
async def recent_tasks(ctx: RequestContext = Depends(get_request_context)):
    return await dashboard.recent_tasks(ctx)


@router.get("/api/dashboard/recent-activity", response_model=List[ActivityRecord])
async def recent_activity(ctx: RequestContext = Depends(get_request_context)):
    return await dashboard.recent_activity(ctx)


@router.get("/api/dashboard/tasks-by-priority")
async def tasks_by_priority(ctx: RequestContext = Depends(get_request_context)):
    return await dashboard.tasks_by_priority(ctx)


@router.get("/api/dashboard/completion-stats")
async def completion_stats(ctx: RequestContext = Depends(get_request_context)):
    return await dashboard.completion_stats(ctx)


# ============================================================================
# Accounts
# ============================================================================

@router.post("/auth/signup", status_code=201, response_model=SessionRecord)
async def signup(body: CredentialsRequest, ctx: RequestContext = Depends(get_request_context)):
    return await accounts.signup(ctx, body.email, body.password)


@router.post("/auth/login", response_model=SessionRecord)
async def login(body: CredentialsRequest, ctx: RequestContext = Depends(get_request_context)):
    return await accounts.login(ctx, body.email, body.password)


@router.post("/auth/logout")
async def logout(ctx: RequestContext = Depends(get_request_context)):
    return {"logged_out": await accounts.logout(ctx)}
