"""
Steps shared by every endpoint operation.

Mutations run: resolve identity, rate limit, fetch and check ownership,
validate, mutate, audit. Queries run identity and ownership only.
"""

import logging
from typing import Optional, Dict, Any

from ..database.exceptions import DatabaseError
from ..exceptions import RateLimitExceeded, ValidationError
from ..services.context import RequestContext
from ..services.guard import resolve_identity
from ..utils.validation import ValidationResult

logger = logging.getLogger(__name__)


async def authenticate(ctx: RequestContext) -> str:
    return await resolve_identity(ctx)


async def enforce_rate_limit(ctx: RequestContext, action: str, key: str) -> None:
    """
    Consume one request from the caller's budget for ``action``.

    Raises:
        RateLimitExceeded: If the budget is spent
    """
    result = await ctx.services.limiter.check(action, key)
    if not result.allowed:
        raise RateLimitExceeded(action, result.retry_after_ms)


def require_valid(result: ValidationResult) -> None:
    if not result.is_valid:
        raise ValidationError(result.reason)


async def record_activity(
    ctx: RequestContext,
    task_id: int,
    user_id: str,
    action: str,
    metadata: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Append the audit row for a mutation that already succeeded.

    The mutation is not rolled back if this fails; the request still returns.
    """
    try:
        await ctx.services.audit.record(task_id, user_id, action, metadata)
    except DatabaseError as e:
        logger.error(
            f"Audit write failed after {action} on task {task_id} by {user_id}: {e}",
            exc_info=True,
        )
