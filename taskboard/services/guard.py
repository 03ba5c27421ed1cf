"""
Authorization guard.

Resolves the caller and checks record ownership. Runs before any validation
or mutation, so a rejected request leaves no trace in the store.
"""

import logging
from typing import Optional, TypeVar, Any

from ..exceptions import AuthenticationError, AuthorizationError, NotFoundError

logger = logging.getLogger(__name__)

Record = TypeVar("Record")


async def resolve_identity(ctx) -> str:
    """
    Return the caller's user id.

    Raises:
        AuthenticationError: If the credentials resolve to no identity
    """
    identity = await ctx.services.identity.resolve_identity(ctx.credentials)
    if identity is None:
        logger.warning("Rejected unauthenticated request")
        raise AuthenticationError()
    return identity.user_id


def require_found(record: Optional[Record], kind: str, record_id: Any) -> Record:
    """Raise NotFoundError when a lookup came back empty."""
    if record is None:
        raise NotFoundError(f"{kind} {record_id} not found")
    return record


def assert_owner(record: Any, identity: str, verb: str) -> None:
    """
    Check that the caller owns the record.

    ``verb`` names the attempted operation, e.g. "update task".

    Raises:
        AuthorizationError: If ``record.user_id`` differs from the caller
    """
    if record.user_id != identity:
        logger.warning(f"User {identity} may not {verb} {getattr(record, 'id', '?')}")
        raise AuthorizationError(f"Not authorized to {verb}")
