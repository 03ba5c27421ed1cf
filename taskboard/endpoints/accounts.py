"""
Account endpoints: signup, login and logout.

Signup and login run before the caller has an identity, so their rate limits
are keyed by the normalized email address instead.
"""

import asyncio
import logging
from typing import Dict, Any

from ..database.exceptions import DatabaseConstraintError
from ..database.models import SessionDB
from ..database.repositories import normalize_email
from ..exceptions import AuthenticationError, ValidationError
from ..services.context import RequestContext
from ..utils.datetime_utils import ONE_DAY_MS
from ..utils.passwords import hash_password, verify_password
from ..utils.validation import is_valid_email, is_valid_password, PASSWORD_MIN, PASSWORD_MAX
from .pipeline import authenticate, enforce_rate_limit

logger = logging.getLogger(__name__)


def _session_payload(login_session: SessionDB) -> Dict[str, Any]:
    return {
        "user_id": login_session.user_id,
        "token": login_session.token,
        "expires_at": login_session.expires_at,
    }


async def _open_session(ctx: RequestContext, user_id: str) -> SessionDB:
    ttl_ms = ctx.services.settings.session_ttl_days * ONE_DAY_MS
    return await ctx.services.accounts.create_session(user_id, ttl_ms)


async def signup(ctx: RequestContext, email: str, password: str) -> Dict[str, Any]:
    """Register an account and log it in. Returns the new session."""
    email = normalize_email(email)
    await enforce_rate_limit(ctx, "signup", email)

    if not is_valid_email(email):
        raise ValidationError("Invalid email address")
    if not is_valid_password(password):
        raise ValidationError(f"Password must be between {PASSWORD_MIN} and {PASSWORD_MAX} characters")

    # scrypt blocks; run it off the event loop
    password_hash = await asyncio.to_thread(hash_password, password)
    try:
        user = await ctx.services.accounts.create_user(email, password_hash)
    except DatabaseConstraintError:
        raise ValidationError("Email already registered")

    login_session = await _open_session(ctx, user.id)
    return _session_payload(login_session)


async def login(ctx: RequestContext, email: str, password: str) -> Dict[str, Any]:
    """Exchange credentials for a session token."""
    email = normalize_email(email)
    await enforce_rate_limit(ctx, "login", email)

    user = await ctx.services.accounts.get_user_by_email(email)
    if user is None or not await asyncio.to_thread(verify_password, password, user.password_hash):
        logger.warning("Login failed: invalid email or password")
        raise AuthenticationError("Invalid email or password")

    # Expired rows are otherwise only removed when their token is presented
    await ctx.services.accounts.delete_expired_sessions()
    login_session = await _open_session(ctx, user.id)
    logger.info(f"User {user.id} logged in")
    return _session_payload(login_session)


async def logout(ctx: RequestContext) -> bool:
    """End the session behind the request's bearer token."""
    user_id = await authenticate(ctx)
    removed = await ctx.services.accounts.delete_session(ctx.credentials)
    logger.info(f"User {user_id} logged out")
    return removed
