"""
Preference endpoints.

A user's preferences row is created with defaults on first access.
"""

import logging
from typing import Optional, Dict, Any

from ..database.models import UserPreferencesDB
from ..services.context import RequestContext
from ..utils.validation import sanitize_string, validate_preferences_fields
from .pipeline import authenticate, enforce_rate_limit, require_valid

logger = logging.getLogger(__name__)


async def get_preferences(ctx: RequestContext) -> UserPreferencesDB:
    """The caller's preferences, created with defaults if missing."""
    user_id = await authenticate(ctx)
    return await ctx.services.store.preferences.get_or_create(user_id)


async def update_preferences(
    ctx: RequestContext,
    theme: Optional[str] = None,
    default_view: Optional[str] = None,
    default_filter: Optional[str] = None,
    notifications_enabled: Optional[bool] = None,
) -> UserPreferencesDB:
    """Patch only the preference fields that were given."""
    user_id = await authenticate(ctx)
    await enforce_rate_limit(ctx, "updatePreferences", user_id)
    preferences = await ctx.services.store.preferences.get_or_create(user_id)

    if default_filter is not None:
        default_filter = sanitize_string(default_filter)
    require_valid(validate_preferences_fields(
        theme=theme,
        default_view=default_view,
        default_filter=default_filter,
    ))

    updates: Dict[str, Any] = {}
    if theme is not None:
        updates["theme"] = theme
    if default_view is not None:
        updates["default_view"] = default_view
    if default_filter is not None:
        updates["default_filter"] = default_filter
    if notifications_enabled is not None:
        updates["notifications_enabled"] = notifications_enabled

    updated = await ctx.services.store.preferences.update(preferences.id, updates)
    logger.info(f"Updated preferences for user {user_id}: {sorted(updates)}")
    return updated or preferences


async def init_preferences(ctx: RequestContext) -> UserPreferencesDB:
    """Create the caller's default preferences; a no-op if they exist."""
    user_id = await authenticate(ctx)
    return await ctx.services.store.preferences.get_or_create(user_id)
