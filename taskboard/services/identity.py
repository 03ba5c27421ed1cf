"""
Identity providers.

An identity provider turns request credentials (an opaque bearer token) into
the caller's user id, or None when the caller is anonymous.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional
import logging

from ..database.repositories import AccountRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    user_id: str
    email: Optional[str] = None


class IdentityProvider(ABC):
    """
    Abstract base class for identity resolution.

    Subclasses must implement:
    - resolve_identity(credentials) -> Optional[Identity]
    """

    @abstractmethod
    async def resolve_identity(self, credentials: Optional[str]) -> Optional[Identity]:
        """
        Resolve the caller behind a set of credentials.

        Args:
            credentials: Bearer token from the request, if any

        Returns:
            The caller's identity, or None if unauthenticated
        """
        pass


class SessionIdentityProvider(IdentityProvider):
    """Resolves bearer tokens against the sessions table."""

    def __init__(self, accounts: AccountRepository):
        self.accounts = accounts

    async def resolve_identity(self, credentials: Optional[str]) -> Optional[Identity]:
        if not credentials:
            return None

        login_session = await self.accounts.get_active_session(credentials)
        if login_session is None:
            logger.debug("Bearer token unknown or expired")
            return None

        return Identity(user_id=login_session.user_id)
