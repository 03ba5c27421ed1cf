"""
Services for business logic.
"""

from .rate_limiter import RateLimiter, RateLimitConfig, RateLimitResult, RATE_LIMITS
from .audit_trail import AuditTrail
from .identity import Identity, IdentityProvider, SessionIdentityProvider
from .context import Services, RequestContext

__all__ = [
    "RateLimiter",
    "RateLimitConfig",
    "RateLimitResult",
    "RATE_LIMITS",
    "AuditTrail",
    "Identity",
    "IdentityProvider",
    "SessionIdentityProvider",
    "Services",
    "RequestContext",
]
