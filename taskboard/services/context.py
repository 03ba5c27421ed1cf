"""
Request context passed explicitly to every endpoint operation.

``Services`` bundles the long-lived collaborators (store, limiter, audit
trail, identity provider); ``RequestContext`` pairs them with one request's
credentials.
"""

from dataclasses import dataclass
from typing import Callable, Optional

from config import Settings, get_settings
from ..database.connection import Database, get_database
from ..database.repositories import DomainStore, AccountRepository
from ..utils.datetime_utils import now_ms
from .audit_trail import AuditTrail
from .identity import IdentityProvider, SessionIdentityProvider
from .rate_limiter import RateLimiter, CounterStore, build_counter_store


@dataclass
class Services:
    db: Database
    store: DomainStore
    limiter: RateLimiter
    audit: AuditTrail
    identity: IdentityProvider
    accounts: AccountRepository
    clock: Callable[[], int]
    settings: Settings

    @classmethod
    def create(
        cls,
        db: Optional[Database] = None,
        clock: Callable[[], int] = now_ms,
        counter_store: Optional[CounterStore] = None,
        identity: Optional[IdentityProvider] = None,
        settings: Optional[Settings] = None,
    ) -> "Services":
        """Wire the default collaborators over one database and clock."""
        db = db or get_database()
        settings = settings or get_settings()
        store = DomainStore.create(db, clock)
        accounts = AccountRepository(db, clock)

        if counter_store is None:
            counter_store = build_counter_store(settings.redis_url, clock)

        return cls(
            db=db,
            store=store,
            limiter=RateLimiter(counter_store, clock),
            audit=AuditTrail(store.activity),
            identity=identity or SessionIdentityProvider(accounts),
            accounts=accounts,
            clock=clock,
            settings=settings,
        )


@dataclass
class RequestContext:
    services: Services
    credentials: Optional[str] = None
