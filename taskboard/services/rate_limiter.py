"""
Rate Limiter Service - Per-action, per-identity request budgets.

Features:
- Token bucket (burst capacity, continuous refill) for task, comment and
  preference mutations
- Fixed window for signup and login
- In-memory counters guarded by one lock per key
- Redis-backed counters for multi-process deployments
"""

import json
import logging
import asyncio
import math
from typing import Dict, Any, Optional, Tuple, Callable, Union
from dataclasses import dataclass
from collections import defaultdict

import redis.asyncio as redis
from redis.exceptions import WatchError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_random

from config import settings
from ..utils.datetime_utils import now_ms, ONE_HOUR_MS

logger = logging.getLogger(__name__)

ONE_MINUTE_MS = 60 * 1000

TOKEN_BUCKET = "token_bucket"
FIXED_WINDOW = "fixed_window"

# State is a plain dict so it serializes to Redis unchanged
CounterState = Dict[str, Any]
StepFunction = Callable[[Optional[CounterState]], Tuple[CounterState, "RateLimitResult"]]


@dataclass(frozen=True)
class RateLimitConfig:
    """Configuration for a rate limit."""
    algorithm: str
    rate: int                       # Requests replenished per period
    period_ms: int
    capacity: Optional[int] = None  # Burst size; fixed windows default to rate

    @property
    def limit(self) -> int:
        return self.capacity if self.capacity is not None else self.rate


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    retry_after_ms: int = 0


RATE_LIMITS: Dict[str, RateLimitConfig] = {
    "createTask": RateLimitConfig(TOKEN_BUCKET, rate=30, period_ms=ONE_MINUTE_MS, capacity=5),
    "updateTask": RateLimitConfig(TOKEN_BUCKET, rate=60, period_ms=ONE_MINUTE_MS, capacity=10),
    "deleteTask": RateLimitConfig(TOKEN_BUCKET, rate=20, period_ms=ONE_MINUTE_MS, capacity=3),
    "createComment": RateLimitConfig(TOKEN_BUCKET, rate=20, period_ms=ONE_MINUTE_MS, capacity=3),
    "updateComment": RateLimitConfig(TOKEN_BUCKET, rate=30, period_ms=ONE_MINUTE_MS, capacity=5),
    "deleteComment": RateLimitConfig(TOKEN_BUCKET, rate=15, period_ms=ONE_MINUTE_MS, capacity=3),
    "updatePreferences": RateLimitConfig(TOKEN_BUCKET, rate=10, period_ms=ONE_MINUTE_MS, capacity=2),
    "signup": RateLimitConfig(FIXED_WINDOW, rate=5, period_ms=ONE_HOUR_MS),
    "login": RateLimitConfig(FIXED_WINDOW, rate=10, period_ms=ONE_MINUTE_MS),
}


# ==================== ALGORITHMS ====================

def token_bucket_step(
    state: Optional[CounterState],
    config: RateLimitConfig,
    now: int,
) -> Tuple[CounterState, RateLimitResult]:
    """
    Refill the bucket for the time elapsed, then try to take one token.

    A key seen for the first time starts with a full bucket.
    """
    capacity = config.limit
    if state is None:
        tokens = float(capacity)
    else:
        elapsed = max(0, now - state["updated_at"])
        tokens = min(float(capacity), state["tokens"] + elapsed / config.period_ms * config.rate)

    # Never move the refill mark backwards, or a lagging clock would refill twice
    updated_at = now if state is None else max(state["updated_at"], now)

    if tokens >= 1:
        return {"tokens": tokens - 1, "updated_at": updated_at}, RateLimitResult(allowed=True)

    retry_after_ms = math.ceil((1 - tokens) * config.period_ms / config.rate)
    return {"tokens": tokens, "updated_at": updated_at}, RateLimitResult(False, retry_after_ms)


def fixed_window_step(
    state: Optional[CounterState],
    config: RateLimitConfig,
    now: int,
) -> Tuple[CounterState, RateLimitResult]:
    """Count the request against the window containing ``now``."""
    window_start = now - now % config.period_ms
    count = 0
    if state is not None and state["window_start"] == window_start:
        count = state["count"]

    if count >= config.limit:
        retry_after_ms = window_start + config.period_ms - now
        return {"window_start": window_start, "count": count}, RateLimitResult(False, retry_after_ms)

    return {"window_start": window_start, "count": count + 1}, RateLimitResult(allowed=True)


ALGORITHMS = {
    TOKEN_BUCKET: token_bucket_step,
    FIXED_WINDOW: fixed_window_step,
}


# ==================== COUNTER STORES ====================

class MemoryCounterStore:
    """
    Process-local counters. Each key has its own lock.

    A key's state lives for ``ttl_ms`` after its last update; expired keys
    read as fresh and are swept, locks included, at most once per
    ``SWEEP_INTERVAL_MS``.
    """

    SWEEP_INTERVAL_MS = ONE_MINUTE_MS

    def __init__(self, clock: Callable[[], int] = now_ms):
        self.clock = clock
        self._states: Dict[str, Tuple[int, CounterState]] = {}
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._next_sweep = 0

    def _sweep(self, now: int) -> None:
        expired = [
            key for key, (expires_at, _) in self._states.items()
            if expires_at <= now and not self._locks[key].locked()
        ]
        for key in expired:
            del self._states[key]
            self._locks.pop(key, None)
        if expired:
            logger.debug(f"Swept {len(expired)} expired rate limit keys")
        self._next_sweep = now + self.SWEEP_INTERVAL_MS

    async def update(self, key: str, step: StepFunction, ttl_ms: int) -> "RateLimitResult":
        now = self.clock()
        if now >= self._next_sweep:
            self._sweep(now)

        async with self._locks[key]:
            entry = self._states.get(key)
            state = entry[1] if entry and entry[0] > now else None
            new_state, result = step(state)
            self._states[key] = (now + ttl_ms, new_state)
            return result

    async def delete(self, key: str) -> None:
        async with self._locks[key]:
            self._states.pop(key, None)
        self._locks.pop(key, None)

    async def close(self) -> None:
        self._states.clear()
        self._locks.clear()

    def get_stats(self) -> Dict[str, Any]:
        return {"backend": "memory", "active_keys": len(self._states)}


class RedisCounterStore:
    """
    Redis-backed counters shared between processes.

    Each update is an optimistic WATCH/MULTI transaction on the key; a
    concurrent writer aborts it and the update is retried.
    """

    def __init__(self, client: redis.Redis):
        self.client = client

    @retry(
        retry=retry_if_exception_type(WatchError),
        stop=stop_after_attempt(10),
        wait=wait_random(min=0, max=0.05),
        reraise=True,
    )
    async def update(self, key: str, step: StepFunction, ttl_ms: int) -> "RateLimitResult":
        async with self.client.pipeline(transaction=True) as pipe:
            await pipe.watch(key)
            raw = await pipe.get(key)
            state = json.loads(raw) if raw else None

            new_state, result = step(state)

            pipe.multi()
            pipe.set(key, json.dumps(new_state), px=ttl_ms)
            await pipe.execute()
            return result

    async def delete(self, key: str) -> None:
        await self.client.delete(key)

    async def close(self) -> None:
        await self.client.aclose()

    def get_stats(self) -> Dict[str, Any]:
        return {"backend": "redis"}


CounterStore = Union[MemoryCounterStore, RedisCounterStore]


def build_counter_store(
    redis_url: Optional[str] = None,
    clock: Callable[[], int] = now_ms,
) -> CounterStore:
    """Use Redis when a URL is configured, otherwise process-local counters."""
    redis_url = redis_url if redis_url is not None else settings.redis_url
    if not redis_url:
        logger.info("REDIS_URL not configured - using in-memory rate limit counters")
        return MemoryCounterStore(clock)

    client = redis.from_url(
        redis_url,
        encoding="utf-8",
        decode_responses=True,
        socket_timeout=5,
        socket_connect_timeout=5,
    )
    logger.info("Using Redis rate limit counters")
    return RedisCounterStore(client)


# ==================== LIMITER ====================

class RateLimiter:
    """
    Per-action rate limiter keyed by (action, identity).

    Never blocks: a rejected request gets the delay after which a retry
    could succeed.
    """

    def __init__(
        self,
        store: Optional[CounterStore] = None,
        clock: Callable[[], int] = now_ms,
        limits: Optional[Dict[str, RateLimitConfig]] = None,
    ):
        self.store = store or MemoryCounterStore(clock)
        self.clock = clock
        self.limits = limits or RATE_LIMITS

    def _get_key(self, action: str, identity: str) -> str:
        return f"ratelimit:{action}:{identity}"

    def _get_config(self, action: str) -> RateLimitConfig:
        """Raises KeyError for an unconfigured action."""
        try:
            return self.limits[action]
        except KeyError:
            raise KeyError(f"No rate limit configured for action '{action}'")

    async def check(self, action: str, identity: str) -> RateLimitResult:
        """Consume one request for the caller if the budget allows it."""
        config = self._get_config(action)
        algorithm = ALGORITHMS[config.algorithm]
        now = self.clock()

        result = await self.store.update(
            self._get_key(action, identity),
            lambda state: algorithm(state, config, now),
            ttl_ms=config.period_ms,
        )

        if not result.allowed:
            logger.warning(
                f"Rate limit exceeded for {action}:{identity}, "
                f"retry after {result.retry_after_ms}ms"
            )
        return result

    async def reset(self, action: str, identity: str) -> None:
        """Forget a key's state so its next request starts fresh."""
        self._get_config(action)
        await self.store.delete(self._get_key(action, identity))
        logger.info(f"Reset rate limit for {action}:{identity}")

    def get_stats(self) -> Dict[str, Any]:
        stats = self.store.get_stats()
        stats["actions"] = sorted(self.limits)
        return stats

    async def close(self) -> None:
        """Release the counter store's connections."""
        await self.store.close()
        logger.info("Rate limiter closed")
