"""
Tests for the per-action rate limiter (services/rate_limiter.py).
"""

import asyncio
import json
import pytest
from unittest.mock import AsyncMock, Mock, patch
from redis.exceptions import WatchError

from taskboard.services.rate_limiter import (
    RateLimiter,
    RateLimitConfig,
    RateLimitResult,
    MemoryCounterStore,
    RedisCounterStore,
    RATE_LIMITS,
    TOKEN_BUCKET,
    FIXED_WINDOW,
    token_bucket_step,
    fixed_window_step,
    build_counter_store,
)
from taskboard.utils.datetime_utils import ONE_HOUR_MS

ONE_MINUTE_MS = 60_000
BASE_TIME_MS = 1768478400000


@pytest.fixture
def limiter(clock):
    return RateLimiter(MemoryCounterStore(clock), clock)


class TestConfiguration:

    def test_every_mutation_is_configured(self):
        assert set(RATE_LIMITS) == {
            "createTask", "updateTask", "deleteTask",
            "createComment", "updateComment", "deleteComment",
            "updatePreferences", "signup", "login",
        }

    def test_create_task_limits(self):
        config = RATE_LIMITS["createTask"]
        assert config.algorithm == TOKEN_BUCKET
        assert (config.rate, config.period_ms, config.capacity) == (30, ONE_MINUTE_MS, 5)

    def test_signup_is_fixed_window(self):
        config = RATE_LIMITS["signup"]
        assert config.algorithm == FIXED_WINDOW
        assert config.period_ms == ONE_HOUR_MS
        assert config.limit == 5


class TestTokenBucketStep:
    """Pure token bucket arithmetic."""

    config = RateLimitConfig(TOKEN_BUCKET, rate=30, period_ms=ONE_MINUTE_MS, capacity=5)

    def test_fresh_key_starts_full(self):
        state, result = token_bucket_step(None, self.config, BASE_TIME_MS)
        assert result.allowed is True
        assert state["tokens"] == 4

    def test_refill_is_capped_at_capacity(self):
        state = {"tokens": 0.0, "updated_at": BASE_TIME_MS}
        state, result = token_bucket_step(state, self.config, BASE_TIME_MS + 10 * ONE_MINUTE_MS)
        assert result.allowed is True
        assert state["tokens"] == 4

    def test_empty_bucket_reports_time_to_next_token(self):
        # 30 per minute refills one token every 2000ms
        state = {"tokens": 0.0, "updated_at": BASE_TIME_MS}
        _, result = token_bucket_step(state, self.config, BASE_TIME_MS)
        assert result == RateLimitResult(allowed=False, retry_after_ms=2000)

    def test_partial_token_shortens_wait(self):
        one_per_second = RateLimitConfig(TOKEN_BUCKET, rate=1, period_ms=1000, capacity=1)
        state = {"tokens": 0.0, "updated_at": BASE_TIME_MS}
        _, result = token_bucket_step(state, one_per_second, BASE_TIME_MS + 500)
        assert result.allowed is False
        assert result.retry_after_ms == 500

    def test_lagging_clock_does_not_rewind_refill_mark(self):
        # A process whose clock runs behind must not reset updated_at, or the
        # next caller would be credited the same interval again
        state = {"tokens": 0.0, "updated_at": BASE_TIME_MS + 6000}
        state, result = token_bucket_step(state, self.config, BASE_TIME_MS)
        assert result.allowed is False
        assert state["updated_at"] == BASE_TIME_MS + 6000

        _, result = token_bucket_step(state, self.config, BASE_TIME_MS + 6000)
        assert result.allowed is False


class TestFixedWindowStep:

    config = RateLimitConfig(FIXED_WINDOW, rate=2, period_ms=ONE_MINUTE_MS)

    def test_counts_within_window(self):
        state, first = fixed_window_step(None, self.config, BASE_TIME_MS)
        state, second = fixed_window_step(state, self.config, BASE_TIME_MS + 10)
        state, third = fixed_window_step(state, self.config, BASE_TIME_MS + 20_000)
        assert first.allowed and second.allowed
        assert third == RateLimitResult(allowed=False, retry_after_ms=40_000)

    def test_new_window_resets_count(self):
        state = {"window_start": BASE_TIME_MS, "count": 2}
        state, result = fixed_window_step(state, self.config, BASE_TIME_MS + ONE_MINUTE_MS)
        assert result.allowed is True
        assert state == {"window_start": BASE_TIME_MS + ONE_MINUTE_MS, "count": 1}


class TestRateLimiter:

    @pytest.mark.asyncio
    async def test_capacity_then_rejection(self, limiter):
        """After C immediate requests the next one is rejected."""
        for _ in range(5):
            assert (await limiter.check("createTask", "u1")).allowed is True

        result = await limiter.check("createTask", "u1")
        assert result.allowed is False
        assert result.retry_after_ms > 0

    @pytest.mark.asyncio
    async def test_waiting_full_period_restores_a_token(self, limiter, clock):
        for _ in range(5):
            await limiter.check("createTask", "u1")
        assert (await limiter.check("createTask", "u1")).allowed is False

        clock.advance(ONE_MINUTE_MS)
        assert (await limiter.check("createTask", "u1")).allowed is True

    @pytest.mark.asyncio
    async def test_keys_are_per_identity_and_action(self, limiter):
        for _ in range(3):
            await limiter.check("deleteTask", "u1")
        assert (await limiter.check("deleteTask", "u1")).allowed is False
        assert (await limiter.check("deleteTask", "u2")).allowed is True
        assert (await limiter.check("createTask", "u1")).allowed is True

    @pytest.mark.asyncio
    async def test_login_fixed_window(self, limiter, clock):
        for _ in range(10):
            assert (await limiter.check("login", "a@example.com")).allowed is True

        clock.advance(15_000)
        result = await limiter.check("login", "a@example.com")
        assert result.allowed is False
        assert result.retry_after_ms == 45_000

        clock.advance(45_000)
        assert (await limiter.check("login", "a@example.com")).allowed is True

    @pytest.mark.asyncio
    async def test_unknown_action_raises_key_error(self, limiter):
        with pytest.raises(KeyError):
            await limiter.check("launchRocket", "u1")

    @pytest.mark.asyncio
    async def test_reset_clears_key(self, limiter):
        for _ in range(2):
            await limiter.check("updatePreferences", "u1")
        assert (await limiter.check("updatePreferences", "u1")).allowed is False

        await limiter.reset("updatePreferences", "u1")
        assert (await limiter.check("updatePreferences", "u1")).allowed is True

    @pytest.mark.asyncio
    async def test_concurrent_checks_do_not_lose_updates(self, limiter):
        """Exactly capacity requests succeed when fired concurrently."""
        results = await asyncio.gather(*[
            limiter.check("updateTask", "u1") for _ in range(25)
        ])
        assert sum(1 for r in results if r.allowed) == 10

    def test_stats(self, limiter):
        stats = limiter.get_stats()
        assert stats["backend"] == "memory"
        assert "createTask" in stats["actions"]


class TestMemoryCounterStore:

    @pytest.mark.asyncio
    async def test_locks_are_per_key(self):
        store = MemoryCounterStore()
        await store.update("a", lambda s: ({"n": 1}, RateLimitResult(True)), ttl_ms=1000)
        await store.update("b", lambda s: ({"n": 1}, RateLimitResult(True)), ttl_ms=1000)
        assert set(store._locks) == {"a", "b"}

    @pytest.mark.asyncio
    async def test_expired_keys_are_swept(self, clock):
        limiter = RateLimiter(MemoryCounterStore(clock), clock)
        for i in range(2000):
            await limiter.check("login", f"user{i}@example.com")
        assert len(limiter.store._states) == 2000

        clock.advance(24 * ONE_HOUR_MS)
        await limiter.check("login", "late@example.com")

        assert set(limiter.store._states) == {"ratelimit:login:late@example.com"}
        assert set(limiter.store._locks) == {"ratelimit:login:late@example.com"}

    @pytest.mark.asyncio
    async def test_expired_state_reads_as_fresh(self, clock):
        store = MemoryCounterStore(clock)
        seen = []

        def step(state):
            seen.append(state)
            return {"n": 1}, RateLimitResult(True)

        await store.update("k", step, ttl_ms=1000)
        await store.update("k", step, ttl_ms=1000)
        clock.advance(1000)
        await store.update("k", step, ttl_ms=1000)

        assert seen == [None, {"n": 1}, None]

    @pytest.mark.asyncio
    async def test_close_drops_state(self, clock):
        store = MemoryCounterStore(clock)
        await store.update("a", lambda s: ({"n": 1}, RateLimitResult(True)), ttl_ms=1000)
        await store.close()
        assert store.get_stats()["active_keys"] == 0


class TestRedisCounterStore:
    """Redis store with a mocked pipeline."""

    def _make_client(self, stored=None, execute_side_effect=None):
        pipe = Mock()
        pipe.__aenter__ = AsyncMock(return_value=pipe)
        pipe.__aexit__ = AsyncMock(return_value=None)
        pipe.watch = AsyncMock()
        pipe.get = AsyncMock(return_value=stored)
        pipe.multi = Mock()
        pipe.set = Mock()
        pipe.execute = AsyncMock(side_effect=execute_side_effect)

        client = Mock()
        client.pipeline = Mock(return_value=pipe)
        client.delete = AsyncMock()
        client.aclose = AsyncMock()
        return client, pipe

    @pytest.mark.asyncio
    async def test_update_writes_state_with_ttl(self):
        client, pipe = self._make_client()
        store = RedisCounterStore(client)
        config = RATE_LIMITS["createTask"]

        result = await store.update(
            "ratelimit:createTask:u1",
            lambda state: token_bucket_step(state, config, BASE_TIME_MS),
            ttl_ms=config.period_ms,
        )

        assert result.allowed is True
        pipe.watch.assert_awaited_once_with("ratelimit:createTask:u1")
        key, payload = pipe.set.call_args[0]
        assert key == "ratelimit:createTask:u1"
        assert json.loads(payload) == {"tokens": 4.0, "updated_at": BASE_TIME_MS}
        assert pipe.set.call_args[1] == {"px": config.period_ms}

    @pytest.mark.asyncio
    async def test_reads_existing_state(self):
        stored = json.dumps({"tokens": 0.0, "updated_at": BASE_TIME_MS})
        client, _ = self._make_client(stored=stored)
        store = RedisCounterStore(client)
        config = RATE_LIMITS["createTask"]

        result = await store.update(
            "k", lambda state: token_bucket_step(state, config, BASE_TIME_MS), ttl_ms=1
        )
        assert result.allowed is False

    @pytest.mark.asyncio
    async def test_watch_error_is_retried(self):
        client, pipe = self._make_client(execute_side_effect=[WatchError(), None])
        store = RedisCounterStore(client)

        result = await store.update("k", lambda s: ({"n": 1}, RateLimitResult(True)), ttl_ms=1)

        assert result.allowed is True
        assert pipe.execute.await_count == 2

    @pytest.mark.asyncio
    async def test_delete(self):
        client, _ = self._make_client()
        await RedisCounterStore(client).delete("k")
        client.delete.assert_awaited_once_with("k")

    @pytest.mark.asyncio
    async def test_close_releases_connection(self):
        client, _ = self._make_client()
        await RateLimiter(RedisCounterStore(client)).close()
        client.aclose.assert_awaited_once()


class TestBuildCounterStore:

    def test_memory_without_redis_url(self):
        assert isinstance(build_counter_store(""), MemoryCounterStore)

    def test_redis_with_url(self):
        with patch("taskboard.services.rate_limiter.redis.from_url") as from_url:
            store = build_counter_store("redis://localhost:6379/0")
        assert isinstance(store, RedisCounterStore)
        from_url.assert_called_once()
