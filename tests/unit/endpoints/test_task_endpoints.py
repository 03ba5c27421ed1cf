"""
Tests for the task endpoints: the full identity, rate limit, ownership,
validation, mutation and audit pipeline against an in-memory database.
"""

import pytest
from unittest.mock import AsyncMock, patch

from taskboard.database.exceptions import DatabaseOperationError
from taskboard.endpoints import tasks, comments
from taskboard.exceptions import (
    AuthenticationError,
    AuthorizationError,
    NotFoundError,
    ValidationError,
    RateLimitExceeded,
)
from taskboard.utils.datetime_utils import ONE_DAY_MS, ONE_HOUR_MS


async def history(services, task_id):
    return [(a.action, a.metadata_) for a in await services.audit.by_task(task_id)]


# ============================================================
# CREATE
# ============================================================

class TestCreateTask:

    @pytest.mark.asyncio
    async def test_creates_pending_task_and_audits(self, as_user, services, clock):
        task_id = await tasks.create_task(as_user("u1"), "  Buy milk ", priority="low")

        task = await services.store.tasks.get_by_id(task_id)
        assert task.title == "Buy milk"
        assert task.status == "pending"
        assert task.user_id == "u1"
        assert task.created_at == task.updated_at == clock.now
        assert await history(services, task_id) == [
            ("created", {"title": "Buy milk", "priority": "low"})
        ]

    @pytest.mark.asyncio
    async def test_default_priority_is_medium(self, as_user, services):
        task_id = await tasks.create_task(as_user("u1"), "Something")
        assert (await services.store.tasks.get_by_id(task_id)).priority == "medium"

    @pytest.mark.asyncio
    async def test_unauthenticated(self, as_user, services):
        with pytest.raises(AuthenticationError):
            await tasks.create_task(as_user(None), "Buy milk")
        assert await services.store.tasks.get_by_user("u1") == []

    @pytest.mark.asyncio
    async def test_title_limits(self, as_user, services):
        assert await tasks.create_task(as_user("u1"), "x" * 200)
        with pytest.raises(ValidationError):
            await tasks.create_task(as_user("u1"), "x" * 201)
        with pytest.raises(ValidationError):
            await tasks.create_task(as_user("u1"), "   ")

    @pytest.mark.asyncio
    async def test_invalid_input_leaves_no_trace(self, as_user, services):
        with pytest.raises(ValidationError):
            await tasks.create_task(as_user("u1"), "ok", priority="urgent")

        assert await services.store.tasks.get_by_user("u1") == []
        assert await services.audit.by_user("u1") == []

    @pytest.mark.asyncio
    async def test_due_date_tolerance(self, as_user, clock):
        assert await tasks.create_task(as_user("u1"), "a", due_date=clock.now - 23 * ONE_HOUR_MS)
        with pytest.raises(ValidationError):
            await tasks.create_task(as_user("u1"), "b", due_date=clock.now - 25 * ONE_HOUR_MS)

    @pytest.mark.asyncio
    async def test_rate_limited_after_capacity(self, as_user, services):
        for i in range(5):
            await tasks.create_task(as_user("u1"), f"task {i}")

        with pytest.raises(RateLimitExceeded) as exc_info:
            await tasks.create_task(as_user("u1"), "one too many")

        assert exc_info.value.retry_after_ms > 0
        assert len(await services.store.tasks.get_by_user("u1")) == 5
        # other users have their own budget
        assert await tasks.create_task(as_user("u2"), "mine")

    @pytest.mark.asyncio
    async def test_audit_failure_does_not_fail_the_request(self, as_user, services):
        with patch.object(
            services.audit, "record",
            AsyncMock(side_effect=DatabaseOperationError("audit table locked")),
        ):
            task_id = await tasks.create_task(as_user("u1"), "Still saved")

        assert (await services.store.tasks.get_by_id(task_id)).title == "Still saved"
        assert await services.audit.by_task(task_id) == []


# ============================================================
# UPDATE
# ============================================================

class TestUpdateTask:

    @pytest.mark.asyncio
    async def test_partial_update(self, as_user, services, clock):
        task_id = await tasks.create_task(as_user("u1"), "Draft", description="notes")
        clock.advance(1000)

        await tasks.update_task(as_user("u1"), task_id, title="Final")

        task = await services.store.tasks.get_by_id(task_id)
        assert task.title == "Final"
        assert task.description == "notes"
        assert task.updated_at == task.created_at + 1000
        assert (await history(services, task_id))[-1] == ("updated", {"title": "Final"})

    @pytest.mark.asyncio
    async def test_completion_stamps_completed_at(self, as_user, services, clock):
        task_id = await tasks.create_task(as_user("u1"), "Ship it")
        clock.advance(5000)

        await tasks.update_task(as_user("u1"), task_id, status="completed")

        task = await services.store.tasks.get_by_id(task_id)
        assert task.status == "completed"
        assert task.completed_at == clock.now
        action, metadata = (await history(services, task_id))[-1]
        assert action == "completed"
        assert metadata == {"status": "completed", "completed_at": clock.now}

    @pytest.mark.asyncio
    async def test_completing_twice_keeps_first_timestamp(self, as_user, services, clock):
        task_id = await tasks.create_task(as_user("u1"), "Ship it")
        await tasks.update_task(as_user("u1"), task_id, status="completed")
        first = clock.now
        clock.advance(1000)

        await tasks.update_task(as_user("u1"), task_id, status="completed")

        assert (await services.store.tasks.get_by_id(task_id)).completed_at == first
        assert [a for a, _ in await history(services, task_id)] == ["created", "completed", "completed"]

    @pytest.mark.asyncio
    async def test_reopening_keeps_completed_at(self, as_user, services, clock):
        task_id = await tasks.create_task(as_user("u1"), "Ship it")
        await tasks.update_task(as_user("u1"), task_id, status="completed")
        completed_at = clock.now
        clock.advance(1000)

        await tasks.update_task(as_user("u1"), task_id, status="pending")

        task = await services.store.tasks.get_by_id(task_id)
        assert task.status == "pending"
        assert task.completed_at == completed_at

    @pytest.mark.asyncio
    async def test_editing_completed_task_keeps_completed_at(self, as_user, services, clock):
        task_id = await tasks.create_task(as_user("u1"), "Ship it")
        await tasks.update_task(as_user("u1"), task_id, status="completed")
        completed_at = clock.now
        clock.advance(1000)

        await tasks.update_task(as_user("u1"), task_id, title="Shipped")

        task = await services.store.tasks.get_by_id(task_id)
        assert task.title == "Shipped"
        assert task.status == "completed"
        assert task.completed_at == completed_at
        assert [a for a, _ in await history(services, task_id)] == ["created", "completed", "updated"]

    @pytest.mark.asyncio
    async def test_other_user_cannot_update(self, as_user, services):
        task_id = await tasks.create_task(as_user("u1"), "Mine")

        with pytest.raises(AuthorizationError):
            await tasks.update_task(as_user("u2"), task_id, title="Hijacked")

        assert (await services.store.tasks.get_by_id(task_id)).title == "Mine"
        assert [a for a, _ in await history(services, task_id)] == ["created"]

    @pytest.mark.asyncio
    async def test_missing_task(self, as_user):
        with pytest.raises(NotFoundError):
            await tasks.update_task(as_user("u1"), 999, title="x")

    @pytest.mark.asyncio
    async def test_ownership_checked_before_validation(self, as_user):
        task_id = await tasks.create_task(as_user("u1"), "Mine")

        with pytest.raises(AuthorizationError):
            await tasks.update_task(as_user("u2"), task_id, title="")

    @pytest.mark.asyncio
    async def test_invalid_update_leaves_task_untouched(self, as_user, services, clock):
        task_id = await tasks.create_task(as_user("u1"), "Mine")
        before = await services.store.tasks.get_by_id(task_id)
        clock.advance(10)

        with pytest.raises(ValidationError):
            await tasks.update_task(as_user("u1"), task_id, title="ok", status="done")

        after = await services.store.tasks.get_by_id(task_id)
        assert after.title == "Mine"
        assert after.updated_at == before.updated_at
        assert await services.audit.count_by_task(task_id) == 1


# ============================================================
# DELETE
# ============================================================

class TestDeleteTask:

    @pytest.mark.asyncio
    async def test_delete_purges_history_and_orphans_comments(self, as_user, services):
        task_id = await tasks.create_task(as_user("u1"), "Temp")
        comment_id = await comments.create_comment(as_user("u1"), task_id, "note")

        assert await tasks.delete_task(as_user("u1"), task_id) == task_id

        assert await services.store.tasks.get_by_id(task_id) is None
        assert await services.audit.count_by_task(task_id) == 0
        assert (await services.store.comments.get_by_id(comment_id)).task_id == task_id

    @pytest.mark.asyncio
    async def test_other_user_cannot_delete(self, as_user, services):
        task_id = await tasks.create_task(as_user("u1"), "Mine")

        with pytest.raises(AuthorizationError):
            await tasks.delete_task(as_user("u2"), task_id)

        assert await services.store.tasks.get_by_id(task_id) is not None

    @pytest.mark.asyncio
    async def test_missing_task(self, as_user):
        with pytest.raises(NotFoundError):
            await tasks.delete_task(as_user("u1"), 12345)


# ============================================================
# QUERIES
# ============================================================

class TestTaskQueries:

    @pytest.mark.asyncio
    async def test_get_task_is_owner_only(self, as_user):
        task_id = await tasks.create_task(as_user("u1"), "Mine")

        assert (await tasks.get_task(as_user("u1"), task_id)).title == "Mine"
        with pytest.raises(AuthorizationError):
            await tasks.get_task(as_user("u2"), task_id)
        with pytest.raises(NotFoundError):
            await tasks.get_task(as_user("u1"), task_id + 100)

    @pytest.mark.asyncio
    async def test_list_tasks_scoped_and_newest_first(self, as_user, clock):
        first = await tasks.create_task(as_user("u1"), "first")
        clock.advance(1)
        second = await tasks.create_task(as_user("u1"), "second")
        await tasks.create_task(as_user("u2"), "theirs")

        listed = await tasks.list_tasks(as_user("u1"))

        assert [t.id for t in listed] == [second, first]

    @pytest.mark.asyncio
    async def test_list_by_status_and_priority(self, as_user):
        low = await tasks.create_task(as_user("u1"), "low", priority="low")
        high = await tasks.create_task(as_user("u1"), "high", priority="high")
        await tasks.update_task(as_user("u1"), high, status="in_progress")

        assert [t.id for t in await tasks.list_by_status(as_user("u1"), "in_progress")] == [high]
        assert [t.id for t in await tasks.list_by_priority(as_user("u1"), "low")] == [low]

        with pytest.raises(ValidationError):
            await tasks.list_by_status(as_user("u1"), "archived")
        with pytest.raises(ValidationError):
            await tasks.list_by_priority(as_user("u1"), "urgent")

    @pytest.mark.asyncio
    async def test_overdue_and_upcoming(self, as_user, clock):
        late = await tasks.create_task(as_user("u1"), "late", due_date=clock.now + ONE_HOUR_MS)
        soon = await tasks.create_task(as_user("u1"), "soon", due_date=clock.now + 3 * ONE_DAY_MS)
        clock.advance(2 * ONE_HOUR_MS)

        assert [t.id for t in await tasks.list_overdue(as_user("u1"))] == [late]
        assert [t.id for t in await tasks.list_upcoming(as_user("u1"))] == [soon]

    @pytest.mark.asyncio
    async def test_stats(self, as_user):
        a = await tasks.create_task(as_user("u1"), "a")
        await tasks.create_task(as_user("u1"), "b")
        await tasks.update_task(as_user("u1"), a, status="completed")

        stats = await tasks.get_task_stats(as_user("u1"))

        assert stats == {"pending": 1, "in_progress": 0, "completed": 1, "total": 2}

    @pytest.mark.asyncio
    async def test_history_is_owner_only(self, as_user):
        task_id = await tasks.create_task(as_user("u1"), "Mine")

        assert [a.action for a in await tasks.get_task_history(as_user("u1"), task_id)] == ["created"]
        with pytest.raises(AuthorizationError):
            await tasks.get_task_history(as_user("u2"), task_id)


# ============================================================
# END TO END
# ============================================================

@pytest.mark.asyncio
async def test_buy_milk_lifecycle(as_user, services, clock):
    ctx = as_user("u1")

    task_id = await tasks.create_task(ctx, "Buy milk", priority="low")
    clock.advance(60_000)
    await tasks.update_task(ctx, task_id, status="in_progress")
    clock.advance(60_000)
    comment_id = await comments.create_comment(ctx, task_id, "Semi-skimmed please")
    clock.advance(60_000)
    await tasks.update_task(ctx, task_id, status="completed")

    task = await tasks.get_task(ctx, task_id)
    assert task.status == "completed"
    assert task.completed_at == clock.now

    actions = [a.action for a in await tasks.get_task_history(ctx, task_id)]
    assert actions == ["created", "updated", "commented", "completed"]

    with pytest.raises(AuthorizationError):
        await tasks.delete_task(as_user("u2"), task_id)

    await tasks.delete_task(ctx, task_id)

    with pytest.raises(NotFoundError):
        await tasks.get_task(ctx, task_id)
    assert await services.audit.count_by_task(task_id) == 0
    assert await services.store.comments.get_by_id(comment_id) is not None
