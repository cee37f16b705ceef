"""
Tests for the controller work queue.
"""
import asyncio

import pytest

from dbaas_operator.models.resources import ResourceKey
from dbaas_operator.workers.work_queue import WorkQueue

KEY = ResourceKey("default", "sample")
OTHER = ResourceKey("default", "other")


async def _get(queue: WorkQueue, timeout: float = 1.0):
    return await asyncio.wait_for(queue.get(), timeout)


@pytest.mark.asyncio
async def test_duplicate_adds_are_coalesced():
    queue = WorkQueue("test")
    queue.add(KEY)
    queue.add(KEY)
    queue.add(OTHER)

    assert len(queue) == 2
    assert await _get(queue) == KEY
    assert await _get(queue) == OTHER


@pytest.mark.asyncio
async def test_key_is_never_handed_out_twice_concurrently():
    """Test a key added while in flight is requeued only after done."""
    queue = WorkQueue("test")
    queue.add(KEY)
    key = await _get(queue)

    queue.add(KEY)
    assert len(queue) == 0

    queue.done(key)
    assert len(queue) == 1
    assert await _get(queue) == KEY


@pytest.mark.asyncio
async def test_done_without_changes_does_not_requeue():
    queue = WorkQueue("test")
    queue.add(KEY)
    queue.done(await _get(queue))

    assert len(queue) == 0


@pytest.mark.asyncio
async def test_add_after_keeps_earliest_timer():
    queue = WorkQueue("test")
    queue.add_after(KEY, 30)
    queue.add_after(KEY, 0.01)
    queue.add_after(KEY, 60)

    assert await _get(queue) == KEY


@pytest.mark.asyncio
async def test_add_after_is_not_immediate():
    queue = WorkQueue("test")
    queue.add_after(KEY, 30)

    assert len(queue) == 0
    with pytest.raises(asyncio.TimeoutError):
        await _get(queue, timeout=0.05)
    queue.shutdown()


@pytest.mark.asyncio
async def test_rate_limited_backoff_grows_and_resets():
    """Test the per-key delay doubles up to the maximum and forget resets it."""
    queue = WorkQueue("test", base_delay=0.01, max_delay=0.03)

    delays = [queue.add_rate_limited(KEY) for _ in range(4)]

    assert delays == [0.01, 0.02, 0.03, 0.03]
    assert queue.num_requeues(KEY) == 4
    assert queue.num_requeues(OTHER) == 0

    queue.forget(KEY)
    assert queue.num_requeues(KEY) == 0
    assert queue.add_rate_limited(KEY) == 0.01
    assert await _get(queue) == KEY


@pytest.mark.asyncio
async def test_shutdown_releases_waiting_getters():
    queue = WorkQueue("test")
    waiter = asyncio.create_task(queue.get())
    await asyncio.sleep(0)

    queue.shutdown()

    assert await asyncio.wait_for(waiter, 1.0) is None
    queue.add(KEY)
    assert len(queue) == 0
