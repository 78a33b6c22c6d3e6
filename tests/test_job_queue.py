"""Tests for the in-process job queue."""

import asyncio
import logging
from uuid import uuid4

import pytest

from settlement_engine.services import AsyncioJobQueue


class TestAsyncioJobQueue:
    """Tests for AsyncioJobQueue."""

    async def test_enqueue_returns_before_job_runs(self, queue: AsyncioJobQueue):
        started = asyncio.Event()
        release = asyncio.Event()

        async def job():
            started.set()
            await release.wait()
            return "done"

        case_id = uuid4()
        handle = queue.enqueue(case_id, job)

        assert handle.termination_case_id == case_id
        assert str(handle).startswith("job-")
        assert queue.pending_count == 1

        await started.wait()
        release.set()
        await queue.drain()
        assert queue.pending_count == 0

    async def test_crashing_job_is_logged_not_raised(self, queue, caplog):
        async def job():
            raise RuntimeError("boom")

        with caplog.at_level(logging.ERROR, logger="settlement_engine.services.job_queue"):
            queue.enqueue(uuid4(), job)
            await queue.drain()

        assert "crashed" in caplog.text
        assert queue.pending_count == 0

    async def test_drain_waits_for_jobs_enqueued_by_jobs(self, queue):
        finished = []

        async def child():
            finished.append("child")

        async def parent():
            queue.enqueue(uuid4(), child)
            finished.append("parent")

        queue.enqueue(uuid4(), parent)
        await queue.drain()

        assert sorted(finished) == ["child", "parent"]

    async def test_shutdown_cancels_outstanding_jobs(self):
        queue = AsyncioJobQueue()
        cancelled = asyncio.Event()

        async def job():
            try:
                await asyncio.sleep(3600)
            except asyncio.CancelledError:
                cancelled.set()
                raise

        queue.enqueue(uuid4(), job)
        await asyncio.sleep(0)
        await queue.shutdown()

        assert cancelled.is_set()
        assert queue.pending_count == 0

    @pytest.mark.parametrize("count", [1, 5])
    async def test_jobs_run_concurrently(self, queue, count):
        running = 0
        peak = 0

        async def job():
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0.01)
            running -= 1

        for _ in range(count):
            queue.enqueue(uuid4(), job)
        await queue.drain()

        assert peak == count
