"""Background job queue for termination processing.

Enqueue is fire-and-forget: the caller gets a handle immediately and
clients poll the persisted case for progress. Delivery is at-least-once,
so jobs must tolerate duplicates (the processor's claim is idempotent).
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Protocol
from uuid import UUID, uuid4

logger = logging.getLogger(__name__)

Job = Callable[[], Awaitable[object]]


@dataclass(frozen=True)
class JobHandle:
    """Reference correlating a case with its background execution."""

    job_id: str
    termination_case_id: UUID

    def __str__(self) -> str:
        return self.job_id


class JobQueue(Protocol):
    """Protocol for background job dispatch."""

    @property
    def pending_count(self) -> int:
        """Jobs enqueued and not yet finished."""
        ...

    def enqueue(self, termination_case_id: UUID, job: Job) -> JobHandle:
        """Schedule a job and return immediately."""
        ...

    async def shutdown(self) -> None:
        ...


class AsyncioJobQueue:
    """In-process queue running each job as an asyncio task.

    Tasks run outside the request lifecycle. The queue keeps a strong
    reference to every task until it finishes so a client disconnect never
    drops work.
    """

    def __init__(self) -> None:
        self._tasks: dict[str, asyncio.Task[object]] = {}

    @property
    def pending_count(self) -> int:
        return len(self._tasks)

    def enqueue(self, termination_case_id: UUID, job: Job) -> JobHandle:
        handle = JobHandle(job_id=f"job-{uuid4()}", termination_case_id=termination_case_id)
        task = asyncio.create_task(self._run(handle, job), name=handle.job_id)
        self._tasks[handle.job_id] = task
        task.add_done_callback(lambda _t: self._tasks.pop(handle.job_id, None))
        logger.info("Enqueued %s for termination case %s", handle.job_id, termination_case_id)
        return handle

    async def _run(self, handle: JobHandle, job: Job) -> object:
        try:
            return await job()
        except Exception:
            # Jobs persist their own failures; anything reaching here is a bug
            logger.exception(
                "Job %s for termination case %s crashed",
                handle.job_id,
                handle.termination_case_id,
            )
            return None

    async def drain(self) -> None:
        """Wait until every job enqueued so far (and any they enqueue) has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks.values()), return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel outstanding jobs (application shutdown).

        Cancelled cases stay in pending/processing and are picked up by the
        stale-claim reaper.
        """
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
