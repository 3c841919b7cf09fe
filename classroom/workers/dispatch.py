from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from dataclasses import dataclass, field
import logging

from classroom.domain.models import JobSnapshot, JobStatus

logger = logging.getLogger("runtime")


class DispatcherStoppedError(RuntimeError):
    pass


@dataclass
class DispatcherState:
    started_total: int = 0
    completed_total: int = 0
    failed_total: int = 0
    crashed_total: int = 0
    cancelled_total: int = 0
    stopped: bool = False


@dataclass
class JobDispatcher:
    """Fire-and-forget job tasks with tracking, counters and graceful shutdown."""

    shutdown_grace_seconds: float = 10.0
    state: DispatcherState = field(default_factory=DispatcherState)
    _tasks: dict[str, asyncio.Task[JobSnapshot]] = field(default_factory=dict)

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    def spawn(self, job_id: str, job: Coroutine[object, object, JobSnapshot]) -> asyncio.Task[JobSnapshot]:
        if self.state.stopped:
            job.close()
            raise DispatcherStoppedError("service is shutting down")
        task = asyncio.create_task(job, name=f"job:{job_id}")
        self._tasks[job_id] = task
        self.state.started_total += 1
        task.add_done_callback(lambda done: self._finished(job_id, done))
        return task

    async def wait_idle(self) -> None:
        while self._tasks:
            await asyncio.gather(*self._tasks.values(), return_exceptions=True)

    async def shutdown(self) -> None:
        self.state.stopped = True
        pending = list(self._tasks.values())
        if not pending:
            return
        logger.info("waiting for in-flight jobs", extra={"status": f"{len(pending)} running"})
        _, still_running = await asyncio.wait(pending, timeout=self.shutdown_grace_seconds)
        for task in still_running:
            task.cancel()
        if still_running:
            await asyncio.gather(*still_running, return_exceptions=True)

    def _finished(self, job_id: str, task: asyncio.Task[JobSnapshot]) -> None:
        self._tasks.pop(job_id, None)
        if task.cancelled():
            self.state.cancelled_total += 1
            logger.warning("job task cancelled", extra={"job_id": job_id})
            return
        exc = task.exception()
        if exc is not None:
            self.state.crashed_total += 1
            logger.error("job task crashed", exc_info=exc, extra={"job_id": job_id})
            return
        snapshot = task.result()
        if snapshot.status == JobStatus.COMPLETED:
            self.state.completed_total += 1
        else:
            self.state.failed_total += 1
