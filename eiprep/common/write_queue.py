"""
Detached Write Queue

Persistence writes issued while a user moves through an assessment are queued
here and executed by a single background worker, so navigation never waits on
the network. Jobs run in submission order. A failed job is logged, recorded
and published as a PersistenceFailureEvent; it is never retried unless a
caller explicitly asks for replay_failed().

Usage:
    queue = AsyncWriteQueue(dispatcher)
    queue.submit("insert_responses", lambda: repo.insert_responses(rows))
    ...
    await queue.drain()   # wait for everything submitted so far
    await queue.close()
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional

from eiprep.common.events import EventDispatcher, PersistenceFailureEvent
from eiprep.common.exceptions import PersistenceUnavailable
from eiprep.common.logger import app_logger

logger = app_logger.getChild("write_queue")

JobFactory = Callable[[], Awaitable[Any]]


@dataclass
class WriteJob:
    """A deferred collaborator write."""

    operation: str
    factory: JobFactory
    description: str = ""
    session_id: Optional[str] = None
    error: Optional[Exception] = None


def _detail(job: WriteJob) -> str:
    return f" ({job.description})" if job.description else ""


class AsyncWriteQueue:
    """
    Single-worker FIFO queue of persistence writes.

    Attributes:
        failed_jobs: Jobs whose last attempt raised, oldest first
        completed_count: Number of jobs that finished successfully
    """

    def __init__(self, dispatcher: Optional[EventDispatcher] = None, max_size: int = 0):
        """
        Initialize the queue.

        Args:
            dispatcher: Channel that receives PersistenceFailureEvent
            max_size: Bound on pending jobs, 0 for unbounded
        """
        self.dispatcher = dispatcher or EventDispatcher()
        self.max_size = max_size
        self.failed_jobs: List[WriteJob] = []
        self.completed_count = 0
        self._queue: Optional[asyncio.Queue] = None
        self._worker: Optional[asyncio.Task] = None

    @property
    def pending(self) -> int:
        """Number of jobs waiting to run."""
        return self._queue.qsize() if self._queue is not None else 0

    def _ensure_worker(self) -> asyncio.Queue:
        # The queue is created lazily so it binds to the running loop.
        if self._queue is None:
            self._queue = asyncio.Queue(maxsize=self.max_size)
        if self._worker is None or self._worker.done():
            self._worker = asyncio.get_running_loop().create_task(self._run())
        return self._queue

    def submit(
        self,
        operation: str,
        factory: JobFactory,
        description: str = "",
        session_id: Optional[str] = None
    ) -> WriteJob:
        """
        Queue a write without waiting for it.

        Must be called from inside a running event loop. When the queue is
        full the job is dropped as a failure rather than blocking the caller.

        Args:
            operation: Collaborator operation name, used in logs and events
            factory: Zero-argument callable returning the write coroutine
            description: Human readable detail for logs
            session_id: Session the write belongs to

        Returns:
            The queued job
        """
        job = WriteJob(operation, factory, description, session_id)
        queue = self._ensure_worker()
        try:
            queue.put_nowait(job)
        except asyncio.QueueFull as e:
            self._record_failure(job, e)
        return job

    async def _run(self) -> None:
        queue = self._queue
        while True:
            job = await queue.get()
            try:
                await job.factory()
                self.completed_count += 1
                logger.debug(f"{job.operation} done{_detail(job)}")
            except PersistenceUnavailable as e:
                self._record_failure(job, e)
            except Exception as e:
                logger.error(f"Unexpected error in {job.operation}", exc_info=True)
                self._record_failure(job, e)
            finally:
                queue.task_done()

    def _record_failure(self, job: WriteJob, error: Exception) -> None:
        job.error = error
        self.failed_jobs.append(job)
        logger.warning(
            f"Dropped {job.operation}{_detail(job)}: {error}",
            extra={"data": {"session_id": job.session_id, "operation": job.operation}}
        )
        event = PersistenceFailureEvent(
            operation=job.operation,
            description=job.description,
            error=error,
            session_id=job.session_id
        )
        # A failing subscriber must not take the worker down with it
        try:
            self.dispatcher.dispatch(event)
        except Exception:
            logger.error(f"Failure handler raised for {job.operation}", exc_info=True)

    def replay_failed(self) -> int:
        """
        Re-submit every failed job once.

        Returns:
            Number of jobs re-submitted
        """
        jobs, self.failed_jobs = self.failed_jobs, []
        for job in jobs:
            self.submit(job.operation, job.factory, job.description, job.session_id)
        return len(jobs)

    async def drain(self) -> None:
        """Wait until every job submitted so far has run."""
        if self._queue is not None:
            await self._queue.join()

    async def close(self) -> None:
        """Drain outstanding jobs and stop the worker."""
        await self.drain()
        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None
