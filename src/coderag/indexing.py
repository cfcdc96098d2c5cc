"""Background indexing jobs with an explicit status channel per namespace."""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional

from coderag.telemetry import emit_exception, traced_duration

LOGGER = logging.getLogger(__name__)


class JobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(slots=True)
class IndexingJob:
    """Progress record for one namespace."""

    namespace: str
    status: JobStatus = JobStatus.PENDING
    files_total: int = 0
    files_indexed: int = 0
    files_failed: int = 0
    units_upserted: int = 0
    errors: List[str] = field(default_factory=list)
    submitted_at: float = field(default_factory=time.time)
    finished_at: Optional[float] = None
    task: Optional[asyncio.Task] = field(default=None, repr=False)

    @property
    def done(self) -> bool:
        return self.status in {JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED}

    def as_dict(self) -> dict:
        return {
            "namespace": self.namespace,
            "status": self.status.value,
            "files_total": self.files_total,
            "files_indexed": self.files_indexed,
            "files_failed": self.files_failed,
            "units_upserted": self.units_upserted,
            "errors": list(self.errors),
        }


JobBody = Callable[[IndexingJob], Awaitable[None]]


class IndexingTracker:
    """Run indexing coroutines as tasks and answer "is this namespace indexed yet"."""

    def __init__(self) -> None:
        self._jobs: Dict[str, IndexingJob] = {}

    def submit(self, namespace: str, body: JobBody) -> IndexingJob:
        """Start ``body`` in the background and return immediately.

        A job already running for ``namespace`` is cancelled first.
        """

        previous = self._jobs.get(namespace)
        if previous is not None and previous.task is not None and not previous.task.done():
            LOGGER.info("Cancelling running indexing job for %s", namespace)
            previous.task.cancel()

        job = IndexingJob(namespace=namespace)
        self._jobs[namespace] = job
        job.task = asyncio.create_task(self._run(job, body), name=f"index:{namespace}")
        return job

    async def _run(self, job: IndexingJob, body: JobBody) -> None:
        job.status = JobStatus.RUNNING
        try:
            with traced_duration("indexing.job", logger=LOGGER, namespace=job.namespace):
                await body(job)
        except asyncio.CancelledError:
            job.status = JobStatus.CANCELLED
            raise
        except Exception as error:
            job.status = JobStatus.FAILED
            job.errors.append(str(error))
            emit_exception(module=__name__, error=error)
        else:
            job.status = JobStatus.COMPLETED
        finally:
            job.finished_at = time.time()

    def status(self, namespace: str) -> Optional[IndexingJob]:
        return self._jobs.get(namespace)

    async def wait(self, namespace: str, timeout: float | None = None) -> Optional[IndexingJob]:
        """Block until the job for ``namespace`` finishes; ``None`` if there is none."""

        job = self._jobs.get(namespace)
        if job is None or job.task is None:
            return job
        try:
            await asyncio.wait_for(asyncio.shield(job.task), timeout=timeout)
        except asyncio.CancelledError:
            if not job.task.cancelled():
                raise
        return job

    async def forget(self, namespace: str) -> None:
        job = self._jobs.pop(namespace, None)
        if job is not None:
            await _cancel(job)

    async def close(self) -> None:
        jobs = list(self._jobs.values())
        self._jobs.clear()
        for job in jobs:
            await _cancel(job)


async def _cancel(job: IndexingJob) -> None:
    task = job.task
    if task is None or task.done():
        return
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass


__all__ = ["IndexingJob", "IndexingTracker", "JobStatus"]
