"""In-memory registry of background batch jobs started over HTTP."""
import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Optional

from .batch import BatchState
from .cancellation import CancelToken
from .errors import PollCancelledError

logger = logging.getLogger(__name__)

BatchRunner = Callable[[BatchState, CancelToken], Awaitable[list]]

# Finished jobs stay readable for this long, in seconds
JOB_TTL = 3600.0


class JobStatus(str, Enum):
    running = "running"
    finished = "finished"
    cancelled = "cancelled"
    error = "error"


@dataclass
class BatchJob:
    id: str
    kind: str
    state: BatchState = field(default_factory=BatchState)
    cancel_token: CancelToken = field(default_factory=CancelToken)
    status: JobStatus = JobStatus.running
    task: Optional[asyncio.Task] = None
    finished_at: Optional[float] = None


class JobRegistry:
    def __init__(self, ttl: float = JOB_TTL):
        self.jobs: dict[str, BatchJob] = {}
        self.ttl = ttl

    def start(self, kind: str, total: int, runner: BatchRunner) -> BatchJob:
        """Run `runner` as a background task and return its job."""
        self.prune()
        job = BatchJob(id=str(uuid.uuid4()), kind=kind)
        job.state.start(total)
        self.jobs[job.id] = job
        job.task = asyncio.create_task(self._run(job, runner))
        logger.info("Batch job %s started (%s, %d items)", job.id, kind, total)
        return job

    async def _run(self, job: BatchJob, runner: BatchRunner):
        try:
            await runner(job.state, job.cancel_token)
            job.status = JobStatus.finished
            logger.info("Batch job %s finished", job.id)
        except PollCancelledError:
            job.status = JobStatus.cancelled
            logger.info("Batch job %s cancelled", job.id)
        except Exception as e:
            # Nothing awaits the task; the failure is reported through the job
            job.status = JobStatus.error
            job.state.finish(error=str(e) or type(e).__name__)
            logger.exception("Batch job %s failed", job.id)
        finally:
            job.finished_at = time.monotonic()

    def prune(self, now: Optional[float] = None) -> int:
        """Drop jobs that finished more than `ttl` seconds ago."""
        now = time.monotonic() if now is None else now
        expired = [
            job_id
            for job_id, job in self.jobs.items()
            if job.finished_at is not None and now - job.finished_at > self.ttl
        ]
        for job_id in expired:
            del self.jobs[job_id]
        if expired:
            logger.debug("Pruned %d finished batch job(s)", len(expired))
        return len(expired)

    def get(self, job_id: str) -> Optional[BatchJob]:
        return self.jobs.get(job_id)

    def cancel(self, job_id: str) -> bool:
        job = self.jobs.get(job_id)
        if job is None:
            return False
        job.cancel_token.cancel("Batch cancelled by request")
        return True

    async def shutdown(self):
        """Cancel every running job and wait for its task to stop."""
        tasks = []
        for job in self.jobs.values():
            if job.task and not job.task.done():
                job.cancel_token.cancel("Server shutting down")
                tasks.append(job.task)
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)


# Singleton instance
_registry: Optional[JobRegistry] = None


def get_registry() -> JobRegistry:
    """Get the singleton JobRegistry instance."""
    global _registry
    if _registry is None:
        _registry = JobRegistry()
    return _registry
