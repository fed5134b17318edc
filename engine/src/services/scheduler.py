"""
Scheduler - admits queued jobs up to the concurrency cap.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional

from engine.src.models.step import Job, JobStatus
from engine.src.services.job_store import JobStore

logger = logging.getLogger(__name__)

RunJob = Callable[[Job, asyncio.Event], Awaitable[object]]

@dataclass
class ActiveJob:
    job: Job
    task: Optional[asyncio.Task] = None
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)

class Scheduler:
    """
    FIFO admission. A job counts against the cap from the moment it is
    flipped to running until its runner task has fully unwound, so a
    cancelled job's process is gone before its slot is reused.
    """

    def __init__(self, store: JobStore, run_job: RunJob, max_concurrent_jobs: int = 3):
        if max_concurrent_jobs < 1:
            raise ValueError("max_concurrent_jobs must be at least 1")

        self.store = store
        self.run_job = run_job
        self.max_concurrent_jobs = max_concurrent_jobs
        self._active: Dict[str, ActiveJob] = {}
        self._closed = False

    @property
    def active_count(self) -> int:
        with self.store.lock:
            return len(self._active)

    def active(self, job_id: str) -> Optional[ActiveJob]:
        with self.store.lock:
            return self._active.get(job_id)

    def active_jobs(self) -> List[ActiveJob]:
        with self.store.lock:
            return list(self._active.values())

    def process_queue(self) -> List[Job]:
        """
        Admit queued jobs, oldest first, while there is capacity.
        Called on every job creation and every job completion.
        """
        admitted = []
        if self._closed:
            return admitted

        loop = asyncio.get_running_loop()

        with self.store.lock:
            for job in self.store.queued():
                if len(self._active) >= self.max_concurrent_jobs:
                    break
                if not self.store.transition(job, JobStatus.RUNNING):
                    continue

                active = ActiveJob(job=job)
                self._active[job.id] = active
                active.task = loop.create_task(self._run(active), name=f"pipeline-{job.id}")
                admitted.append(job)

        for job in admitted:
            logger.info(
                f"Admitted job {job.id} "
                f"({self.active_count}/{self.max_concurrent_jobs} slots in use)"
            )
        return admitted

    async def _run(self, active: ActiveJob):
        try:
            await self.run_job(active.job, active.cancel_event)
        except asyncio.CancelledError:
            logger.warning(f"Runner for job {active.job.id} was torn down")
            self.store.transition(active.job, JobStatus.CANCELLED)
            raise
        except Exception:
            logger.exception(f"Runner for job {active.job.id} crashed")
            self.store.transition(active.job, JobStatus.FAILED)
        finally:
            with self.store.lock:
                self._active.pop(active.job.id, None)
            self.process_queue()

    def close(self):
        """Stop admitting jobs."""
        self._closed = True

    async def join(self, timeout: Optional[float] = None):
        """Wait for every active runner to finish."""
        tasks = [active.task for active in self.active_jobs() if active.task]
        if tasks:
            await asyncio.wait(tasks, timeout=timeout)
