"""
PipelineEngine - the control surface other components talk to.

Wires the job store, scheduler, stage runner, event bus and
cancellation controller together for a single event loop.
"""

import asyncio
import logging
from typing import List, Optional

from engine.src.config import Settings, get_settings
from engine.src.models.plan import BuildPlan
from engine.src.models.step import Job, QueueStatus
from engine.src.services.cancellation import CancellationController
from engine.src.services.events import EventBus, EventType
from engine.src.services.job_store import JobStore
from engine.src.services.scheduler import Scheduler
from engine.src.services.stage_runner import StageRunner
from engine.src.services.status_reporter import StatusReporter

logger = logging.getLogger(__name__)

class JobNotFoundError(KeyError):
    pass

class PipelineEngine:
    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

        self.store = JobStore(self.settings)
        self.events = EventBus(max_subscribers=self.settings.max_subscribers)
        self.reporter = StatusReporter(self.store, self.events)
        self.runner = StageRunner(self.store, self.reporter, self.settings)
        self.scheduler = Scheduler(
            self.store,
            self.runner.execute_pipeline,
            max_concurrent_jobs=self.settings.max_concurrent_jobs,
        )
        self.cancellation = CancellationController(self.store, self.scheduler, self.reporter)

    async def create_job(
        self,
        plan: BuildPlan,
        work_dir: str,
        repository_id: Optional[str] = None,
    ) -> str:
        """Queue a build plan for execution in work_dir. Returns the job id."""
        job = self.store.create(plan, work_dir, repository_id)
        self.reporter.emit(EventType.JOB_CREATED, job)
        self.scheduler.process_queue()
        return job.id

    def get_job(self, job_id: str) -> Optional[Job]:
        return self.store.get(job_id)

    def list_jobs(self, repository_id: Optional[str] = None) -> List[Job]:
        return self.store.list(repository_id)

    async def cancel_job(self, job_id: str) -> bool:
        return self.cancellation.cancel(job_id)

    def get_queue_status(self) -> QueueStatus:
        return self.store.counts()

    async def wait_for_job(
        self,
        job_id: str,
        timeout: Optional[float] = None,
        poll_interval: float = 0.05,
    ) -> Job:
        """
        Wait until a job is terminal and its runner, if it had one, has
        fully unwound.
        """
        job = self.store.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)

        async def _wait():
            while True:
                active = self.scheduler.active(job_id)
                if active is not None and active.task is not None:
                    await asyncio.wait({active.task})
                elif job.is_terminal:
                    return job
                else:
                    await asyncio.sleep(poll_interval)

        return await asyncio.wait_for(_wait(), timeout=timeout)

    async def shutdown(self, timeout: Optional[float] = None):
        """Stop admitting work, cancel every unfinished job and wait for runners."""
        self.scheduler.close()

        unfinished = [job for job in self.store.list() if not job.is_terminal]
        for job in unfinished:
            self.cancellation.cancel(job.id)

        await self.scheduler.join(timeout=timeout)
        logger.info(f"Engine shut down, cancelled {len(unfinished)} jobs")
