"""
Cancellation of queued and running jobs.
"""

import logging

from engine.src.models.step import JobStatus, LogLevel
from engine.src.services.events import EventType
from engine.src.services.job_store import JobStore
from engine.src.services.scheduler import Scheduler
from engine.src.services.status_reporter import StatusReporter

logger = logging.getLogger(__name__)

class CancellationController:
    def __init__(self, store: JobStore, scheduler: Scheduler, reporter: StatusReporter):
        self.store = store
        self.scheduler = scheduler
        self.reporter = reporter

    def cancel(self, job_id: str) -> bool:
        """
        Cancel a job.

        A queued job is marked cancelled and will never be admitted. A
        running job is marked cancelled right away and its runner is
        signalled, which terminates the active step's process group.
        Returns False for unknown jobs and jobs that already finished.
        """
        job = self.store.get(job_id)
        if job is None:
            return False

        with self.store.lock:
            was_running = job.status == JobStatus.RUNNING
            if not self.store.transition(job, JobStatus.CANCELLED):
                return False

            if was_running:
                active = self.scheduler.active(job_id)
                if active is not None:
                    active.cancel_event.set()

        logger.info(f"Cancelled job {job_id} ({'running' if was_running else 'queued'})")
        self.reporter.log(job, LogLevel.WARN, "Pipeline was cancelled")
        self.reporter.emit(EventType.JOB_CANCELLED, job)
        return True
