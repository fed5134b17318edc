"""
In-memory job registry.

Every status change and every snapshot read goes through one re-entrant
lock, so the scheduler, the stage runners and outside readers never
observe a half-applied transition. Jobs live for the life of the process.
"""

import logging
import threading
from typing import Dict, List, Optional

from engine.src.config import Settings, get_settings
from engine.src.models.plan import BuildPlan
from engine.src.models.step import Job, JobStatus, LogEntry, QueueStatus
from engine.src.services import state
from engine.src.services.stage_plan import build_stages

logger = logging.getLogger(__name__)

class JobStore:
    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.lock = threading.RLock()
        self._jobs: Dict[str, Job] = {}

    def create(
        self,
        plan: BuildPlan,
        work_dir: str,
        repository_id: Optional[str] = None,
    ) -> Job:
        """Build the stage plan for a build plan and register it as queued."""
        job = Job(
            repository_id=repository_id,
            plan=plan,
            work_dir=work_dir,
            stages=build_stages(plan, self.settings),
        )

        with self.lock:
            self._jobs[job.id] = job

        logger.info(
            f"Created job {job.id} with stages "
            f"{[stage.name for stage in job.stages]}"
        )
        return job

    def get(self, job_id: str) -> Optional[Job]:
        with self.lock:
            return self._jobs.get(job_id)

    def list(self, repository_id: Optional[str] = None) -> List[Job]:
        """All jobs, newest first."""
        with self.lock:
            # Insertion order is creation order
            jobs = list(reversed(self._jobs.values()))

        if repository_id is not None:
            jobs = [job for job in jobs if job.repository_id == repository_id]
        return jobs

    def queued(self) -> List[Job]:
        """Queued jobs in admission order, oldest first."""
        with self.lock:
            # Insertion order is creation order
            return [job for job in self._jobs.values() if job.status == JobStatus.QUEUED]

    def transition(self, job: Job, target: JobStatus) -> bool:
        """
        Move a job to a new status.
        Returns False if the job can no longer reach it, e.g. a runner
        finishing a job that was cancelled in the meantime.
        """
        with self.lock:
            if not state.can_transition(job.status, target):
                logger.debug(
                    f"Ignoring {job.status.value} -> {target.value} for job {job.id}"
                )
                return False
            state.move_job(job, target)

        logger.info(f"Job {job.id} is now {target.value}")
        return True

    def append_log(self, job: Job, entry: LogEntry):
        with self.lock:
            job.logs.append(entry)

    def snapshot(self, job_id: str) -> Optional[Job]:
        """A deep copy of a job, consistent as of the call."""
        with self.lock:
            job = self._jobs.get(job_id)
            return job.model_copy(deep=True) if job else None

    def counts(self) -> QueueStatus:
        with self.lock:
            statuses = [job.status for job in self._jobs.values()]

        return QueueStatus(
            total=len(statuses),
            queued=statuses.count(JobStatus.QUEUED),
            running=statuses.count(JobStatus.RUNNING),
            succeeded=statuses.count(JobStatus.SUCCESS),
            failed=statuses.count(JobStatus.FAILED),
            cancelled=statuses.count(JobStatus.CANCELLED),
        )
