from pydantic import BaseModel
from typing import Optional, List
from datetime import datetime

from engine.src.models import BuildPlan, Job, JobStatus, LogEntry, QueueStatus

class JobCreateRequest(BaseModel):
    work_dir: str
    plan: BuildPlan
    repository_id: Optional[str] = None

class JobCreatedResponse(BaseModel):
    job_id: str
    status: str
    message: str = "Pipeline job created successfully"

class StageSummary(BaseModel):
    name: str
    status: str
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

class JobSummary(BaseModel):
    id: str
    repository_id: Optional[str] = None
    status: str
    created_at: datetime
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    stages: List[StageSummary] = []
    failed_stage: Optional[str] = None
    failed_step: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def from_job(cls, job: Job) -> "JobSummary":
        # A cancelled job reports no failure, even for the step it interrupted
        failed = job.failed_step() if job.status != JobStatus.CANCELLED else None
        return cls(
            id=job.id,
            repository_id=job.repository_id,
            status=job.status.value,
            created_at=job.created_at,
            started_at=job.started_at,
            finished_at=job.finished_at,
            stages=[
                StageSummary(
                    name=stage.name,
                    status=stage.status.value,
                    started_at=stage.started_at,
                    finished_at=stage.finished_at,
                )
                for stage in job.stages
            ],
            failed_stage=failed[0].name if failed else None,
            failed_step=failed[1].name if failed else None,
            error=failed[1].error if failed else None,
        )

class JobListResponse(BaseModel):
    jobs: List[JobSummary]
    queue_status: QueueStatus

class JobLogsResponse(BaseModel):
    job_id: str
    status: str
    logs: List[LogEntry]
    next_offset: int
