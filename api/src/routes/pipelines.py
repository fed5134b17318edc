import os
from fastapi import APIRouter, Depends, HTTPException, Query
from typing import Optional

from api.src.dependencies import get_engine
from api.src.models.run import (
    JobCreateRequest,
    JobCreatedResponse,
    JobListResponse,
    JobLogsResponse,
    JobSummary,
)
from engine.src.models import Job, QueueStatus
from engine.src.pipeline_engine import PipelineEngine

router = APIRouter(prefix="/pipelines", tags=["pipelines"])

@router.post("/jobs", response_model=JobCreatedResponse, status_code=201)
async def create_job(body: JobCreateRequest, engine: PipelineEngine = Depends(get_engine)):
    """Queue a build plan for execution."""
    if not os.path.isdir(body.work_dir):
        raise HTTPException(status_code=400, detail="Working directory does not exist")

    job_id = await engine.create_job(body.plan, body.work_dir, body.repository_id)
    job = engine.get_job(job_id)

    return JobCreatedResponse(job_id=job_id, status=job.status.value)

@router.get("/jobs", response_model=JobListResponse)
async def list_jobs(
    repository_id: Optional[str] = None,
    status: Optional[str] = None,
    limit: int = Query(50, ge=1),
    engine: PipelineEngine = Depends(get_engine),
):
    """List pipeline jobs, newest first."""
    jobs = engine.list_jobs(repository_id)

    if status:
        jobs = [job for job in jobs if job.status.value == status]

    return JobListResponse(
        jobs=[JobSummary.from_job(job) for job in jobs[:limit]],
        queue_status=engine.get_queue_status(),
    )

@router.get("/jobs/{job_id}", response_model=Job)
async def get_job(job_id: str, engine: PipelineEngine = Depends(get_engine)):
    """Get a pipeline job, including partial stage and step state while it runs."""
    job = engine.store.snapshot(job_id)

    if not job:
        raise HTTPException(status_code=404, detail="Pipeline job not found")

    return job

@router.get("/jobs/{job_id}/logs", response_model=JobLogsResponse)
async def get_job_logs(job_id: str, offset: int = 0, engine: PipelineEngine = Depends(get_engine)):
    """Get log entries for a job, starting at offset (for polling)."""
    job = engine.store.snapshot(job_id)

    if not job:
        raise HTTPException(status_code=404, detail="Pipeline job not found")

    logs = job.logs[max(offset, 0):]
    return JobLogsResponse(
        job_id=job.id,
        status=job.status.value,
        logs=logs,
        next_offset=len(job.logs),
    )

@router.delete("/jobs/{job_id}")
async def cancel_job(job_id: str, engine: PipelineEngine = Depends(get_engine)):
    """Cancel a queued or running job."""
    if not engine.get_job(job_id):
        raise HTTPException(status_code=404, detail="Pipeline job not found")

    if not await engine.cancel_job(job_id):
        raise HTTPException(status_code=400, detail="Job has already finished and cannot be cancelled")

    return {"message": "Pipeline job cancelled successfully", "job_id": job_id}

@router.get("/status", response_model=QueueStatus)
async def get_queue_status(engine: PipelineEngine = Depends(get_engine)):
    """Get job counts by status."""
    return engine.get_queue_status()
