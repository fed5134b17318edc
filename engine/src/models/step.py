"""
Job, stage and step execution models.
"""

from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime, timezone
from enum import Enum
import uuid

from engine.src.models.plan import BuildPlan

class JobStatus(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"

class StepStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"

# Stages share the step lifecycle
StageStatus = StepStatus

class ErrorKind(str, Enum):
    EXIT_CODE = "exit_code"
    TIMEOUT = "timeout"
    SPAWN = "spawn"
    CANCELLED = "cancelled"
    INTERNAL = "internal"

class LogLevel(str, Enum):
    INFO = "info"
    WARN = "warn"
    ERROR = "error"

JOB_TERMINAL = {JobStatus.SUCCESS, JobStatus.FAILED, JobStatus.CANCELLED}
STEP_TERMINAL = {StepStatus.SUCCESS, StepStatus.FAILED, StepStatus.SKIPPED}

def new_job_id() -> str:
    return f"job_{uuid.uuid4().hex[:16]}"

def utc_now() -> datetime:
    return datetime.now(timezone.utc)

class LogEntry(BaseModel):
    timestamp: datetime = Field(default_factory=utc_now)
    level: LogLevel
    stage: Optional[str] = None
    step: Optional[str] = None
    message: str

class Step(BaseModel):
    name: str
    command: str
    working_directory: Optional[str] = None
    timeout: float
    status: StepStatus = StepStatus.PENDING
    output: Optional[str] = None
    error_output: Optional[str] = None
    exit_code: Optional[int] = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

class Stage(BaseModel):
    name: str
    steps: List[Step]
    status: StageStatus = StageStatus.PENDING
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

class Job(BaseModel):
    id: str = Field(default_factory=new_job_id)
    repository_id: Optional[str] = None
    plan: BuildPlan
    work_dir: str
    stages: List[Stage] = []
    status: JobStatus = JobStatus.QUEUED
    created_at: datetime = Field(default_factory=utc_now)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    logs: List[LogEntry] = []

    @property
    def is_terminal(self) -> bool:
        return self.status in JOB_TERMINAL

    def failed_step(self) -> Optional[tuple]:
        """Return (stage, step) of the first failed step, if any."""
        for stage in self.stages:
            for step in stage.steps:
                if step.status == StepStatus.FAILED:
                    return stage, step
        return None

class QueueStatus(BaseModel):
    total: int = 0
    queued: int = 0
    running: int = 0
    succeeded: int = 0
    failed: int = 0
    cancelled: int = 0
