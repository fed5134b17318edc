from engine.src.models.plan import BuildPlan
from engine.src.models.step import (
    JobStatus,
    StepStatus,
    StageStatus,
    ErrorKind,
    LogLevel,
    LogEntry,
    Step,
    Stage,
    Job,
    QueueStatus,
)

__all__ = [
    "BuildPlan",
    "JobStatus",
    "StepStatus",
    "StageStatus",
    "ErrorKind",
    "LogLevel",
    "LogEntry",
    "Step",
    "Stage",
    "Job",
    "QueueStatus",
]
