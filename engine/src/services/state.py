"""
Transition rules for steps, stages and jobs.

Steps and stages only ever move forward:

    pending -> running -> success | failed | skipped
    pending -> skipped

Jobs move queued -> running -> success | failed | cancelled, or
queued -> cancelled. Anything else raises InvalidTransitionError.
"""

from typing import Optional, Union

from engine.src.models.step import (
    ErrorKind,
    Job,
    JobStatus,
    Stage,
    Step,
    StepStatus,
    utc_now,
)

class InvalidTransitionError(Exception):
    """Raised when a record is moved to a status it cannot reach."""
    pass

_STEP_TRANSITIONS = {
    StepStatus.PENDING: {StepStatus.RUNNING, StepStatus.SKIPPED},
    StepStatus.RUNNING: {StepStatus.SUCCESS, StepStatus.FAILED, StepStatus.SKIPPED},
    StepStatus.SUCCESS: set(),
    StepStatus.FAILED: set(),
    StepStatus.SKIPPED: set(),
}

_JOB_TRANSITIONS = {
    JobStatus.QUEUED: {JobStatus.RUNNING, JobStatus.CANCELLED},
    JobStatus.RUNNING: {JobStatus.SUCCESS, JobStatus.FAILED, JobStatus.CANCELLED},
    JobStatus.SUCCESS: set(),
    JobStatus.FAILED: set(),
    JobStatus.CANCELLED: set(),
}

def can_transition(current, target) -> bool:
    table = _JOB_TRANSITIONS if isinstance(current, JobStatus) else _STEP_TRANSITIONS
    return target in table[current]

def _check(record: Union[Job, Stage, Step], target) -> None:
    if not can_transition(record.status, target):
        kind = type(record).__name__.lower()
        raise InvalidTransitionError(
            f"{kind} '{getattr(record, 'name', getattr(record, 'id', '?'))}' "
            f"cannot move from {record.status.value} to {target.value}"
        )

def start(record: Union[Stage, Step]) -> None:
    _check(record, StepStatus.RUNNING)
    record.status = StepStatus.RUNNING
    record.started_at = utc_now()

def succeed(record: Union[Stage, Step]) -> None:
    _check(record, StepStatus.SUCCESS)
    record.status = StepStatus.SUCCESS
    record.finished_at = utc_now()

def fail_stage(stage: Stage) -> None:
    _check(stage, StepStatus.FAILED)
    stage.status = StepStatus.FAILED
    stage.finished_at = utc_now()

def fail_step(
    step: Step,
    error: str,
    kind: ErrorKind,
    exit_code: Optional[int] = None,
) -> None:
    _check(step, StepStatus.FAILED)
    step.status = StepStatus.FAILED
    step.error = error
    step.error_kind = kind
    if exit_code is not None:
        step.exit_code = exit_code
    step.finished_at = utc_now()

def skip(record: Union[Stage, Step]) -> None:
    _check(record, StepStatus.SKIPPED)
    record.status = StepStatus.SKIPPED
    if record.started_at is not None:
        record.finished_at = utc_now()

def skip_remaining(stage: Stage) -> None:
    """Skip every step of a stage that has not started."""
    for step in stage.steps:
        if step.status == StepStatus.PENDING:
            skip(step)

def skip_stage(stage: Stage) -> None:
    """Skip a stage that was never reached, along with all of its steps."""
    skip_remaining(stage)
    if stage.status == StepStatus.PENDING:
        skip(stage)

def settle_stage(stage: Stage) -> None:
    """Derive a running stage's terminal status from its steps."""
    if any(step.status == StepStatus.FAILED for step in stage.steps):
        fail_stage(stage)
    elif all(step.status == StepStatus.SUCCESS for step in stage.steps):
        succeed(stage)
    else:
        skip(stage)

def move_job(job: Job, target: JobStatus) -> None:
    _check(job, target)
    job.status = target
    now = utc_now()
    if target == JobStatus.RUNNING:
        job.started_at = now
    else:
        job.finished_at = now
