"""
Stage runner - executes one job's stages and steps on the host.
"""

import asyncio
import logging
from typing import Optional

from engine.src.config import Settings, get_settings
from engine.src.models.step import (
    ErrorKind,
    Job,
    JobStatus,
    LogLevel,
    Stage,
    Step,
    StepStatus,
)
from engine.src.services import state
from engine.src.services.events import EventType
from engine.src.services.job_store import JobStore
from engine.src.services.process_runner import (
    SpawnError,
    StepCancelledError,
    StepExecutionError,
    StepTimeoutError,
    run_command,
)
from engine.src.services.status_reporter import StatusReporter

logger = logging.getLogger(__name__)

_ERROR_KINDS = {
    StepTimeoutError: ErrorKind.TIMEOUT,
    StepCancelledError: ErrorKind.CANCELLED,
    SpawnError: ErrorKind.SPAWN,
}

class StageRunner:
    def __init__(
        self,
        store: JobStore,
        reporter: StatusReporter,
        settings: Optional[Settings] = None,
    ):
        self.store = store
        self.reporter = reporter
        self.settings = settings or get_settings()

    async def execute_pipeline(self, job: Job, cancel_event: asyncio.Event) -> JobStatus:
        """
        Run every stage of an admitted job in order and record the outcome.
        Stops at the first failed stage or once the job is cancelled.
        """
        logger.info(f"Starting pipeline job {job.id} with {len(job.stages)} stages")
        self.reporter.log(job, LogLevel.INFO, f"Pipeline started for {job.repository_id or job.work_dir}")
        self.reporter.emit(EventType.JOB_STARTED, job)

        all_succeeded = True
        failed_stage = None

        try:
            for stage in job.stages:
                if not all_succeeded or cancel_event.is_set():
                    state.skip_stage(stage)
                    continue

                if not await self.execute_stage(job, stage, cancel_event):
                    all_succeeded = False
                    failed_stage = stage
        except Exception as e:
            logger.exception(f"Pipeline job {job.id} failed unexpectedly")
            all_succeeded = False
            self.reporter.log(job, LogLevel.ERROR, f"Pipeline failed: {e}")
            self._abandon(job, str(e))

        if cancel_event.is_set():
            # The cancellation controller already decided the status
            self.store.transition(job, JobStatus.CANCELLED)
            self.reporter.log(job, LogLevel.WARN, "Pipeline stopped after cancellation")
        elif all_succeeded:
            if self.store.transition(job, JobStatus.SUCCESS):
                self.reporter.log(job, LogLevel.INFO, "Pipeline completed successfully")
        elif self.store.transition(job, JobStatus.FAILED):
            where = f" at stage {failed_stage.name}" if failed_stage else ""
            self.reporter.log(job, LogLevel.ERROR, f"Pipeline failed{where}")

        self.reporter.emit(EventType.JOB_COMPLETED, job)
        logger.info(f"Pipeline job {job.id} finished with status: {job.status.value}")
        return job.status

    async def execute_stage(self, job: Job, stage: Stage, cancel_event: asyncio.Event) -> bool:
        """Run a stage's steps in order. Returns True if every step succeeded."""
        state.start(stage)
        self.reporter.log(job, LogLevel.INFO, f"Stage {stage.name} started", stage=stage.name)
        self.reporter.emit(EventType.STAGE_STARTED, job, stage)

        for step in stage.steps:
            if cancel_event.is_set():
                break
            if not await self.execute_step(job, stage, step, cancel_event):
                break  # Stop on first failure

        state.skip_remaining(stage)
        state.settle_stage(stage)

        if stage.status == StepStatus.SUCCESS:
            self.reporter.log(job, LogLevel.INFO, f"Stage {stage.name} completed", stage=stage.name)
        elif stage.status == StepStatus.FAILED:
            self.reporter.log(job, LogLevel.ERROR, f"Stage {stage.name} failed", stage=stage.name)
        else:
            self.reporter.log(job, LogLevel.WARN, f"Stage {stage.name} skipped", stage=stage.name)

        self.reporter.emit(EventType.STAGE_COMPLETED, job, stage)
        return stage.status == StepStatus.SUCCESS

    async def execute_step(
        self,
        job: Job,
        stage: Stage,
        step: Step,
        cancel_event: asyncio.Event,
    ) -> bool:
        """
        Execute a single step.
        Returns True if succeeded, False if failed.
        """
        state.start(step)
        self.reporter.log(job, LogLevel.INFO, f"Step {step.name} started", stage.name, step.name)
        self.reporter.emit(EventType.STEP_STARTED, job, stage, step)

        def on_output(stream: str, text: str):
            message = text.strip()
            if message:
                level = LogLevel.INFO if stream == "stdout" else LogLevel.WARN
                self.reporter.log(job, level, message, stage.name, step.name)

        try:
            result = await run_command(
                step.command,
                cwd=step.working_directory or job.work_dir,
                timeout=step.timeout,
                on_output=on_output,
                cancel_event=cancel_event,
                settings=self.settings,
            )
        except StepExecutionError as e:
            step.output = e.stdout or None
            step.error_output = e.stderr or None
            state.fail_step(step, str(e), _ERROR_KINDS.get(type(e), ErrorKind.INTERNAL))
            self.reporter.log(job, LogLevel.ERROR, f"Step {step.name} failed: {e}", stage.name, step.name)
        except Exception as e:
            logger.exception(f"Step {step.name} of job {job.id} failed with exception")
            state.fail_step(step, str(e) or type(e).__name__, ErrorKind.INTERNAL)
            self.reporter.log(job, LogLevel.ERROR, f"Step {step.name} failed: {step.error}", stage.name, step.name)
        else:
            step.output = result.stdout
            step.error_output = result.stderr
            step.exit_code = result.exit_code
            late = " after cancellation" if cancel_event.is_set() else ""

            if result.succeeded:
                state.succeed(step)
                self.reporter.log(
                    job, LogLevel.INFO,
                    f"Step {step.name} completed successfully{late}",
                    stage.name, step.name,
                )
            else:
                state.fail_step(
                    step,
                    result.stderr or f"Command exited with code {result.exit_code}",
                    ErrorKind.EXIT_CODE,
                    exit_code=result.exit_code,
                )
                self.reporter.log(
                    job, LogLevel.ERROR,
                    f"Step {step.name} failed with exit code {result.exit_code}{late}",
                    stage.name, step.name,
                )

        self.reporter.emit(EventType.STEP_COMPLETED, job, stage, step)
        return step.status == StepStatus.SUCCESS

    def _abandon(self, job: Job, error: str):
        """Close out whatever an unexpected fault left half-done."""
        for stage in job.stages:
            for step in stage.steps:
                if step.status == StepStatus.RUNNING:
                    state.fail_step(step, error, ErrorKind.INTERNAL)
            if stage.status == StepStatus.RUNNING:
                state.skip_remaining(stage)
                state.settle_stage(stage)
            else:
                state.skip_stage(stage)
