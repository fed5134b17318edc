"""
Report job, stage and step progress to the job log and the event bus.
"""

import logging
from typing import Optional

from engine.src.models.step import Job, LogEntry, LogLevel, Stage, Step
from engine.src.services.events import EventBus, EventType, PipelineEvent
from engine.src.services.job_store import JobStore

logger = logging.getLogger(__name__)

class StatusReporter:
    def __init__(self, store: JobStore, bus: EventBus):
        self.store = store
        self.bus = bus

    def log(
        self,
        job: Job,
        level: LogLevel,
        message: str,
        stage: Optional[str] = None,
        step: Optional[str] = None,
    ) -> LogEntry:
        """Append an entry to the job log and broadcast it."""
        entry = LogEntry(level=level, stage=stage, step=step, message=message)
        self.store.append_log(job, entry)
        self.bus.publish(PipelineEvent.for_job(EventType.LOG, job, log=entry))
        return entry

    def emit(
        self,
        event_type: EventType,
        job: Job,
        stage: Optional[Stage] = None,
        step: Optional[Step] = None,
    ):
        self.bus.publish(PipelineEvent.for_job(event_type, job, stage=stage, step=step))
        logger.debug(f"{event_type.value} for job {job.id}")
