"""
Event bus for pipeline lifecycle and log events.

Subscribers are plain callables held in an explicit list. Publishing
is synchronous with the emitting call and best-effort: a subscriber
that raises is logged and the rest still get the event. Nothing is
replayed for subscribers that attach later; the job log is the record.
"""

import logging
import threading
from datetime import datetime
from enum import Enum
from typing import Callable, Iterable, List, Optional, Set

from pydantic import BaseModel, Field

from engine.src.models.step import Job, LogEntry, Stage, Step, utc_now

logger = logging.getLogger(__name__)

class EventType(str, Enum):
    JOB_CREATED = "job_created"
    JOB_STARTED = "job_started"
    JOB_COMPLETED = "job_completed"
    JOB_CANCELLED = "job_cancelled"
    STAGE_STARTED = "stage_started"
    STAGE_COMPLETED = "stage_completed"
    STEP_STARTED = "step_started"
    STEP_COMPLETED = "step_completed"
    LOG = "log"

class PipelineEvent(BaseModel):
    type: EventType
    job_id: str
    job_status: str
    stage: Optional[str] = None
    step: Optional[str] = None
    status: Optional[str] = None
    log: Optional[LogEntry] = None
    timestamp: datetime = Field(default_factory=utc_now)

    @classmethod
    def for_job(
        cls,
        event_type: EventType,
        job: Job,
        stage: Optional[Stage] = None,
        step: Optional[Step] = None,
        log: Optional[LogEntry] = None,
    ) -> "PipelineEvent":
        record = step or stage or job
        return cls(
            type=event_type,
            job_id=job.id,
            job_status=job.status.value,
            stage=stage.name if stage else (log.stage if log else None),
            step=step.name if step else (log.step if log else None),
            status=record.status.value,
            log=log,
        )

Callback = Callable[[PipelineEvent], None]

class SubscriberLimitError(Exception):
    """Raised when the bus already holds its maximum number of subscribers."""
    pass

class Subscription:
    def __init__(self, callback: Callback, event_types: Optional[Set[EventType]] = None):
        self.callback = callback
        self.event_types = event_types

    def wants(self, event: PipelineEvent) -> bool:
        return self.event_types is None or event.type in self.event_types

    def __repr__(self):
        types = sorted(t.value for t in self.event_types) if self.event_types else "all"
        return f"<Subscription {getattr(self.callback, '__name__', self.callback)} {types}>"

class EventBus:
    def __init__(self, max_subscribers: int = 100):
        self.max_subscribers = max_subscribers
        self._subscriptions: List[Subscription] = []
        self._lock = threading.Lock()

    def subscribe(
        self,
        callback: Callback,
        event_types: Optional[Iterable[EventType]] = None,
    ) -> Subscription:
        subscription = Subscription(callback, set(event_types) if event_types else None)

        with self._lock:
            if len(self._subscriptions) >= self.max_subscribers:
                raise SubscriberLimitError(
                    f"Event bus already has {self.max_subscribers} subscribers"
                )
            self._subscriptions.append(subscription)

        logger.debug(f"Added subscriber {subscription!r}")
        return subscription

    def unsubscribe(self, subscription: Subscription) -> bool:
        with self._lock:
            if subscription not in self._subscriptions:
                return False
            self._subscriptions.remove(subscription)
        return True

    @property
    def subscribers(self) -> List[Subscription]:
        with self._lock:
            return list(self._subscriptions)

    def clear(self):
        with self._lock:
            self._subscriptions.clear()

    def publish(self, event: PipelineEvent):
        for subscription in self.subscribers:
            if not subscription.wants(event):
                continue
            try:
                subscription.callback(event)
            except Exception:
                logger.exception(
                    f"Subscriber {subscription!r} failed on {event.type.value} "
                    f"for job {event.job_id}"
                )
