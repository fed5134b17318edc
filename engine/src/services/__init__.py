from engine.src.services.cancellation import CancellationController
from engine.src.services.events import (
    EventBus,
    EventType,
    PipelineEvent,
    Subscription,
    SubscriberLimitError,
)
from engine.src.services.job_store import JobStore
from engine.src.services.process_runner import (
    ProcessResult,
    SpawnError,
    StepCancelledError,
    StepExecutionError,
    StepTimeoutError,
    run_command,
)
from engine.src.services.scheduler import Scheduler
from engine.src.services.stage_plan import STAGE_TABLE, StageSpec, build_stages
from engine.src.services.stage_runner import StageRunner
from engine.src.services.state import InvalidTransitionError
from engine.src.services.status_reporter import StatusReporter

__all__ = [
    "CancellationController",
    "EventBus",
    "EventType",
    "PipelineEvent",
    "Subscription",
    "SubscriberLimitError",
    "JobStore",
    "ProcessResult",
    "SpawnError",
    "StepCancelledError",
    "StepExecutionError",
    "StepTimeoutError",
    "run_command",
    "Scheduler",
    "STAGE_TABLE",
    "StageSpec",
    "build_stages",
    "StageRunner",
    "InvalidTransitionError",
    "StatusReporter",
]
