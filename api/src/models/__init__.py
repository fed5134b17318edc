from api.src.models.run import (
    JobCreateRequest,
    JobCreatedResponse,
    JobSummary,
    JobListResponse,
    JobLogsResponse,
    StageSummary,
)

__all__ = [
    "JobCreateRequest",
    "JobCreatedResponse",
    "JobSummary",
    "JobListResponse",
    "JobLogsResponse",
    "StageSummary",
]
