"""
Typed views over job rows and their payloads.
"""
from __future__ import annotations

import os
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Literal, Optional, Type, Union

from pydantic import BaseModel, Field

def job_retention_days() -> int:
    return int(os.getenv("JOB_RETENTION_DAYS", "7"))


def stuck_job_minutes() -> int:
    return int(os.getenv("STUCK_JOB_MINUTES", "30"))


class JobType(str, Enum):
    PRESS_RELEASE_SUBMISSION = "press_release_submission"
    EMAIL_NOTIFICATION = "email_notification"
    CLEANUP = "cleanup"
    MONITORING = "monitoring"


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    RETRYING = "retrying"


TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED.value, JobStatus.FAILED.value})


class UnknownJobType(ValueError):
    """Raised when a job row carries a type no handler knows about."""

    def __init__(self, job_type: str):
        super().__init__(f"Unknown job type: {job_type}")
        self.job_type = job_type


class PressReleaseJobData(BaseModel):
    submission_id: str
    package_type: Literal["basic", "premium", "enterprise"] = "basic"
    test_mode: bool = False
    demo_mode: bool = False
    skip_purchase: bool = False
    payment_intent_id: Optional[str] = None

    @property
    def dry_run(self) -> bool:
        return self.test_mode or self.demo_mode


class EmailNotificationJobData(BaseModel):
    to: str
    template: Literal["completion", "error", "payment_confirmation"]
    data: Dict[str, Any] = Field(default_factory=dict)


class CleanupJobData(BaseModel):
    older_than_days: int = Field(default_factory=job_retention_days, ge=0)


class MonitoringJobData(BaseModel):
    stuck_after_minutes: int = Field(default_factory=stuck_job_minutes, ge=1)


JobPayload = Union[PressReleaseJobData, EmailNotificationJobData, CleanupJobData, MonitoringJobData]

PAYLOAD_MODELS: Dict[str, Type[BaseModel]] = {
    JobType.PRESS_RELEASE_SUBMISSION.value: PressReleaseJobData,
    JobType.EMAIL_NOTIFICATION.value: EmailNotificationJobData,
    JobType.CLEANUP.value: CleanupJobData,
    JobType.MONITORING.value: MonitoringJobData,
}


def parse_payload(job_type: str, data: Optional[Dict[str, Any]]) -> JobPayload:
    """
    Validate a raw payload against the model for its job type.

    Raises UnknownJobType for types outside the closed set, and
    pydantic.ValidationError when the payload does not fit the model.
    """
    model = PAYLOAD_MODELS.get(job_type)
    if model is None:
        raise UnknownJobType(job_type)
    return model.model_validate(data or {})


class Job(BaseModel):
    id: str
    type: str
    status: str = JobStatus.PENDING.value
    priority: int = 0
    data: Dict[str, Any] = Field(default_factory=dict)
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    attempts: int = 0
    max_attempts: int = 3
    submission_id: Optional[str] = None
    scheduled_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Job":
        fields = {k: v for k, v in row.items() if k in cls.model_fields}
        return cls(**fields)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def attempts_left(self) -> int:
        return max(0, self.max_attempts - self.attempts)

    def payload(self) -> JobPayload:
        return parse_payload(self.type, self.data)


__all__ = [
    "job_retention_days",
    "stuck_job_minutes",
    "JobType",
    "JobStatus",
    "TERMINAL_STATUSES",
    "UnknownJobType",
    "PressReleaseJobData",
    "EmailNotificationJobData",
    "CleanupJobData",
    "MonitoringJobData",
    "JobPayload",
    "PAYLOAD_MODELS",
    "parse_payload",
    "Job",
]
