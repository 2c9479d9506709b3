"""
Job queue client and payload models.
"""
from core.jobs.models import (
    Job,
    JobStatus,
    JobType,
    UnknownJobType,
    parse_payload,
)

__all__ = [
    "Job",
    "JobStatus",
    "JobType",
    "UnknownJobType",
    "parse_payload",
]
