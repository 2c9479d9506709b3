"""
Job queue storage re-exports.
"""
from core.db.jobs.jobs_store import (
    claim_next_job,
    delete_old_jobs,
    enqueue_job,
    get_job,
    get_queue_status,
    list_jobs,
    mark_job_completed,
    mark_job_failed,
    requeue_stuck_jobs,
)

__all__ = [
    "claim_next_job",
    "delete_old_jobs",
    "enqueue_job",
    "get_job",
    "get_queue_status",
    "list_jobs",
    "mark_job_completed",
    "mark_job_failed",
    "requeue_stuck_jobs",
]
