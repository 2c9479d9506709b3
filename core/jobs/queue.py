"""
Job queue client.

Thin typed layer over core.db.jobs.jobs_store. Store functions are looked up
through the module at call time so tests can swap them with monkeypatch.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel

from core.db.jobs import jobs_store
from core.jobs.models import (
    CleanupJobData,
    EmailNotificationJobData,
    Job,
    JobType,
    MonitoringJobData,
    PressReleaseJobData,
    job_retention_days,
    stuck_job_minutes,
)

log = logging.getLogger("core.jobs")

PRESS_RELEASE_PRIORITY = 10
EMAIL_PRIORITY = 5
MAINTENANCE_PRIORITY = 1


class JobNotFound(LookupError):
    pass


class JobNotRetryable(ValueError):
    pass


def add_job(
    job_type: Union[JobType, str],
    data: Union[BaseModel, Dict[str, Any], None] = None,
    *,
    priority: int = 0,
    max_attempts: int = 3,
    scheduled_at: Optional[datetime] = None,
) -> Job:
    """Enqueue a job. Unknown types are stored as-is and rejected at dispatch."""
    type_value = job_type.value if isinstance(job_type, JobType) else str(job_type)
    if isinstance(data, BaseModel):
        payload = data.model_dump(mode="json")
    else:
        payload = dict(data or {})

    row = jobs_store.enqueue_job(
        type_value,
        payload,
        priority=priority,
        max_attempts=max_attempts,
        scheduled_at=scheduled_at,
    )
    job = Job.from_row(row)
    log.info(
        "Job enqueued",
        extra={"job_id": job.id, "job_type": job.type, "priority": job.priority},
    )
    return job


def add_press_release_job(
    submission_id: str,
    package_type: str = "basic",
    *,
    test_mode: bool = False,
    demo_mode: bool = False,
    skip_purchase: bool = False,
    payment_intent_id: Optional[str] = None,
    priority: int = PRESS_RELEASE_PRIORITY,
) -> Job:
    data = PressReleaseJobData(
        submission_id=submission_id,
        package_type=package_type,
        test_mode=test_mode,
        demo_mode=demo_mode,
        skip_purchase=skip_purchase,
        payment_intent_id=payment_intent_id,
    )
    return add_job(JobType.PRESS_RELEASE_SUBMISSION, data, priority=priority)


def add_email_job(
    to: str,
    template: str,
    data: Optional[Dict[str, Any]] = None,
    *,
    priority: int = EMAIL_PRIORITY,
) -> Job:
    payload = EmailNotificationJobData(to=to, template=template, data=data or {})
    return add_job(JobType.EMAIL_NOTIFICATION, payload, priority=priority)


def add_cleanup_job(older_than_days: Optional[int] = None) -> Job:
    payload = CleanupJobData() if older_than_days is None else CleanupJobData(older_than_days=older_than_days)
    return add_job(JobType.CLEANUP, payload, priority=MAINTENANCE_PRIORITY, max_attempts=1)


def add_monitoring_job(stuck_after_minutes: Optional[int] = None) -> Job:
    if stuck_after_minutes is None:
        payload = MonitoringJobData()
    else:
        payload = MonitoringJobData(stuck_after_minutes=stuck_after_minutes)
    return add_job(JobType.MONITORING, payload, priority=MAINTENANCE_PRIORITY, max_attempts=1)


def next_job() -> Optional[Job]:
    """Claim the next eligible job, or None when the queue is idle."""
    row = jobs_store.claim_next_job()
    if not row:
        return None
    job = Job.from_row(row)
    log.info(
        "Job claimed",
        extra={"job_id": job.id, "job_type": job.type, "attempt": job.attempts},
    )
    return job


def get_job(job_id: str) -> Optional[Job]:
    row = jobs_store.get_job(job_id)
    return Job.from_row(row) if row else None


def list_jobs(
    limit: int = 20,
    status: Optional[str] = None,
    job_type: Optional[str] = None,
    submission_id: Optional[str] = None,
) -> List[Dict]:
    return jobs_store.list_jobs(limit=limit, status=status, job_type=job_type, submission_id=submission_id)


def complete_job(job_id: str, result: Optional[Dict[str, Any]] = None) -> bool:
    changed = jobs_store.mark_job_completed(job_id, result)
    if not changed:
        log.warning("Complete ignored; job not processing", extra={"job_id": job_id})
    return changed


def fail_job(job_id: str, error: str, should_retry: bool = True) -> Optional[str]:
    """Record a failure. Returns 'pending' (retry scheduled), 'failed', or None."""
    status = jobs_store.mark_job_failed(job_id, error, should_retry)
    if status is None:
        log.warning("Fail ignored; job not processing", extra={"job_id": job_id})
    else:
        log.info(
            "Job failed",
            extra={"job_id": job_id, "status": status, "should_retry": should_retry},
        )
    return status


def queue_status() -> List[Dict]:
    return jobs_store.get_queue_status()


def queue_summary(rows: Optional[List[Dict]] = None) -> Dict[str, int]:
    """Fold (status, type) rows into per-status totals."""
    if rows is None:
        rows = queue_status()
    summary = {"pending": 0, "processing": 0, "completed": 0, "failed": 0, "total": 0}
    for row in rows:
        count = int(row.get("count") or 0)
        status = row.get("status")
        summary[status] = summary.get(status, 0) + count
        summary["total"] += count
    return summary


def cleanup_old_jobs(older_than_days: Optional[int] = None) -> int:
    """Retention sweep. Store errors are logged and reported as zero deletions."""
    if older_than_days is None:
        older_than_days = job_retention_days()
    try:
        deleted = jobs_store.delete_old_jobs(older_than_days)
    except Exception:
        log.exception("Job cleanup failed", extra={"older_than_days": older_than_days})
        return 0
    log.info("Old jobs cleaned up", extra={"deleted": deleted, "older_than_days": older_than_days})
    return deleted


def requeue_stuck_jobs(older_than_minutes: Optional[int] = None) -> List[str]:
    if older_than_minutes is None:
        older_than_minutes = stuck_job_minutes()
    ids = jobs_store.requeue_stuck_jobs(older_than_minutes)
    if ids:
        log.warning(
            "Requeued stuck jobs",
            extra={"count": len(ids), "older_than_minutes": older_than_minutes},
        )
    return ids


def retry_job(job_id: str) -> Job:
    """
    Enqueue a fresh job carrying a terminal job's type and payload.

    The terminal job itself is left untouched.
    """
    original = get_job(job_id)
    if original is None:
        raise JobNotFound(job_id)
    if not original.is_terminal:
        raise JobNotRetryable(f"Job {job_id} is {original.status}; only completed or failed jobs can be retried")
    fresh = add_job(
        original.type,
        original.data,
        priority=original.priority,
        max_attempts=original.max_attempts,
    )
    log.info("Job retried", extra={"job_id": fresh.id, "retry_of": original.id})
    return fresh


__all__ = [
    "PRESS_RELEASE_PRIORITY",
    "EMAIL_PRIORITY",
    "MAINTENANCE_PRIORITY",
    "JobNotFound",
    "JobNotRetryable",
    "add_job",
    "add_press_release_job",
    "add_email_job",
    "add_cleanup_job",
    "add_monitoring_job",
    "next_job",
    "get_job",
    "list_jobs",
    "complete_job",
    "fail_job",
    "queue_status",
    "queue_summary",
    "cleanup_old_jobs",
    "requeue_stuck_jobs",
    "retry_job",
]
