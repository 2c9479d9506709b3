"""
Job processor: claim one job, dispatch by type, settle it.

Handlers return a JobOutcome instead of touching the job row; settling and
the follow-up on the linked submission happen here in one place.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

from pydantic import ValidationError

from app import notifications
from core.db.submissions import submissions_store
from core.jobs import queue
from core.jobs.models import Job, JobType, PressReleaseJobData, UnknownJobType
from worker.audit import StepRecorder
from worker.config import WorkerSettings, env_bool
from worker.einpresswire_engine import run_submission_workflow
from worker.errors import ConfigurationError
from worker.forms import PressRelease
from worker.results import WorkflowOutcome

log = logging.getLogger("worker.processor")

# Swappable in tests.
load_settings: Callable[[], WorkerSettings] = WorkerSettings.from_env
run_workflow = run_submission_workflow


@dataclass
class JobOutcome:
    success: bool
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    should_retry: bool = True
    submission_id: Optional[str] = None
    previous_status: Optional[str] = None
    manual_approval: bool = False
    dry_run: bool = False
    workflow: Optional[WorkflowOutcome] = None
    submission: Dict[str, Any] = field(default_factory=dict)


Handler = Callable[[Job], Awaitable[JobOutcome]]


def _processing_log_sink(submission_id: str):
    def sink(step: str, status: str, details: Dict[str, Any]) -> None:
        submissions_store.append_processing_log(submission_id, step, status, details)

    return sink


# -------- Handlers --------
async def handle_press_release(job: Job) -> JobOutcome:
    payload: PressReleaseJobData = job.payload()
    submission = submissions_store.get_submission(payload.submission_id)
    if submission is None:
        return JobOutcome(
            success=False,
            error=f"Submission {payload.submission_id} not found",
            should_retry=False,
        )

    base = {
        "submission_id": submission["id"],
        "previous_status": submission.get("status"),
        "submission": submission,
    }
    submissions_store.set_submission_status(submission["id"], "processing")

    # A package bought by an earlier attempt must not be bought again.
    purchased_order = submission.get("external_order_id")
    if purchased_order and not payload.skip_purchase:
        payload = payload.model_copy(update={"skip_purchase": True})

    try:
        settings = load_settings()
    except ConfigurationError as exc:
        return JobOutcome(success=False, error=str(exc), should_retry=False, **base)

    recorder = StepRecorder(submission["id"], sink=_processing_log_sink(submission["id"]))
    recorder.record(
        "job",
        "started",
        job_id=job.id,
        attempt=job.attempts,
        max_attempts=job.max_attempts,
        package_type=payload.package_type,
        dry_run=payload.dry_run,
        skip_purchase=payload.skip_purchase,
        external_order_id=purchased_order,
    )

    outcome = await run_workflow(PressRelease.from_submission(submission), payload, settings, recorder)
    if outcome.success:
        return JobOutcome(
            success=True,
            result=outcome.to_job_result(),
            dry_run=outcome.dry_run,
            workflow=outcome,
            **base,
        )
    if outcome.manual_approval_required:
        return JobOutcome(
            success=False,
            error=outcome.error,
            should_retry=False,
            manual_approval=True,
            result=outcome.to_job_result(),
            workflow=outcome,
            **base,
        )
    return JobOutcome(
        success=False,
        error=outcome.error,
        should_retry=outcome.retryable,
        result=outcome.to_job_result(),
        workflow=outcome,
        **base,
    )


async def handle_email(job: Job) -> JobOutcome:
    payload = job.payload()
    try:
        # smtplib blocks; keep it off the event loop the API shares.
        await asyncio.to_thread(notifications.send_notification, payload.to, payload.template, payload.data)
    except Exception as exc:
        log.exception("Failed to send email", extra={"job_id": job.id, "to": payload.to})
        return JobOutcome(success=False, error=f"Email send failed: {exc}", should_retry=True)
    return JobOutcome(success=True, result={"sent_to": payload.to, "template": payload.template})


async def handle_cleanup(job: Job) -> JobOutcome:
    payload = job.payload()
    deleted = queue.cleanup_old_jobs(payload.older_than_days)
    return JobOutcome(success=True, result={"deleted": deleted, "older_than_days": payload.older_than_days})


async def handle_monitoring(job: Job) -> JobOutcome:
    payload = job.payload()
    requeued = queue.requeue_stuck_jobs(payload.stuck_after_minutes)
    rows = queue.queue_status()
    counts = [{"status": r.get("status"), "type": r.get("type"), "count": int(r.get("count") or 0)} for r in rows]
    return JobOutcome(
        success=True,
        result={
            "requeued_job_ids": requeued,
            "summary": queue.queue_summary(rows),
            "counts": counts,
        },
    )


HANDLERS: Dict[str, Handler] = {
    JobType.PRESS_RELEASE_SUBMISSION.value: handle_press_release,
    JobType.EMAIL_NOTIFICATION.value: handle_email,
    JobType.CLEANUP.value: handle_cleanup,
    JobType.MONITORING.value: handle_monitoring,
}


# -------- Dispatch --------
async def run_handler(job: Job) -> JobOutcome:
    """Dispatch a claimed job. Never raises; every failure becomes a JobOutcome."""
    handler = HANDLERS.get(job.type)
    if handler is None:
        return JobOutcome(success=False, error=str(UnknownJobType(job.type)), should_retry=False)
    try:
        return await handler(job)
    except (UnknownJobType, ValidationError) as exc:
        return JobOutcome(success=False, error=f"Invalid job payload: {exc}", should_retry=False)
    except Exception as exc:
        log.exception("Job handler crashed", extra={"job_id": job.id, "job_type": job.type})
        return JobOutcome(
            success=False,
            error=f"Unhandled error: {exc}",
            should_retry=True,
            submission_id=job.submission_id or (job.data or {}).get("submission_id"),
        )


def settle(job: Job, outcome: JobOutcome) -> Optional[str]:
    """Write the outcome to the job row. Returns the job's new status, or None on a no-op."""
    if outcome.success:
        return "completed" if queue.complete_job(job.id, outcome.result) else None
    return queue.fail_job(job.id, outcome.error or "Unknown error", should_retry=outcome.should_retry)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _notify(template: str, submission: Dict[str, Any], data: Dict[str, Any]) -> None:
    to = (submission.get("contact_email") or "").strip()
    if not to or not env_bool("NOTIFY_SUBMITTERS", True):
        return
    payload = {"submission_id": submission.get("id"), "title": submission.get("title")}
    payload.update(data)
    queue.add_email_job(to, template, payload)


def reflect_on_submission(job: Job, outcome: JobOutcome, job_status: Optional[str]) -> None:
    """Fold a settled press-release job into its submission row."""
    submission_id = outcome.submission_id
    if job.type != JobType.PRESS_RELEASE_SUBMISSION.value or not submission_id or job_status is None:
        return

    submission = outcome.submission or submissions_store.get_submission(submission_id) or {}
    workflow = outcome.workflow
    screenshots: List[str] = workflow.screenshots if workflow is not None else []

    if outcome.success and outcome.dry_run:
        submissions_store.set_submission_status(submission_id, outcome.previous_status or "paid")
        submissions_store.append_processing_log(
            submission_id, "dry_run", "completed", {"job_id": job.id, "screenshots": len(screenshots)}
        )
        return

    if outcome.success:
        fields: Dict[str, Any] = {
            "submitted_at": _now(),
            "completed_at": _now(),
        }
        if workflow is not None and workflow.submission is not None:
            fields["confirmation_url"] = workflow.submission.confirmation_url
            fields["external_submission_id"] = workflow.submission.submission_id
        if workflow is not None and workflow.purchase is not None and workflow.purchase.order_id:
            fields["external_order_id"] = workflow.purchase.order_id
        if screenshots:
            fields["screenshots"] = screenshots
        submissions_store.set_submission_status(submission_id, "completed", **fields)
        _notify(
            "completion",
            submission,
            {
                "confirmation_url": fields.get("confirmation_url"),
                "external_submission_id": fields.get("external_submission_id"),
            },
        )
        return

    submissions_store.append_error_log(submission_id, outcome.error or "Unknown error")
    extra_fields: Dict[str, Any] = {"screenshots": screenshots} if screenshots else {}
    if workflow is not None and workflow.purchase is not None and workflow.purchase.success:
        # Kept on every failure path so later attempts skip the purchase.
        extra_fields["external_order_id"] = workflow.purchase.order_id

    if outcome.manual_approval:
        submissions_store.set_submission_status(submission_id, "awaiting_approval", **extra_fields)
        return

    if job_status == "pending":
        if extra_fields:
            submissions_store.update_submission(submission_id, **extra_fields)
        submissions_store.append_processing_log(
            submission_id,
            "retry_scheduled",
            "pending",
            {"job_id": job.id, "attempt": job.attempts, "max_attempts": job.max_attempts, "error": outcome.error},
        )
        return

    submissions_store.set_submission_status(submission_id, "failed", **extra_fields)
    _notify("error", submission, {"error": outcome.error})


async def process_next_job() -> Dict[str, Any]:
    """One processor tick. Returns a summary dict; `processed` is False when idle."""
    job = queue.next_job()
    if job is None:
        return {"success": True, "processed": False, "message": "No jobs to process"}

    started = time.monotonic()
    outcome = await run_handler(job)
    status = settle(job, outcome)

    try:
        reflect_on_submission(job, outcome, status)
    except Exception:
        log.exception("Failed to update submission", extra={"job_id": job.id, "submission_id": outcome.submission_id})

    log.info(
        "Job processed",
        extra={
            "job_id": job.id,
            "job_type": job.type,
            "status": status,
            "duration_ms": int((time.monotonic() - started) * 1000),
            "error": outcome.error,
        },
    )
    return {
        "success": outcome.success,
        "processed": True,
        "job_id": job.id,
        "job_type": job.type,
        "status": status,
        "error": outcome.error,
    }


__all__ = [
    "JobOutcome",
    "HANDLERS",
    "handle_press_release",
    "handle_email",
    "handle_cleanup",
    "handle_monitoring",
    "run_handler",
    "settle",
    "reflect_on_submission",
    "process_next_job",
]
