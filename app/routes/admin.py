import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from app.security import require_admin
from core.db.submissions import submissions_store
from core.jobs import queue
from core.jobs.models import JobType

router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[Depends(require_admin)])
log = logging.getLogger("app.admin")


class JobAction(BaseModel):
    action: Literal["retry_job", "retry_all_failed", "requeue_stuck"]
    job_id: Optional[str] = None
    older_than_minutes: Optional[int] = None


class ManualPaymentAction(BaseModel):
    action: Literal["approve_payment"]
    submission_id: str


@router.get("/jobs")
def list_jobs(limit: int = 20, status: Optional[str] = None, type: Optional[str] = None):
    limit = max(1, min(limit, 200))
    jobs = queue.list_jobs(limit=limit, status=status, job_type=type)
    return {"jobs": jobs, "count": len(jobs)}


@router.get("/jobs/{job_id}")
def get_job(job_id: str):
    job = queue.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return job.model_dump(mode="json")


@router.post("/jobs")
def job_action(body: JobAction):
    if body.action == "retry_job":
        if not body.job_id:
            raise HTTPException(status_code=400, detail="job_id is required")
        try:
            fresh = queue.retry_job(body.job_id)
        except queue.JobNotFound:
            raise HTTPException(status_code=404, detail="Job not found")
        except queue.JobNotRetryable as exc:
            raise HTTPException(status_code=409, detail=str(exc))
        return {"message": "Job queued for retry", "job_id": fresh.id, "retry_of": body.job_id}

    if body.action == "retry_all_failed":
        failed = queue.list_jobs(limit=500, status="failed", job_type=JobType.PRESS_RELEASE_SUBMISSION.value)
        seen = set()
        retried = []
        for row in failed:
            submission_id = row.get("submission_id") or (row.get("data") or {}).get("submission_id")
            if not submission_id or submission_id in seen:
                continue
            seen.add(submission_id)
            submission = submissions_store.get_submission(submission_id)
            if not submission or submission.get("status") != "failed":
                continue
            retried.append(queue.retry_job(row["id"]).id)
        log.info("Retried failed submissions", extra={"count": len(retried)})
        return {"message": f"Queued {len(retried)} jobs for retry", "job_ids": retried}

    if body.action == "requeue_stuck":
        if body.older_than_minutes is not None:
            ids = queue.requeue_stuck_jobs(body.older_than_minutes)
        else:
            ids = queue.requeue_stuck_jobs()
        return {"message": f"Requeued {len(ids)} stuck jobs", "job_ids": ids}

    raise HTTPException(status_code=400, detail="Invalid action")


@router.get("/submissions/{submission_id}")
def get_submission(submission_id: str, include_screenshots: bool = False):
    submission = submissions_store.get_submission(submission_id)
    if submission is None:
        raise HTTPException(status_code=404, detail="Submission not found")
    screenshots = submission.get("screenshots") or []
    if not include_screenshots:
        submission["screenshots"] = []
    submission["screenshot_count"] = len(screenshots)
    submission["jobs"] = queue.list_jobs(limit=50, submission_id=submission_id)
    return submission


@router.post("/manual-payment")
def manual_payment(body: ManualPaymentAction):
    submission = submissions_store.get_submission(body.submission_id)
    if submission is None:
        raise HTTPException(status_code=404, detail="Submission not found")
    if submission.get("status") in ("processing", "completed"):
        raise HTTPException(status_code=409, detail=f"Submission is already {submission['status']}")

    submissions_store.set_submission_status(body.submission_id, "paid", payment_status="completed")
    job = queue.add_press_release_job(
        body.submission_id,
        submission.get("package_type") or "basic",
        skip_purchase=True,
        payment_intent_id=submission.get("payment_intent_id"),
    )
    submissions_store.append_processing_log(
        body.submission_id, "manual_payment", "approved", {"job_id": job.id}
    )
    log.info("Manual payment approved", extra={"submission_id": body.submission_id, "job_id": job.id})
    return {
        "message": "Manual payment approved and job queued",
        "submission_id": body.submission_id,
        "job_id": job.id,
    }
