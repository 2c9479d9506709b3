import os
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Request

from app.security import allow_request_with_remaining, require_admin
from core.jobs import queue
from worker import processor

router = APIRouter(prefix="/api/jobs", tags=["jobs"])

PROCESS_RATE_LIMIT = int(os.getenv("JOB_PROCESS_RATE_LIMIT", "10"))


@router.post("/process", dependencies=[Depends(require_admin)])
async def process_jobs(request: Request):
    """Run one processor tick. Overlapping calls are safe; each claims its own job."""
    client = request.client.host if request.client else "unknown"
    allowed, _ = allow_request_with_remaining(f"jobs-process:{client}", limit=PROCESS_RATE_LIMIT, window_seconds=60)
    if not allowed:
        raise HTTPException(status_code=429, detail="Too many process requests")
    return await processor.process_next_job()


@router.get("/status")
def jobs_status():
    rows = queue.queue_status()
    return {
        "queue": rows,
        "summary": queue.queue_summary(rows),
        "last_updated": datetime.now(timezone.utc).isoformat(),
    }
