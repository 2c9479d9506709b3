"""
Job table storage helpers.

Every state change is a single UPDATE guarded on the current status, so two
workers racing on the same row can never both win.
"""
from __future__ import annotations

import os
from datetime import datetime
from typing import Dict, List, Optional

from psycopg.types.json import Jsonb

from core.db.base import get_conn

def retry_backoff_seconds() -> float:
    return float(os.getenv("JOB_RETRY_BACKOFF_SECONDS", "60"))


def retry_backoff_max_seconds() -> float:
    return float(os.getenv("JOB_RETRY_BACKOFF_MAX_SECONDS", "900"))

_JOB_COLUMNS = """
    id, type, status, priority, data, result, error, attempts, max_attempts,
    submission_id, scheduled_at, started_at, completed_at, created_at, updated_at
"""


def enqueue_job(
    job_type: str,
    data: Dict,
    *,
    priority: int = 0,
    max_attempts: int = 3,
    scheduled_at: Optional[datetime] = None,
) -> Dict:
    """Insert a new pending job and return the stored row."""
    submission_id = (data or {}).get("submission_id")

    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        f"""
        INSERT INTO jobs (type, status, priority, data, max_attempts, submission_id, scheduled_at)
        VALUES (?, 'pending', ?, ?, ?, ?, COALESCE(?, now()))
        RETURNING {_JOB_COLUMNS}
        """,
        (
            job_type,
            int(priority),
            Jsonb(data or {}),
            int(max_attempts),
            submission_id,
            scheduled_at,
        ),
    )
    row = cur.fetchone()
    conn.commit()
    conn.close()
    return dict(row)


def claim_next_job() -> Optional[Dict]:
    """
    Atomically claim the next eligible job.

    Picks the highest-priority, earliest-scheduled pending job whose
    scheduled_at has passed, flips it to processing, stamps started_at and
    bumps attempts. Rows locked by a concurrent claimer are skipped.
    """
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        f"""
        UPDATE jobs
        SET status = 'processing',
            started_at = now(),
            attempts = attempts + 1,
            updated_at = now()
        WHERE id = (
            SELECT id FROM jobs
            WHERE status = 'pending' AND scheduled_at <= now()
            ORDER BY priority DESC, scheduled_at ASC, created_at ASC
            FOR UPDATE SKIP LOCKED
            LIMIT 1
        )
        RETURNING {_JOB_COLUMNS}
        """
    )
    row = cur.fetchone()
    conn.commit()
    conn.close()
    return dict(row) if row else None


def mark_job_completed(job_id: str, result: Optional[Dict] = None) -> bool:
    """
    Move a processing job to completed.

    Returns False when the job was not processing (already settled or unknown).
    """
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        UPDATE jobs
        SET status = 'completed',
            result = ?,
            error = NULL,
            completed_at = now(),
            updated_at = now()
        WHERE id = ? AND status = 'processing'
        RETURNING id
        """,
        (Jsonb(result) if result is not None else None, job_id),
    )
    row = cur.fetchone()
    conn.commit()
    conn.close()
    return row is not None


def mark_job_failed(
    job_id: str,
    error: str,
    should_retry: bool = True,
    *,
    backoff_base_seconds: Optional[float] = None,
    backoff_max_seconds: Optional[float] = None,
) -> Optional[str]:
    """
    Record a failed attempt.

    With should_retry and attempts left the job goes back to pending with a
    backoff of base * 2^(attempts-1) seconds (capped); otherwise it becomes
    failed. Returns the new status, or None when the job was not processing.
    """
    base = retry_backoff_seconds() if backoff_base_seconds is None else backoff_base_seconds
    cap = retry_backoff_max_seconds() if backoff_max_seconds is None else backoff_max_seconds
    retry = bool(should_retry)

    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        UPDATE jobs
        SET status = CASE WHEN ?::boolean AND attempts < max_attempts THEN 'pending' ELSE 'failed' END,
            error = ?,
            scheduled_at = CASE
                WHEN ?::boolean AND attempts < max_attempts
                THEN now() + make_interval(secs => LEAST(?::float8 * power(2, GREATEST(attempts - 1, 0)), ?::float8))
                ELSE scheduled_at
            END,
            completed_at = CASE WHEN ?::boolean AND attempts < max_attempts THEN NULL ELSE now() END,
            updated_at = now()
        WHERE id = ? AND status = 'processing'
        RETURNING status
        """,
        (retry, (error or "")[:2000], retry, float(base), float(cap), retry, job_id),
    )
    row = cur.fetchone()
    conn.commit()
    conn.close()
    return row["status"] if row else None


def get_job(job_id: str) -> Optional[Dict]:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(f"SELECT {_JOB_COLUMNS} FROM jobs WHERE id = ?", (job_id,))
    row = cur.fetchone()
    conn.close()
    return dict(row) if row else None


def list_jobs(
    limit: int = 20,
    status: Optional[str] = None,
    job_type: Optional[str] = None,
    submission_id: Optional[str] = None,
) -> List[Dict]:
    """Return jobs newest first, joined with their submission's title/company."""
    clauses: List[str] = []
    params: List = []
    if submission_id:
        clauses.append("j.submission_id = ?")
        params.append(submission_id)
    if status:
        clauses.append("j.status = ?")
        params.append(status)
    if job_type:
        clauses.append("j.type = ?")
        params.append(job_type)
    where = ("WHERE " + " AND ".join(clauses)) if clauses else ""
    params.append(int(limit))

    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        f"""
        SELECT j.id, j.type, j.status, j.priority, j.data, j.result, j.error,
               j.attempts, j.max_attempts, j.submission_id, j.scheduled_at,
               j.started_at, j.completed_at, j.created_at, j.updated_at,
               s.title AS submission_title, s.company_name AS submission_company
        FROM jobs j
        LEFT JOIN press_release_submissions s ON s.id = j.submission_id
        {where}
        ORDER BY j.created_at DESC
        LIMIT ?
        """,
        params,
    )
    rows = cur.fetchall()
    conn.close()
    return [dict(r) for r in rows]


def get_queue_status() -> List[Dict]:
    """Aggregate counts grouped by (status, type) for monitoring."""
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT status, type, COUNT(*) AS count,
               MIN(created_at) AS oldest_job, MAX(created_at) AS newest_job
        FROM jobs
        GROUP BY status, type
        ORDER BY status, type
        """
    )
    rows = cur.fetchall()
    conn.close()
    return [dict(r) for r in rows]


def delete_old_jobs(older_than_days: int) -> int:
    """Delete completed/failed jobs whose completed_at is older than the window."""
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        DELETE FROM jobs
        WHERE status IN ('completed', 'failed')
          AND completed_at < now() - make_interval(days => ?::int)
        RETURNING id
        """,
        (int(older_than_days),),
    )
    deleted = len(cur.fetchall())
    conn.commit()
    conn.close()
    return deleted


def requeue_stuck_jobs(older_than_minutes: int) -> List[str]:
    """
    Reset jobs stuck in processing past the threshold.

    Jobs with attempts left return to pending; exhausted ones become failed.
    """
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        UPDATE jobs
        SET status = CASE WHEN attempts < max_attempts THEN 'pending' ELSE 'failed' END,
            error = 'Requeued after exceeding processing timeout',
            started_at = CASE WHEN attempts < max_attempts THEN NULL ELSE started_at END,
            completed_at = CASE WHEN attempts < max_attempts THEN NULL ELSE now() END,
            updated_at = now()
        WHERE status = 'processing'
          AND started_at < now() - make_interval(mins => ?::int)
        RETURNING id
        """,
        (int(older_than_minutes),),
    )
    ids = [row["id"] for row in cur.fetchall()]
    conn.commit()
    conn.close()
    return ids


__all__ = [
    "retry_backoff_seconds",
    "retry_backoff_max_seconds",
    "enqueue_job",
    "claim_next_job",
    "mark_job_completed",
    "mark_job_failed",
    "get_job",
    "list_jobs",
    "get_queue_status",
    "delete_old_jobs",
    "requeue_stuck_jobs",
]
