import os
import uuid
from datetime import datetime, timedelta, timezone

import pytest

from core.db.jobs import jobs_store
from core.db.submissions import submissions_store


_TABLES = ["jobs", "press_release_submissions"]


def _truncate_all():
    from core.db.base import get_conn

    conn = get_conn()
    cur = conn.cursor()
    cur.execute("TRUNCATE " + ", ".join(_TABLES) + " CASCADE")
    conn.commit()
    conn.close()


@pytest.fixture
def pg_db():
    """Real Postgres; skipped unless DATABASE_URL is set."""
    if not os.getenv("DATABASE_URL"):
        pytest.skip("DATABASE_URL must be set for Postgres-only tests.")
    from core.db.schema import init_db

    init_db()
    _truncate_all()
    yield
    _truncate_all()


def _now():
    return datetime.now(timezone.utc)


class MemoryStore:
    """Dict-backed stand-in for the jobs and submissions tables."""

    def __init__(self):
        self.jobs = {}
        self.submissions = {}
        self.fail_calls = []
        self._seq = 0

    # -------- jobs --------
    def enqueue_job(self, job_type, data, *, priority=0, max_attempts=3, scheduled_at=None):
        self._seq += 1
        now = _now() + timedelta(microseconds=self._seq)
        job = {
            "id": str(uuid.uuid4()),
            "type": job_type,
            "status": "pending",
            "priority": priority,
            "data": dict(data or {}),
            "result": None,
            "error": None,
            "attempts": 0,
            "max_attempts": max_attempts,
            "submission_id": (data or {}).get("submission_id"),
            "scheduled_at": scheduled_at or now,
            "started_at": None,
            "completed_at": None,
            "created_at": now,
            "updated_at": now,
        }
        self.jobs[job["id"]] = job
        return dict(job)

    def claim_next_job(self):
        now = _now()
        eligible = [
            j for j in self.jobs.values()
            if j["status"] == "pending" and j["scheduled_at"] <= now
        ]
        if not eligible:
            return None
        eligible.sort(key=lambda j: (-j["priority"], j["scheduled_at"], j["created_at"]))
        job = eligible[0]
        job.update(status="processing", started_at=now, attempts=job["attempts"] + 1, updated_at=now)
        return dict(job)

    def mark_job_completed(self, job_id, result=None):
        job = self.jobs.get(job_id)
        if not job or job["status"] != "processing":
            return False
        job.update(status="completed", result=result, error=None, completed_at=_now())
        return True

    def mark_job_failed(self, job_id, error, should_retry=True, *, backoff_base_seconds=60, backoff_max_seconds=900):
        self.fail_calls.append((job_id, error, should_retry))
        job = self.jobs.get(job_id)
        if not job or job["status"] != "processing":
            return None
        job["error"] = error
        if should_retry and job["attempts"] < job["max_attempts"]:
            delay = min(backoff_base_seconds * 2 ** max(job["attempts"] - 1, 0), backoff_max_seconds)
            job.update(status="pending", scheduled_at=_now() + timedelta(seconds=delay), completed_at=None)
        else:
            job.update(status="failed", completed_at=_now())
        return job["status"]

    def get_job(self, job_id):
        job = self.jobs.get(job_id)
        return dict(job) if job else None

    def list_jobs(self, limit=20, status=None, job_type=None, submission_id=None):
        rows = [
            dict(j) for j in self.jobs.values()
            if (status is None or j["status"] == status)
            and (job_type is None or j["type"] == job_type)
            and (submission_id is None or j["submission_id"] == submission_id)
        ]
        rows.sort(key=lambda j: j["created_at"], reverse=True)
        return rows[:limit]

    def get_queue_status(self):
        groups = {}
        for j in self.jobs.values():
            key = (j["status"], j["type"])
            row = groups.setdefault(key, {"status": key[0], "type": key[1], "count": 0,
                                          "oldest_job": j["created_at"], "newest_job": j["created_at"]})
            row["count"] += 1
            row["oldest_job"] = min(row["oldest_job"], j["created_at"])
            row["newest_job"] = max(row["newest_job"], j["created_at"])
        return [groups[k] for k in sorted(groups)]

    def delete_old_jobs(self, older_than_days):
        cutoff = _now() - timedelta(days=older_than_days)
        doomed = [
            jid for jid, j in self.jobs.items()
            if j["status"] in ("completed", "failed") and j["completed_at"] and j["completed_at"] < cutoff
        ]
        for jid in doomed:
            del self.jobs[jid]
        return len(doomed)

    def requeue_stuck_jobs(self, older_than_minutes):
        cutoff = _now() - timedelta(minutes=older_than_minutes)
        ids = []
        for j in self.jobs.values():
            if j["status"] == "processing" and j["started_at"] and j["started_at"] < cutoff:
                if j["attempts"] < j["max_attempts"]:
                    j.update(status="pending", started_at=None)
                else:
                    j.update(status="failed", completed_at=_now())
                ids.append(j["id"])
        return ids

    # -------- submissions --------
    def create_submission(self, **fields):
        now = _now()
        row = {
            "id": str(uuid.uuid4()),
            "status": "draft",
            "payment_status": "pending",
            "package_type": "basic",
            "payment_intent_id": None,
            "payment_amount": None,
            "external_order_id": None,
            "external_submission_id": None,
            "confirmation_url": None,
            "screenshots": [],
            "error_logs": [],
            "processing_logs": [],
            "submitted_at": None,
            "completed_at": None,
            "created_at": now,
            "updated_at": now,
        }
        row.update(fields)
        self.submissions[row["id"]] = row
        return dict(row)

    def get_submission(self, submission_id):
        row = self.submissions.get(submission_id)
        return dict(row) if row else None

    def find_submission_by_payment_intent(self, payment_intent_id):
        for row in self.submissions.values():
            if payment_intent_id and row.get("payment_intent_id") == payment_intent_id:
                return dict(row)
        return None

    def list_submissions(self, limit=50, status=None):
        rows = [dict(r) for r in self.submissions.values() if status is None or r["status"] == status]
        return rows[:limit]

    def update_submission(self, submission_id, **fields):
        row = self.submissions.get(submission_id)
        if row is None:
            return None
        row.update(fields)
        row["updated_at"] = _now()
        return dict(row)

    def set_submission_status(self, submission_id, status, **fields):
        return self.update_submission(submission_id, status=status, **fields)

    def mark_submission_paid(self, submission_id, payment_intent_id=None, payment_amount=None):
        row = self.submissions.get(submission_id)
        if row is None or row.get("payment_status") == "completed":
            return None
        row.update(status="paid", payment_status="completed")
        if not row.get("payment_intent_id"):
            row["payment_intent_id"] = payment_intent_id
        if payment_amount is not None:
            row["payment_amount"] = payment_amount
        return dict(row)

    def mark_payment_unsuccessful(self, submission_id, status):
        row = self.submissions.get(submission_id)
        if row is None or row.get("payment_status") == "completed":
            return None
        row.update(status=status, payment_status="failed")
        return dict(row)

    def append_processing_log(self, submission_id, step, status, details=None):
        row = self.submissions.get(submission_id)
        if row is not None:
            row["processing_logs"].append(
                {"timestamp": _now().isoformat(), "step": step, "status": status, "details": details or {}}
            )

    def append_error_log(self, submission_id, message):
        row = self.submissions.get(submission_id)
        if row is not None:
            row["error_logs"].append({"timestamp": _now().isoformat(), "message": message})

    # -------- helpers --------
    def jobs_of_type(self, job_type):
        return [j for j in self.jobs.values() if j["type"] == job_type]


_JOB_FUNCS = [
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
_SUBMISSION_FUNCS = [
    "create_submission",
    "get_submission",
    "find_submission_by_payment_intent",
    "list_submissions",
    "update_submission",
    "set_submission_status",
    "mark_submission_paid",
    "mark_payment_unsuccessful",
    "append_processing_log",
    "append_error_log",
]


@pytest.fixture
def memory_store(monkeypatch):
    """Swap the Postgres store functions for an in-memory implementation."""
    store = MemoryStore()
    for name in _JOB_FUNCS:
        monkeypatch.setattr(jobs_store, name, getattr(store, name))
    for name in _SUBMISSION_FUNCS:
        monkeypatch.setattr(submissions_store, name, getattr(store, name))
    monkeypatch.setenv("NOTIFY_SUBMITTERS", "true")
    return store


@pytest.fixture
def make_submission(memory_store):
    def _make(**overrides):
        fields = {
            "title": "Acme Launches Rocket Skates",
            "summary": "Acme Corp today announced rocket-powered roller skates for the discerning coyote.",
            "content": "DESERT CITY, AZ - Acme Corp today announced...",
            "company_name": "Acme Corp",
            "contact_name": "Wile E. Coyote",
            "contact_email": "wile@acme.test",
            "contact_phone": "+1 555 0100",
            "industry": "Technology",
            "location": "Phoenix, Arizona, United States",
            "package_type": "basic",
            "status": "paid",
            "payment_status": "completed",
            "payment_intent_id": f"pi_{uuid.uuid4().hex[:12]}",
        }
        fields.update(overrides)
        return memory_store.create_submission(**fields)

    return _make
