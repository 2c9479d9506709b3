"""
Schema helpers for Postgres.
"""
from __future__ import annotations

from core.db.base import get_conn

# Submission lifecycle values (press_release_submissions.status).
SUBMISSION_STATUSES = (
    "draft",
    "payment_pending",
    "paid",
    "processing",
    "awaiting_approval",
    "completed",
    "failed",
)

PAYMENT_STATUSES = ("pending", "completed", "failed", "refunded")


def init_db() -> None:
    """Create the submissions and jobs tables if they don't exist."""
    conn = get_conn()
    cur = conn.cursor()

    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS press_release_submissions(
            id TEXT PRIMARY KEY DEFAULT gen_random_uuid()::text,
            user_id TEXT,
            title TEXT NOT NULL,
            summary TEXT,
            content TEXT NOT NULL,
            company_name TEXT,
            contact_name TEXT,
            contact_email TEXT,
            contact_phone TEXT,
            website_url TEXT,
            industry TEXT,
            location TEXT,
            scheduled_release_at TIMESTAMPTZ,
            package_type TEXT NOT NULL DEFAULT 'basic',
            status TEXT NOT NULL DEFAULT 'draft',
            payment_status TEXT NOT NULL DEFAULT 'pending',
            payment_intent_id TEXT UNIQUE,
            payment_amount INTEGER,
            external_order_id TEXT,
            external_submission_id TEXT,
            confirmation_url TEXT,
            screenshots JSONB NOT NULL DEFAULT '[]'::jsonb,
            error_logs JSONB NOT NULL DEFAULT '[]'::jsonb,
            processing_logs JSONB NOT NULL DEFAULT '[]'::jsonb,
            submitted_at TIMESTAMPTZ,
            completed_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
        """
    )
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS jobs(
            id TEXT PRIMARY KEY DEFAULT gen_random_uuid()::text,
            type TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'pending',
            priority INTEGER NOT NULL DEFAULT 0,
            data JSONB NOT NULL DEFAULT '{}'::jsonb,
            result JSONB,
            error TEXT,
            attempts INTEGER NOT NULL DEFAULT 0,
            max_attempts INTEGER NOT NULL DEFAULT 3,
            submission_id TEXT REFERENCES press_release_submissions(id) ON DELETE SET NULL,
            scheduled_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            started_at TIMESTAMPTZ,
            completed_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
        """
    )
    # Claim path: pending jobs ordered by priority then schedule.
    cur.execute(
        """
        CREATE INDEX IF NOT EXISTS jobs_claim_idx
        ON jobs (status, priority DESC, scheduled_at)
        """
    )
    cur.execute(
        """
        CREATE INDEX IF NOT EXISTS jobs_submission_idx
        ON jobs (submission_id)
        """
    )

    conn.commit()
    conn.close()


__all__ = [
    "SUBMISSION_STATUSES",
    "PAYMENT_STATUSES",
    "init_db",
]
