"""
Press-release submission storage.

Log columns are append-only jsonb arrays; appends happen inside a single
UPDATE so concurrent writers never lose entries.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from psycopg.types.json import Jsonb

from core.db.base import get_conn
from core.db.schema import SUBMISSION_STATUSES

_CREATE_FIELDS = (
    "user_id",
    "title",
    "summary",
    "content",
    "company_name",
    "contact_name",
    "contact_email",
    "contact_phone",
    "website_url",
    "industry",
    "location",
    "scheduled_release_at",
    "package_type",
    "status",
    "payment_status",
    "payment_intent_id",
    "payment_amount",
)

# Columns update_submission may touch.
_UPDATABLE = set(_CREATE_FIELDS) | {
    "external_order_id",
    "external_submission_id",
    "confirmation_url",
    "screenshots",
    "submitted_at",
    "completed_at",
}

_JSON_COLUMNS = {"screenshots"}


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _adapt(column: str, value: Any) -> Any:
    if column in _JSON_COLUMNS and value is not None:
        return Jsonb(value)
    return value


def create_submission(**fields) -> Dict:
    """Insert a submission and return the stored row."""
    unknown = set(fields) - set(_CREATE_FIELDS)
    if unknown:
        raise ValueError(f"Unknown submission fields: {sorted(unknown)}")
    if not fields.get("title") or not fields.get("content"):
        raise ValueError("title and content are required")
    status = fields.get("status")
    if status and status not in SUBMISSION_STATUSES:
        raise ValueError(f"Invalid submission status: {status}")

    columns = [c for c in _CREATE_FIELDS if fields.get(c) is not None]
    placeholders = ", ".join("?" for _ in columns)

    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        f"""
        INSERT INTO press_release_submissions ({", ".join(columns)})
        VALUES ({placeholders})
        RETURNING *
        """,
        [_adapt(c, fields[c]) for c in columns],
    )
    row = cur.fetchone()
    conn.commit()
    conn.close()
    return dict(row)


def get_submission(submission_id: str) -> Optional[Dict]:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute("SELECT * FROM press_release_submissions WHERE id = ?", (submission_id,))
    row = cur.fetchone()
    conn.close()
    return dict(row) if row else None


def find_submission_by_payment_intent(payment_intent_id: str) -> Optional[Dict]:
    if not payment_intent_id:
        return None
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        "SELECT * FROM press_release_submissions WHERE payment_intent_id = ?",
        (payment_intent_id,),
    )
    row = cur.fetchone()
    conn.close()
    return dict(row) if row else None


def list_submissions(limit: int = 50, status: Optional[str] = None) -> List[Dict]:
    conn = get_conn()
    cur = conn.cursor()
    if status:
        cur.execute(
            """
            SELECT * FROM press_release_submissions
            WHERE status = ?
            ORDER BY created_at DESC
            LIMIT ?
            """,
            (status, int(limit)),
        )
    else:
        cur.execute(
            "SELECT * FROM press_release_submissions ORDER BY created_at DESC LIMIT ?",
            (int(limit),),
        )
    rows = cur.fetchall()
    conn.close()
    return [dict(r) for r in rows]


def update_submission(submission_id: str, **fields) -> Optional[Dict]:
    """
    Update whitelisted columns and stamp updated_at.

    Returns the updated row, or None when the submission does not exist.
    """
    unknown = set(fields) - _UPDATABLE
    if unknown:
        raise ValueError(f"Cannot update submission fields: {sorted(unknown)}")
    status = fields.get("status")
    if status and status not in SUBMISSION_STATUSES:
        raise ValueError(f"Invalid submission status: {status}")

    assignments = [f"{c} = ?" for c in fields]
    assignments.append("updated_at = now()")
    params = [_adapt(c, v) for c, v in fields.items()]
    params.append(submission_id)

    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        f"""
        UPDATE press_release_submissions
        SET {", ".join(assignments)}
        WHERE id = ?
        RETURNING *
        """,
        params,
    )
    row = cur.fetchone()
    conn.commit()
    conn.close()
    return dict(row) if row else None


def set_submission_status(submission_id: str, status: str, **fields) -> Optional[Dict]:
    return update_submission(submission_id, status=status, **fields)


def mark_submission_paid(
    submission_id: str,
    payment_intent_id: Optional[str] = None,
    payment_amount: Optional[int] = None,
) -> Optional[Dict]:
    """
    Flip a submission to paid unless its payment is already recorded.

    Returns the updated row, or None when it was already paid (or missing),
    so duplicate payment events can be told apart atomically.
    """
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        UPDATE press_release_submissions
        SET status = 'paid',
            payment_status = 'completed',
            payment_intent_id = COALESCE(payment_intent_id, ?),
            payment_amount = COALESCE(?::int, payment_amount),
            updated_at = now()
        WHERE id = ? AND payment_status <> 'completed'
        RETURNING *
        """,
        (payment_intent_id, payment_amount, submission_id),
    )
    row = cur.fetchone()
    conn.commit()
    conn.close()
    return dict(row) if row else None


def mark_payment_unsuccessful(submission_id: str, status: str) -> Optional[Dict]:
    """
    Record a failed or canceled payment unless the payment already completed.

    Returns the updated row, or None when the event arrived after the payment
    was recorded (or the submission is missing).
    """
    if status not in SUBMISSION_STATUSES:
        raise ValueError(f"Invalid submission status: {status}")
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        UPDATE press_release_submissions
        SET status = ?,
            payment_status = 'failed',
            updated_at = now()
        WHERE id = ? AND payment_status <> 'completed'
        RETURNING *
        """,
        (status, submission_id),
    )
    row = cur.fetchone()
    conn.commit()
    conn.close()
    return dict(row) if row else None


def append_processing_log(
    submission_id: str,
    step: str,
    status: str,
    details: Optional[Dict] = None,
) -> None:
    """Append {timestamp, step, status, details} to processing_logs."""
    entry = {
        "timestamp": _now_iso(),
        "step": step,
        "status": status,
        "details": details or {},
    }
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        UPDATE press_release_submissions
        SET processing_logs = COALESCE(processing_logs, '[]'::jsonb) || jsonb_build_array(?::jsonb),
            updated_at = now()
        WHERE id = ?
        """,
        (Jsonb(entry), submission_id),
    )
    conn.commit()
    conn.close()


def append_error_log(submission_id: str, message: str) -> None:
    """Append {timestamp, message} to error_logs."""
    entry = {"timestamp": _now_iso(), "message": message}
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        UPDATE press_release_submissions
        SET error_logs = COALESCE(error_logs, '[]'::jsonb) || jsonb_build_array(?::jsonb),
            updated_at = now()
        WHERE id = ?
        """,
        (Jsonb(entry), submission_id),
    )
    conn.commit()
    conn.close()


__all__ = [
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
