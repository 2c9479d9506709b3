"""
Database facade: one import point for schema and store helpers.
"""
from core.db.base import get_conn, resolve_database_url
from core.db.schema import PAYMENT_STATUSES, SUBMISSION_STATUSES, init_db
from core.db.jobs import (
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
from core.db.submissions import (
    append_error_log,
    append_processing_log,
    create_submission,
    find_submission_by_payment_intent,
    get_submission,
    list_submissions,
    mark_payment_unsuccessful,
    mark_submission_paid,
    set_submission_status,
    update_submission,
)

__all__ = [
    "get_conn",
    "resolve_database_url",
    "init_db",
    "PAYMENT_STATUSES",
    "SUBMISSION_STATUSES",
    "claim_next_job",
    "delete_old_jobs",
    "enqueue_job",
    "get_job",
    "get_queue_status",
    "list_jobs",
    "mark_job_completed",
    "mark_job_failed",
    "requeue_stuck_jobs",
    "append_error_log",
    "append_processing_log",
    "create_submission",
    "find_submission_by_payment_intent",
    "get_submission",
    "list_submissions",
    "mark_payment_unsuccessful",
    "mark_submission_paid",
    "set_submission_status",
    "update_submission",
]
