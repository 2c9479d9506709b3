"""
Press-release submission storage re-exports.
"""
from core.db.submissions.submissions_store import (
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
