import json
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, HTTPException, Request

from app.security import WEBHOOK_SIGNATURE_HEADER, verify_webhook_signature
from core.db.submissions import submissions_store
from core.jobs import queue
from worker.config import env_bool

router = APIRouter(prefix="/api/payments", tags=["payments"])
log = logging.getLogger("app.payments")


def _find_submission(payment_intent_id: Optional[str], submission_id: Optional[str] = None) -> Optional[Dict]:
    submission = submissions_store.find_submission_by_payment_intent(payment_intent_id) if payment_intent_id else None
    if submission is None and submission_id:
        submission = submissions_store.get_submission(submission_id)
    return submission


def _mark_paid(submission: Dict[str, Any], payment_intent_id: Optional[str], amount: Optional[int]) -> Dict[str, Any]:
    """Mark a submission paid and enqueue its submission job exactly once."""
    paid = submissions_store.mark_submission_paid(
        submission["id"],
        payment_intent_id,
        int(amount) if amount is not None else None,
    )
    if paid is None:
        log.info("Duplicate payment event ignored", extra={"submission_id": submission["id"]})
        return {"submission_id": submission["id"], "job_id": None, "duplicate": True}

    job = queue.add_press_release_job(
        paid["id"],
        paid.get("package_type") or "basic",
        payment_intent_id=paid.get("payment_intent_id") or payment_intent_id,
    )
    to = (submission.get("contact_email") or "").strip()
    if to and env_bool("NOTIFY_SUBMITTERS", True):
        queue.add_email_job(
            to,
            "payment_confirmation",
            {"submission_id": submission["id"], "title": submission.get("title"), "amount": amount},
        )
    log.info("Payment recorded", extra={"submission_id": submission["id"], "job_id": job.id})
    return {"submission_id": submission["id"], "job_id": job.id, "duplicate": False}


def _handle_succeeded(obj: Dict[str, Any]) -> Dict[str, Any]:
    submission = _find_submission(obj.get("id"), (obj.get("metadata") or {}).get("submission_id"))
    if submission is None:
        log.warning("No submission for payment intent", extra={"payment_intent_id": obj.get("id")})
        return {"submission_id": None}
    return _mark_paid(submission, obj.get("id"), obj.get("amount_received") or obj.get("amount"))


def _handle_checkout_completed(obj: Dict[str, Any]) -> Dict[str, Any]:
    payment_intent_id = obj.get("payment_intent")
    submission_id = obj.get("client_reference_id") or (obj.get("metadata") or {}).get("submission_id")
    submission = _find_submission(payment_intent_id, submission_id)
    if submission is None:
        log.warning("No submission for checkout session", extra={"submission_id": submission_id})
        return {"submission_id": None}
    return _mark_paid(submission, payment_intent_id, obj.get("amount_total"))


def _late_event(submission: Dict[str, Any], event: str) -> Dict[str, Any]:
    log.info("Ignoring payment event for a settled payment", extra={"submission_id": submission["id"], "event": event})
    return {"submission_id": submission["id"], "ignored": True}


def _handle_failed(obj: Dict[str, Any]) -> Dict[str, Any]:
    submission = _find_submission(obj.get("id"))
    if submission is None:
        return {"submission_id": None}
    if submissions_store.mark_payment_unsuccessful(submission["id"], "payment_pending") is None:
        return _late_event(submission, "payment_failed")
    message = ((obj.get("last_payment_error") or {}).get("message")) or "Payment failed"
    submissions_store.append_error_log(submission["id"], message)
    return {"submission_id": submission["id"]}


def _handle_canceled(obj: Dict[str, Any]) -> Dict[str, Any]:
    submission = _find_submission(obj.get("id"))
    if submission is None:
        return {"submission_id": None}
    if submissions_store.mark_payment_unsuccessful(submission["id"], "draft") is None:
        return _late_event(submission, "canceled")
    return {"submission_id": submission["id"]}


EVENT_HANDLERS = {
    "payment_intent.succeeded": _handle_succeeded,
    "checkout.session.completed": _handle_checkout_completed,
    "payment_intent.payment_failed": _handle_failed,
    "payment_intent.canceled": _handle_canceled,
}


@router.post("/webhook")
async def payment_webhook(request: Request):
    body = await request.body()
    if not verify_webhook_signature(body, request.headers.get(WEBHOOK_SIGNATURE_HEADER)):
        raise HTTPException(status_code=400, detail="Invalid signature")

    try:
        event = json.loads(body or b"{}")
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid JSON payload")

    event_type = event.get("type")
    obj = (event.get("data") or {}).get("object") or {}
    handler = EVENT_HANDLERS.get(event_type)
    if handler is None:
        log.info("Unhandled payment event", extra={"event_type": event_type})
        return {"received": True, "handled": False}

    result = handler(obj)
    return {"received": True, "handled": True, "event_type": event_type, **result}
