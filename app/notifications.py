"""
Plain-text notification templates for submitters.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Tuple

from app import email_utils

log = logging.getLogger("worker.notifications")


def _completion(data: Dict[str, Any]) -> Tuple[str, str]:
    title = data.get("title") or "your press release"
    subject = f"Your press release was submitted: {title}"
    lines = [
        "Good news!",
        "",
        f'"{title}" has been submitted for distribution and is now in editorial review.',
    ]
    if data.get("confirmation_url"):
        lines.append(f"Confirmation: {data['confirmation_url']}")
    if data.get("external_submission_id"):
        lines.append(f"Reference: {data['external_submission_id']}")
    lines += ["", "Thanks for using BravaPress."]
    return subject, "\n".join(lines)


def _error(data: Dict[str, Any]) -> Tuple[str, str]:
    title = data.get("title") or "your press release"
    subject = f"We could not submit your press release: {title}"
    lines = [
        f'We ran into a problem submitting "{title}".',
        "",
        f"Details: {data.get('error') or 'unknown error'}",
        "",
        "Our team has been notified and will follow up. You do not need to pay again.",
    ]
    return subject, "\n".join(lines)


def _payment_confirmation(data: Dict[str, Any]) -> Tuple[str, str]:
    title = data.get("title") or "your press release"
    amount = data.get("amount")
    subject = "Payment received - BravaPress"
    lines = [f'We received your payment for "{title}".']
    if amount is not None:
        lines.append(f"Amount: ${int(amount) / 100:.2f}")
    lines += ["", "Your release is queued for submission; we'll email you when it is live."]
    return subject, "\n".join(lines)


TEMPLATES: Dict[str, Callable[[Dict[str, Any]], Tuple[str, str]]] = {
    "completion": _completion,
    "error": _error,
    "payment_confirmation": _payment_confirmation,
}


def render(template: str, data: Dict[str, Any]) -> Tuple[str, str]:
    """Return (subject, body) for a template name. Unknown names raise KeyError."""
    return TEMPLATES[template](data or {})


def send_notification(to: str, template: str, data: Dict[str, Any]) -> None:
    subject, body = render(template, data)
    email_utils.send_text_email(to, subject, body)
    log.info("Notification sent", extra={"to": to, "template": template})


__all__ = ["TEMPLATES", "render", "send_notification"]
