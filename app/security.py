"""
Admin token, webhook signature and rate limit helpers.
"""
from __future__ import annotations

import hashlib
import hmac
import os
import time
from typing import Dict

from fastapi import HTTPException, Request

ADMIN_TOKEN_HEADER = "X-Admin-Token"
WEBHOOK_SIGNATURE_HEADER = "X-Payment-Signature"


def admin_token_valid(provided: str | None) -> bool:
    """Constant-time compare against ADMIN_API_TOKEN. No configured token means no access."""
    expected = os.getenv("ADMIN_API_TOKEN") or ""
    if not expected or not provided:
        return False
    return hmac.compare_digest(expected, provided)


def require_admin(request: Request) -> None:
    """FastAPI dependency guarding admin and trigger endpoints."""
    if not os.getenv("ADMIN_API_TOKEN"):
        raise HTTPException(status_code=503, detail="Admin API token not configured")
    if not admin_token_valid(request.headers.get(ADMIN_TOKEN_HEADER)):
        raise HTTPException(status_code=401, detail="Invalid admin token")


def sign_payload(body: bytes, secret: str) -> str:
    """Hex HMAC-SHA256 of the raw request body."""
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def verify_webhook_signature(body: bytes, signature: str | None, secret: str | None = None) -> bool:
    """Check a `sha256=<hex>` or bare hex signature for the raw body."""
    secret = secret if secret is not None else os.getenv("PAYMENT_WEBHOOK_SECRET")
    if not secret or not signature:
        return False
    provided = signature.strip()
    if provided.startswith("sha256="):
        provided = provided[len("sha256="):]
    return hmac.compare_digest(sign_payload(body, secret), provided)


# -------- Rate limiting (in-memory) --------
_rate_state: Dict[str, list[float]] = {}


def allow_request(key: str, limit: int = 5, window_seconds: int = 60) -> bool:
    """
    Simple sliding-window rate limit stored in memory.
    Returns True if under limit, False otherwise.
    """
    allowed, _ = allow_request_with_remaining(key, limit=limit, window_seconds=window_seconds)
    return allowed


def allow_request_with_remaining(key: str, limit: int = 5, window_seconds: int = 60) -> tuple[bool, int]:
    """
    Sliding-window rate limit with remaining-count feedback.
    Returns (allowed, remaining_after).
    """
    now = time.time()
    window_start = now - window_seconds
    history = [t for t in _rate_state.get(key, []) if t > window_start]
    if len(history) >= limit:
        _rate_state[key] = history
        return False, 0
    history.append(now)
    _rate_state[key] = history
    return True, max(0, limit - len(history))


def reset_rate_limits() -> None:
    _rate_state.clear()


__all__ = [
    "ADMIN_TOKEN_HEADER",
    "WEBHOOK_SIGNATURE_HEADER",
    "admin_token_valid",
    "require_admin",
    "sign_payload",
    "verify_webhook_signature",
    "allow_request",
    "allow_request_with_remaining",
    "reset_rate_limits",
]
