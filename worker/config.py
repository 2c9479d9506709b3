"""
Worker settings read from the environment once per job.
"""
from __future__ import annotations

import os
from dataclasses import dataclass

from worker.errors import ConfigurationError

PAYMENT_MODES = ("manual", "credit", "auto")


def env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from exc


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from exc


def _payment_mode() -> str:
    mode = (os.getenv("EIN_PAYMENT_MODE") or "").strip().lower()
    if not mode:
        # Older deployments toggled this with EIN_USE_PREPAID_CREDITS=true|manual.
        legacy = (os.getenv("EIN_USE_PREPAID_CREDITS") or "").strip().lower()
        mode = {"true": "credit", "manual": "manual"}.get(legacy, "auto")
    if mode not in PAYMENT_MODES:
        raise ConfigurationError(f"EIN_PAYMENT_MODE must be one of {PAYMENT_MODES}, got {mode!r}")
    return mode


@dataclass(frozen=True)
class WorkerSettings:
    email: str
    password: str
    base_url: str = "https://www.einpresswire.com"
    headless: bool = True
    payment_mode: str = "auto"
    timeout_ms: int = 30000
    navigation_timeout_ms: int = 60000
    locator_timeout_ms: int = 7000
    retry_attempts: int = 3
    retry_max_delay: float = 10.0
    release_timezone: str = "America/New_York"

    @classmethod
    def from_env(cls) -> "WorkerSettings":
        """Build settings from env. Missing credentials raise ConfigurationError."""
        email = (os.getenv("EIN_EMAIL") or os.getenv("EINPRESSWIRE_EMAIL") or "").strip()
        password = os.getenv("EIN_PASSWORD") or os.getenv("EINPRESSWIRE_PASSWORD") or ""
        if not email or not password:
            raise ConfigurationError("Newswire credentials not configured. Set EIN_EMAIL and EIN_PASSWORD.")

        return cls(
            email=email,
            password=password,
            base_url=(os.getenv("EIN_BASE_URL") or "https://www.einpresswire.com").rstrip("/"),
            headless=env_bool("PLAYWRIGHT_HEADLESS", True),
            payment_mode=_payment_mode(),
            timeout_ms=_env_int("BROWSER_TIMEOUT_MS", 30000),
            navigation_timeout_ms=_env_int("BROWSER_NAV_TIMEOUT_MS", 60000),
            locator_timeout_ms=_env_int("LOCATOR_TIMEOUT_MS", 7000),
            retry_attempts=max(1, _env_int("AUTOMATION_RETRY_ATTEMPTS", 3)),
            retry_max_delay=_env_float("AUTOMATION_RETRY_MAX_DELAY", 10.0),
            release_timezone=os.getenv("RELEASE_TIMEZONE") or "America/New_York",
        )

    def url(self, path_or_url: str) -> str:
        """Resolve a site path against base_url; absolute URLs pass through."""
        if not path_or_url:
            return self.base_url
        if path_or_url.startswith(("http://", "https://")):
            return path_or_url
        if path_or_url.startswith("/"):
            return f"{self.base_url}{path_or_url}"
        return f"{self.base_url}/{path_or_url}"


__all__ = ["PAYMENT_MODES", "WorkerSettings", "env_bool"]
