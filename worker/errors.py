"""
Exceptions raised by the browser automation layer.
"""
from __future__ import annotations

from typing import Sequence


class AutomationError(Exception):
    """
    Base automation failure.

    `retryable` says whether repeating the step inside the current run may
    help; `job_retryable` says whether a later job attempt may. The latter
    defaults to the former.
    """

    retryable = True
    job_retryable: bool | None = None

    def __init__(self, message: str, *, retryable: bool | None = None):
        super().__init__(message)
        if retryable is not None:
            self.retryable = retryable


class LoginFailed(AutomationError):
    pass


class NavigationFailed(AutomationError):
    pass


class ElementNotFound(AutomationError):
    def __init__(self, target: str, strategies: Sequence[str] = ()):
        tried = ", ".join(strategies) if strategies else "none"
        super().__init__(f"Could not locate {target} (tried: {tried})")
        self.target = target
        self.strategies = list(strategies)


class ValidationRejected(AutomationError):
    """The site refused the form. Resubmitting right away will not help; a later job attempt may."""

    retryable = False
    job_retryable = True


class ConfigurationError(AutomationError, RuntimeError):
    retryable = False


def is_retryable(exc: BaseException) -> bool:
    """Automation errors carry their own flag; anything else is assumed transient."""
    return getattr(exc, "retryable", True)


def is_job_retryable(exc: BaseException) -> bool:
    """Whether the job should be rescheduled after this error ended the run."""
    flag = getattr(exc, "job_retryable", None)
    if flag is None:
        return is_retryable(exc)
    return flag


__all__ = [
    "AutomationError",
    "LoginFailed",
    "NavigationFailed",
    "ElementNotFound",
    "ValidationRejected",
    "ConfigurationError",
    "is_retryable",
    "is_job_retryable",
]
