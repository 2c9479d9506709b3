"""
Step audit trail.

Each step event is logged once and, when a sink is attached, appended to the
submission's processing_logs with the same fields.
"""
from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

log = logging.getLogger("worker.engine")

Sink = Callable[[str, str, Dict[str, Any]], None]


class StepHandle:
    """Lets a step body mark itself failed without raising."""

    def __init__(self, name: str, details: Dict[str, Any]):
        self.name = name
        self.status = "completed"
        self.details = details

    def fail(self, error: str) -> None:
        self.status = "failed"
        self.details["error"] = error


class StepRecorder:
    def __init__(self, submission_id: Optional[str] = None, sink: Optional[Sink] = None, logger=None):
        self.submission_id = submission_id
        self.sink = sink
        self.log = logger or log
        self.entries: List[Dict[str, Any]] = []

    def record(self, step: str, status: str, **details: Any) -> Dict[str, Any]:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "step": step,
            "status": status,
            "details": details,
        }
        self.entries.append(entry)
        level = logging.WARNING if status == "failed" else logging.INFO
        self.log.log(
            level,
            "step %s %s",
            step,
            status,
            extra={"submission_id": self.submission_id, "step": step, "status": status, "details": details},
        )
        if self.sink is not None:
            try:
                self.sink(step, status, details)
            except Exception:
                self.log.exception("Failed to persist step", extra={"submission_id": self.submission_id, "step": step})
        return entry

    @asynccontextmanager
    async def step(self, name: str, **details: Any):
        """Record started, then completed/failed with duration_ms. Exceptions propagate."""
        handle = StepHandle(name, dict(details))
        self.record(name, "started", **details)
        started = time.monotonic()
        try:
            yield handle
        except Exception as exc:
            handle.details["duration_ms"] = int((time.monotonic() - started) * 1000)
            handle.details["error"] = str(exc)
            self.record(name, "failed", **handle.details)
            raise
        handle.details["duration_ms"] = int((time.monotonic() - started) * 1000)
        self.record(name, handle.status, **handle.details)

    def steps(self, status: Optional[str] = None) -> List[str]:
        return [e["step"] for e in self.entries if status is None or e["status"] == status]


__all__ = ["StepHandle", "StepRecorder"]
