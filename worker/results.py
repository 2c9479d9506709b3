"""
Structured outcomes of the purchase and submission phases.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class PurchaseResult(BaseModel):
    success: bool
    order_id: Optional[str] = None
    error: Optional[str] = None
    requires_manual_payment: bool = False
    retryable: bool = True
    screenshots: List[str] = Field(default_factory=list)


class SubmissionResult(BaseModel):
    success: bool
    submission_id: Optional[str] = None
    confirmation_url: Optional[str] = None
    error: Optional[str] = None
    retryable: bool = True
    dry_run: bool = False
    missing_fields: List[str] = Field(default_factory=list)
    screenshots: List[str] = Field(default_factory=list)


class WorkflowOutcome(BaseModel):
    purchase: Optional[PurchaseResult] = None
    submission: Optional[SubmissionResult] = None

    @property
    def success(self) -> bool:
        return bool(self.submission and self.submission.success)

    @property
    def manual_approval_required(self) -> bool:
        return bool(self.purchase and self.purchase.requires_manual_payment)

    @property
    def dry_run(self) -> bool:
        return bool(self.submission and self.submission.dry_run)

    @property
    def error(self) -> Optional[str]:
        if self.success:
            return None
        if self.submission is not None and self.submission.error:
            return self.submission.error
        if self.purchase is not None and self.purchase.error:
            return self.purchase.error
        return "Workflow ended without a result"

    @property
    def retryable(self) -> bool:
        if self.success or self.manual_approval_required:
            return False
        if self.submission is not None:
            return self.submission.retryable
        if self.purchase is not None:
            return self.purchase.retryable
        return True

    @property
    def screenshots(self) -> List[str]:
        shots: List[str] = []
        if self.purchase is not None:
            shots.extend(self.purchase.screenshots)
        if self.submission is not None:
            shots.extend(self.submission.screenshots)
        return shots

    def to_job_result(self) -> Dict[str, Any]:
        """Summary stored on the job row; screenshots stay on the submission."""
        return {
            "success": self.success,
            "dry_run": self.dry_run,
            "manual_approval_required": self.manual_approval_required,
            "error": self.error,
            "purchase": self.purchase.model_dump(exclude={"screenshots"}) if self.purchase else None,
            "submission": self.submission.model_dump(exclude={"screenshots"}) if self.submission else None,
        }


__all__ = ["PurchaseResult", "SubmissionResult", "WorkflowOutcome"]
