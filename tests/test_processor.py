import asyncio
import threading
from datetime import datetime, timedelta, timezone

import pytest

from app import notifications
from worker import processor
from worker.config import WorkerSettings
from worker.errors import ConfigurationError
from worker.results import PurchaseResult, SubmissionResult, WorkflowOutcome
from core.jobs import queue


@pytest.fixture(autouse=True)
def worker_settings(monkeypatch):
    monkeypatch.setattr(processor, "load_settings", lambda: WorkerSettings(email="bot@bravapress.test", password="pw"))


def _use_workflow(monkeypatch, outcome=None, error=None):
    calls = []

    async def _run(release, options, settings, recorder):
        calls.append({"release": release, "options": options, "recorder": recorder})
        if error is not None:
            raise error
        return outcome

    monkeypatch.setattr(processor, "run_workflow", _run)
    return calls


def _published():
    return WorkflowOutcome(
        purchase=PurchaseResult(success=True, order_id="ORDER_1"),
        submission=SubmissionResult(
            success=True,
            submission_id="pr-987",
            confirmation_url="https://www.einpresswire.com/press-releases/publish/pr-987",
            screenshots=["c2hvdA=="],
        ),
    )


def _email_jobs(store, template):
    return [j for j in store.jobs_of_type("email_notification") if j["data"]["template"] == template]


def test_idle_queue_reports_nothing_processed(memory_store):
    result = asyncio.run(processor.process_next_job())
    assert result == {"success": True, "processed": False, "message": "No jobs to process"}


def test_successful_submission_completes_job_and_submission(memory_store, make_submission, monkeypatch):
    sub = make_submission()
    calls = _use_workflow(monkeypatch, _published())
    job = queue.add_press_release_job(sub["id"])

    result = asyncio.run(processor.process_next_job())

    assert result["success"] is True
    assert result["status"] == "completed"
    assert calls[0]["release"].title == sub["title"]

    stored_job = memory_store.jobs[job.id]
    assert stored_job["status"] == "completed"
    assert stored_job["result"]["submission"]["submission_id"] == "pr-987"
    assert "screenshots" not in stored_job["result"]["submission"]

    stored = memory_store.submissions[sub["id"]]
    assert stored["status"] == "completed"
    assert stored["external_submission_id"] == "pr-987"
    assert stored["external_order_id"] == "ORDER_1"
    assert stored["confirmation_url"].endswith("/pr-987")
    assert stored["screenshots"] == ["c2hvdA=="]
    assert stored["completed_at"] is not None
    assert ("job", "started") in [(e["step"], e["status"]) for e in stored["processing_logs"]]

    emails = _email_jobs(memory_store, "completion")
    assert len(emails) == 1
    assert emails[0]["data"]["to"] == "wile@acme.test"


def test_no_email_when_notifications_disabled(memory_store, make_submission, monkeypatch):
    monkeypatch.setenv("NOTIFY_SUBMITTERS", "false")
    sub = make_submission()
    _use_workflow(monkeypatch, _published())
    queue.add_press_release_job(sub["id"])

    asyncio.run(processor.process_next_job())

    assert memory_store.jobs_of_type("email_notification") == []


def test_manual_payment_parks_submission_for_approval(memory_store, make_submission, monkeypatch):
    sub = make_submission()
    _use_workflow(
        monkeypatch,
        WorkflowOutcome(
            purchase=PurchaseResult(
                success=False,
                error="Manual payment required",
                requires_manual_payment=True,
                retryable=False,
            )
        ),
    )
    job = queue.add_press_release_job(sub["id"])

    result = asyncio.run(processor.process_next_job())

    assert result["status"] == "failed"
    assert memory_store.fail_calls[-1] == (job.id, "Manual payment required", False)
    stored = memory_store.submissions[sub["id"]]
    assert stored["status"] == "awaiting_approval"
    assert stored["error_logs"][-1]["message"] == "Manual payment required"
    assert _email_jobs(memory_store, "error") == []


def test_retryable_failure_keeps_submission_processing(memory_store, make_submission, monkeypatch):
    sub = make_submission()
    _use_workflow(
        monkeypatch,
        WorkflowOutcome(submission=SubmissionResult(success=False, error="Submission failed: timeout", retryable=True)),
    )
    job = queue.add_press_release_job(sub["id"])

    result = asyncio.run(processor.process_next_job())

    assert result["status"] == "pending"
    assert memory_store.jobs[job.id]["status"] == "pending"
    stored = memory_store.submissions[sub["id"]]
    assert stored["status"] == "processing"
    retry_logs = [e for e in stored["processing_logs"] if e["step"] == "retry_scheduled"]
    assert retry_logs and retry_logs[0]["details"]["attempt"] == 1
    assert _email_jobs(memory_store, "error") == []


def test_last_attempt_failure_fails_submission_and_emails(memory_store, make_submission, monkeypatch):
    sub = make_submission()
    _use_workflow(
        monkeypatch,
        WorkflowOutcome(submission=SubmissionResult(success=False, error="Submission failed: timeout", retryable=True)),
    )
    job = queue.add_press_release_job(sub["id"])
    memory_store.jobs[job.id]["attempts"] = 2

    result = asyncio.run(processor.process_next_job())

    assert result["status"] == "failed"
    assert memory_store.submissions[sub["id"]]["status"] == "failed"
    errors = _email_jobs(memory_store, "error")
    assert len(errors) == 1
    assert errors[0]["data"]["data"]["error"] == "Submission failed: timeout"


def test_dry_run_restores_previous_status(memory_store, make_submission, monkeypatch):
    sub = make_submission(status="paid")
    _use_workflow(
        monkeypatch,
        WorkflowOutcome(submission=SubmissionResult(success=True, dry_run=True, confirmation_url="https://x.test/preview")),
    )
    queue.add_press_release_job(sub["id"], test_mode=True)

    result = asyncio.run(processor.process_next_job())

    assert result["status"] == "completed"
    stored = memory_store.submissions[sub["id"]]
    assert stored["status"] == "paid"
    assert stored["external_submission_id"] is None
    assert any(e["step"] == "dry_run" for e in stored["processing_logs"])
    assert _email_jobs(memory_store, "completion") == []


def test_missing_submission_fails_without_retry(memory_store, monkeypatch):
    calls = _use_workflow(monkeypatch, _published())
    job = queue.add_press_release_job("ghost")

    result = asyncio.run(processor.process_next_job())

    assert result["status"] == "failed"
    assert "not found" in result["error"]
    assert memory_store.fail_calls[-1][2] is False
    assert calls == []
    assert memory_store.jobs[job.id]["status"] == "failed"


def test_missing_credentials_fail_submission(memory_store, make_submission, monkeypatch):
    def _no_creds():
        raise ConfigurationError("Newswire credentials not configured.")

    monkeypatch.setattr(processor, "load_settings", _no_creds)
    sub = make_submission()
    queue.add_press_release_job(sub["id"])

    result = asyncio.run(processor.process_next_job())

    assert result["status"] == "failed"
    assert memory_store.submissions[sub["id"]]["status"] == "failed"
    assert memory_store.fail_calls[-1][2] is False


def test_unknown_job_type_is_not_retried(memory_store):
    job = queue.add_job("fax_blast", {"to": "nowhere"})

    result = asyncio.run(processor.process_next_job())

    assert result["status"] == "failed"
    assert "Unknown job type" in result["error"]
    assert memory_store.fail_calls[-1] == (job.id, result["error"], False)


def test_invalid_payload_is_not_retried(memory_store):
    queue.add_job("email_notification", {"to": "a@b.test", "template": "newsletter"})

    result = asyncio.run(processor.process_next_job())

    assert result["status"] == "failed"
    assert result["error"].startswith("Invalid job payload")


def test_handler_crash_is_retried_and_logged(memory_store, make_submission, monkeypatch, caplog):
    sub = make_submission()
    _use_workflow(monkeypatch, error=RuntimeError("chromium vanished"))
    queue.add_press_release_job(sub["id"])

    with caplog.at_level("ERROR", logger="worker.processor"):
        result = asyncio.run(processor.process_next_job())

    assert result["status"] == "pending"
    assert "chromium vanished" in result["error"]
    assert any("Job handler crashed" in rec.getMessage() for rec in caplog.records)
    assert memory_store.submissions[sub["id"]]["error_logs"]


def test_email_job_sends_notification(memory_store, monkeypatch):
    sent = []
    monkeypatch.setattr(notifications, "send_notification", lambda to, template, data: sent.append((to, template, data)))
    queue.add_email_job("pr@acme.test", "completion", {"title": "Launch"})

    result = asyncio.run(processor.process_next_job())

    assert result["status"] == "completed"
    assert sent == [("pr@acme.test", "completion", {"title": "Launch"})]


def test_email_failure_is_retried(memory_store, monkeypatch, caplog):
    def _fail(*args, **kwargs):
        raise RuntimeError("SMTP down")

    monkeypatch.setattr(notifications, "send_notification", _fail)
    queue.add_email_job("pr@acme.test", "error", {"error": "x"})

    with caplog.at_level("ERROR"):
        result = asyncio.run(processor.process_next_job())
        assert any("Failed to send email" in rec.getMessage() for rec in caplog.records)

    assert result["status"] == "pending"
    assert "SMTP down" in result["error"]


def test_cleanup_job_reports_deleted_count(memory_store, monkeypatch):
    monkeypatch.setattr(queue, "cleanup_old_jobs", lambda days: 4)
    job = queue.add_cleanup_job(3)

    asyncio.run(processor.process_next_job())

    assert memory_store.jobs[job.id]["result"] == {"deleted": 4, "older_than_days": 3}


def test_monitoring_job_requeues_and_summarises(memory_store):
    stuck = queue.add_cleanup_job()
    queue.next_job()
    memory_store.jobs[stuck.id]["started_at"] = datetime.now(timezone.utc) - timedelta(hours=1)
    memory_store.jobs[stuck.id]["max_attempts"] = 3
    monitor = queue.add_monitoring_job(30)

    asyncio.run(processor.process_next_job())

    result = memory_store.jobs[monitor.id]["result"]
    assert result["requeued_job_ids"] == [stuck.id]
    assert memory_store.jobs[stuck.id]["status"] == "pending"
    assert result["summary"]["processing"] == 1
    assert {"status": "processing", "type": "monitoring", "count": 1} in result["counts"]


def test_submission_with_recorded_order_skips_purchase(memory_store, make_submission, monkeypatch):
    sub = make_submission()
    memory_store.submissions[sub["id"]]["external_order_id"] = "ORDER_7"
    calls = _use_workflow(monkeypatch, _published())
    queue.add_press_release_job(sub["id"])

    asyncio.run(processor.process_next_job())

    assert calls[0]["options"].skip_purchase is True


def test_final_failure_after_purchase_keeps_order_id(memory_store, make_submission, monkeypatch):
    sub = make_submission()
    _use_workflow(
        monkeypatch,
        WorkflowOutcome(
            purchase=PurchaseResult(success=True, order_id="ORDER_9"),
            submission=SubmissionResult(success=False, error="publish button missing", retryable=True),
        ),
    )
    job = queue.add_press_release_job(sub["id"])
    memory_store.jobs[job.id]["max_attempts"] = 1

    result = asyncio.run(processor.process_next_job())

    assert result["status"] == "failed"
    stored = memory_store.submissions[sub["id"]]
    assert stored["status"] == "failed"
    assert stored["external_order_id"] == "ORDER_9"
    assert memory_store.jobs[job.id]["status"] == "failed"


def test_email_is_sent_off_the_event_loop_thread(memory_store, monkeypatch):
    threads = []
    monkeypatch.setattr(
        notifications, "send_notification", lambda to, template, data: threads.append(threading.get_ident())
    )
    queue.add_email_job("pr@acme.test", "completion", {"title": "Launch"})

    asyncio.run(processor.process_next_job())

    assert threads and threads[0] != threading.get_ident()
