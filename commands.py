# Quick reference commands (run from repo root). These are comments only; copy/paste as needed.

# Install the package with test extras, then the Chromium build Playwright drives
# python -m pip install -e ".[test]"
# python -m playwright install chromium

# Run the full test suite (Postgres tests skip unless DATABASE_URL is set)
# python -m pytest

# Run focused test files
# python -m pytest tests/test_processor.py tests/test_workflow.py
# python -m pytest tests/test_api_routes.py tests/test_payment_webhook.py
# python -m pytest tests/test_locators.py tests/test_retry.py tests/test_browser_driver.py
# DATABASE_URL=postgresql://localhost/bravapress_test python -m pytest tests/test_jobs_store.py tests/test_submissions_store.py

# Start the API locally (with env vars loaded)
# python -m dotenv run -- python -m uvicorn app.api:app --reload

# Run the worker loop (in-process), or a single tick
# python -m dotenv run -- python main.py
# python -m dotenv run -- python -m worker.main --once

# Drive a running API instead of processing in-process
# JOB_PROCESS_URL=http://localhost:8000/api/jobs/process python -m worker.main

# Trigger one tick over HTTP
# curl -X POST -H "X-Admin-Token: $ADMIN_API_TOKEN" http://localhost:8000/api/jobs/process

# Inspect and nudge the queue
# python scripts/queue_status.py
# python scripts/requeue_stuck_jobs.py 30
# python scripts/enqueue_submission_job.py <submission_id> --skip-purchase
# python scripts/enqueue_submission_job.py <submission_id> --dry-run
