"""
Watchdog for cron: put jobs stuck in `processing` back on the queue.

    python scripts/requeue_stuck_jobs.py [minutes]
"""
import sys

from dotenv import load_dotenv

load_dotenv(override=True)

from core.jobs import queue  # noqa: E402
from core.jobs.models import stuck_job_minutes  # noqa: E402

minutes = int(sys.argv[1]) if len(sys.argv) > 1 else stuck_job_minutes()
ids = queue.requeue_stuck_jobs(minutes)

print(f"[requeue] {len(ids)} job(s) stuck for more than {minutes} minutes reset.")
for job_id in ids:
    print(" -", job_id)
