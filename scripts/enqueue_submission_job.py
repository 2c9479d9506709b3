"""
Manually enqueue a submission job for an existing submission.

    python scripts/enqueue_submission_job.py <submission_id> [--skip-purchase] [--dry-run]
"""
import argparse

from dotenv import load_dotenv

load_dotenv(override=True)

from core.database import get_submission, init_db  # noqa: E402
from core.jobs import queue  # noqa: E402

parser = argparse.ArgumentParser(description="Enqueue a press release submission job")
parser.add_argument("submission_id")
parser.add_argument("--skip-purchase", action="store_true", help="payment already settled outside the site")
parser.add_argument("--dry-run", action="store_true", help="fill and preview only; nothing is bought or published")
args = parser.parse_args()

init_db()
submission = get_submission(args.submission_id)
if not submission:
    raise SystemExit(f"Submission {args.submission_id} not found")

job = queue.add_press_release_job(
    submission["id"],
    submission.get("package_type") or "basic",
    test_mode=args.dry_run,
    skip_purchase=args.skip_purchase,
    payment_intent_id=submission.get("payment_intent_id"),
)
print(f"[enqueue] job {job.id} queued for submission {submission['id']} ({submission.get('title')})")
