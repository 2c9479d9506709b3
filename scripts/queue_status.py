"""
Print job counts grouped by status and type.
"""
from dotenv import load_dotenv

load_dotenv(override=True)

from core.jobs import queue  # noqa: E402

rows = queue.queue_status()
summary = queue.queue_summary(rows)

print("\nQueue:")
if not rows:
    print(" (empty)")
for r in rows:
    print(f" - {r['status']:<11} {r['type']:<26} {r['count']:>5}  oldest={r['oldest_job']}")

print("\nTotals:")
for status, count in summary.items():
    print(f" - {status}: {count}")
