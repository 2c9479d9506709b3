import argparse
import asyncio
import logging
import os
from typing import Any, Dict, List, Optional

import httpx
from dotenv import load_dotenv

# Load `.env` for local/dev runs (override=True so updates take effect after restart).
load_dotenv(override=True)

from core.database import init_db  # noqa: E402
from worker import processor  # noqa: E402

# -------- CONFIG --------
JOB_INTERVAL_SECONDS = int(os.getenv("JOB_INTERVAL_SECONDS", "60"))
# When set, each tick POSTs here instead of processing in-process.
JOB_PROCESS_URL = os.getenv("JOB_PROCESS_URL") or None
ADMIN_API_TOKEN = os.getenv("ADMIN_API_TOKEN")
HTTP_TIMEOUT_SECONDS = float(os.getenv("JOB_PROCESS_TIMEOUT_SECONDS", "900"))
# ------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
log = logging.getLogger("worker")


async def trigger_remote(url: str) -> Dict[str, Any]:
    """Ask a running API process to do one tick."""
    headers = {"X-Admin-Token": ADMIN_API_TOKEN} if ADMIN_API_TOKEN else {}
    async with httpx.AsyncClient(timeout=HTTP_TIMEOUT_SECONDS) as client:
        resp = await client.post(url, headers=headers)
        resp.raise_for_status()
        return resp.json()


async def run_once() -> Dict[str, Any]:
    """Do one tick: claim and process at most one job."""
    if JOB_PROCESS_URL:
        result = await trigger_remote(JOB_PROCESS_URL)
    else:
        result = await processor.process_next_job()

    if not result.get("processed"):
        log.info("No jobs to process.")
    elif result.get("success"):
        log.info("Job processed", extra={"job_id": result.get("job_id"), "job_type": result.get("job_type")})
    else:
        log.warning(
            "Job did not succeed",
            extra={"job_id": result.get("job_id"), "status": result.get("status"), "error": result.get("error")},
        )
    return result


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="BravaPress job worker")
    parser.add_argument("--once", action="store_true", help="process a single tick and exit")
    return parser.parse_args(argv)


async def main(argv: Optional[List[str]] = None) -> None:
    args = _parse_args(argv)
    if not JOB_PROCESS_URL:
        init_db()

    if args.once:
        await run_once()
        return

    log.info(
        "Worker started",
        extra={"interval_seconds": JOB_INTERVAL_SECONDS, "remote": bool(JOB_PROCESS_URL)},
    )
    while True:
        try:
            await run_once()
        except Exception:
            log.exception("Error during job tick")
        await asyncio.sleep(JOB_INTERVAL_SECONDS)


if __name__ == "__main__":
    asyncio.run(main())
