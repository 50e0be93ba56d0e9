#!/usr/bin/env python3
"""
Async Report Job Worker

Polls Supabase (reports.report_jobs) for queued jobs,
claims them atomically via RPC,
executes report services,
updates status + result metadata.

Registered reports:
  missing_cashups → open trading days with no cash-up session for a site
"""

import os
import asyncio
import logging
from datetime import datetime, timezone

from dotenv import load_dotenv

from services.supabase_client import get_supabase
from services.missing_cashups import compute_missing_cashup_dates


# ─────────────────────────────────────────────────────────────
# Configuration
# ─────────────────────────────────────────────────────────────

load_dotenv()

POLL_INTERVAL_SECONDS = int(os.getenv("REPORT_WORKER_POLL_INTERVAL", "5"))
MISSING_CASHUP_DAYS_BACK = int(os.getenv("MISSING_CASHUP_DAYS_BACK", "365"))


# ─────────────────────────────────────────────────────────────
# Report Dispatcher
# ─────────────────────────────────────────────────────────────

def execute_missing_cashups(parameters: dict):
    """
    Dispatch wrapper for the missing cash-up scan.
    A failed scan raises so the job is marked failed with its message.
    """
    site_id = parameters.get("site_id")
    if not site_id:
        raise ValueError("missing_cashups job requires a 'site_id' parameter")

    days_back = parameters.get("days_back")
    if days_back is None:
        days_back = MISSING_CASHUP_DAYS_BACK
    elif isinstance(days_back, str) and days_back.strip().isdigit():
        days_back = int(days_back)
    # Anything else goes through as-is; the scan rejects non-integers

    logging.info(f"[worker] Missing cash-ups for site {site_id}, last {days_back} days")

    result = compute_missing_cashup_dates(site_id, days_back, client=get_supabase())

    if not result["success"]:
        raise RuntimeError(result["error"])

    return result


REPORT_EXECUTORS = {
    "missing_cashups": execute_missing_cashups,
}


# ─────────────────────────────────────────────────────────────
# Job Lifecycle Helpers
# ─────────────────────────────────────────────────────────────

def claim_next_job():
    """
    Atomically claim the next queued job via RPC.
    """
    resp = get_supabase().rpc("reports.reports_claim_next_job").execute()

    if resp.data:
        return resp.data[0]

    return None


def update_job(job_id: str, *, status: str, result=None, error=None):
    payload = {
        "status": status,
    }

    now_utc = datetime.now(timezone.utc).isoformat()

    if status == "running":
        payload["started_at"] = now_utc

    if status in ("success", "failed", "cancelled"):
        payload["completed_at"] = now_utc

    if result is not None:
        payload["result"] = result

    if error is not None:
        payload["error"] = error

    get_supabase().schema("reports") \
        .table("report_jobs") \
        .update(payload) \
        .eq("id", job_id) \
        .execute()


# ─────────────────────────────────────────────────────────────
# Worker Loop
# ─────────────────────────────────────────────────────────────

async def process_job(job: dict):
    job_id = job["id"]
    report_id = job["report_id"]
    parameters = job.get("parameters") or {}

    logging.info(f"[worker] Processing job {job_id} ({report_id})")

    try:
        update_job(job_id, status="running")

        executor = REPORT_EXECUTORS.get(report_id)
        if not executor:
            raise ValueError(f"No executor registered for report_id='{report_id}'")

        if asyncio.iscoroutinefunction(executor):
            result = await executor(parameters)
        else:
            result = executor(parameters)

        update_job(job_id, status="success", result=result)

        logging.info(f"[worker] Job {job_id} completed successfully.")

    except Exception as e:
        logging.exception(f"[worker] Job {job_id} failed.")
        update_job(job_id, status="failed", error=str(e))


async def worker_loop():
    logging.info("🚀 Report Job Worker started.")

    while True:
        try:
            job = claim_next_job()

            if job:
                await process_job(job)
            else:
                await asyncio.sleep(POLL_INTERVAL_SECONDS)

        except Exception:
            logging.exception("[worker] Unexpected error in worker loop.")
            await asyncio.sleep(POLL_INTERVAL_SECONDS)


# ─────────────────────────────────────────────────────────────
# Entrypoint
# ─────────────────────────────────────────────────────────────

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(worker_loop())
