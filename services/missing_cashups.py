"""
Missing Cash-up Scan

Finds trading days in a trailing window that have no cash-up session.

Window:
    (today − days_back) … (today − 1), inclusive. Today is never included.
    "Today" is the current date in BUSINESS_TIMEZONE.

Flow:
    1. Enumerate the window.
    2. Load, once, the dates that already have a session for the site.
    3. For each remaining date, ask the business calendar whether the site
       was open. Dates with a session never reach the calendar.
    4. Return the open, unreconciled dates newest-first.

Result shape:
    {"success": True,  "dates": ["2024-06-09", "2024-06-07", ...]}
    {"success": False, "error": "..."}
"""

import os
import logging
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Optional, Set, Tuple
from zoneinfo import ZoneInfo

from services.cashup_sessions import fetch_existing_session_dates
from services.errors import OracleError, StorageError
from services.supabase_client import get_supabase
from scripts.business_calendar import BusinessOpenOracle, SupabaseBusinessHours

BUSINESS_TIMEZONE = os.getenv("BUSINESS_TIMEZONE", "Europe/London")
DEFAULT_DAYS_BACK = 365


def business_today() -> date:
    return datetime.now(ZoneInfo(BUSINESS_TIMEZONE)).date()


# ----------------------------
# 1. Date-range enumeration
# ----------------------------

def window_bounds(days_back: int, today: date) -> Optional[Tuple[date, date]]:
    """Inclusive (start, end) of the window, or None when it is empty."""
    if days_back <= 0:
        return None
    return today - timedelta(days=days_back), today - timedelta(days=1)


def enumerate_dates(days_back: int, today: date) -> List[date]:
    """Every date from (today − days_back) through (today − 1), oldest first."""
    return [today - timedelta(days=offset) for offset in range(days_back, 0, -1)]


# ----------------------------
# 2. Gap filter
# ----------------------------

def find_missing_dates(
    site_id: str,
    dates: Iterable[date],
    existing: Set[str],
    oracle: BusinessOpenOracle,
) -> List[str]:
    """
    Keep dates with no session on which the site was open, newest first.

    The calendar is only consulted for dates without a session. An
    OracleError from the calendar aborts the scan.
    """
    missing = []

    for d in dates:
        iso = d.isoformat()

        if iso in existing:
            continue

        if not oracle.is_open(site_id, d):
            logging.debug(f"[cashup] {iso} closed for site {site_id}, skipping")
            continue

        missing.append(iso)

    missing.reverse()
    return missing


# ----------------------------
# 3. Operation
# ----------------------------

def validate_days_back(days_back) -> Optional[str]:
    # bool is an int subclass; True must not mean a one-day window
    if isinstance(days_back, bool) or not isinstance(days_back, int):
        return f"days_back must be an integer, got {days_back!r}"
    if days_back < 0:
        return f"days_back must not be negative, got {days_back}"
    return None


def compute_missing_cashup_dates(
    site_id: str,
    days_back: int = DEFAULT_DAYS_BACK,
    *,
    client=None,
    oracle: Optional[BusinessOpenOracle] = None,
    today: Optional[date] = None,
) -> Dict:
    """
    Returns {"success": True, "dates": [...]} or {"success": False, "error": "..."}.

    client defaults to the shared Supabase client; oracle defaults to
    SupabaseBusinessHours on that client, prefetched for the window.
    Storage and calendar failures become a failure result; nothing
    partial is ever returned.
    """
    if not site_id:
        return {"success": False, "error": "site_id is required"}

    problem = validate_days_back(days_back)
    if problem:
        return {"success": False, "error": problem}

    if today is None:
        today = business_today()

    bounds = window_bounds(days_back, today)
    if bounds is None:
        logging.info(f"[cashup] Empty window for site {site_id} (days_back={days_back})")
        return {"success": True, "dates": []}

    start, end = bounds
    logging.info(f"[cashup] Scanning site {site_id} for missing cash-ups {start} → {end}")

    try:
        if client is None:
            client = get_supabase()

        existing = fetch_existing_session_dates(client, site_id, start, end)

        if oracle is None:
            oracle = SupabaseBusinessHours(client)
            oracle.prefetch(start, end)

        dates = find_missing_dates(site_id, enumerate_dates(days_back, today), existing, oracle)

    except (StorageError, OracleError) as e:
        logging.exception(f"[cashup] Missing cash-up scan failed for site {site_id}.")
        return {"success": False, "error": str(e)}

    logging.info(f"[cashup] Site {site_id}: {len(dates)} open days without a cash-up")
    return {"success": True, "dates": dates}
