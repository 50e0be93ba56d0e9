"""
Cash-up session lookups.

Only existence matters here: which dates in a window already have a
cashup_sessions row for a site. The full session (breakdowns, cash counts,
totals) is never loaded.
"""

import os
import logging
from datetime import date
from pathlib import Path
from typing import Set

from dotenv import load_dotenv

from services.errors import SUPABASE_ERRORS, StorageError

# Ensure .env is loaded from the project root (one level above /services)
env_path = Path(__file__).resolve().parents[1] / ".env"
load_dotenv(env_path)

SESSIONS_TABLE = "cashup_sessions"

# PostgREST caps responses at 1000 rows by default
DEFAULT_PAGE_SIZE = 1000
SESSION_PAGE_SIZE = int(os.getenv("SESSION_PAGE_SIZE", str(DEFAULT_PAGE_SIZE)))


def session_page_size() -> int:
    if SESSION_PAGE_SIZE <= 0:
        logging.warning(
            "[cashup] SESSION_PAGE_SIZE=%d is not positive; using %d",
            SESSION_PAGE_SIZE, DEFAULT_PAGE_SIZE,
        )
        return DEFAULT_PAGE_SIZE
    return SESSION_PAGE_SIZE


def fetch_existing_session_dates(client, site_id: str, start: date, end: date) -> Set[str]:
    """Return the YYYY-MM-DD dates in [start, end] that have a session for site_id.

    Pages through the table with .range() until a short page comes back.
    Any Supabase failure is raised as StorageError; nothing partial is
    returned.
    """
    existing = set()
    offset = 0
    page_size = session_page_size()

    page = 1
    while True:
        logging.debug(f"[cashup] Fetching session dates page {page} for site {site_id}")
        try:
            resp = (
                client.table(SESSIONS_TABLE)
                .select("session_date")
                .eq("site_id", site_id)
                .gte("session_date", start.isoformat())
                .lte("session_date", end.isoformat())
                .order("session_date")
                .range(offset, offset + page_size - 1)
                .execute()
            )
        except SUPABASE_ERRORS as e:
            logging.error("[cashup] Session lookup failed for site %s: %s", site_id, e)
            raise StorageError(f"Failed to load cash-up sessions for site {site_id}: {e}") from e

        rows = resp.data or []
        for row in rows:
            session_date = row.get("session_date")
            if not session_date:
                continue
            # Timestamps come back as e.g. 2024-06-08T00:00:00; keep the date part
            existing.add(str(session_date)[:10])

        if len(rows) < page_size:
            break

        offset += page_size
        page += 1

    logging.info(
        "[cashup] Site %s has %d cash-up sessions between %s and %s",
        site_id, len(existing), start, end,
    )
    return existing
