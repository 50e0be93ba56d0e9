"""
Business Calendar Utilities

Answers one question for the cash-up scan: was a site open on a given date?

IMPORTANT:
- This module works on calendar dates only (no times, no kitchen hours).
- Any object with is_open(site_id, day) -> bool can act as the calendar;
  failures are raised as OracleError.
- Special hours for a date always override the weekly hours.

Two calendars are provided:
    • StaticBusinessCalendar → fixed weekdays + closure/opening exceptions
    • SupabaseBusinessHours  → business_hours / special_hours tables

Weekday numbering:
    Python date.weekday():   Mon=0 … Sun=6   (StaticBusinessCalendar)
    business_hours table:    Sun=0 … Sat=6   (SupabaseBusinessHours)
"""

from datetime import date
import logging
from typing import Dict, Iterable, Optional, Protocol, Tuple

from services.errors import SUPABASE_ERRORS, OracleError


class BusinessOpenOracle(Protocol):
    def is_open(self, site_id: str, day: date) -> bool:
        ...


# ----------------------------
# 1. Static Calendar
# ----------------------------

ALL_WEEKDAYS = (0, 1, 2, 3, 4, 5, 6)


class StaticBusinessCalendar:
    """
    In-memory calendar.

    Closures override everything, special openings open an otherwise
    closed weekday, and otherwise the weekday decides.
    """

    def __init__(
        self,
        open_weekdays: Iterable[int] = ALL_WEEKDAYS,
        closures: Iterable[date] = (),
        special_openings: Iterable[date] = (),
    ) -> None:
        self.open_weekdays = frozenset(open_weekdays)
        self.closures = frozenset(closures)
        self.special_openings = frozenset(special_openings)

    def is_open(self, site_id: str, day: date) -> bool:
        # Closures override everything
        if day in self.closures:
            result = False
        elif day in self.special_openings:
            result = True
        else:
            result = day.weekday() in self.open_weekdays

        logging.debug(f"[calendar] is_open({site_id}, {day}) -> {result}")
        return result


# ----------------------------
# 2. Supabase-backed Calendar
# ----------------------------

def to_day_of_week(d: date) -> int:
    """Python weekday (Mon=0) → business_hours.day_of_week (Sun=0)."""
    return (d.weekday() + 1) % 7


class SupabaseBusinessHours:
    """
    Resolves open/closed from the back-office hours tables.

    Weekly hours are read once per instance. Special hours are read per
    date on first use, or for a whole window up front via prefetch().
    A date with neither a special row nor a weekly row is closed.
    """

    def __init__(self, client) -> None:
        self.client = client
        self._weekly: Optional[Dict[int, bool]] = None
        self._special: Dict[str, bool] = {}
        self._prefetched: Optional[Tuple[date, date]] = None

    def _load_weekly(self) -> Dict[int, bool]:
        if self._weekly is not None:
            return self._weekly

        try:
            resp = (
                self.client.table("business_hours")
                .select("day_of_week, is_closed")
                .order("day_of_week")
                .execute()
            )
        except SUPABASE_ERRORS as e:
            logging.error("[calendar] Failed to fetch business hours: %s", e)
            raise OracleError(f"Failed to fetch business hours: {e}") from e

        self._weekly = {
            int(row["day_of_week"]): bool(row.get("is_closed"))
            for row in (resp.data or [])
        }
        logging.debug(f"[calendar] Loaded weekly hours for {len(self._weekly)} days")
        return self._weekly

    def prefetch(self, start: date, end: date) -> None:
        """Load every special_hours row in [start, end] with a single query."""
        try:
            resp = (
                self.client.table("special_hours")
                .select("date, is_closed")
                .gte("date", start.isoformat())
                .lte("date", end.isoformat())
                .execute()
            )
        except SUPABASE_ERRORS as e:
            logging.error("[calendar] Failed to fetch special hours %s → %s: %s", start, end, e)
            raise OracleError(f"Failed to fetch special hours: {e}") from e

        for row in resp.data or []:
            self._special[str(row["date"])[:10]] = bool(row.get("is_closed"))

        self._prefetched = (start, end)
        logging.info(f"[calendar] Prefetched special hours {start} → {end}")

    def _special_is_closed(self, day: date) -> Optional[bool]:
        key = day.isoformat()
        if key in self._special:
            return self._special[key]

        if self._prefetched and self._prefetched[0] <= day <= self._prefetched[1]:
            return None

        try:
            resp = (
                self.client.table("special_hours")
                .select("date, is_closed")
                .eq("date", key)
                .limit(1)
                .execute()
            )
        except SUPABASE_ERRORS as e:
            logging.error("[calendar] Failed to fetch special hours for %s: %s", key, e)
            raise OracleError(f"Failed to fetch special hours for {key}: {e}") from e

        rows = resp.data or []
        if not rows:
            return None

        self._special[key] = bool(rows[0].get("is_closed"))
        return self._special[key]

    def is_open(self, site_id: str, day: date) -> bool:
        special_closed = self._special_is_closed(day)

        if special_closed is not None:
            result = not special_closed
        else:
            weekly = self._load_weekly()
            dow = to_day_of_week(day)
            result = dow in weekly and not weekly[dow]

        logging.debug(f"[calendar] is_open({site_id}, {day}) -> {result}")
        return result
