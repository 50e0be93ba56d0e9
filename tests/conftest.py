from datetime import date
from types import SimpleNamespace
from typing import Dict, List

import httpx
import pytest
from postgrest.exceptions import APIError

from scripts.business_calendar import StaticBusinessCalendar


class FakeQuery:
    """Chainable stand-in for the supabase-py table query builder."""

    def __init__(self, client: "FakeSupabase", table: str) -> None:
        self.client = client
        self.table = table
        self.filters = []
        self.order_by = None
        self.bounds = None
        self.max_rows = None

    def select(self, columns: str) -> "FakeQuery":
        self.columns = [c.strip() for c in columns.split(",")]
        return self

    def eq(self, column, value) -> "FakeQuery":
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def gte(self, column, value) -> "FakeQuery":
        self.filters.append(lambda row: str(row.get(column)) >= value)
        return self

    def lte(self, column, value) -> "FakeQuery":
        # Compare on the date part so timestamp strings still match
        self.filters.append(lambda row: str(row.get(column))[:10] <= value)
        return self

    def order(self, column, desc=False) -> "FakeQuery":
        self.order_by = (column, desc)
        return self

    def range(self, start: int, end: int) -> "FakeQuery":
        self.bounds = (start, end)
        return self

    def limit(self, count: int) -> "FakeQuery":
        self.max_rows = count
        return self

    def execute(self) -> SimpleNamespace:
        self.client.executed.append(self.table)

        if self.table in self.client.failing_tables:
            raise APIError({"message": f"{self.table} unavailable", "code": "500"})
        if self.table in self.client.unreachable_tables:
            raise httpx.ConnectError("connection refused")

        rows = [r for r in self.client.rows.get(self.table, []) if all(f(r) for f in self.filters)]

        if self.order_by:
            column, desc = self.order_by
            rows.sort(key=lambda r: str(r.get(column)), reverse=desc)
        if self.bounds:
            rows = rows[self.bounds[0]:self.bounds[1] + 1]
        if self.max_rows is not None:
            rows = rows[:self.max_rows]

        return SimpleNamespace(data=[{c: r.get(c) for c in self.columns} for r in rows])


class FakeSupabase:
    def __init__(self, rows: Dict[str, List[dict]] = None, failing_tables=(), unreachable_tables=()) -> None:
        self.rows = rows or {}
        self.failing_tables = set(failing_tables)
        self.unreachable_tables = set(unreachable_tables)
        self.executed: List[str] = []

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def count(self, table: str) -> int:
        return self.executed.count(table)


class CountingCalendar(StaticBusinessCalendar):
    """Static calendar that records every date it was asked about."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.asked: List[date] = []

    def is_open(self, site_id: str, day: date) -> bool:
        self.asked.append(day)
        return super().is_open(site_id, day)


@pytest.fixture
def site_id() -> str:
    return "site-1"


@pytest.fixture
def today() -> date:
    return date(2024, 6, 10)


@pytest.fixture
def fake_supabase():
    def factory(**kwargs) -> FakeSupabase:
        return FakeSupabase(**kwargs)

    return factory


@pytest.fixture
def sessions_for():
    def factory(site_id: str, *dates: str) -> List[dict]:
        return [{"site_id": site_id, "session_date": d} for d in dates]

    return factory


@pytest.fixture
def counting_calendar():
    def factory(**kwargs) -> CountingCalendar:
        return CountingCalendar(**kwargs)

    return factory
