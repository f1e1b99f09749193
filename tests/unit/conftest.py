"""
Shared fixtures for unit tests.

FakeSupabase mimics the subset of the supabase-py query builder the code
uses (table/select/insert/update/upsert/eq/order/limit/execute) over plain
in-memory lists.
"""

import os
import sys
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import pytest

project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), "../.."))
sys.path.insert(0, os.path.join(project_root, "metis_clew", "src"))
sys.path.insert(0, os.path.join(project_root, "backend"))


class FakeQuery:
    def __init__(self, db: "FakeSupabase", name: str):
        self.db = db
        self.name = name
        self.op = "select"
        self.payload: Any = None
        self.on_conflict: Optional[str] = None
        self.filters: List[tuple] = []
        self._order: Optional[tuple] = None
        self._limit: Optional[int] = None

    def select(self, *columns):
        return self

    def insert(self, payload):
        self.op, self.payload = "insert", payload
        return self

    def update(self, values):
        self.op, self.payload = "update", values
        return self

    def upsert(self, payload, on_conflict=None):
        self.op, self.payload, self.on_conflict = "upsert", payload, on_conflict
        return self

    def eq(self, column, value):
        self.filters.append((column, value))
        return self

    def order(self, column, desc=False):
        self._order = (column, desc)
        return self

    def limit(self, count):
        self._limit = count
        return self

    def _matches(self, row: Dict[str, Any]) -> bool:
        return all(row.get(column) == value for column, value in self.filters)

    def _insert_row(self, rows, payload):
        row = dict(payload)
        row.setdefault("id", f"{self.name}-{len(rows) + 1}")
        rows.append(row)
        return row

    def execute(self):
        if self.name in self.db.failing_tables:
            raise RuntimeError("Database connection failed")

        self.db.calls.append({
            "table": self.name,
            "op": self.op,
            "payload": self.payload,
            "on_conflict": self.on_conflict,
        })
        rows = self.db.tables.setdefault(self.name, [])

        if self.op == "insert":
            return SimpleNamespace(data=[dict(self._insert_row(rows, self.payload))])

        if self.op == "update":
            updated = []
            for row in rows:
                if self._matches(row):
                    row.update(self.payload)
                    updated.append(dict(row))
            return SimpleNamespace(data=updated)

        if self.op == "upsert":
            keys = (self.on_conflict or "id").split(",")
            for row in rows:
                if all(row.get(key) == self.payload.get(key) for key in keys):
                    row.update(self.payload)
                    return SimpleNamespace(data=[dict(row)])
            return SimpleNamespace(data=[dict(self._insert_row(rows, self.payload))])

        result = [dict(row) for row in rows if self._matches(row)]
        if self._order:
            column, desc = self._order
            result.sort(key=lambda row: row.get(column) or 0, reverse=desc)
        if self._limit is not None:
            result = result[:self._limit]
        return SimpleNamespace(data=result)


class FakeSupabase:
    def __init__(self, tables: Optional[Dict[str, List[Dict[str, Any]]]] = None):
        self.tables = tables or {}
        self.calls: List[Dict[str, Any]] = []
        self.failing_tables = set()

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def calls_for(self, table: str, op: Optional[str] = None) -> List[Dict[str, Any]]:
        return [c for c in self.calls if c["table"] == table and (op is None or c["op"] == op)]


@pytest.fixture
def fake_supabase():
    return FakeSupabase()


VALID_EXPLANATION = {
    "whatItDoes": "This function calculates the factorial of a number using recursion.",
    "whyItMatters": "Understanding recursion is fundamental for algorithm design.",
    "keyConcepts": ["recursion", "base case", "function calls"],
    "relatedPatterns": ["dynamic programming", "memoization"],
}


@pytest.fixture
def valid_explanation():
    return dict(VALID_EXPLANATION)
