"""Shared fixtures: an in-memory stand-in for the Supabase client."""

import os
from datetime import datetime
from types import SimpleNamespace

import pytest

os.environ.setdefault("LOG_TO_FILE", "false")

from scripts.lib.config import get_settings
from scripts.scoring.rules_config import load_fit_config, load_intent_config


def _comparable(value):
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return value
    return value


class FakeQuery:
    """Chainable query over one in-memory table."""

    def __init__(self, db, table):
        self.db = db
        self.table = table
        self.filters = []
        self.order_by = None
        self.desc = False
        self.start = 0
        self.stop = None
        self.action = "select"
        self.payload = None
        self.on_conflict = None
        self.count = None
        self.head = False

    # ── filters ──
    def select(self, *_columns, count=None, head=False):
        self.count = count
        self.head = head
        return self

    def eq(self, column, value):
        self.filters.append(lambda r: r.get(column) == value)
        return self

    def gt(self, column, value):
        self.filters.append(
            lambda r: r.get(column) is not None and _comparable(r[column]) > _comparable(value)
        )
        return self

    def gte(self, column, value):
        self.filters.append(
            lambda r: r.get(column) is not None and _comparable(r[column]) >= _comparable(value)
        )
        return self

    def lte(self, column, value):
        self.filters.append(
            lambda r: r.get(column) is not None and _comparable(r[column]) <= _comparable(value)
        )
        return self

    def or_(self, expression):
        clauses = []
        for part in expression.split(","):
            column, op, value = part.split(".", 2)
            if op == "is" and value == "null":
                clauses.append(lambda r, c=column: r.get(c) is None)
            else:
                clauses.append(lambda r, c=column, v=value: str(r.get(c)) == v)
        self.filters.append(lambda r: any(clause(r) for clause in clauses))
        return self

    def order(self, column, desc=False):
        self.order_by = column
        self.desc = desc
        return self

    def limit(self, n):
        self.stop = self.start + n
        return self

    def range(self, start, end):
        self.start = start
        self.stop = end + 1
        return self

    # ── writes ──
    def insert(self, payload):
        self.action = "insert"
        self.payload = payload
        return self

    def update(self, payload):
        self.action = "update"
        self.payload = payload
        return self

    def upsert(self, payload, on_conflict=None):
        self.action = "upsert"
        self.payload = payload
        self.on_conflict = on_conflict
        return self

    def _matching(self):
        return [r for r in self.db.rows(self.table) if all(f(r) for f in self.filters)]

    def execute(self):
        if self.table in self.db.failing:
            raise RuntimeError(f"{self.table} unavailable")

        rows = self.db.rows(self.table)
        if self.action == "insert":
            new = self.payload if isinstance(self.payload, list) else [self.payload]
            rows.extend(dict(r) for r in new)
            return SimpleNamespace(data=[dict(r) for r in new])

        if self.action == "update":
            matched = self._matching()
            for row in matched:
                row.update(self.payload)
            return SimpleNamespace(data=matched)

        if self.action == "upsert":
            key = self.on_conflict
            existing = next((r for r in rows if r.get(key) == self.payload.get(key)), None)
            if existing is not None:
                existing.update(self.payload)
            else:
                rows.append(dict(self.payload))
            return SimpleNamespace(data=[self.payload])

        data = self._matching()
        if self.count == "exact" and self.head:
            return SimpleNamespace(data=[], count=len(data))
        if self.order_by:
            data.sort(key=lambda r: _comparable(r.get(self.order_by)), reverse=self.desc)
        data = data[self.start:self.stop]
        return SimpleNamespace(data=[dict(r) for r in data], count=len(data))


class FakeSupabase:
    def __init__(self, tables=None):
        self.tables = {name: [dict(r) for r in rows] for name, rows in (tables or {}).items()}
        self.failing = set()
        self.auth = SimpleNamespace(admin=SimpleNamespace(list_users=lambda **kw: []))
        self.storage = SimpleNamespace(list_buckets=lambda: [])

    def rows(self, table):
        return self.tables.setdefault(table, [])

    def table(self, name):
        return FakeQuery(self, name)


@pytest.fixture
def fake_db():
    return FakeSupabase()


@pytest.fixture(autouse=True)
def fresh_settings():
    """Each test sees the environment as patched, without cached config."""
    get_settings.cache_clear()
    load_intent_config.cache_clear()
    load_fit_config.cache_clear()
    yield
    get_settings.cache_clear()
    load_intent_config.cache_clear()
    load_fit_config.cache_clear()
