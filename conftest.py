"""Shared fixtures: an in-memory Supabase fake, a controllable clock and question factories."""
import random
from typing import Any, Callable
from uuid import uuid4

import pytest

from typerating import settings
from typerating.database import DatabaseClient
from typerating.questions import Question


class FakeResponse:
    def __init__(self, data: Any, count: int | None = None) -> None:
        self.data = data
        self.count = count


class FakeQuery:
    """Subset of the supabase-py query builder, evaluated against in-memory rows."""

    def __init__(self, client: "FakeSupabase", table: str) -> None:
        self.client = client
        self.table = table
        self.op = "select"
        self.payload: Any = None
        self.on_conflict = "id"
        self.filters: list[Callable[[dict], bool]] = []
        self._limit: int | None = None
        self._range: tuple[int, int] | None = None
        self._order: tuple[str, bool] | None = None
        self._single = False

    def select(self, *columns: str, **kwargs: Any) -> "FakeQuery":
        self.op = "select"
        return self

    def insert(self, payload: Any) -> "FakeQuery":
        self.op, self.payload = "insert", payload
        return self

    def update(self, payload: dict) -> "FakeQuery":
        self.op, self.payload = "update", payload
        return self

    def upsert(self, payload: Any, on_conflict: str = "id", **kwargs: Any) -> "FakeQuery":
        self.op, self.payload, self.on_conflict = "upsert", payload, on_conflict
        return self

    def delete(self) -> "FakeQuery":
        self.op = "delete"
        return self

    def eq(self, column: str, value: Any) -> "FakeQuery":
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def neq(self, column: str, value: Any) -> "FakeQuery":
        self.filters.append(lambda row: row.get(column) != value)
        return self

    def in_(self, column: str, values: list) -> "FakeQuery":
        allowed = list(values)
        self.filters.append(lambda row: row.get(column) in allowed)
        return self

    def match(self, criteria: dict) -> "FakeQuery":
        for column, value in criteria.items():
            self.eq(column, value)
        return self

    def limit(self, count: int) -> "FakeQuery":
        self._limit = count
        return self

    def range(self, start: int, end: int) -> "FakeQuery":
        self._range = (start, end)
        return self

    def order(self, column: str, desc: bool = False) -> "FakeQuery":
        self._order = (column, desc)
        return self

    def single(self) -> "FakeQuery":
        self._single = True
        return self

    def _matches(self, row: dict) -> bool:
        return all(f(row) for f in self.filters)

    def _check_unique(self, rows: list[dict], candidate: dict) -> None:
        for columns in self.client.unique.get(self.table, []):
            key = tuple(candidate.get(c) for c in columns)
            for row in rows:
                if row is not candidate and tuple(row.get(c) for c in columns) == key:
                    raise RuntimeError(f"duplicate key value violates unique constraint on {columns}")

    def execute(self) -> FakeResponse:
        self.client.calls.append((self.table, self.op))
        if self.table in self.client.fail_tables:
            raise RuntimeError(f"backend unavailable: {self.table}")
        rows = self.client.tables.setdefault(self.table, [])

        if self.op == "select":
            result = [dict(r) for r in rows if self._matches(r)]
            if self._order:
                column, desc = self._order
                result.sort(key=lambda r: str(r.get(column) or ""), reverse=desc)
            if self._range:
                result = result[self._range[0] : self._range[1] + 1]
            if self._limit is not None:
                result = result[: self._limit]
            if self._single:
                return FakeResponse(result[0] if result else None)
            return FakeResponse(result, count=len(result))

        if self.op == "insert":
            payload = self.payload if isinstance(self.payload, list) else [self.payload]
            inserted = []
            for item in payload:
                row = dict(item)
                row.setdefault("id", str(uuid4()))
                self._check_unique(rows + [row], row)
                if any(r.get("id") == row["id"] for r in rows):
                    raise RuntimeError("duplicate key value violates primary key")
                rows.append(row)
                inserted.append(dict(row))
            return FakeResponse(inserted)

        if self.op == "update":
            updated = []
            for row in rows:
                if self._matches(row):
                    row.update(self.payload)
                    updated.append(dict(row))
            return FakeResponse(updated)

        if self.op == "upsert":
            payload = self.payload if isinstance(self.payload, list) else [self.payload]
            keys = [c.strip() for c in self.on_conflict.split(",")]
            seen = set()
            stored = []
            for item in payload:
                key = tuple(item.get(k) for k in keys)
                if key in seen:
                    raise RuntimeError("ON CONFLICT DO UPDATE command cannot affect row a second time")
                seen.add(key)
                existing = next((r for r in rows if tuple(r.get(k) for k in keys) == key), None)
                if existing is not None:
                    existing.update(item)
                    stored.append(dict(existing))
                else:
                    row = dict(item)
                    row.setdefault("id", str(uuid4()))
                    rows.append(row)
                    stored.append(dict(row))
            return FakeResponse(stored)

        if self.op == "delete":
            removed = [r for r in rows if self._matches(r)]
            self.client.tables[self.table] = [r for r in rows if not self._matches(r)]
            return FakeResponse(removed)

        raise ValueError(f"Unsupported operation {self.op}")


class FakeSupabase:
    """In-memory stand-in for supabase.Client."""

    def __init__(self) -> None:
        self.tables: dict[str, list[dict]] = {}
        self.fail_tables: set[str] = set()
        self.calls: list[tuple[str, str]] = []
        self.unique = {settings.MISSED_QUESTIONS_TABLE: [("user_id", "question_id")]}

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def rows(self, name: str) -> list[dict]:
        return self.tables.get(name, [])

    def count_calls(self, table: str, op: str | None = None) -> int:
        return sum(1 for t, o in self.calls if t == table and (op is None or o == op))


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_client() -> FakeSupabase:
    return FakeSupabase()


@pytest.fixture
def database(fake_client: FakeSupabase) -> DatabaseClient:
    return DatabaseClient(fake_client)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


def build_question(
    qid: str,
    category: str = "Electrical",
    aircraft: str = "A320_FAMILY",
    difficulty: str = "basic",
    correct: int = 0,
    text: str | None = None,
) -> Question:
    return Question(
        id=qid,
        text=text or f"Question {qid} about {category}?",
        options=("Option A", "Option B", "Option C", "Option D"),
        correct_answer=correct,
        explanation=f"Explanation for {qid}.",
        aircraft_type=aircraft,
        category=category,
        difficulty=difficulty,
    )


@pytest.fixture
def make_question() -> Callable[..., Question]:
    return build_question


@pytest.fixture
def electrical_bank() -> list[Question]:
    """Five A320 electrical questions plus a few others."""
    bank = [build_question(f"elec-{i}", correct=i % 4) for i in range(5)]
    bank += [
        build_question("hyd-1", category="Hydraulics", correct=1),
        build_question("b737-eng-1", category="Engines", aircraft="B737_FAMILY", difficulty="advanced", correct=2),
        build_question("gen-1", category="Aircraft General", aircraft="GENERAL", difficulty="intermediate", correct=3),
    ]
    return bank
