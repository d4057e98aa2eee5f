"""Fake in-memory Supabase client for dialectic behavioral testing.

Supports the subset of the supabase-py query builder the app uses and records
every executed query so tests can assert which tables were (not) touched.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple
from uuid import uuid4


@dataclass
class FakeResponse:
    data: List[Dict[str, Any]]
    count: int | None = None


@dataclass
class QueryRecord:
    """One executed query."""

    table: str
    op: str
    filters: List[Tuple[str, str, Any]] = field(default_factory=list)
    payload: Any = None


def _column_value(row: Dict[str, Any], column: str) -> Tuple[Any, bool]:
    """Resolve plain columns and `col->>key` JSON text paths. Returns (value, is_text_path)."""
    if "->>" in column:
        base, key = column.split("->>", 1)
        container = row.get(base)
        if not isinstance(container, dict) or key not in container:
            return None, True
        value = container[key]
        return (None if value is None else str(value)), True
    return row.get(column), False


def _matches(row: Dict[str, Any], filters: List[Tuple[str, str, Any]]) -> bool:
    for op, column, expected in filters:
        value, is_text = _column_value(row, column)
        if is_text and expected is not None and op in ("eq", "neq"):
            expected = str(expected)
        if op == "eq" and value != expected:
            return False
        if op == "neq" and value == expected:
            return False
        if op == "in" and value not in expected:
            return False
    return True


class FakeQuery:
    """Chainable query builder; nothing happens until execute()."""

    def __init__(self, client: "FakeSupabase", table: str):
        self.client = client
        self.table = table
        self.op = "select"
        self.payload: Any = None
        self.filters: List[Tuple[str, str, Any]] = []
        self.order_by: List[Tuple[str, bool]] = []
        self.limit_count: int | None = None

    def select(self, columns: str = "*", count: str | None = None) -> "FakeQuery":
        self.op = "select"
        return self

    def insert(self, payload: Dict[str, Any]) -> "FakeQuery":
        self.op = "insert"
        self.payload = payload
        return self

    def update(self, payload: Dict[str, Any]) -> "FakeQuery":
        self.op = "update"
        self.payload = payload
        return self

    def eq(self, column: str, value: Any) -> "FakeQuery":
        self.filters.append(("eq", column, value))
        return self

    def neq(self, column: str, value: Any) -> "FakeQuery":
        self.filters.append(("neq", column, value))
        return self

    def in_(self, column: str, values: List[Any]) -> "FakeQuery":
        self.filters.append(("in", column, list(values)))
        return self

    def order(self, column: str, desc: bool = False) -> "FakeQuery":
        self.order_by.append((column, desc))
        return self

    def limit(self, count: int) -> "FakeQuery":
        self.limit_count = count
        return self

    def execute(self) -> FakeResponse:
        self.client.queries.append(
            QueryRecord(table=self.table, op=self.op, filters=list(self.filters), payload=self.payload)
        )

        error = self.client.errors.get((self.table, self.op))
        if error is not None:
            raise error

        rows = self.client.tables.setdefault(self.table, [])

        if self.op == "insert":
            row = dict(self.payload)
            row.setdefault("id", str(uuid4()))
            rows.append(row)
            return FakeResponse(data=[dict(row)])

        matched = [row for row in rows if _matches(row, self.filters)]

        if self.op == "update":
            for row in matched:
                row.update(self.payload)
            return FakeResponse(data=[dict(row) for row in matched])

        for column, desc in reversed(self.order_by):
            matched.sort(key=lambda r: (r.get(column) is None, r.get(column) or ""), reverse=desc)
        if self.limit_count is not None:
            matched = matched[: self.limit_count]
        return FakeResponse(data=[dict(row) for row in matched], count=len(matched))


class FakeBucket:
    def __init__(self, storage: "FakeStorage", bucket: str):
        self.storage = storage
        self.bucket = bucket

    def download(self, path: str) -> bytes:
        self.storage.downloads.append((self.bucket, path))
        error = self.storage.download_errors.get((self.bucket, path))
        if error is not None:
            raise error
        key = (self.bucket, path)
        if key not in self.storage.objects:
            raise Exception(f"Object not found: {self.bucket}/{path}")
        return self.storage.objects[key]

    def upload(self, path: str, file: bytes, file_options: Dict[str, str] | None = None) -> Dict[str, str]:
        options = file_options or {}
        key = (self.bucket, path)
        if self.storage.upload_error is not None:
            raise self.storage.upload_error
        if key in self.storage.objects and options.get("upsert") != "true":
            raise Exception("The resource already exists (409)")
        self.storage.objects[key] = file
        self.storage.uploads.append((self.bucket, path, options.get("content-type")))
        return {"path": path}

    def remove(self, paths: List[str]) -> List[Dict[str, str]]:
        for path in paths:
            self.storage.objects.pop((self.bucket, path), None)
            self.storage.removed.append((self.bucket, path))
        return [{"name": p} for p in paths]


class FakeStorage:
    def __init__(self):
        self.objects: Dict[Tuple[str, str], bytes] = {}
        self.downloads: List[Tuple[str, str]] = []
        self.uploads: List[Tuple[str, str, str | None]] = []
        self.removed: List[Tuple[str, str]] = []
        self.download_errors: Dict[Tuple[str, str], Exception] = {}
        self.upload_error: Exception | None = None

    def from_(self, bucket: str) -> FakeBucket:
        return FakeBucket(self, bucket)

    def put(self, bucket: str, path: str, content: str | bytes) -> None:
        self.objects[(bucket, path)] = content.encode("utf-8") if isinstance(content, str) else content


class FakeSupabase:
    """In-memory stand-in for supabase.Client."""

    def __init__(self, tables: Dict[str, List[Dict[str, Any]]] | None = None):
        self.tables: Dict[str, List[Dict[str, Any]]] = {
            name: [dict(row) for row in rows] for name, rows in (tables or {}).items()
        }
        self.queries: List[QueryRecord] = []
        self.errors: Dict[Tuple[str, str], Exception] = {}
        self.storage = FakeStorage()

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def fail(self, table: str, op: str, error: Exception) -> None:
        """Make every `op` on `table` raise `error`."""
        self.errors[(table, op)] = error

    def queries_for(self, table: str, op: str | None = None) -> List[QueryRecord]:
        return [q for q in self.queries if q.table == table and (op is None or q.op == op)]

    def queried_tables(self) -> List[str]:
        return [q.table for q in self.queries]
