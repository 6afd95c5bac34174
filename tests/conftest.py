"""Shared fakes for the Supabase client and the Groq client."""

import asyncio
import uuid
from pathlib import Path
from types import SimpleNamespace
from typing import Any, Callable, Optional

import pytest

from config.settings import StorageConfig
from kagai.loaders.local_store import LocalStore
from kagai.loaders.supabase_store import SupabaseStore


class FakeAPIError(Exception):
    """Mimics postgrest's APIError: carries ``code`` and ``message``."""

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


class FakeQuery:
    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table = table
        self.op = "select"
        self.payload: Any = None
        self.filters: list[Callable[[dict], bool]] = []
        self.order_by: Optional[tuple] = None
        self.row_limit: Optional[int] = None
        self.want_single = False

    def select(self, *_columns):
        return self

    def insert(self, payload):
        self.op, self.payload = "insert", payload
        return self

    def update(self, payload):
        self.op, self.payload = "update", payload
        return self

    def delete(self):
        self.op = "delete"
        return self

    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def gt(self, column, value):
        self.filters.append(lambda row: (row.get(column) or 0) > value)
        return self

    def in_(self, column, values):
        self.filters.append(lambda row: row.get(column) in values)
        return self

    def order(self, column, desc=False):
        self.order_by = (column, desc)
        return self

    def limit(self, n):
        self.row_limit = n
        return self

    def single(self):
        self.want_single = True
        return self

    def execute(self):
        self.db.log.append((self.op, self.table))
        if self.table in self.db.missing_tables:
            raise FakeAPIError("42P01", f'relation "public.{self.table}" does not exist')
        if self.table in self.db.failing_tables:
            raise FakeAPIError("500", f"{self.table} is unavailable")

        rows = self.db.tables.setdefault(self.table, [])

        if self.op == "insert":
            records = self.payload if isinstance(self.payload, list) else [self.payload]
            inserted = []
            for record in records:
                row = dict(record)
                if not row.get("id"):
                    row["id"] = str(uuid.uuid4())
                row.setdefault("created_at", f"2024-01-01T00:00:{len(rows):02d}")
                rows.append(row)
                inserted.append(dict(row))
            return SimpleNamespace(data=inserted)

        matched = [row for row in rows if all(f(row) for f in self.filters)]

        if self.op == "update":
            for row in matched:
                row.update(self.payload)
            return SimpleNamespace(data=[dict(r) for r in matched])

        if self.op == "delete":
            self.db.tables[self.table] = [r for r in rows if r not in matched]
            return SimpleNamespace(data=[dict(r) for r in matched])

        if self.order_by:
            column, desc = self.order_by
            matched = sorted(matched, key=lambda r: str(r.get(column) or ""), reverse=desc)
        if self.row_limit is not None:
            matched = matched[: self.row_limit]
        if self.want_single:
            if len(matched) != 1:
                raise FakeAPIError("PGRST116", "JSON object requested, multiple (or no) rows returned")
            return SimpleNamespace(data=dict(matched[0]))
        return SimpleNamespace(data=[dict(r) for r in matched])


class FakeBucket:
    def __init__(self, storage: "FakeStorage", name: str):
        self.storage = storage
        self.name = name

    def upload(self, path, data, file_options=None):
        if self.storage.fail_uploads:
            raise RuntimeError("storage unavailable")
        self.storage.objects[(self.name, path)] = (data, file_options)
        return SimpleNamespace(path=path)

    def get_public_url(self, path):
        return f"https://fake.supabase.co/storage/v1/object/public/{self.name}/{path}"

    def remove(self, paths):
        for path in paths:
            self.storage.objects.pop((self.name, path), None)


class FakeStorage:
    def __init__(self):
        self.objects: dict = {}
        self.fail_uploads = False

    def from_(self, bucket):
        return FakeBucket(self, bucket)


class FakeAuth:
    def __init__(self):
        self.tokens: dict[str, str] = {}

    def get_user(self, token):
        if token not in self.tokens:
            raise RuntimeError("invalid JWT")
        return SimpleNamespace(user=SimpleNamespace(id=self.tokens[token]))


class FakeSupabase:
    """In-memory stand-in for ``supabase.Client`` covering the calls SupabaseStore makes."""

    def __init__(self):
        self.tables: dict[str, list[dict]] = {}
        self.missing_tables: set[str] = set()
        self.failing_tables: set[str] = set()
        self.log: list[tuple] = []
        self.storage = FakeStorage()
        self.auth = FakeAuth()

    def table(self, name):
        return FakeQuery(self, name)

    def seed(self, table: str, *rows: dict) -> None:
        self.tables.setdefault(table, []).extend(dict(r) for r in rows)


class FakeAI:
    """Stand-in for GroqClient returning canned responses."""

    def __init__(self, response: str = "", delay: float = 0.0, error: Optional[Exception] = None):
        self.response = response
        self.delay = delay
        self.error = error
        self.calls: list[dict] = []

    async def _answer(self, **call) -> str:
        self.calls.append(call)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.response

    async def generate(self, prompt, **kwargs):
        return await self._answer(kind="generate", prompt=prompt, **kwargs)

    async def generate_with_image(self, prompt, image, **kwargs):
        return await self._answer(kind="image", prompt=prompt, image=image, **kwargs)

    async def chat(self, messages, **kwargs):
        return await self._answer(kind="chat", messages=messages, **kwargs)


@pytest.fixture
def local_store(tmp_path: Path) -> LocalStore:
    return LocalStore(StorageConfig(base_dir=tmp_path / "local"))


@pytest.fixture
def fake_db() -> FakeSupabase:
    return FakeSupabase()


@pytest.fixture
def store(fake_db: FakeSupabase, local_store: LocalStore) -> SupabaseStore:
    return SupabaseStore(client=fake_db, local_store=local_store)


@pytest.fixture
def fake_ai() -> FakeAI:
    return FakeAI()


@pytest.fixture
def make_ai() -> Callable[..., FakeAI]:
    return FakeAI
