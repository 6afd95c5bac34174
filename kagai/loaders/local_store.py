"""
Local JSON storage.

Used for shopping carts and as a fallback when a Supabase table
(``orders``, ``wardrobe_items``) does not exist yet.
"""

import asyncio
import json
import re
import uuid
from pathlib import Path
from typing import Any, Optional

import aiofiles
from rich.console import Console

from config.settings import StorageConfig, config
from kagai.models import utc_now

console = Console()


class LocalStore:
    """Stores tables as JSON arrays and single values as JSON blobs under ``base_dir``."""

    def __init__(self, storage_config: Optional[StorageConfig] = None):
        self.config = storage_config or config.storage
        self.config.ensure_dirs()
        self.base_dir: Path = self.config.base_dir
        self._lock = asyncio.Lock()

    def _sanitize(self, name: str) -> str:
        """Create a safe filename from a table or key name."""
        name = re.sub(r"[^\w\-]", "_", name)
        return name[:100]

    def _path(self, name: str) -> Path:
        return self.base_dir / f"{self._sanitize(name)}.json"

    async def _read_json(self, path: Path, default: Any) -> Any:
        if not path.exists():
            return default
        async with aiofiles.open(path, "r", encoding="utf-8") as f:
            raw = await f.read()
        if not raw.strip():
            return default
        return json.loads(raw)

    async def _write_json(self, path: Path, data: Any) -> None:
        async with aiofiles.open(path, "w", encoding="utf-8") as f:
            await f.write(json.dumps(data, indent=2, ensure_ascii=False, default=str))

    async def append_record(self, table: str, record: dict) -> dict:
        """Append a row to ``table``, assigning ``id`` and ``created_at`` if missing."""
        row = dict(record)
        row.setdefault("id", str(uuid.uuid4()))
        row.setdefault("created_at", utc_now())

        async with self._lock:
            path = self._path(table)
            rows = await self._read_json(path, [])
            rows.append(row)
            await self._write_json(path, rows)

        console.print(f"[dim]Saved {table} row locally: {row['id']}[/dim]")
        return row

    async def read_records(self, table: str, **filters: Any) -> list[dict]:
        """Return rows of ``table`` whose fields equal every given filter."""
        rows = await self._read_json(self._path(table), [])
        return [
            row for row in rows if all(row.get(key) == value for key, value in filters.items())
        ]

    async def read_key(self, key: str, default: Any = None) -> Any:
        return await self._read_json(self._path(key), default)

    async def write_key(self, key: str, value: Any) -> None:
        async with self._lock:
            await self._write_json(self._path(key), value)

    async def delete_key(self, key: str) -> bool:
        path = self._path(key)
        if not path.exists():
            return False
        path.unlink()
        return True
