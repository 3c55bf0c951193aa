"""
Key-value storage backends.

Progress records and suspended lesson sessions are persisted as JSON
values under string keys. Writes are last-write-wins.

Backends:
- MemoryStorage: in-process dict (tests, throwaway sessions)
- JsonFileStorage: one JSON file per key under a directory
- SqlStorage: a key/value table through SQLAlchemy (SQLite by default)
"""

from __future__ import annotations

import asyncio
import copy
import json
import re
from pathlib import Path
from typing import Any, Protocol

from loguru import logger
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from linework.config import Settings, get_settings
from linework.errors import PersistenceError


class Storage(Protocol):
    """Async key-value store for JSON-serializable values."""

    async def get(self, key: str) -> Any | None:
        """Value stored under key, or None when absent."""
        ...

    async def set(self, key: str, value: Any) -> None:
        """Store value under key. Raises PersistenceError on failure."""
        ...

    async def delete(self, key: str) -> None:
        """Remove key if present."""
        ...


class MemoryStorage:
    """Dict-backed storage. Values are copied in and out like a real store."""

    def __init__(self) -> None:
        self._data: dict[str, Any] = {}

    async def get(self, key: str) -> Any | None:
        value = self._data.get(key)
        return copy.deepcopy(value)

    async def set(self, key: str, value: Any) -> None:
        try:
            # Reject anything a persistent backend could not store
            json.dumps(value)
        except (TypeError, ValueError) as e:
            raise PersistenceError(key, str(e)) from e
        self._data[key] = copy.deepcopy(value)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._data)


_UNSAFE = re.compile(r"[^A-Za-z0-9_.-]")


class JsonFileStorage:
    """
    One JSON file per key.

    Keys like 'progress:default' become 'progress_default.json' inside the
    storage directory.
    """

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{_UNSAFE.sub('_', key)}.json"

    def _read(self, key: str) -> Any | None:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            with open(path, encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceError(key, str(e)) from e

    def _write(self, key: str, value: Any) -> None:
        path = self._path(key)
        tmp = path.with_suffix(".json.tmp")
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(value, f, indent=2)
            tmp.replace(path)
        except (OSError, TypeError, ValueError) as e:
            raise PersistenceError(key, str(e)) from e

    def _remove(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as e:
            raise PersistenceError(key, str(e)) from e

    async def get(self, key: str) -> Any | None:
        return await asyncio.to_thread(self._read, key)

    async def set(self, key: str, value: Any) -> None:
        await asyncio.to_thread(self._write, key, value)

    async def delete(self, key: str) -> None:
        await asyncio.to_thread(self._remove, key)


class SqlStorage:
    """Key/value table through SQLAlchemy. Blocking calls run in a worker thread."""

    def __init__(self, url: str | None = None, engine: Engine | None = None):
        if engine is None:
            if url is None:
                raise ValueError("SqlStorage needs a database URL or an engine")
            engine = create_engine(url)
        self.engine = engine
        self._ready = False

    def _ensure_table(self) -> None:
        if self._ready:
            return
        with self.engine.begin() as conn:
            conn.execute(
                text("""
                    CREATE TABLE IF NOT EXISTS linework_kv (
                        key VARCHAR(255) PRIMARY KEY,
                        value TEXT NOT NULL
                    )
                """)
            )
        self._ready = True

    def _read(self, key: str) -> Any | None:
        try:
            self._ensure_table()
            with self.engine.connect() as conn:
                row = conn.execute(
                    text("SELECT value FROM linework_kv WHERE key = :key"),
                    {"key": key},
                ).fetchone()
        except SQLAlchemyError as e:
            raise PersistenceError(key, str(e)) from e
        if row is None:
            return None
        try:
            return json.loads(row[0])
        except json.JSONDecodeError as e:
            raise PersistenceError(key, str(e)) from e

    def _write(self, key: str, value: Any) -> None:
        try:
            payload = json.dumps(value)
        except (TypeError, ValueError) as e:
            raise PersistenceError(key, str(e)) from e
        try:
            self._ensure_table()
            with self.engine.begin() as conn:
                conn.execute(text("DELETE FROM linework_kv WHERE key = :key"), {"key": key})
                conn.execute(
                    text("INSERT INTO linework_kv (key, value) VALUES (:key, :value)"),
                    {"key": key, "value": payload},
                )
        except SQLAlchemyError as e:
            raise PersistenceError(key, str(e)) from e

    def _remove(self, key: str) -> None:
        try:
            self._ensure_table()
            with self.engine.begin() as conn:
                conn.execute(text("DELETE FROM linework_kv WHERE key = :key"), {"key": key})
        except SQLAlchemyError as e:
            raise PersistenceError(key, str(e)) from e

    async def get(self, key: str) -> Any | None:
        return await asyncio.to_thread(self._read, key)

    async def set(self, key: str, value: Any) -> None:
        await asyncio.to_thread(self._write, key, value)

    async def delete(self, key: str) -> None:
        await asyncio.to_thread(self._remove, key)


def create_storage(settings: Settings | None = None) -> Storage:
    """Build the configured storage backend."""
    settings = settings or get_settings()
    backend = settings.storage_backend
    if backend == "memory":
        storage: Storage = MemoryStorage()
    elif backend == "json":
        storage = JsonFileStorage(settings.data_dir / "store")
    else:
        if settings.database_url is None:
            settings.data_dir.mkdir(parents=True, exist_ok=True)
        storage = SqlStorage(settings.get_database_url())
    logger.debug(f"Using {backend} storage backend")
    return storage
