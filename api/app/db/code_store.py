"""Key-value storage for issued access codes.

One entry per user under ``code:{user_id}``. Issuance goes through
``get_or_create`` which inserts only when no entry exists, so two
concurrent triggers for the same user end up with a single stored code.
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator, Protocol

from app.core.exceptions import StorageError

logger = logging.getLogger(__name__)

CodeFactory = Callable[[], str]

_SCHEMA = """
CREATE TABLE IF NOT EXISTS kv (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
)
"""


def code_key(user_id: str) -> str:
    """Return the storage key holding ``user_id``'s code."""
    return f"code:{user_id}"


class CodeStore(Protocol):
    """Storage contract for per-user codes."""

    async def get(self, user_id: str) -> str | None:
        """Return the stored code, or None when the user has none."""

    async def get_or_create(
        self, user_id: str, factory: CodeFactory
    ) -> tuple[str, bool]:
        """Return the existing code or atomically store ``factory()``.

        Returns a ``(code, created)`` tuple; ``created`` is False when an
        existing code was reused.
        """

    async def set(self, user_id: str, code: str) -> None:
        """Unconditionally store ``code`` for the user."""

    async def delete(self, user_id: str) -> None:
        """Remove the user's code. Deleting a missing entry is a no-op."""

    async def close(self) -> None:
        """Release backend resources."""


class InMemoryCodeStore:
    """Process-local code store guarded by an asyncio lock."""

    def __init__(self) -> None:
        self._guard = asyncio.Lock()
        self._entries: dict[str, str] = {}

    async def get(self, user_id: str) -> str | None:
        async with self._guard:
            return self._entries.get(code_key(user_id))

    async def get_or_create(
        self, user_id: str, factory: CodeFactory
    ) -> tuple[str, bool]:
        key = code_key(user_id)
        async with self._guard:
            existing = self._entries.get(key)
            if existing is not None:
                return existing, False
            code = factory()
            self._entries[key] = code
            return code, True

    async def set(self, user_id: str, code: str) -> None:
        async with self._guard:
            self._entries[code_key(user_id)] = code

    async def delete(self, user_id: str) -> None:
        async with self._guard:
            self._entries.pop(code_key(user_id), None)

    async def close(self) -> None:
        async with self._guard:
            self._entries.clear()


class SqliteCodeStore:
    """SQLite-backed key-value store.

    Blocking sqlite calls run in worker threads via ``asyncio.to_thread``.
    ``INSERT OR IGNORE`` on the primary key provides the insert-if-absent
    primitive used by ``get_or_create``.
    """

    def __init__(self, db_path: str | Path):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._connection() as conn:
            conn.execute(_SCHEMA)
        logger.info(f"Code store initialized at: {self.db_path}")

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(
            str(self.db_path),
            check_same_thread=False,
            timeout=30.0,  # Wait up to 30 seconds for locks
        )
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def _get_sync(self, key: str) -> str | None:
        with self._connection() as conn:
            row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        return row[0] if row else None

    def _get_or_create_sync(self, key: str, candidate: str) -> tuple[str, bool]:
        with self._connection() as conn:
            cursor = conn.execute(
                "INSERT OR IGNORE INTO kv (key, value) VALUES (?, ?)",
                (key, candidate),
            )
            if cursor.rowcount == 1:
                return candidate, True
            row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        if row is None:
            raise sqlite3.OperationalError(f"Entry {key} vanished during insert")
        return row[0], False

    def _set_sync(self, key: str, value: str) -> None:
        with self._connection() as conn:
            conn.execute(
                "INSERT INTO kv (key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                (key, value),
            )

    def _delete_sync(self, key: str) -> None:
        with self._connection() as conn:
            conn.execute("DELETE FROM kv WHERE key = ?", (key,))

    async def get(self, user_id: str) -> str | None:
        try:
            return await asyncio.to_thread(self._get_sync, code_key(user_id))
        except sqlite3.Error as e:
            raise StorageError(str(e), "read") from e

    async def get_or_create(
        self, user_id: str, factory: CodeFactory
    ) -> tuple[str, bool]:
        # The candidate is generated up front; it is discarded if a code exists.
        candidate = factory()
        try:
            return await asyncio.to_thread(
                self._get_or_create_sync, code_key(user_id), candidate
            )
        except sqlite3.Error as e:
            raise StorageError(str(e), "create") from e

    async def set(self, user_id: str, code: str) -> None:
        try:
            await asyncio.to_thread(self._set_sync, code_key(user_id), code)
        except sqlite3.Error as e:
            raise StorageError(str(e), "write") from e

    async def delete(self, user_id: str) -> None:
        try:
            await asyncio.to_thread(self._delete_sync, code_key(user_id))
        except sqlite3.Error as e:
            raise StorageError(str(e), "delete") from e

    async def close(self) -> None:
        logger.info("Code store closed")


def create_code_store(backend: str, db_path: str | Path) -> CodeStore:
    """Build the configured store backend."""
    if backend == "memory":
        logger.warning("Using in-memory code store; codes are lost on restart")
        return InMemoryCodeStore()
    return SqliteCodeStore(db_path)
