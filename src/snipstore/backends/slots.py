"""
Slot Backends — Durable key/value slots holding serialized collections.

A slot is a named string value. The snippet store keeps its whole
collection in one slot, so backends only need whole-value read and write.
"""

import os
import sqlite3
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol, runtime_checkable

from snipstore.observability.logging import get_logger
from snipstore.vocabulary import BackendKind


logger = get_logger("backends")


class BackendError(Exception):
    """A slot could not be read or written."""


class QuotaExceededError(BackendError):
    """The write would exceed the backend's storage quota."""


class SlotUnavailableError(BackendError):
    """The backend is closed or otherwise not accepting operations."""


@runtime_checkable
class SlotBackend(Protocol):
    """
    Protocol for slot storage backends.
    """

    def read(self, key: str) -> str | None:
        """Return the slot value, or None if the slot does not exist."""
        ...

    def write(self, key: str, value: str) -> None:
        """Replace the slot value. Raises on failure."""
        ...

    def delete(self, key: str) -> bool:
        """Remove a slot. Returns True if it existed."""
        ...

    def keys(self) -> list[str]:
        """List existing slot names."""
        ...


class InMemorySlotBackend:
    """
    In-memory slot backend for testing.

    Slots are lost when process terminates. An optional ``quota`` (in UTF-8
    bytes, summed over all slots) makes oversized writes fail the way
    browser local storage does.
    """

    def __init__(self, quota: int | None = None):
        self.quota = quota
        self._slots: dict[str, str] = {}
        self._closed = False

    def _check_open(self) -> None:
        if self._closed:
            raise SlotUnavailableError("In-memory backend is closed")

    def read(self, key: str) -> str | None:
        self._check_open()
        return self._slots.get(key)

    def write(self, key: str, value: str) -> None:
        self._check_open()
        if self.quota is not None:
            others = sum(
                len(v.encode("utf-8")) for k, v in self._slots.items() if k != key
            )
            needed = others + len(value.encode("utf-8"))
            if needed > self.quota:
                raise QuotaExceededError(
                    f"Writing slot {key!r} needs {needed} bytes, quota is {self.quota}"
                )
        self._slots[key] = value

    def delete(self, key: str) -> bool:
        self._check_open()
        return self._slots.pop(key, None) is not None

    def keys(self) -> list[str]:
        self._check_open()
        return sorted(self._slots)

    def close(self) -> None:
        """Refuse further operations (testing helper for unavailable storage)."""
        self._closed = True

    def clear(self) -> None:
        """Clear all slots (testing helper)."""
        self._slots.clear()


class FileSlotBackend:
    """
    Directory-backed slot backend.

    Each slot is ``<directory>/<key>.json``. Writes land in a temporary file
    in the same directory and are moved into place with ``os.replace``, so a
    reader never sees a partially written slot.
    """

    SUFFIX = ".json"

    def __init__(self, directory: str | Path):
        self.directory = Path(directory).expanduser()
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        if not key or "/" in key or "\\" in key or key.startswith("."):
            raise BackendError(f"Invalid slot key: {key!r}")
        return self.directory / f"{key}{self.SUFFIX}"

    def read(self, key: str) -> str | None:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def write(self, key: str, value: str) -> None:
        path = self._path(key)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{key}.", suffix=".tmp", dir=self.directory
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(value)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.debug("Wrote slot %s (%d chars) to %s", key, len(value), path)

    def delete(self, key: str) -> bool:
        path = self._path(key)
        if path.exists():
            path.unlink()
            return True
        return False

    def keys(self) -> list[str]:
        return sorted(
            p.name[: -len(self.SUFFIX)]
            for p in self.directory.glob(f"*{self.SUFFIX}")
            if not p.name.startswith(".")
        )


class SQLiteSlotBackend:
    """
    SQLite-backed slot backend.

    Stores slots in a single key/value table of a local database.
    """

    def __init__(self, db_path: str | Path = "snipstore.db"):
        self.db_path = Path(db_path).expanduser()
        self._init_db()

    def _init_db(self) -> None:
        """Initialize database schema."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS slots (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            conn.commit()

    def read(self, key: str) -> str | None:
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.execute(
                "SELECT value FROM slots WHERE key = ?",
                (key,)
            )
            row = cursor.fetchone()
            if row:
                return row[0]
            return None

    def write(self, key: str, value: str) -> None:
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("""
                INSERT OR REPLACE INTO slots (key, value, updated_at)
                VALUES (?, ?, ?)
            """, (
                key,
                value,
                datetime.now(timezone.utc).isoformat(),
            ))
            conn.commit()

    def delete(self, key: str) -> bool:
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.execute(
                "DELETE FROM slots WHERE key = ?",
                (key,)
            )
            conn.commit()
            return cursor.rowcount > 0

    def keys(self) -> list[str]:
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.execute("SELECT key FROM slots ORDER BY key")
            return [row[0] for row in cursor.fetchall()]


def create_memory_backend(quota: int | None = None) -> InMemorySlotBackend:
    """Factory for in-memory backend."""
    return InMemorySlotBackend(quota=quota)


def create_file_backend(directory: str | Path) -> FileSlotBackend:
    """Factory for directory backend."""
    return FileSlotBackend(directory)


def create_sqlite_backend(db_path: str | Path = "snipstore.db") -> SQLiteSlotBackend:
    """Factory for SQLite backend."""
    return SQLiteSlotBackend(db_path)


def create_backend(kind: BackendKind | str, path: str | Path | None = None) -> SlotBackend:
    """
    Build a backend by kind.

    ``path`` is the slot directory for FILE and the database file for
    SQLITE; MEMORY ignores it.
    """
    kind = BackendKind(kind)
    if kind is BackendKind.MEMORY:
        return create_memory_backend()
    if path is None:
        raise ValueError(f"{kind.value} backend requires a path")
    if kind is BackendKind.FILE:
        return create_file_backend(path)
    return create_sqlite_backend(path)
