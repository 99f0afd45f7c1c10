"""
Backends — Durable key/value slots for serialized snippet collections.

Provides:
- SlotBackend: protocol every backend satisfies
- InMemorySlotBackend, FileSlotBackend, SQLiteSlotBackend
- BackendError hierarchy raised on read/write failure
"""

from snipstore.backends.slots import (
    BackendError,
    QuotaExceededError,
    SlotUnavailableError,
    SlotBackend,
    InMemorySlotBackend,
    FileSlotBackend,
    SQLiteSlotBackend,
    create_memory_backend,
    create_file_backend,
    create_sqlite_backend,
    create_backend,
)

__all__ = [
    # Errors
    "BackendError",
    "QuotaExceededError",
    "SlotUnavailableError",
    # Backends
    "SlotBackend",
    "InMemorySlotBackend",
    "FileSlotBackend",
    "SQLiteSlotBackend",
    "create_memory_backend",
    "create_file_backend",
    "create_sqlite_backend",
    "create_backend",
]
