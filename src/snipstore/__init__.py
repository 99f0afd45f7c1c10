"""
snipstore — Local snippet manager core.

Persists code snippets in a durable key/value slot and answers searches,
tag/language filters and JSON export/import from an in-memory cache.
"""

from snipstore.backends import (
    BackendError,
    SlotBackend,
    InMemorySlotBackend,
    FileSlotBackend,
    SQLiteSlotBackend,
)
from snipstore.config import StoreConfig
from snipstore.schemas import Snippet, SnippetDraft, SnippetPatch
from snipstore.store import SnippetStore

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "BackendError",
    "SlotBackend",
    "InMemorySlotBackend",
    "FileSlotBackend",
    "SQLiteSlotBackend",
    "StoreConfig",
    "Snippet",
    "SnippetDraft",
    "SnippetPatch",
    "SnippetStore",
]
