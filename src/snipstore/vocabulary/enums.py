"""
Vocabulary enums — the shared names used by configuration and backends.
"""

from enum import Enum


class BackendKind(str, Enum):
    """
    Which persistence mechanism holds the snippet slot.
    """
    MEMORY = "memory"    # Process-local dict, lost on exit
    FILE = "file"        # One JSON file per slot in a directory
    SQLITE = "sqlite"    # Key/value table in a SQLite database


class LogFormat(str, Enum):
    """Output format for the snipstore log handler."""
    READABLE = "readable"
    JSON = "json"
