"""
Configuration — Where the snippet slot lives and how snipstore logs.

Values not passed explicitly fall back to ``SNIPSTORE_*`` environment
variables, then to defaults.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from snipstore.backends import SlotBackend, create_backend
from snipstore.vocabulary import BackendKind, LogFormat


DEFAULT_PATH = Path("~/.snipstore")
SQLITE_FILENAME = "snipstore.db"


def _env(name: str) -> str | None:
    value = os.environ.get(name)
    return value if value else None


@dataclass
class StoreConfig:
    """Configuration for a snippet store and its backend."""
    backend: BackendKind = BackendKind.FILE
    path: Path = field(default_factory=lambda: DEFAULT_PATH)
    storage_key: str = "codeSnippets"
    log_level: int = logging.WARNING
    log_format: LogFormat = LogFormat.READABLE

    def __post_init__(self) -> None:
        self.backend = BackendKind(self.backend)
        self.log_format = LogFormat(self.log_format)
        self.path = Path(self.path).expanduser()
        if isinstance(self.log_level, str):
            self.log_level = _parse_level(self.log_level)

    @classmethod
    def from_env(cls, **overrides) -> "StoreConfig":
        """
        Build a config from ``SNIPSTORE_*`` variables.

        Keyword overrides that are not None win over the environment.

        Raises:
            ValueError: if a variable holds an unknown backend, format or level
        """
        values: dict = {}
        backend = _env("SNIPSTORE_BACKEND")
        if backend:
            values["backend"] = BackendKind(backend.lower())
        path = _env("SNIPSTORE_PATH")
        if path:
            values["path"] = Path(path)
        key = _env("SNIPSTORE_KEY")
        if key:
            values["storage_key"] = key
        level = _env("SNIPSTORE_LOG_LEVEL")
        if level:
            values["log_level"] = _parse_level(level)
        fmt = _env("SNIPSTORE_LOG_FORMAT")
        if fmt:
            values["log_format"] = LogFormat(fmt.lower())
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    @property
    def backend_path(self) -> Path | None:
        """Directory for FILE, database file for SQLITE, None for MEMORY."""
        if self.backend is BackendKind.MEMORY:
            return None
        if self.backend is BackendKind.SQLITE and self.path.suffix == "":
            return self.path / SQLITE_FILENAME
        return self.path

    def create_backend(self) -> SlotBackend:
        return create_backend(self.backend, self.backend_path)


def _parse_level(value: str) -> int:
    if value.isdigit():
        return int(value)
    level = logging.getLevelName(value.upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {value}")
    return level
