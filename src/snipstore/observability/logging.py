"""
Logging — Store log records tagged with the action in progress.

Records under the ``snipstore`` logger carry up to three context fields:
the request id of the user action (the CLI sets one per invocation), the
store operation being run and the storage key of the slot it touches.
JSON output emits them as keys; readable output folds them into a short
bracketed prefix such as ``[3f2a9c1e add@codeSnippets]``.
"""

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, TextIO
from uuid import UUID


CONTEXT_FIELDS = ("request_id", "operation", "storage_key")

_log_context: ContextVar[dict[str, str] | None] = ContextVar("snipstore_log_context", default=None)


def current_log_context() -> dict[str, str]:
    """Context fields bound in the current task or thread."""
    return dict(_log_context.get() or {})


class LogContext:
    """
    Binds context fields for records logged inside the block.

    Nested blocks add to the outer fields and restore them on exit;
    a field passed as None keeps the outer value.

    Usage:
        with LogContext(request_id=uuid4()):
            with LogContext(operation="add", storage_key="codeSnippets"):
                logger.info("saved")  # carries all three fields
    """

    def __init__(
        self,
        request_id: UUID | str | None = None,
        operation: str | None = None,
        storage_key: str | None = None,
    ):
        self.fields = {
            name: str(value)
            for name, value in zip(CONTEXT_FIELDS, (request_id, operation, storage_key))
            if value is not None
        }
        self._token = None

    def __enter__(self):
        self._token = _log_context.set({**current_log_context(), **self.fields})
        return self

    def __exit__(self, *args):
        if self._token is not None:
            _log_context.reset(self._token)
            self._token = None


class ContextFilter(logging.Filter):
    """Copies the bound context onto each record, keeping any ``extra=`` values."""

    def filter(self, record: logging.LogRecord) -> bool:
        context = current_log_context()
        for name in CONTEXT_FIELDS:
            if getattr(record, name, None) is None:
                setattr(record, name, context.get(name))
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per line; unset context fields are left out."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                entry[name] = value

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False)


class ReadableFormatter(logging.Formatter):
    """
    Human-readable formatter for terminals.

    ``WARNING [3f2a9c1e import@codeSnippets] snipstore.store: Import rejected``
    """

    def format(self, record: logging.LogRecord) -> str:
        request_id = getattr(record, "request_id", None)
        operation = getattr(record, "operation", None)
        storage_key = getattr(record, "storage_key", None)

        scope = request_id[:8] if request_id else "-"
        if operation or storage_key:
            scope += f" {operation or '-'}@{storage_key or '-'}"

        line = f"{record.levelname:<7} [{scope}] {record.name}: {record.getMessage()}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(
    level: int = logging.INFO,
    json_format: bool = False,
    stream: TextIO | None = None,
) -> None:
    """
    Route the ``snipstore`` logger tree to a single stream handler.

    Calling it again replaces the handler instead of adding a second one.
    """
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.addFilter(ContextFilter())
    handler.setFormatter(JSONFormatter() if json_format else ReadableFormatter())

    root = logging.getLogger("snipstore")
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(handler)
    root.propagate = False


def get_logger(name: str) -> logging.Logger:
    """Get a logger for a snipstore component."""
    return logging.getLogger(f"snipstore.{name}")
