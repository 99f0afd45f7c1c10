"""
Vocabulary — Enumerated types shared across snipstore.
"""

from snipstore.vocabulary.enums import (
    BackendKind,
    LogFormat,
)

__all__ = [
    "BackendKind",
    "LogFormat",
]
