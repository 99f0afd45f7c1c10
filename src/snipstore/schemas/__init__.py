"""
Schemas — Pydantic models for snippet records.

Defines:
- Snippet (the persisted record)
- SnippetDraft (create input)
- SnippetPatch (partial update input)
"""

from snipstore.schemas.snippet import (
    Snippet,
    SnippetDraft,
    SnippetPatch,
)

__all__ = [
    "Snippet",
    "SnippetDraft",
    "SnippetPatch",
]
