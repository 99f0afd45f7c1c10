"""
Collection codec — JSON text for the backend slot and for export files.

The slot holds compact JSON; exports are indented for people to read.
Both decode through the same path, which does not depend on whitespace.
"""

import json
from collections.abc import Iterable
from datetime import date, datetime, timezone
from typing import Any

from snipstore.schemas import Snippet


EXPORT_INDENT = 2


class CollectionFormatError(ValueError):
    """Text is not a valid serialized snippet collection."""


def format_timestamp(moment: datetime) -> str:
    """ISO-8601 in UTC with millisecond precision and a ``Z`` suffix."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def serialize_collection(snippets: Iterable[Snippet]) -> str:
    """Compact JSON for the backend slot."""
    return json.dumps(
        [s.to_record() for s in snippets],
        ensure_ascii=False,
        separators=(",", ":"),
    )


def export_collection(snippets: Iterable[Snippet]) -> str:
    """Indented JSON for export files."""
    return json.dumps(
        [s.to_record() for s in snippets],
        ensure_ascii=False,
        indent=EXPORT_INDENT,
    )


def decode_json(text: str) -> Any:
    """Parse JSON text, raising CollectionFormatError on any syntax problem."""
    try:
        return json.loads(text)
    except (TypeError, ValueError) as exc:
        raise CollectionFormatError(f"Not valid JSON: {exc}") from exc


def decode_collection(text: str) -> list[Any]:
    """
    Decode stored or exported collection text into its raw records.

    Raises CollectionFormatError if the text is not JSON or not an array.
    The records themselves are returned unvalidated.
    """
    data = decode_json(text)
    if not isinstance(data, list):
        raise CollectionFormatError(
            f"Expected a JSON array, got {type(data).__name__}"
        )
    return data


def export_filename(today: date | None = None) -> str:
    """Suggested file name for an export made on ``today``."""
    today = today or date.today()
    return f"code-snippets-{today.isoformat()}.json"


def parse_tags(text: str | None) -> list[str]:
    """Split comma-separated tag input, dropping blanks."""
    if not text:
        return []
    return [tag.strip() for tag in text.split(",") if tag.strip()]
