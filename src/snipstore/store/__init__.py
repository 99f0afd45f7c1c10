"""
Store — The snippet collection, its ids and its serialized forms.

Provides:
- SnippetStore: write-through store over a backend slot
- Id generation (base-36 timestamp + random digits)
- Collection codec for slot and export text
"""

from snipstore.store.codec import (
    CollectionFormatError,
    decode_collection,
    export_collection,
    export_filename,
    format_timestamp,
    parse_tags,
    serialize_collection,
)
from snipstore.store.ids import (
    IdCollisionError,
    generate_id,
    to_base36,
    unique_id,
)
from snipstore.store.samples import SAMPLE_SNIPPETS
from snipstore.store.store import (
    DEFAULT_STORAGE_KEY,
    SnippetStore,
)

__all__ = [
    # Store
    "DEFAULT_STORAGE_KEY",
    "SnippetStore",
    "SAMPLE_SNIPPETS",
    # Ids
    "IdCollisionError",
    "generate_id",
    "to_base36",
    "unique_id",
    # Codec
    "CollectionFormatError",
    "decode_collection",
    "export_collection",
    "export_filename",
    "format_timestamp",
    "parse_tags",
    "serialize_collection",
]
