"""
Snippet Store — The authoritative snippet collection and its durable slot.

The store keeps the collection in memory as an immutable tuple and mirrors
it into one backend slot. Every mutation builds a new tuple, writes it to
the backend, and only then makes it the cache; a failed write leaves the
previous tuple in place. Public operations never raise: mutations report
success as a bool and queries return (possibly empty) results.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Mapping
from concurrent.futures import Executor, Future
from datetime import datetime
from threading import RLock
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from snipstore.backends import SlotBackend
from snipstore.observability.logging import LogContext, get_logger
from snipstore.observability.metrics import MetricsRegistry, get_metrics
from snipstore.schemas import Snippet, SnippetDraft, SnippetPatch
from snipstore.store.codec import (
    CollectionFormatError,
    decode_collection,
    decode_json,
    export_collection,
    format_timestamp,
    serialize_collection,
    utc_now,
)
from snipstore.store.ids import generate_id, unique_id
from snipstore.store.samples import SAMPLE_SNIPPETS
from snipstore.validation import ImportValidator


logger = get_logger("store")

DEFAULT_STORAGE_KEY = "codeSnippets"

Collection = tuple[Snippet, ...]
InputModel = TypeVar("InputModel", SnippetDraft, SnippetPatch)


def _matches_query(snippet: Snippet, needle: str) -> bool:
    if not needle:
        return True
    for text in (snippet.title, snippet.description, snippet.code):
        if text and needle in text.lower():
            return True
    return any(needle in tag.lower() for tag in snippet.tags)


class SnippetStore:
    """
    Write-through snippet store over a single backend slot.

    Usage:
        store = SnippetStore(create_file_backend("~/.snipstore"))
        if store.add({"title": "Map", "language": "js", "code": "a.map(f)"}):
            render(store.list())

    The collection is loaded from the backend at construction. An absent
    slot is initialized with an empty collection; an unreadable one is
    treated as empty and left as is until the next successful mutation.
    """

    def __init__(
        self,
        backend: SlotBackend,
        storage_key: str = DEFAULT_STORAGE_KEY,
        *,
        executor: Executor | None = None,
        clock: Callable[[], datetime] = utc_now,
        id_factory: Callable[[], str] = generate_id,
        metrics: MetricsRegistry | None = None,
    ):
        """
        Initialize the store and load the collection.

        Args:
            backend: Slot backend holding the serialized collection
            storage_key: Name of the slot
            executor: Optional executor the backend write is submitted to;
                      writes run inline when omitted
            clock: Source of the current time for timestamps
            id_factory: Source of candidate snippet ids
            metrics: Metrics registry (default: process-wide registry)
        """
        self.backend = backend
        self.storage_key = storage_key
        self._executor = executor
        self._clock = clock
        self._id_factory = id_factory
        self._metrics = metrics or get_metrics()
        self._validator = ImportValidator()
        self._lock = RLock()
        self._snippets: Collection = ()
        self.reload()

    # -- queries --------------------------------------------------------------

    def list(self) -> Collection:
        """The current collection. Never touches the backend."""
        return self._snippets

    def count(self) -> int:
        return len(self._snippets)

    def get_by_id(self, snippet_id: str) -> Snippet | None:
        """First snippet with ``snippet_id``, or None."""
        for snippet in self._snippets:
            if snippet.id == snippet_id:
                return snippet
        return None

    def search(self, query: str) -> Collection:
        """
        Case-insensitive substring search over title, description, code and tags.

        An empty query matches every snippet.
        """
        return self.filter(query)

    def filter(
        self,
        query: str = "",
        language: str | None = None,
        tag: str | None = None,
    ) -> Collection:
        """
        Snippets matching ``query`` and, when given, exactly ``language`` and
        carrying ``tag``.
        """
        needle = str(query).lower() if query else ""
        return tuple(
            s for s in self._snippets
            if _matches_query(s, needle)
            and (not language or s.language == language)
            and (not tag or tag in s.tags)
        )

    def get_all_tags(self) -> list[str]:
        """Distinct tags across the collection, sorted."""
        return sorted({tag for snippet in self._snippets for tag in snippet.tags})

    def get_all_languages(self) -> list[str]:
        """Distinct languages across the collection, sorted."""
        return sorted({snippet.language for snippet in self._snippets})

    def export_data(self) -> str:
        """The whole collection as indented JSON, re-importable as is."""
        return export_collection(self._snippets)

    # -- mutations ------------------------------------------------------------

    def add(self, fields: SnippetDraft | Mapping[str, Any]) -> bool:
        """
        Create a snippet from user-supplied fields.

        Any ``id``, ``createdAt`` or ``updatedAt`` in ``fields`` is ignored.
        """
        def build(current: Collection) -> Collection | None:
            draft = self._coerce(SnippetDraft, fields)
            if draft is None:
                return None
            snippet = draft.to_snippet(
                unique_id({s.id for s in current}, self._id_factory),
                self._now(),
            )
            logger.debug("Adding snippet %s (%s)", snippet.id, snippet.title)
            return current + (snippet,)

        return self._mutate("add", build)

    def update(self, snippet_id: str, fields: SnippetPatch | Mapping[str, Any]) -> bool:
        """
        Merge ``fields`` into an existing snippet and stamp ``updatedAt``.

        Fields absent from ``fields`` keep their values; ``id`` and
        ``createdAt`` never change. Unknown ids fail without side effects.
        """
        def build(current: Collection) -> Collection | None:
            index = self._index_of(current, snippet_id)
            if index is None:
                logger.info("No snippet with id %s to update", snippet_id)
                return None
            patch = self._coerce(SnippetPatch, fields)
            if patch is None:
                return None
            updated = patch.apply(current[index], updated_at=self._now())
            logger.debug("Updating snippet %s fields %s", snippet_id, sorted(patch.changes()))
            return current[:index] + (updated,) + current[index + 1:]

        return self._mutate("update", build)

    def delete(self, snippet_id: str) -> bool:
        """Remove a snippet. Unknown ids fail without writing the backend."""
        def build(current: Collection) -> Collection | None:
            remaining = tuple(s for s in current if s.id != snippet_id)
            if len(remaining) == len(current):
                logger.info("No snippet with id %s to delete", snippet_id)
                return None
            return remaining

        return self._mutate("delete", build)

    def import_data(self, raw: str) -> bool:
        """
        Replace the whole collection with the snippets in ``raw``.

        ``raw`` must be a JSON array whose every element has a truthy title,
        language and code; otherwise nothing changes. Records without an id
        get a generated one and records without ``createdAt`` get the import
        time.
        """
        def build(current: Collection) -> Collection | None:
            try:
                data = decode_json(raw)
            except CollectionFormatError as exc:
                self._reject_import([str(exc)])
                return None
            result = self._validator.validate(data)
            if not result.valid:
                self._reject_import(result.errors)
                return None
            return self._build_imported(data)

        return self._mutate("import", build)

    def seed_samples(self) -> bool:
        """Add the demo snippets to an empty collection."""
        with self._lock:
            if self._snippets:
                logger.info("Collection not empty; skipping sample snippets")
                return False
            return all(self.add(sample) for sample in SAMPLE_SNIPPETS)

    def reload(self) -> None:
        """
        Re-read the backend slot into the cache.

        Never raises. A slot that cannot be read, is not JSON or is not an
        array yields an empty collection. Otherwise every record is kept:
        a missing id or ``createdAt`` is filled in, a repeated id is
        replaced, and only records that still do not form a snippet are
        skipped. The slot itself is left as is until the next mutation.
        """
        with self._lock, LogContext(operation="load", storage_key=self.storage_key):
            try:
                raw = self.backend.read(self.storage_key)
            except Exception:
                logger.exception("Could not read slot %s; starting empty", self.storage_key)
                self._metrics.record_load_recovery()
                self._commit(())
                return

            if not raw:
                logger.info("Slot %s is empty; initializing", self.storage_key)
                self._commit(())
                if not self._persist(()):
                    logger.warning("Could not initialize slot %s", self.storage_key)
                return

            try:
                records = decode_collection(raw)
            except CollectionFormatError as exc:
                logger.warning("Slot %s is malformed (%s); starting empty", self.storage_key, exc)
                self._metrics.record_load_recovery()
                records = []
            try:
                snippets = self._restore(records)
            except Exception:
                logger.exception("Could not rebuild slot %s; starting empty", self.storage_key)
                self._metrics.record_load_recovery()
                snippets = ()
            self._commit(snippets)
            logger.debug("Loaded %d snippet(s) from slot %s", len(snippets), self.storage_key)

    # -- internals ------------------------------------------------------------

    def _mutate(
        self,
        operation: str,
        build: Callable[[Collection], Collection | None],
    ) -> bool:
        """Build the next collection under the lock and persist it."""
        with self._lock, LogContext(operation=operation, storage_key=self.storage_key):
            try:
                updated = build(self._snippets)
            except Exception:
                logger.exception("%s failed while building the new collection", operation)
                updated = None
            ok = updated is not None and self._persist(updated)
            if ok:
                logger.info("Collection now holds %d snippet(s)", len(updated))

        self._metrics.record_operation(operation, ok)
        return ok

    def _persist(self, snippets: Collection) -> bool:
        """
        Write ``snippets`` to the backend, then make them the cache.

        The only code path that writes the backend. On failure the cache
        keeps its previous value.
        """
        payload = serialize_collection(snippets)
        started = time.perf_counter()
        try:
            self._submit_write(payload).result()
        except Exception as exc:
            self._metrics.record_write(time.perf_counter() - started, exc)
            logger.exception(
                "Failed to persist %d snippet(s) to slot %s; keeping previous collection",
                len(snippets), self.storage_key,
            )
            return False

        self._metrics.record_write(time.perf_counter() - started)
        self._commit(snippets)
        logger.debug("Persisted %d chars to slot %s", len(payload), self.storage_key)
        return True

    def _submit_write(self, payload: str) -> Future[None]:
        if self._executor is not None:
            return self._executor.submit(self.backend.write, self.storage_key, payload)
        future: Future[None] = Future()
        try:
            self.backend.write(self.storage_key, payload)
        except Exception as exc:
            future.set_exception(exc)
        else:
            future.set_result(None)
        return future

    def _commit(self, snippets: Collection) -> None:
        self._snippets = snippets
        self._metrics.set_snippets(len(snippets))

    def _complete_records(self, records: list[Any]) -> list[Any]:
        """
        Copy ``records`` with a missing id, ``createdAt``, tags or
        description filled in. Elements that are not objects pass through.
        """
        taken = {
            record["id"] for record in records
            if isinstance(record, dict) and isinstance(record.get("id"), str)
        }
        now = None
        completed = []
        for record in records:
            if isinstance(record, dict):
                record = dict(record)
                if not record.get("id"):
                    record["id"] = unique_id(taken, self._id_factory)
                    taken.add(record["id"])
                if not record.get("createdAt"):
                    if now is None:
                        now = self._now()
                    record["createdAt"] = now
                if record.get("tags") is None:
                    record["tags"] = []
                if record.get("description") is None:
                    record["description"] = ""
            completed.append(record)
        return completed

    def _build_imported(self, data: list[dict[str, Any]]) -> Collection:
        snippets = tuple(Snippet.model_validate(record) for record in self._complete_records(data))
        logger.debug("Imported %d snippet(s)", len(snippets))
        return snippets

    def _restore(self, records: list[Any]) -> Collection:
        """Snippets from stored records, skipping any that cannot be repaired."""
        completed = self._complete_records(records)
        taken = {record["id"] for record in completed if isinstance(record, dict)
                 and isinstance(record.get("id"), str)}
        seen: set[str] = set()
        snippets = []
        for index, record in enumerate(completed):
            try:
                snippet = Snippet.model_validate(record)
            except ValidationError as exc:
                logger.warning(
                    "Skipping malformed record %d in slot %s (%d error(s))",
                    index, self.storage_key, exc.error_count(),
                )
                self._metrics.record_load_recovery()
                continue
            if snippet.id in seen:
                fresh = unique_id(taken, self._id_factory)
                taken.add(fresh)
                logger.warning("Record %d repeats id %s; assigned %s", index, snippet.id, fresh)
                snippet = snippet.model_copy(update={"id": fresh})
            seen.add(snippet.id)
            snippets.append(snippet)
        return tuple(snippets)

    def _reject_import(self, errors: list[str]) -> None:
        self._metrics.record_import_rejected()
        shown = "; ".join(errors[:5])
        more = f" (+{len(errors) - 5} more)" if len(errors) > 5 else ""
        logger.warning("Import rejected: %s%s", shown, more)

    def _coerce(
        self,
        model: type[InputModel],
        fields: InputModel | Mapping[str, Any] | BaseModel,
    ) -> InputModel | None:
        if isinstance(fields, model):
            return fields
        if isinstance(fields, BaseModel):
            fields = fields.model_dump()
        try:
            return model.model_validate(fields)
        except ValidationError as exc:
            reasons = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'input'}: {err['msg']}"
                for err in exc.errors()
            )
            logger.warning("Rejected %s: %s", model.__name__, reasons)
            return None

    def _now(self) -> str:
        return format_timestamp(self._clock())

    @staticmethod
    def _index_of(snippets: Collection, snippet_id: str) -> int | None:
        for index, snippet in enumerate(snippets):
            if snippet.id == snippet_id:
                return index
        return None
