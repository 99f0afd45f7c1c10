"""Tests for the snippet store."""

import json
import logging
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from snipstore.backends import InMemorySlotBackend
from snipstore.observability import MetricsRegistry
from snipstore.schemas import Snippet, SnippetDraft, SnippetPatch
from snipstore.store import SAMPLE_SNIPPETS, SnippetStore, serialize_collection


def slot(backend, key="codeSnippets"):
    return backend.read(key)


def make(title, tags=(), language="python", code="pass", description=""):
    return {
        "title": title,
        "language": language,
        "tags": list(tags),
        "description": description,
        "code": code,
    }


class TestBootstrap:
    """Tests for loading the collection at construction."""

    def test_fresh_store_is_empty_and_initializes_slot(self, backend, metrics):
        store = SnippetStore(backend, metrics=metrics)

        assert store.list() == ()
        assert slot(backend) == "[]"

    def test_reload_after_fresh_start_is_still_empty(self, backend, metrics):
        SnippetStore(backend, metrics=metrics)
        assert SnippetStore(backend, metrics=metrics).list() == ()

    def test_empty_string_slot_treated_as_absent(self, backend, metrics):
        backend.write("codeSnippets", "")
        SnippetStore(backend, metrics=metrics)
        assert slot(backend) == "[]"

    def test_loads_existing_collection(self, store, backend, draft, metrics):
        store.add(draft)
        reopened = SnippetStore(backend, metrics=metrics)
        assert reopened.list() == store.list()

    @pytest.mark.parametrize("content", ["{not json", '{"id": "x"}', "null"])
    def test_malformed_slot_yields_empty_collection(self, backend, metrics, content, caplog):
        backend.write("codeSnippets", content)

        with caplog.at_level(logging.WARNING, logger="snipstore"):
            store = SnippetStore(backend, metrics=metrics)

        assert store.list() == ()
        assert slot(backend) == content
        assert metrics.load_recoveries == 1
        assert "malformed" in caplog.text

    def test_records_without_id_or_created_at_are_kept(self, backend, metrics, clock, draft):
        good = {"id": "a", "title": "Good", "language": "py", "code": "x",
                "createdAt": "2020-01-01T00:00:00.000Z"}
        legacy = {"title": "Legacy", "language": "js", "code": "y"}
        backend.write("codeSnippets", json.dumps([good, legacy]))

        store = SnippetStore(backend, clock=clock, metrics=metrics)

        first, second = store.list()
        assert first.id == "a"
        assert first.created_at == "2020-01-01T00:00:00.000Z"
        assert second.title == "Legacy"
        assert second.id and second.id != "a"
        assert second.created_at == "2026-01-02T03:04:05.000Z"
        assert metrics.load_recoveries == 0

        assert store.add(draft)
        assert [s.title for s in SnippetStore(backend, metrics=metrics).list()] == [
            "Good", "Legacy", "Array Map",
        ]

    def test_unrepairable_record_skipped_others_kept(self, backend, metrics, caplog):
        good = {"id": "a", "title": "Good", "language": "py", "code": "x",
                "createdAt": "2020-01-01T00:00:00.000Z"}
        content = json.dumps([good, {"title": "no code"}, "stray"])
        backend.write("codeSnippets", content)

        with caplog.at_level(logging.WARNING, logger="snipstore"):
            store = SnippetStore(backend, metrics=metrics)

        assert [s.id for s in store.list()] == ["a"]
        assert slot(backend) == content
        assert metrics.load_recoveries == 2
        assert "Skipping malformed record 1" in caplog.text

    def test_repeated_stored_id_reassigned(self, backend, metrics):
        record = {"id": "a", "title": "t", "language": "py", "code": "x",
                  "createdAt": "2020-01-01T00:00:00.000Z"}
        backend.write("codeSnippets", json.dumps([record, dict(record, title="u")]))

        store = SnippetStore(backend, metrics=metrics)

        first, second = store.list()
        assert first.id == "a"
        assert second.title == "u"
        assert second.id != "a"

    def test_malformed_slot_replaced_by_next_mutation(self, backend, metrics, draft):
        backend.write("codeSnippets", "garbage")
        store = SnippetStore(backend, metrics=metrics)

        assert store.add(draft)
        assert slot(backend) == serialize_collection(store.list())

    def test_unreadable_backend_does_not_crash(self, metrics):
        backend = InMemorySlotBackend()
        backend.close()

        store = SnippetStore(backend, metrics=metrics)

        assert store.list() == ()
        assert metrics.load_recoveries == 1

    def test_failed_initialization_write_does_not_crash(self, backend, metrics):
        backend.fail_writes = True

        store = SnippetStore(backend, metrics=metrics)

        assert store.list() == ()
        assert metrics.persistence.failures == 1

    def test_custom_storage_key(self, backend, metrics, draft):
        store = SnippetStore(backend, "otherSlot", metrics=metrics)
        store.add(draft)
        assert slot(backend) is None
        assert json.loads(slot(backend, "otherSlot"))[0]["title"] == "Array Map"


class TestAdd:
    """Tests for creating snippets."""

    def test_add_appends(self, store, draft):
        assert store.add(draft) is True

        [snippet] = store.list()
        assert snippet.title == "Array Map"
        assert snippet.tags == ("javascript", "array")
        assert snippet.created_at == "2026-01-02T03:04:05.000Z"
        assert snippet.updated_at is None

    def test_add_accepts_draft_model(self, store):
        assert store.add(SnippetDraft(title="t", language="py", code="x"))
        assert store.list()[0].description == ""

    def test_insertion_order(self, store):
        for title in ("one", "two", "three"):
            store.add(make(title))
        assert [s.title for s in store.list()] == ["one", "two", "three"]

    def test_ids_unique(self, store):
        for i in range(200):
            assert store.add(make(f"snippet {i}"))
        ids = [s.id for s in store.list()]
        assert len(set(ids)) == 200

    def test_colliding_id_factory_retried(self, backend, metrics):
        candidates = iter(["dup", "dup", "fresh"])
        store = SnippetStore(backend, metrics=metrics, id_factory=lambda: next(candidates))

        store.add(make("first"))
        store.add(make("second"))

        assert [s.id for s in store.list()] == ["dup", "fresh"]

    def test_client_identity_fields_ignored(self, store, draft):
        draft.update({"id": "client-id", "createdAt": "1999-01-01", "updatedAt": "1999-01-02"})
        store.add(draft)

        [snippet] = store.list()
        assert snippet.id != "client-id"
        assert snippet.created_at == "2026-01-02T03:04:05.000Z"
        assert snippet.updated_at is None

    def test_caller_dict_not_mutated(self, store, draft):
        before = dict(draft)
        store.add(draft)
        assert draft == before

    @pytest.mark.parametrize("field", ["title", "language", "code"])
    def test_missing_required_field_fails(self, store, backend, draft, field):
        del draft[field]
        writes = backend.writes

        assert store.add(draft) is False
        assert store.list() == ()
        assert backend.writes == writes

    def test_blank_title_fails(self, store, draft):
        draft["title"] = "   "
        assert store.add(draft) is False

    def test_tags_none_treated_as_empty(self, store, draft):
        draft["tags"] = None
        assert store.add(draft) is True
        assert store.list()[0].tags == ()

    def test_non_mapping_input_fails(self, store):
        assert store.add(None) is False
        assert store.add("title") is False

    def test_copy_on_write(self, store, draft):
        before = store.list()
        store.add(draft)
        assert before == ()
        assert len(store.list()) == 1

    def test_slot_matches_cache(self, store, backend, draft):
        store.add(draft)
        assert slot(backend) == serialize_collection(store.list())


class TestGetById:

    def test_found(self, store, draft):
        store.add(draft)
        snippet = store.list()[0]
        assert store.get_by_id(snippet.id) == snippet

    def test_missing_returns_none(self, store):
        assert store.get_by_id("nope") is None


class TestUpdate:
    """Tests for partial updates."""

    @pytest.fixture
    def existing(self, store, draft) -> Snippet:
        store.add(draft)
        store.add(make("other"))
        return store.list()[0]

    def test_update_preserves_identity_fields(self, store, existing):
        assert store.update(existing.id, {"title": "x"}) is True

        updated = store.get_by_id(existing.id)
        assert updated.id == existing.id
        assert updated.created_at == existing.created_at
        assert updated.title == "x"
        assert updated.updated_at is not None
        assert updated.language == existing.language
        assert updated.tags == existing.tags
        assert updated.description == existing.description
        assert updated.code == existing.code

    def test_update_stamps_time(self, store, existing):
        store.update(existing.id, {"title": "x"})
        first = store.get_by_id(existing.id).updated_at
        store.update(existing.id, {"title": "y"})
        second = store.get_by_id(existing.id).updated_at

        assert first > existing.created_at
        assert second > first

    def test_update_keeps_position(self, store, existing):
        store.update(existing.id, {"title": "x"})
        assert [s.title for s in store.list()] == ["x", "other"]

    def test_identity_fields_in_patch_ignored(self, store, existing):
        store.update(existing.id, {"id": "hijack", "createdAt": "1999", "title": "x"})

        assert store.get_by_id("hijack") is None
        assert store.get_by_id(existing.id).created_at == existing.created_at

    def test_accepts_patch_model(self, store, existing):
        assert store.update(existing.id, SnippetPatch(tags=["new"]))
        assert store.get_by_id(existing.id).tags == ("new",)

    def test_unknown_id_fails_without_write(self, store, backend, existing):
        writes = backend.writes
        before = store.list()

        assert store.update("nope", {"title": "x"}) is False
        assert store.list() is before
        assert backend.writes == writes

    def test_blank_title_rejected(self, store, existing):
        assert store.update(existing.id, {"title": ""}) is False
        assert store.get_by_id(existing.id).title == existing.title

    def test_previous_list_unchanged(self, store, existing):
        before = store.list()
        store.update(existing.id, {"title": "x"})
        assert before[0].title == "Array Map"

    def test_slot_matches_cache(self, store, backend, existing):
        store.update(existing.id, {"code": "new code"})
        assert slot(backend) == serialize_collection(store.list())
        assert json.loads(slot(backend))[0]["updatedAt"]


class TestDelete:
    """Tests for deletion."""

    def test_delete_removes(self, store):
        store.add(make("a"))
        store.add(make("b"))
        store.add(make("c"))
        target = store.list()[1]

        assert store.delete(target.id) is True
        assert [s.title for s in store.list()] == ["a", "c"]
        assert slot(store.backend) == serialize_collection(store.list())

    def test_delete_twice(self, store, backend, draft):
        store.add(draft)
        snippet_id = store.list()[0].id

        assert store.delete(snippet_id) is True
        after_first = store.list()
        writes = backend.writes

        assert store.delete(snippet_id) is False
        assert store.list() == after_first
        assert backend.writes == writes


class TestSearch:
    """Tests for free-text search."""

    @pytest.fixture
    def populated(self, store):
        store.add(make("Array Map", tags=["javascript"], code="const x=1", language="javascript"))
        store.add(make("List Comprehension", tags=["python"], description="Squares of numbers"))
        return store

    @pytest.mark.parametrize("query", ["javascript", "array", "const x", "ARRAY", "Map"])
    def test_matches_across_fields(self, populated, query):
        titles = [s.title for s in populated.search(query)]
        assert "Array Map" in titles

    def test_description_match(self, populated):
        assert [s.title for s in populated.search("squares")] == ["List Comprehension"]

    def test_no_match(self, populated):
        assert populated.search("nomatch") == ()

    def test_empty_query_matches_all(self, populated):
        assert populated.search("") == populated.list()

    def test_none_query_matches_all(self, populated):
        assert populated.search(None) == populated.list()

    def test_partial_tag_match(self, populated):
        assert [s.title for s in populated.search("pyth")] == ["List Comprehension"]

    def test_search_does_not_touch_backend(self, populated, backend):
        writes = backend.writes
        populated.search("array")
        assert backend.writes == writes


class TestFilter:
    """Tests for combined search and filters."""

    @pytest.fixture
    def populated(self, store):
        store.add(make("JS Map", tags=["array", "utility"], language="javascript"))
        store.add(make("Py Map", tags=["array"], language="python"))
        store.add(make("Py Sort", tags=["list"], language="python"))
        return store

    def test_language(self, populated):
        assert [s.title for s in populated.filter(language="python")] == ["Py Map", "Py Sort"]

    def test_tag_is_exact(self, populated):
        assert [s.title for s in populated.filter(tag="array")] == ["JS Map", "Py Map"]
        assert populated.filter(tag="arr") == ()

    def test_combined(self, populated):
        result = populated.filter("map", language="python", tag="array")
        assert [s.title for s in result] == ["Py Map"]

    def test_no_filters(self, populated):
        assert populated.filter() == populated.list()


class TestAggregates:

    def test_tags_sorted_distinct(self, store):
        store.add(make("one", tags=["b", "a"]))
        store.add(make("two", tags=["a", "c"]))
        assert store.get_all_tags() == ["a", "b", "c"]

    def test_tags_empty(self, store):
        store.add(make("one"))
        assert store.get_all_tags() == []

    def test_languages(self, store):
        store.add(make("one", language="python"))
        store.add(make("two", language="css"))
        store.add(make("three", language="python"))
        assert store.get_all_languages() == ["css", "python"]

    def test_count(self, store):
        store.add(make("one"))
        assert store.count() == 1


class TestExportImport:
    """Tests for export and import."""

    def test_round_trip(self, store, draft):
        store.add(draft)
        store.add(make("two", tags=["x"]))
        store.update(store.list()[1].id, {"title": "two!"})
        before = store.list()

        assert store.import_data(store.export_data()) is True
        assert store.list() == before

    def test_export_format(self, store, draft):
        store.add(draft)
        exported = store.export_data()

        assert exported.startswith("[\n  {")
        assert json.loads(exported)[0]["createdAt"] == "2026-01-02T03:04:05.000Z"
        assert "updatedAt" not in json.loads(exported)[0]

    def test_import_replaces_wholesale(self, store):
        store.add(make("old"))
        data = json.dumps([{"id": "n1", "title": "new", "language": "go", "code": "x"}])

        assert store.import_data(data) is True
        assert [s.title for s in store.list()] == ["new"]
        assert slot(store.backend) == serialize_collection(store.list())

    def test_import_compact_and_pretty(self, store):
        records = [{
            "id": "n1", "title": "new", "language": "go", "code": "x",
            "createdAt": "2025-05-05T05:05:05.000Z",
        }]
        assert store.import_data(json.dumps(records, separators=(",", ":")))
        compact = store.list()
        assert store.import_data(json.dumps(records, indent=4))
        assert store.list() == compact

    def test_import_rejects_partial_records(self, store, draft, metrics):
        store.add(draft)
        before = store.list()

        assert store.import_data('[{"title":"t"}]') is False
        assert store.list() is before
        assert metrics.imports_rejected == 1

    def test_one_bad_record_rejects_everything(self, store, draft):
        store.add(draft)
        before = store.list()
        data = json.dumps([
            {"title": "ok", "language": "py", "code": "x"},
            {"title": "bad", "language": "py", "code": ""},
        ])
        assert store.import_data(data) is False
        assert store.list() is before

    @pytest.mark.parametrize("field", ["title", "language", "code"])
    def test_import_rejects_whitespace_only_required_field(self, store, draft, metrics, field):
        store.add(draft)
        before = store.list()
        record = {"title": "t", "language": "py", "code": "x"}
        record[field] = "   "

        assert store.import_data(json.dumps([record])) is False
        assert store.list() is before
        assert metrics.imports_rejected == 1

    @pytest.mark.parametrize("raw", ["not json", '{"title": "t"}', "42", "", None])
    def test_import_rejects_non_collections(self, store, draft, raw):
        store.add(draft)
        before = store.list()
        assert store.import_data(raw) is False
        assert store.list() is before

    def test_import_rejects_duplicate_ids(self, store):
        record = {"id": "same", "title": "t", "language": "py", "code": "x"}
        assert store.import_data(json.dumps([record, record])) is False

    def test_import_fills_missing_id_and_created_at(self, store):
        data = json.dumps([
            {"title": "a", "language": "py", "code": "x"},
            {"title": "b", "language": "py", "code": "y", "id": "keep", "createdAt": "2020-01-01T00:00:00.000Z"},
        ])
        assert store.import_data(data)

        first, second = store.list()
        assert first.id and first.id != "keep"
        assert first.created_at == "2026-01-02T03:04:05.000Z"
        assert second.id == "keep"
        assert second.created_at == "2020-01-01T00:00:00.000Z"

    def test_import_defaults_optional_fields(self, store):
        data = json.dumps([{"title": "a", "language": "py", "code": "x", "tags": None, "description": None}])
        assert store.import_data(data)
        assert store.list()[0].tags == ()
        assert store.list()[0].description == ""

    def test_import_empty_list_clears(self, store, draft):
        store.add(draft)
        assert store.import_data("[]") is True
        assert store.list() == ()
        assert slot(store.backend) == "[]"


class TestRollback:
    """A failed backend write leaves the cache at its last persisted state."""

    @pytest.fixture
    def seeded(self, store, draft):
        store.add(draft)
        return store

    def test_add(self, seeded, backend, metrics):
        before = seeded.list()
        backend.fail_writes = True

        assert seeded.add(make("lost")) is False
        assert seeded.list() is before
        assert metrics.persistence.failures == 1
        assert metrics.operation("add").failed == 1

    def test_update(self, seeded, backend):
        before = seeded.list()
        backend.fail_writes = True
        assert seeded.update(before[0].id, {"title": "lost"}) is False
        assert seeded.list() is before

    def test_delete(self, seeded, backend):
        before = seeded.list()
        backend.fail_writes = True
        assert seeded.delete(before[0].id) is False
        assert seeded.list() is before

    def test_import(self, seeded, backend):
        before = seeded.list()
        backend.fail_writes = True
        assert seeded.import_data("[]") is False
        assert seeded.list() is before

    def test_cache_matches_reload_after_failure(self, seeded, backend, metrics):
        backend.fail_writes = True
        seeded.add(make("lost"))
        backend.fail_writes = False

        assert SnippetStore(backend, metrics=metrics).list() == seeded.list()

    def test_quota_exceeded(self, metrics):
        backend = InMemorySlotBackend(quota=200)
        store = SnippetStore(backend, metrics=metrics)

        assert store.add(make("small")) is True
        assert store.add(make("big", code="x" * 500)) is False
        assert [s.title for s in store.list()] == ["small"]

    def test_failure_logged(self, seeded, backend, caplog):
        backend.fail_writes = True
        with caplog.at_level(logging.ERROR, logger="snipstore"):
            seeded.add(make("lost"))
        assert "Failed to persist" in caplog.text
        assert "disk on fire" in caplog.text


class TestReload:

    def test_picks_up_external_changes(self, store, backend, draft):
        other = SnippetStore(backend, metrics=MetricsRegistry())
        other.add(draft)

        assert store.list() == ()
        store.reload()
        assert store.list() == other.list()


class TestSamples:

    def test_seed_empty_collection(self, store):
        assert store.seed_samples() is True
        assert [s.language for s in store.list()] == ["javascript", "python", "css"]
        assert store.list()[0].title == SAMPLE_SNIPPETS[0]["title"]

    def test_seed_non_empty_collection(self, store, draft):
        store.add(draft)
        assert store.seed_samples() is False
        assert store.count() == 1


class TestExecutor:
    """Persisting through an executor keeps the synchronous contract."""

    def test_writes_through_executor(self, backend, metrics, draft):
        with ThreadPoolExecutor(max_workers=1) as executor:
            store = SnippetStore(backend, executor=executor, metrics=metrics)
            assert store.add(draft) is True
            assert slot(backend) == serialize_collection(store.list())

    def test_failure_through_executor(self, backend, metrics, draft):
        with ThreadPoolExecutor(max_workers=1) as executor:
            store = SnippetStore(backend, executor=executor, metrics=metrics)
            backend.fail_writes = True
            assert store.add(draft) is False
            assert store.list() == ()

    def test_shut_down_executor(self, backend, metrics, draft):
        executor = ThreadPoolExecutor(max_workers=1)
        store = SnippetStore(backend, executor=executor, metrics=metrics)
        executor.shutdown()
        assert store.add(draft) is False


class TestConcurrency:

    def test_parallel_adds_keep_every_snippet(self, store, backend):
        def worker(n):
            for i in range(25):
                store.add(make(f"{n}-{i}"))

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert store.count() == 100
        assert len({s.id for s in store.list()}) == 100
        assert slot(backend) == serialize_collection(store.list())


class TestMetrics:

    def test_counts_operations(self, store, metrics, draft):
        store.add(draft)
        store.delete("missing")

        assert metrics.operation("add").attempted == 1
        assert metrics.operation("add").failed == 0
        assert metrics.operation("delete").failed == 1
        assert metrics.snippets == 1

    def test_counts_writes(self, store, backend, metrics, draft):
        writes = backend.writes
        store.add(draft)
        backend.fail_writes = True
        store.add(draft)

        assert metrics.persistence.writes == backend.writes
        assert backend.writes - writes == 2
        assert metrics.persistence.failures == 1
        assert metrics.persistence.last_error == "BackendError: disk on fire"

    def test_rejected_import_counted_under_import(self, store, metrics):
        store.import_data("not json")

        assert metrics.operation("import").failed == 1
        assert metrics.to_dict()["operations"]["import"]["succeeded"] == 0
