#!/usr/bin/env python3
"""
Tests for upload/update id bookkeeping, the metadata store and thread sync
"""
import asyncio
import importlib
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from conftest import FakeEmbedder, FakeFetcher, FakeIndex
from ragbot import config
from ragbot.exceptions import FetchError, ValidationError
from ragbot.metadata_store import FILE_VECTORS_COLLECTION, STREAM_MESSAGES_COLLECTION, MetadataStore
from ragbot.rag.ingestion import IngestionPipeline
from ragbot.rag.lifecycle import SourceLifecycle, file_extension


def make_lifecycle(metadata_store, fetcher=None, index=None):
    index = index or FakeIndex()
    pipeline = IngestionPipeline(FakeEmbedder(), index, fetcher or FakeFetcher(text="Battery: 10 hours."))
    return SourceLifecycle(pipeline, index, metadata_store), pipeline, index


# --- Metadata store ---

def test_set_replaces_unless_merging(metadata_store):
    metadata_store.set("c", "doc", {"a": 1, "b": 2})
    metadata_store.set("c", "doc", {"b": 3})
    assert metadata_store.get("c", "doc") == {"b": 3}
    metadata_store.set("c", "doc", {"a": 4}, merge=True)
    assert metadata_store.get("c", "doc") == {"a": 4, "b": 3}
    assert metadata_store.get("c", "missing") is None


def test_default_db_path_sits_beside_the_package(monkeypatch):
    monkeypatch.delenv("METADATA_DB_PATH", raising=False)
    try:
        importlib.reload(config)
        expected = Path(config.__file__).parent / "metadata_store.db"
        assert Path(config.METADATA_DB_PATH) == expected
        assert Path(MetadataStore().db_path).is_absolute()
    finally:
        monkeypatch.undo()
        importlib.reload(config)


def test_file_vector_ids_round_trip(metadata_store):
    assert metadata_store.fetch_file_vector_ids("unknown.md") == []
    metadata_store.save_file_vector_ids("doc.md", ["doc.md-1", "doc.md-2"])
    assert metadata_store.fetch_file_vector_ids("doc.md") == ["doc.md-1", "doc.md-2"]


def test_stream_cursor_and_messages(metadata_store):
    assert metadata_store.get_last_processed_ts() == "0"
    stored = metadata_store.save_stream_messages([
        {"ts": "1700000000.5", "text": "first"},
        {"ts": "1700000100.25", "text": "second"},
    ])
    assert stored == 2
    assert metadata_store.get_last_processed_ts() == "1700000100.25"
    assert metadata_store.save_stream_messages([{"ts": "1700000000.9", "text": "old"}]) == 0
    assert metadata_store.get_last_processed_ts() == "1700000100.25"
    assert metadata_store.get(STREAM_MESSAGES_COLLECTION, "1700000000.5") == {"ts": "1700000000.5", "text": "first"}
    assert metadata_store.get(STREAM_MESSAGES_COLLECTION, "1700000000.9") is None


# --- Upload / update ---

def test_file_extension():
    assert file_extension("Members.JSON") == "json"
    assert file_extension("notes.v2.md") == "md"
    assert file_extension("README") == ""


def test_upload_markdown_saves_ids(metadata_store):
    lifecycle, _, index = make_lifecycle(metadata_store)
    ids = asyncio.run(lifecycle.upload("doc.md", "https://x/doc.md"))
    assert len(ids) == 1 and ids[0].startswith("doc.md-")
    assert metadata_store.fetch_file_vector_ids("doc.md") == ids
    assert len(index.upserts) == 1


def test_upload_json_dispatches_to_member_ingestion(metadata_store):
    lifecycle, pipeline, _ = make_lifecycle(metadata_store)
    pipeline.ingest_members = AsyncMock(return_value=["m-1", "m-2"])
    pipeline.ingest_document = AsyncMock()

    asyncio.run(lifecycle.upload("members.json", "https://x/members.json"))

    pipeline.ingest_members.assert_awaited_once_with("members.json", "https://x/members.json")
    pipeline.ingest_document.assert_not_awaited()
    assert metadata_store.fetch_file_vector_ids("members.json") == ["m-1", "m-2"]


def test_upload_unsupported_extension_is_rejected(metadata_store):
    lifecycle, _, index = make_lifecycle(metadata_store)
    with pytest.raises(ValidationError):
        asyncio.run(lifecycle.upload("slides.pdf", "https://x/slides.pdf"))
    assert index.upserts == []


def test_update_single_id_uses_single_delete_and_replaces_ids(metadata_store):
    metadata_store.set(FILE_VECTORS_COLLECTION, "doc.md", {"vectorIds": ["doc.md-111"], "note": "stale"})
    lifecycle, _, index = make_lifecycle(metadata_store)

    new_ids = asyncio.run(lifecycle.update("doc.md", "https://x/doc.md"))

    assert index.deleted_one == ["doc.md-111"]
    assert index.deleted_many == []
    assert len(index.upserts) == 1
    assert metadata_store.get(FILE_VECTORS_COLLECTION, "doc.md") == {"vectorIds": new_ids}
    assert "doc.md-111" not in new_ids


def test_update_many_ids_uses_batch_delete(metadata_store):
    metadata_store.save_file_vector_ids("doc.md", ["doc.md-1", "doc.md-2", "doc.md-3"])
    lifecycle, _, index = make_lifecycle(metadata_store)
    asyncio.run(lifecycle.update("doc.md", "https://x/doc.md"))
    assert index.deleted_one == []
    assert index.deleted_many == [["doc.md-1", "doc.md-2", "doc.md-3"]]


def test_update_unknown_file_skips_delete(metadata_store):
    lifecycle, _, index = make_lifecycle(metadata_store)
    asyncio.run(lifecycle.update("new.md", "https://x/new.md"))
    assert index.deleted_one == [] and index.deleted_many == []


def test_update_failure_after_delete_leaves_stale_pointer(metadata_store, unreachable_fetcher):
    metadata_store.save_file_vector_ids("doc.md", ["doc.md-111"])
    lifecycle, _, index = make_lifecycle(metadata_store, fetcher=unreachable_fetcher)

    with pytest.raises(FetchError):
        asyncio.run(lifecycle.update("doc.md", "https://x/doc.md"))

    assert index.deleted_one == ["doc.md-111"]
    assert metadata_store.fetch_file_vector_ids("doc.md") == ["doc.md-111"]


def test_update_reingests_other_extensions_as_documents(metadata_store):
    metadata_store.save_file_vector_ids("notes.txt", ["notes.txt-1"])
    fetcher = FakeFetcher(text="Plain text notes about the Pixel 9.")
    lifecycle, pipeline, index = make_lifecycle(metadata_store, fetcher=fetcher)
    pipeline.ingest_members = AsyncMock()

    new_ids = asyncio.run(lifecycle.update("notes.txt", "https://x/notes.txt"))

    assert index.deleted_one == ["notes.txt-1"]
    assert len(new_ids) == 1 and new_ids[0].startswith("notes.txt-")
    assert index.upserts[0][0].metadata["text"] == "Plain text notes about the Pixel 9."
    pipeline.ingest_members.assert_not_awaited()
    assert metadata_store.fetch_file_vector_ids("notes.txt") == new_ids


def test_update_roster_reruns_member_ingestion(metadata_store):
    lifecycle, pipeline, _ = make_lifecycle(metadata_store)
    pipeline.ingest_members = AsyncMock(return_value=["member-1"])
    asyncio.run(lifecycle.update("members.json", "https://x/members.json"))
    pipeline.ingest_members.assert_awaited_once_with("members.json", "https://x/members.json")


# --- Thread sync ---

def test_sync_threads_only_ingests_newer_threads_and_advances_cursor(metadata_store):
    metadata_store.update_last_processed_ts("1700000000.5")
    lifecycle, _, index = make_lifecycle(metadata_store)
    threads = [
        {"parent": {"ts": "1700000000.1", "text": "old question"}, "messages": []},
        {"parent": {"ts": "1700000200.0", "text": "new question"}, "messages": [{"text": "answer"}]},
        {"parent": {"ts": "1700000100.0", "text": "another"}, "messages": []},
    ]

    result = asyncio.run(lifecycle.sync_threads(threads, "general"))

    assert result == {
        "ingested": ["thread-1700000200.0", "thread-1700000100.0"],
        "lastProcessedTS": "1700000200.0",
    }
    assert metadata_store.get_last_processed_ts() == "1700000200.0"
    assert len(index.upserts) == 1
    stored = metadata_store.get(STREAM_MESSAGES_COLLECTION, "1700000200.0")
    assert stored == {"ts": "1700000200.0", "text": "new question", "channel": "general"}
    assert metadata_store.get(STREAM_MESSAGES_COLLECTION, "1700000000.1") is None


def test_sync_threads_with_nothing_new_keeps_cursor(metadata_store):
    metadata_store.update_last_processed_ts("1700000300.0")
    lifecycle, _, index = make_lifecycle(metadata_store)
    result = asyncio.run(lifecycle.sync_threads([{"parent": {"ts": "1700000000.0", "text": "x"}}]))
    assert result == {"ingested": [], "lastProcessedTS": "1700000300.0"}
    assert index.upserts == []


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
