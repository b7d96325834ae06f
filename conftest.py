"""Shared fakes for the ragbot tests.

The fakes stand in for the OpenAI, Chroma and HTTP adapters and record every
call so tests can assert on what the pipelines sent.
"""
import os
import sys
from typing import Any, Dict, List

import pytest

sys.path.insert(0, os.path.dirname(__file__))

from ragbot.exceptions import FetchError, UpstreamError
from ragbot.metadata_store import MetadataStore
from ragbot.models.records import VectorMatch

DIMENSIONS = 1536


class FakeEmbedder:
    def __init__(self, fail_on: str = None):
        self.inputs: List[str] = []
        self.fail_on = fail_on

    async def embed(self, text: str) -> List[float]:
        self.inputs.append(text)
        if self.fail_on is not None and self.fail_on in text:
            raise UpstreamError(f"embedding failed for {text[:20]!r}")
        return [float(len(self.inputs))] * DIMENSIONS


class FakeIndex:
    name = "test-index"

    def __init__(self, matches: List[VectorMatch] = None):
        self.matches = matches or []
        self.upserts: List[list] = []
        self.queries: List[Dict[str, Any]] = []
        self.deleted_one: List[str] = []
        self.deleted_many: List[List[str]] = []

    def upsert(self, records):
        self.upserts.append(list(records))
        return [r.id for r in records]

    def query(self, vector, top_k=5, include_metadata=True, include_values=False):
        self.queries.append({
            "vector": vector,
            "top_k": top_k,
            "include_metadata": include_metadata,
            "include_values": include_values,
        })
        return list(self.matches)

    def delete_one(self, record_id):
        self.deleted_one.append(record_id)

    def delete_many(self, record_ids):
        self.deleted_many.append(list(record_ids))


class FakeCompletion:
    model = "fake-chat"

    def __init__(self, reply: str = "  answer  "):
        self.reply = reply
        self.calls: List[List[Dict[str, str]]] = []

    async def complete(self, messages):
        self.calls.append(messages)
        return self.reply.strip()


class FakeFetcher:
    def __init__(self, text: str = "", json_data: Any = None, error: Exception = None):
        self.text = text
        self.json_data = json_data
        self.error = error
        self.urls: List[str] = []

    async def fetch_text(self, url: str) -> str:
        self.urls.append(url)
        if self.error:
            raise self.error
        return self.text

    async def fetch_json(self, url: str) -> Any:
        self.urls.append(url)
        if self.error:
            raise self.error
        return self.json_data


@pytest.fixture
def embedder():
    return FakeEmbedder()


@pytest.fixture
def index():
    return FakeIndex()


@pytest.fixture
def completion():
    return FakeCompletion()


@pytest.fixture
def metadata_store(tmp_path):
    store = MetadataStore(str(tmp_path / "metadata.db"))
    store.init_db()
    return store


@pytest.fixture
def unreachable_fetcher():
    return FakeFetcher(error=FetchError("Failed to download file: 404 Not Found"))
