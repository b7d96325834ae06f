"""
ChromaDB collection management for the knowledge index.

Provides the vector-index capability used by the pipelines: bulk upsert,
similarity query, and single/batch delete by id. Collection creation is an
explicit startup step (`ensure_index_exists`), never a side effect of
constructing the adapter.
"""

import json
import logging
import os
from typing import Any, Dict, List, Sequence

from .. import config
from ..exceptions import UpstreamError
from ..models.records import VectorMatch, VectorRecord

logger = logging.getLogger(__name__)

DEFAULT_PERSIST_DIR = config.CHROMA_PERSIST_DIR
DISTANCE_SPACE = "cosine"


def get_chroma_client(persist_dir: str = None, host: str = None, port: int = None):
    """Get a ChromaDB client.

    Uses an HttpClient when a host is configured, otherwise a
    PersistentClient rooted at `persist_dir`.
    """
    import chromadb

    host = host or config.CHROMA_HOST
    if host:
        return chromadb.HttpClient(host=host, port=port or config.CHROMA_PORT)

    persist_dir = persist_dir or DEFAULT_PERSIST_DIR
    os.makedirs(persist_dir, exist_ok=True)
    return chromadb.PersistentClient(path=persist_dir)


def _to_chroma_metadata(metadata: Dict[str, Any]) -> Dict[str, Any]:
    """Flatten metadata into values Chroma accepts.

    None values are dropped and string lists are joined with ', '; any other
    non-scalar is stored as JSON.
    """
    flat = {}
    for key, value in metadata.items():
        if value is None:
            continue
        if isinstance(value, (str, int, float, bool)):
            flat[key] = value
        elif isinstance(value, (list, tuple)) and all(isinstance(v, str) for v in value):
            flat[key] = ", ".join(value)
        else:
            flat[key] = json.dumps(value, ensure_ascii=False)
    return flat


class VectorIndex:
    """Vector-index adapter backed by a single Chroma collection."""

    def __init__(self, name: str = config.INDEX_NAME, client=None):
        self.name = name
        self._client = client
        self._collection = None

    @property
    def client(self):
        if self._client is None:
            self._client = get_chroma_client()
        return self._client

    @property
    def collection(self):
        if self._collection is None:
            self._collection = self.client.get_collection(name=self.name, embedding_function=None)
        return self._collection

    def ensure_index_exists(self, dimensions: int = config.EMBEDDING_DIMENSIONS) -> None:
        """Create the collection if missing. Safe to call more than once.

        The collection uses cosine distance and records the embedding
        dimension in its metadata.
        """
        try:
            self._collection = self.client.get_or_create_collection(
                name=self.name,
                metadata={"hnsw:space": DISTANCE_SPACE, "dimension": dimensions},
                embedding_function=None,
            )
        except Exception as e:
            logger.error(f"[CHUNK_STORE] Could not open collection '{self.name}': {e}")
            raise UpstreamError(f"Vector index unavailable: {e}") from e
        logger.info(f"[CHUNK_STORE] Collection '{self.name}' ready ({dimensions}d, {DISTANCE_SPACE})")

    def upsert(self, records: Sequence[VectorRecord]) -> List[str]:
        """Insert or replace records in one call.

        A repeated id keeps its first position and its last record.

        Returns:
            The distinct ids of the upserted records, in input order.
        """
        if not records:
            logger.warning("[CHUNK_STORE] No records to upsert")
            return []

        by_id: Dict[str, VectorRecord] = {}
        for record in records:
            by_id[record.id] = record
        if len(by_id) < len(records):
            logger.warning(f"[CHUNK_STORE] Collapsed {len(records) - len(by_id)} duplicate ids in upsert batch")
        records = list(by_id.values())
        ids = list(by_id)
        try:
            self.collection.upsert(
                ids=ids,
                embeddings=[r.values for r in records],
                metadatas=[_to_chroma_metadata(r.metadata) for r in records],
            )
        except Exception as e:
            logger.error(f"[CHUNK_STORE] Upsert of {len(ids)} records failed: {e}")
            raise UpstreamError(f"Vector upsert failed: {e}") from e

        logger.info(f"[CHUNK_STORE] Upserted {len(ids)} records into '{self.name}'")
        return ids

    def query(
        self,
        vector: List[float],
        top_k: int = config.RETRIEVAL_TOP_K,
        include_metadata: bool = True,
        include_values: bool = False,
    ) -> List[VectorMatch]:
        """Return the `top_k` nearest records, best first.

        Scores are cosine similarities (1 - distance).
        """
        include = ["distances"]
        if include_metadata:
            include.append("metadatas")
        if include_values:
            include.append("embeddings")

        try:
            results = self.collection.query(
                query_embeddings=[vector],
                n_results=top_k,
                include=include,
            )
        except Exception as e:
            logger.error(f"[CHUNK_STORE] Query failed: {e}")
            raise UpstreamError(f"Vector query failed: {e}") from e

        matches = []
        if results and results["ids"] and results["ids"][0]:
            metadatas = results.get("metadatas") if include_metadata else None
            embeddings = results.get("embeddings") if include_values else None
            for i, record_id in enumerate(results["ids"][0]):
                matches.append(VectorMatch(
                    id=record_id,
                    score=1 - results["distances"][0][i],
                    metadata=dict(metadatas[0][i] or {}) if metadatas is not None else {},
                    values=list(embeddings[0][i]) if embeddings is not None else None,
                ))

        return matches

    def delete_one(self, record_id: str) -> None:
        """Delete a single record by id."""
        self._delete([record_id])

    def delete_many(self, record_ids: Sequence[str]) -> None:
        """Delete a batch of records by id."""
        self._delete(list(dict.fromkeys(record_ids)))

    def _delete(self, record_ids: List[str]) -> None:
        try:
            self.collection.delete(ids=record_ids)
        except Exception as e:
            logger.error(f"[CHUNK_STORE] Delete of {record_ids} failed: {e}")
            raise UpstreamError(f"Vector delete failed: {e}") from e
        logger.info(f"[CHUNK_STORE] Deleted {len(record_ids)} records from '{self.name}'")

    def count(self) -> int:
        return self.collection.count()
