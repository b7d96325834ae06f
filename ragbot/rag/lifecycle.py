"""
Source lifecycle: upload, update and thread-stream sync.

Keeps the metadata store's per-file id list in step with what is in the
vector index. Updates delete the old vectors before re-ingesting; if the
re-ingest fails the file is left with no vectors and a stale id list until
the next successful upload or update.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, List, Sequence

from ..exceptions import ValidationError
from ..metadata_store import MetadataStore
from .chunk_store import VectorIndex
from .ingestion import DEFAULT_THREAD_CHANNEL, IngestionPipeline

logger = logging.getLogger(__name__)

DOCUMENT_EXTENSIONS = ("md",)
MEMBER_EXTENSIONS = ("json",)


def file_extension(file_name: str) -> str:
    return file_name.rsplit(".", 1)[-1].lower() if "." in file_name else ""


class SourceLifecycle:

    def __init__(self, ingestion: IngestionPipeline, index: VectorIndex, metadata_store: MetadataStore):
        self.ingestion = ingestion
        self.index = index
        self.metadata_store = metadata_store

    def _ingester_for(self, file_name: str, any_text: bool = False) -> Callable[[str, str], Awaitable[List[str]]]:
        """Pick member or document ingestion by file extension.

        With `any_text`, extensions other than the member roster's are
        ingested as documents instead of being rejected.
        """
        extension = file_extension(file_name)
        logger.info(f"[LIFECYCLE] {file_name}: file type '{extension}'")
        if extension in MEMBER_EXTENSIONS:
            return self.ingestion.ingest_members
        if extension in DOCUMENT_EXTENSIONS or any_text:
            return self.ingestion.ingest_document
        raise ValidationError(f"Unsupported file type: '{extension or file_name}'")

    async def upload(self, file_name: str, file_url: str) -> List[str]:
        """Ingest a new file and record the ids it produced."""
        ingest = self._ingester_for(file_name)
        ids = await ingest(file_name, file_url)
        self.metadata_store.save_file_vector_ids(file_name, ids)
        return ids

    def delete_vectors_by_ids(self, ids: Sequence[str]) -> None:
        """Single delete for one id, batch delete for more, nothing for none."""
        ids = list(ids)
        if not ids:
            logger.info("[LIFECYCLE] No vector ids to delete")
        elif len(ids) == 1:
            self.index.delete_one(ids[0])
        else:
            self.index.delete_many(ids)

    async def update(self, file_name: str, file_url: str) -> List[str]:
        """Replace a file's vectors with a fresh ingestion.

        Roster files re-run member ingestion; every other file is re-ingested
        as a document. The stored id list is overwritten, not merged, so
        deleted ids never come back on a later lookup.
        """
        ingest = self._ingester_for(file_name, any_text=True)
        old_ids = self.metadata_store.fetch_file_vector_ids(file_name)
        logger.info(f"[LIFECYCLE] {file_name}: removing {len(old_ids)} previous vectors")
        self.delete_vectors_by_ids(old_ids)

        ids = await ingest(file_name, file_url)
        self.metadata_store.save_file_vector_ids(file_name, ids)
        return ids

    async def sync_threads(self, raw_threads: Any, channel: str = DEFAULT_THREAD_CHANNEL) -> Dict[str, Any]:
        """Ingest threads newer than the stream cursor, then advance it.

        Parent messages of the ingested threads are kept in the stream
        message collection; storing them moves the cursor to the newest ts.

        Returns:
            {'ingested': [ids], 'lastProcessedTS': cursor after the run}
        """
        cursor = self.metadata_store.get_last_processed_ts()
        new_threads = [
            thread for thread in (raw_threads if isinstance(raw_threads, list) else [])
            if float(((thread or {}).get("parent") or {}).get("ts") or 0) > float(cursor)
        ]
        if not new_threads:
            logger.info(f"[LIFECYCLE] No threads newer than {cursor}")
            return {"ingested": [], "lastProcessedTS": cursor}

        ids = await self.ingestion.ingest_threads(new_threads, channel)
        self.metadata_store.save_stream_messages(dict(t["parent"], channel=channel) for t in new_threads)
        max_ts = self.metadata_store.get_last_processed_ts()
        logger.info(f"[LIFECYCLE] Synced {len(ids)} threads from {channel}, cursor {cursor} -> {max_ts}")
        return {"ingested": ids, "lastProcessedTS": max_ts}
