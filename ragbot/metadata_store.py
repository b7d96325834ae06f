"""
Key-value document store for ingestion bookkeeping.

Holds small JSON documents addressed by (collection, doc_id): the vector ids
each uploaded file produced, and the message-stream cursor together with
the messages stored behind it. Backed by a local SQLite file.
"""
import json
import logging
import os
import sqlite3
from contextlib import contextmanager
from typing import Any, Dict, Iterable, List, Optional

from . import config

logger = logging.getLogger(__name__)

FILE_VECTORS_COLLECTION = "fileVectors"
STREAM_METADATA_COLLECTION = "telegramMetadata"
STREAM_CURSOR_DOC = "timestamps"
STREAM_MESSAGES_COLLECTION = "telegramMessages"


class MetadataStore:

    def __init__(self, db_path: str = None):
        self.db_path = db_path or config.METADATA_DB_PATH

    @contextmanager
    def get_conn(self):
        conn = sqlite3.connect(self.db_path)
        try:
            yield conn
        finally:
            conn.close()

    def init_db(self):
        """Create the documents table if it does not exist."""
        directory = os.path.dirname(self.db_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with self.get_conn() as conn:
            conn.execute("""
            CREATE TABLE IF NOT EXISTS documents (
                collection TEXT NOT NULL,
                doc_id TEXT NOT NULL,
                data TEXT NOT NULL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                PRIMARY KEY (collection, doc_id)
            )
            """)
            conn.commit()
        logger.info(f"[METADATA] Store ready at {self.db_path}")

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Return the stored document, or None if it does not exist."""
        with self.get_conn() as conn:
            cur = conn.execute(
                "SELECT data FROM documents WHERE collection = ? AND doc_id = ?",
                (collection, doc_id),
            )
            row = cur.fetchone()
        return json.loads(row[0]) if row else None

    def set(self, collection: str, doc_id: str, value: Dict[str, Any], merge: bool = False):
        """Write a document.

        With merge=False the document is replaced; with merge=True the given
        fields are merged over the existing ones (last write wins per field).
        """
        with self.get_conn() as conn:
            if merge:
                cur = conn.execute(
                    "SELECT data FROM documents WHERE collection = ? AND doc_id = ?",
                    (collection, doc_id),
                )
                row = cur.fetchone()
                current = json.loads(row[0]) if row else {}
                current.update(value)
                value = current
            conn.execute("""
                INSERT INTO documents (collection, doc_id, data, updated_at)
                VALUES (?, ?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(collection, doc_id) DO UPDATE SET
                    data = excluded.data,
                    updated_at = excluded.updated_at;
            """, (collection, doc_id, json.dumps(value, ensure_ascii=False)))
            conn.commit()

    # --- Per-file vector ids ---

    def save_file_vector_ids(self, file_name: str, vector_ids: List[str]):
        """Replace the id list stored for a file (never merged)."""
        self.set(FILE_VECTORS_COLLECTION, file_name, {"vectorIds": list(vector_ids)}, merge=False)
        logger.info(f"[METADATA] Saved {len(vector_ids)} vector ids for {file_name}")

    def fetch_file_vector_ids(self, file_name: str) -> List[str]:
        """Ids previously stored for a file, or [] if the file is unknown."""
        data = self.get(FILE_VECTORS_COLLECTION, file_name)
        if not data:
            return []
        return data.get("vectorIds") or []

    # --- Message stream cursor ---

    def get_last_processed_ts(self) -> str:
        """Current stream cursor, '0' when nothing has been processed."""
        data = self.get(STREAM_METADATA_COLLECTION, STREAM_CURSOR_DOC)
        if not data:
            return "0"
        return data.get("lastProcessedTS") or "0"

    def update_last_processed_ts(self, max_ts: str):
        self.set(STREAM_METADATA_COLLECTION, STREAM_CURSOR_DOC, {"lastProcessedTS": max_ts}, merge=True)

    def save_stream_messages(self, messages: Iterable[Dict[str, Any]]) -> int:
        """Store messages newer than the cursor and advance the cursor.

        Returns:
            Number of messages stored.
        """
        messages = list(messages or [])
        if not messages:
            return 0

        current_ts = self.get_last_processed_ts()
        new_messages = [m for m in messages if float(m.get("ts") or 0) > float(current_ts)]
        if not new_messages:
            return 0

        for msg in new_messages:
            self.set(STREAM_MESSAGES_COLLECTION, str(msg["ts"]), dict(msg))

        max_ts = max((str(m["ts"]) for m in new_messages), key=float)
        self.update_last_processed_ts(max_ts)
        logger.info(f"[METADATA] Stored {len(new_messages)} stream messages, cursor at {max_ts}")
        return len(new_messages)
