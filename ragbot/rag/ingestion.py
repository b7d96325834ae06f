"""
Ingestion pipeline: source documents, member records and conversation
threads into embedded vector records.

Every entry point embeds one vector per unit (chunk, member or thread), keeps
the unit order, and finishes with a single bulk upsert so a whole ingestion
costs one index round trip.
"""

import json
import logging
import time
from typing import Any, Dict, List, Optional

from .. import config
from ..exceptions import UpstreamError, ValidationError
from ..models.records import Chunk, VectorRecord
from .chunk_store import VectorIndex
from .chunker import chunk_text_by_tokens
from .embedder import EmbeddingClient
from .fetcher import SourceFetcher
from .policies import AbortOnErrorPolicy, PartialSuccessPolicy

logger = logging.getLogger(__name__)

MEMBERS_KEY = "superteam_members"
REQUIRED_MEMBER_FIELDS = [
    "id", "name", "role", "skills", "expertise",
    "experience_level", "location", "projects", "contact_info",
]
DEFAULT_THREAD_CHANNEL = "Q&A"

# Subset of the parent message kept on transformed threads
PARENT_FIELDS = [
    "user", "type", "ts", "client_msg_id", "text", "team",
    "thread_ts", "reply_count", "reply_users_count", "latest_reply",
]


def validate_member(member: Any) -> bool:
    """True only when every required field is present and truthy."""
    if not isinstance(member, dict):
        return False
    for field in REQUIRED_MEMBER_FIELDS:
        if not member.get(field):
            return False
    return True


def _join(value: Any, sep: str = ", ") -> str:
    if isinstance(value, (list, tuple)):
        return sep.join(str(v) for v in value)
    return str(value)


def combine_member_info(member: Dict[str, Any]) -> str:
    """Combine member information into a single text blob for embedding."""
    skills = _join(member["skills"])
    projects_value = member["projects"]
    if isinstance(projects_value, list):
        projects = "; ".join(
            f"{p.get('name', '')}: {p.get('description', '')}" if isinstance(p, dict) else str(p)
            for p in projects_value
        )
    else:
        projects = str(projects_value)
    return (
        f"Name: {member['name']}. Role: {member['role']}. Skills: {skills}. "
        f"Expertise: {_join(member['expertise'])}. Experience Level: {member['experience_level']}. "
        f"Location: {member['location']}. Projects: {projects}."
    )


def member_metadata(member: Dict[str, Any], combined_text: str) -> Dict[str, Any]:
    """Flattened metadata stored alongside a member vector."""
    contact = member["contact_info"] if isinstance(member["contact_info"], dict) else {}
    skills = member["skills"]
    return {
        "name": member["name"],
        "role": member["role"],
        "skills": [str(s) for s in skills] if isinstance(skills, (list, tuple)) else str(skills),
        "expertise": _join(member["expertise"]),
        "experience_level": member["experience_level"],
        "location": member["location"],
        "contact_email": contact.get("email"),
        "telegram": contact.get("telegram"),
        "projects": json.dumps(member["projects"], ensure_ascii=False),
        "text": combined_text,
    }


def transform_conversations(threads: Any) -> List[Dict[str, Any]]:
    """Reduce raw threads to a parent subset plus the child message texts.

    Returns:
        List of {'parent': dict | None, 'messages': [str, ...]}. Non-list
        input yields an empty list.
    """
    if not isinstance(threads, list):
        logger.error("[INGEST] Expected a list of threads")
        return []

    structured = []
    for thread in threads:
        thread = thread or {}
        parent = thread.get("parent")
        messages = thread.get("messages")
        parent_subset = {key: parent.get(key) for key in PARENT_FIELDS} if parent else None
        message_texts = [(child or {}).get("text") or "" for child in messages] if isinstance(messages, list) else []
        structured.append({"parent": parent_subset, "messages": message_texts})
    return structured


def combine_thread_text(thread: Dict[str, Any]) -> str:
    """Parent text followed by child texts, one per line."""
    combined = ""
    parent = thread.get("parent")
    if parent and parent.get("text"):
        combined += f"{parent['text']}\n"
    if thread.get("messages"):
        combined += "\n".join(thread["messages"])
    return combined


class IngestionPipeline:
    """Chunker -> embedder -> vector index orchestration."""

    def __init__(
        self,
        embedder: EmbeddingClient,
        index: VectorIndex,
        fetcher: Optional[SourceFetcher] = None,
        max_tokens_per_chunk: int = config.MAX_TOKENS_PER_CHUNK,
    ):
        self.embedder = embedder
        self.index = index
        self.fetcher = fetcher or SourceFetcher()
        self.max_tokens_per_chunk = max_tokens_per_chunk
        self._last_ts = 0

    def _next_record_ts(self) -> int:
        """Millisecond generation timestamp, strictly increasing per pipeline."""
        ts = int(time.time() * 1000)
        if ts <= self._last_ts:
            ts = self._last_ts + 1
        self._last_ts = ts
        return ts

    async def ingest_document(self, file_name: str, file_url: str) -> List[str]:
        """Fetch, chunk, embed and upsert a text document.

        Any chunk-level embedding failure aborts the whole ingestion before
        the upsert, so a document is either fully indexed or not at all.

        Returns:
            Generated record ids ('<file_name>-<timestamp>'), in chunk order.
        """
        content = await self.fetcher.fetch_text(file_url)
        chunks = chunk_text_by_tokens(content, self.max_tokens_per_chunk)

        async def embed_chunk(_index: int, chunk: Chunk) -> VectorRecord:
            embedding = await self.embedder.embed(chunk.text)
            return VectorRecord(
                id=f"{file_name}-{self._next_record_ts()}",
                values=embedding,
                metadata={"source": file_name, "text": chunk.text},
            )

        records = await AbortOnErrorPolicy().run(chunks.iter_chunks(), embed_chunk)
        if not records:
            logger.warning(f"[INGEST] No vectors generated for file {file_name}")
            return []

        ids = self.index.upsert(records)
        logger.info(f"[INGEST] {file_name}: {len(chunks)} chunks, {chunks.total_tokens} tokens indexed")
        return ids

    async def ingest_members(self, file_name: str, file_url: str) -> List[str]:
        """Fetch a member roster JSON and index one vector per valid member.

        Members missing a required field are logged and skipped; embedding
        failures still abort.

        Returns:
            Ids of the members that were upserted.

        Raises:
            ParseError: Malformed JSON.
            ValidationError: Missing 'superteam_members' array.
        """
        data = await self.fetcher.fetch_json(file_url)
        members = data.get(MEMBERS_KEY) if isinstance(data, dict) else None
        if not isinstance(members, list):
            raise ValidationError(f'Invalid JSON structure: Missing "{MEMBERS_KEY}" array')

        async def embed_member(_index: int, member: Any) -> VectorRecord:
            if not validate_member(member):
                logger.info(f"[INGEST] Invalid member data: {json.dumps(member, ensure_ascii=False, default=str)}")
                raise ValidationError(f"Member is missing one of {REQUIRED_MEMBER_FIELDS}")
            combined = combine_member_info(member)
            embedding = await self.embedder.embed(combined)
            return VectorRecord(
                id=str(member["id"]),
                values=embedding,
                metadata=member_metadata(member, combined),
            )

        policy = PartialSuccessPolicy(recover=(ValidationError,))
        records = await policy.run(members, embed_member)
        if not records:
            logger.warning(f"[INGEST] No valid members found in {file_name}")
            return []

        ids = self.index.upsert(records)
        logger.info(f"[INGEST] {file_name}: {len(ids)} members indexed, {len(policy.errors)} skipped")
        return ids

    async def ingest_threads(self, raw_threads: Any, channel: str = DEFAULT_THREAD_CHANNEL) -> List[str]:
        """Index one vector per conversation thread.

        Threads without any text are skipped, as are threads whose embedding
        request fails.

        Returns:
            Ids ('thread-<parent ts>' or 'thread-<position>') of upserted threads.
        """
        structured = transform_conversations(raw_threads)

        async def embed_thread(index: int, thread: Dict[str, Any]) -> Optional[VectorRecord]:
            combined = combine_thread_text(thread)
            if not combined.strip():
                return None
            embedding = await self.embedder.embed(combined)
            parent = thread["parent"] or {}
            return VectorRecord(
                id=f"thread-{parent['ts']}" if parent.get("ts") else f"thread-{index + 1}",
                values=embedding,
                metadata={
                    "channel": channel,
                    "parentUser": parent.get("user"),
                    "parentTs": parent.get("ts"),
                    "parentText": parent.get("text"),
                    "text": combined,
                },
            )

        records = await PartialSuccessPolicy(recover=(UpstreamError,)).run(structured, embed_thread)
        if not records:
            logger.warning(f"[INGEST] No thread records to upsert for channel {channel}")
            return []
        return self.index.upsert(records)
