"""
Retriever module for conversation-aware retrieval and answer generation.

The conversation history is folded into the text that gets embedded, so a
follow-up like "how long does it last?" still retrieves battery documents.
Generation then receives the history verbatim plus the retrieved context.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .. import config
from ..exceptions import NoContextError
from ..models.records import ConversationTurn, VectorMatch
from .chunk_store import VectorIndex
from .embedder import EmbeddingClient
from .llm import CompletionClient
from .prompts import QA_POLICY, AnswerPolicy

logger = logging.getLogger(__name__)

DEFAULT_TOP_K = config.RETRIEVAL_TOP_K


def _turns(history: Optional[Iterable[Any]]) -> List[ConversationTurn]:
    return [ConversationTurn.from_value(turn) for turn in (history or [])]


def format_history(history: Optional[Iterable[Any]]) -> str:
    """Render history as 'role: content' lines ("" when empty)."""
    return "\n".join(f"{turn.role}: {turn.content}" for turn in _turns(history))


def build_retrieval_input(history: Optional[Iterable[Any]], query: str) -> str:
    """Text embedded for retrieval: formatted history plus the current query."""
    formatted = format_history(history)
    return f"{formatted}\nUser: {query}" if formatted else f"User: {query}"


def build_context(matches: Sequence[VectorMatch]) -> str:
    """Join each match's stored text in ranked order, separated by blank lines."""
    return "\n\n".join(match.metadata.get("text") or "" for match in matches)


def build_messages(
    history: Optional[Iterable[Any]],
    query: str,
    context: str,
    policy: AnswerPolicy = QA_POLICY,
) -> List[Dict[str, str]]:
    """Assemble the completion request.

    System instruction, then every history turn as given, then one user turn
    carrying the retrieved context and the question.
    """
    messages = [{"role": "system", "content": policy.system_prompt}]
    messages.extend(turn.as_message() for turn in _turns(history))
    messages.append({"role": "user", "content": f"Context:\n{context}\n\nQuestion: {query}"})
    return messages


class ConversationalRetriever:
    """Retrieve-then-generate pipeline for one answer policy."""

    def __init__(
        self,
        embedder: EmbeddingClient,
        index: VectorIndex,
        llm: CompletionClient,
        policy: AnswerPolicy = QA_POLICY,
        top_k: int = DEFAULT_TOP_K,
    ):
        self.embedder = embedder
        self.index = index
        self.llm = llm
        self.policy = policy
        self.top_k = top_k

    async def search(self, query: str, top_k: Optional[int] = None) -> List[VectorMatch]:
        """History-free similarity search for a single query."""
        embedding = await self.embedder.embed(query)
        return self.index.query(embedding, top_k=top_k or self.top_k, include_metadata=True, include_values=False)

    async def retrieve(self, history: Optional[Iterable[Any]], query: str) -> List[VectorMatch]:
        """Embed history + query once and query the index."""
        query_text = build_retrieval_input(history, query)
        embedding = await self.embedder.embed(query_text)
        matches = self.index.query(embedding, top_k=self.top_k, include_metadata=True, include_values=False)
        logger.info(f"[RETRIEVER] {self.policy.name}: {len(matches)} matches for query: {query[:80]}")
        return matches

    async def answer(self, history: Optional[Iterable[Any]], query: str) -> str:
        """Answer `query` grounded in retrieved context.

        Raises:
            NoContextError: The index returned no matches; no completion is requested.
            UpstreamError: Embedding, index or completion call failed.
        """
        history = _turns(history)
        matches = await self.retrieve(history, query)
        if not matches:
            logger.warning(f"[RETRIEVER] No relevant information found for: {query[:80]}")
            raise NoContextError("No relevant information found.")

        context = build_context(matches)
        messages = build_messages(history, query, context, self.policy)
        return await self.llm.complete(messages)
