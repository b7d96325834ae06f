"""
Embedder module for generating OpenAI embeddings.

Wraps text-embedding-ada-002 behind a small adapter so pipelines receive an
explicitly constructed client instead of reaching for a module global. One
request is issued per text; callers decide how many texts to embed.
"""

import logging
from typing import List, Optional

import openai
from openai import AsyncOpenAI

from .. import config
from ..exceptions import UpstreamError

logger = logging.getLogger(__name__)

EMBEDDING_MODEL = config.EMBEDDING_MODEL
EMBEDDING_DIMENSIONS = config.EMBEDDING_DIMENSIONS


def _get_openai_client() -> AsyncOpenAI:
    """Get an AsyncOpenAI client using the configured API key.

    Raises:
        ValueError: If OPENAI_API_KEY is not set.
    """
    if not config.OPENAI_API_KEY:
        raise ValueError("OPENAI_API_KEY not found in environment or ragbot.config")

    return AsyncOpenAI(api_key=config.OPENAI_API_KEY)


class EmbeddingClient:
    """Turns text into fixed-length vectors."""

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        model: str = EMBEDDING_MODEL,
        dimensions: int = EMBEDDING_DIMENSIONS,
    ):
        self.client = client or _get_openai_client()
        self.model = model
        self.dimensions = dimensions

    async def embed(self, text: str) -> List[float]:
        """Generate an embedding for a single text.

        Args:
            text: Chunk, record blob or query text.

        Returns:
            Embedding vector (list of floats).

        Raises:
            UpstreamError: If the embeddings call fails.
        """
        try:
            response = await self.client.embeddings.create(
                model=self.model,
                input=text,
            )
        except openai.OpenAIError as e:
            logger.error(f"[EMBEDDER] Embedding request failed: {e}")
            raise UpstreamError(f"Embedding request failed: {e}") from e

        embedding = response.data[0].embedding
        if len(embedding) != self.dimensions:
            logger.warning(
                f"[EMBEDDER] Expected {self.dimensions}d embedding from {self.model}, "
                f"got {len(embedding)}d"
            )
        return embedding
