"""
Chunker module for splitting source documents into token-bounded chunks.

Text is encoded once with tiktoken and sliced into contiguous windows of at
most `max_tokens` tokens. Windows never overlap, so decoding every window in
order reproduces the original token sequence.
"""

import logging
from functools import lru_cache
from typing import Iterator, List

import tiktoken

from .. import config
from ..models.records import Chunk

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOKENS = config.MAX_TOKENS_PER_CHUNK


@lru_cache(maxsize=None)
def get_encoding(name: str = config.TOKENIZER_ENCODING) -> tiktoken.Encoding:
    """Return a cached tiktoken encoding (cl100k_base by default)."""
    return tiktoken.get_encoding(name)


def count_tokens(text: str) -> int:
    """Count tokens in text under the configured encoding."""
    if not text:
        return 0
    return len(get_encoding().encode(text, disallowed_special=()))


class TokenChunks:
    """Lazy, restartable sequence of chunk strings.

    The text is encoded up front; each iteration decodes the windows on
    demand, so the sequence can be walked any number of times.
    """

    def __init__(self, text: str, max_tokens: int, encoding: tiktoken.Encoding):
        if max_tokens < 1:
            raise ValueError(f"max_tokens must be positive, got {max_tokens}")
        self.max_tokens = max_tokens
        self._encoding = encoding
        self._tokens: List[int] = encoding.encode(text, disallowed_special=()) if text else []

    @property
    def total_tokens(self) -> int:
        return len(self._tokens)

    def __len__(self) -> int:
        return -(-len(self._tokens) // self.max_tokens)

    def __iter__(self) -> Iterator[str]:
        for window in self.token_windows():
            yield self._encoding.decode(window)

    def token_windows(self) -> Iterator[List[int]]:
        """Yield the raw token slices backing each chunk."""
        start = 0
        while start < len(self._tokens):
            end = min(start + self.max_tokens, len(self._tokens))
            yield self._tokens[start:end]
            start = end

    def iter_chunks(self) -> Iterator[Chunk]:
        """Yield `Chunk` objects carrying their token counts."""
        for window in self.token_windows():
            yield Chunk(text=self._encoding.decode(window), token_count=len(window))


def chunk_text_by_tokens(text: str, max_tokens: int = DEFAULT_MAX_TOKENS) -> TokenChunks:
    """Split text into contiguous chunks of at most `max_tokens` tokens.

    Args:
        text: Raw document text.
        max_tokens: Upper bound on tokens per chunk. The last chunk may be shorter.

    Returns:
        TokenChunks iterable. Empty text yields nothing; text that fits in one
        window yields exactly one chunk.
    """
    chunks = TokenChunks(text, max_tokens, get_encoding())
    logger.debug(f"[CHUNKER] {chunks.total_tokens} tokens -> {len(chunks)} chunks (max {max_tokens})")
    return chunks
