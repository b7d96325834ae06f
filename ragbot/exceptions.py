"""Error taxonomy shared by the ingestion and retrieval pipelines.

Adapters translate provider exceptions (openai, httpx, chromadb) into these
types so that routes only need to know about ``RagError``.
"""


class RagError(Exception):
    """Base class for pipeline failures."""
    pass


class FetchError(RagError):
    """Source URL unreachable or answered with a non-success status."""
    pass


class ParseError(RagError):
    """Source payload could not be decoded (malformed JSON)."""
    pass


class ValidationError(RagError):
    """Input failed a shape or required-field check."""
    pass


class UpstreamError(RagError):
    """Embedding, completion, vector index or transport call failed."""
    pass


class NoContextError(RagError):
    """Retrieval returned zero matches for the query."""
    pass
