"""Record types passed between the chunker, adapters and pipelines.

`VectorRecord` is what gets upserted into the vector index, `VectorMatch` is
what a similarity query returns, and `ConversationTurn` is one caller-supplied
history entry.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Union

MetadataValue = Union[str, int, float, bool, List[str], None]


@dataclass
class Chunk:
    """Token-bounded slice of a document."""
    text: str
    token_count: int


@dataclass
class VectorRecord:
    """Embedded unit stored in the vector index.

    Attributes:
        id: Record identity (e.g. '<fileName>-<timestamp>', '<memberId>', 'thread-<ts>').
        values: Embedding vector.
        metadata: Flat mapping of scalars or string lists.
    """
    id: str
    values: List[float]
    metadata: Dict[str, MetadataValue] = field(default_factory=dict)


@dataclass
class VectorMatch:
    """One similarity-query hit, ranked by the index."""
    id: str
    score: float
    metadata: Dict[str, Any] = field(default_factory=dict)
    values: Optional[List[float]] = None


@dataclass
class ConversationTurn:
    role: str
    content: str

    @classmethod
    def from_value(cls, value: Union["ConversationTurn", Mapping[str, Any]]) -> "ConversationTurn":
        """Accept either a turn or a {'role', 'content'} mapping from a request body."""
        if isinstance(value, cls):
            return value
        content = value.get("content")
        return cls(role=str(value.get("role") or ""), content=content if isinstance(content, str) else "")

    def as_message(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}
