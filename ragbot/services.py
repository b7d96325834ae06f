"""Startup wiring: adapters are built once and handed to the pipelines."""
from dataclasses import dataclass
import logging

from . import config
from .metadata_store import MetadataStore
from .rag.chunk_store import VectorIndex
from .rag.embedder import EmbeddingClient
from .rag.fetcher import SourceFetcher
from .rag.ingestion import IngestionPipeline
from .rag.lifecycle import SourceLifecycle
from .rag.llm import CompletionClient
from .rag.prompts import QA_POLICY, TWEET_POLICY
from .rag.retriever import ConversationalRetriever

logger = logging.getLogger(__name__)


@dataclass
class RagServices:
    """Everything the HTTP routes need, constructed at startup."""
    index: VectorIndex
    metadata_store: MetadataStore
    ingestion: IngestionPipeline
    lifecycle: SourceLifecycle
    qa: ConversationalRetriever
    tweets: ConversationalRetriever

    def startup(self) -> None:
        """Idempotent one-time initialization of external resources."""
        self.index.ensure_index_exists(config.EMBEDDING_DIMENSIONS)
        self.metadata_store.init_db()


def build_services(
    embedder: EmbeddingClient = None,
    index: VectorIndex = None,
    llm: CompletionClient = None,
    metadata_store: MetadataStore = None,
    fetcher: SourceFetcher = None,
) -> RagServices:
    """Construct adapters (or accept substitutes) and inject them into the pipelines."""
    embedder = embedder or EmbeddingClient()
    index = index or VectorIndex(config.INDEX_NAME)
    llm = llm or CompletionClient()
    metadata_store = metadata_store or MetadataStore()

    ingestion = IngestionPipeline(embedder, index, fetcher or SourceFetcher(), config.MAX_TOKENS_PER_CHUNK)
    services = RagServices(
        index=index,
        metadata_store=metadata_store,
        ingestion=ingestion,
        lifecycle=SourceLifecycle(ingestion, index, metadata_store),
        qa=ConversationalRetriever(embedder, index, llm, QA_POLICY, config.RETRIEVAL_TOP_K),
        tweets=ConversationalRetriever(embedder, index, llm, TWEET_POLICY, config.RETRIEVAL_TOP_K),
    )
    logger.info(f"[STARTUP] Services built (index '{index.name}', chat model {llm.model})")
    return services
