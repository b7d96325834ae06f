"""
RAG (Retrieval Augmented Generation) package for the ragbot backend.

Components:
    - chunker: Token-bounded chunking with tiktoken
    - embedder: OpenAI embedding adapter
    - chunk_store: ChromaDB vector index adapter
    - llm: OpenAI chat-completion adapter
    - fetcher: Source file download
    - policies: Abort-on-error and partial-success batch policies
    - ingestion: Document, member and thread ingestion
    - lifecycle: Upload/update id bookkeeping and thread-stream sync
    - retriever: Conversation-aware retrieval and answer generation
    - prompts: System instructions for the Q&A and tweet-drafting policies
"""
