"""
Indexing Module - Embeddings and vector storage.
================================================

Embedding generation and vector database operations:

- embeddings_base: Abstract interface for embedding providers
- embeddings_openai: OpenAI embeddings API
- embeddings_gemini: Gemini API embeddings
- embeddings_sbert: SBERT (sentence-transformers) local embeddings
- vector_store: Vector store contract and ChromaDB implementation

Provider implementations are imported lazily by the factory so that
optional vendor SDKs are only loaded when selected.
"""

from embeddings_evaluator.indexing.embeddings_base import (
    EmbeddingProvider,
    EmbeddingResult,
    clear_provider_cache,
    get_embedding_provider,
)
from embeddings_evaluator.indexing.vector_store import (
    ChromaVectorStore,
    VectorStore,
    collection_name_for,
    create_vector_store,
)

__all__ = [
    # Base
    "EmbeddingProvider",
    "EmbeddingResult",
    "get_embedding_provider",
    "clear_provider_cache",
    # Vector Store
    "VectorStore",
    "ChromaVectorStore",
    "collection_name_for",
    "create_vector_store",
]
