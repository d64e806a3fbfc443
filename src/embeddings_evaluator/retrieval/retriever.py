"""
Retriever Module - Query embedding, candidate retrieval and shaping.
====================================================================

Composes the retrieval steps of one query:
- Embed the query text
- Fetch the candidate pool from the vector store
- Rerank the top candidates (when a reranker is configured)
- Shape the partition into the final result list

The evaluation runner drives these steps one at a time so it can track
which stage a failure happened in; ``search()`` runs them all.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Optional

from embeddings_evaluator.indexing.embeddings_base import EmbeddingProvider, EmbeddingResult
from embeddings_evaluator.indexing.vector_store import VectorStore
from embeddings_evaluator.retrieval.reranker_base import RerankProvider
from embeddings_evaluator.retrieval.shaper import (
    RerankOutcome,
    apply_threshold,
    candidate_pool_size,
    limit_results,
    rerank_or_fallback,
)
from embeddings_evaluator.shared.config import get_settings
from embeddings_evaluator.shared.logging import get_logger
from embeddings_evaluator.shared.schemas import Candidate
from embeddings_evaluator.shared.utils import truncate_text

logger = get_logger(__name__)


@dataclass
class SearchResult:
    """Everything one search produced, in final order."""

    query: str
    results: list[Candidate] = field(default_factory=list)
    below_threshold: list[Candidate] = field(default_factory=list)
    embedding: Optional[EmbeddingResult] = None
    embedding_cost: float = 0.0
    rerank: Optional[RerankOutcome] = None
    runtime_ms: int = 0

    @property
    def found_ids(self) -> list[int]:
        return [c.id for c in self.results]

    @property
    def rerank_tokens(self) -> int:
        return self.rerank.tokens if self.rerank else 0

    @property
    def rerank_cost(self) -> float:
        return self.rerank.cost if self.rerank else 0.0


class Retriever:
    """
    Retrieves and shapes results for free-text queries.

    Example:
        >>> retriever = Retriever(provider, store, reranker=None, top_k=3)
        >>> result = retriever.search("python for beginners")
        >>> print(result.found_ids)
    """

    def __init__(
        self,
        embedding_provider: EmbeddingProvider,
        vector_store: VectorStore,
        reranker: Optional[RerankProvider] = None,
        top_k: Optional[int] = None,
        min_similarity: Optional[float] = None,
        rerank_limit: Optional[int] = None,
    ):
        """
        Initialize the retriever.

        Args:
            embedding_provider: Provider used to embed queries
            vector_store: Index to search
            reranker: Optional rerank provider
            top_k: Results per query when not in threshold mode
            min_similarity: Similarity threshold (> 0 enables threshold mode)
            rerank_limit: Candidates sent to the reranker per query
        """
        settings = get_settings()

        self.embedding_provider = embedding_provider
        self.vector_store = vector_store
        self.reranker = reranker
        self.top_k = top_k if top_k is not None else settings.get_effective_top_k()
        self.min_similarity = (
            min_similarity
            if min_similarity is not None
            else settings.get_effective_min_similarity()
        )
        self.rerank_limit = (
            rerank_limit if rerank_limit is not None else settings.reranker.max_documents
        )

        logger.debug(
            f"Retriever initialized: top_k={self.top_k}, "
            f"min_similarity={self.min_similarity}, "
            f"reranker={reranker.provider_name if reranker else None}"
        )

    @property
    def pool_size(self) -> int:
        return candidate_pool_size(self.top_k, self.reranker is not None)

    def embed_query(self, query_text: str) -> EmbeddingResult:
        return self.embedding_provider.embed(query_text, purpose="query")

    def fetch_candidates(self, vector: list[float]) -> list[Candidate]:
        return self.vector_store.query(vector, self.pool_size)

    def rerank(self, query_text: str, candidates: list[Candidate]) -> RerankOutcome:
        """Partition candidates, reranking the top ones when a reranker is set."""
        if self.reranker is None:
            return RerankOutcome(partition=apply_threshold(candidates, self.min_similarity))
        return rerank_or_fallback(
            self.reranker,
            query_text,
            candidates,
            self.min_similarity,
            limit=self.rerank_limit,
        )

    def shape(self, outcome: RerankOutcome) -> list[Candidate]:
        return limit_results(outcome.partition.above_threshold, self.min_similarity, self.top_k)

    def search(self, query_text: str) -> SearchResult:
        """Run every retrieval step for one query."""
        start = time.perf_counter()

        embedding = self.embed_query(query_text)
        candidates = self.fetch_candidates(embedding.vector)
        outcome = self.rerank(query_text, candidates)
        results = self.shape(outcome)

        runtime_ms = int((time.perf_counter() - start) * 1000)

        logger.info(
            f"Found {len(results)} results for '{truncate_text(query_text, 50)}' "
            f"({len(candidates)} candidates, {runtime_ms} ms)"
        )

        return SearchResult(
            query=query_text,
            results=results,
            below_threshold=list(outcome.partition.below_threshold),
            embedding=embedding,
            embedding_cost=self.embedding_provider.calculate_cost(embedding.tokens),
            rerank=outcome,
            runtime_ms=runtime_ms,
        )

    def get_info(self) -> dict[str, Any]:
        return {
            "top_k": self.top_k,
            "min_similarity": self.min_similarity,
            "mode": "threshold" if self.min_similarity > 0 else "top_k",
            "pool_size": self.pool_size,
            "reranker": self.reranker.get_info() if self.reranker else None,
        }
