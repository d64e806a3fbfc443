"""
Retrieval Module - Candidate retrieval, reranking and result shaping.
=====================================================================

- shaper: Threshold partitioning, result limiting, rerank fallback
- reranker_base: Rerank provider interface, factory, config helpers
- reranker_voyage: VoyageAI Rerank API
- reranker_cross_encoder: Local sentence-transformers cross-encoder
- retriever: Composes embed, retrieve, rerank and shape for one query
"""

from embeddings_evaluator.retrieval.reranker_base import (
    RerankProvider,
    RerankResult,
    check_rerank_requirements,
    clear_reranker_cache,
    format_rerank_config,
    get_rerank_config_help,
    get_reranker,
    validate_rerank_config,
)
from embeddings_evaluator.retrieval.retriever import Retriever, SearchResult
from embeddings_evaluator.retrieval.shaper import (
    RerankOutcome,
    ThresholdPartition,
    apply_threshold,
    candidate_pool_size,
    limit_results,
    merge_reranked_results,
    rerank_or_fallback,
    select_rerank_candidates,
)

__all__ = [
    # Rerankers
    "RerankProvider",
    "RerankResult",
    "get_reranker",
    "clear_reranker_cache",
    "validate_rerank_config",
    "format_rerank_config",
    "get_rerank_config_help",
    "check_rerank_requirements",
    # Shaper
    "ThresholdPartition",
    "RerankOutcome",
    "apply_threshold",
    "limit_results",
    "merge_reranked_results",
    "candidate_pool_size",
    "select_rerank_candidates",
    "rerank_or_fallback",
    # Retriever
    "Retriever",
    "SearchResult",
]
