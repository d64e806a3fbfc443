"""
Result Shaper Module - From raw neighbors to final result sets.
===============================================================

Turns the nearest-neighbor candidates of a query into its final,
ordered result list:

1. Size the candidate pool (larger when a reranker will rescore it)
2. Partition candidates on the similarity threshold
3. Optionally rerank the top candidates and partition on relevance
4. Limit the above-threshold set to the final results

Below-threshold candidates are kept (at most three) for display only;
they never count towards recall or precision.

Threshold mode: with ``min_similarity > 0`` every above-threshold
candidate is returned; otherwise the first ``top_k`` are.
"""

from dataclasses import dataclass, field
from typing import Optional, Sequence

from embeddings_evaluator.retrieval.reranker_base import RerankProvider
from embeddings_evaluator.shared.exceptions import ProviderError
from embeddings_evaluator.shared.logging import get_logger
from embeddings_evaluator.shared.schemas import Candidate, RerankedCandidate

logger = get_logger(__name__)

# Diagnostic below-threshold entries kept per query
BELOW_THRESHOLD_LIMIT = 3

# Candidates sent to a reranker per query
RERANK_CANDIDATE_LIMIT = 10


@dataclass
class ThresholdPartition:
    """Candidates split on a score threshold, each side in input order."""

    above_threshold: list[Candidate] = field(default_factory=list)
    below_threshold: list[Candidate] = field(default_factory=list)


@dataclass
class RerankOutcome:
    """Partition after the optional rerank stage plus its accounting."""

    partition: ThresholdPartition
    reranked: bool = False
    tokens: int = 0
    cost: float = 0.0
    documents_sent: int = 0
    error: Optional[str] = None


# ─────────────────────────────────────────────────────────────────────────────
# Threshold Partitioning
# ─────────────────────────────────────────────────────────────────────────────


def _partition(candidates: Sequence[Candidate], min_similarity: float, key) -> ThresholdPartition:
    above: list[Candidate] = []
    below: list[Candidate] = []
    for candidate in candidates:
        if key(candidate) >= min_similarity:
            above.append(candidate)
        else:
            below.append(candidate)
    return ThresholdPartition(above_threshold=above, below_threshold=below[:BELOW_THRESHOLD_LIMIT])


def apply_threshold(candidates: Sequence[Candidate], min_similarity: float) -> ThresholdPartition:
    """
    Partition candidates on ``similarity_score >= min_similarity``.

    A threshold of 0 or less still partitions; for cosine similarity
    nearly everything lands above it.

    Example:
        >>> part = apply_threshold(cands, 0.5)   # scores 0.8, 0.6, 0.3, 0.1
        >>> [c.similarity_score for c in part.above_threshold]
        [0.8, 0.6]
    """
    return _partition(candidates, min_similarity, key=lambda c: c.similarity_score)


def merge_reranked_results(
    reranked: Sequence[RerankedCandidate],
    min_similarity: float,
) -> ThresholdPartition:
    """
    Partition reranked candidates on ``relevance_score >= min_similarity``.

    Reranker order is kept; each candidate keeps its original similarity
    score for display.
    """
    return _partition(reranked, min_similarity, key=lambda c: c.relevance_score)


def limit_results(
    above_threshold: Sequence[Candidate],
    min_similarity: float,
    top_k: int = 3,
) -> list[Candidate]:
    """Return all above-threshold candidates in threshold mode, else the first ``top_k``."""
    if min_similarity > 0:
        return list(above_threshold)
    return list(above_threshold[:top_k])


# ─────────────────────────────────────────────────────────────────────────────
# Rerank Stage
# ─────────────────────────────────────────────────────────────────────────────


def candidate_pool_size(top_k: int, rerank_enabled: bool) -> int:
    """
    Number of neighbors to request from the vector store.

    Example:
        >>> candidate_pool_size(3, rerank_enabled=True)
        30
        >>> candidate_pool_size(3, rerank_enabled=False)
        9
    """
    if rerank_enabled:
        return max(top_k * 10, 20)
    return top_k * 3


def select_rerank_candidates(
    candidates: Sequence[Candidate],
    limit: int = RERANK_CANDIDATE_LIMIT,
) -> list[Candidate]:
    """Top ``limit`` candidates by similarity; equal scores keep store order."""
    ordered = sorted(candidates, key=lambda c: c.similarity_score, reverse=True)
    return ordered[:limit]


def rerank_or_fallback(
    reranker: RerankProvider,
    query_text: str,
    candidates: Sequence[Candidate],
    min_similarity: float,
    limit: int = RERANK_CANDIDATE_LIMIT,
) -> RerankOutcome:
    """
    Rerank the top candidates, falling back to similarity order on failure.

    A ``ProviderError`` from the reranker is logged as a warning and the
    result is exactly ``apply_threshold(candidates, min_similarity)``
    with no rerank tokens or cost.

    Args:
        reranker: Rerank provider
        query_text: Search text
        candidates: All retrieved candidates, similarity order
        min_similarity: Threshold applied to relevance scores
        limit: How many top candidates to send to the reranker
    """
    to_rerank = select_rerank_candidates(candidates, limit)
    if not to_rerank:
        return RerankOutcome(partition=apply_threshold(candidates, min_similarity))

    try:
        result = reranker.rerank(query_text, to_rerank, top_k=len(to_rerank))
    except ProviderError as e:
        logger.warning(f"Reranking failed, falling back to similarity order: {e}")
        return RerankOutcome(
            partition=apply_threshold(candidates, min_similarity),
            error=str(e),
        )

    return RerankOutcome(
        partition=merge_reranked_results(result.ranked, min_similarity),
        reranked=True,
        tokens=result.tokens,
        cost=reranker.calculate_cost(1, len(to_rerank)),
        documents_sent=len(to_rerank),
    )
