"""
Metrics Module - Retrieval evaluation metrics.
==============================================

Set-based recall and precision per query, and their aggregation over a
run three ways:

- Micro: pool raw counts across queries, then divide
- Macro: unweighted mean of per-query percentages
- Weighted: per-query percentages weighted by expected count

Queries without expectations are scored as "correct iff nothing was
returned" (100% or 0% for both recall and precision). In pooled and
weighted statistics such a query counts as one expected item, so it is
neither ignored nor double-penalized.

All percentages are on a 0-100 scale.
"""

import math
import threading
from dataclasses import asdict, dataclass, field
from typing import Any, Sequence

from embeddings_evaluator.shared.logging import get_logger
from embeddings_evaluator.shared.utils import estimate_tokens, format_cost

logger = get_logger(__name__)

__all__ = [
    "QueryOutcome",
    "GenerationOutcome",
    "AggregateReport",
    "GenerationTotals",
    "MetricsTracker",
    "calculate_recall",
    "calculate_precision",
    "estimate_tokens",
]


# ─────────────────────────────────────────────────────────────────────────────
# Per-Query Metric Calculations
# ─────────────────────────────────────────────────────────────────────────────


def calculate_recall(found_ids: Sequence[int], expected_ids: Sequence[int]) -> float:
    """
    Percentage of expected IDs that appear anywhere in the found IDs.

    Recall = 100 * |expected ∩ found| / |expected|

    With no expectations, returning nothing is fully correct (100) and
    returning anything is fully wrong (0).

    Example:
        >>> calculate_recall([2, 1], [2])
        100.0
        >>> calculate_recall([], [])
        100.0
    """
    expected = set(expected_ids)
    if not expected:
        return 100.0 if not found_ids else 0.0
    return 100.0 * len(expected & set(found_ids)) / len(expected)


def calculate_precision(found_ids: Sequence[int], expected_ids: Sequence[int]) -> float:
    """
    Percentage of returned results that were expected.

    Precision = 100 * |expected ∩ found| / len(found)

    Example:
        >>> calculate_precision([2, 1], [2])
        50.0
    """
    expected = set(expected_ids)
    if not expected:
        return 100.0 if not found_ids else 0.0
    if not found_ids:
        return 0.0
    return 100.0 * len(expected & set(found_ids)) / len(found_ids)


def _clamp_pct(value: float) -> float:
    return min(100.0, max(0.0, value))


# ─────────────────────────────────────────────────────────────────────────────
# Outcome Records
# ─────────────────────────────────────────────────────────────────────────────


@dataclass
class QueryOutcome:
    """Metrics of one evaluated query."""

    search_text: str
    expected_ids: list[int]
    found_ids: list[int]
    tokens_used: int = 0
    rerank_tokens_used: int = 0
    runtime_ms: int = 0
    embedding_cost: float = 0.0
    rerank_cost: float = 0.0
    recall_pct: float = 0.0
    precision_pct: float = 0.0
    expected_count: int = 0
    found_count: int = 0
    returned_count: int = 0
    tokens_estimated: bool = False

    @classmethod
    def from_results(
        cls,
        search_text: str,
        expected_ids: Sequence[int],
        found_ids: Sequence[int],
        **accounting: Any,
    ) -> "QueryOutcome":
        """
        Build an outcome, deriving counts and percentages from the IDs.

        Args:
            search_text: Query text
            expected_ids: Labeled answers
            found_ids: Final results, in order
            **accounting: tokens_used, rerank_tokens_used, runtime_ms,
                embedding_cost, rerank_cost, tokens_estimated
        """
        expected = set(expected_ids)
        return cls(
            search_text=search_text,
            expected_ids=list(expected_ids),
            found_ids=list(found_ids),
            recall_pct=calculate_recall(found_ids, expected_ids),
            precision_pct=calculate_precision(found_ids, expected_ids),
            expected_count=len(expected),
            found_count=len(expected & set(found_ids)),
            returned_count=len(found_ids),
            **accounting,
        )

    @property
    def total_cost(self) -> float:
        return self.embedding_cost + self.rerank_cost

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["embedding_cost"] = format_cost(self.embedding_cost)
        data["rerank_cost"] = format_cost(self.rerank_cost)
        data["total_cost"] = format_cost(self.total_cost)
        return data


@dataclass
class GenerationOutcome:
    """Metrics of one indexed content item."""

    item_id: int
    title: str
    tokens: int = 0
    runtime_ms: int = 0
    cost: float = 0.0
    tokens_estimated: bool = False

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["cost"] = format_cost(self.cost)
        return data


@dataclass
class GenerationTotals:
    """Totals of an index build."""

    document_count: int = 0
    total_tokens: int = 0
    total_runtime_ms: int = 0
    total_cost: float = 0.0
    tokens_estimated: bool = False

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["total_cost"] = format_cost(self.total_cost)
        return data

    def summary(self) -> str:
        approx = "~" if self.tokens_estimated else ""
        return (
            f"Indexed {self.document_count} documents: "
            f"{approx}{self.total_tokens} tokens, "
            f"{self.total_runtime_ms} ms, ${format_cost(self.total_cost)}"
        )


@dataclass
class AveragedPair:
    """Recall and precision under one averaging strategy."""

    recall: float = 0.0
    precision: float = 0.0

    def to_dict(self) -> dict[str, float]:
        return {"recall": round(self.recall, 4), "precision": round(self.precision, 4)}


@dataclass
class AggregateReport:
    """Summary of an evaluation run, recomputed from the full history."""

    query_count: int = 0
    total_tokens: int = 0
    total_rerank_tokens: int = 0
    total_runtime_ms: int = 0
    total_embedding_cost: float = 0.0
    total_rerank_cost: float = 0.0
    total_cost: float = 0.0
    micro: AveragedPair = field(default_factory=AveragedPair)
    macro: AveragedPair = field(default_factory=AveragedPair)
    weighted: AveragedPair = field(default_factory=AveragedPair)
    tokens_estimated: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "query_count": self.query_count,
            "total_tokens": self.total_tokens,
            "total_rerank_tokens": self.total_rerank_tokens,
            "total_runtime_ms": self.total_runtime_ms,
            "total_embedding_cost": format_cost(self.total_embedding_cost),
            "total_rerank_cost": format_cost(self.total_rerank_cost),
            "total_cost": format_cost(self.total_cost),
            "tokens_estimated": self.tokens_estimated,
            "micro_averaging": self.micro.to_dict(),
            "macro_averaging": self.macro.to_dict(),
            "weighted_averaging": self.weighted.to_dict(),
        }

    def summary(self) -> str:
        return (
            f"{self.query_count} queries | "
            f"micro R={self.micro.recall:.1f}% P={self.micro.precision:.1f}% | "
            f"macro R={self.macro.recall:.1f}% P={self.macro.precision:.1f}% | "
            f"weighted R={self.weighted.recall:.1f}% P={self.weighted.precision:.1f}%"
        )

    def __str__(self) -> str:
        return f"AggregateReport({self.summary()})"


# ─────────────────────────────────────────────────────────────────────────────
# Tracker
# ─────────────────────────────────────────────────────────────────────────────


def _micro(outcomes: Sequence[QueryOutcome]) -> AveragedPair:
    expected_total = 0
    found_total = 0
    returned_total = 0
    for o in outcomes:
        if o.expected_count == 0:
            expected_total += 1
            found_total += 1 if o.returned_count == 0 else 0
            returned_total += max(1, o.returned_count)
        else:
            expected_total += o.expected_count
            found_total += o.found_count
            returned_total += o.returned_count

    recall = 100.0 * found_total / expected_total if expected_total else 0.0
    precision = 100.0 * found_total / returned_total if returned_total else 0.0
    return AveragedPair(_clamp_pct(recall), _clamp_pct(precision))


def _macro(outcomes: Sequence[QueryOutcome]) -> AveragedPair:
    if not outcomes:
        return AveragedPair()
    n = len(outcomes)
    recall = math.fsum(o.recall_pct for o in outcomes) / n
    precision = math.fsum(o.precision_pct for o in outcomes) / n
    return AveragedPair(_clamp_pct(recall), _clamp_pct(precision))


def _weighted(outcomes: Sequence[QueryOutcome]) -> AveragedPair:
    weights = [o.expected_count if o.expected_count > 0 else 1 for o in outcomes]
    total_weight = sum(weights)
    if not total_weight:
        return AveragedPair()
    recall = math.fsum(w * o.recall_pct for w, o in zip(weights, outcomes)) / total_weight
    precision = math.fsum(w * o.precision_pct for w, o in zip(weights, outcomes)) / total_weight
    return AveragedPair(_clamp_pct(recall), _clamp_pct(precision))


class MetricsTracker:
    """
    Accumulates outcomes for one run and aggregates them on demand.

    Recording is serialized with a lock. ``aggregate()`` works on a
    snapshot and depends only on the multiset of recorded outcomes, never
    on their order.

    Example:
        >>> tracker = MetricsTracker()
        >>> tracker.record_query_outcome(QueryOutcome.from_results("python", [2], [2, 1]))
        >>> tracker.aggregate().macro.precision
        50.0
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._query_outcomes: list[QueryOutcome] = []
        self._generation_outcomes: list[GenerationOutcome] = []

    @property
    def query_outcomes(self) -> list[QueryOutcome]:
        with self._lock:
            return list(self._query_outcomes)

    @property
    def generation_outcomes(self) -> list[GenerationOutcome]:
        with self._lock:
            return list(self._generation_outcomes)

    def record_query_outcome(self, outcome: QueryOutcome) -> None:
        with self._lock:
            self._query_outcomes.append(outcome)
        logger.debug(
            f"Recorded outcome for '{outcome.search_text}': "
            f"recall={outcome.recall_pct:.1f}, precision={outcome.precision_pct:.1f}"
        )

    def record_generation_outcome(self, outcome: GenerationOutcome) -> None:
        with self._lock:
            self._generation_outcomes.append(outcome)

    def reset(self) -> None:
        with self._lock:
            self._query_outcomes.clear()
            self._generation_outcomes.clear()

    def aggregate(self) -> AggregateReport:
        """Compute the aggregate report over every recorded query outcome."""
        outcomes = self.query_outcomes
        if not outcomes:
            return AggregateReport()

        embedding_cost = math.fsum(o.embedding_cost for o in outcomes)
        rerank_cost = math.fsum(o.rerank_cost for o in outcomes)

        return AggregateReport(
            query_count=len(outcomes),
            total_tokens=sum(o.tokens_used for o in outcomes),
            total_rerank_tokens=sum(o.rerank_tokens_used for o in outcomes),
            total_runtime_ms=sum(o.runtime_ms for o in outcomes),
            total_embedding_cost=embedding_cost,
            total_rerank_cost=rerank_cost,
            total_cost=math.fsum([embedding_cost, rerank_cost]),
            micro=_micro(outcomes),
            macro=_macro(outcomes),
            weighted=_weighted(outcomes),
            tokens_estimated=any(o.tokens_estimated for o in outcomes),
        )

    def generation_totals(self) -> GenerationTotals:
        outcomes = self.generation_outcomes
        return GenerationTotals(
            document_count=len(outcomes),
            total_tokens=sum(o.tokens for o in outcomes),
            total_runtime_ms=sum(o.runtime_ms for o in outcomes),
            total_cost=math.fsum(o.cost for o in outcomes),
            tokens_estimated=any(o.tokens_estimated for o in outcomes),
        )

    def to_dict(self) -> dict[str, Any]:
        """Complete metrics document for persistence."""
        return {
            "generate": {
                "items": [o.to_dict() for o in self.generation_outcomes],
                "totals": self.generation_totals().to_dict(),
            },
            "evaluate": {
                "items": [o.to_dict() for o in self.query_outcomes],
                "totals": self.aggregate().to_dict(),
            },
        }
