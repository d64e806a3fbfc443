"""
Runner Module - Evaluation execution harness.
=============================================

Drives queries one at a time through the pipeline:
1. Embed the query
2. Retrieve the candidate pool
3. Rerank (when configured)
4. Shape the final result list
5. Validate against the expected IDs
6. Record recall, precision, tokens, runtime and cost

Also builds a project's index (embed and insert every content item),
recording per-document generation metrics.

Queries and documents are processed strictly in input order with a
fixed delay between external calls to stay within vendor rate limits.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Optional, Sequence

from tqdm import tqdm

from embeddings_evaluator.evaluation.metrics import (
    AggregateReport,
    GenerationOutcome,
    GenerationTotals,
    MetricsTracker,
    QueryOutcome,
)
from embeddings_evaluator.evaluation.validation import validate_results
from embeddings_evaluator.retrieval.reranker_base import format_rerank_config
from embeddings_evaluator.retrieval.retriever import Retriever
from embeddings_evaluator.shared.config import get_settings
from embeddings_evaluator.shared.exceptions import ConfigurationError, StoreError
from embeddings_evaluator.shared.logging import get_logger
from embeddings_evaluator.shared.schemas import ContentItem, EvalQuery
from embeddings_evaluator.shared.utils import save_json, truncate_text

logger = get_logger(__name__)

ProgressCallback = Callable[[int, int, str], None]


class QueryStage(str, Enum):
    """Pipeline stages of one query, in execution order."""

    EMBEDDING = "embedding"
    RETRIEVING = "retrieving"
    RERANKING = "reranking"
    SHAPING = "shaping"
    VALIDATING = "validating"
    RECORDING = "recording"
    DONE = "done"


# ─────────────────────────────────────────────────────────────────────────────
# Result Classes
# ─────────────────────────────────────────────────────────────────────────────


@dataclass
class QueryResult:
    """Result record of one evaluated query."""

    search_text: str
    expected_ids: list[int] = field(default_factory=list)
    found_ids: list[int] = field(default_factory=list)
    is_valid: bool = False
    validation_message: str = ""
    results: list[dict[str, Any]] = field(default_factory=list)
    below_threshold: list[dict[str, Any]] = field(default_factory=list)
    reranked: bool = False
    rerank_error: Optional[str] = None
    outcome: Optional[QueryOutcome] = None

    # Errors
    error: Optional[str] = None
    failed_stage: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "search": self.search_text,
            "expected": self.expected_ids,
            "found": self.found_ids,
            "validation": {"is_valid": self.is_valid, "message": self.validation_message},
            "results": self.results,
            "below_threshold": self.below_threshold,
            "reranked": self.reranked,
        }
        if self.rerank_error:
            data["rerank_error"] = self.rerank_error
        if self.outcome is not None:
            data["metrics"] = self.outcome.to_dict()
        if self.error:
            data["error"] = self.error
            data["failed_stage"] = self.failed_stage
        return data


@dataclass
class EvaluationResult:
    """Complete evaluation result."""

    # Metadata
    timestamp: str
    project: str
    duration_seconds: float

    # Metrics
    report: AggregateReport
    generation: GenerationTotals

    # Detailed results
    query_results: list[QueryResult] = field(default_factory=list)
    metrics: dict[str, Any] = field(default_factory=dict)

    # Configuration
    config: dict[str, Any] = field(default_factory=dict)

    @property
    def valid_count(self) -> int:
        return sum(1 for r in self.query_results if r.is_valid and not r.error)

    @property
    def error_count(self) -> int:
        return sum(1 for r in self.query_results if r.error)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "metadata": {
                "timestamp": self.timestamp,
                "project": self.project,
                "duration_seconds": round(self.duration_seconds, 2),
                "query_count": len(self.query_results),
                "valid_count": self.valid_count,
                "error_count": self.error_count,
            },
            "config": self.config,
            "summary": self.report.to_dict(),
            "results": [r.to_dict() for r in self.query_results],
            "metrics": self.metrics,
        }

    def save(self, path: str | Path) -> None:
        """Save results to a JSON file (atomically)."""
        save_json(Path(path), self.to_dict())
        logger.info(f"Saved evaluation results to {path}")

    def summary(self) -> str:
        """Generate summary report."""
        approx = "~" if self.report.tokens_estimated else ""
        lines = [
            "=" * 50,
            "EVALUATION REPORT",
            "=" * 50,
            f"Timestamp: {self.timestamp}",
            f"Project: {self.project}",
            f"Queries: {len(self.query_results)} "
            f"({self.valid_count} valid, {self.error_count} errors)",
            f"Duration: {self.duration_seconds:.1f}s",
            "",
            self.report.summary(),
            f"Tokens: {approx}{self.report.total_tokens} "
            f"(+{self.report.total_rerank_tokens} rerank)",
            f"Cost: ${self.report.total_cost:.8f}",
            "=" * 50,
        ]
        return "\n".join(lines)


# ─────────────────────────────────────────────────────────────────────────────
# Evaluation Runner
# ─────────────────────────────────────────────────────────────────────────────


class EvaluationRunner:
    """
    Runs index builds and evaluations for one project.

    Owns the MetricsTracker of the run; nothing else is shared between
    queries.

    Example:
        >>> runner = EvaluationRunner(retriever, project="courses-en")
        >>> runner.build_index(dataset.items)
        >>> result = runner.evaluate(dataset.queries)
        >>> print(result.summary())
    """

    def __init__(
        self,
        retriever: Retriever,
        project: str = "",
        tracker: Optional[MetricsTracker] = None,
        query_delay: Optional[float] = None,
        document_delay: Optional[float] = None,
        stop_on_error: Optional[bool] = None,
    ):
        """
        Initialize evaluation runner.

        Args:
            retriever: Retriever wired to the embedding provider, store and reranker
            project: Project name, used in reports
            tracker: Metrics accumulator (a fresh one if None)
            query_delay: Seconds to wait between queries
            document_delay: Seconds to wait between indexed documents
            stop_on_error: Re-raise a failing query's error instead of recording it.
                StoreError and ConfigurationError always propagate.
        """
        eval_config = get_settings().evaluation

        self.retriever = retriever
        self.project = project
        self.tracker = tracker or MetricsTracker()
        self.query_delay = (
            query_delay if query_delay is not None else eval_config.query_delay_seconds
        )
        self.document_delay = (
            document_delay if document_delay is not None else eval_config.document_delay_seconds
        )
        self.stop_on_error = (
            stop_on_error if stop_on_error is not None else eval_config.stop_on_error
        )
        self._stage = QueryStage.DONE

    @property
    def stage(self) -> QueryStage:
        """Stage of the query currently (or last) processed."""
        return self._stage

    # ─────────────────────────────────────────────────────────────────────
    # Index Build
    # ─────────────────────────────────────────────────────────────────────

    def build_index(
        self,
        items: Sequence[ContentItem],
        progress_callback: Optional[ProgressCallback] = None,
    ) -> GenerationTotals:
        """
        Embed and insert every content item.

        Args:
            items: Content items, inserted in order
            progress_callback: Optional callback(current, total, title)

        Returns:
            Totals over the documents indexed by this runner

        Raises:
            ConfigurationError: If content IDs are not unique (before any embedding)
            ProviderError: If an embedding call fails
            StoreError: If an insert fails
        """
        seen: set[int] = set()
        duplicates: set[int] = set()
        for item in items:
            if item.id in seen:
                duplicates.add(item.id)
            seen.add(item.id)
        if duplicates:
            raise ConfigurationError(
                f"Duplicate content IDs: {', '.join(str(i) for i in sorted(duplicates))}"
            )

        provider = self.retriever.embedding_provider
        store = self.retriever.vector_store

        logger.info(f"Indexing {len(items)} documents with {provider.provider_name}/{provider.model_name}")

        iterator = items if progress_callback else tqdm(items, desc="Indexing", unit="doc", leave=False)

        for i, item in enumerate(iterator):
            if progress_callback:
                progress_callback(i + 1, len(items), item.title)

            start = time.perf_counter()
            embedding = provider.embed(item.embedding_text, purpose="document")
            store.insert(embedding.vector, item)
            runtime_ms = int((time.perf_counter() - start) * 1000)

            self.tracker.record_generation_outcome(
                GenerationOutcome(
                    item_id=item.id,
                    title=item.title,
                    tokens=embedding.tokens,
                    runtime_ms=runtime_ms,
                    cost=provider.calculate_cost(embedding.tokens),
                    tokens_estimated=embedding.estimated,
                )
            )

            if self.document_delay and i < len(items) - 1:
                time.sleep(self.document_delay)

        totals = self.tracker.generation_totals()
        logger.info(totals.summary())
        return totals

    # ─────────────────────────────────────────────────────────────────────
    # Evaluation
    # ─────────────────────────────────────────────────────────────────────

    def evaluate(
        self,
        queries: Sequence[EvalQuery],
        progress_callback: Optional[ProgressCallback] = None,
    ) -> EvaluationResult:
        """
        Run every query and aggregate the results.

        Args:
            queries: Evaluation queries, processed in order
            progress_callback: Optional callback(current, total, search_text)

        Returns:
            EvaluationResult
        """
        logger.info(f"Starting evaluation on {len(queries)} queries")
        start_time = time.time()

        query_results: list[QueryResult] = []
        iterator = queries if progress_callback else tqdm(queries, desc="Evaluating", unit="query", leave=False)

        for i, query in enumerate(iterator):
            if progress_callback:
                progress_callback(i + 1, len(queries), query.search_text)

            try:
                query_results.append(self.evaluate_query(query))
            except (StoreError, ConfigurationError):
                raise
            except Exception as e:
                if self.stop_on_error:
                    raise
                query_results.append(
                    QueryResult(
                        search_text=query.search_text,
                        expected_ids=list(query.expected_ids),
                        error=str(e),
                        failed_stage=self._stage.value,
                    )
                )

            if self.query_delay and i < len(queries) - 1:
                time.sleep(self.query_delay)

        duration = time.time() - start_time
        report = self.tracker.aggregate()

        result = EvaluationResult(
            timestamp=datetime.now().isoformat(),
            project=self.project,
            duration_seconds=duration,
            report=report,
            generation=self.tracker.generation_totals(),
            query_results=query_results,
            metrics=self.tracker.to_dict(),
            config=self.get_config(),
        )

        logger.info(f"Evaluation complete in {duration:.1f}s")
        logger.info(report.summary())

        return result

    def evaluate_query(self, query: EvalQuery) -> QueryResult:
        """
        Run one query through every stage and record its outcome.

        A failure is logged with the stage it happened in and re-raised
        unchanged. A rerank failure is not a failure: the similarity
        order is used instead.
        """
        retriever = self.retriever
        text = query.search_text
        self._stage = QueryStage.EMBEDDING

        try:
            start = time.perf_counter()

            embedding = retriever.embed_query(text)

            self._stage = QueryStage.RETRIEVING
            candidates = retriever.fetch_candidates(embedding.vector)

            self._stage = QueryStage.RERANKING
            rerank = retriever.rerank(text, candidates)

            self._stage = QueryStage.SHAPING
            results = retriever.shape(rerank)
            found_ids = [c.id for c in results]

            self._stage = QueryStage.VALIDATING
            validation = validate_results(found_ids, query.expected_ids)

            runtime_ms = int((time.perf_counter() - start) * 1000)

            self._stage = QueryStage.RECORDING
            outcome = QueryOutcome.from_results(
                text,
                query.expected_ids,
                found_ids,
                tokens_used=embedding.tokens,
                rerank_tokens_used=rerank.tokens,
                runtime_ms=runtime_ms,
                embedding_cost=retriever.embedding_provider.calculate_cost(embedding.tokens),
                rerank_cost=rerank.cost,
                tokens_estimated=embedding.estimated,
            )
            self.tracker.record_query_outcome(outcome)

            self._stage = QueryStage.DONE
        except Exception as e:
            logger.error(
                f"Query '{truncate_text(text, 50)}' failed during "
                f"{self._stage.value} stage: {e}"
            )
            raise

        status = "✓" if validation.is_valid else "✗"
        logger.info(f"{status} '{truncate_text(text, 50)}': {validation.message}")

        return QueryResult(
            search_text=text,
            expected_ids=list(query.expected_ids),
            found_ids=found_ids,
            is_valid=validation.is_valid,
            validation_message=validation.message,
            results=[c.to_result_dict() for c in results],
            below_threshold=[c.to_result_dict() for c in rerank.partition.below_threshold],
            reranked=rerank.reranked,
            rerank_error=rerank.error,
            outcome=outcome,
        )

    def get_config(self) -> dict[str, Any]:
        """Configuration snapshot stored with the results."""
        provider = self.retriever.embedding_provider
        reranker = self.retriever.reranker
        return {
            "project": self.project,
            "embedding_provider": provider.provider_name,
            "embedding_model": provider.model_name,
            "reranker": (
                format_rerank_config(reranker.provider_name, reranker.model_name)
                if reranker
                else None
            ),
            "top_k": self.retriever.top_k,
            "min_similarity": self.retriever.min_similarity,
            "mode": "threshold" if self.retriever.min_similarity > 0 else "top_k",
            "pool_size": self.retriever.pool_size,
        }


# ─────────────────────────────────────────────────────────────────────────────
# Convenience Functions
# ─────────────────────────────────────────────────────────────────────────────


def results_path(project: str, output_dir: Optional[Path] = None) -> Path:
    """
    Path of a project's evaluation results file.

    Example:
        >>> results_path("courses-en", Path("results"))
        PosixPath('results/evaluation-results-courses-en.json')
    """
    if output_dir is None:
        output_dir = get_settings().resolved_paths.output_dir
    return Path(output_dir) / f"evaluation-results-{project}.json"


def create_runner(
    project: str,
    embedding_provider: Optional[str] = None,
    rerank_provider: Optional[str] = None,
    top_k: Optional[int] = None,
    min_similarity: Optional[float] = None,
) -> EvaluationRunner:
    """
    Wire a runner for a project from configuration.

    Args:
        project: Project name
        embedding_provider: Override the configured embedding provider
        rerank_provider: Override the configured reranker ("none" disables it)
        top_k: Override the configured top-k
        min_similarity: Override the configured threshold

    Raises:
        ConfigurationError: If a provider is unknown or misconfigured
        StoreError: If the index cannot be opened
    """
    from embeddings_evaluator.indexing.embeddings_base import get_embedding_provider
    from embeddings_evaluator.indexing.vector_store import create_vector_store
    from embeddings_evaluator.retrieval.reranker_base import get_reranker

    provider = get_embedding_provider(embedding_provider)
    store = create_vector_store(project, provider.provider_name)

    if rerank_provider is not None and rerank_provider.lower() == "none":
        reranker = None
    else:
        reranker = get_reranker(rerank_provider)

    retriever = Retriever(
        embedding_provider=provider,
        vector_store=store,
        reranker=reranker,
        top_k=top_k,
        min_similarity=min_similarity,
    )
    return EvaluationRunner(retriever, project=project)
