"""
Evaluation Module - Retrieval evaluation harness.
=================================================

Tools for measuring retrieval quality against labeled queries:
- Project data loading (content items and evaluation queries)
- Recall/precision metrics with micro, macro and weighted averaging
- Result and project validation
- Evaluation runner and reporting

Components:
- dataset: Project loading and content field extraction
- metrics: Per-query metrics and the run accumulator
- validation: Found-vs-expected checks and project data checks
- runner: Index build and evaluation execution

Example:
    >>> from embeddings_evaluator.evaluation import ProjectDataset, create_runner
    >>> dataset = ProjectDataset.from_directory("projects/courses-en")
    >>> runner = create_runner("courses-en")
    >>> result = runner.evaluate(dataset.queries)
    >>> print(result.report.micro.recall)
"""

from embeddings_evaluator.evaluation.dataset import ProjectDataset, extract_content_fields
from embeddings_evaluator.evaluation.metrics import (
    AggregateReport,
    GenerationOutcome,
    GenerationTotals,
    MetricsTracker,
    QueryOutcome,
    calculate_precision,
    calculate_recall,
    estimate_tokens,
)
from embeddings_evaluator.evaluation.runner import (
    EvaluationResult,
    EvaluationRunner,
    QueryResult,
    QueryStage,
    create_runner,
    results_path,
)
from embeddings_evaluator.evaluation.validation import (
    discover_projects,
    validate_project,
    validate_results,
)

__all__ = [
    # Dataset
    "ProjectDataset",
    "extract_content_fields",
    # Metrics
    "QueryOutcome",
    "GenerationOutcome",
    "GenerationTotals",
    "AggregateReport",
    "MetricsTracker",
    "calculate_recall",
    "calculate_precision",
    "estimate_tokens",
    # Validation
    "validate_results",
    "validate_project",
    "discover_projects",
    # Runner
    "EvaluationRunner",
    "EvaluationResult",
    "QueryResult",
    "QueryStage",
    "create_runner",
    "results_path",
]
