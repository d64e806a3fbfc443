"""
Embeddings Evaluator - Retrieval Evaluation Harness
===================================================

Embeds a corpus of content items into a local vector index, answers
free-text evaluation queries by nearest-neighbor lookup (optionally
reranked by a cross-encoder), and scores the results against
hand-labeled expected IDs:

- Recall and precision per query
- Micro, macro and weighted aggregation across a run
- Token, runtime and cost bookkeeping for embedding and reranking

Workflow: embed query → retrieve candidates → (rerank) → apply similarity
threshold → validate against expected IDs → record metrics.
"""

__version__ = "0.1.0"
__author__ = "Embeddings Evaluator Team"
__license__ = "MIT"

__all__ = [
    # Version info
    "__version__",
    "__author__",
    "__license__",
    # Main modules (imported on demand)
    "shared",
    "indexing",
    "retrieval",
    "evaluation",
    "cli",
]
