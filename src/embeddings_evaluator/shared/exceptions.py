"""
Exceptions Module - Error taxonomy for the evaluator.
=====================================================

- ConfigurationError: invalid model/vendor configuration or missing
  credentials. Raised before any query runs.
- ProviderError: an embedding or rerank vendor call failed. Fatal for
  embedding, recovered from (similarity fallback) for reranking.
- StoreError: the vector store is unavailable or corrupted. Fatal for the run.

A failed validation is not an error: it is reported as a ValidationResult.
"""


class EvaluatorError(Exception):
    """Base class for all evaluator errors."""


class ConfigurationError(EvaluatorError):
    """Missing or invalid configuration."""


class ProviderError(EvaluatorError):
    """An external embedding or rerank provider call failed."""

    def __init__(self, provider: str, message: str):
        self.provider = provider
        super().__init__(f"{provider}: {message}")


class StoreError(EvaluatorError):
    """The vector store could not be read or written."""
