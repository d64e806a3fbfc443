"""
Embeddings Base Module - Abstract interface for embedding providers.
===================================================================

Defines the abstract base class for embedding providers so the
evaluation pipeline is provider-agnostic. Switching between OpenAI,
Gemini and SBERT is a configuration change.

Every call returns the vector together with the token usage the vendor
reported; providers that report no usage fall back to an estimate and
flag it as such.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

from embeddings_evaluator.shared.config import get_settings
from embeddings_evaluator.shared.exceptions import ConfigurationError
from embeddings_evaluator.shared.logging import get_logger

logger = get_logger(__name__)

# Accepted values of the ``purpose`` argument
PURPOSE_DOCUMENT = "document"
PURPOSE_QUERY = "query"
PURPOSES = (PURPOSE_DOCUMENT, PURPOSE_QUERY)


@dataclass
class EmbeddingResult:
    """A vector plus the tokens spent producing it."""

    vector: list[float]
    tokens: int = 0
    estimated: bool = False


# ─────────────────────────────────────────────────────────────────────────────
# Abstract Base Class
# ─────────────────────────────────────────────────────────────────────────────


class EmbeddingProvider(ABC):
    """
    Abstract base class for embedding providers.

    Implementations must provide:
    - embed(): Embed one text for a given purpose ("document" or "query")
    - calculate_cost(): USD cost of a token count

    Properties:
    - provider_name: Provider identifier (openai, gemini, sbert)
    - model_name: Name of the embedding model
    - dimensions: Embedding vector dimensions
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Get the provider name identifier."""

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Get the model name being used."""

    @property
    @abstractmethod
    def dimensions(self) -> int:
        """Get the embedding vector dimensions."""

    @abstractmethod
    def embed(self, text: str, purpose: str = PURPOSE_DOCUMENT) -> EmbeddingResult:
        """
        Embed a single text.

        Args:
            text: Text to embed
            purpose: "document" when indexing, "query" when searching

        Returns:
            EmbeddingResult with the vector and token usage

        Raises:
            ProviderError: If the vendor call fails
        """

    @abstractmethod
    def calculate_cost(self, tokens: int) -> float:
        """Get the USD cost of embedding ``tokens`` tokens."""

    def get_info(self) -> dict[str, Any]:
        """Get provider information."""
        return {
            "provider": self.provider_name,
            "model": self.model_name,
            "dimensions": self.dimensions,
        }


def _check_purpose(purpose: str) -> None:
    if purpose not in PURPOSES:
        raise ValueError(f"Unknown embedding purpose: {purpose}. Valid options: {PURPOSES}")


# ─────────────────────────────────────────────────────────────────────────────
# Provider Factory
# ─────────────────────────────────────────────────────────────────────────────


EMBEDDING_PROVIDERS = ("openai", "gemini", "sbert")

_provider_cache: dict[str, EmbeddingProvider] = {}


def get_embedding_provider(
    provider_name: Optional[str] = None,
    use_cache: bool = True,
) -> EmbeddingProvider:
    """
    Get an embedding provider instance.

    Args:
        provider_name: "openai", "gemini" or "sbert". If None, uses config.
        use_cache: Whether to cache and reuse provider instances

    Returns:
        EmbeddingProvider instance

    Raises:
        ConfigurationError: If the name is unknown or credentials are missing

    Example:
        >>> provider = get_embedding_provider("sbert")
        >>> result = provider.embed("intro to python", purpose="query")
    """
    if provider_name is None:
        provider_name = get_settings().get_effective_embedding_provider()

    provider_name = provider_name.lower().strip()

    if use_cache and provider_name in _provider_cache:
        return _provider_cache[provider_name]

    provider: EmbeddingProvider

    if provider_name == "openai":
        from embeddings_evaluator.indexing.embeddings_openai import OpenAIEmbeddingProvider
        provider = OpenAIEmbeddingProvider()

    elif provider_name == "gemini":
        from embeddings_evaluator.indexing.embeddings_gemini import GeminiEmbeddingProvider
        provider = GeminiEmbeddingProvider()

    elif provider_name == "sbert":
        from embeddings_evaluator.indexing.embeddings_sbert import SBERTEmbeddingProvider
        provider = SBERTEmbeddingProvider()

    else:
        raise ConfigurationError(
            f"Unknown embedding provider: {provider_name}. "
            f"Valid options: {', '.join(EMBEDDING_PROVIDERS)}"
        )

    if use_cache:
        _provider_cache[provider_name] = provider

    logger.info(
        f"Initialized embedding provider: {provider.provider_name} "
        f"(model={provider.model_name}, dims={provider.dimensions})"
    )

    return provider


def clear_provider_cache() -> None:
    """Clear the provider cache."""
    _provider_cache.clear()
