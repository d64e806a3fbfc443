"""
Reranker Base Module - Abstract interface for rerank providers.
===============================================================

A reranker rescores (query, document) pairs with a cross-encoder and
returns the candidates reordered by relevance. Implementations:

- voyageai: VoyageAI Rerank REST API
- cross-encoder: local sentence-transformers CrossEncoder

Also provides the configuration helpers used by the CLI to explain
what a reranker needs before a run starts.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

from embeddings_evaluator.shared.config import Settings, get_settings
from embeddings_evaluator.shared.exceptions import ConfigurationError
from embeddings_evaluator.shared.logging import get_logger
from embeddings_evaluator.shared.schemas import (
    Candidate,
    RerankedCandidate,
    RerankRequirements,
)

logger = get_logger(__name__)


@dataclass
class RerankResult:
    """Reranked candidates (best first) plus the tokens the vendor billed."""

    ranked: list[RerankedCandidate] = field(default_factory=list)
    tokens: int = 0


# ─────────────────────────────────────────────────────────────────────────────
# Abstract Base Class
# ─────────────────────────────────────────────────────────────────────────────


class RerankProvider(ABC):
    """
    Abstract base class for rerank providers.

    Implementations must provide:
    - rerank(): Rescore candidates against a query
    - calculate_cost(): USD cost of reranking documents for queries
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Get the provider name identifier."""

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Get the model name being used."""

    @abstractmethod
    def rerank(self, query: str, candidates: list[Candidate], top_k: int) -> RerankResult:
        """
        Rescore candidates against a query.

        Args:
            query: Search text
            candidates: Candidates to rescore
            top_k: Maximum number of results to return

        Returns:
            RerankResult ordered by relevance, highest first

        Raises:
            ProviderError: If the vendor call fails or its response is malformed
        """

    @abstractmethod
    def calculate_cost(self, query_count: int, document_count: int) -> float:
        """Get the USD cost of reranking ``document_count`` documents per query."""

    def get_info(self) -> dict[str, Any]:
        return {
            "provider": self.provider_name,
            "model": self.model_name,
            "label": format_rerank_config(self.provider_name, self.model_name),
        }


def to_reranked(candidate: Candidate, relevance_score: float) -> RerankedCandidate:
    """Attach a reranker score to a candidate, keeping its similarity."""
    return RerankedCandidate(
        id=candidate.id,
        similarity_score=candidate.similarity_score,
        title=candidate.title,
        description=candidate.description,
        relevance_score=float(relevance_score),
        original_similarity_score=candidate.similarity_score,
        was_reranked=True,
    )


# ─────────────────────────────────────────────────────────────────────────────
# Configuration Helpers
# ─────────────────────────────────────────────────────────────────────────────


RERANK_VENDORS: dict[str, dict[str, Any]] = {
    "voyageai": {
        "api_key_name": "VOYAGEAI_API_KEY",
        "models": ["rerank-2.5", "rerank-1"],
        "documentation": "https://docs.voyageai.com/docs/reranking",
    },
    "cross-encoder": {
        "api_key_name": None,
        "models": [
            "cross-encoder/ms-marco-MiniLM-L-6-v2",
            "cross-encoder/ms-marco-MiniLM-L-12-v2",
        ],
        "documentation": "https://www.sbert.net/docs/cross_encoder/usage/usage.html",
    },
}


def validate_rerank_config(vendor: Optional[str], model: Optional[str]) -> list[str]:
    """
    Check a vendor/model pair.

    Returns:
        List of problems; empty when the configuration is usable
    """
    errors = []

    if not vendor or not isinstance(vendor, str):
        errors.append("Reranker vendor must be a non-empty string")

    if not model or not isinstance(model, str):
        errors.append("Reranker model must be a non-empty string")

    if vendor and isinstance(vendor, str) and vendor.lower() not in RERANK_VENDORS:
        errors.append(
            f"Unsupported reranker vendor: {vendor}. "
            f"Supported vendors: {', '.join(RERANK_VENDORS)}"
        )

    return errors


def format_rerank_config(vendor: Optional[str], model: Optional[str]) -> str:
    """
    Format a reranker configuration for logs and reports.

    Example:
        >>> format_rerank_config("voyageai", "rerank-2.5")
        'voyageai/rerank-2.5'
    """
    if not vendor or not model:
        return "Unknown reranker configuration"
    return f"{vendor}/{model}"


def get_rerank_config_help(vendor: str) -> str:
    """Get a help message describing how to configure a reranker vendor."""
    info = RERANK_VENDORS.get(vendor.lower())
    if info is None:
        return (
            f"Unknown reranker vendor: {vendor}. "
            f"Supported vendors: {', '.join(RERANK_VENDORS)}"
        )

    lines = [f"Configuration help for {vendor}:"]
    if info["api_key_name"]:
        lines.append(f"  Environment variable: {info['api_key_name']}=your_api_key_here")
    else:
        lines.append("  Runs locally, no API key required")
    lines.append(f"  Available models: {', '.join(info['models'])}")
    lines.append(f"  Documentation: {info['documentation']}")
    return "\n".join(lines)


def _configured_model(settings: Settings, vendor: str) -> Optional[str]:
    if vendor == "voyageai":
        return settings.reranker.voyageai.model_name
    if vendor == "cross-encoder":
        return settings.reranker.cross_encoder.model_name
    return None


def check_rerank_requirements(settings: Optional[Settings] = None) -> RerankRequirements:
    """
    Check whether the configured reranker can run.

    Reports a disabled reranker as ready. Otherwise collects every unmet
    requirement (missing API key, invalid vendor/model) without raising.
    """
    settings = settings or get_settings()
    vendor = settings.get_effective_rerank_provider()

    if vendor is None:
        return RerankRequirements(enabled=False, ready=True)

    model = _configured_model(settings, vendor)
    issues: list[str] = []

    info = RERANK_VENDORS.get(vendor)
    if info and info["api_key_name"] and not settings.get_api_key(vendor):
        issues.append(f"Missing {info['api_key_name']} environment variable")
        issues.append(get_rerank_config_help(vendor))

    issues.extend(validate_rerank_config(vendor, model))

    return RerankRequirements(
        enabled=True,
        ready=not issues,
        vendor=vendor,
        model=model,
        issues=issues,
    )


# ─────────────────────────────────────────────────────────────────────────────
# Provider Factory
# ─────────────────────────────────────────────────────────────────────────────


_reranker_cache: dict[str, RerankProvider] = {}


def get_reranker(
    provider_name: Optional[str] = None,
    use_cache: bool = True,
) -> Optional[RerankProvider]:
    """
    Get the configured rerank provider.

    Args:
        provider_name: "voyageai" or "cross-encoder". If None, uses config.
        use_cache: Whether to cache and reuse provider instances

    Returns:
        RerankProvider instance, or None when reranking is disabled

    Raises:
        ConfigurationError: If the vendor is unknown or its API key is missing
    """
    if provider_name is None:
        provider_name = get_settings().get_effective_rerank_provider()
        if provider_name is None:
            return None

    provider_name = provider_name.lower().strip()

    if use_cache and provider_name in _reranker_cache:
        return _reranker_cache[provider_name]

    provider: RerankProvider

    if provider_name == "voyageai":
        from embeddings_evaluator.retrieval.reranker_voyage import VoyageRerankProvider
        provider = VoyageRerankProvider()

    elif provider_name == "cross-encoder":
        from embeddings_evaluator.retrieval.reranker_cross_encoder import (
            CrossEncoderRerankProvider,
        )
        provider = CrossEncoderRerankProvider()

    else:
        raise ConfigurationError(
            f"Unknown reranker vendor: {provider_name}. "
            f"Supported vendors: {', '.join(RERANK_VENDORS)}"
        )

    if use_cache:
        _reranker_cache[provider_name] = provider

    logger.info(
        f"Initialized reranker: {format_rerank_config(provider.provider_name, provider.model_name)}"
    )

    return provider


def clear_reranker_cache() -> None:
    """Clear the reranker cache."""
    _reranker_cache.clear()
