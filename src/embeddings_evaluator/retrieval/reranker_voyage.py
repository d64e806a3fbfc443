"""
VoyageAI Reranker Module - VoyageAI Rerank REST API.
====================================================

Sends the query and candidate texts ("title. description") to
``POST {base_url}rerank`` and maps the returned indices back onto the
candidates. Requires VOYAGEAI_API_KEY.

Pricing: $0.05 per 1000 searches, one search being one query scored
against one document.
"""

from typing import Any, Optional

import requests

from embeddings_evaluator.retrieval.reranker_base import (
    RerankProvider,
    RerankResult,
    to_reranked,
)
from embeddings_evaluator.shared.config import get_settings
from embeddings_evaluator.shared.exceptions import ConfigurationError, ProviderError
from embeddings_evaluator.shared.logging import get_logger
from embeddings_evaluator.shared.schemas import Candidate

logger = get_logger(__name__)


class VoyageRerankProvider(RerankProvider):
    """
    VoyageAI rerank provider.

    Example:
        >>> reranker = VoyageRerankProvider()
        >>> result = reranker.rerank("python basics", candidates, top_k=10)
        >>> [c.id for c in result.ranked]
    """

    def __init__(
        self,
        model_name: Optional[str] = None,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        settings = get_settings()
        voyage_config = settings.reranker.voyageai

        self._model_name = model_name or voyage_config.model_name
        self._api_key = api_key or settings.voyageai_api_key
        self._base_url = base_url or voyage_config.base_url
        self._timeout = timeout or voyage_config.timeout
        self._cost_per_1000 = voyage_config.cost_per_1000_searches

        if not self._api_key:
            raise ConfigurationError(
                "VoyageAI API key is required. Set VOYAGEAI_API_KEY environment variable "
                "or pass api_key parameter."
            )

        if not self._base_url.endswith("/"):
            self._base_url += "/"

    @property
    def provider_name(self) -> str:
        return "voyageai"

    @property
    def model_name(self) -> str:
        return self._model_name

    def rerank(self, query: str, candidates: list[Candidate], top_k: int) -> RerankResult:
        if not query or not candidates:
            return RerankResult()

        payload: dict[str, Any] = {
            "model": self._model_name,
            "query": query,
            "documents": [c.rerank_text for c in candidates],
            "top_k": min(top_k, len(candidates)),
            "return_documents": False,
        }
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

        logger.info(f"Reranking {len(candidates)} results using voyageai/{self._model_name}...")

        try:
            r = requests.post(
                f"{self._base_url}rerank",
                headers=headers,
                json=payload,
                timeout=self._timeout,
            )
            r.raise_for_status()
            data = r.json()
        except requests.RequestException as e:
            raise ProviderError("voyageai", f"Rerank API request failed: {e}") from e
        except ValueError as e:
            raise ProviderError("voyageai", f"Failed to parse Rerank API response: {e}") from e

        results = data.get("data") if isinstance(data, dict) else None
        if not isinstance(results, list):
            raise ProviderError("voyageai", "Invalid response format from Rerank API")

        ranked = []
        seen: set[int] = set()
        try:
            for entry in results:
                index = entry["index"]
                if not isinstance(index, int) or not 0 <= index < len(candidates):
                    raise ProviderError("voyageai", f"Rerank result index out of range: {index!r}")
                if index in seen:
                    raise ProviderError("voyageai", f"Duplicate rerank result index: {index}")
                seen.add(index)
                ranked.append(to_reranked(candidates[index], entry["relevance_score"]))

            usage = data.get("usage") or {}
            tokens = int(usage.get("total_tokens", 0) or 0)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise ProviderError("voyageai", f"Malformed rerank result: {e}") from e

        logger.info(f"Reranked to {len(ranked)} results")
        return RerankResult(ranked=ranked, tokens=tokens)

    def calculate_cost(self, query_count: int, document_count: int) -> float:
        searches = query_count * document_count
        return (searches / 1000) * self._cost_per_1000
