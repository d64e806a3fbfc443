"""
Gemini Embeddings Module - Google GenAI embeddings API.
=======================================================

Embeddings using Google's Gemini API. Requires a GEMINI_API_KEY from
Google AI Studio.

The API distinguishes document and query embeddings through its task
type. It reports no token usage, so counts are estimated.
"""

from typing import Any, Optional

from embeddings_evaluator.indexing.embeddings_base import (
    EmbeddingProvider,
    EmbeddingResult,
    _check_purpose,
)
from embeddings_evaluator.shared.config import get_settings
from embeddings_evaluator.shared.exceptions import ConfigurationError, ProviderError
from embeddings_evaluator.shared.logging import get_logger
from embeddings_evaluator.shared.utils import estimate_tokens

logger = get_logger(__name__)


GEMINI_MODEL_DIMENSIONS = {
    "text-embedding-004": 768,
    "embedding-001": 768,
}

# Embedding purpose -> Gemini task type
TASK_TYPES = {
    "document": "RETRIEVAL_DOCUMENT",
    "query": "RETRIEVAL_QUERY",
}


class GeminiEmbeddingProvider(EmbeddingProvider):
    """
    Gemini embedding provider using the Google GenAI SDK.

    Requires:
    - GEMINI_API_KEY environment variable
    """

    def __init__(
        self,
        model_name: Optional[str] = None,
        api_key: Optional[str] = None,
        client: Any = None,
    ):
        settings = get_settings()
        gemini_config = settings.embeddings.gemini

        self._model_name = model_name or gemini_config.model_name
        self._api_key = api_key or settings.gemini_api_key
        self._cost_per_million = gemini_config.cost_per_million_tokens
        self._dimensions = GEMINI_MODEL_DIMENSIONS.get(
            self._model_name,
            gemini_config.dimensions,
        )

        if client is None and not self._api_key:
            raise ConfigurationError(
                "Gemini API key is required. Set GEMINI_API_KEY environment variable "
                "or pass api_key parameter."
            )

        self._client = client

        logger.debug(f"Gemini provider configured: model={self._model_name}")

    @property
    def provider_name(self) -> str:
        return "gemini"

    @property
    def model_name(self) -> str:
        return self._model_name

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    def client(self):
        """Lazy load and return the Gemini client."""
        if self._client is None:
            from google import genai

            self._client = genai.Client(api_key=self._api_key)
            logger.info(f"Gemini client initialized for model: {self._model_name}")
        return self._client

    def embed(self, text: str, purpose: str = "document") -> EmbeddingResult:
        _check_purpose(purpose)

        try:
            result = self.client.models.embed_content(
                model=self._model_name,
                contents=text,
                config={"task_type": TASK_TYPES[purpose]},
            )
        except Exception as e:
            logger.error(f"Gemini embedding failed: {e}")
            raise ProviderError("gemini", f"Failed to generate embedding: {e}") from e

        vector = list(result.embeddings[0].values)
        return EmbeddingResult(vector=vector, tokens=estimate_tokens(text), estimated=True)

    def calculate_cost(self, tokens: int) -> float:
        return (tokens / 1_000_000) * self._cost_per_million

    def get_info(self) -> dict[str, Any]:
        info = super().get_info()
        info["api_key_set"] = bool(self._api_key)
        return info
