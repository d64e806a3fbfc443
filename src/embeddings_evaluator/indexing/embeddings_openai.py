"""
OpenAI Embeddings Module - OpenAI embeddings API.
=================================================

Embeddings via the OpenAI SDK. Requires OPENAI_API_KEY.

Token usage is taken from the API response, so counts from this
provider are exact.

Common models:
- text-embedding-3-small: 1536 dimensions, $0.02 / 1M tokens (default)
- text-embedding-3-large: 3072 dimensions, $0.13 / 1M tokens
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


OPENAI_MODEL_DIMENSIONS = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
}


class OpenAIEmbeddingProvider(EmbeddingProvider):
    """
    OpenAI embedding provider.

    Example:
        >>> provider = OpenAIEmbeddingProvider()
        >>> result = provider.embed("Hello world")
        >>> print(len(result.vector), result.tokens)
    """

    def __init__(
        self,
        model_name: Optional[str] = None,
        api_key: Optional[str] = None,
        cost_per_million_tokens: Optional[float] = None,
        client: Any = None,
    ):
        """
        Initialize the OpenAI provider.

        Args:
            model_name: Embedding model name
            api_key: OpenAI API key (defaults to OPENAI_API_KEY env var)
            cost_per_million_tokens: USD price per 1M input tokens
            client: Preconfigured OpenAI client (mostly for tests)
        """
        settings = get_settings()
        openai_config = settings.embeddings.openai

        self._model_name = model_name or openai_config.model_name
        self._api_key = api_key or settings.openai_api_key
        self._timeout = openai_config.timeout
        self._cost_per_million = (
            cost_per_million_tokens
            if cost_per_million_tokens is not None
            else openai_config.cost_per_million_tokens
        )
        self._dimensions = OPENAI_MODEL_DIMENSIONS.get(
            self._model_name,
            openai_config.dimensions,
        )

        if client is None and not self._api_key:
            raise ConfigurationError(
                "OpenAI API key is required. Set OPENAI_API_KEY environment variable "
                "or pass api_key parameter."
            )

        self._client = client

        logger.debug(
            f"OpenAI provider configured: model={self._model_name}, "
            f"cost_per_million={self._cost_per_million}"
        )

    @property
    def provider_name(self) -> str:
        return "openai"

    @property
    def model_name(self) -> str:
        return self._model_name

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    def client(self):
        """Lazily create the OpenAI client."""
        if self._client is None:
            from openai import OpenAI

            self._client = OpenAI(api_key=self._api_key, timeout=self._timeout)
            logger.info(f"OpenAI client initialized for model: {self._model_name}")
        return self._client

    def embed(self, text: str, purpose: str = "document") -> EmbeddingResult:
        """Embed one text; OpenAI uses the same model for documents and queries."""
        _check_purpose(purpose)

        try:
            response = self.client.embeddings.create(input=text, model=self._model_name)
        except Exception as e:
            logger.error(f"OpenAI embedding failed: {e}")
            raise ProviderError("openai", f"Failed to generate embedding: {e}") from e

        vector = list(response.data[0].embedding)

        usage = getattr(response, "usage", None)
        tokens = getattr(usage, "total_tokens", None) if usage is not None else None
        if tokens is None:
            return EmbeddingResult(vector=vector, tokens=estimate_tokens(text), estimated=True)

        return EmbeddingResult(vector=vector, tokens=int(tokens))

    def calculate_cost(self, tokens: int) -> float:
        return (tokens / 1_000_000) * self._cost_per_million

    def get_info(self) -> dict[str, Any]:
        info = super().get_info()
        info["cost_per_million_tokens"] = self._cost_per_million
        info["api_key_set"] = bool(self._api_key)
        return info
