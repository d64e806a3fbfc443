"""
SBERT Embeddings Module - Local embeddings via sentence-transformers.
====================================================================

Free, local embeddings using pre-trained SBERT models. No API key
required and no cost; token counts are estimated.

Recommended models:
- all-MiniLM-L6-v2: Fast, 384 dimensions (default)
- all-mpnet-base-v2: Better quality, 768 dimensions
- paraphrase-multilingual-MiniLM-L12-v2: German and English content
"""

from typing import Any, Optional

from embeddings_evaluator.indexing.embeddings_base import (
    EmbeddingProvider,
    EmbeddingResult,
    _check_purpose,
)
from embeddings_evaluator.shared.config import get_settings
from embeddings_evaluator.shared.exceptions import ProviderError
from embeddings_evaluator.shared.logging import get_logger
from embeddings_evaluator.shared.utils import estimate_tokens

logger = get_logger(__name__)


MODEL_DIMENSIONS = {
    "all-MiniLM-L6-v2": 384,
    "all-MiniLM-L12-v2": 384,
    "all-mpnet-base-v2": 768,
    "paraphrase-multilingual-MiniLM-L12-v2": 384,
    "multi-qa-MiniLM-L6-cos-v1": 384,
}


class SBERTEmbeddingProvider(EmbeddingProvider):
    """
    SBERT embedding provider using sentence-transformers.

    Example:
        >>> provider = SBERTEmbeddingProvider()
        >>> result = provider.embed("Hello world")
        >>> print(len(result.vector))  # 384 for default model
    """

    def __init__(
        self,
        model_name: Optional[str] = None,
        device: Optional[str] = None,
    ):
        settings = get_settings()
        sbert_config = settings.embeddings.sbert

        self._model_name = model_name or sbert_config.model_name
        self._device = device or sbert_config.device
        self._dimensions = MODEL_DIMENSIONS.get(self._model_name, sbert_config.dimensions)

        # Lazy load the model
        self._model = None

        logger.debug(
            f"SBERT provider configured: model={self._model_name}, device={self._device}"
        )

    @property
    def provider_name(self) -> str:
        return "sbert"

    @property
    def model_name(self) -> str:
        return self._model_name

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    def model(self):
        """Lazy load and return the sentence transformer model."""
        if self._model is None:
            self._load_model()
        return self._model

    def _load_model(self) -> None:
        """Load the sentence transformer model."""
        try:
            from sentence_transformers import SentenceTransformer

            logger.info(f"Loading SBERT model: {self._model_name}")

            device = self._device
            if device == "auto":
                import torch
                device = "cuda" if torch.cuda.is_available() else "cpu"

            self._model = SentenceTransformer(self._model_name, device=device)
            self._dimensions = self._model.get_sentence_embedding_dimension()

            logger.info(
                f"SBERT model loaded: {self._model_name} "
                f"(dims={self._dimensions}, device={device})"
            )
        except Exception as e:
            raise ProviderError("sbert", f"Failed to load model {self._model_name}: {e}") from e

    def embed(self, text: str, purpose: str = "document") -> EmbeddingResult:
        """Embed one text; SBERT uses the same encoding for documents and queries."""
        _check_purpose(purpose)

        model = self.model
        try:
            embedding = model.encode(
                text,
                convert_to_numpy=True,
                normalize_embeddings=True,
                show_progress_bar=False,
            )
        except Exception as e:
            raise ProviderError("sbert", f"Failed to encode text: {e}") from e

        return EmbeddingResult(
            vector=embedding.tolist(),
            tokens=estimate_tokens(text),
            estimated=True,
        )

    def calculate_cost(self, tokens: int) -> float:
        return 0.0

    def get_info(self) -> dict[str, Any]:
        info = super().get_info()
        info["device"] = self._device
        if self._model is not None:
            info["device_actual"] = str(self._model.device)
        return info
