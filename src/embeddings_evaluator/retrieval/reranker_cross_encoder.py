"""
Cross-Encoder Reranker Module - Local reranking via sentence-transformers.
==========================================================================

Scores (query, document) pairs with a sentence-transformers CrossEncoder
running locally. Free, so cost is always zero. Scores are the model's
raw logits; only their order matters.
"""

from typing import Optional

from embeddings_evaluator.retrieval.reranker_base import (
    RerankProvider,
    RerankResult,
    to_reranked,
)
from embeddings_evaluator.shared.config import get_settings
from embeddings_evaluator.shared.exceptions import ProviderError
from embeddings_evaluator.shared.logging import get_logger
from embeddings_evaluator.shared.schemas import Candidate

logger = get_logger(__name__)


class CrossEncoderRerankProvider(RerankProvider):
    """Local cross-encoder reranker."""

    def __init__(
        self,
        model_name: Optional[str] = None,
        device: Optional[str] = None,
        batch_size: Optional[int] = None,
    ):
        settings = get_settings()
        ce_config = settings.reranker.cross_encoder

        self._model_name = model_name or ce_config.model_name
        self._device = device or ce_config.device
        self._batch_size = batch_size or ce_config.batch_size

        # Lazy load the model
        self._model = None

    @property
    def provider_name(self) -> str:
        return "cross-encoder"

    @property
    def model_name(self) -> str:
        return self._model_name

    @property
    def model(self):
        """Lazy load and return the cross-encoder."""
        if self._model is None:
            self._load_model()
        return self._model

    def _load_model(self) -> None:
        try:
            from sentence_transformers import CrossEncoder

            device = self._device
            if device == "auto":
                import torch
                device = "cuda" if torch.cuda.is_available() else "cpu"

            logger.info(f"Loading cross-encoder: {self._model_name}")
            self._model = CrossEncoder(self._model_name, device=device)
        except Exception as e:
            raise ProviderError(
                "cross-encoder", f"Failed to load model {self._model_name}: {e}"
            ) from e

    def rerank(self, query: str, candidates: list[Candidate], top_k: int) -> RerankResult:
        if not query or not candidates:
            return RerankResult()

        model = self.model
        pairs = [(query, c.rerank_text) for c in candidates]
        try:
            scores = model.predict(pairs, batch_size=self._batch_size, show_progress_bar=False)
            scored = list(zip(candidates, [float(s) for s in scores]))
        except Exception as e:
            raise ProviderError("cross-encoder", f"Scoring failed: {e}") from e

        # Stable sort keeps similarity order among equal scores
        scored.sort(key=lambda pair: pair[1], reverse=True)

        ranked = [to_reranked(c, s) for c, s in scored[: min(top_k, len(scored))]]
        return RerankResult(ranked=ranked, tokens=0)

    def calculate_cost(self, query_count: int, document_count: int) -> float:
        return 0.0
