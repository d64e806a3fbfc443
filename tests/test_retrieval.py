"""
Tests for Retrieval Module.
===========================

Tests for:
- Shaper: Threshold partitioning, result limiting, rerank fallback
- Rerankers: VoyageAI (mocked HTTP), cross-encoder (mocked model)
- Reranker configuration helpers
- Retriever: Composed search
"""

from unittest.mock import MagicMock, patch

import pytest
import requests

from tests.conftest import FailingReranker, FakeEmbeddingProvider, FakeReranker


def _candidates(*scores):
    from embeddings_evaluator.shared.schemas import Candidate

    return [
        Candidate(id=i, similarity_score=s, title=f"Item {i}", description=f"About {i}")
        for i, s in enumerate(scores, 1)
    ]


# ─────────────────────────────────────────────────────────────────────────────
# Shaper Tests
# ─────────────────────────────────────────────────────────────────────────────


class TestApplyThreshold:
    """Tests for threshold partitioning."""

    def test_partition_keeps_order(self):
        from embeddings_evaluator.retrieval.shaper import apply_threshold

        partition = apply_threshold(_candidates(0.8, 0.6, 0.3, 0.1), 0.5)

        assert [c.id for c in partition.above_threshold] == [1, 2]
        assert [c.id for c in partition.below_threshold] == [3, 4]

    def test_threshold_is_inclusive(self):
        from embeddings_evaluator.retrieval.shaper import apply_threshold

        partition = apply_threshold(_candidates(0.5, 0.49), 0.5)

        assert [c.id for c in partition.above_threshold] == [1]

    def test_below_threshold_truncated(self):
        """Only three below-threshold candidates are kept for display."""
        from embeddings_evaluator.retrieval.shaper import BELOW_THRESHOLD_LIMIT, apply_threshold

        partition = apply_threshold(_candidates(0.9, 0.2, 0.2, 0.1, 0.05, 0.01), 0.5)

        assert len(partition.below_threshold) == BELOW_THRESHOLD_LIMIT
        assert [c.id for c in partition.below_threshold] == [2, 3, 4]

    def test_zero_threshold_still_partitions(self):
        """Negative cosine similarities fall below a zero threshold."""
        from embeddings_evaluator.retrieval.shaper import apply_threshold

        partition = apply_threshold(_candidates(0.4, 0.0, -0.2), 0.0)

        assert [c.id for c in partition.above_threshold] == [1, 2]
        assert [c.id for c in partition.below_threshold] == [3]

    def test_empty(self):
        from embeddings_evaluator.retrieval.shaper import apply_threshold

        partition = apply_threshold([], 0.5)

        assert partition.above_threshold == []
        assert partition.below_threshold == []


class TestLimitResults:
    """Tests for final result limiting."""

    def test_threshold_mode_returns_all(self):
        from embeddings_evaluator.retrieval.shaper import limit_results

        above = _candidates(0.9, 0.8, 0.7, 0.6, 0.5)

        assert len(limit_results(above, 0.4, top_k=3)) == 5

    def test_top_k_mode(self):
        from embeddings_evaluator.retrieval.shaper import limit_results

        above = _candidates(0.9, 0.8, 0.7, 0.6)

        assert [c.id for c in limit_results(above, 0.0, top_k=3)] == [1, 2, 3]

    def test_default_top_k(self):
        from embeddings_evaluator.retrieval.shaper import limit_results

        assert len(limit_results(_candidates(0.9, 0.8, 0.7, 0.6), 0.0)) == 3


class TestRerankHelpers:
    """Tests for pool sizing, candidate selection and merging."""

    @pytest.mark.parametrize(
        "top_k,rerank,expected",
        [(3, True, 30), (1, True, 20), (3, False, 9), (5, False, 15)],
    )
    def test_candidate_pool_size(self, top_k, rerank, expected):
        from embeddings_evaluator.retrieval.shaper import candidate_pool_size

        assert candidate_pool_size(top_k, rerank) == expected

    def test_select_rerank_candidates(self):
        """Top candidates by similarity; ties keep input order."""
        from embeddings_evaluator.retrieval.shaper import select_rerank_candidates

        selected = select_rerank_candidates(_candidates(0.5, 0.9, 0.5, 0.7), limit=3)

        assert [c.id for c in selected] == [2, 4, 1]

    def test_select_rerank_candidates_default_limit(self):
        from embeddings_evaluator.retrieval.shaper import select_rerank_candidates

        selected = select_rerank_candidates(_candidates(*[0.9 - i * 0.01 for i in range(15)]))

        assert len(selected) == 10

    def test_merge_reranked_results(self):
        from embeddings_evaluator.retrieval.reranker_base import to_reranked
        from embeddings_evaluator.retrieval.shaper import merge_reranked_results

        first, second = _candidates(0.9, 0.3)
        reranked = [to_reranked(second, 0.8), to_reranked(first, 0.2)]

        partition = merge_reranked_results(reranked, 0.5)

        assert [c.id for c in partition.above_threshold] == [2]
        assert partition.above_threshold[0].original_similarity_score == 0.3
        assert partition.above_threshold[0].ranking_score == 0.8
        assert [c.id for c in partition.below_threshold] == [1]


class TestRerankOrFallback:
    """Tests for the rerank stage."""

    def test_success(self):
        from embeddings_evaluator.retrieval.shaper import rerank_or_fallback

        reranker = FakeReranker(relevance={1: 0.1, 2: 0.7, 3: 0.9}, tokens=11)

        outcome = rerank_or_fallback(reranker, "query", _candidates(0.9, 0.8, 0.2), 0.5)

        assert outcome.reranked
        assert [c.id for c in outcome.partition.above_threshold] == [3, 2]
        assert outcome.tokens == 11
        assert outcome.documents_sent == 3
        assert outcome.cost == pytest.approx(0.003)
        assert outcome.error is None

    def test_only_top_candidates_sent(self):
        from embeddings_evaluator.retrieval.shaper import rerank_or_fallback

        reranker = FakeReranker(relevance={})
        candidates = _candidates(*[0.9 - i * 0.01 for i in range(25)])

        outcome = rerank_or_fallback(reranker, "query", candidates, 0.0, limit=10)

        assert reranker.calls[0][1] == list(range(1, 11))
        assert reranker.calls[0][2] == 10
        assert outcome.documents_sent == 10

    def test_failure_falls_back_to_similarity(self):
        """A rerank failure equals plain thresholding with no cost."""
        from embeddings_evaluator.retrieval.shaper import apply_threshold, rerank_or_fallback

        candidates = _candidates(0.9, 0.6, 0.3)

        outcome = rerank_or_fallback(FailingReranker(), "query", candidates, 0.5)

        assert not outcome.reranked
        assert outcome.partition == apply_threshold(candidates, 0.5)
        assert outcome.tokens == 0
        assert outcome.cost == 0.0
        assert "503" in outcome.error

    def test_no_candidates(self):
        from embeddings_evaluator.retrieval.shaper import rerank_or_fallback

        reranker = FakeReranker(relevance={})

        outcome = rerank_or_fallback(reranker, "query", [], 0.5)

        assert reranker.calls == []
        assert outcome.partition.above_threshold == []


# ─────────────────────────────────────────────────────────────────────────────
# VoyageAI Reranker Tests
# ─────────────────────────────────────────────────────────────────────────────


def _voyage_response(payload):
    response = MagicMock()
    response.json.return_value = payload
    return response


class TestVoyageRerankProvider:
    """Tests for the VoyageAI reranker with the HTTP layer mocked."""

    def test_rerank_request_and_mapping(self):
        from embeddings_evaluator.retrieval.reranker_voyage import VoyageRerankProvider

        provider = VoyageRerankProvider(api_key="test-key", base_url="https://api.example.com/v1")
        candidates = _candidates(0.9, 0.8, 0.7)

        with patch("embeddings_evaluator.retrieval.reranker_voyage.requests.post") as mock_post:
            mock_post.return_value = _voyage_response({
                "data": [
                    {"index": 2, "relevance_score": 0.95},
                    {"index": 0, "relevance_score": 0.40},
                ],
                "usage": {"total_tokens": 42},
            })
            result = provider.rerank("python", candidates, top_k=10)

        args, kwargs = mock_post.call_args
        assert args[0] == "https://api.example.com/v1/rerank"
        assert kwargs["headers"]["Authorization"] == "Bearer test-key"
        assert kwargs["json"] == {
            "model": "rerank-2.5",
            "query": "python",
            "documents": ["Item 1. About 1", "Item 2. About 2", "Item 3. About 3"],
            "top_k": 3,
            "return_documents": False,
        }

        assert [c.id for c in result.ranked] == [3, 1]
        assert result.ranked[0].relevance_score == 0.95
        assert result.ranked[0].original_similarity_score == 0.7
        assert result.tokens == 42

    def test_connection_error(self):
        from embeddings_evaluator.retrieval.reranker_voyage import VoyageRerankProvider
        from embeddings_evaluator.shared.exceptions import ProviderError

        provider = VoyageRerankProvider(api_key="test-key")

        with patch(
            "embeddings_evaluator.retrieval.reranker_voyage.requests.post",
            side_effect=requests.ConnectionError("refused"),
        ):
            with pytest.raises(ProviderError) as exc_info:
                provider.rerank("python", _candidates(0.9), top_k=1)

        assert exc_info.value.provider == "voyageai"

    def test_http_error(self):
        from embeddings_evaluator.retrieval.reranker_voyage import VoyageRerankProvider
        from embeddings_evaluator.shared.exceptions import ProviderError

        provider = VoyageRerankProvider(api_key="test-key")
        response = _voyage_response({})
        response.raise_for_status.side_effect = requests.HTTPError("429 Too Many Requests")

        with patch("embeddings_evaluator.retrieval.reranker_voyage.requests.post", return_value=response):
            with pytest.raises(ProviderError, match="429"):
                provider.rerank("python", _candidates(0.9), top_k=1)

    @pytest.mark.parametrize(
        "payload",
        [
            {"data": "not a list"},
            {"results": []},
            {"data": [{"index": 5, "relevance_score": 0.1}]},
            {"data": [{"relevance_score": 0.1}]},
            {"data": [{"index": -1, "relevance_score": 0.1}]},
            {"data": [{"index": 0, "relevance_score": 0.9}, {"index": 0, "relevance_score": 0.8}]},
            {"data": [{"index": 0, "relevance_score": "n/a"}]},
            {"data": [{"index": 0, "relevance_score": 0.9}], "usage": [1]},
        ],
    )
    def test_malformed_response(self, payload):
        from embeddings_evaluator.retrieval.reranker_voyage import VoyageRerankProvider
        from embeddings_evaluator.shared.exceptions import ProviderError

        provider = VoyageRerankProvider(api_key="test-key")

        with patch(
            "embeddings_evaluator.retrieval.reranker_voyage.requests.post",
            return_value=_voyage_response(payload),
        ):
            with pytest.raises(ProviderError):
                provider.rerank("python", _candidates(0.9, 0.8), top_k=2)

    def test_missing_api_key(self, monkeypatch):
        from embeddings_evaluator.retrieval.reranker_voyage import VoyageRerankProvider
        from embeddings_evaluator.shared.exceptions import ConfigurationError

        monkeypatch.setenv("VOYAGEAI_API_KEY", "")

        with pytest.raises(ConfigurationError, match="VOYAGEAI_API_KEY"):
            VoyageRerankProvider()

    def test_calculate_cost(self):
        from embeddings_evaluator.retrieval.reranker_voyage import VoyageRerankProvider

        provider = VoyageRerankProvider(api_key="test-key")

        assert provider.calculate_cost(1, 10) == pytest.approx(0.0005)
        assert provider.calculate_cost(100, 10) == pytest.approx(0.05)


# ─────────────────────────────────────────────────────────────────────────────
# Cross-Encoder Reranker Tests
# ─────────────────────────────────────────────────────────────────────────────


class TestCrossEncoderRerankProvider:
    """Tests for the local cross-encoder with the model mocked."""

    def test_rerank_orders_by_score(self):
        from embeddings_evaluator.retrieval.reranker_cross_encoder import CrossEncoderRerankProvider

        provider = CrossEncoderRerankProvider(model_name="test-model")
        provider._model = MagicMock()
        provider._model.predict.return_value = [-2.0, 4.5, 1.0]

        result = provider.rerank("python", _candidates(0.9, 0.8, 0.7), top_k=2)

        pairs = provider._model.predict.call_args[0][0]
        assert pairs[0] == ("python", "Item 1. About 1")
        assert [c.id for c in result.ranked] == [2, 3]
        assert result.ranked[0].relevance_score == 4.5
        assert result.tokens == 0
        assert provider.calculate_cost(1, 10) == 0.0

    def test_scoring_failure(self):
        from embeddings_evaluator.retrieval.reranker_cross_encoder import CrossEncoderRerankProvider
        from embeddings_evaluator.shared.exceptions import ProviderError

        provider = CrossEncoderRerankProvider(model_name="test-model")
        provider._model = MagicMock()
        provider._model.predict.side_effect = RuntimeError("CUDA out of memory")

        with pytest.raises(ProviderError, match="cross-encoder"):
            provider.rerank("python", _candidates(0.9), top_k=1)


# ─────────────────────────────────────────────────────────────────────────────
# Reranker Configuration Tests
# ─────────────────────────────────────────────────────────────────────────────


class TestRerankConfig:
    """Tests for reranker configuration helpers."""

    def test_validate_rerank_config(self):
        from embeddings_evaluator.retrieval.reranker_base import validate_rerank_config

        assert validate_rerank_config("voyageai", "rerank-2.5") == []
        assert validate_rerank_config("", "rerank-2.5") == ["Reranker vendor must be a non-empty string"]
        errors = validate_rerank_config("cohere", None)
        assert "Reranker model must be a non-empty string" in errors
        assert any("Unsupported reranker vendor: cohere" in e for e in errors)

    def test_format_rerank_config(self):
        from embeddings_evaluator.retrieval.reranker_base import format_rerank_config

        assert format_rerank_config("voyageai", "rerank-1") == "voyageai/rerank-1"
        assert format_rerank_config("voyageai", None) == "Unknown reranker configuration"

    def test_config_help(self):
        from embeddings_evaluator.retrieval.reranker_base import get_rerank_config_help

        text = get_rerank_config_help("voyageai")

        assert "VOYAGEAI_API_KEY=your_api_key_here" in text
        assert "rerank-2.5, rerank-1" in text
        assert "https://docs.voyageai.com/docs/reranking" in text
        assert get_rerank_config_help("cohere").startswith("Unknown reranker vendor")

    def test_requirements_disabled(self, monkeypatch):
        from embeddings_evaluator.retrieval.reranker_base import check_rerank_requirements

        monkeypatch.setenv("RERANK_PROVIDER", "none")

        requirements = check_rerank_requirements()

        assert not requirements.enabled
        assert requirements.ready

    def test_requirements_missing_key(self, monkeypatch):
        from embeddings_evaluator.retrieval.reranker_base import check_rerank_requirements

        monkeypatch.setenv("RERANK_PROVIDER", "voyageai")
        monkeypatch.setenv("VOYAGEAI_API_KEY", "")

        requirements = check_rerank_requirements()

        assert requirements.enabled
        assert not requirements.ready
        assert requirements.model == "rerank-2.5"
        assert requirements.issues[0] == "Missing VOYAGEAI_API_KEY environment variable"

    def test_requirements_ready(self, monkeypatch):
        from embeddings_evaluator.retrieval.reranker_base import check_rerank_requirements

        monkeypatch.setenv("RERANK_PROVIDER", "voyageai")
        monkeypatch.setenv("VOYAGEAI_API_KEY", "test-key")

        assert check_rerank_requirements().ready

    def test_get_reranker_disabled(self, monkeypatch):
        from embeddings_evaluator.retrieval.reranker_base import get_reranker

        monkeypatch.setenv("RERANK_PROVIDER", "none")

        assert get_reranker() is None

    def test_get_reranker_unknown(self):
        from embeddings_evaluator.retrieval.reranker_base import get_reranker
        from embeddings_evaluator.shared.exceptions import ConfigurationError

        with pytest.raises(ConfigurationError, match="Unknown reranker vendor"):
            get_reranker("cohere")

    def test_get_reranker_cached(self, monkeypatch):
        from embeddings_evaluator.retrieval.reranker_base import get_reranker

        monkeypatch.setenv("VOYAGEAI_API_KEY", "test-key")

        first = get_reranker("voyageai")

        assert first.provider_name == "voyageai"
        assert get_reranker("voyageai") is first


# ─────────────────────────────────────────────────────────────────────────────
# Retriever Tests
# ─────────────────────────────────────────────────────────────────────────────


class TestRetriever:
    """Tests for the composed retrieval steps."""

    def test_search(self, fake_store):
        from embeddings_evaluator.retrieval.retriever import Retriever

        retriever = Retriever(
            FakeEmbeddingProvider(tokens=6, cost_per_token=0.01),
            fake_store,
            top_k=2,
            min_similarity=0.0,
        )

        result = retriever.search("python")

        assert result.found_ids == [2, 1]
        assert result.embedding.tokens == 6
        assert result.embedding_cost == pytest.approx(0.06)
        assert result.rerank_cost == 0.0
        assert fake_store.queries == [6]

    def test_search_with_reranker(self, fake_store):
        from embeddings_evaluator.retrieval.retriever import Retriever

        reranker = FakeReranker(relevance={1: 0.9, 2: 0.8, 3: 0.1})
        retriever = Retriever(FakeEmbeddingProvider(), fake_store, reranker=reranker, top_k=1, min_similarity=0.0)

        result = retriever.search("statistics")

        assert retriever.pool_size == 20
        assert result.found_ids == [1]
        assert result.rerank_tokens == 7

    def test_defaults_from_settings(self, fake_store, monkeypatch):
        from embeddings_evaluator.retrieval.retriever import Retriever

        monkeypatch.setenv("TOP_K", "4")
        monkeypatch.setenv("MIN_SIMILARITY", "0.25")

        retriever = Retriever(FakeEmbeddingProvider(), fake_store)
        info = retriever.get_info()

        assert info["top_k"] == 4
        assert info["min_similarity"] == 0.25
        assert info["mode"] == "threshold"
        assert info["pool_size"] == 12
        assert info["reranker"] is None

    @pytest.mark.parametrize(
        "payload",
        [
            {"data": [{"index": 0, "relevance_score": "n/a"}]},
            {"data": [{"index": 0, "relevance_score": 0.9}], "usage": [1]},
        ],
    )
    def test_malformed_rerank_falls_back(self, fake_store, payload):
        """A garbled rerank response keeps the similarity order."""
        from embeddings_evaluator.retrieval.reranker_voyage import VoyageRerankProvider
        from embeddings_evaluator.retrieval.retriever import Retriever

        retriever = Retriever(
            FakeEmbeddingProvider(),
            fake_store,
            reranker=VoyageRerankProvider(api_key="test-key"),
            min_similarity=0.4,
        )

        with patch(
            "embeddings_evaluator.retrieval.reranker_voyage.requests.post",
            return_value=_voyage_response(payload),
        ):
            result = retriever.search("python")

        assert result.found_ids == [2, 1]
        assert not result.rerank.reranked
        assert "Malformed rerank result" in result.rerank.error
        assert result.rerank_cost == 0.0

    def test_zero_rerank_limit_is_respected(self, fake_store):
        from embeddings_evaluator.retrieval.retriever import Retriever

        reranker = FakeReranker(relevance={1: 0.9, 2: 0.8, 3: 0.1})
        retriever = Retriever(
            FakeEmbeddingProvider(), fake_store, reranker=reranker, top_k=2, rerank_limit=0
        )

        result = retriever.search("python")

        assert retriever.rerank_limit == 0
        assert reranker.calls == []
        assert result.found_ids == [2, 1]
