"""
Pytest Configuration and Fixtures.
===================================

Shared fixtures for all test modules:
- Sample project data (content items, evaluation queries)
- In-memory fakes for the embedding, vector store and rerank capabilities
- Temporary directories
- Settings and provider cache resets
"""

import json
import tempfile
from pathlib import Path
from typing import Generator, Optional

import pytest

from embeddings_evaluator.indexing.embeddings_base import EmbeddingProvider, EmbeddingResult
from embeddings_evaluator.indexing.vector_store import VectorStore
from embeddings_evaluator.retrieval.reranker_base import RerankProvider, RerankResult, to_reranked
from embeddings_evaluator.shared.exceptions import ProviderError
from embeddings_evaluator.shared.schemas import Candidate, ContentItem, IndexStats


# ─────────────────────────────────────────────────────────────────────────────
# Fakes
# ─────────────────────────────────────────────────────────────────────────────


class FakeEmbeddingProvider(EmbeddingProvider):
    """Deterministic provider: every text maps to the same small vector."""

    def __init__(
        self,
        tokens: int = 5,
        cost_per_token: float = 0.0,
        fail: bool = False,
        fail_on: tuple[str, ...] = (),
    ):
        self.tokens = tokens
        self.cost_per_token = cost_per_token
        self.fail = fail
        self.fail_on = fail_on
        self.calls: list[tuple[str, str]] = []

    @property
    def provider_name(self) -> str:
        return "fake"

    @property
    def model_name(self) -> str:
        return "fake-embedding"

    @property
    def dimensions(self) -> int:
        return 3

    def embed(self, text: str, purpose: str = "document") -> EmbeddingResult:
        self.calls.append((text, purpose))
        if self.fail or text in self.fail_on:
            raise ProviderError("fake", "embedding service unavailable")
        return EmbeddingResult(vector=[1.0, 0.0, 0.0], tokens=self.tokens)

    def calculate_cost(self, tokens: int) -> float:
        return tokens * self.cost_per_token


class FakeVectorStore(VectorStore):
    """In-memory store that scores items from a fixed id -> similarity table."""

    def __init__(self, scores: Optional[dict[int, float]] = None, fail_query: bool = False):
        self.scores = scores or {}
        self.fail_query = fail_query
        self.items: dict[int, ContentItem] = {}
        self.queries: list[int] = []

    def insert(self, vector: list[float], item: ContentItem) -> None:
        self.items[item.id] = item

    def query(self, vector: list[float], k: int) -> list[Candidate]:
        from embeddings_evaluator.shared.exceptions import StoreError

        self.queries.append(k)
        if self.fail_query:
            raise StoreError("index unavailable")
        candidates = [
            Candidate(
                id=item.id,
                similarity_score=self.scores.get(item.id, 0.0),
                title=item.title,
                description=item.description,
            )
            for item in self.items.values()
        ]
        candidates.sort(key=lambda c: c.similarity_score, reverse=True)
        return candidates[:k]

    def stats(self) -> IndexStats:
        return IndexStats(item_count=len(self.items), collection_name="fake")

    def clear(self) -> None:
        self.items.clear()


class FakeReranker(RerankProvider):
    """Reranker that scores candidates from a fixed id -> relevance table."""

    def __init__(self, relevance: dict[int, float], tokens: int = 7, cost_per_document: float = 0.001):
        self.relevance = relevance
        self.tokens = tokens
        self.cost_per_document = cost_per_document
        self.calls: list[tuple[str, list[int], int]] = []

    @property
    def provider_name(self) -> str:
        return "fake-rerank"

    @property
    def model_name(self) -> str:
        return "fake-rerank-1"

    def rerank(self, query: str, candidates: list[Candidate], top_k: int) -> RerankResult:
        self.calls.append((query, [c.id for c in candidates], top_k))
        scored = sorted(candidates, key=lambda c: self.relevance.get(c.id, 0.0), reverse=True)
        ranked = [to_reranked(c, self.relevance.get(c.id, 0.0)) for c in scored[:top_k]]
        return RerankResult(ranked=ranked, tokens=self.tokens)

    def calculate_cost(self, query_count: int, document_count: int) -> float:
        return query_count * document_count * self.cost_per_document


class FailingReranker(FakeReranker):
    """Reranker whose every call fails."""

    def __init__(self):
        super().__init__(relevance={})

    def rerank(self, query: str, candidates: list[Candidate], top_k: int) -> RerankResult:
        self.calls.append((query, [c.id for c in candidates], top_k))
        raise ProviderError("fake-rerank", "503 Service Unavailable")


# ─────────────────────────────────────────────────────────────────────────────
# Path Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


# ─────────────────────────────────────────────────────────────────────────────
# Sample Data Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def sample_content() -> list[dict]:
    """Raw content.json records."""
    return [
        {"id": 1, "title": "Data Science", "description": "Statistics and machine learning."},
        {"id": 2, "title": "Python Basics", "description": "Introduction to Python programming."},
        {"id": 3, "title": "Project Management", "description": "Planning and leading projects."},
    ]


@pytest.fixture
def sample_queries() -> list[dict]:
    """Raw eval.json records."""
    return [
        {"search": "python", "expected": [2]},
        {"search": "managing projects", "expected": [3]},
        {"search": "cooking", "expected": None},
    ]


@pytest.fixture
def sample_items(sample_content: list[dict]) -> list[ContentItem]:
    """Sample ContentItem instances."""
    return [ContentItem(**record) for record in sample_content]


@pytest.fixture
def project_dir(temp_dir: Path, sample_content: list[dict], sample_queries: list[dict]) -> Path:
    """A project directory holding content.json and eval.json."""
    path = temp_dir / "courses-en"
    path.mkdir()
    (path / "content.json").write_text(json.dumps(sample_content), encoding="utf-8")
    (path / "eval.json").write_text(json.dumps(sample_queries), encoding="utf-8")
    return path


# ─────────────────────────────────────────────────────────────────────────────
# Fake Capability Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def fake_provider() -> FakeEmbeddingProvider:
    return FakeEmbeddingProvider()


@pytest.fixture
def fake_store(sample_items: list[ContentItem]) -> FakeVectorStore:
    """Store pre-filled with the sample items; id 2 is the closest match."""
    store = FakeVectorStore(scores={2: 0.9, 1: 0.5, 3: 0.2})
    for item in sample_items:
        store.insert([1.0, 0.0, 0.0], item)
    return store


# ─────────────────────────────────────────────────────────────────────────────
# Pytest Configuration
# ─────────────────────────────────────────────────────────────────────────────


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests that touch a real local vector store"
    )


@pytest.fixture(autouse=True)
def reset_singletons(monkeypatch):
    """Reset cached settings and providers between tests."""
    from embeddings_evaluator.indexing.embeddings_base import clear_provider_cache
    from embeddings_evaluator.retrieval.reranker_base import clear_reranker_cache
    from embeddings_evaluator.shared.config import get_settings

    for name in ("EMBEDDING_PROVIDER", "RERANK_PROVIDER", "TOP_K", "MIN_SIMILARITY"):
        monkeypatch.delenv(name, raising=False)

    get_settings.cache_clear()
    clear_provider_cache()
    clear_reranker_cache()

    yield

    get_settings.cache_clear()
    clear_provider_cache()
    clear_reranker_cache()
