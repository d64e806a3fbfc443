"""
Vector Store Module - Vector storage and nearest-neighbor lookup.
=================================================================

Defines the vector store contract used by the evaluation pipeline and
its ChromaDB implementation:
- Persistent local storage, one collection per project and provider
- Cosine-space similarity search (similarity = 1 - cosine distance)
- Item metadata (id, title, description) stored alongside vectors

Callers embed text themselves; the store only sees vectors.
"""

import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional

import chromadb
from chromadb.config import Settings as ChromaSettings

from embeddings_evaluator.shared.config import get_settings
from embeddings_evaluator.shared.exceptions import StoreError
from embeddings_evaluator.shared.logging import get_logger
from embeddings_evaluator.shared.schemas import Candidate, ContentItem, IndexStats

logger = get_logger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# Abstract Base Class
# ─────────────────────────────────────────────────────────────────────────────


class VectorStore(ABC):
    """
    Contract of a vector index.

    - insert(): Store one item with its vector
    - query(): Up to k nearest items, sorted by similarity descending
    - stats(): Item count and location
    - clear(): Remove every item
    """

    @abstractmethod
    def insert(self, vector: list[float], item: ContentItem) -> None:
        """Store ``item`` under ``vector``."""

    @abstractmethod
    def query(self, vector: list[float], k: int) -> list[Candidate]:
        """Return at most ``k`` candidates, highest similarity first."""

    @abstractmethod
    def stats(self) -> IndexStats:
        """Get index statistics."""

    @abstractmethod
    def clear(self) -> None:
        """Remove all items."""


# ─────────────────────────────────────────────────────────────────────────────
# ChromaDB Implementation
# ─────────────────────────────────────────────────────────────────────────────


class ChromaVectorStore(VectorStore):
    """
    ChromaDB-backed vector store.

    Example:
        >>> store = ChromaVectorStore("courses-en_openai", Path("data/index/courses-en"))
        >>> store.insert(vector, item)
        >>> for candidate in store.query(query_vector, k=9):
        ...     print(candidate.id, candidate.similarity_score)
    """

    def __init__(
        self,
        collection_name: str,
        persist_directory: Path,
    ):
        """
        Open (or create) a persistent collection.

        Args:
            collection_name: Name of the ChromaDB collection
            persist_directory: Directory for persistent storage

        Raises:
            StoreError: If the store cannot be opened
        """
        self.collection_name = collection_name
        self.persist_directory = Path(persist_directory)

        try:
            self.persist_directory.mkdir(parents=True, exist_ok=True)
            self._client = chromadb.PersistentClient(
                path=str(self.persist_directory),
                settings=ChromaSettings(
                    anonymized_telemetry=False,
                    allow_reset=True,
                ),
            )
            self._collection = self._client.get_or_create_collection(
                name=collection_name,
                metadata={"hnsw:space": "cosine"},
            )
        except Exception as e:
            raise StoreError(f"Failed to open vector store at {self.persist_directory}: {e}") from e

        logger.info(
            f"Vector store initialized: collection={collection_name}, "
            f"persist_dir={self.persist_directory}, "
            f"existing_count={self.count}"
        )

    @property
    def count(self) -> int:
        """Get the number of items in the collection."""
        try:
            return self._collection.count()
        except Exception as e:
            raise StoreError(f"Failed to count items in {self.collection_name}: {e}") from e

    def insert(self, vector: list[float], item: ContentItem) -> None:
        try:
            self._collection.add(
                ids=[str(item.id)],
                embeddings=[vector],
                documents=[item.embedding_text],
                metadatas=[item.to_metadata_dict()],
            )
        except Exception as e:
            raise StoreError(f"Failed to insert item {item.id}: {e}") from e

        logger.debug(f"Inserted item {item.id} into {self.collection_name}")

    def query(self, vector: list[float], k: int) -> list[Candidate]:
        if k <= 0:
            return []

        total = self.count
        if total == 0:
            return []

        try:
            results = self._collection.query(
                query_embeddings=[vector],
                n_results=min(k, total),
                include=["metadatas", "distances"],
            )
        except Exception as e:
            raise StoreError(f"Failed to query {self.collection_name}: {e}") from e

        return self._results_to_candidates(results)

    def stats(self) -> IndexStats:
        return IndexStats(
            item_count=self.count,
            collection_name=self.collection_name,
            persist_directory=str(self.persist_directory),
        )

    def clear(self) -> None:
        """Clear all items by dropping and recreating the collection."""
        try:
            self._client.delete_collection(self.collection_name)
            self._collection = self._client.create_collection(
                name=self.collection_name,
                metadata={"hnsw:space": "cosine"},
            )
        except Exception as e:
            raise StoreError(f"Failed to clear {self.collection_name}: {e}") from e

        logger.info(f"Cleared collection: {self.collection_name}")

    def _results_to_candidates(self, results: dict[str, Any]) -> list[Candidate]:
        """Convert ChromaDB query results to candidates."""
        if not results or not results.get("ids") or not results["ids"][0]:
            return []

        ids = results["ids"][0]
        metadatas = (results.get("metadatas") or [[]])[0] or []
        distances = (results.get("distances") or [[]])[0] or []

        candidates = []
        for i, raw_id in enumerate(ids):
            meta = metadatas[i] if i < len(metadatas) and metadatas[i] else {}
            # Cosine distance -> similarity
            distance = distances[i] if i < len(distances) else 1.0
            candidates.append(
                Candidate(
                    id=int(meta.get("id", raw_id)),
                    similarity_score=1.0 - float(distance),
                    title=meta.get("title", ""),
                    description=meta.get("description", ""),
                )
            )

        candidates.sort(key=lambda c: c.similarity_score, reverse=True)
        return candidates


# ─────────────────────────────────────────────────────────────────────────────
# Factory Function
# ─────────────────────────────────────────────────────────────────────────────


def collection_name_for(project: str, provider_name: str) -> str:
    """
    Build a valid ChromaDB collection name for a project and provider.

    Example:
        >>> collection_name_for("courses-en", "openai")
        'courses-en_openai'
    """
    raw = f"{project}_{provider_name}"
    name = re.sub(r"[^a-zA-Z0-9._-]", "_", raw).strip("._-")
    if len(name) < 3:
        name = f"{name}_idx"
    return name[:63]


def create_vector_store(
    project: str,
    provider_name: Optional[str] = None,
    persist_directory: Optional[Path] = None,
) -> ChromaVectorStore:
    """
    Create the vector store of a project.

    Each embedding provider gets its own collection, since vectors from
    different models are not comparable.

    Args:
        project: Project name (e.g. "courses-en")
        provider_name: Embedding provider name (config default if None)
        persist_directory: Storage directory (config index dir if None)
    """
    settings = get_settings()

    if provider_name is None:
        provider_name = settings.get_effective_embedding_provider()

    if persist_directory is None:
        persist_directory = settings.get_index_dir(project)

    return ChromaVectorStore(
        collection_name=collection_name_for(project, provider_name),
        persist_directory=persist_directory,
    )
