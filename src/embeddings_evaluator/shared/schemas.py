"""
Schemas Module - Pydantic data models for the application.
==========================================================

Defines the data contracts used across the harness:
- Content items and evaluation queries (project data files)
- Retrieval candidates, before and after reranking
- Validation verdicts and index statistics
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator


# ─────────────────────────────────────────────────────────────────────────────
# Project Data Models
# ─────────────────────────────────────────────────────────────────────────────


class ContentItem(BaseModel):
    """
    A searchable document of the corpus.

    Loaded from a project's content.json. Immutable once loaded; IDs are
    unique within a project.
    """

    model_config = ConfigDict(frozen=True)

    id: int = Field(..., description="Unique content ID")
    title: str = Field(..., description="Item title")
    description: str = Field(default="", description="Item description")

    @field_validator("description", mode="before")
    @classmethod
    def _none_to_empty(cls, v: Any) -> str:
        return "" if v is None else v

    @property
    def embedding_text(self) -> str:
        """Text sent to the embedding provider when indexing."""
        return f"{self.title} {self.description}"

    @property
    def rerank_text(self) -> str:
        """Text sent to a reranker as the document body."""
        return f"{self.title}. {self.description}"

    def to_metadata_dict(self) -> dict[str, Any]:
        """Convert to metadata dict for vector store."""
        return {"id": self.id, "title": self.title, "description": self.description}


class EvalQuery(BaseModel):
    """
    A labeled evaluation query.

    JSON keys are ``search`` and ``expected``; a missing or null
    ``expected`` means the query has no labeled answers.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    search_text: str = Field(..., alias="search", description="Free-text query")
    expected_ids: list[int] = Field(
        default_factory=list, alias="expected", description="IDs that must be found"
    )

    @field_validator("expected_ids", mode="before")
    @classmethod
    def _null_expected(cls, v: Any) -> Any:
        return [] if v is None else v


# ─────────────────────────────────────────────────────────────────────────────
# Retrieval Models
# ─────────────────────────────────────────────────────────────────────────────


class Candidate(BaseModel):
    """
    A content item returned by the vector store with its similarity score.

    Similarity is cosine similarity in [-1, 1]; higher means closer.
    """

    id: int = Field(..., description="Content ID")
    similarity_score: float = Field(..., description="Cosine similarity")
    title: str = Field(default="", description="Item title")
    description: str = Field(default="", description="Item description")

    @property
    def ranking_score(self) -> float:
        """Score the candidate is ordered and thresholded by."""
        return self.similarity_score

    @property
    def rerank_text(self) -> str:
        """Document body sent to a reranker."""
        return f"{self.title}. {self.description}"

    def to_result_dict(self) -> dict[str, Any]:
        """Serialize for a per-query result record."""
        return {
            "id": self.id,
            "score": self.similarity_score,
            "title": self.title,
            "description": self.description,
        }


class RerankedCandidate(Candidate):
    """A candidate scored by a reranker, keeping its original similarity."""

    relevance_score: float = Field(..., description="Reranker relevance score")
    original_similarity_score: float = Field(..., description="Pre-rerank similarity")
    was_reranked: bool = Field(default=True, description="Scored by a reranker")

    @property
    def ranking_score(self) -> float:
        return self.relevance_score

    def to_result_dict(self) -> dict[str, Any]:
        data = super().to_result_dict()
        data["score"] = self.relevance_score
        data["relevance_score"] = self.relevance_score
        data["original_similarity_score"] = self.original_similarity_score
        data["was_reranked"] = self.was_reranked
        return data


class IndexStats(BaseModel):
    """Statistics of a vector index."""

    item_count: int = Field(default=0, description="Number of indexed items")
    collection_name: str = Field(default="", description="Backing collection")
    persist_directory: str = Field(default="", description="Index location on disk")

    @computed_field
    @property
    def is_empty(self) -> bool:
        return self.item_count == 0


# ─────────────────────────────────────────────────────────────────────────────
# Validation Models
# ─────────────────────────────────────────────────────────────────────────────


class ValidationResult(BaseModel):
    """Verdict of comparing found IDs against expected IDs."""

    is_valid: bool = Field(..., description="All expected IDs were found")
    message: str = Field(..., description="Human-readable verdict")


class ProjectValidation(BaseModel):
    """Result of checking a project's data files."""

    project: str = Field(..., description="Project directory name")
    content_count: int = Field(default=0, description="Number of content items")
    query_count: int = Field(default=0, description="Number of evaluation queries")
    errors: list[str] = Field(default_factory=list, description="Blocking problems")
    warnings: list[str] = Field(default_factory=list, description="Non-blocking problems")

    @computed_field
    @property
    def is_valid(self) -> bool:
        return not self.errors

    def summary(self) -> str:
        """One-line summary for CLI output."""
        status = "valid" if self.is_valid else "invalid"
        line = (
            f"{self.project}: {status} "
            f"({self.content_count} items, {self.query_count} queries)"
        )
        if self.errors:
            line += f", {len(self.errors)} error(s)"
        if self.warnings:
            line += f", {len(self.warnings)} warning(s)"
        return line


class RerankRequirements(BaseModel):
    """Whether the configured reranker can run."""

    enabled: bool = Field(default=False, description="A reranker is configured")
    ready: bool = Field(default=True, description="All requirements are met")
    vendor: Optional[str] = Field(default=None, description="Configured vendor")
    model: Optional[str] = Field(default=None, description="Configured model")
    issues: list[str] = Field(default_factory=list, description="Unmet requirements")
