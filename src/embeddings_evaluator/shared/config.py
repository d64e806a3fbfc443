"""
Configuration Module - Load and validate application settings.
==============================================================

Loads configuration from:
1. config/settings.yaml (defaults)
2. Environment variables from .env file
3. Environment variables from system

Environment variables override YAML defaults.
"""

from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env file early
load_dotenv()


def _find_project_root() -> Path:
    """Find the project root directory by looking for pyproject.toml."""
    current = Path(__file__).resolve()
    for parent in [current] + list(current.parents):
        if (parent / "pyproject.toml").exists():
            return parent
    # Fallback to current working directory
    return Path.cwd()


PROJECT_ROOT = _find_project_root()
CONFIG_DIR = PROJECT_ROOT / "config"
DEFAULT_CONFIG_FILE = CONFIG_DIR / "settings.yaml"


# ─────────────────────────────────────────────────────────────────────────────
# Nested Configuration Models
# ─────────────────────────────────────────────────────────────────────────────


class OpenAIEmbeddingConfig(BaseModel):
    """OpenAI embeddings settings."""

    model_name: str = "text-embedding-3-small"
    dimensions: int = 1536
    cost_per_million_tokens: float = 0.02
    timeout: float = 30.0


class GeminiEmbeddingConfig(BaseModel):
    """Gemini embeddings settings."""

    model_name: str = "text-embedding-004"
    dimensions: int = 768
    cost_per_million_tokens: float = 0.0


class SBERTConfig(BaseModel):
    """SBERT embeddings settings."""

    model_name: str = "all-MiniLM-L6-v2"
    dimensions: int = 384
    device: str = "auto"


class EmbeddingsConfig(BaseModel):
    """Embeddings provider settings."""

    provider: str = "openai"
    openai: OpenAIEmbeddingConfig = Field(default_factory=OpenAIEmbeddingConfig)
    gemini: GeminiEmbeddingConfig = Field(default_factory=GeminiEmbeddingConfig)
    sbert: SBERTConfig = Field(default_factory=SBERTConfig)


class VoyageRerankConfig(BaseModel):
    """VoyageAI rerank API settings."""

    model_name: str = "rerank-2.5"
    base_url: str = "https://api.voyageai.com/v1/"
    cost_per_1000_searches: float = 0.05
    timeout: float = 30.0


class CrossEncoderConfig(BaseModel):
    """Local cross-encoder reranker settings."""

    model_name: str = "cross-encoder/ms-marco-MiniLM-L-6-v2"
    device: str = "auto"
    batch_size: int = 32


class RerankerConfig(BaseModel):
    """Reranker settings. provider=None disables reranking."""

    provider: Optional[str] = None
    max_documents: int = 10
    voyageai: VoyageRerankConfig = Field(default_factory=VoyageRerankConfig)
    cross_encoder: CrossEncoderConfig = Field(default_factory=CrossEncoderConfig)


class RetrievalConfig(BaseModel):
    """Retrieval settings."""

    top_k: int = 3
    min_similarity: float = 0.0


class EvaluationConfig(BaseModel):
    """Evaluation harness settings."""

    default_project: str = "courses-en"
    query_delay_seconds: float = 0.2
    document_delay_seconds: float = 0.1
    stop_on_error: bool = True


class PathsConfig(BaseModel):
    """Data paths configuration."""

    projects_dir: str = "projects"
    index_dir: str = "data/index"
    output_dir: str = "results"

    def resolve(self, base_path: Path) -> "ResolvedPaths":
        """Resolve paths relative to a base path."""
        return ResolvedPaths(
            projects_dir=base_path / self.projects_dir,
            index_dir=base_path / self.index_dir,
            output_dir=base_path / self.output_dir,
        )


class ResolvedPaths(BaseModel):
    """Resolved absolute paths."""

    projects_dir: Path
    index_dir: Path
    output_dir: Path

    model_config = {"arbitrary_types_allowed": True}


class LoggingConfig(BaseModel):
    """Logging settings."""

    level: str = "INFO"
    format: str = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
    rich_console: bool = True
    file: str = ""


# ─────────────────────────────────────────────────────────────────────────────
# Main Settings Class
# ─────────────────────────────────────────────────────────────────────────────


class Settings(BaseSettings):
    """
    Main application settings.

    Loads from:
    1. config/settings.yaml (defaults)
    2. Environment variables

    Environment variables override YAML settings.
    """

    model_config = SettingsConfigDict(
        env_prefix="",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    # API Keys (from environment only)
    openai_api_key: str = Field(default="", validation_alias="OPENAI_API_KEY")
    gemini_api_key: str = Field(default="", validation_alias="GEMINI_API_KEY")
    voyageai_api_key: str = Field(default="", validation_alias="VOYAGEAI_API_KEY")

    # Top-level environment overrides
    embedding_provider: Optional[str] = Field(default=None, validation_alias="EMBEDDING_PROVIDER")
    rerank_provider: Optional[str] = Field(default=None, validation_alias="RERANK_PROVIDER")
    top_k: Optional[int] = Field(default=None, validation_alias="TOP_K")
    min_similarity: Optional[float] = Field(default=None, validation_alias="MIN_SIMILARITY")
    log_level: Optional[str] = Field(default=None, validation_alias="LOG_LEVEL")

    # Nested configurations (from YAML)
    embeddings: EmbeddingsConfig = Field(default_factory=EmbeddingsConfig)
    reranker: RerankerConfig = Field(default_factory=RerankerConfig)
    retrieval: RetrievalConfig = Field(default_factory=RetrievalConfig)
    evaluation: EvaluationConfig = Field(default_factory=EvaluationConfig)
    paths: PathsConfig = Field(default_factory=PathsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    # Computed properties
    _project_root: Path = PROJECT_ROOT
    _resolved_paths: Optional[ResolvedPaths] = None

    @field_validator("openai_api_key", "gemini_api_key", "voyageai_api_key", mode="before")
    @classmethod
    def validate_api_key(cls, v: Any) -> str:
        """Allow empty API keys; providers complain when they need one."""
        if v is None:
            return ""
        return str(v)

    @property
    def project_root(self) -> Path:
        """Get the project root directory."""
        return self._project_root

    @property
    def resolved_paths(self) -> ResolvedPaths:
        """Get resolved absolute paths."""
        if self._resolved_paths is None:
            self._resolved_paths = self.paths.resolve(self._project_root)
        return self._resolved_paths

    def get_api_key(self, vendor: str) -> str:
        """Get the API key for a vendor ("openai", "gemini", "voyageai")."""
        return getattr(self, f"{vendor.lower()}_api_key", "") or ""

    def get_effective_embedding_provider(self) -> str:
        """Get the effective embedding provider (env override or config)."""
        if self.embedding_provider:
            return self.embedding_provider.lower()
        return self.embeddings.provider.lower()

    def get_effective_rerank_provider(self) -> Optional[str]:
        """Get the effective rerank provider, or None when reranking is off."""
        provider = self.rerank_provider or self.reranker.provider
        if not provider or provider.lower() == "none":
            return None
        return provider.lower()

    def get_effective_top_k(self) -> int:
        """Get the effective top-k value (env override or config)."""
        if self.top_k is not None:
            return self.top_k
        return self.retrieval.top_k

    def get_effective_min_similarity(self) -> float:
        """Get the effective similarity threshold (env override or config)."""
        if self.min_similarity is not None:
            return self.min_similarity
        return self.retrieval.min_similarity

    def get_effective_log_level(self) -> str:
        """Get the effective log level (env override or config)."""
        if self.log_level:
            return self.log_level.upper()
        return self.logging.level.upper()

    def get_project_dir(self, project: str) -> Path:
        """Get the data directory of an evaluation project."""
        return self.resolved_paths.projects_dir / project

    def get_index_dir(self, project: str) -> Path:
        """Get the vector index directory of an evaluation project."""
        return self.resolved_paths.index_dir / project


def _load_yaml_config(config_path: Path) -> dict[str, Any]:
    """Load configuration from YAML file."""
    if not config_path.exists():
        return {}

    with open(config_path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
        return data if data else {}


def _create_settings(config_path: Optional[Path] = None) -> Settings:
    """Create settings instance by merging YAML defaults with environment."""
    if config_path is None:
        config_path = DEFAULT_CONFIG_FILE

    yaml_config = _load_yaml_config(config_path)

    return Settings(**yaml_config)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get the singleton settings instance.

    Returns:
        Settings instance with merged configuration

    Example:
        >>> settings = get_settings()
        >>> print(settings.retrieval.top_k)
        3
    """
    return _create_settings()


def reload_settings() -> Settings:
    """
    Force reload of settings (clears cache).

    Returns:
        Fresh Settings instance
    """
    get_settings.cache_clear()
    return get_settings()
