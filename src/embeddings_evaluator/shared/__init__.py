"""
Shared Module - Configuration, schemas, errors and logging.
===========================================================

Foundational components used across all other modules:

- config: Configuration loading and management
- exceptions: Error taxonomy
- logging: Logging setup with Rich
- schemas: Pydantic data models
- utils: File I/O and formatting helpers
"""

from embeddings_evaluator.shared.config import Settings, get_settings, reload_settings
from embeddings_evaluator.shared.exceptions import (
    ConfigurationError,
    EvaluatorError,
    ProviderError,
    StoreError,
)
from embeddings_evaluator.shared.logging import get_console, get_logger, setup_logging
from embeddings_evaluator.shared.schemas import (
    Candidate,
    ContentItem,
    EvalQuery,
    IndexStats,
    ProjectValidation,
    RerankedCandidate,
    RerankRequirements,
    ValidationResult,
)
from embeddings_evaluator.shared.utils import (
    ensure_directory,
    format_cost,
    load_json,
    save_json,
    estimate_tokens,
    truncate_text,
)

__all__ = [
    # Config
    "Settings",
    "get_settings",
    "reload_settings",
    # Errors
    "EvaluatorError",
    "ConfigurationError",
    "ProviderError",
    "StoreError",
    # Logging
    "get_logger",
    "get_console",
    "setup_logging",
    # Schemas
    "ContentItem",
    "EvalQuery",
    "Candidate",
    "RerankedCandidate",
    "IndexStats",
    "ValidationResult",
    "ProjectValidation",
    "RerankRequirements",
    # Utils
    "ensure_directory",
    "format_cost",
    "load_json",
    "save_json",
    "estimate_tokens",
    "truncate_text",
]
