"""
Dataset Module - Evaluation project loading.
============================================

An evaluation project is a directory holding:
- content.json: array of {id, title, description} content items
- eval.json: array of {search, expected} labeled queries

Also provides the field extraction used to turn a raw content export
into a content.json.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable

from pydantic import ValidationError

from embeddings_evaluator.evaluation.validation import CONTENT_FILE, EVAL_FILE
from embeddings_evaluator.shared.exceptions import ConfigurationError
from embeddings_evaluator.shared.logging import get_logger
from embeddings_evaluator.shared.schemas import ContentItem, EvalQuery
from embeddings_evaluator.shared.utils import load_json

logger = get_logger(__name__)

CONTENT_FIELDS = ("id", "title", "description")


@dataclass
class ProjectDataset:
    """Content items and evaluation queries of one project."""

    name: str
    items: list[ContentItem] = field(default_factory=list)
    queries: list[EvalQuery] = field(default_factory=list)

    @classmethod
    def from_directory(cls, project_dir: Path) -> "ProjectDataset":
        """
        Load a project from its directory.

        Raises:
            ConfigurationError: If a data file is missing or malformed
        """
        project_dir = Path(project_dir)
        items = _load_models(project_dir / CONTENT_FILE, ContentItem)
        queries = _load_models(project_dir / EVAL_FILE, EvalQuery)

        logger.info(
            f"Loaded project {project_dir.name}: "
            f"{len(items)} content items, {len(queries)} queries"
        )
        return cls(name=project_dir.name, items=items, queries=queries)

    @property
    def expected_id_count(self) -> int:
        return sum(len(set(q.expected_ids)) for q in self.queries)

    def get_stats(self) -> dict[str, Any]:
        return {
            "project": self.name,
            "content_items": len(self.items),
            "queries": len(self.queries),
            "queries_without_expectations": sum(1 for q in self.queries if not q.expected_ids),
            "expected_ids": self.expected_id_count,
        }


def _load_records(path: Path) -> list[Any]:
    if not path.exists():
        raise ConfigurationError(f"Project file not found: {path}")
    try:
        data = load_json(path)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON in {path}: {e}") from e
    if not isinstance(data, list):
        raise ConfigurationError(f"{path.name} must be an array")
    return data


def _load_models(path: Path, model_class):
    records = _load_records(path)
    models = []
    for i, record in enumerate(records, 1):
        try:
            models.append(model_class.model_validate(record))
        except ValidationError as e:
            raise ConfigurationError(f"{path.name} entry {i} is invalid: {e}") from e
    return models


def extract_content_fields(records: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
    """
    Reduce raw content records to id, title and description.

    Missing fields become None so the output lines up with the input.

    Example:
        >>> extract_content_fields([{"id": 1, "title": "T", "description": "D", "url": "x"}])
        [{'id': 1, 'title': 'T', 'description': 'D'}]
    """
    return [{key: record.get(key) for key in CONTENT_FIELDS} for record in records]
