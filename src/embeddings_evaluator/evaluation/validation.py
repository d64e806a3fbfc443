"""
Validation Module - Result and project data validation.
=======================================================

- validate_results(): does a query's result list contain every expected ID?
  Order-insensitive: expected IDs may appear at any position.
- validate_project(): are a project's content.json and eval.json usable?
- discover_projects(): project directories under a root

Neither validator raises for bad data; problems are reported in the
returned objects.
"""

import json
from pathlib import Path
from typing import Any, Sequence

from embeddings_evaluator.shared.logging import get_logger
from embeddings_evaluator.shared.schemas import ProjectValidation, ValidationResult
from embeddings_evaluator.shared.utils import load_json

logger = get_logger(__name__)

CONTENT_FILE = "content.json"
EVAL_FILE = "eval.json"


def validate_results(found_ids: Sequence[int], expected_ids: Sequence[int]) -> ValidationResult:
    """
    Check that every expected ID appears somewhere in the found IDs.

    Example:
        >>> validate_results([2, 1], [2]).message
        'All 1 expected results found'
        >>> validate_results([1], [3, 2]).message
        'Missing expected IDs: 2, 3'
    """
    expected = set(expected_ids)
    if not expected:
        return ValidationResult(is_valid=True, message="No expectations to validate")

    missing = expected - set(found_ids)
    if missing:
        listed = ", ".join(str(i) for i in sorted(missing))
        return ValidationResult(is_valid=False, message=f"Missing expected IDs: {listed}")

    return ValidationResult(is_valid=True, message=f"All {len(expected)} expected results found")


# ─────────────────────────────────────────────────────────────────────────────
# Project Validation
# ─────────────────────────────────────────────────────────────────────────────


def _load_array(path: Path, errors: list[str]) -> list[Any] | None:
    if not path.exists():
        errors.append(f"{path.name} not found")
        return None
    try:
        data = load_json(path)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        errors.append(f"{path.name} is not valid JSON: {e}")
        return None
    if not isinstance(data, list):
        errors.append(f"{path.name} must be an array")
        return None
    return data


def _check_content(content: list[Any], errors: list[str]) -> set[int]:
    ids: set[int] = set()
    for i, item in enumerate(content, 1):
        if not isinstance(item, dict):
            errors.append(f"Content item {i} is not an object")
            continue
        if item.get("id") is None:
            errors.append(f"Content item {i} missing id")
        elif not isinstance(item["id"], int) or isinstance(item["id"], bool):
            errors.append(f"Content item {i} has non-integer id {item['id']!r}")
        elif item["id"] in ids:
            errors.append(f"Content item {i} has duplicate id {item['id']}")
        else:
            ids.add(item["id"])
        if not item.get("title") or not item.get("description"):
            errors.append(f"Content item {i} missing title or description")
    return ids


def _check_queries(
    queries: list[Any],
    content_ids: set[int],
    errors: list[str],
    warnings: list[str],
) -> None:
    for i, query in enumerate(queries, 1):
        if not isinstance(query, dict):
            errors.append(f"Eval query {i} is not an object")
            continue
        if not query.get("search"):
            errors.append(f"Eval query {i} missing search property")
        expected = query.get("expected") or []
        if not isinstance(expected, list):
            errors.append(f"Eval query {i} expected must be an array")
            continue
        unknown = sorted(
            e for e in expected if isinstance(e, int) and content_ids and e not in content_ids
        )
        if unknown:
            warnings.append(
                f"Eval query {i} expects unknown IDs: {', '.join(str(e) for e in unknown)}"
            )


def validate_project(project_dir: Path) -> ProjectValidation:
    """
    Validate the data files of one project.

    Checks that content.json and eval.json exist and hold arrays, that
    every content item has an integer id, a title and a description, that
    content IDs are unique, and that every eval query has a search text.
    Expected IDs missing from the content are reported as warnings.
    """
    project_dir = Path(project_dir)
    errors: list[str] = []
    warnings: list[str] = []

    content = _load_array(project_dir / CONTENT_FILE, errors)
    queries = _load_array(project_dir / EVAL_FILE, errors)

    content_ids = _check_content(content, errors) if content is not None else set()
    if queries is not None:
        _check_queries(queries, content_ids, errors, warnings)

    result = ProjectValidation(
        project=project_dir.name,
        content_count=len(content) if content is not None else 0,
        query_count=len(queries) if queries is not None else 0,
        errors=errors,
        warnings=warnings,
    )

    if result.is_valid:
        logger.debug(f"Project validation successful: {result.summary()}")
    else:
        logger.debug(f"Project validation failed: {project_dir.name}: {errors[0]}")

    return result


def discover_projects(projects_dir: Path) -> list[Path]:
    """List directories under ``projects_dir`` that hold both data files, sorted by name."""
    projects_dir = Path(projects_dir)
    if not projects_dir.is_dir():
        return []

    return sorted(
        p
        for p in projects_dir.iterdir()
        if p.is_dir() and (p / CONTENT_FILE).exists() and (p / EVAL_FILE).exists()
    )
