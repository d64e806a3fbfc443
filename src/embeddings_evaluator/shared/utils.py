"""
Utilities Module - Common helper functions.
===========================================

Provides utility functions for:
- File I/O (JSON load, atomic JSON save)
- Directory management
- Cost and text formatting
- Token estimation
"""

import json
import os
import re
import tempfile
from pathlib import Path
from typing import Any

from embeddings_evaluator.shared.logging import get_logger

logger = get_logger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# Directory Management
# ─────────────────────────────────────────────────────────────────────────────


def ensure_directory(path: Path) -> Path:
    """
    Ensure a directory exists, creating it if necessary.

    Args:
        path: Directory path

    Returns:
        The path (for chaining)
    """
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path


# ─────────────────────────────────────────────────────────────────────────────
# JSON File I/O
# ─────────────────────────────────────────────────────────────────────────────


def load_json(file_path: Path) -> Any:
    """
    Load data from a JSON file.

    Raises:
        FileNotFoundError: If file doesn't exist
        json.JSONDecodeError: If file is not valid JSON
    """
    with open(Path(file_path), "r", encoding="utf-8") as f:
        return json.load(f)


def save_json(file_path: Path, data: Any, indent: int = 2) -> None:
    """
    Save data to a JSON file atomically.

    The data is written to a temporary file in the target directory and
    moved into place with ``os.replace``, so readers never see a partially
    written file.

    Args:
        file_path: Path to JSON file
        data: Data to save (must be JSON serializable)
        indent: Indentation level (default: 2)
    """
    file_path = Path(file_path)
    ensure_directory(file_path.parent)

    fd, tmp_name = tempfile.mkstemp(
        dir=file_path.parent, prefix=f".{file_path.name}.", suffix=".tmp"
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=indent, ensure_ascii=False, default=str)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, file_path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise

    logger.debug(f"Saved JSON to {file_path}")


# ─────────────────────────────────────────────────────────────────────────────
# Formatting
# ─────────────────────────────────────────────────────────────────────────────


def format_cost(cost: float) -> str:
    """
    Format a USD cost as a fixed-point string with 8 decimal places.

    Example:
        >>> format_cost(0.00000123)
        '0.00000123'
    """
    return f"{cost:.8f}"


def truncate_text(text: str, max_length: int = 100, suffix: str = "...") -> str:
    """Truncate text to a maximum length, appending ``suffix`` when cut."""
    if len(text) <= max_length:
        return text
    return text[: max_length - len(suffix)] + suffix


_TOKEN_SPLIT = re.compile(r"\s+|[.,!?;:]")


def estimate_tokens(text: str) -> int:
    """
    Approximate a token count by splitting on whitespace and punctuation.

    Only used when a provider reports no usage; callers flag such counts
    as estimates.

    Example:
        >>> estimate_tokens("Hello, world. Python!")
        3
    """
    if not text:
        return 0
    return sum(1 for part in _TOKEN_SPLIT.split(text) if part)
