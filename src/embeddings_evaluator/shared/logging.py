"""
Logging Module - Logging setup with Rich console support.
=========================================================

One place to configure logging for the harness. Progress, warnings
(e.g. a reranker falling back to similarity order) and stage failures
go through named loggers; tables and reports go through the shared
Rich console.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

_logging_configured = False
_console = Console()

# Third-party loggers that are chatty at INFO
_NOISY_LOGGERS = (
    "httpx",
    "httpcore",
    "urllib3",
    "requests",
    "openai",
    "google_genai",
    "chromadb",
    "sentence_transformers",
    "transformers",
    "torch",
)


def setup_logging(
    level: str = "INFO",
    use_rich: bool = True,
    log_file: Optional[str] = None,
    log_format: Optional[str] = None,
    force: bool = False,
) -> None:
    """
    Configure the root logger.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        use_rich: Route console output through a RichHandler
        log_file: Optional path of a log file to append to
        log_format: Format for plain and file handlers
        force: Reconfigure even if logging was already set up

    Note:
        Only the first call takes effect unless ``force`` is set, so
        handlers are never duplicated.
    """
    global _logging_configured

    if _logging_configured and not force:
        return

    numeric_level = getattr(logging, level.upper(), logging.INFO)

    if log_format is None:
        log_format = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()

    if use_rich:
        handler: logging.Handler = RichHandler(
            console=_console,
            show_time=True,
            show_level=True,
            show_path=False,
            rich_tracebacks=True,
            markup=False,
        )
        handler.setFormatter(logging.Formatter("%(message)s"))
    else:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(log_format))
    handler.setLevel(numeric_level)
    root_logger.addHandler(handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(logging.Formatter(log_format))
        root_logger.addHandler(file_handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    _logging_configured = True

    get_logger(__name__).debug(
        f"Logging configured: level={level}, rich={use_rich}, file={log_file}"
    )


def configure_from_settings(force: bool = False) -> None:
    """Configure logging from the application settings."""
    from embeddings_evaluator.shared.config import get_settings

    settings = get_settings()
    setup_logging(
        level=settings.get_effective_log_level(),
        use_rich=settings.logging.rich_console,
        log_file=settings.logging.file or None,
        log_format=settings.logging.format,
        force=force,
    )


def get_logger(name: str) -> logging.Logger:
    """
    Get a named logger, configuring defaults on first use.

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("Index build started")
    """
    if not _logging_configured:
        setup_logging()

    return logging.getLogger(name)


def get_console() -> Console:
    """Get the shared Rich console used for CLI output."""
    return _console
