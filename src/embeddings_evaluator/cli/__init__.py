"""
CLI Module - Command-line interface for the Embeddings Evaluator.
=================================================================

Usage:
    embeddings-eval --help
    embeddings-eval validate
    embeddings-eval generate --project courses-en
    embeddings-eval evaluate --project courses-en --reranker voyageai
    embeddings-eval search "python for beginners"

Components:
- main: Typer CLI application
"""

from embeddings_evaluator.cli.main import app, cli

__all__ = ["app", "cli"]
