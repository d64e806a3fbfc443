"""
CLI Main - Typer command-line interface.
========================================

Commands:
- generate: Build a project's vector index from its content.json
- evaluate: Run the project's eval.json against its index
- run: Build the index if it is empty, then evaluate
- search: Ad hoc query against a project's index
- validate: Check the data files of every project
- extract: Reduce a content export to id/title/description
- info: Show configuration, providers and index status
"""

from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import typer
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

from embeddings_evaluator.shared.exceptions import EvaluatorError
from embeddings_evaluator.shared.logging import configure_from_settings, get_console, get_logger

logger = get_logger(__name__)

app = typer.Typer(
    name="embeddings-eval",
    help="""Embeddings Evaluator - retrieval evaluation harness

Embeds a project's content items into a local vector index, runs its
labeled search queries against it and reports recall and precision
(micro, macro and weighted), tokens, runtime and cost.

A project is a directory under the projects dir holding content.json
([{id, title, description}]) and eval.json ([{search, expected}]).

QUICK START:

  embeddings-eval validate                     # Check project data files
  embeddings-eval generate -p courses-en       # Build the index
  embeddings-eval evaluate -p courses-en       # Score the queries
  embeddings-eval search "python" -p courses-en

Use 'embeddings-eval <command> --help' for detailed command options.
""",
    add_completion=False,
    rich_markup_mode="rich",
)

console = get_console()


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level", "-l",
        help="Override the log level (DEBUG, INFO, WARNING, ERROR).",
    ),
):
    """Configure logging before any command runs."""
    if log_level:
        import os

        os.environ["LOG_LEVEL"] = log_level
        from embeddings_evaluator.shared.config import reload_settings

        reload_settings()
    configure_from_settings(force=True)


@contextmanager
def _handle_errors() -> Iterator[None]:
    """Turn evaluator errors into a red message and exit status 1."""
    try:
        yield
    except EvaluatorError as e:
        console.print(f"[red]✗ {type(e).__name__}: {e}[/red]")
        raise typer.Exit(1)


def _resolve_project(project: Optional[str]) -> str:
    from embeddings_evaluator.shared.config import get_settings

    return project or get_settings().evaluation.default_project


def _load_dataset(project: str):
    from embeddings_evaluator.evaluation.dataset import ProjectDataset
    from embeddings_evaluator.shared.config import get_settings

    return ProjectDataset.from_directory(get_settings().get_project_dir(project))


def _progress() -> Progress:
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("{task.completed}/{task.total}"),
        console=console,
    )


def _print_generation(totals) -> None:
    from embeddings_evaluator.shared.utils import format_cost

    approx = "~" if totals.tokens_estimated else ""
    console.print(Panel(
        f"Documents: {totals.document_count}\n"
        f"Tokens: {approx}{totals.total_tokens}\n"
        f"Runtime: {totals.total_runtime_ms} ms\n"
        f"Cost: ${format_cost(totals.total_cost)}",
        title="📦 Index Build",
        border_style="green",
    ))


def _print_report(result) -> None:
    from embeddings_evaluator.shared.utils import format_cost

    table = Table(title="Per-query results", show_header=True)
    table.add_column("Search", style="cyan", max_width=40)
    table.add_column("Expected")
    table.add_column("Found")
    table.add_column("Recall", justify="right")
    table.add_column("Precision", justify="right")
    table.add_column("Status")

    for r in result.query_results:
        if r.error:
            table.add_row(r.search_text, str(r.expected_ids), "-", "-", "-", f"[red]error ({r.failed_stage})[/red]")
            continue
        status = "[green]✓[/green]" if r.is_valid else f"[red]✗ {r.validation_message}[/red]"
        table.add_row(
            r.search_text,
            ", ".join(str(i) for i in r.expected_ids) or "-",
            ", ".join(str(i) for i in r.found_ids) or "-",
            f"{r.outcome.recall_pct:.1f}%",
            f"{r.outcome.precision_pct:.1f}%",
            status,
        )
    console.print(table)

    report = result.report
    averages = Table(title="Averages", show_header=True)
    averages.add_column("Strategy")
    averages.add_column("Recall", justify="right")
    averages.add_column("Precision", justify="right")
    for name, pair in (("Micro", report.micro), ("Macro", report.macro), ("Weighted", report.weighted)):
        averages.add_row(name, f"{pair.recall:.2f}%", f"{pair.precision:.2f}%")
    console.print(averages)

    approx = "~" if report.tokens_estimated else ""
    console.print(Panel(
        f"Queries: {report.query_count} ({result.valid_count} valid, {result.error_count} errors)\n"
        f"Tokens: {approx}{report.total_tokens} (+{report.total_rerank_tokens} rerank)\n"
        f"Runtime: {report.total_runtime_ms} ms\n"
        f"Embedding cost: ${format_cost(report.total_embedding_cost)}\n"
        f"Rerank cost: ${format_cost(report.total_rerank_cost)}\n"
        f"Total cost: ${format_cost(report.total_cost)}",
        title="📊 Evaluation Summary",
        border_style="blue",
    ))


def _build(runner, dataset) -> None:
    runner.retriever.vector_store.clear()
    with _progress() as progress:
        task = progress.add_task("Embedding documents...", total=len(dataset.items))

        def callback(current, total, title):
            progress.update(task, completed=current, description=f"Embedding {title[:40]}...")

        totals = runner.build_index(dataset.items, progress_callback=callback)
    _print_generation(totals)


def _evaluate(runner, dataset, output_dir: Optional[Path]):
    from embeddings_evaluator.evaluation.runner import results_path

    with _progress() as progress:
        task = progress.add_task("Evaluating...", total=len(dataset.queries))

        def callback(current, total, search):
            progress.update(task, completed=current, description=f"Searching '{search[:40]}'...")

        result = runner.evaluate(dataset.queries, progress_callback=callback)

    _print_report(result)

    path = results_path(dataset.name, output_dir)
    result.save(path)
    console.print(f"\n[green]✓ Results saved to {path}[/green]")
    return result


# ─────────────────────────────────────────────────────────────────────────────
# Shared Options
# ─────────────────────────────────────────────────────────────────────────────

PROJECT_OPTION = typer.Option(None, "--project", "-p", help="Project directory name. Default: evaluation.default_project.")
PROVIDER_OPTION = typer.Option(None, "--provider", help="Embedding provider: openai, gemini or sbert.")
RERANKER_OPTION = typer.Option(None, "--reranker", "-r", help="Reranker: voyageai, cross-encoder or none.")
TOP_K_OPTION = typer.Option(None, "--top-k", "-k", help="Results per query when no threshold is set.")
MIN_SIM_OPTION = typer.Option(None, "--min-similarity", "-m", help="Similarity threshold; > 0 returns every result above it.")
OUTPUT_OPTION = typer.Option(None, "--output-dir", "-o", help="Directory for the results file.")


# ─────────────────────────────────────────────────────────────────────────────
# Generate Command
# ─────────────────────────────────────────────────────────────────────────────


@app.command()
def generate(
    project: Optional[str] = PROJECT_OPTION,
    provider: Optional[str] = PROVIDER_OPTION,
):
    """
    📦 Rebuild a project's vector index.

    Clears the index, then embeds every content item ("title description")
    and inserts it, one document at a time.

    Examples:
        embeddings-eval generate -p courses-en
        embeddings-eval generate -p courses-de --provider sbert
    """
    from embeddings_evaluator.evaluation.runner import create_runner

    with _handle_errors():
        project = _resolve_project(project)
        dataset = _load_dataset(project)
        runner = create_runner(project, embedding_provider=provider, rerank_provider="none")
        _build(runner, dataset)


# ─────────────────────────────────────────────────────────────────────────────
# Evaluate Command
# ─────────────────────────────────────────────────────────────────────────────


@app.command()
def evaluate(
    project: Optional[str] = PROJECT_OPTION,
    provider: Optional[str] = PROVIDER_OPTION,
    reranker: Optional[str] = RERANKER_OPTION,
    top_k: Optional[int] = TOP_K_OPTION,
    min_similarity: Optional[float] = MIN_SIM_OPTION,
    output_dir: Optional[Path] = OUTPUT_OPTION,
):
    """
    📊 Evaluate a project's queries against its index.

    Requires a non-empty index (run 'generate' first). Saves
    evaluation-results-<project>.json to the output directory.

    Examples:
        embeddings-eval evaluate -p courses-en
        embeddings-eval evaluate -p courses-en -r voyageai -m 0.4
    """
    from embeddings_evaluator.evaluation.runner import create_runner

    with _handle_errors():
        project = _resolve_project(project)
        dataset = _load_dataset(project)
        runner = create_runner(project, provider, reranker, top_k, min_similarity)

        if runner.retriever.vector_store.stats().is_empty:
            console.print(f"[red]✗ Index for '{project}' is empty. Run 'embeddings-eval generate -p {project}' first.[/red]")
            raise typer.Exit(1)

        _print_config(runner)
        _evaluate(runner, dataset, output_dir)


# ─────────────────────────────────────────────────────────────────────────────
# Run Command
# ─────────────────────────────────────────────────────────────────────────────


@app.command()
def run(
    project: Optional[str] = PROJECT_OPTION,
    provider: Optional[str] = PROVIDER_OPTION,
    reranker: Optional[str] = RERANKER_OPTION,
    top_k: Optional[int] = TOP_K_OPTION,
    min_similarity: Optional[float] = MIN_SIM_OPTION,
    output_dir: Optional[Path] = OUTPUT_OPTION,
    rebuild: bool = typer.Option(False, "--rebuild", help="Rebuild the index even if it is populated."),
):
    """
    🚀 Build the index when needed, then evaluate.

    Examples:
        embeddings-eval run -p courses-en
        embeddings-eval run -p courses-en --rebuild
    """
    from embeddings_evaluator.evaluation.runner import create_runner

    with _handle_errors():
        project = _resolve_project(project)
        dataset = _load_dataset(project)
        runner = create_runner(project, provider, reranker, top_k, min_similarity)

        if rebuild or runner.retriever.vector_store.stats().is_empty:
            _build(runner, dataset)
        else:
            console.print(f"[dim]Using existing index for '{project}'[/dim]")

        _print_config(runner)
        _evaluate(runner, dataset, output_dir)


def _print_config(runner) -> None:
    config = runner.get_config()
    console.print(Panel(
        f"[bold]Evaluation Configuration[/bold]\n"
        f"Project: {config['project']}\n"
        f"Embeddings: {config['embedding_provider']}/{config['embedding_model']}\n"
        f"Reranker: {config['reranker'] or 'disabled'}\n"
        f"Mode: {config['mode']} (top_k={config['top_k']}, min_similarity={config['min_similarity']})\n"
        f"Candidate pool: {config['pool_size']}",
        title="📊 Evaluate",
    ))


# ─────────────────────────────────────────────────────────────────────────────
# Search Command
# ─────────────────────────────────────────────────────────────────────────────


@app.command()
def search(
    query: str = typer.Argument(..., help="Search text."),
    project: Optional[str] = PROJECT_OPTION,
    provider: Optional[str] = PROVIDER_OPTION,
    reranker: Optional[str] = RERANKER_OPTION,
    top_k: Optional[int] = TOP_K_OPTION,
    min_similarity: Optional[float] = MIN_SIM_OPTION,
):
    """
    🔍 Search a project's index.

    Examples:
        embeddings-eval search "python for beginners" -p courses-en
        embeddings-eval search "Projektmanagement" -p courses-de -r cross-encoder
    """
    from embeddings_evaluator.evaluation.runner import create_runner
    from embeddings_evaluator.shared.utils import format_cost, truncate_text

    with _handle_errors():
        project = _resolve_project(project)
        runner = create_runner(project, provider, reranker, top_k, min_similarity)
        result = runner.retriever.search(query)

    console.print(f"\n[bold]Query:[/bold] {query}\n")

    if not result.results:
        console.print("[yellow]No results above the threshold.[/yellow]")
    else:
        table = Table(show_header=True)
        table.add_column("ID", style="cyan")
        table.add_column("Title")
        table.add_column("Score", justify="right")
        table.add_column("Similarity", justify="right")
        for c in result.results:
            data = c.to_result_dict()
            table.add_row(
                str(c.id),
                truncate_text(c.title, 50),
                f"{data['score']:.3f}",
                f"{data.get('original_similarity_score', c.similarity_score):.3f}",
            )
        console.print(table)

    if result.below_threshold:
        console.print("\n[dim]Below threshold:[/dim]")
        for c in result.below_threshold:
            console.print(f"[dim]  {c.id}: {truncate_text(c.title, 50)} ({c.ranking_score:.3f})[/dim]")

    if result.rerank and result.rerank.error:
        console.print(f"\n[yellow]⚠ Reranking failed, showing similarity order: {result.rerank.error}[/yellow]")

    approx = "~" if result.embedding and result.embedding.estimated else ""
    tokens = result.embedding.tokens if result.embedding else 0
    console.print(
        f"\n[dim]{result.runtime_ms} ms | {approx}{tokens} tokens | "
        f"${format_cost(result.embedding_cost + result.rerank_cost)}[/dim]"
    )


# ─────────────────────────────────────────────────────────────────────────────
# Validate Command
# ─────────────────────────────────────────────────────────────────────────────


@app.command()
def validate(
    projects_dir: Optional[Path] = typer.Option(None, "--projects-dir", "-d", help="Directory holding the projects."),
):
    """
    ✅ Validate the data files of every project.

    Exits with status 1 if any project is invalid or none is found.
    """
    from embeddings_evaluator.evaluation.validation import discover_projects, validate_project
    from embeddings_evaluator.shared.config import get_settings

    projects_dir = projects_dir or get_settings().resolved_paths.projects_dir
    projects = discover_projects(projects_dir)

    if not projects:
        console.print(f"[red]✗ No projects found in {projects_dir}[/red]")
        raise typer.Exit(1)

    failed = 0
    for project_dir in projects:
        result = validate_project(project_dir)
        if result.is_valid:
            console.print(f"[green]✓ {result.summary()}[/green]")
        else:
            failed += 1
            console.print(f"[red]✗ {result.summary()}[/red]")
            for error in result.errors:
                console.print(f"[red]    {error}[/red]")
        for warning in result.warnings:
            console.print(f"[yellow]    ⚠ {warning}[/yellow]")

    if failed:
        console.print(f"\n[red]{failed} of {len(projects)} project(s) failed validation[/red]")
        raise typer.Exit(1)

    console.print(f"\n[green]All {len(projects)} project(s) valid[/green]")


# ─────────────────────────────────────────────────────────────────────────────
# Extract Command
# ─────────────────────────────────────────────────────────────────────────────


@app.command()
def extract(
    input_file: Path = typer.Option(..., "--in", "-i", help="Raw JSON export (array of records)."),
    output_file: Path = typer.Option(..., "--out", "-o", help="Output content.json."),
):
    """
    ✂️ Keep only id, title and description of each record.

    Example:
        embeddings-eval extract --in export.json --out projects/intranet/content.json
    """
    import json

    from embeddings_evaluator.evaluation.dataset import extract_content_fields
    from embeddings_evaluator.shared.utils import load_json, save_json

    if not input_file.exists():
        console.print(f"[red]✗ Input file '{input_file}' does not exist[/red]")
        raise typer.Exit(1)

    try:
        records = load_json(input_file)
    except json.JSONDecodeError as e:
        console.print(f"[red]✗ Invalid JSON format in '{input_file}': {e}[/red]")
        raise typer.Exit(1)

    if not isinstance(records, list):
        console.print(f"[red]✗ '{input_file}' must contain a JSON array[/red]")
        raise typer.Exit(1)

    save_json(output_file, extract_content_fields(records))
    console.print(f"[green]✓ Processed {len(records)} items, output written to {output_file}[/green]")


# ─────────────────────────────────────────────────────────────────────────────
# Info Command
# ─────────────────────────────────────────────────────────────────────────────


@app.command()
def info(
    project: Optional[str] = PROJECT_OPTION,
):
    """
    ℹ️ Show configuration, reranker requirements and index status.
    """
    from embeddings_evaluator import __version__
    from embeddings_evaluator.evaluation.validation import discover_projects
    from embeddings_evaluator.indexing.vector_store import create_vector_store
    from embeddings_evaluator.retrieval.reranker_base import check_rerank_requirements
    from embeddings_evaluator.shared.config import DEFAULT_CONFIG_FILE, get_settings

    settings = get_settings()
    project = _resolve_project(project)
    provider = settings.get_effective_embedding_provider()

    console.print(Panel(
        f"[bold]Embeddings Evaluator[/bold]\n"
        f"Version: {__version__}\n"
        f"Config: {DEFAULT_CONFIG_FILE}",
        title="ℹ️ Info",
    ))

    table = Table(title="Configuration")
    table.add_column("Setting")
    table.add_column("Value")
    table.add_row("Embedding provider", provider)
    table.add_row("Reranker", settings.get_effective_rerank_provider() or "disabled")
    table.add_row("Top-k", str(settings.get_effective_top_k()))
    table.add_row("Min similarity", str(settings.get_effective_min_similarity()))
    table.add_row("OPENAI_API_KEY", "set" if settings.openai_api_key else "missing")
    table.add_row("GEMINI_API_KEY", "set" if settings.gemini_api_key else "missing")
    table.add_row("VOYAGEAI_API_KEY", "set" if settings.voyageai_api_key else "missing")
    console.print(table)

    requirements = check_rerank_requirements(settings)
    if requirements.enabled:
        status = "[green]ready[/green]" if requirements.ready else "[red]not ready[/red]"
        console.print(f"\n[bold]Reranker:[/bold] {requirements.vendor}/{requirements.model} {status}")
        for issue in requirements.issues:
            console.print(f"  {issue}")

    console.print("\n[bold]Projects:[/bold]")
    for project_dir in discover_projects(settings.resolved_paths.projects_dir):
        console.print(f"  {project_dir.name}")

    console.print(f"\n[bold]Index ({project}, {provider}):[/bold]")
    with _handle_errors():
        stats = create_vector_store(project, provider).stats()
    console.print(f"  {stats.item_count} items in {stats.persist_directory}")


# ─────────────────────────────────────────────────────────────────────────────
# Entry Point
# ─────────────────────────────────────────────────────────────────────────────


def cli():
    """CLI entry point."""
    app()


if __name__ == "__main__":
    cli()
