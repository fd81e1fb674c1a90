"""Typer-based CLI for the code reviewer."""

from __future__ import annotations

import time
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from . import __version__
from .cache import ContentCache
from .config import PROJECT_CONFIG_NAME
from .config_manager import ConfigurationError, ReviewConfig, load_config, save_config
from .formatter import OUTPUT_FORMATS, ReportFormatter, format_issues, format_size, time_ago
from .incremental import IncrementalUpdater
from .indexer import SnippetIndexer
from .llm import OllamaProvider, ProviderError, create_provider
from .log import LoggingConfig
from .parser import ParseFailure, TypeScriptAnalyzer, iter_source_files, language_for
from .pattern_detector import PatternDetector
from .privacy import PrivacyManager
from .review import AnalysisContext, ReviewAnalyzer, ReviewParseError
from .storage import IndexStore, parse_timestamp

console = Console()

app = typer.Typer(
    help="AI-powered code review for TypeScript / Node.js projects.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

SIMILAR_PATTERN_LIMIT = 5


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"code-reviewer v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    )
):
    """Static pattern detection, snippet indexing and LLM-backed reviews."""
    pass


# ===================================================================
# Helpers
# ===================================================================

def _load_config(config_path: Optional[Path]) -> ReviewConfig:
    try:
        return load_config(config_path)
    except ConfigurationError as exc:
        console.print(f"[red]✗ Configuration error:[/red] {exc}")
        raise typer.Exit(code=2)


def _resolve_targets(paths: List[Path], ignore: List[str]) -> List[Path]:
    """Expand files and directories into a de-duplicated list of source files."""
    seen = set()
    targets: List[Path] = []
    for p in paths:
        resolved = p.resolve()
        if resolved.is_file() and language_for(str(resolved)):
            candidates = [resolved]
        elif resolved.is_dir():
            candidates = list(iter_source_files(resolved, ignore))
        else:
            candidates = []
        for c in candidates:
            if c not in seen:
                seen.add(c)
                targets.append(c)
    return targets


def _enabled_kinds(config: ReviewConfig, performance: bool, readability: bool, maintainability: bool):
    focus = {"performance": performance, "readability": readability, "maintainability": maintainability}
    if any(focus.values()):
        return {kind for kind, on in focus.items() if on}
    return {kind for kind in focus if config.rules.enabled(kind)}


def _print_report(report: str, fmt: str) -> None:
    if fmt == "text":
        console.print(report)
    else:
        typer.echo(report)


# ===================================================================
# analyze
# ===================================================================

@app.command("analyze")
def analyze(
    paths: List[Path] = typer.Argument(..., help="Files or directories to analyze."),
    fmt: str = typer.Option("text", "--format", "-f", help="Output format: text, json, markdown."),
    provider: Optional[str] = typer.Option(None, "--provider", help="AI provider: ollama, claude, gemini."),
    model: Optional[str] = typer.Option(None, "--model", help="Model to use (e.g. codellama:13b)."),
    performance: bool = typer.Option(False, "--performance", help="Focus on performance issues."),
    readability: bool = typer.Option(False, "--readability", help="Focus on readability issues."),
    maintainability: bool = typer.Option(False, "--maintainability", help="Focus on maintainability issues."),
    no_ai: bool = typer.Option(False, "--no-ai", help="Only run static analysis; do not call a provider."),
    context: Optional[str] = typer.Option(None, "--context", help="Short project description given to the reviewer."),
    config_path: Optional[Path] = typer.Option(None, "--config", help="Explicit config file."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show detailed progress logs."),
):
    """Analyze files or directories and print a review report."""
    if fmt not in OUTPUT_FORMATS:
        raise typer.BadParameter(f"format must be one of: {', '.join(OUTPUT_FORMATS)}", param_hint="--format")

    logging_config = LoggingConfig(verbose=verbose)
    log = logging_config.configure()
    config = _load_config(config_path)
    if provider:
        config.ai.provider = provider.lower()
    if model and config.ai.provider in ("ollama", "claude", "gemini"):
        config.ai.settings().model = model

    reviewer: Optional[ReviewAnalyzer] = None
    sanitize = False
    if not no_ai:
        try:
            review_provider, model_name = create_provider(config.ai)
        except ConfigurationError as exc:
            console.print(f"[red]✗ Configuration error:[/red] {exc}")
            raise typer.Exit(code=2)
        log.debug("Provider: %s, model: %s", config.ai.provider, model_name)

        if isinstance(review_provider, OllamaProvider):
            if not review_provider.health_check():
                console.print("[red]✗ Ollama is not running.[/red] Start it with: ollama serve")
                raise typer.Exit(code=1)
            if not review_provider.is_model_available():
                console.print(f"[red]✗ Model \"{model_name}\" not found.[/red] Pull it: ollama pull {model_name}")
                raise typer.Exit(code=1)
        else:
            sanitize = True

        def on_progress(event: str, detail: dict) -> None:
            if event == "cache-hit":
                log.debug("Cache hit, using cached review.")
            else:
                log.debug("Calling AI (%s/%s)...", detail.get("provider"), detail.get("model"))

        reviewer = ReviewAnalyzer(
            review_provider,
            provider_name=config.ai.provider,
            model=model_name,
            cache=ContentCache(ttl=config.cache_ttl_seconds, logger=logging_config.logger_for("cache")),
            on_progress=on_progress,
            logger=logging_config.logger_for("review"),
        )

    targets = _resolve_targets(paths, config.ignore)
    if not targets:
        console.print("[yellow]No TypeScript/JavaScript files found to analyze.[/yellow]")
        return
    log.debug("Found %d file(s)", len(targets))

    analyzer = TypeScriptAnalyzer(logger=logging_config.logger_for("parser"))
    detector = PatternDetector(config.thresholds)
    indexer = SnippetIndexer(
        config.ignore,
        analyzer=analyzer,
        min_statements=config.thresholds.min_snippet_statements,
        logger=logging_config.logger_for("indexer"),
    )
    index_snippets = IndexStore(logger=logging_config.logger_for("storage")).load_snippets()
    log.debug("Index: %d snippet(s) loaded", len(index_snippets))
    privacy = PrivacyManager()
    formatter = ReportFormatter()
    kinds = _enabled_kinds(config, performance, readability, maintainability)
    project_context = context or config.project_context or None

    analyzed = 0
    for position, file_path in enumerate(targets, 1):
        progress = f" [{position}/{len(targets)}]" if len(targets) > 1 else ""
        log.debug("Analyzing %s%s", file_path.name, progress)
        try:
            source = file_path.read_text(encoding="utf-8")
            metadata = analyzer.analyze_source(source, str(file_path))
        except (OSError, UnicodeDecodeError) as exc:
            console.print(f"[yellow]⚠ Skipped {file_path}: {exc}[/yellow]")
            continue
        except ParseFailure as exc:
            console.print(f"[yellow]⚠ Skipped {file_path}: {exc.reason}[/yellow]")
            continue

        issues = [i for i in detector.detect_issues(metadata, source) if i.kind in kinds]
        log.debug("Found %d issue(s) from static analysis", len(issues))

        if reviewer is None:
            _print_report(format_issues(issues, fmt), fmt)
            analyzed += 1
            continue

        similar = indexer.find_similar(source, SIMILAR_PATTERN_LIMIT, index_snippets)
        if sanitize:
            similar = [privacy.sanitize_for_sharing(s) for s in similar]
        try:
            with console.status(f"AI reviewing {file_path.name}{progress}"):
                review = reviewer.analyze_code(AnalysisContext(
                    target_code=source,
                    metadata=metadata,
                    detected_issues=issues,
                    similar_patterns=similar,
                    project_context=project_context,
                ))
        except (ProviderError, ReviewParseError) as exc:
            console.print(f"[yellow]⚠ Skipped {file_path}: {exc}[/yellow]")
            continue

        _print_report(formatter.format(review, fmt), fmt)
        analyzed += 1

    if fmt == "text":
        console.print(f"[green]✓[/green] Completed analysis of {analyzed} of {len(targets)} file(s).")


# ===================================================================
# index
# ===================================================================

@app.command("index")
def index(
    path: Path = typer.Option(Path("."), "--path", "-p", exists=True, file_okay=False, help="Root path to index."),
    force: bool = typer.Option(False, "--force", help="Rebuild the index even if it exists."),
    incremental: bool = typer.Option(False, "--incremental", help="Only re-index changed files."),
    config_path: Optional[Path] = typer.Option(None, "--config", help="Explicit config file."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show detailed progress logs."),
):
    """Index the codebase so reviews can reference similar code."""
    logging_config = LoggingConfig(verbose=verbose)
    log = logging_config.configure()
    config = _load_config(config_path)
    if not config.indexing_enabled:
        console.print("[yellow]Indexing is disabled in the configuration.[/yellow]")
        return

    root = path.resolve()
    log.debug("Root path: %s; ignore: %s", root, ", ".join(config.ignore) or "none")
    store = IndexStore(logger=logging_config.logger_for("storage"))
    indexer = SnippetIndexer(
        config.ignore,
        min_statements=config.thresholds.min_snippet_statements,
        logger=logging_config.logger_for("indexer"),
    )

    if force or not store.exists():
        with console.status("Indexing codebase..."):
            snippets = indexer.index_project(root)
            snapshot = store.save(snippets, root)
        console.print(
            f"[green]✓[/green] Indexed {snapshot.stats.total_snippets} snippet(s) "
            f"from {snapshot.stats.total_files} file(s)."
        )
        return

    if incremental:
        updater = IncrementalUpdater(
            store, indexer, root, config.ignore, logger=logging_config.logger_for("incremental"),
        )
        previous = updater.load_baseline()
        changed = updater.changed_files_since_baseline(previous)
        if not changed and previous is not None:
            console.print("[green]✓[/green] No changed files since last index.")
            return
        for f in changed:
            log.debug("  changed: %s", f)
        with console.status("Incremental indexing..."):
            merged = updater.merge_update(changed, previous.snippets if previous else [])
            snapshot = store.save(merged, root)
        console.print(
            f"[green]✓[/green] Updated index: {len(changed)} file(s) changed, "
            f"{snapshot.stats.total_snippets} total snippet(s)."
        )
        return

    age = store.age()
    age_str = time_ago(age) if age is not None else "unknown"
    console.print(
        f"[blue]ℹ[/blue] Index exists ({age_str}). "
        "Use --force to rebuild, --incremental to update."
    )


# ===================================================================
# cache
# ===================================================================

@app.command("cache")
def cache(
    clear: bool = typer.Option(False, "--clear", help="Clear all cached reviews."),
    stats: bool = typer.Option(False, "--stats", help="Show cache statistics."),
):
    """Manage the review cache."""
    store = ContentCache()
    if clear:
        removed = store.clear()
        console.print(f"[green]✓[/green] Cache cleared ({removed} entr{'y' if removed == 1 else 'ies'} removed).")
        return
    if stats:
        info = store.stats()
        oldest = info["oldest_age"]
        console.print("[green]✓[/green] Cache statistics:")
        console.print(f"  Count:  {info['count']} file(s)")
        console.print(f"  Size:   {format_size(info['size'])}")
        console.print(f"  Oldest: {time_ago(oldest) if oldest is not None else 'N/A'}")
        return
    console.print("[dim]Use --clear or --stats[/dim]")


# ===================================================================
# models
# ===================================================================

@app.command("models")
def models(
    config_path: Optional[Path] = typer.Option(None, "--config", help="Explicit config file."),
):
    """List models installed on the configured Ollama host."""
    config = _load_config(config_path)
    ollama = OllamaProvider(config.ai.ollama.host, "any")
    try:
        installed = ollama.list_models()
    except ProviderError:
        console.print("[red]✗ Cannot connect to Ollama.[/red] Make sure it is running: ollama serve")
        raise typer.Exit(code=1)

    if not installed:
        console.print("[dim]No models installed.[/dim]")
        console.print("  Download one with: [cyan]ollama pull codellama:13b[/cyan]")
        return

    table = Table(title=f"Ollama models ({len(installed)})")
    table.add_column("Model", style="cyan")
    table.add_column("Size", justify="right")
    table.add_column("Modified")
    now = time.time()
    for m in installed:
        modified = parse_timestamp(m["modified_at"]) if m["modified_at"] else None
        table.add_row(
            m["name"],
            format_size(m["size"]),
            time_ago(now - modified) if modified is not None else "unknown",
        )
    console.print(table)


# ===================================================================
# config
# ===================================================================

@app.command("config")
def config_command(
    init: bool = typer.Option(False, "--init", help=f"Write a default {PROJECT_CONFIG_NAME} here."),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing config file."),
    config_path: Optional[Path] = typer.Option(None, "--config", help="Explicit config file."),
):
    """Show the effective configuration, or create a default one."""
    if init:
        target = Path.cwd() / PROJECT_CONFIG_NAME
        if target.exists() and not force:
            console.print(f"[yellow]{target} already exists.[/yellow] Use --force to overwrite.")
            raise typer.Exit(code=1)
        save_config(ReviewConfig(), target)
        console.print(f"[green]✓[/green] Wrote {target}")
        return

    config = _load_config(config_path)
    settings = config.ai.settings()
    table = Table(title="Effective configuration", show_header=False)
    table.add_column("Key", style="cyan")
    table.add_column("Value")
    table.add_row("provider", config.ai.provider)
    table.add_row("model", settings.model)
    if settings.host:
        table.add_row("host", settings.host)
    if config.ai.provider != "ollama":
        table.add_row("api key", "set" if settings.api_key else "missing")
    table.add_row("rules", ", ".join(k for k in ("performance", "readability", "maintainability")
                                     if config.rules.enabled(k)) or "none")
    table.add_row("ignore", ", ".join(config.ignore) or "none")
    table.add_row("indexing", "enabled" if config.indexing_enabled else "disabled")
    table.add_row("cache ttl", f"{config.cache_ttl_days}d")
    if config.project_context:
        table.add_row("context", config.project_context)
    console.print(table)


if __name__ == "__main__":
    app()
