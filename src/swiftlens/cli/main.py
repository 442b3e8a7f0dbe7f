"""swiftlens CLI for linting Swift sources."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from ..ai.openai_client import OpenAIClient
from ..ai.prompt import append_recommendations
from ..analysis.analyzer import StructuralAnalyzer
from ..config import Settings, load_settings
from ..exceptions import ConfigError
from ..linter import Linter, build_rules
from ..models.context import AnalysisContext
from ..models.records import Severity
from ..pipeline import cap, exclude_by_pattern, meets_threshold, prioritize, render_path_style
from ..report.annotations import github_annotations
from ..report.json_report import render_json
from ..report.markdown import render_markdown
from ..sources import tracked_sources, walk_sources

console = Console()
err_console = Console(stderr=True)
app = typer.Typer(add_completion=False, no_args_is_help=True)

logger = logging.getLogger(__name__)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def _resolve_settings(config_path: Optional[Path], **overrides) -> Settings:
    try:
        return load_settings(config_path, overrides)
    except ConfigError as exc:
        err_console.print(f"[red]Configuration error:[/red] {exc}", markup=True)
        raise typer.Exit(2)


@app.command()
def lint(
    path: Optional[Path] = typer.Option(None, "--path", "-p", help="Root of the Swift sources"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to a YAML config"),
    rules: Optional[str] = typer.Option(None, "--rules", help="Comma separated rule ids, or 'all'"),
    output_format: Optional[str] = typer.Option(None, "--format", "-f", help="markdown or json"),
    out: Optional[Path] = typer.Option(None, "--out", "-o", help="Write the report to this file"),
    fail_on: Optional[str] = typer.Option(None, "--fail-on", help="off, low, medium or high"),
    annotations: Optional[str] = typer.Option(None, "--annotations", help="off or github"),
    include_extensions: Optional[bool] = typer.Option(
        None, "--include-extensions/--no-include-extensions", help="Merge extensions into types"
    ),
    include_tests: Optional[bool] = typer.Option(
        None, "--include-tests/--no-include-tests", help="Keep findings in test directories"
    ),
    include_samples: Optional[bool] = typer.Option(
        None, "--include-samples/--no-include-samples", help="Keep findings in sample code"
    ),
    exclude_path: Optional[List[str]] = typer.Option(
        None, "--exclude-path", help="Glob of root-relative paths to drop (repeatable)"
    ),
    max_findings: Optional[int] = typer.Option(None, "--max-findings", help="Cap reported findings"),
    path_style: Optional[str] = typer.Option(None, "--path-style", help="relative or absolute"),
    strategy: Optional[str] = typer.Option(None, "--strategy", help="auto, syntax or regex"),
    workers: Optional[int] = typer.Option(None, "--workers", "-j", help="Analysis threads"),
    git_tracked_only: Optional[bool] = typer.Option(
        None, "--git-tracked-only/--all-files", help="Only lint files tracked by git"
    ),
    ai: Optional[bool] = typer.Option(
        None, "--ai/--no-ai", help="Append AI recommendations to the Markdown report"
    ),
    ai_limit: Optional[int] = typer.Option(None, "--ai-limit", help="Findings sent to the AI provider"),
    model: Optional[str] = typer.Option(None, "--model", help="OpenAI model for recommendations"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Lint Swift sources and print a report."""
    _configure_logging(verbose)
    settings = _resolve_settings(
        config,
        path=path,
        rules=rules,
        format=output_format,
        out=out,
        fail_on=fail_on,
        annotations=annotations,
        include_extensions=include_extensions,
        include_tests=include_tests,
        include_samples=include_samples,
        exclude_paths=exclude_path or None,
        max_findings=max_findings,
        path_style=path_style,
        strategy=strategy,
        workers=workers,
        git_tracked_only=git_tracked_only,
        ai=ai,
        ai_limit=ai_limit,
        ai_model=model,
    )
    try:
        selected_rules = build_rules(settings)
    except ConfigError as exc:
        err_console.print(f"[red]Configuration error:[/red] {exc}")
        raise typer.Exit(2)

    root = settings.path
    if not root.is_dir():
        err_console.print(f"[red]Path not found:[/red] {root}")
        raise typer.Exit(2)

    patterns = settings.excluded_path_patterns()
    if settings.git_tracked_only:
        try:
            files = tracked_sources(root, settings.exclude_paths)
        except ValueError as exc:
            err_console.print(f"[red]{exc}[/red]")
            raise typer.Exit(2)
    else:
        files = walk_sources(root, settings.exclude_paths)

    context = AnalysisContext(
        root_path=str(root),
        files=files,
        analyzer=StructuralAnalyzer(settings.strategy),
    )
    findings = Linter(selected_rules, workers=settings.workers).run(context)

    kept = prioritize(exclude_by_pattern(findings, patterns, str(root)))
    reported, omitted = cap(kept, settings.max_findings)
    reported = render_path_style(reported, settings.path_style, str(root))

    if settings.format == "json":
        output = render_json(reported)
        if settings.ai:
            logger.info("AI recommendations are only added to Markdown reports")
    else:
        output = render_markdown(
            reported,
            file_count=len(context.source_paths()),
            total_findings=len(kept),
            omitted=omitted,
        )
        if settings.ai:
            output = append_recommendations(
                output,
                reported,
                OpenAIClient(model=settings.ai_model),
                project_name=root.name,
                limit=settings.ai_limit,
            )

    if settings.out is not None:
        settings.out.write_text(output + "\n", encoding="utf-8")
    else:
        typer.echo(output)

    if settings.annotations == "github":
        for command in github_annotations(reported, str(root)):
            typer.echo(command)

    err_console.print(f"Total swift files: {len(context.source_paths())}")
    err_console.print(f"Total findings: {len(kept)}" + (f" ({omitted} omitted)" if omitted else ""))

    threshold = None if settings.fail_on == "off" else Severity.parse(settings.fail_on)
    if meets_threshold(kept, threshold):
        raise typer.Exit(1)


@app.command(name="rules")
def list_rules(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to a YAML config"),
):
    """List the available rules and their thresholds."""
    settings = _resolve_settings(config)
    table = Table(title="swiftlens rules")
    table.add_column("ID", style="cyan")
    table.add_column("Description")
    table.add_column("Thresholds")
    for rule in build_rules(settings.model_copy(update={"rules": "all"})):
        thresholds = ", ".join(
            f"{key}={value}"
            for key, value in vars(rule).items()
            if key.endswith("threshold")
        )
        table.add_row(rule.id, rule.description, thresholds)
    console.print(table)


@app.command()
def analyze(
    file: Path = typer.Argument(..., help="Swift file to analyze"),
    include_extensions: bool = typer.Option(
        False, "--include-extensions/--no-include-extensions", help="Merge extensions into types"
    ),
    strategy: str = typer.Option("auto", "--strategy", help="auto, syntax or regex"),
):
    """Show the structural units extracted from one file."""
    if not file.is_file():
        err_console.print(f"[red]File not found:[/red] {file}")
        raise typer.Exit(2)
    try:
        analyzer = StructuralAnalyzer(strategy.lower())
    except ValueError as exc:
        err_console.print(f"[red]{exc}[/red]")
        raise typer.Exit(2)
    units = analyzer.analyze(str(file), file.read_text(encoding="utf-8"), include_extensions)
    if not units:
        console.print(f"[yellow]No type declarations found in '{file}'[/yellow]")
        return

    table = Table(title=f"Types in {file.name}")
    table.add_column("Name", style="cyan")
    table.add_column("Kind")
    table.add_column("Start")
    table.add_column("Lines")
    table.add_column("Functions")
    table.add_column("Extensions")
    table.add_column("UI actions")
    table.add_column("Method")
    for unit in units:
        table.add_row(
            unit.name,
            unit.kind,
            str(unit.start_line),
            str(unit.line_count),
            str(len(unit.functions)),
            str(unit.extension_count),
            str(unit.ui_action_count),
            f"{unit.counting_method} ({unit.confidence})",
        )
    console.print(table)
