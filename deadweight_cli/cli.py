"""Typer-based CLI for deadweight: find and prune unused code in JS/TS projects."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.logging import RichHandler

from . import __version__
from .cli_trash import run_with_approval, trash_app
from .config_manager import AnalysisOptions, parse_alias_options, save_project_config, split_csv
from .engine import analyze
from .errors import InputError
from .interaction import Action, RequestAction, SelectMatching
from .render import print_candidates, print_report
from .report import Report
from .selection import KINDS, candidates, filter_candidates
from .trash import TrashManager

console = Console()

app = typer.Typer(
    help="🪶 deadweight — find unused files, exports, dependencies and assets in JS/TS projects.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# Register trash commands
app.add_typer(trash_app, name="trash")


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"deadweight v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log progress and warnings to stderr."),
):
    """deadweight: static dead-weight analysis with reversible cleanup."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _build_options(
    root: Path,
    entry: Optional[List[str]],
    asset_roots: Optional[List[str]],
    alias: Optional[List[str]],
    include_non_prod_deps: bool,
    include_low_confidence: bool,
    jobs: Optional[int],
) -> AnalysisOptions:
    try:
        aliases = parse_alias_options(alias or [])
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--alias")

    overrides: Dict[str, Any] = {
        "entries": list(entry or []),
        "asset_roots": split_csv(asset_roots or []),
        "aliases": aliases,
        "jobs": jobs,
    }
    # Flags only switch behaviour on; config files may already enable them.
    if include_non_prod_deps:
        overrides["include_non_prod_deps"] = True
    if include_low_confidence:
        overrides["include_low_confidence"] = True
    return AnalysisOptions.from_sources(root, overrides)


def _run_analysis(options: AnalysisOptions) -> Report:
    try:
        return analyze(options)
    except InputError as exc:
        raise typer.BadParameter(str(exc))


@app.command("analyze")
def analyze_command(
    root: Path = typer.Argument(Path("."), help="Project root to analyze."),
    entry: Optional[List[str]] = typer.Option(None, "--entry", "-e", help="Entry file (repeatable). Disables auto-detection."),
    asset_roots: Optional[List[str]] = typer.Option(None, "--asset-roots", "-a", help="Comma-separated folders whose assets are checked."),
    alias: Optional[List[str]] = typer.Option(None, "--alias", help="Import alias KEY=PATH (repeatable)."),
    include_non_prod_deps: bool = typer.Option(False, "--include-non-prod-deps", help="Also check dev/peer/optional dependencies."),
    include_low_confidence: bool = typer.Option(False, "--include-low-confidence", "-l", help="Show low-confidence findings."),
    as_json: bool = typer.Option(False, "--json", help="Print the report as JSON."),
    jobs: Optional[int] = typer.Option(None, "--jobs", "-j", min=1, help="Parser threads."),
    fail_on_findings: bool = typer.Option(False, "--fail-on-findings", help="Exit with code 1 when anything is reported."),
):
    """🔍 Analyze a project and report dead weight.

    Example:
      dw analyze .
      dw analyze web --entry src/main.tsx --alias @=src
      dw analyze . --asset-roots public,src/assets --json
    """
    options = _build_options(
        root, entry, asset_roots, alias, include_non_prod_deps, include_low_confidence, jobs,
    )
    report = _run_analysis(options)

    if as_json:
        typer.echo(report.to_json())
    else:
        print_report(report, console, show_warnings=logging.getLogger().isEnabledFor(logging.DEBUG))

    if fail_on_findings and report.findings():
        raise typer.Exit(code=1)


@app.command("prune")
def prune(
    root: Path = typer.Argument(Path("."), help="Project root to analyze."),
    match: str = typer.Option("", "--match", "-m", help="Filter: substring, glob, or re:PATTERN."),
    kind: str = typer.Option("all", "--kind", "-k", help=f"Candidate kind: {', '.join(KINDS)}."),
    entry: Optional[List[str]] = typer.Option(None, "--entry", "-e", help="Entry file (repeatable)."),
    asset_roots: Optional[List[str]] = typer.Option(None, "--asset-roots", "-a", help="Comma-separated asset folders."),
    alias: Optional[List[str]] = typer.Option(None, "--alias", help="Import alias KEY=PATH (repeatable)."),
    include_low_confidence: bool = typer.Option(False, "--include-low-confidence", "-l", help="Offer low-confidence findings too."),
    dry_run: bool = typer.Option(False, "--dry-run", help="List the matching candidates and stop."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt."),
):
    """🗑️  Move unused files and assets into the project trash.

    Nothing is removed permanently; use 'dw trash undo' to bring files back.

    Example:
      dw prune . --match "src/legacy/*"
      dw prune . --kind asset --dry-run
    """
    if kind not in KINDS:
        raise typer.BadParameter(f"Must be one of {', '.join(KINDS)}.", param_hint="--kind")

    options = _build_options(root, entry, asset_roots, alias, False, include_low_confidence, None)
    report = _run_analysis(options)
    manager = TrashManager(options.root)

    active = candidates(report)
    matched = filter_candidates(active, match, kind)
    if not matched:
        console.print("[green]✓ No deletion candidates match.[/green]")
        return

    print_candidates(matched, console)
    if dry_run:
        console.print("[dim]Dry run; nothing was moved.[/dim]")
        return

    outcome = run_with_approval(
        manager,
        [SelectMatching(match, tuple(active), kind), RequestAction(Action.DELETE)],
        f"Move {len(matched)} file(s) to {manager.trash_root.name}/?",
        yes,
    )
    if outcome is None:
        return
    if outcome.succeeded:
        console.print("[dim]Undo with 'dw trash undo'.[/dim]")
    if outcome.failed:
        raise typer.Exit(code=1)


@app.command("init")
def init_config(
    root: Path = typer.Argument(Path("."), exists=True, file_okay=False, help="Project root."),
    entry: Optional[List[str]] = typer.Option(None, "--entry", "-e", help="Entry file (repeatable)."),
    asset_roots: Optional[List[str]] = typer.Option(None, "--asset-roots", "-a", help="Comma-separated asset folders."),
    alias: Optional[List[str]] = typer.Option(None, "--alias", help="Import alias KEY=PATH (repeatable)."),
    ignore: Optional[List[str]] = typer.Option(None, "--ignore", "-i", help="Gitignore-style pattern to skip (repeatable)."),
):
    """⚙️  Write analysis defaults to the project's .deadweight.toml.

    Example:
      dw init . --entry src/main.ts --alias @=src --asset-roots public
    """
    try:
        aliases = parse_alias_options(alias or [])
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--alias")

    analysis: Dict[str, Any] = {}
    if entry:
        analysis["entries"] = list(entry)
    if asset_roots:
        analysis["asset_roots"] = split_csv(asset_roots)
    if ignore:
        analysis["ignore"] = list(ignore)

    path = save_project_config(root, analysis, aliases)
    console.print(f"[green]✓[/green] Wrote {escape(str(path))}")


if __name__ == "__main__":
    app()
