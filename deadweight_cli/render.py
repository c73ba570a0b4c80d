"""Rich rendering of reports, candidates and trash operations."""

from __future__ import annotations

from datetime import datetime
from typing import List

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .models import BatchOutcome, Confidence, Finding, TrashSession
from .report import Report
from .selection import Candidate, CandidateState

STATUS_STYLES = {"full": "green", "reduced": "yellow", "degraded": "red"}


def _confidence_cell(finding: Finding) -> str:
    if finding.confidence == Confidence.HIGH:
        return "[red]high[/red]"
    return "[yellow]low[/yellow]"


def _findings_table(title: str, findings: List[Finding], label_header: str) -> Table:
    table = Table(title=f"{title} ({len(findings)})", title_justify="left", show_lines=False)
    table.add_column(label_header, style="cyan", min_width=30)
    table.add_column("Confidence", width=10)
    table.add_column("Reason", style="dim")
    for finding in findings:
        subject = finding.subject
        if hasattr(subject, "symbol"):
            label = f"{escape(subject.path)} [magenta]{escape(subject.symbol)}[/magenta]"
        elif hasattr(subject, "name"):
            label = f"{escape(subject.name)} [dim]({subject.dep_type})[/dim]"
        else:
            label = escape(subject.path)
        table.add_row(label, _confidence_cell(finding), escape(finding.reason))
    return table


def print_report(report: Report, console: Console, show_warnings: bool = False) -> None:
    summary = report.summary
    style = STATUS_STYLES.get(summary.confidence_status, "white")

    console.print(f"[bold]Dead-weight report[/bold] for [cyan]{escape(str(report.root))}[/cyan]")
    console.print(
        f"Entries: {summary.entry_count} ({summary.entry_origin}) | "
        f"Reached: {summary.reached_files}/{summary.total_source_files} "
        f"({summary.coverage_ratio:.0%}) | "
        f"Confidence: [{style}]{summary.confidence_status}[/{style}]"
    )
    console.print(
        f"Assets used: {summary.assets_used}/{summary.assets_considered} | "
        f"Dependencies checked: {summary.dependencies_checked} | "
        f"Unresolved imports: {summary.unresolved_imports}"
    )
    console.print()

    sections = [
        ("Unused files", report.unused_files, "File"),
        ("Unused exports", report.unused_exports, "Export"),
        ("Unused dependencies", report.unused_dependencies, "Package"),
        ("Unused assets", report.unused_assets, "Asset"),
    ]
    empty = True
    for title, findings, header in sections:
        if findings:
            empty = False
            console.print(_findings_table(title, findings, header))
    if empty:
        console.print("[green]✓ No dead weight found.[/green]")

    if summary.omitted_low_confidence:
        console.print(
            f"\n[dim]{summary.omitted_low_confidence} low-confidence finding(s) hidden; "
            f"use --include-low-confidence to show them.[/dim]"
        )
    if report.warnings:
        if show_warnings:
            console.print("\n[yellow]Warnings:[/yellow]")
            for warning in report.warnings:
                console.print(f"  [yellow]•[/yellow] {escape(warning)}")
        else:
            console.print(f"[dim]{len(report.warnings)} warning(s); use --verbose to list them.[/dim]")


def print_candidates(candidates: List[Candidate], console: Console) -> None:
    table = Table(title=f"Candidates ({len(candidates)})", title_justify="left")
    table.add_column("Path", style="cyan", min_width=30)
    table.add_column("Kind", style="magenta", width=6)
    table.add_column("State", width=8)
    for item in candidates:
        state = "[dim]trashed[/dim]" if item.state == CandidateState.TRASHED else "active"
        table.add_row(escape(item.rel_path), item.kind, state)
    console.print(table)


def print_outcome(outcome: BatchOutcome, console: Console) -> None:
    for item in outcome.items:
        if item.ok:
            console.print(f"  [green]✓[/green] {escape(item.path)}")
        else:
            console.print(f"  [red]✗[/red] {escape(item.path)}: {escape(str(item.error))}")
    color = "green" if not outcome.failed else "yellow"
    session = f" (session {outcome.session_id})" if outcome.session_id else ""
    console.print(
        f"[{color}]{outcome.action.capitalize()}{session}: "
        f"{len(outcome.succeeded)} succeeded, {len(outcome.failed)} failed[/{color}]"
    )


def print_sessions(sessions: List[TrashSession], console: Console, show_files: bool = False) -> None:
    if not sessions:
        console.print("[yellow]Trash is empty.[/yellow]")
        return

    table = Table(title="Trash sessions", show_lines=show_files)
    table.add_column("#", style="dim", width=4)
    table.add_column("Session", style="cyan")
    table.add_column("Deleted", width=16)
    table.add_column("Files", justify="right", style="green", width=6)
    if show_files:
        table.add_column("Paths", style="dim")

    for i, session in enumerate(sessions, 1):
        try:
            when = datetime.fromisoformat(session.created_at).astimezone().strftime("%Y-%m-%d %H:%M")
        except ValueError:
            when = "unknown"
        row = [str(i), session.id, when, str(len(session.entries))]
        if show_files:
            row.append(escape("\n".join(e.original_path for e in session.entries)))
        table.add_row(*row)
    console.print(table)
