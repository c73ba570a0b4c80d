"""Trash management commands: list, delete, restore, undo, empty."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Sequence

import typer
from rich.console import Console
from rich.markup import escape

from .errors import DeadweightError
from .interaction import (
    Action,
    Approve,
    Cancel,
    EffectHandler,
    Event,
    InteractiveSession,
    Pending,
    RequestAction,
    Select,
)
from .models import BatchOutcome
from .render import print_candidates, print_outcome, print_sessions
from .selection import candidates, filter_candidates
from .trash import TrashManager

console = Console()

trash_app = typer.Typer(help="🗑️  Inspect, restore and empty the project trash", no_args_is_help=True)

ROOT_OPTION = typer.Option(Path("."), "--root", "-r", exists=True, file_okay=False, help="Project root.")


def run_with_approval(
    manager: TrashManager,
    setup: Sequence[Event],
    prompt: str,
    yes: bool = False,
) -> Optional[BatchOutcome]:
    """Feed *setup* events, then approve (after confirmation) or cancel.

    Returns None when the request was cancelled or never reached approval.
    """
    session = InteractiveSession(EffectHandler(manager))
    try:
        session.send_all(setup)
        if not isinstance(session.state, Pending):
            console.print("[yellow]Nothing to do.[/yellow]")
            return None
        if not yes and not typer.confirm(prompt, default=False):
            session.send(Cancel())
            console.print("[dim]Cancelled; nothing was changed.[/dim]")
            return None
        outcome = session.send(Approve())
    except DeadweightError as exc:
        console.print(f"[red]✗ {escape(str(exc))}[/red]")
        raise typer.Exit(code=1)
    if outcome is not None:
        print_outcome(outcome, console)
    return outcome


def _exit_on_failures(outcome: Optional[BatchOutcome]) -> None:
    if outcome is not None and outcome.failed:
        raise typer.Exit(code=1)


@trash_app.command("list")
def list_trash(
    root: Path = ROOT_OPTION,
    files: bool = typer.Option(False, "--files", "-f", help="Show the files of each session."),
):
    """📜 Show trash sessions, most recent first.

    Example:
      dw trash list
      dw trash list --files
    """
    manager = TrashManager(root)
    print_sessions(manager.list_sessions(), console, show_files=files)


@trash_app.command("delete")
def delete_files(
    paths: List[Path] = typer.Argument(..., help="Files to move into the trash."),
    root: Path = ROOT_OPTION,
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt."),
):
    """🗑️  Move files into a new trash session.

    Example:
      dw trash delete src/old.ts src/legacy/util.js
    """
    manager = TrashManager(root)
    rels = [manager.relative(p.resolve()) or str(p) for p in paths]
    outcome = run_with_approval(
        manager,
        [Select(tuple(rels)), RequestAction(Action.DELETE)],
        f"Move {len(rels)} file(s) to trash?",
        yes,
    )
    _exit_on_failures(outcome)


@trash_app.command("restore")
def restore(
    paths: Optional[List[str]] = typer.Argument(None, help="Original paths (files or folders) to restore."),
    root: Path = ROOT_OPTION,
    session: Optional[str] = typer.Option(None, "--session", "-s", help="Restore one whole session."),
    all_sessions: bool = typer.Option(False, "--all", help="Restore every session, most recent first."),
    match: Optional[str] = typer.Option(None, "--match", "-m", help="Restore trashed files matching a filter."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt."),
):
    """⏪ Restore trashed files. Existing files are never overwritten.

    Example:
      dw trash restore src/old.ts
      dw trash restore --session 20240101-120000-000000
      dw trash restore --match "re:\\.png$"
      dw trash restore --all
    """
    manager = TrashManager(root)

    if all_sessions:
        events: List[Event] = [RequestAction(Action.RESTORE_ALL)]
        prompt = "Restore every trash session?"
    elif session:
        events = [RequestAction(Action.RESTORE_SESSION, session_id=session)]
        prompt = f"Restore session {session}?"
    else:
        targets = list(paths or [])
        if match:
            trashed = filter_candidates(candidates(None, manager), match, include_trashed=True)
            print_candidates(trashed, console)
            targets.extend(item.rel_path for item in trashed)
        if not targets:
            raise typer.BadParameter("Give paths, --match, --session or --all.")
        events = [Select(tuple(targets)), RequestAction(Action.RESTORE)]
        prompt = f"Restore {len(targets)} path(s)?"

    _exit_on_failures(run_with_approval(manager, events, prompt, yes))


@trash_app.command("undo")
def undo(
    root: Path = ROOT_OPTION,
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt."),
):
    """⏪ Restore the most recent delete session.

    Example:
      dw trash undo
    """
    manager = TrashManager(root)
    target = manager.undo_target()
    if target is None:
        console.print("[yellow]Nothing to undo.[/yellow]")
        return
    outcome = run_with_approval(
        manager,
        [RequestAction(Action.UNDO)],
        f"Restore {len(target.entries)} file(s) from session {target.id}?",
        yes,
    )
    _exit_on_failures(outcome)


@trash_app.command("empty")
def empty(
    root: Path = ROOT_OPTION,
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt."),
):
    """🔥 Permanently delete everything in the trash.

    Example:
      dw trash empty --yes
    """
    manager = TrashManager(root)
    count = len(manager.trashed_entries())
    if not count:
        console.print("[yellow]Trash is empty.[/yellow]")
        return
    outcome = run_with_approval(
        manager,
        [RequestAction(Action.EMPTY)],
        f"Permanently delete {count} trashed file(s)? This cannot be undone.",
        yes,
    )
    _exit_on_failures(outcome)
