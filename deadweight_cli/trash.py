"""Reversible deletion: trash sessions, restore, undo and purge.

Layout inside the analyzed project::

    .deadweight_trash/
        deletions.jsonl
        sessions/<session-id>/<original relative path>

Every mutation goes through the single writer handle returned by
:meth:`TrashManager.writer`. Moves are plain renames; a move and its log
line form one unit, and a move whose log line cannot be written is reverted.
"""

from __future__ import annotations

import logging
import os
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Union

from . import config
from .errors import TrashBusyError
from .models import (
    BatchOutcome,
    DeletionLogEntry,
    ItemOutcome,
    LogAction,
    TrashEntry,
    TrashSession,
)
from .trash_log import DeletionLog

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class TrashManager:
    """Read side of the trash plus the gate to its single writer."""

    def __init__(self, root: PathLike):
        self.root = Path(root).resolve()
        self.trash_root = self.root / config.TRASH_DIR_NAME
        self.sessions_dir = self.trash_root / config.TRASH_SESSIONS_DIR
        self.log = DeletionLog(self.trash_root / config.TRASH_LOG_NAME)
        self._lock = threading.Lock()

    @contextmanager
    def writer(self) -> Iterator["TrashWriter"]:
        """Exclusive writer handle; a concurrent second acquisition raises :class:`TrashBusyError`."""
        if not self._lock.acquire(blocking=False):
            raise TrashBusyError(self.trash_root)
        try:
            yield TrashWriter(self)
        finally:
            self._lock.release()

    # ------------------------------------------------------------------
    # Log replay
    # ------------------------------------------------------------------

    def history(self) -> List[DeletionLogEntry]:
        return self.log.read()

    def trashed_entries(self) -> List[TrashEntry]:
        """Entries deleted and not yet restored or purged, in deletion order."""
        live: Dict[str, TrashEntry] = {}
        for item in self.history():
            if item.action == LogAction.DELETE:
                live[item.trashed_path] = TrashEntry(
                    session_id=item.session_id,
                    original_path=item.original_path,
                    trashed_path=item.trashed_path,
                    deleted_at=item.timestamp,
                )
            else:
                live.pop(item.trashed_path, None)

        present = []
        for entry in live.values():
            if (self.root / entry.trashed_path).exists():
                present.append(entry)
            else:
                logger.debug("Trashed copy of %s is missing on disk", entry.original_path)
        return present

    def list_sessions(self) -> List[TrashSession]:
        """Sessions that still hold trashed files, most recent first."""
        sessions: Dict[str, TrashSession] = {}
        for entry in self.trashed_entries():
            session = sessions.get(entry.session_id)
            if session is None:
                session = sessions[entry.session_id] = TrashSession(entry.session_id, entry.deleted_at)
            session.entries.append(entry)
        return list(reversed(list(sessions.values())))

    def last_delete_session(self) -> Optional[str]:
        """Id of the most recent delete batch in the log, whatever happened to it since."""
        for item in reversed(self.history()):
            if item.action == LogAction.DELETE:
                return item.session_id
        return None

    def undo_target(self) -> Optional[TrashSession]:
        """The session ``undo`` would restore, or None when there is nothing to undo."""
        session_id = self.last_delete_session()
        return next((s for s in self.list_sessions() if s.id == session_id), None)

    def latest_entry(self, original_path: str) -> Optional[TrashEntry]:
        found = None
        for entry in self.trashed_entries():
            if entry.original_path == original_path:
                found = entry
        return found

    def relative(self, path: PathLike) -> Optional[str]:
        """Root-relative posix form of *path*, or None when outside the root."""
        candidate = Path(path)
        if not candidate.is_absolute():
            candidate = self.root / candidate
        normalized = Path(os.path.normpath(candidate))
        try:
            rel = normalized.relative_to(self.root).as_posix()
        except ValueError:
            return None
        return None if rel == "." else rel

    def is_in_trash(self, rel_path: str) -> bool:
        return rel_path == config.TRASH_DIR_NAME or rel_path.startswith(f"{config.TRASH_DIR_NAME}/")


class TrashWriter:
    """Mutating operations. Obtain through :meth:`TrashManager.writer` only."""

    def __init__(self, manager: TrashManager):
        self.manager = manager
        self.root = manager.root

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    def delete(self, paths: Iterable[PathLike]) -> BatchOutcome:
        session_id = self._new_session_id()
        session_dir = self.manager.sessions_dir / session_id
        outcome = BatchOutcome(action="delete", session_id=session_id)

        for path in paths:
            outcome.items.append(self._delete_one(path, session_id, session_dir))

        self._prune_empty_sessions()
        logger.info("Delete session %s: %s", session_id, outcome)
        return outcome

    def _delete_one(self, path: PathLike, session_id: str, session_dir: Path) -> ItemOutcome:
        rel = self.manager.relative(path)
        label = rel or str(path)
        if rel is None:
            return ItemOutcome(label, False, "path is outside the project root")
        if self.manager.is_in_trash(rel):
            return ItemOutcome(label, False, "path is inside the trash directory")

        source = self.root / rel
        if source.is_symlink() or not source.is_file():
            return ItemOutcome(label, False, "not a regular file")

        destination = session_dir / rel
        if destination.exists():
            return ItemOutcome(label, False, "destination already exists in trash")

        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            os.rename(source, destination)
        except OSError as exc:
            return ItemOutcome(label, False, f"move failed: {exc}")

        trashed = destination.relative_to(self.root).as_posix()
        entry = DeletionLogEntry(session_id, rel, trashed, LogAction.DELETE, _now())
        error = self._append_or_revert(entry, moved_from=source, moved_to=destination)
        if error:
            return ItemOutcome(label, False, error)
        return ItemOutcome(label, True, trashed_path=trashed)

    # ------------------------------------------------------------------
    # Restore
    # ------------------------------------------------------------------

    def restore(self, paths: Iterable[PathLike]) -> BatchOutcome:
        """Restore files (latest trashed copy each) or whole folders by original path."""
        outcome = BatchOutcome(action="restore")
        trashed = self.manager.trashed_entries()

        for path in paths:
            rel = self.manager.relative(path)
            if rel is None:
                outcome.items.append(ItemOutcome(str(path), False, "path is outside the project root"))
                continue
            latest: Dict[str, TrashEntry] = {}
            for entry in trashed:
                if entry.original_path == rel or entry.original_path.startswith(f"{rel}/"):
                    latest[entry.original_path] = entry
            if not latest:
                outcome.items.append(ItemOutcome(rel, False, "not found in trash"))
                continue
            for original in sorted(latest):
                outcome.items.append(self._restore_one(latest[original]))

        self._prune_empty_sessions()
        logger.info("Restore: %s", outcome)
        return outcome

    def restore_session(self, session_id: str) -> BatchOutcome:
        outcome = BatchOutcome(action="restore", session_id=session_id)
        entries = [e for e in self.manager.trashed_entries() if e.session_id == session_id]
        if not entries:
            logger.warning("Session %s has no trashed files", session_id)
        for entry in entries:
            outcome.items.append(self._restore_one(entry))
        self._prune_empty_sessions()
        logger.info("Restore session %s: %s", session_id, outcome)
        return outcome

    def restore_all(self) -> BatchOutcome:
        """Restore every session, most recent first; older copies of a path then fail without overwriting."""
        outcome = BatchOutcome(action="restore")
        for session in self.manager.list_sessions():
            outcome.items.extend(self.restore_session(session.id).items)
        return outcome

    def undo(self) -> BatchOutcome:
        """Restore the most recently approved delete batch.

        When that batch has already been restored or purged there is nothing
        to undo; older sessions are left alone.
        """
        target = self.manager.undo_target()
        if target is None:
            logger.info("Nothing to undo")
            return BatchOutcome(action="restore")
        return self.restore_session(target.id)

    def _restore_one(self, entry: TrashEntry) -> ItemOutcome:
        source = self.root / entry.trashed_path
        destination = self.root / entry.original_path

        if destination.exists() or destination.is_symlink():
            return ItemOutcome(entry.original_path, False, "original path already exists; left in trash")
        if not source.exists():
            return ItemOutcome(entry.original_path, False, "trashed copy is missing")

        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            os.rename(source, destination)
        except OSError as exc:
            return ItemOutcome(entry.original_path, False, f"move failed: {exc}")

        log_entry = DeletionLogEntry(
            entry.session_id, entry.original_path, entry.trashed_path, LogAction.RESTORE, _now(),
        )
        error = self._append_or_revert(log_entry, moved_from=source, moved_to=destination)
        if error:
            return ItemOutcome(entry.original_path, False, error)
        return ItemOutcome(entry.original_path, True, trashed_path=entry.trashed_path)

    # ------------------------------------------------------------------
    # Empty
    # ------------------------------------------------------------------

    def empty(self) -> BatchOutcome:
        """Permanently remove every trashed file."""
        outcome = BatchOutcome(action="empty")
        for entry in self.manager.trashed_entries():
            target = self.root / entry.trashed_path
            try:
                target.unlink()
            except OSError as exc:
                outcome.items.append(ItemOutcome(entry.original_path, False, f"remove failed: {exc}"))
                continue
            try:
                self.manager.log.append(DeletionLogEntry(
                    entry.session_id, entry.original_path, entry.trashed_path, LogAction.PURGE, _now(),
                ))
            except OSError as exc:
                # The file is gone; replay skips entries whose copy is missing.
                logger.warning("Could not log purge of %s: %s", entry.trashed_path, exc)
            outcome.items.append(ItemOutcome(entry.original_path, True, trashed_path=entry.trashed_path))
        self._prune_empty_sessions()
        logger.info("Empty trash: %s", outcome)
        return outcome

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _append_or_revert(self, entry: DeletionLogEntry, moved_from: Path, moved_to: Path) -> Optional[str]:
        try:
            self.manager.log.append(entry)
        except OSError as exc:
            try:
                os.rename(moved_to, moved_from)
            except OSError as revert_exc:
                logger.error("Could not revert move of %s after log failure: %s", moved_from, revert_exc)
                return f"log write failed ({exc}) and the move could not be reverted"
            return f"log write failed: {exc}"
        return None

    def _new_session_id(self) -> str:
        base = datetime.now().strftime("%Y%m%d-%H%M%S-%f")
        known = {item.session_id for item in self.manager.history()}
        candidate = base
        counter = 1
        while candidate in known or (self.manager.sessions_dir / candidate).exists():
            candidate = f"{base}-{counter}"
            counter += 1
        return candidate

    def _prune_empty_sessions(self) -> int:
        """Remove empty directories under ``sessions/``."""
        sessions_dir = self.manager.sessions_dir
        if not sessions_dir.is_dir():
            return 0
        removed = 0
        for current, dirs, files in os.walk(sessions_dir, topdown=False):
            path = Path(current)
            if path == sessions_dir or files:
                continue
            try:
                if not any(path.iterdir()):
                    path.rmdir()
                    removed += 1
            except OSError as exc:
                logger.debug("Could not prune %s: %s", path, exc)
        return removed
