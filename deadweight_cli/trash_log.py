"""Append-only JSON-lines deletion log."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import List

from .models import DeletionLogEntry

logger = logging.getLogger(__name__)


class DeletionLog:
    """``deletions.jsonl``: one :class:`DeletionLogEntry` per line.

    Each append is flushed and fsynced before returning; a move is only
    considered durable once its line is on disk.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def append(self, entry: DeletionLogEntry) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        line = json.dumps(entry.to_dict(), sort_keys=True)
        # Start a fresh line after a torn or foreign last line.
        prefix = "\n" if self._ends_mid_line() else ""
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(prefix + line + "\n")
            f.flush()
            os.fsync(f.fileno())

    def _ends_mid_line(self) -> bool:
        try:
            with open(self.path, "rb") as f:
                f.seek(-1, os.SEEK_END)
                return f.read(1) != b"\n"
        except OSError:
            return False

    def read(self) -> List[DeletionLogEntry]:
        """All valid entries in append order; corrupt or undecodable lines are skipped."""
        if not self.path.exists():
            return []
        try:
            data = self.path.read_bytes()
        except OSError as exc:
            logger.warning("Could not read deletion log %s, treating history as empty: %s", self.path, exc)
            return []

        entries: List[DeletionLogEntry] = []
        skipped = 0
        for raw in data.splitlines():
            raw = raw.strip()
            if not raw:
                continue
            try:
                entries.append(DeletionLogEntry.from_dict(json.loads(raw.decode("utf-8"))))
            except (UnicodeDecodeError, json.JSONDecodeError, KeyError, ValueError, TypeError):
                skipped += 1
        if skipped:
            logger.warning("Skipped %d corrupt line(s) in %s", skipped, self.path)
        return entries
