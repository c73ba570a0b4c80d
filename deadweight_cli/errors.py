"""Exception types raised by the analysis engine and the trash subsystem."""

from __future__ import annotations

from pathlib import Path


class DeadweightError(Exception):
    """Base class for every error raised on purpose by this package."""


class InputError(DeadweightError):
    """Invalid caller input; analysis does not start."""


class MissingRootError(InputError):
    def __init__(self, root: Path):
        super().__init__(f"Project root does not exist or is not a directory: {root}")
        self.root = root


class EntryNotFoundError(InputError):
    def __init__(self, entries: list[str]):
        joined = ", ".join(entries)
        super().__init__(f"Explicit entry file(s) not found in project: {joined}")
        self.entries = entries


class TrashBusyError(DeadweightError):
    """Raised when a second writer tries to mutate the trash concurrently."""

    def __init__(self, trash_root: Path):
        super().__init__(f"Another operation is already modifying {trash_root}")
        self.trash_root = trash_root


class InvalidTransitionError(DeadweightError):
    """An event that the current interaction state does not accept."""

    def __init__(self, state: str, event: str):
        super().__init__(f"Event {event} is not valid in state {state}")
        self.state = state
        self.event = event
