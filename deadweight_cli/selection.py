"""Selection filters over deletion candidates (report findings plus trashed files)."""

from __future__ import annotations

import fnmatch
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import PurePosixPath
from typing import Callable, Dict, List, Optional

from . import config
from .models import Confidence, FindingKind
from .report import Report
from .trash import TrashManager

REGEX_META = set("[]()|+^${}\\.")

KIND_FILE = "file"
KIND_ASSET = "asset"
KINDS = ("all", KIND_FILE, KIND_ASSET)


class CandidateState(str, Enum):
    ACTIVE = "active"
    TRASHED = "trashed"


@dataclass(frozen=True)
class Candidate:
    rel_path: str
    kind: str
    state: CandidateState = CandidateState.ACTIVE
    confidence: Optional[Confidence] = None
    trashed_path: Optional[str] = None


@dataclass(frozen=True)
class PathMatcher:
    """Compiled query; ``mode`` is one of any, substring, glob, regex."""

    mode: str
    test: Callable[[str], bool]

    def __call__(self, path: str) -> bool:
        return self.test(path)


def _compile(pattern: str) -> Optional["re.Pattern[str]"]:
    try:
        return re.compile(pattern, re.IGNORECASE)
    except re.error:
        return None


def _substring(query: str) -> PathMatcher:
    needle = query.lower()
    return PathMatcher("substring", lambda path: needle in path.lower())


def build_matcher(query: str) -> PathMatcher:
    """Compile a path filter.

    - empty: matches everything
    - ``re:PATTERN`` or ``/PATTERN/``: case-insensitive regular expression
    - contains ``*`` or ``?``: shell-style wildcard over the whole path
    - contains regex metacharacters: regular expression when it compiles
    - otherwise: case-insensitive substring

    Patterns that fail to compile fall back to substring matching.
    """
    q = query.strip()
    if not q:
        return PathMatcher("any", lambda path: True)

    explicit = None
    if q.startswith("re:"):
        explicit = q[3:]
    elif len(q) >= 2 and q.startswith("/") and q.endswith("/"):
        explicit = q[1:-1]
    if explicit is not None:
        regex = _compile(explicit)
        return PathMatcher("regex", lambda path: bool(regex.search(path))) if regex else _substring(q)

    if "*" in q or "?" in q:
        regex = _compile(fnmatch.translate(q))
        return PathMatcher("glob", lambda path: bool(regex.match(path))) if regex else _substring(q)

    if any(ch in REGEX_META for ch in q):
        regex = _compile(q)
        if regex is not None:
            return PathMatcher("regex", lambda path: bool(regex.search(path)))

    return _substring(q)


def kind_for_path(rel_path: str) -> str:
    return KIND_ASSET if PurePosixPath(rel_path).suffix.lower() in config.ASSET_EXTENSIONS else KIND_FILE


def candidates(report: Optional[Report], manager: Optional[TrashManager] = None) -> List[Candidate]:
    """Unused files and assets from *report*, plus every trashed entry of *manager*."""
    by_path: Dict[str, Candidate] = {}
    if report is not None:
        for finding in report.unused_files + report.unused_assets:
            kind = KIND_ASSET if finding.kind == FindingKind.UNUSED_ASSET else KIND_FILE
            path = finding.subject.path
            by_path[path] = Candidate(path, kind, confidence=finding.confidence)
    if manager is not None:
        for entry in manager.trashed_entries():
            by_path[entry.original_path] = Candidate(
                entry.original_path,
                kind_for_path(entry.original_path),
                state=CandidateState.TRASHED,
                trashed_path=entry.trashed_path,
            )
    return sorted(by_path.values(), key=lambda c: c.rel_path)


def filter_candidates(
    items: List[Candidate],
    query: str = "",
    kind: str = "all",
    include_trashed: Optional[bool] = None,
) -> List[Candidate]:
    """Trashed rows are hidden for an empty query unless *include_trashed* says otherwise."""
    if kind not in KINDS:
        raise ValueError(f"kind must be one of {', '.join(KINDS)}, got '{kind}'")
    matcher = build_matcher(query)
    show_trashed = bool(query.strip()) if include_trashed is None else include_trashed
    return [
        item for item in items
        if (kind == "all" or item.kind == kind)
        and (item.state == CandidateState.ACTIVE or show_trashed)
        and matcher(item.rel_path)
    ]
