"""Project file enumeration honoring ignore rules."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional

import pathspec

from . import config
from .errors import MissingRootError
from .models import FileKind, FileRecord

logger = logging.getLogger(__name__)

DECLARATION_SUFFIXES = (".d.ts", ".d.mts", ".d.cts")


def classify(path: Path) -> FileKind:
    name = path.name.lower()
    if name in config.MANIFEST_NAMES or (name.startswith("tsconfig") and name.endswith(".json")):
        return FileKind.MANIFEST
    if name.endswith(DECLARATION_SUFFIXES):
        return FileKind.OTHER
    suffix = path.suffix.lower()
    if suffix in config.SOURCE_EXTENSIONS:
        return FileKind.SOURCE
    if suffix in config.ASSET_EXTENSIONS:
        return FileKind.ASSET
    return FileKind.OTHER


class Inventory:
    """All walked files of one analysis run, addressable by relative path."""

    def __init__(self, root: Path, records: Iterable[FileRecord]):
        self.root = root
        self.records: List[FileRecord] = sorted(records, key=lambda r: r.rel_path)
        self.by_rel: Dict[str, FileRecord] = {r.rel_path: r for r in self.records}

    def __contains__(self, rel_path: str) -> bool:
        return rel_path in self.by_rel

    def __len__(self) -> int:
        return len(self.records)

    def get(self, rel_path: str) -> Optional[FileRecord]:
        return self.by_rel.get(rel_path)

    def of_kind(self, kind: FileKind) -> List[FileRecord]:
        return [r for r in self.records if r.kind == kind]

    @property
    def sources(self) -> List[FileRecord]:
        return self.of_kind(FileKind.SOURCE)

    @property
    def assets(self) -> List[FileRecord]:
        return self.of_kind(FileKind.ASSET)

    def rel(self, path: Path) -> Optional[str]:
        """Relative posix path of *path* when it lies inside the root."""
        try:
            return path.relative_to(self.root).as_posix()
        except ValueError:
            return None


class FileWalker:
    """Enumerate and classify project files.

    Directories in :data:`config.IGNORED_DIRS` (which always includes the
    trash directory) are pruned, as is anything matched by the root
    ``.gitignore`` or by extra gitignore-style *ignore_patterns*.
    """

    def __init__(self, root: Path, ignore_patterns: Optional[List[str]] = None) -> None:
        root = Path(root)
        if not root.is_dir():
            raise MissingRootError(root)
        self.root = root.resolve()
        self._spec = self._load_ignore_spec(ignore_patterns or [])

    def _load_ignore_spec(self, extra: List[str]) -> Optional[pathspec.PathSpec]:
        lines: List[str] = []
        gitignore = self.root / ".gitignore"
        if gitignore.is_file():
            try:
                lines.extend(gitignore.read_text(encoding="utf-8", errors="ignore").splitlines())
            except OSError as exc:
                logger.warning("Could not read %s: %s", gitignore, exc)
        lines.extend(extra)
        if not lines:
            return None
        return pathspec.PathSpec.from_lines("gitwildmatch", lines)

    def _ignored(self, rel_path: str, is_dir: bool) -> bool:
        if self._spec is None:
            return False
        return self._spec.match_file(f"{rel_path}/" if is_dir else rel_path)

    def iter_files(self) -> Iterator[Path]:
        for current, dirs, filenames in os.walk(self.root):
            current_path = Path(current)
            rel_dir = current_path.relative_to(self.root).as_posix()
            rel_dir = "" if rel_dir == "." else rel_dir

            kept = []
            for d in sorted(dirs):
                if d in config.IGNORED_DIRS:
                    continue
                rel = f"{rel_dir}/{d}" if rel_dir else d
                if self._ignored(rel, is_dir=True):
                    continue
                kept.append(d)
            dirs[:] = kept

            for filename in sorted(filenames):
                rel = f"{rel_dir}/{filename}" if rel_dir else filename
                if self._ignored(rel, is_dir=False):
                    continue
                yield current_path / filename

    def scan(self) -> Inventory:
        records = []
        for path in self.iter_files():
            if not path.is_file():
                continue
            rel_path = path.relative_to(self.root).as_posix()
            records.append(FileRecord(path=path, rel_path=rel_path, kind=classify(path)))
        inventory = Inventory(self.root, records)
        logger.info(
            "Scanned %d files (%d source, %d asset)",
            len(inventory), len(inventory.sources), len(inventory.assets),
        )
        return inventory


def is_declaration_file(rel_path: str) -> bool:
    return rel_path.lower().endswith(DECLARATION_SUFFIXES)


def is_test_like(rel_path: str) -> bool:
    name = rel_path.rsplit("/", 1)[-1]
    return (
        ".test." in name
        or ".spec." in name
        or "/__tests__/" in f"/{rel_path}"
        or "/__mocks__/" in f"/{rel_path}"
    )


_TOOLING_PREFIXES = (".eslintrc", ".prettierrc", ".stylelintrc", ".babelrc", ".lintstagedrc")


def is_tooling_config(rel_path: str) -> bool:
    """Config files consumed by build tools rather than imported by code."""
    name = rel_path.rsplit("/", 1)[-1]
    lower = name.lower()
    return lower.startswith(_TOOLING_PREFIXES) or ".config." in lower
