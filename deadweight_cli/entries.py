"""Entry point discovery."""

from __future__ import annotations

import logging
import posixpath
import re
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Set

from .errors import EntryNotFoundError
from .manifest import PackageManifest
from .models import EntrySet
from .resolver import ModuleResolver, ResolutionKind
from .walker import Inventory, is_test_like, is_tooling_config

logger = logging.getLogger(__name__)

CONVENTIONAL_ENTRIES = ("src/index", "src/main", "index", "main")

# Directories that hold built output rather than sources.
BUILD_DIRS = ("dist", "build", "lib", "out", "esm", "cjs")

NEXT_APP_ROUTE_FILES = frozenset({
    "page", "layout", "route", "loading", "error", "not-found",
    "template", "default", "head",
})

HTML_SCRIPT_RE = re.compile(r"""<script\b[^>]*\bsrc\s*=\s*['"]([^'"]+)['"]""", re.IGNORECASE)


class EntryResolver:
    """Determine the roots of reachability for one project.

    Tiers, first non-empty wins: explicit entries, ``package.json`` fields,
    then conventional names and framework route files. When one of the last
    two tiers produced entries, test files and root-level tooling configs are
    added as supplementary roots.
    """

    def __init__(self, inventory: Inventory, resolver: ModuleResolver, manifest: PackageManifest):
        self.inventory = inventory
        self.resolver = resolver
        self.manifest = manifest

    def resolve(self, explicit: Sequence[str] = ()) -> EntrySet:
        if explicit:
            return self._explicit(explicit)

        origin = "manifest"
        primary = self._from_manifest()
        if not primary:
            origin = "convention"
            primary = self._from_conventions()

        if not primary:
            logger.warning("No entry points found; findings are limited to low confidence")
            return EntrySet(files=frozenset(), origin="none", degraded=True)

        supplementary = self._supplementary()
        logger.info(
            "Resolved %d entry file(s) from %s (+%d test/tooling roots)",
            len(primary), origin, len(supplementary - primary),
        )
        return EntrySet(files=frozenset(primary | supplementary), origin=origin)

    # ------------------------------------------------------------------
    # Tiers
    # ------------------------------------------------------------------

    def _explicit(self, explicit: Sequence[str]) -> EntrySet:
        found: Set[str] = set()
        missing: List[str] = []
        for raw in explicit:
            rel = self._local(raw.strip().lstrip("/"))
            if rel is None:
                missing.append(raw)
            else:
                found.add(rel)
        if missing:
            raise EntryNotFoundError(missing)
        return EntrySet(files=frozenset(found), origin="explicit")

    def _from_manifest(self) -> Set[str]:
        found: Set[str] = set()
        for target in self.manifest.entry_targets():
            rel = self._local(target) or self._source_for_build_output(target)
            if rel is not None:
                found.add(rel)
            else:
                logger.debug("package.json entry %r does not map to a project file", target)
        return found

    def _from_conventions(self) -> Set[str]:
        found: Set[str] = set()
        for name in CONVENTIONAL_ENTRIES:
            rel = self._local(name)
            if rel is not None:
                found.add(rel)

        for record in self.inventory.sources:
            if is_framework_entry(record.rel_path):
                found.add(record.rel_path)

        found.update(self._html_script_entries())
        return found

    def _supplementary(self) -> Set[str]:
        return {
            record.rel_path
            for record in self.inventory.sources
            if is_test_like(record.rel_path)
            or ("/" not in record.rel_path and is_tooling_config(record.rel_path))
        }

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _local(self, rel_target: str) -> Optional[str]:
        resolution = self.resolver.lookup(self.inventory.root / rel_target)
        if resolution is not None and resolution.kind == ResolutionKind.LOCAL:
            return resolution.target
        return None

    def _source_for_build_output(self, target: str) -> Optional[str]:
        """``./dist/cli.js`` -> ``src/cli.ts`` when such a source exists."""
        normalized = posixpath.normpath(target)
        head, _, rest = normalized.partition("/")
        if head not in BUILD_DIRS or not rest:
            return None
        stem = rest
        for suffix in (".d.ts", ".d.mts", ".d.cts"):
            if stem.endswith(suffix):
                stem = stem[: -len(suffix)]
                break
        else:
            stem = posixpath.splitext(stem)[0]
        return self._local(f"src/{stem}")

    def _html_script_entries(self) -> Iterable[str]:
        html = self.inventory.get("index.html")
        if html is None:
            return []
        try:
            text = html.content
        except OSError as exc:
            logger.warning("Could not read index.html: %s", exc)
            return []
        found = []
        for m in HTML_SCRIPT_RE.finditer(text):
            src = m.group(1)
            if src.startswith(("http://", "https://", "//")):
                continue
            rel = self._local(posixpath.normpath(src.lstrip("/")))
            if rel is not None:
                found.append(rel)
        return found


def is_framework_entry(rel_path: str) -> bool:
    if rel_path.startswith(("pages/", "src/pages/")):
        return True
    if rel_path.startswith(("app/", "src/app/")):
        stem = Path(rel_path).stem
        return stem in NEXT_APP_ROUTE_FILES
    return False
