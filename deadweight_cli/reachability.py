"""Reachability over the module graph and unused-file findings."""

from __future__ import annotations

import logging
import posixpath
from collections import deque
from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, List, Optional, Set

from .models import Confidence, EntrySet, FileRef, Finding, FindingKind, ModuleGraph, UnresolvedEdge
from .walker import Inventory, is_declaration_file, is_test_like, is_tooling_config

logger = logging.getLogger(__name__)


@dataclass
class ReachabilityResult:
    reached: FrozenSet[str]
    unreached: FrozenSet[str]
    # Files an unresolved import might refer to.
    possibly_targeted: FrozenSet[str]
    findings: List[Finding] = field(default_factory=list)


class ReachabilityAnalyzer:
    """Label every source file Reached or Unreached from the entry set."""

    def __init__(self, graph: ModuleGraph, inventory: Inventory, entries: EntrySet) -> None:
        self.graph = graph
        self.inventory = inventory
        self.entries = entries

    def reachable_nodes(self) -> Set[str]:
        seen: Set[str] = set()
        queue = deque(sorted(e for e in self.entries.files if e in self.graph.nodes))
        seen.update(queue)
        while queue:
            node = queue.popleft()
            for edge in self.graph.out_edges(node):
                if edge.is_external or edge.target in seen:
                    continue
                seen.add(edge.target)
                queue.append(edge.target)
        return seen

    def run(self) -> ReachabilityResult:
        nodes = self.reachable_nodes()
        sources = {r.rel_path for r in self.inventory.sources}
        reached = frozenset(sources & nodes)
        unreached = frozenset(sources - nodes)

        relevant = [u for u in self.graph.unresolved if self.entries.degraded or u.source in nodes]
        targeted = frozenset(possibly_targeted(relevant, self.inventory.by_rel))

        findings: List[Finding] = []
        for rel_path in sorted(unreached):
            if is_test_like(rel_path) or is_declaration_file(rel_path) or is_tooling_config(rel_path):
                continue
            findings.append(self._finding(rel_path, rel_path in targeted))

        logger.info("Reached %d of %d source files", len(reached), len(sources))
        return ReachabilityResult(reached, unreached, targeted, findings)

    def _finding(self, rel_path: str, targeted: bool) -> Finding:
        if self.entries.degraded:
            return Finding(
                FileRef(rel_path), FindingKind.UNUSED_FILE, Confidence.LOW,
                "no entry points were found, so reachability is unknown",
            )
        if targeted:
            return Finding(
                FileRef(rel_path), FindingKind.UNUSED_FILE, Confidence.LOW,
                "not reachable from any entry, but an unresolved import may refer to it",
            )
        return Finding(
            FileRef(rel_path), FindingKind.UNUSED_FILE, Confidence.HIGH,
            "not reachable from any entry point",
        )


# ---------------------------------------------------------------------------
# Unresolved-import matching
# ---------------------------------------------------------------------------

def possibly_targeted(unresolved: Iterable[UnresolvedEdge], rel_paths: Iterable[str]) -> Set[str]:
    """Files whose path an unresolved specifier or dynamic prefix could denote."""
    index = [(rel, strip_extension(rel), posixpath.splitext(posixpath.basename(rel))[0]) for rel in rel_paths]
    out: Set[str] = set()
    for item in unresolved:
        if item.prefix is not None:
            out.update(rel for rel, _, _ in index if rel.startswith(item.prefix))
            continue
        if not item.spec:
            continue
        suffixes = specifier_suffixes(item.spec)
        leaf = leaf_name(item.spec)
        for rel, rel_no_ext, stem in index:
            if any(
                rel_no_ext == s
                or rel_no_ext.endswith(f"/{s}")
                or rel.endswith(f"/{s}")
                or rel_no_ext.endswith(f"/{s}/index")
                for s in suffixes
            ):
                out.add(rel)
            elif leaf is not None and stem == leaf:
                out.add(rel)
    return out


def _clean(spec: str) -> str:
    return spec.split("?", 1)[0].split("#", 1)[0].replace("\\", "/").strip()


def specifier_suffixes(spec: str) -> Set[str]:
    base = _clean(spec)
    while base.startswith(("./", "../")):
        base = base[2:] if base.startswith("./") else base[3:]

    out = {base, base.lstrip("/")}
    for prefix in ("@/", "~/", "src/"):
        if base.startswith(prefix):
            out.add(base[len(prefix):])
    if base.startswith("@") and "/" in base:
        out.add(base.split("/", 1)[1])
    return {s for s in out if s}


def leaf_name(spec: str) -> Optional[str]:
    parts = [p for p in _clean(spec).split("/") if p]
    if not parts or parts[-1] in (".", ".."):
        return None
    return strip_extension(parts[-1])


def strip_extension(path: str) -> str:
    head, name = posixpath.split(path)
    if "." in name:
        name = name[:name.rfind(".")]
    return posixpath.join(head, name) if head else name
