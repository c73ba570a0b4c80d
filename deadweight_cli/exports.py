"""Export usage analysis with re-export propagation through barrel files."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Mapping, Set, Tuple

from .models import (
    Confidence,
    EntrySet,
    ExportKind,
    ExportRef,
    Finding,
    FindingKind,
    ImportKind,
    ModuleGraph,
    ParsedFacts,
)
from .walker import is_declaration_file, is_test_like

logger = logging.getLogger(__name__)


@dataclass
class Usage:
    """Names requested from one module.

    ``everything`` is namespace-style access; ``all_named`` is what a
    wildcard consumer of an ``export *`` barrel reaches (every name except
    ``default``).
    """

    names: Set[str] = field(default_factory=set)
    everything: bool = False
    all_named: bool = False

    def uses(self, symbol: str) -> bool:
        if self.everything or symbol in self.names:
            return True
        return self.all_named and symbol != "default"

    def mark(self, symbol: str) -> bool:
        if self.uses(symbol):
            return False
        self.names.add(symbol)
        return True

    def mark_all(self) -> bool:
        if self.everything:
            return False
        self.everything = True
        return True

    def mark_all_named(self) -> bool:
        if self.everything or self.all_named:
            return False
        self.all_named = True
        return True


class ExportUsageAnalyzer:
    """Report exports of reached files that nothing in the workspace imports."""

    def __init__(
        self,
        graph: ModuleGraph,
        facts: Mapping[str, ParsedFacts],
        entries: EntrySet,
        reached: FrozenSet[str],
        possibly_targeted: FrozenSet[str] = frozenset(),
    ) -> None:
        self.graph = graph
        self.facts = facts
        self.entries = entries
        self.reached = reached
        self.possibly_targeted = possibly_targeted

    # ------------------------------------------------------------------
    # Usage collection
    # ------------------------------------------------------------------

    def collect_usage(self) -> Dict[str, Usage]:
        usage: Dict[str, Usage] = {}

        def slot(path: str) -> Usage:
            return usage.setdefault(path, Usage())

        for edge in self.graph.edges:
            if edge.is_external or edge.kind == ImportKind.REEXPORT or edge.side_effect:
                continue
            if edge.wildcard:
                slot(edge.target).mark_all()
            else:
                for symbol in edge.symbols:
                    slot(edge.target).mark(symbol)

        # Entry modules are the public surface: everything they export is consumed.
        for entry in self.entries.files:
            slot(entry).mark_all()

        named, stars = self._reexport_tables()
        own_names = {
            path: {decl.symbol for decl in parsed.exports}
            for path, parsed in self.facts.items()
        }

        changed = True
        while changed:
            changed = False
            for barrel, forwards in named.items():
                barrel_usage = slot(barrel)
                for exported, target, original in forwards:
                    if not barrel_usage.uses(exported):
                        continue
                    if original == "*":
                        changed |= slot(target).mark_all()
                    else:
                        changed |= slot(target).mark(original)
            for barrel, targets in stars.items():
                barrel_usage = slot(barrel)
                declared = own_names.get(barrel, set())
                for target in targets:
                    if barrel_usage.everything or barrel_usage.all_named:
                        changed |= slot(target).mark_all_named()
                        continue
                    for name in barrel_usage.names - declared:
                        if name != "default":
                            changed |= slot(target).mark(name)
        return usage

    def _reexport_tables(self) -> Tuple[Dict[str, List[Tuple[str, str, str]]], Dict[str, List[str]]]:
        named: Dict[str, List[Tuple[str, str, str]]] = {}
        stars: Dict[str, List[str]] = {}
        for path, parsed in self.facts.items():
            targets_by_spec: Dict[str, Set[str]] = {}
            for edge in self.graph.out_edges(path):
                if edge.kind != ImportKind.REEXPORT or edge.is_external:
                    continue
                targets_by_spec.setdefault(edge.spec, set()).add(edge.target)
                if edge.wildcard:
                    stars.setdefault(path, []).append(edge.target)
            for decl in parsed.exports:
                if decl.kind != ExportKind.REEXPORT or decl.source is None:
                    continue
                for target in sorted(targets_by_spec.get(decl.source, ())):
                    named.setdefault(path, []).append((decl.symbol, target, decl.original or decl.symbol))
        return named, stars

    # ------------------------------------------------------------------
    # Findings
    # ------------------------------------------------------------------

    def run(self) -> List[Finding]:
        usage = self.collect_usage()
        token_files: Counter = Counter()
        for parsed in self.facts.values():
            token_files.update(parsed.identifiers)
        star_targets = {
            edge.target for edge in self.graph.edges
            if edge.kind == ImportKind.REEXPORT and edge.wildcard and not edge.is_external
        }

        findings: List[Finding] = []
        for path in sorted(self.reached):
            if path in self.entries.files or is_test_like(path) or is_declaration_file(path):
                continue
            parsed = self.facts.get(path)
            if parsed is None:
                continue
            file_usage = usage.get(path, Usage())
            for decl in parsed.exports:
                if file_usage.uses(decl.symbol):
                    continue
                findings.append(self._finding(path, decl.symbol, parsed, token_files, star_targets))

        logger.info("Found %d unused export(s)", len(findings))
        return findings

    def _finding(
        self,
        path: str,
        symbol: str,
        parsed: ParsedFacts,
        token_files: Counter,
        star_targets: Set[str],
    ) -> Finding:
        subject = ExportRef(path, symbol)
        elsewhere = token_files[symbol] - (1 if symbol in parsed.identifiers else 0)

        if self.entries.degraded:
            reason = "no entry points were found"
        elif path in star_targets:
            reason = "re-exported through an 'export *' barrel; usage through it is approximate"
        elif symbol != "default" and elsewhere > 0:
            reason = f"never imported, but the name '{symbol}' appears in {elsewhere} other file(s)"
        elif path in self.possibly_targeted:
            reason = "never imported, but an unresolved import may refer to this file"
        else:
            return Finding(subject, FindingKind.UNUSED_EXPORT, Confidence.HIGH, "exported but never imported")
        return Finding(subject, FindingKind.UNUSED_EXPORT, Confidence.LOW, reason)
