"""Module graph construction from parsed facts."""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Dict, List, Mapping, Tuple

from .models import (
    Confidence,
    GraphEdge,
    ImportEdge,
    ModuleGraph,
    ParsedFacts,
    UnresolvedEdge,
    package_node,
)
from .resolver import ModuleResolver, ResolutionKind, glob_to_regex
from .walker import Inventory

logger = logging.getLogger(__name__)


class GraphBuilder:
    """Resolve every import site of every parsed file into graph edges.

    Local targets become file edges, packages become ``pkg:<name>`` sentinel
    edges, builtins and untracked files are dropped, and anything else is
    kept as an :class:`UnresolvedEdge`.
    """

    def __init__(self, inventory: Inventory, resolver: ModuleResolver) -> None:
        self.inventory = inventory
        self.resolver = resolver

    def build(self, facts: Mapping[str, ParsedFacts]) -> ModuleGraph:
        graph = ModuleGraph(nodes=dict(self.inventory.by_rel))

        for rel_path in sorted(facts):
            parsed = facts[rel_path]
            globs: Dict[Tuple[int, int], List[ImportEdge]] = defaultdict(list)
            for edge in parsed.imports:
                if edge.is_glob and edge.literal:
                    globs[(edge.line, edge.column)].append(edge)
                elif not edge.literal:
                    self._add_non_literal(graph, rel_path, edge)
                else:
                    self._add_literal(graph, rel_path, edge)
            for group in globs.values():
                self._add_glob_group(graph, rel_path, group)

        logger.info(
            "Built module graph: %d nodes, %d edges, %d unresolved",
            len(graph.nodes), len(graph.edges), len(graph.unresolved),
        )
        return graph

    # ------------------------------------------------------------------
    # Edge kinds
    # ------------------------------------------------------------------

    def _add_literal(self, graph: ModuleGraph, source: str, edge: ImportEdge) -> None:
        resolution = self.resolver.resolve(source, edge.target_spec)
        confidence = Confidence.LOW if edge.ambiguous else Confidence.HIGH

        if resolution.kind == ResolutionKind.LOCAL:
            graph.add_edge(self._edge(source, resolution.target, edge, confidence))
        elif resolution.kind == ResolutionKind.EXTERNAL:
            graph.add_edge(self._edge(source, package_node(resolution.target), edge, confidence))
        elif resolution.kind == ResolutionKind.UNRESOLVED:
            graph.unresolved.append(UnresolvedEdge(source, edge.target_spec, resolution.reason))
            logger.debug("Unresolved import %r in %s: %s", edge.target_spec, source, resolution.reason)
        else:
            logger.debug("Skipping %s import %r in %s", resolution.kind.value, edge.target_spec, source)

    def _add_non_literal(self, graph: ModuleGraph, source: str, edge: ImportEdge) -> None:
        prefix = self.resolver.dynamic_prefix(source, edge.target_spec)
        reason = "non-literal dynamic import"
        if edge.target_spec:
            reason += f" with static prefix '{edge.target_spec}'"
        graph.unresolved.append(UnresolvedEdge(source, edge.target_spec, reason, prefix=prefix))

    def _add_glob_group(self, graph: ModuleGraph, source: str, group: List[ImportEdge]) -> None:
        """One glob call: positive patterns minus ``!`` negations, expanded over the inventory."""
        positives: List[Tuple[ImportEdge, str]] = []
        negatives = []
        for edge in group:
            pattern = self.resolver.glob_pattern(source, edge.target_spec)
            if pattern is None:
                graph.unresolved.append(UnresolvedEdge(
                    source, edge.target_spec, "glob pattern points outside the project",
                ))
                continue
            if edge.target_spec.startswith("!"):
                negatives.append(glob_to_regex(pattern))
            else:
                positives.append((edge, pattern))

        for edge, pattern in positives:
            regex = glob_to_regex(pattern)
            confidence = Confidence.LOW if "**" in pattern else Confidence.HIGH
            matched = 0
            for rel_path in self.inventory.by_rel:
                if rel_path == source or not regex.match(rel_path):
                    continue
                if any(neg.match(rel_path) for neg in negatives):
                    continue
                graph.add_edge(self._edge(source, rel_path, edge, confidence))
                matched += 1
            logger.debug("Glob %r in %s matched %d file(s)", edge.target_spec, source, matched)

    @staticmethod
    def _edge(source: str, target: str, edge: ImportEdge, confidence: Confidence) -> GraphEdge:
        return GraphEdge(
            source=source,
            target=target,
            kind=edge.kind,
            spec=edge.target_spec,
            symbols=edge.symbols,
            wildcard=edge.wildcard,
            side_effect=edge.side_effect,
            confidence=confidence,
            via_glob=edge.is_glob,
        )
