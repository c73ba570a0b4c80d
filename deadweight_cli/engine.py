"""Analysis pipeline coordinating the walker, parser, resolver and analyzers."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Optional

from .assets import AssetUsageDetector
from .config_manager import AnalysisOptions
from .dependencies import DependencyUsageDetector
from .entries import EntryResolver
from .errors import MissingRootError
from .exports import ExportUsageAnalyzer
from .graph import GraphBuilder
from .manifest import PackageManifest, load_manifest
from .models import EntrySet, ModuleGraph, ParsedFacts
from .parser import ModuleParser
from .reachability import ReachabilityAnalyzer
from .report import Report, ReportAssembler
from .resolver import ModuleResolver
from .tsconfig import load_path_config
from .walker import FileWalker, Inventory

logger = logging.getLogger(__name__)


class AnalysisEngine:
    """Runs one analysis: walk, parse, resolve entries, build the graph, analyze, assemble.

    Stages after parsing are single-threaded. Intermediate results stay on
    the instance so callers (and tests) can inspect them after :meth:`run`.
    """

    def __init__(self, options: AnalysisOptions):
        root = Path(options.root)
        if not root.is_dir():
            raise MissingRootError(root)
        self.options = options
        self.root = root.resolve()

        self.inventory: Optional[Inventory] = None
        self.manifest: Optional[PackageManifest] = None
        self.resolver: Optional[ModuleResolver] = None
        self.facts: Dict[str, ParsedFacts] = {}
        self.entries: Optional[EntrySet] = None
        self.graph: Optional[ModuleGraph] = None

    def run(self) -> Report:
        options = self.options
        self.inventory = FileWalker(self.root, options.ignore).scan()
        self.manifest = load_manifest(self.root)
        self.resolver = ModuleResolver(
            self.inventory,
            aliases=options.aliases,
            declared_packages=self.manifest.all_dependency_names(),
            subpath_imports=self.manifest.subpath_imports(),
            path_config=load_path_config(self.root),
        )

        # Explicit entries are validated before any parsing work.
        self.entries = EntryResolver(self.inventory, self.resolver, self.manifest).resolve(options.entries)

        self.facts = ModuleParser(jobs=options.jobs).parse_project(self.inventory.sources)
        self.graph = GraphBuilder(self.inventory, self.resolver).build(self.facts)

        reachability = ReachabilityAnalyzer(self.graph, self.inventory, self.entries).run()
        export_findings = ExportUsageAnalyzer(
            self.graph, self.facts, self.entries, reachability.reached, reachability.possibly_targeted,
        ).run()
        assets = AssetUsageDetector(
            self.inventory, self.graph, self.facts, self.resolver, options.asset_roots,
        ).run()
        dependencies = DependencyUsageDetector(
            self.manifest, self.graph, include_non_prod=options.include_non_prod_deps,
        ).run()

        return ReportAssembler(options.include_low_confidence).assemble(
            self.inventory, self.entries, self.graph, self.facts,
            reachability, export_findings, assets, dependencies,
        )


def analyze(options: AnalysisOptions) -> Report:
    return AnalysisEngine(options).run()
