"""Declared-but-unused package dependency detection."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List

from .manifest import PackageManifest
from .models import Confidence, DependencyRef, Finding, FindingKind, ModuleGraph

logger = logging.getLogger(__name__)


@dataclass
class DependencyAnalysis:
    findings: List[Finding] = field(default_factory=list)
    checked: int = 0


class DependencyUsageDetector:
    """A dependency is used when any import edge targets its package sentinel.

    Only ``dependencies`` are checked unless *include_non_prod* is set;
    ``@types/*`` packages are never reported.
    """

    def __init__(self, manifest: PackageManifest, graph: ModuleGraph, include_non_prod: bool = False):
        self.manifest = manifest
        self.graph = graph
        self.include_non_prod = include_non_prod

    def run(self) -> DependencyAnalysis:
        declared = self.manifest.dependencies(include_non_prod=self.include_non_prod)
        imported = set(self.graph.external_packages())

        analysis = DependencyAnalysis()
        for name in sorted(declared):
            if name.startswith("@types/"):
                continue
            analysis.checked += 1
            if name in imported:
                continue
            section = declared[name]
            analysis.findings.append(Finding(
                DependencyRef(name, section),
                FindingKind.UNUSED_DEPENDENCY,
                Confidence.HIGH,
                f"declared in {section} but never imported",
            ))

        logger.info("Dependencies: %d checked, %d unused", analysis.checked, len(analysis.findings))
        return analysis
