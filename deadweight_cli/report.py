"""Report assembly: summary statistics, confidence filtering, JSON shape."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterable, List, Mapping

from .assets import AssetAnalysis
from .dependencies import DependencyAnalysis
from .models import Confidence, EntrySet, Finding, ModuleGraph, ParsedFacts
from .reachability import ReachabilityResult
from .walker import Inventory

logger = logging.getLogger(__name__)

STATUS_FULL = "full"
STATUS_REDUCED = "reduced"
STATUS_DEGRADED = "degraded"


@dataclass
class ReportSummary:
    total_source_files: int = 0
    total_asset_files: int = 0
    reached_files: int = 0
    coverage_ratio: float = 0.0
    entry_count: int = 0
    entry_origin: str = "none"
    total_exports: int = 0
    dependencies_checked: int = 0
    assets_considered: int = 0
    assets_used: int = 0
    asset_coverage: float = 0.0
    unresolved_imports: int = 0
    confidence_status: str = STATUS_FULL
    omitted_low_confidence: int = 0
    unused_files: int = 0
    unused_exports: int = 0
    unused_dependencies: int = 0
    unused_assets: int = 0


@dataclass
class Report:
    root: str
    summary: ReportSummary
    unused_files: List[Finding] = field(default_factory=list)
    unused_exports: List[Finding] = field(default_factory=list)
    unused_dependencies: List[Finding] = field(default_factory=list)
    unused_assets: List[Finding] = field(default_factory=list)
    entries: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def findings(self) -> List[Finding]:
        return self.unused_files + self.unused_exports + self.unused_dependencies + self.unused_assets

    def to_dict(self) -> Dict[str, Any]:
        return {
            "root": self.root,
            "summary": asdict(self.summary),
            "entries": list(self.entries),
            "unused_files": [f.to_dict() for f in self.unused_files],
            "unused_exports": [f.to_dict() for f in self.unused_exports],
            "unused_dependencies": [f.to_dict() for f in self.unused_dependencies],
            "unused_assets": [f.to_dict() for f in self.unused_assets],
            "warnings": list(self.warnings),
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)


class ReportAssembler:
    """Combine analyzer outputs into one :class:`Report`.

    In degraded mode every finding is capped at Low. Low findings are then
    dropped unless ``include_low_confidence`` is set; the number dropped is
    reported in the summary.
    """

    def __init__(self, include_low_confidence: bool = False) -> None:
        self.include_low_confidence = include_low_confidence

    def assemble(
        self,
        inventory: Inventory,
        entries: EntrySet,
        graph: ModuleGraph,
        facts: Mapping[str, ParsedFacts],
        reachability: ReachabilityResult,
        export_findings: List[Finding],
        assets: AssetAnalysis,
        dependencies: DependencyAnalysis,
    ) -> Report:
        omitted = 0

        def select(findings: Iterable[Finding]) -> List[Finding]:
            nonlocal omitted
            kept: List[Finding] = []
            for finding in findings:
                if entries.degraded:
                    finding = finding.capped()
                if finding.confidence == Confidence.LOW and not self.include_low_confidence:
                    omitted += 1
                    continue
                kept.append(finding)
            return sorted(kept, key=lambda f: f.subject.sort_key())

        unused_files = select(reachability.findings)
        unused_exports = select(export_findings)
        unused_dependencies = select(dependencies.findings)
        unused_assets = select(assets.findings)

        total_sources = len(inventory.sources)
        if entries.degraded:
            status = STATUS_DEGRADED
        elif any(u.source in reachability.reached for u in graph.unresolved):
            # Only imports from reached files count.
            status = STATUS_REDUCED
        else:
            status = STATUS_FULL

        summary = ReportSummary(
            total_source_files=total_sources,
            total_asset_files=len(inventory.assets),
            reached_files=len(reachability.reached),
            coverage_ratio=round(len(reachability.reached) / total_sources, 4) if total_sources else 0.0,
            entry_count=len(entries.files),
            entry_origin=entries.origin,
            total_exports=sum(len(parsed.exports) for parsed in facts.values()),
            dependencies_checked=dependencies.checked,
            assets_considered=assets.considered,
            assets_used=assets.used,
            asset_coverage=round(assets.coverage, 4),
            unresolved_imports=len(graph.unresolved),
            confidence_status=status,
            omitted_low_confidence=omitted,
            unused_files=len(unused_files),
            unused_exports=len(unused_exports),
            unused_dependencies=len(unused_dependencies),
            unused_assets=len(unused_assets),
        )

        report = Report(
            root=str(inventory.root),
            summary=summary,
            unused_files=unused_files,
            unused_exports=unused_exports,
            unused_dependencies=unused_dependencies,
            unused_assets=unused_assets,
            entries=sorted(entries.files),
            warnings=collect_warnings(entries, graph, facts),
        )
        logger.info(
            "Report: %d finding(s), %d low-confidence omitted, status %s",
            len(report.findings()), omitted, status,
        )
        return report


def collect_warnings(entries: EntrySet, graph: ModuleGraph, facts: Mapping[str, ParsedFacts]) -> List[str]:
    warnings: List[str] = []
    if entries.degraded:
        warnings.append("no entry points found; all findings are low confidence")
    for rel_path in sorted(facts):
        for message in facts[rel_path].parse_warnings:
            warnings.append(f"{rel_path}: {message}")
    for item in sorted(graph.unresolved, key=lambda u: (u.source, u.spec)):
        spec = item.spec or "<dynamic>"
        warnings.append(f"{item.source}: unresolved import '{spec}' ({item.reason})")
    return warnings
