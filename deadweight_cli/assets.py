"""Asset usage detection."""

from __future__ import annotations

import logging
import posixpath
import re
from dataclasses import dataclass, field
from typing import Iterable, List, Mapping, Optional, Set

from .models import (
    AssetRef,
    Confidence,
    FileRecord,
    Finding,
    FindingKind,
    ModuleGraph,
    ParsedFacts,
)
from .parser import ATTR_RE, CSS_URL_RE, looks_like_path
from .resolver import ModuleResolver, ResolutionKind, glob_to_regex
from .walker import Inventory

logger = logging.getLogger(__name__)

STYLESHEET_SUFFIXES = (".css", ".scss", ".sass", ".less")
CSS_IMPORT_RE = re.compile(r"""@(?:import|use|forward)\s+(?:url\()?\s*['"]([^'"]+)['"]""")


@dataclass
class AssetAnalysis:
    findings: List[Finding] = field(default_factory=list)
    considered: int = 0
    used: int = 0

    @property
    def coverage(self) -> float:
        return self.used / self.considered if self.considered else 0.0


def normalize_asset_root(value: str) -> str:
    value = value.strip().replace("\\", "/")
    while value.startswith("./"):
        value = value[2:]
    return value.strip("/")


def filter_by_roots(records: Iterable[FileRecord], asset_roots: Iterable[str]) -> List[FileRecord]:
    roots = [r for r in (normalize_asset_root(v) for v in asset_roots) if r]
    records = list(records)
    if not roots:
        return records
    return [
        r for r in records
        if any(r.rel_path == root or r.rel_path.startswith(f"{root}/") for root in roots)
    ]


def reference_spellings(rel_path: str) -> Set[str]:
    """Ways a literal can name an asset: path, ``/path``, without ``src/``/``public/``, bare name."""
    spellings = {rel_path, f"/{rel_path}", posixpath.basename(rel_path)}
    for prefix in ("src/", "public/"):
        if rel_path.startswith(prefix):
            stripped = rel_path[len(prefix):]
            spellings.update({stripped, f"/{stripped}"})
    return spellings


def is_public_asset(rel_path: str) -> bool:
    return "public" in rel_path.split("/")[:-1]


class AssetUsageDetector:
    """Classify each asset as used, glob-only, public-unreferenced or unreferenced."""

    def __init__(
        self,
        inventory: Inventory,
        graph: ModuleGraph,
        facts: Mapping[str, ParsedFacts],
        resolver: ModuleResolver,
        asset_roots: Iterable[str] = (),
    ) -> None:
        self.inventory = inventory
        self.graph = graph
        self.facts = facts
        self.resolver = resolver
        self.asset_roots = list(asset_roots)

    def run(self) -> AssetAnalysis:
        assets = filter_by_roots(self.inventory.assets, self.asset_roots)
        literals: Set[str] = set()
        resolved: Set[str] = set()
        glob_targets: Set[str] = set()
        glob_regexes = []

        for edge in self.graph.edges:
            if edge.is_external:
                continue
            if edge.via_glob:
                glob_targets.add(edge.target)
            else:
                resolved.add(edge.target)

        for source, parsed in self.facts.items():
            for ref in parsed.asset_refs:
                if ref.is_glob:
                    pattern = self.resolver.glob_pattern(source, ref.raw_spec)
                    if pattern is not None:
                        glob_regexes.append(glob_to_regex(pattern))
                    continue
                self._note_literal(source, ref.raw_spec, literals, resolved)

        for record in self.inventory.records:
            if record.suffix in STYLESHEET_SUFFIXES or record.suffix == ".html":
                for spec in self._markup_refs(record):
                    self._note_literal(record.rel_path, spec, literals, resolved)

        analysis = AssetAnalysis(considered=len(assets))
        for record in assets:
            rel = record.rel_path
            if rel in resolved or reference_spellings(rel) & literals:
                analysis.used += 1
                continue
            subject = AssetRef(rel)
            if rel in glob_targets or any(regex.match(rel) for regex in glob_regexes):
                analysis.findings.append(Finding(
                    subject, FindingKind.UNUSED_ASSET, Confidence.LOW,
                    "only matched by a glob pattern",
                ))
            elif is_public_asset(rel):
                analysis.findings.append(Finding(
                    subject, FindingKind.UNUSED_ASSET, Confidence.LOW,
                    "not referenced in source; public files may be requested by URL at runtime",
                ))
            else:
                analysis.findings.append(Finding(
                    subject, FindingKind.UNUSED_ASSET, Confidence.HIGH,
                    "not referenced by any source file",
                ))

        logger.info("Assets: %d considered, %d used", analysis.considered, analysis.used)
        return analysis

    def _note_literal(self, source: str, raw: str, literals: Set[str], resolved: Set[str]) -> None:
        spec = raw.split("?", 1)[0].split("#", 1)[0].strip()
        if not spec:
            return
        literals.add(spec)
        target = self._resolve(source, spec)
        if target is not None:
            resolved.add(target)

    def _resolve(self, source: str, spec: str) -> Optional[str]:
        resolution = self.resolver.resolve(source, spec)
        if resolution.kind == ResolutionKind.LOCAL:
            return resolution.target
        return None

    @staticmethod
    def _markup_refs(record: FileRecord) -> List[str]:
        try:
            text = record.content
        except OSError as exc:
            logger.warning("Could not read %s: %s", record.rel_path, exc)
            return []
        refs = [m.group(1) for m in CSS_URL_RE.finditer(text)]
        refs.extend(m.group(1) for m in CSS_IMPORT_RE.finditer(text))
        if record.suffix == ".html":
            refs.extend(m.group(1) for m in ATTR_RE.finditer(text))
        return [r for r in refs if looks_like_path(r) or r.startswith(".")]
