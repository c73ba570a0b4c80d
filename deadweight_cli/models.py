"""Core data models shared by the walker, parser, analyzers and trash layers."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from functools import cached_property
from pathlib import Path
from typing import ClassVar, Dict, FrozenSet, List, Optional, Tuple, Union


# ---------------------------------------------------------------------------
# Inventory
# ---------------------------------------------------------------------------

class FileKind(str, Enum):
    SOURCE = "source"
    ASSET = "asset"
    MANIFEST = "manifest"
    OTHER = "other"


@dataclass(frozen=True)
class FileRecord:
    path: Path
    rel_path: str
    kind: FileKind

    @cached_property
    def content(self) -> str:
        """File text, read on first access and cached for the run."""
        return self.path.read_text(encoding="utf-8", errors="ignore")

    @property
    def suffix(self) -> str:
        return self.path.suffix.lower()


# ---------------------------------------------------------------------------
# Parsed facts
# ---------------------------------------------------------------------------

class ImportKind(str, Enum):
    STATIC = "static"
    DYNAMIC = "dynamic"
    REEXPORT = "re-export"
    TYPE_ONLY = "type-only"


class ExportKind(str, Enum):
    NAMED = "named"
    DEFAULT = "default"
    REEXPORT = "re-export"


class Confidence(str, Enum):
    HIGH = "high"
    LOW = "low"


@dataclass(frozen=True)
class ImportEdge:
    """One import site. ``target_spec`` holds only the static prefix when ``literal`` is False."""

    target_spec: str
    kind: ImportKind
    symbols: FrozenSet[str] = frozenset()
    wildcard: bool = False
    literal: bool = True
    is_glob: bool = False
    side_effect: bool = False
    # Recovered from a statement the parser only partially understood.
    ambiguous: bool = False
    line: int = 0
    # Call-site column; patterns of one glob call share line and column.
    column: int = 0


@dataclass(frozen=True)
class ExportDecl:
    symbol: str
    kind: ExportKind
    source: Optional[str] = None
    original: Optional[str] = None
    line: int = 0


@dataclass(frozen=True)
class AssetReference:
    raw_spec: str
    is_glob: bool = False
    line: int = 0


@dataclass(frozen=True)
class ParsedFacts:
    rel_path: str
    dialect: str
    imports: Tuple[ImportEdge, ...] = ()
    exports: Tuple[ExportDecl, ...] = ()
    asset_refs: Tuple[AssetReference, ...] = ()
    identifiers: FrozenSet[str] = frozenset()
    parse_warnings: Tuple[str, ...] = ()

    @property
    def has_export_all(self) -> bool:
        return any(e.kind == ImportKind.REEXPORT and e.wildcard for e in self.imports)


# ---------------------------------------------------------------------------
# Graph
# ---------------------------------------------------------------------------

PACKAGE_PREFIX = "pkg:"


def package_node(name: str) -> str:
    return f"{PACKAGE_PREFIX}{name}"


@dataclass(frozen=True)
class GraphEdge:
    source: str
    target: str
    kind: ImportKind
    spec: str
    symbols: FrozenSet[str] = frozenset()
    wildcard: bool = False
    side_effect: bool = False
    confidence: Confidence = Confidence.HIGH
    via_glob: bool = False

    @property
    def is_external(self) -> bool:
        return self.target.startswith(PACKAGE_PREFIX)


@dataclass(frozen=True)
class UnresolvedEdge:
    source: str
    spec: str
    reason: str
    # Static directory prefix of a non-literal dynamic import, relative to the root.
    prefix: Optional[str] = None


@dataclass
class ModuleGraph:
    nodes: Dict[str, FileRecord]
    edges: List[GraphEdge] = field(default_factory=list)
    unresolved: List[UnresolvedEdge] = field(default_factory=list)

    def __post_init__(self) -> None:
        self._out: Dict[str, List[GraphEdge]] = {}
        self._in: Dict[str, List[GraphEdge]] = {}
        for edge in self.edges:
            self._index(edge)

    def _index(self, edge: GraphEdge) -> None:
        self._out.setdefault(edge.source, []).append(edge)
        self._in.setdefault(edge.target, []).append(edge)

    def add_edge(self, edge: GraphEdge) -> None:
        if not edge.is_external and edge.target not in self.nodes:
            raise ValueError(f"Edge target is not in the inventory: {edge.target}")
        self.edges.append(edge)
        self._index(edge)

    def out_edges(self, node: str) -> List[GraphEdge]:
        return self._out.get(node, [])

    def in_edges(self, node: str) -> List[GraphEdge]:
        return self._in.get(node, [])

    def external_packages(self) -> List[str]:
        return sorted(
            target[len(PACKAGE_PREFIX):]
            for target in self._in
            if target.startswith(PACKAGE_PREFIX)
        )


@dataclass(frozen=True)
class EntrySet:
    files: FrozenSet[str]
    origin: str
    degraded: bool = False


# ---------------------------------------------------------------------------
# Findings (tagged union of subjects)
# ---------------------------------------------------------------------------

class FindingKind(str, Enum):
    UNUSED_FILE = "unused-file"
    UNUSED_EXPORT = "unused-export"
    UNUSED_DEPENDENCY = "unused-dependency"
    UNUSED_ASSET = "unused-asset"


@dataclass(frozen=True)
class FileRef:
    tag: ClassVar[str] = "file"
    path: str

    def sort_key(self) -> Tuple[str, ...]:
        return (self.path,)


@dataclass(frozen=True)
class ExportRef:
    tag: ClassVar[str] = "export"
    path: str
    symbol: str

    def sort_key(self) -> Tuple[str, ...]:
        return (self.path, self.symbol)


@dataclass(frozen=True)
class DependencyRef:
    tag: ClassVar[str] = "dependency"
    name: str
    dep_type: str = "dependencies"

    def sort_key(self) -> Tuple[str, ...]:
        return (self.name,)


@dataclass(frozen=True)
class AssetRef:
    tag: ClassVar[str] = "asset"
    path: str

    def sort_key(self) -> Tuple[str, ...]:
        return (self.path,)


Subject = Union[FileRef, ExportRef, DependencyRef, AssetRef]


@dataclass(frozen=True)
class Finding:
    subject: Subject
    kind: FindingKind
    confidence: Confidence
    reason: str

    def capped(self) -> "Finding":
        """Copy of this finding with confidence lowered to LOW."""
        if self.confidence == Confidence.LOW:
            return self
        return Finding(self.subject, self.kind, Confidence.LOW, self.reason)

    def to_dict(self) -> Dict[str, str]:
        payload: Dict[str, str] = {"type": self.subject.tag}
        for key, value in vars(self.subject).items():
            payload[key] = value
        payload["kind"] = self.kind.value
        payload["confidence"] = self.confidence.value
        payload["reason"] = self.reason
        return payload


# ---------------------------------------------------------------------------
# Trash / deletion
# ---------------------------------------------------------------------------

class LogAction(str, Enum):
    DELETE = "delete"
    RESTORE = "restore"
    PURGE = "purge"


@dataclass(frozen=True)
class DeletionLogEntry:
    session_id: str
    original_path: str
    trashed_path: str
    action: LogAction
    timestamp: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "session_id": self.session_id,
            "original_path": self.original_path,
            "trashed_path": self.trashed_path,
            "action": self.action.value,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, str]) -> "DeletionLogEntry":
        return cls(
            session_id=str(payload["session_id"]),
            original_path=str(payload["original_path"]),
            trashed_path=str(payload["trashed_path"]),
            action=LogAction(payload["action"]),
            timestamp=str(payload["timestamp"]),
        )


@dataclass(frozen=True)
class TrashEntry:
    session_id: str
    original_path: str
    trashed_path: str
    deleted_at: str


@dataclass
class TrashSession:
    id: str
    created_at: str
    entries: List[TrashEntry] = field(default_factory=list)


@dataclass(frozen=True)
class ItemOutcome:
    path: str
    ok: bool
    error: Optional[str] = None
    trashed_path: Optional[str] = None

    def __str__(self) -> str:
        if self.ok:
            return f"✓ {self.path}"
        return f"✗ {self.path}: {self.error}"


@dataclass
class BatchOutcome:
    action: str
    session_id: Optional[str] = None
    items: List[ItemOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> List[ItemOutcome]:
        return [item for item in self.items if item.ok]

    @property
    def failed(self) -> List[ItemOutcome]:
        return [item for item in self.items if not item.ok]

    def __str__(self) -> str:
        return f"{self.action}: {len(self.succeeded)} succeeded, {len(self.failed)} failed"
