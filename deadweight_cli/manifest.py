"""package.json reading with documented fallbacks for missing or malformed fields."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

DEPENDENCY_SECTIONS = (
    "dependencies",
    "devDependencies",
    "peerDependencies",
    "optionalDependencies",
)

ENTRY_FIELDS = ("main", "module", "types", "typings", "browser", "bin", "exports")

# Preferred condition order when a subpath import maps to a conditional object.
_CONDITION_ORDER = ("import", "module", "browser", "node", "require", "default")


@dataclass
class PackageManifest:
    """Parsed root ``package.json``; every field is optional."""

    path: Optional[Path] = None
    data: Dict[str, Any] = field(default_factory=dict)

    @property
    def exists(self) -> bool:
        return self.path is not None

    def dependencies(self, include_non_prod: bool = False) -> Dict[str, str]:
        """Declared package name -> section it came from (first section wins)."""
        sections = DEPENDENCY_SECTIONS if include_non_prod else DEPENDENCY_SECTIONS[:1]
        declared: Dict[str, str] = {}
        for section in sections:
            block = self.data.get(section)
            if not isinstance(block, dict):
                continue
            for name in block:
                declared.setdefault(str(name), section)
        return declared

    def all_dependency_names(self) -> List[str]:
        return sorted(self.dependencies(include_non_prod=True))

    def entry_targets(self) -> List[str]:
        """String targets of the entry fields, in field order, subpath patterns skipped."""
        targets: List[str] = []
        for name in ENTRY_FIELDS:
            _collect_strings(self.data.get(name), targets)
        return [t for t in targets if "*" not in t]

    def subpath_imports(self) -> Dict[str, str]:
        """``imports`` map (``#x`` -> target), conditional objects reduced to one target."""
        block = self.data.get("imports")
        if not isinstance(block, dict):
            return {}
        out: Dict[str, str] = {}
        for key, value in block.items():
            target = _pick_condition(value)
            if target is not None and str(key).startswith("#"):
                out[str(key)] = target
        return out


def load_manifest(root: Path) -> PackageManifest:
    path = Path(root) / "package.json"
    if not path.is_file():
        return PackageManifest()
    try:
        data = json.loads(path.read_text(encoding="utf-8", errors="ignore"))
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("Ignoring malformed %s: %s", path, exc)
        return PackageManifest(path=path)
    if not isinstance(data, dict):
        logger.warning("Ignoring %s: top level is not an object", path)
        return PackageManifest(path=path)
    return PackageManifest(path=path, data=data)


def _collect_strings(value: Any, out: List[str]) -> None:
    if isinstance(value, str):
        out.append(value)
    elif isinstance(value, list):
        for item in value:
            _collect_strings(item, out)
    elif isinstance(value, dict):
        for item in value.values():
            _collect_strings(item, out)


def _pick_condition(value: Any) -> Optional[str]:
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        for item in value:
            picked = _pick_condition(item)
            if picked is not None:
                return picked
        return None
    if isinstance(value, dict):
        for condition in _CONDITION_ORDER:
            if condition in value:
                picked = _pick_condition(value[condition])
                if picked is not None:
                    return picked
        for item in value.values():
            picked = _pick_condition(item)
            if picked is not None:
                return picked
    return None
