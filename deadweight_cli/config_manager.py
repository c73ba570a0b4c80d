"""Configuration manager for deadweight using TOML files.

Two optional files feed :class:`AnalysisOptions`:

- the user file ``~/.deadweight/config.toml`` (``DEADWEIGHT_HOME`` overrides the directory)
- the project file ``.deadweight.toml`` at the analyzed root

Both use the same layout::

    [analysis]
    entries = ["src/main.ts"]
    asset_roots = ["src/assets", "public"]
    ignore = ["legacy/**"]
    include_non_prod_deps = false
    include_low_confidence = false
    jobs = 8

    [aliases]
    "@" = "src"
    "~components" = "src/components"

Command-line values win over the project file, which wins over the user file.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import toml

from . import config

logger = logging.getLogger(__name__)

_LIST_KEYS = ("entries", "asset_roots", "ignore")
_BOOL_KEYS = ("include_non_prod_deps", "include_low_confidence")


@dataclass
class AnalysisOptions:
    root: Path
    entries: List[str] = field(default_factory=list)
    asset_roots: List[str] = field(default_factory=list)
    ignore: List[str] = field(default_factory=list)
    aliases: Dict[str, str] = field(default_factory=dict)
    include_non_prod_deps: bool = False
    include_low_confidence: bool = False
    jobs: int = config.DEFAULT_JOBS

    @classmethod
    def from_sources(
        cls,
        root: Path,
        overrides: Optional[Dict[str, Any]] = None,
        use_user_config: bool = True,
    ) -> "AnalysisOptions":
        """Merge user file, project file and explicit *overrides* (highest precedence).

        ``None`` and empty-list override values mean "not given" and do not
        shadow file values.
        """
        merged: Dict[str, Any] = {}
        aliases: Dict[str, str] = {}

        layers = []
        if use_user_config:
            layers.append(load_toml(config.USER_CONFIG_FILE))
        layers.append(load_toml(Path(root) / config.PROJECT_CONFIG_NAME))

        for layer in layers:
            merged.update(_analysis_section(layer))
            aliases.update(_alias_section(layer))

        for key, value in (overrides or {}).items():
            if key == "aliases":
                aliases.update(value or {})
                continue
            if value is None or (isinstance(value, list) and not value):
                continue
            merged[key] = value

        jobs = merged.get("jobs", config.DEFAULT_JOBS)
        try:
            jobs = max(1, int(jobs))
        except (TypeError, ValueError):
            logger.warning("Ignoring invalid jobs value %r", jobs)
            jobs = config.DEFAULT_JOBS

        return cls(
            root=Path(root),
            entries=list(merged.get("entries", [])),
            asset_roots=split_csv(merged.get("asset_roots", [])),
            ignore=list(merged.get("ignore", [])),
            aliases=aliases,
            include_non_prod_deps=bool(merged.get("include_non_prod_deps", False)),
            include_low_confidence=bool(merged.get("include_low_confidence", False)),
            jobs=jobs,
        )


def load_toml(path: Path) -> Dict[str, Any]:
    """Load a TOML file; a missing or broken file yields an empty dict."""
    if not path.is_file():
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            return toml.load(f)
    except (OSError, toml.TomlDecodeError) as exc:
        logger.warning("Could not read config file %s: %s", path, exc)
        return {}


def save_project_config(root: Path, analysis: Dict[str, Any], aliases: Optional[Dict[str, str]] = None) -> Path:
    """Write ``.deadweight.toml`` at *root*, preserving unrelated sections."""
    path = Path(root) / config.PROJECT_CONFIG_NAME
    payload = load_toml(path)
    payload["analysis"] = {**payload.get("analysis", {}), **analysis}
    if aliases:
        payload["aliases"] = {**payload.get("aliases", {}), **aliases}
    with open(path, "w", encoding="utf-8") as f:
        toml.dump(payload, f)
    return path


def split_csv(values: Any) -> List[str]:
    """Flatten repeated and comma-separated values: ``["a,b", "c"]`` -> ``["a", "b", "c"]``."""
    if isinstance(values, str):
        values = [values]
    out: List[str] = []
    for value in values or []:
        for part in str(value).split(","):
            part = part.strip()
            if part:
                out.append(part)
    return out


def parse_alias_options(raw: List[str]) -> Dict[str, str]:
    """Parse ``KEY=PATH`` command-line alias options."""
    aliases: Dict[str, str] = {}
    for item in raw:
        if "=" not in item:
            raise ValueError(f"Alias must look like KEY=PATH, got '{item}'")
        key, target = item.split("=", 1)
        key, target = key.strip(), target.strip()
        if not key or not target:
            raise ValueError(f"Alias must look like KEY=PATH, got '{item}'")
        aliases[key] = target
    return aliases


def _analysis_section(payload: Dict[str, Any]) -> Dict[str, Any]:
    section = payload.get("analysis", {})
    if not isinstance(section, dict):
        logger.warning("Ignoring non-table [analysis] section")
        return {}
    out: Dict[str, Any] = {}
    for key in _LIST_KEYS:
        if key in section:
            value = section[key]
            out[key] = [value] if isinstance(value, str) else list(value)
    for key in _BOOL_KEYS:
        if key in section:
            out[key] = bool(section[key])
    if "jobs" in section:
        out["jobs"] = section["jobs"]
    return out


def _alias_section(payload: Dict[str, Any]) -> Dict[str, str]:
    section = payload.get("aliases", {})
    if not isinstance(section, dict):
        logger.warning("Ignoring non-table [aliases] section")
        return {}
    return {str(k): str(v) for k, v in section.items() if isinstance(v, str)}
