"""tsconfig.json / jsconfig.json path-alias discovery."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Set

from .parser import strip_comments

logger = logging.getLogger(__name__)

SEED_CONFIGS = ("tsconfig.json", "jsconfig.json", "tsconfig.app.json", "tsconfig.base.json")

TRAILING_COMMA_RE = re.compile(r",(\s*[}\]])")


@dataclass(frozen=True)
class AliasRule:
    """``key`` may contain one ``*``; ``target`` is joined to ``base_dir``."""

    key: str
    target: str
    base_dir: Path

    def match(self, specifier: str) -> Optional[str]:
        """Text captured by ``*`` when *specifier* matches, ``""`` for exact keys."""
        return match_alias(self.key, specifier)

    def apply(self, captured: str) -> Path:
        return self.base_dir / self.target.replace("*", captured, 1)


@dataclass
class PathConfig:
    base_dirs: List[Path] = field(default_factory=list)
    rules: List[AliasRule] = field(default_factory=list)
    sources: List[Path] = field(default_factory=list)


def sanitize_jsonc(text: str) -> str:
    """Strip comments and trailing commas so the standard JSON parser accepts it."""
    current = strip_comments(text)
    while True:
        updated = TRAILING_COMMA_RE.sub(r"\1", current)
        if updated == current:
            return updated
        current = updated


def load_jsonc(path: Path) -> Optional[Dict[str, Any]]:
    try:
        raw = path.read_text(encoding="utf-8", errors="ignore")
    except OSError as exc:
        logger.warning("Could not read %s: %s", path, exc)
        return None
    try:
        value = json.loads(sanitize_jsonc(raw))
    except json.JSONDecodeError as exc:
        logger.warning("Ignoring malformed %s: %s", path, exc)
        return None
    return value if isinstance(value, dict) else None


def match_alias(key: str, specifier: str) -> Optional[str]:
    if "*" not in key:
        return "" if key == specifier else None
    prefix, suffix = key.split("*", 1)
    if (
        specifier.startswith(prefix)
        and specifier.endswith(suffix)
        and len(specifier) >= len(prefix) + len(suffix)
    ):
        return specifier[len(prefix):len(specifier) - len(suffix)]
    return None


def load_path_config(root: Path) -> PathConfig:
    """Collect baseUrl dirs and ``paths`` rules from every related config file.

    Seeds are the conventional config names at *root*; ``extends`` and
    ``references`` are followed recursively, each file visited once.
    """
    discovered: List[Path] = []
    visiting: Set[Path] = set()
    for name in SEED_CONFIGS:
        seed = root / name
        if seed.is_file():
            _discover(seed, discovered, visiting)

    result = PathConfig(sources=discovered)
    for config_path in discovered:
        payload = load_jsonc(config_path)
        if payload is None:
            continue
        compiler = payload.get("compilerOptions") or {}
        if not isinstance(compiler, dict):
            continue
        config_dir = config_path.parent

        base_url = compiler.get("baseUrl")
        if isinstance(base_url, str):
            result.base_dirs.append((config_dir / base_url).resolve())

        paths = compiler.get("paths")
        if isinstance(paths, dict):
            # paths resolve against baseUrl when set, else the config dir
            anchor = (config_dir / base_url).resolve() if isinstance(base_url, str) else config_dir
            for key, targets in paths.items():
                if isinstance(targets, str):
                    targets = [targets]
                if not isinstance(targets, list):
                    continue
                for target in targets:
                    if isinstance(target, str):
                        result.rules.append(AliasRule(str(key), target, anchor))

    logger.debug(
        "Loaded %d alias rule(s) and %d baseUrl dir(s) from %d config file(s)",
        len(result.rules), len(result.base_dirs), len(discovered),
    )
    return result


def _discover(config_path: Path, out: List[Path], visiting: Set[Path]) -> None:
    canonical = config_path.resolve()
    if canonical in visiting or not canonical.is_file():
        return
    visiting.add(canonical)
    out.append(canonical)

    payload = load_jsonc(canonical)
    if payload is None:
        return

    config_dir = canonical.parent
    extends = payload.get("extends")
    for ref in extends if isinstance(extends, list) else [extends]:
        if isinstance(ref, str):
            target = _reference_path(config_dir, ref)
            if target is not None:
                _discover(target, out, visiting)

    for ref in payload.get("references") or []:
        if isinstance(ref, dict) and isinstance(ref.get("path"), str):
            target = _reference_path(config_dir, ref["path"])
            if target is not None:
                _discover(target, out, visiting)


def _reference_path(base_dir: Path, raw: str) -> Optional[Path]:
    if not raw.strip():
        return None
    candidate = Path(raw) if Path(raw).is_absolute() else base_dir / raw
    if candidate.is_dir():
        candidate = candidate / "tsconfig.json"
    if candidate.is_file():
        return candidate
    if not candidate.suffix:
        with_json = candidate.with_suffix(".json")
        if with_json.is_file():
            return with_json
    # Package-style extends (e.g. "@tsconfig/node18") live in node_modules.
    logger.debug("Unresolvable tsconfig reference %r from %s", raw, base_dir)
    return None
