"""Import specifier resolution against the walked inventory."""

from __future__ import annotations

import logging
import os
import posixpath
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional

from . import config
from .tsconfig import AliasRule, PathConfig
from .walker import Inventory

logger = logging.getLogger(__name__)

NODE_BUILTINS = frozenset({
    "assert", "async_hooks", "buffer", "child_process", "cluster", "console",
    "constants", "crypto", "dgram", "diagnostics_channel", "dns", "domain",
    "events", "fs", "http", "http2", "https", "inspector", "module", "net",
    "os", "path", "perf_hooks", "process", "punycode", "querystring",
    "readline", "repl", "stream", "string_decoder", "sys", "timers", "tls",
    "trace_events", "tty", "url", "util", "v8", "vm", "wasi", "worker_threads",
    "zlib",
})

# Compiled output extensions and the TypeScript sources they come from.
TS_SUBSTITUTES: Dict[str, tuple] = {
    ".js": (".ts", ".tsx"),
    ".jsx": (".tsx",),
    ".mjs": (".mts",),
    ".cjs": (".cts",),
}

PACKAGE_NAME_RE = re.compile(r"^(?:@[A-Za-z0-9][\w.-]*/)?[A-Za-z0-9][\w.-]*(?:/.*)?$")


class ResolutionKind(str, Enum):
    LOCAL = "local"
    EXTERNAL = "external"
    BUILTIN = "builtin"
    UNTRACKED = "untracked"
    UNRESOLVED = "unresolved"


@dataclass(frozen=True)
class Resolution:
    kind: ResolutionKind
    # Relative path for LOCAL, package name for EXTERNAL.
    target: Optional[str] = None
    reason: str = ""


# ---------------------------------------------------------------------------
# Specifier helpers
# ---------------------------------------------------------------------------

def normalize_specifier(spec: str) -> str:
    spec = spec.strip()
    for sep in ("?", "#"):
        # "#x" is a subpath import, not a hash
        if sep in spec and not (sep == "#" and spec.startswith("#")):
            spec = spec.split(sep, 1)[0]
    return spec.strip()


def is_relative(spec: str) -> bool:
    return spec in (".", "..") or spec.startswith(("./", "../"))


def is_builtin(spec: str) -> bool:
    if spec.startswith("node:"):
        return True
    return spec.split("/", 1)[0] in NODE_BUILTINS


def package_name(spec: str) -> str:
    parts = spec.split("/")
    if spec.startswith("@") and len(parts) > 1:
        return f"{parts[0]}/{parts[1]}"
    return parts[0]


def looks_like_package(spec: str) -> bool:
    if is_relative(spec) or spec.startswith(("/", "#", "~", "@/")):
        return False
    return bool(PACKAGE_NAME_RE.match(spec))


def glob_to_regex(pattern: str) -> "re.Pattern[str]":
    """Translate a root-relative glob (``*``, ``**``, ``?``, ``{a,b}``) to an anchored regex."""
    out: List[str] = []
    i = 0
    n = len(pattern)
    while i < n:
        c = pattern[i]
        if c == "*":
            if pattern.startswith("**", i):
                i += 2
                if i < n and pattern[i] == "/":
                    out.append("(?:.*/)?")
                    i += 1
                else:
                    out.append(".*")
                continue
            out.append("[^/]*")
        elif c == "?":
            out.append("[^/]")
        elif c == "{":
            close = pattern.find("}", i)
            if close == -1:
                out.append(re.escape(c))
            else:
                options = pattern[i + 1:close].split(",")
                out.append("(?:" + "|".join(re.escape(o) for o in options) + ")")
                i = close + 1
                continue
        else:
            out.append(re.escape(c))
        i += 1
    return re.compile("^" + "".join(out) + "$")


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------

class ModuleResolver:
    """Resolve specifiers to inventory files, packages or nothing.

    Alias rules are tried in order: project config aliases, manifest
    ``imports`` (``#x``), then tsconfig/jsconfig ``paths``.
    """

    def __init__(
        self,
        inventory: Inventory,
        aliases: Optional[Dict[str, str]] = None,
        declared_packages: Iterable[str] = (),
        subpath_imports: Optional[Dict[str, str]] = None,
        path_config: Optional[PathConfig] = None,
    ) -> None:
        self.inventory = inventory
        self.root = inventory.root
        self.declared = set(declared_packages)
        path_config = path_config or PathConfig()

        self.rules: List[AliasRule] = []
        for key, target in (aliases or {}).items():
            self.rules.extend(self._config_alias_rules(key, target))
        for key, target in (subpath_imports or {}).items():
            self.rules.append(AliasRule(key, target, self.root))
        self.rules.extend(path_config.rules)

        self.base_dirs: List[Path] = []
        for base in [self.root, self.root / "src", *path_config.base_dirs]:
            if base not in self.base_dirs:
                self.base_dirs.append(base)

    def _config_alias_rules(self, key: str, target: str) -> List[AliasRule]:
        key = key.rstrip("/") if "*" not in key else key
        target = target.rstrip("/") or "."
        if "*" in key:
            return [AliasRule(key, target, self.root)]
        return [
            AliasRule(key, target, self.root),
            AliasRule(f"{key}/*", f"{target}/*", self.root),
        ]

    # ------------------------------------------------------------------
    # Specifiers
    # ------------------------------------------------------------------

    def resolve(self, importer: str, spec: str) -> Resolution:
        spec = normalize_specifier(spec)
        if not spec:
            return Resolution(ResolutionKind.UNRESOLVED, reason="empty specifier")

        if is_relative(spec):
            base = self.root / posixpath.dirname(importer)
            return self.lookup(base / spec) or self._unresolved("no file matches relative path")

        if spec.startswith("/"):
            trimmed = spec.lstrip("/")
            return (
                self.lookup(self.root / trimmed)
                or self.lookup(self.root / "public" / trimmed)
                or self._unresolved("no file matches root-absolute path")
            )

        alias_matched = False
        for rule in self.rules:
            captured = rule.match(spec)
            if captured is None:
                continue
            if rule.key != "*":
                alias_matched = True
            found = self.lookup(rule.apply(captured))
            if found is not None:
                return found
        if alias_matched:
            return self._unresolved(f"alias matched but no target exists for '{spec}'")

        if is_builtin(spec):
            return Resolution(ResolutionKind.BUILTIN, spec)

        name = package_name(spec)
        if name in self.declared:
            return Resolution(ResolutionKind.EXTERNAL, name)

        for base in self.base_dirs:
            found = self.lookup(base / spec)
            if found is not None:
                return found

        if looks_like_package(spec):
            return Resolution(ResolutionKind.EXTERNAL, name)
        return self._unresolved("specifier is neither local nor a package name")

    @staticmethod
    def _unresolved(reason: str) -> Resolution:
        return Resolution(ResolutionKind.UNRESOLVED, reason=reason)

    def candidates(self, raw: Path) -> Iterator[Path]:
        yield raw
        name = raw.name
        for ext in config.RESOLVE_EXTENSIONS:
            yield raw.with_name(name + ext)
        for ext in TS_SUBSTITUTES.get(raw.suffix.lower(), ()):
            yield raw.with_suffix(ext)
        for ext in config.RESOLVE_EXTENSIONS:
            yield raw / f"index{ext}"

    def lookup(self, raw: Path) -> Optional[Resolution]:
        untracked = False
        for candidate in self.candidates(raw):
            normalized = Path(os.path.normpath(candidate))
            rel = self.inventory.rel(normalized)
            if rel is not None and rel in self.inventory:
                return Resolution(ResolutionKind.LOCAL, rel)
            if not untracked and normalized.is_file():
                untracked = True
        if untracked:
            return Resolution(ResolutionKind.UNTRACKED, reason="file exists outside the inventory")
        return None

    # ------------------------------------------------------------------
    # Patterns and prefixes
    # ------------------------------------------------------------------

    def _to_root_relative(self, importer: str, spec: str) -> Optional[str]:
        """Root-relative posix form of a relative, root-absolute or aliased spec."""
        if is_relative(spec):
            joined = posixpath.join(posixpath.dirname(importer), spec)
        elif spec.startswith("/"):
            joined = spec.lstrip("/")
        else:
            for rule in self.rules:
                captured = rule.match(spec)
                if captured is None:
                    continue
                rel = self.inventory.rel(Path(os.path.normpath(rule.apply(captured))))
                if rel is not None:
                    return rel
            return None
        normalized = posixpath.normpath(joined)
        if normalized == ".." or normalized.startswith("../"):
            return None
        return "" if normalized == "." else normalized

    def glob_pattern(self, importer: str, pattern: str) -> Optional[str]:
        """Root-relative version of a glob import pattern (negation stripped)."""
        pattern = pattern[1:] if pattern.startswith("!") else pattern
        if not (is_relative(pattern) or pattern.startswith("/")):
            if not any(rule.match(pattern) is not None for rule in self.rules):
                pattern = "./" + pattern
        return self._to_root_relative(importer, pattern)

    def dynamic_prefix(self, importer: str, prefix: str) -> Optional[str]:
        """Root-relative path prefix targeted by a non-literal import, if local."""
        if not prefix:
            return None
        head, _, tail = prefix.rpartition("/")
        if not head and not is_relative(prefix):
            return None
        directory = self._to_root_relative(importer, head + "/" if head else prefix)
        if directory is None:
            return None
        if head:
            combined = f"{directory}/{tail}" if directory else tail
        else:
            combined = directory
        return combined or None
