"""JS/TS module parser built on Tree-sitter.

Extracts import/require targets, re-exports, exported names, glob imports and
path-like string literals from each source file:

- ``.js``/``.jsx`` use the JavaScript grammar, typed files the TypeScript or
  TSX grammar; ``.vue`` / ``.svelte`` / ``.astro`` files are reduced to their
  ``<script>`` blocks first and template ``src=``/``href=`` values become
  asset references
- ES module, CommonJS, dynamic ``import()``, ``import.meta.glob`` and
  ``require.context`` forms are read from the syntax tree
- a non-literal call argument keeps its static prefix, so
  ``import(`./x/${y}`)`` becomes a non-literal import of ``./x/``

Files a grammar cannot load or parse cleanly go through a lexical scanner
instead: comments and regex literals are blanked, then the same forms are
matched with regular expressions. Anything neither path can classify is kept
as an ambiguous edge or a parse warning rather than silently dropped.
"""

from __future__ import annotations

import bisect
import logging
import re
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path, PurePosixPath
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional, Set, Tuple

import tree_sitter_javascript
import tree_sitter_typescript
from tree_sitter import Language, Parser as TSParser

from . import config
from .models import (
    AssetReference,
    ExportDecl,
    ExportKind,
    FileRecord,
    ImportEdge,
    ImportKind,
    ParsedFacts,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Dialect <-> file-extension mapping
# ---------------------------------------------------------------------------
DIALECT_MAP: Dict[str, str] = {}
DIALECT_MAP.update({ext: "script" for ext in config.SCRIPT_EXTENSIONS})
DIALECT_MAP.update({ext: "typed" for ext in config.TYPED_EXTENSIONS})
DIALECT_MAP.update({ext: "markup" for ext in config.MARKUP_EXTENSIONS})


def dialect_for(path: Path) -> Optional[str]:
    return DIALECT_MAP.get(path.suffix.lower())


# Grammar name -> function returning the tree-sitter Language capsule
GRAMMARS: Dict[str, Callable[[], Any]] = {
    "javascript": tree_sitter_javascript.language,
    "typescript": tree_sitter_typescript.language_typescript,
    "tsx": tree_sitter_typescript.language_tsx,
}


def grammar_for(rel_path: str, dialect: str) -> str:
    suffix = PurePosixPath(rel_path).suffix.lower()
    if suffix == ".tsx":
        return "tsx"
    if suffix in config.TYPED_EXTENSIONS or dialect in ("typed", "markup"):
        return "typescript"
    return "javascript"


# ---------------------------------------------------------------------------
# Patterns
# ---------------------------------------------------------------------------
_IDENT = r"[A-Za-z_$][\w$]*"
_QUOTED = r"""(['"])([^'"\n]+)\1"""

IMPORT_FROM_RE = re.compile(
    r"(?:^|;)\s*(?P<kw>import)\s+(?P<type>type\s+)?(?P<clause>[^;'\"`()]+?)\s+from\s*"
    + r"""(?P<q>['"])(?P<spec>[^'"\n]+)(?P=q)""",
    re.MULTILINE,
)
IMPORT_SIDE_EFFECT_RE = re.compile(
    r"""(?:^|;)\s*(?P<kw>import)\s*(?P<q>['"])(?P<spec>[^'"\n]+)(?P=q)""",
    re.MULTILINE,
)
IMPORT_EQUALS_RE = re.compile(
    r"(?:^|;)\s*(?:export\s+)?(?P<kw>import)\s+(?:type\s+)?" + _IDENT
    + r"""\s*=\s*require\s*\(\s*(?P<q>['"])(?P<spec>[^'"\n]+)(?P=q)\s*\)""",
    re.MULTILINE,
)
IMPORT_STATEMENT_RE = re.compile(r"(?:^|;)\s*(?P<kw>import)\b(?!\s*[(.])", re.MULTILINE)

EXPORT_DECL_RE = re.compile(
    r"^\s*export\s+(?:declare\s+)?(?:async\s+)?(?:abstract\s+)?"
    r"(?:(?:const\s+enum|const|let|var|class|interface|type|enum|namespace)\s+|function\s*\*?\s*)"
    r"(" + _IDENT + r")",
    re.MULTILINE,
)
EXPORT_DESTRUCTURE_RE = re.compile(
    r"^\s*export\s+(?:const|let|var)\s*([{\[])([^}\]]*)[}\]]\s*=",
    re.MULTILINE,
)
EXPORT_DEFAULT_RE = re.compile(r"^\s*export\s+default\b", re.MULTILINE)
EXPORT_LIST_RE = re.compile(
    r"^\s*export\s+(?:type\s+)?\{([^}]*)\}(?:\s*from\s*" + _QUOTED + r")?",
    re.MULTILINE,
)
EXPORT_ALL_RE = re.compile(
    r"^\s*export\s+(?:type\s+)?\*\s*(?:as\s+(" + _IDENT + r")\s+)?from\s*" + _QUOTED,
    re.MULTILINE,
)

CALL_RE = re.compile(r"(?<![\w$.])(?P<fn>import|require(?:\.resolve)?)\s*\(")
DESTRUCTURE_TAIL_RE = re.compile(r"(?:const|let|var)\s*\{([^{}]*)\}\s*=\s*(?:await\s+)?$")
META_GLOB_RE = re.compile(r"import\.meta\.glob(?:Eager)?\s*(?:<[^>()]*>)?\s*\(")
REQUIRE_CONTEXT_RE = re.compile(
    r"require\.context\s*\(\s*" + _QUOTED + r"\s*(?:,\s*(true|false)\s*)?"
)

STRING_LITERAL_RE = re.compile(
    r"""'([^'\\\n]*(?:\\.[^'\\\n]*)*)'|"([^"\\\n]*(?:\\.[^"\\\n]*)*)"|`([^`\\$]*(?:\\.[^`\\$]*)*)`"""
)
CSS_URL_RE = re.compile(r"""url\(\s*['"]?([^'")\s]+)['"]?\s*\)""")
ATTR_RE = re.compile(r"""\b(?:src|href|poster|srcset|data-src)\s*=\s*['"]([^'"]+)['"]""", re.IGNORECASE)
SCRIPT_BLOCK_RE = re.compile(r"(<script\b[^>]*>)(.*?)</script\s*>", re.IGNORECASE | re.DOTALL)
IDENT_TOKEN_RE = re.compile(_IDENT)

_URL_PREFIXES = ("http://", "https://", "//", "data:", "mailto:", "tel:", "#", "javascript:")


# ===================================================================
# Parser
# ===================================================================

class ModuleParser:
    """Parse source files into :class:`ParsedFacts`, in parallel at file level."""

    def __init__(self, jobs: int = config.DEFAULT_JOBS) -> None:
        self.jobs = max(1, jobs)
        self._languages: Dict[str, Language] = {}
        self._local = threading.local()
        self._init_languages()

    # ------------------------------------------------------------------
    # Initialisation
    # ------------------------------------------------------------------

    def _init_languages(self) -> None:
        for name, loader in GRAMMARS.items():
            try:
                self._languages[name] = Language(loader())
                logger.debug("Loaded tree-sitter grammar for %s", name)
            except Exception as exc:
                logger.warning("Could not load tree-sitter grammar for %s: %s", name, exc)

    def _ts_parser(self, grammar: str) -> TSParser:
        # Parser objects are not shared between worker threads.
        parsers = getattr(self._local, "parsers", None)
        if parsers is None:
            parsers = self._local.parsers = {}
        parser = parsers.get(grammar)
        if parser is None:
            parser = parsers[grammar] = TSParser(self._languages[grammar])
        return parser

    # ------------------------------------------------------------------
    # Project-level parsing
    # ------------------------------------------------------------------

    def parse_project(self, records: Iterable[FileRecord]) -> Dict[str, ParsedFacts]:
        sources = [r for r in records if dialect_for(r.path) is not None]
        if self.jobs == 1 or len(sources) < 2:
            results = [self.parse_file(r) for r in sources]
        else:
            with ThreadPoolExecutor(max_workers=self.jobs) as pool:
                results = list(pool.map(self.parse_file, sources))
        return {facts.rel_path: facts for facts in results}

    # ------------------------------------------------------------------
    # File-level parsing
    # ------------------------------------------------------------------

    def parse_file(self, record: FileRecord) -> ParsedFacts:
        dialect = dialect_for(record.path) or "script"
        try:
            source = record.content
        except OSError as exc:
            logger.warning("Failed to read %s: %s", record.rel_path, exc)
            # Unknown imports: keep an unresolvable edge so confidence drops.
            return ParsedFacts(
                rel_path=record.rel_path,
                dialect=dialect,
                imports=(ImportEdge("", ImportKind.DYNAMIC, wildcard=True, literal=False),),
                parse_warnings=(f"unreadable file: {exc}",),
            )
        return self.parse_source(record.rel_path, source, dialect)

    def parse_source(self, rel_path: str, source: str, dialect: str = "script") -> ParsedFacts:
        markup_refs: List[AssetReference] = []
        if dialect == "markup":
            source, markup_refs = _split_markup(source)

        walk = self._walk_tree(rel_path, source, dialect)
        if walk is None:
            return self._scan_lexically(rel_path, source, dialect, markup_refs)

        return ParsedFacts(
            rel_path=rel_path,
            dialect=dialect,
            imports=tuple(walk.imports),
            exports=tuple(_dedupe_exports(walk.exports)),
            asset_refs=tuple(markup_refs + walk.asset_refs),
            identifiers=frozenset(walk.identifiers),
            parse_warnings=tuple(walk.warnings),
        )

    def _walk_tree(self, rel_path: str, source: str, dialect: str) -> Optional["_TreeWalk"]:
        """Syntax-tree facts, or None when the lexical scanner must take over."""
        grammar = grammar_for(rel_path, dialect)
        if grammar not in self._languages:
            return None
        data = source.encode("utf-8", errors="replace")
        tree = self._ts_parser(grammar).parse(data)
        if tree.root_node.has_error:
            logger.debug("Syntax errors in %s; falling back to the lexical scanner", rel_path)
            return None
        walk = _TreeWalk(data)
        walk.run(tree.root_node)
        return walk

    def _scan_lexically(
        self,
        rel_path: str,
        source: str,
        dialect: str,
        markup_refs: List[AssetReference],
    ) -> ParsedFacts:
        code = strip_comments(source)
        scan = _Scan(code)

        self._scan_static_imports(scan)
        self._scan_exports(scan)
        self._scan_calls(scan)
        self._scan_globs(scan)
        self._scan_unrecognized_imports(scan)
        self._scan_asset_literals(scan)

        return ParsedFacts(
            rel_path=rel_path,
            dialect=dialect,
            imports=tuple(scan.imports),
            exports=tuple(_dedupe_exports(scan.exports)),
            asset_refs=tuple(markup_refs + scan.asset_refs),
            identifiers=frozenset(IDENT_TOKEN_RE.findall(code)),
            parse_warnings=tuple(scan.warnings),
        )

    # ------------------------------------------------------------------
    # Lexical scanner: ES module imports
    # ------------------------------------------------------------------

    @staticmethod
    def _scan_static_imports(scan: "_Scan") -> None:
        for m in IMPORT_FROM_RE.finditer(scan.code):
            scan.claim(m.start("kw"))
            symbols, wildcard = parse_import_clause(m.group("clause"))
            kind = ImportKind.TYPE_ONLY if m.group("type") else ImportKind.STATIC
            scan.imports.append(ImportEdge(
                target_spec=m.group("spec"),
                kind=kind,
                symbols=frozenset(symbols),
                wildcard=wildcard,
                line=scan.line_of(m.start("kw")),
                column=scan.col_of(m.start("kw")),
            ))

        for m in IMPORT_SIDE_EFFECT_RE.finditer(scan.code):
            scan.claim(m.start("kw"))
            scan.imports.append(ImportEdge(
                target_spec=m.group("spec"),
                kind=ImportKind.STATIC,
                side_effect=True,
                line=scan.line_of(m.start("kw")),
                column=scan.col_of(m.start("kw")),
            ))

        for m in IMPORT_EQUALS_RE.finditer(scan.code):
            scan.claim(m.start("kw"))
            scan.claim_call(m.group(0).rfind("require") + m.start())
            scan.imports.append(ImportEdge(
                target_spec=m.group("spec"),
                kind=ImportKind.STATIC,
                wildcard=True,
                line=scan.line_of(m.start("kw")),
                column=scan.col_of(m.start("kw")),
            ))

    # ------------------------------------------------------------------
    # Lexical scanner: exports and re-exports
    # ------------------------------------------------------------------

    @staticmethod
    def _scan_exports(scan: "_Scan") -> None:
        code = scan.code
        for m in EXPORT_DECL_RE.finditer(code):
            scan.exports.append(ExportDecl(m.group(1), ExportKind.NAMED, line=scan.line_of(m.start(1))))

        for m in EXPORT_DESTRUCTURE_RE.finditer(code):
            for name in parse_binding_names(m.group(2)):
                scan.exports.append(ExportDecl(name, ExportKind.NAMED, line=scan.line_of(m.start())))

        for m in EXPORT_DEFAULT_RE.finditer(code):
            scan.exports.append(ExportDecl("default", ExportKind.DEFAULT, line=scan.line_of(m.start())))

        for m in EXPORT_LIST_RE.finditer(code):
            line = scan.line_of(m.start())
            spec = m.group(3)
            pairs = parse_export_list(m.group(1))
            if spec is None:
                for _local, exported in pairs:
                    kind = ExportKind.DEFAULT if exported == "default" else ExportKind.NAMED
                    scan.exports.append(ExportDecl(exported, kind, line=line))
                continue
            scan.imports.append(ImportEdge(
                target_spec=spec,
                kind=ImportKind.REEXPORT,
                symbols=frozenset(local for local, _ in pairs),
                line=line,
                column=scan.col_of(m.start()),
            ))
            for local, exported in pairs:
                scan.exports.append(ExportDecl(
                    exported, ExportKind.REEXPORT, source=spec, original=local, line=line,
                ))

        for m in EXPORT_ALL_RE.finditer(code):
            line = scan.line_of(m.start())
            column = scan.col_of(m.start())
            namespace, spec = m.group(1), m.group(3)
            if namespace:
                scan.imports.append(ImportEdge(spec, ImportKind.REEXPORT, line=line, column=column))
                scan.exports.append(ExportDecl(
                    namespace, ExportKind.REEXPORT, source=spec, original="*", line=line,
                ))
            else:
                scan.imports.append(ImportEdge(
                    spec, ImportKind.REEXPORT, wildcard=True, line=line, column=column,
                ))

    # ------------------------------------------------------------------
    # Lexical scanner: require() / import() calls
    # ------------------------------------------------------------------

    @staticmethod
    def _scan_calls(scan: "_Scan") -> None:
        code = scan.code
        for m in CALL_RE.finditer(code):
            if scan.is_claimed_call(m.start()):
                continue
            is_dynamic = m.group("fn") == "import"
            kind = ImportKind.DYNAMIC if is_dynamic else ImportKind.STATIC
            line = scan.line_of(m.start())
            column = scan.col_of(m.start())
            arg = read_call_argument(code, m.end())

            if arg.literal:
                symbols: FrozenSet[str] = frozenset()
                wildcard = True
                tail = DESTRUCTURE_TAIL_RE.search(code[max(0, m.start() - 400):m.start()])
                if tail:
                    symbols = frozenset(parse_binding_names(tail.group(1), keep_left=True))
                    wildcard = not symbols
                scan.imports.append(ImportEdge(
                    target_spec=arg.value, kind=kind, symbols=symbols,
                    wildcard=wildcard, line=line, column=column,
                ))
                continue

            scan.imports.append(ImportEdge(
                target_spec=arg.value, kind=ImportKind.DYNAMIC, wildcard=True,
                literal=False, line=line, column=column,
            ))
            scan.warnings.append(_non_literal_warning(line, m.group("fn"), arg.value))

    # ------------------------------------------------------------------
    # Lexical scanner: glob imports
    # ------------------------------------------------------------------

    @staticmethod
    def _scan_globs(scan: "_Scan") -> None:
        code = scan.code
        for m in META_GLOB_RE.finditer(code):
            line = scan.line_of(m.start())
            column = scan.col_of(m.start())
            patterns = read_glob_patterns(code, m.end())
            if patterns is None:
                scan.imports.append(ImportEdge(
                    "", ImportKind.DYNAMIC, wildcard=True, literal=False, is_glob=True,
                    line=line, column=column,
                ))
                scan.warnings.append(f"line {line}: import.meta.glob with non-literal pattern")
                continue
            for pattern in patterns:
                scan.imports.append(ImportEdge(
                    pattern, ImportKind.DYNAMIC, wildcard=True, is_glob=True,
                    line=line, column=column,
                ))
                if not pattern.startswith("!"):
                    scan.asset_refs.append(AssetReference(pattern, is_glob=True, line=line))

        for m in REQUIRE_CONTEXT_RE.finditer(code):
            line = scan.line_of(m.start())
            pattern = context_pattern(m.group(2), m.group(3) != "false")
            scan.imports.append(ImportEdge(
                pattern, ImportKind.DYNAMIC, wildcard=True, is_glob=True,
                line=line, column=scan.col_of(m.start()),
            ))
            scan.asset_refs.append(AssetReference(pattern, is_glob=True, line=line))

    # ------------------------------------------------------------------
    # Lexical scanner: import statements no pattern understood
    # ------------------------------------------------------------------

    @staticmethod
    def _scan_unrecognized_imports(scan: "_Scan") -> None:
        for m in IMPORT_STATEMENT_RE.finditer(scan.code):
            pos = m.start("kw")
            if scan.is_claimed(pos):
                continue
            line = scan.line_of(pos)
            window = scan.code[pos:pos + 400]
            quoted = re.search(_QUOTED, window)
            if quoted is None:
                scan.warnings.append(f"line {line}: unrecognized import statement")
                continue
            scan.imports.append(ImportEdge(
                target_spec=quoted.group(2), kind=ImportKind.STATIC, wildcard=True,
                ambiguous=True, line=line, column=scan.col_of(pos),
            ))
            scan.warnings.append(f"line {line}: import statement only partially understood")

    # ------------------------------------------------------------------
    # Lexical scanner: asset-like string literals
    # ------------------------------------------------------------------

    @staticmethod
    def _scan_asset_literals(scan: "_Scan") -> None:
        code = scan.code
        for m in STRING_LITERAL_RE.finditer(code):
            value = next((g for g in m.groups() if g is not None), "")
            if looks_like_path(value):
                scan.asset_refs.append(AssetReference(value, line=scan.line_of(m.start())))
        for m in CSS_URL_RE.finditer(code):
            value = m.group(1)
            if looks_like_path(value):
                scan.asset_refs.append(AssetReference(value, line=scan.line_of(m.start())))


# ===================================================================
# Syntax-tree walk
# ===================================================================

_SKIPPED_NODES = {"comment", "html_comment"}
_REQUIRE_FORMS = {"require", "require.resolve"}
_GLOB_FORMS = {"import.meta.glob", "import.meta.globEager"}
_ESCAPE_RE = re.compile(r"\\(.)", re.DOTALL)


class _TreeWalk:
    """Collects imports, exports and references from one tree-sitter tree."""

    def __init__(self, source: bytes) -> None:
        self.source = source
        self.imports: List[ImportEdge] = []
        self.exports: List[ExportDecl] = []
        self.asset_refs: List[AssetReference] = []
        self.warnings: List[str] = []
        self.identifiers: Set[str] = set()

    def run(self, root: Any) -> None:
        # Pre-order walk with an explicit stack.
        stack = [root]
        while stack:
            node = stack.pop()
            kind = node.type
            if kind in _SKIPPED_NODES:
                continue
            if kind == "import_statement":
                self._import_statement(node)
            elif kind == "export_statement":
                self._export_statement(node)
            elif kind == "call_expression":
                self._call(node)
            elif kind in ("string", "template_string"):
                self._string(node)
            if node.child_count == 0:
                self.identifiers.update(IDENT_TOKEN_RE.findall(self.text(node)))
            else:
                stack.extend(reversed(node.children))

    # ------------------------------------------------------------------
    # Node helpers
    # ------------------------------------------------------------------

    def text(self, node: Any) -> str:
        return self.source[node.start_byte:node.end_byte].decode("utf-8", errors="replace")

    @staticmethod
    def position(node: Any) -> Tuple[int, int]:
        return node.start_point[0] + 1, node.start_point[1]

    def string_value(self, node: Optional[Any]) -> Optional[str]:
        """Value of a string or interpolation-free template literal, else None."""
        if node is None:
            return None
        if node.type == "template_string":
            if any(c.type == "template_substitution" for c in node.children):
                return None
        elif node.type != "string":
            return None
        return _ESCAPE_RE.sub(r"\1", self.text(node)[1:-1])

    def static_prefix(self, node: Optional[Any]) -> str:
        """Leading constant text of a computed specifier (``'./x/' + y`` -> ``./x/``)."""
        if node is None:
            return ""
        if node.type == "template_string":
            for child in node.children:
                if child.type == "template_substitution":
                    raw = self.source[node.start_byte + 1:child.start_byte].decode("utf-8", errors="replace")
                    return _ESCAPE_RE.sub(r"\1", raw)
            return ""
        if node.type == "binary_expression":
            left = node.child_by_field_name("left")
            value = self.string_value(left)
            return value if value is not None else self.static_prefix(left)
        return ""

    def name_of(self, node: Any) -> str:
        """Identifier text, or the value of a quoted module export name."""
        value = self.string_value(node)
        return value if value is not None else self.text(node)

    @staticmethod
    def arguments(call: Any) -> List[Any]:
        args = call.child_by_field_name("arguments")
        if args is None:
            return []
        return [c for c in args.named_children if c.type not in _SKIPPED_NODES]

    # ------------------------------------------------------------------
    # import ... from / import x = require()
    # ------------------------------------------------------------------

    def _import_statement(self, node: Any) -> None:
        line, column = self.position(node)
        for child in node.named_children:
            if child.type == "import_require_clause":
                source = child.child_by_field_name("source") or next(
                    (c for c in child.named_children if c.type == "string"), None,
                )
                spec = self.string_value(source)
                if spec is not None:
                    self.imports.append(ImportEdge(
                        spec, ImportKind.STATIC, wildcard=True, line=line, column=column,
                    ))
                    return

        spec = self.string_value(node.child_by_field_name("source"))
        if spec is None:
            self.warnings.append(f"line {line}: unrecognized import statement")
            return

        clause = next((c for c in node.named_children if c.type == "import_clause"), None)
        if clause is None:
            self.imports.append(ImportEdge(
                spec, ImportKind.STATIC, side_effect=True, line=line, column=column,
            ))
            return

        type_only = any(not c.is_named and c.type in ("type", "typeof") for c in node.children)
        symbols: Set[str] = set()
        wildcard = False
        for child in clause.named_children:
            if child.type == "identifier":
                symbols.add("default")
            elif child.type == "namespace_import":
                wildcard = True
            elif child.type == "named_imports":
                for specifier in child.named_children:
                    name = specifier.child_by_field_name("name")
                    if specifier.type == "import_specifier" and name is not None:
                        symbols.add(self.name_of(name))
        self.imports.append(ImportEdge(
            spec,
            ImportKind.TYPE_ONLY if type_only else ImportKind.STATIC,
            symbols=frozenset(symbols),
            wildcard=wildcard,
            line=line,
            column=column,
        ))

    # ------------------------------------------------------------------
    # export statements
    # ------------------------------------------------------------------

    def _export_statement(self, node: Any) -> None:
        line, column = self.position(node)
        clause = next((c for c in node.named_children if c.type == "export_clause"), None)
        source = node.child_by_field_name("source")

        if source is not None:
            spec = self.string_value(source)
            if spec is None:
                self.warnings.append(f"line {line}: unrecognized re-export")
                return
            namespace = next((c for c in node.named_children if c.type == "namespace_export"), None)
            if clause is not None:
                pairs = self._export_pairs(clause)
                self.imports.append(ImportEdge(
                    spec, ImportKind.REEXPORT, symbols=frozenset(local for local, _ in pairs),
                    line=line, column=column,
                ))
                for local, exported in pairs:
                    self.exports.append(ExportDecl(
                        exported, ExportKind.REEXPORT, source=spec, original=local, line=line,
                    ))
            elif namespace is not None and namespace.named_children:
                self.imports.append(ImportEdge(spec, ImportKind.REEXPORT, line=line, column=column))
                self.exports.append(ExportDecl(
                    self.name_of(namespace.named_children[-1]), ExportKind.REEXPORT,
                    source=spec, original="*", line=line,
                ))
            else:
                self.imports.append(ImportEdge(
                    spec, ImportKind.REEXPORT, wildcard=True, line=line, column=column,
                ))
            return

        if any(c.type == "default" for c in node.children):
            self.exports.append(ExportDecl("default", ExportKind.DEFAULT, line=line))
            return

        declaration = node.child_by_field_name("declaration")
        if declaration is not None:
            for name in self._declared_names(declaration):
                self.exports.append(ExportDecl(name, ExportKind.NAMED, line=line))
            return

        if clause is not None:
            for _local, exported in self._export_pairs(clause):
                kind = ExportKind.DEFAULT if exported == "default" else ExportKind.NAMED
                self.exports.append(ExportDecl(exported, kind, line=line))

    def _export_pairs(self, clause: Any) -> List[Tuple[str, str]]:
        pairs: List[Tuple[str, str]] = []
        for specifier in clause.named_children:
            if specifier.type != "export_specifier":
                continue
            name = specifier.child_by_field_name("name")
            if name is None:
                continue
            alias = specifier.child_by_field_name("alias")
            local = self.name_of(name)
            pairs.append((local, self.name_of(alias) if alias is not None else local))
        return pairs

    def _declared_names(self, declaration: Any) -> List[str]:
        names: List[str] = []
        if declaration.type in ("lexical_declaration", "variable_declaration"):
            for declarator in declaration.named_children:
                target = declarator.child_by_field_name("name")
                if declarator.type == "variable_declarator" and target is not None:
                    names.extend(self._binding_names(target))
            return names
        if declaration.type == "ambient_declaration":
            for child in declaration.named_children:
                names.extend(self._declared_names(child))
            return names
        name = declaration.child_by_field_name("name")
        if name is not None and IDENT_TOKEN_RE.fullmatch(self.text(name)):
            names.append(self.text(name))
        return names

    def _binding_names(self, pattern: Any) -> List[str]:
        """Names bound by a declarator target; rest elements bind nothing exported here."""
        kind = pattern.type
        if kind in ("identifier", "shorthand_property_identifier_pattern"):
            return [self.text(pattern)]
        if kind == "pair_pattern":
            value = pattern.child_by_field_name("value")
            return self._binding_names(value) if value is not None else []
        if kind in ("object_assignment_pattern", "assignment_pattern"):
            left = pattern.child_by_field_name("left")
            return self._binding_names(left) if left is not None else []
        if kind in ("object_pattern", "array_pattern"):
            names: List[str] = []
            for child in pattern.named_children:
                names.extend(self._binding_names(child))
            return names
        return []

    # ------------------------------------------------------------------
    # require() / import() / import.meta.glob() / require.context()
    # ------------------------------------------------------------------

    def _call(self, node: Any) -> None:
        function = node.child_by_field_name("function")
        if function is None:
            return
        form = re.sub(r"\s+", "", self.text(function))
        if form in _GLOB_FORMS:
            self._meta_glob(node)
            return
        if form == "require.context":
            self._require_context(node)
            return
        if form != "import" and form not in _REQUIRE_FORMS:
            return

        line, column = self.position(node)
        args = self.arguments(node)
        first = args[0] if args else None
        spec = self.string_value(first)
        if spec is not None:
            symbols, wildcard = self._destructured_keys(node)
            self.imports.append(ImportEdge(
                spec,
                ImportKind.DYNAMIC if form == "import" else ImportKind.STATIC,
                symbols=symbols,
                wildcard=wildcard,
                line=line,
                column=column,
            ))
            return

        prefix = self.static_prefix(first)
        self.imports.append(ImportEdge(
            prefix, ImportKind.DYNAMIC, wildcard=True, literal=False, line=line, column=column,
        ))
        self.warnings.append(_non_literal_warning(line, form, prefix))

    def _destructured_keys(self, call: Any) -> Tuple[FrozenSet[str], bool]:
        """Properties read by ``const {a, b: c} = require(...)`` / ``await import(...)``."""
        parent = call.parent
        if parent is not None and parent.type == "await_expression":
            parent = parent.parent
        if parent is None or parent.type != "variable_declarator":
            return frozenset(), True
        target = parent.child_by_field_name("name")
        if target is None or target.type != "object_pattern":
            return frozenset(), True

        keys: Set[str] = set()
        rest = False
        for prop in target.named_children:
            if prop.type == "shorthand_property_identifier_pattern":
                keys.add(self.text(prop))
            elif prop.type == "pair_pattern":
                key = prop.child_by_field_name("key")
                if key is not None and key.type in ("property_identifier", "string"):
                    keys.add(self.name_of(key))
                else:
                    rest = True
            elif prop.type == "object_assignment_pattern":
                left = prop.child_by_field_name("left")
                if left is not None:
                    keys.add(self.text(left))
            elif prop.type == "rest_pattern":
                rest = True
        return frozenset(keys), rest or not keys

    def _meta_glob(self, node: Any) -> None:
        line, column = self.position(node)
        args = self.arguments(node)
        patterns = self._glob_patterns(args[0] if args else None)
        if patterns is None:
            self.imports.append(ImportEdge(
                "", ImportKind.DYNAMIC, wildcard=True, literal=False, is_glob=True,
                line=line, column=column,
            ))
            self.warnings.append(f"line {line}: import.meta.glob with non-literal pattern")
            return
        for pattern in patterns:
            self.imports.append(ImportEdge(
                pattern, ImportKind.DYNAMIC, wildcard=True, is_glob=True, line=line, column=column,
            ))
            if not pattern.startswith("!"):
                self.asset_refs.append(AssetReference(pattern, is_glob=True, line=line))

    def _glob_patterns(self, node: Optional[Any]) -> Optional[List[str]]:
        if node is None:
            return None
        if node.type != "array":
            value = self.string_value(node)
            return None if value is None else [value]
        patterns: List[str] = []
        for element in node.named_children:
            if element.type in _SKIPPED_NODES:
                continue
            value = self.string_value(element)
            if value is None:
                return None
            patterns.append(value)
        return patterns or None

    def _require_context(self, node: Any) -> None:
        args = self.arguments(node)
        directory = self.string_value(args[0]) if args else None
        if directory is None:
            return
        line, column = self.position(node)
        recursive = not (len(args) > 1 and args[1].type == "false")
        pattern = context_pattern(directory, recursive)
        self.imports.append(ImportEdge(
            pattern, ImportKind.DYNAMIC, wildcard=True, is_glob=True, line=line, column=column,
        ))
        self.asset_refs.append(AssetReference(pattern, is_glob=True, line=line))

    # ------------------------------------------------------------------
    # Asset-like string literals
    # ------------------------------------------------------------------

    def _string(self, node: Any) -> None:
        line, _ = self.position(node)
        value = self.string_value(node)
        if value is not None and looks_like_path(value):
            self.asset_refs.append(AssetReference(value, line=line))
        text = self.text(node)
        for m in CSS_URL_RE.finditer(text):
            if looks_like_path(m.group(1)):
                self.asset_refs.append(AssetReference(
                    m.group(1), line=line + text.count("\n", 0, m.start()),
                ))


# ===================================================================
# Lexical scan state
# ===================================================================

class _Scan:
    """Mutable accumulator for one lexical scan."""

    def __init__(self, code: str) -> None:
        self.code = code
        self._line_starts = [0] + [i + 1 for i, ch in enumerate(code) if ch == "\n"]
        self._claimed: Set[int] = set()
        self._claimed_calls: Set[int] = set()
        self.imports: List[ImportEdge] = []
        self.exports: List[ExportDecl] = []
        self.asset_refs: List[AssetReference] = []
        self.warnings: List[str] = []

    def line_of(self, offset: int) -> int:
        return bisect.bisect_right(self._line_starts, offset)

    def col_of(self, offset: int) -> int:
        return offset - self._line_starts[self.line_of(offset) - 1]

    def claim(self, keyword_pos: int) -> None:
        self._claimed.add(keyword_pos)

    def is_claimed(self, keyword_pos: int) -> bool:
        return keyword_pos in self._claimed

    def claim_call(self, call_pos: int) -> None:
        self._claimed_calls.add(call_pos)

    def is_claimed_call(self, call_pos: int) -> bool:
        return call_pos in self._claimed_calls


# ===================================================================
# Shared helpers
# ===================================================================

# A slash after one of these starts a regex literal rather than a division.
_REGEX_AFTER_PUNCT = set("(,=:[!&|?{};+-*%>~^}")
_REGEX_AFTER_WORDS = {
    "return", "typeof", "instanceof", "in", "of", "new", "delete", "void",
    "throw", "case", "do", "else", "yield", "await",
}


def _is_word_char(c: str) -> bool:
    return c.isalnum() or c in "_$"


def _regex_allowed(source: str, last: int) -> bool:
    """Whether a ``/`` following the significant character at *last* opens a regex."""
    if last < 0:
        return True
    c = source[last]
    if _is_word_char(c):
        start = last
        while start > 0 and _is_word_char(source[start - 1]):
            start -= 1
        return source[start:last + 1] in _REGEX_AFTER_WORDS
    return c in _REGEX_AFTER_PUNCT


def _regex_end(source: str, start: int) -> int:
    """Offset just past the closing ``/`` of a regex literal at *start*, or -1."""
    n = len(source)
    i = start + 1
    in_class = False
    while i < n:
        c = source[i]
        if c == "\n":
            return -1
        if c == "\\":
            if i + 1 < n and source[i + 1] == "\n":
                return -1
            i += 2
            continue
        if in_class:
            if c == "]":
                in_class = False
        elif c == "[":
            in_class = True
        elif c == "/":
            return i + 1
        i += 1
    return -1


def strip_comments(source: str) -> str:
    """Blank out comments and regex literal bodies, keeping strings and newlines intact.

    Whether a ``/`` starts a regex or divides is decided from the previous
    significant token, so ``/^\\/\\//`` or ``/'/`` never open a comment or a string.
    """
    out: List[str] = []
    i = 0
    n = len(source)
    quote: Optional[str] = None
    last = -1

    while i < n:
        c = source[i]
        if quote is not None:
            out.append(c)
            if c == "\\" and i + 1 < n:
                out.append(source[i + 1])
                i += 2
                continue
            if c == quote:
                quote = None
                last = i
            i += 1
            continue

        if c in ("'", '"', "`"):
            quote = c
            out.append(c)
            i += 1
            continue

        if c == "/":
            nxt = source[i + 1] if i + 1 < n else ""
            if nxt == "/":
                end = source.find("\n", i)
                i = n if end == -1 else end
                continue
            if nxt == "*":
                end = source.find("*/", i + 2)
                stop = n if end == -1 else end + 2
                out.append("\n" * source.count("\n", i, stop))
                i = stop
                continue
            if _regex_allowed(source, last):
                end = _regex_end(source, i)
                if end != -1:
                    out.append("/" + " " * (end - i - 2) + "/")
                    last = end - 1
                    i = end
                    continue

        out.append(c)
        if not c.isspace():
            last = i
        i += 1

    return "".join(out)


def _split_markup(source: str) -> Tuple[str, List[AssetReference]]:
    """Keep only ``<script>`` block bodies (newlines preserved) and collect template references."""
    refs: List[AssetReference] = []
    code_parts: List[str] = []
    last = 0
    line = 1

    def template_refs(text: str, start_line: int) -> None:
        for m in ATTR_RE.finditer(text):
            at_line = start_line + text.count("\n", 0, m.start())
            for candidate in m.group(1).split(","):
                value = candidate.strip().split(" ")[0]
                if looks_like_path(value):
                    refs.append(AssetReference(value, line=at_line))
        for m in CSS_URL_RE.finditer(text):
            if looks_like_path(m.group(1)):
                refs.append(AssetReference(m.group(1), line=start_line + text.count("\n", 0, m.start())))

    for m in SCRIPT_BLOCK_RE.finditer(source):
        outside = source[last:m.start(2)]
        template_refs(outside, line)
        code_parts.append("\n" * outside.count("\n"))
        code_parts.append(m.group(2))
        line += outside.count("\n") + m.group(2).count("\n")
        last = m.end(2)

    template_refs(source[last:], line)
    return "".join(code_parts), refs


def _non_literal_warning(line: int, form: str, prefix: str) -> str:
    return f"line {line}: non-literal {form}() argument" + (f" with prefix '{prefix}'" if prefix else "")


def context_pattern(directory: str, recursive: bool) -> str:
    """Glob covered by ``require.context(directory, recursive)``."""
    directory = directory.rstrip("/")
    return f"{directory}/**/*" if recursive else f"{directory}/*"


class CallArgument:
    __slots__ = ("value", "literal")

    def __init__(self, value: str, literal: bool) -> None:
        self.value = value
        self.literal = literal


def read_call_argument(code: str, pos: int) -> CallArgument:
    """Read the first argument of a call whose ``(`` ends right before *pos*.

    A plain string or interpolation-free template literal followed by ``)`` or
    ``,`` is literal. Otherwise the static prefix (possibly empty) is returned
    with ``literal=False``.
    """
    n = len(code)
    while pos < n and code[pos].isspace():
        pos += 1
    if pos >= n or code[pos] not in ("'", '"', "`"):
        return CallArgument("", False)

    quote = code[pos]
    i = pos + 1
    chars: List[str] = []
    while i < n:
        c = code[i]
        if c == "\\" and i + 1 < n:
            chars.append(code[i + 1])
            i += 2
            continue
        if quote == "`" and c == "$" and i + 1 < n and code[i + 1] == "{":
            return CallArgument("".join(chars), False)
        if c == quote:
            break
        if c == "\n" and quote != "`":
            return CallArgument("".join(chars), False)
        chars.append(c)
        i += 1
    else:
        return CallArgument("".join(chars), False)

    j = i + 1
    while j < n and code[j].isspace():
        j += 1
    value = "".join(chars)
    if j < n and code[j] in (")", ","):
        return CallArgument(value, True)
    return CallArgument(value, False)


def read_glob_patterns(code: str, pos: int) -> Optional[List[str]]:
    """Patterns of an ``import.meta.glob`` call: one string or an array of strings."""
    n = len(code)
    while pos < n and code[pos].isspace():
        pos += 1
    if pos < n and code[pos] == "[":
        close = code.find("]", pos)
        if close == -1:
            return None
        body = code[pos + 1:close]
        patterns = [m.group(2) for m in re.finditer(_QUOTED, body)]
        leftover = re.sub(_QUOTED, "", body).replace(",", "").strip()
        if leftover or not patterns:
            return None
        return patterns
    arg = read_call_argument(code, pos)
    if not arg.literal:
        return None
    return [arg.value]


def parse_import_clause(clause: str) -> Tuple[Set[str], bool]:
    """Symbols requested by an import clause and whether it is a namespace import.

    ``x`` -> ``default``; ``{a, b as c}`` -> ``a``, ``b``; ``* as ns`` -> wildcard.
    """
    symbols: Set[str] = set()
    wildcard = False
    clause = clause.strip()

    brace = re.search(r"\{([^}]*)\}", clause)
    if brace:
        for local, _ in parse_export_list(brace.group(1)):
            symbols.add(local)
        clause = clause[:brace.start()] + clause[brace.end():]

    for part in clause.split(","):
        part = part.strip()
        if not part:
            continue
        if part.startswith("*"):
            wildcard = True
        else:
            symbols.add("default")
    return symbols, wildcard


def parse_export_list(body: str) -> List[Tuple[str, str]]:
    """``a, b as c, type D`` -> ``[("a", "a"), ("b", "c"), ("D", "D")]``."""
    pairs: List[Tuple[str, str]] = []
    for raw in body.split(","):
        part = raw.strip()
        if part.startswith("type "):
            part = part[5:].strip()
        if not part:
            continue
        if " as " in part:
            left, right = part.split(" as ", 1)
            left, right = left.strip(), right.strip().strip("'\"")
        else:
            left = right = part
        if left and right:
            pairs.append((left.strip("'\""), right))
    return pairs


def parse_binding_names(body: str, keep_left: bool = False) -> List[str]:
    """Names bound by a destructuring pattern body.

    ``a, b: c, d = 1, ...rest`` binds ``a``, ``c``, ``d``; with *keep_left* the
    property names (``a``, ``b``, ``d``) are returned instead, which is what a
    destructured ``require`` reads from the module.
    """
    names: List[str] = []
    for raw in body.split(","):
        item = raw.strip()
        if not item or item.startswith("..."):
            continue
        item = item.split("=", 1)[0].strip()
        if ":" in item:
            left, right = item.split(":", 1)
            item = left.strip() if keep_left else right.strip()
        if IDENT_TOKEN_RE.fullmatch(item):
            names.append(item)
    return names


def looks_like_path(value: str) -> bool:
    if not value or len(value) > 512 or "\n" in value:
        return False
    lower = value.lower()
    if lower.startswith(_URL_PREFIXES):
        return False
    if any(lower.endswith(ext) for ext in config.ASSET_EXTENSIONS):
        return True
    return "/" in value and " " not in value


def _dedupe_exports(exports: List[ExportDecl]) -> List[ExportDecl]:
    seen: Dict[str, ExportDecl] = {}
    for decl in exports:
        seen.setdefault(decl.symbol, decl)
    return sorted(seen.values(), key=lambda d: (d.line, d.symbol))
