"""Tests for the JS/TS module parser."""

from pathlib import Path

import pytest

from deadweight_cli.models import ExportKind, FileKind, FileRecord, ImportKind
from deadweight_cli.parser import (
    ModuleParser,
    looks_like_path,
    parse_export_list,
    parse_import_clause,
    read_call_argument,
    strip_comments,
)


@pytest.fixture
def parser() -> ModuleParser:
    return ModuleParser(jobs=1)


def _by_spec(facts):
    return {edge.target_spec: edge for edge in facts.imports}


class TestImports:
    """Import and require extraction."""

    def test_named_default_and_type_imports(self, parser: ModuleParser):
        facts = parser.parse_source("src/a.ts", (
            'import React, { useState as useS, type FC } from "react";\n'
            "import type { Props } from './types';\n"
            "import * as utils from './utils';\n"
        ), "typed")
        edges = _by_spec(facts)

        assert edges["react"].symbols == frozenset({"default", "useState", "FC"})
        assert not edges["react"].wildcard
        assert edges["./types"].kind == ImportKind.TYPE_ONLY
        assert edges["./utils"].wildcard
        assert edges["./utils"].symbols == frozenset()

    def test_side_effect_import(self, parser: ModuleParser):
        facts = parser.parse_source("src/a.ts", "import './polyfills';\nimport \"./site.css\";\n")
        edges = _by_spec(facts)
        assert edges["./polyfills"].side_effect
        assert edges["./site.css"].side_effect

    def test_multiline_import_keeps_line_number(self, parser: ModuleParser):
        facts = parser.parse_source("src/a.ts", "\n\nimport {\n  a,\n  b,\n} from './ab';\n")
        edge = facts.imports[0]
        assert edge.target_spec == "./ab"
        assert edge.symbols == frozenset({"a", "b"})
        assert edge.line == 3

    def test_require_forms(self, parser: ModuleParser):
        facts = parser.parse_source("src/a.js", (
            "const fs = require('fs');\n"
            "const { join, resolve: res } = require('./paths');\n"
            "const where = require.resolve('./where');\n"
        ))
        edges = _by_spec(facts)
        assert edges["fs"].wildcard
        assert edges["fs"].kind == ImportKind.STATIC
        assert edges["./paths"].symbols == frozenset({"join", "resolve"})
        assert not edges["./paths"].wildcard
        assert "./where" in edges

    def test_import_equals_require(self, parser: ModuleParser):
        facts = parser.parse_source("src/a.ts", "import fs = require('fs');\n", "typed")
        assert [e.target_spec for e in facts.imports] == ["fs"]

    def test_literal_dynamic_import(self, parser: ModuleParser):
        facts = parser.parse_source("src/a.ts", "const Page = lazy(() => import('./Page'));\n")
        edge = _by_spec(facts)["./Page"]
        assert edge.kind == ImportKind.DYNAMIC
        assert edge.literal

    def test_non_literal_dynamic_import(self, parser: ModuleParser):
        facts = parser.parse_source(
            "src/i18n.ts", "export const load = (lang) => import(`./locales/${lang}.json`);\n",
        )
        dynamic = [e for e in facts.imports if not e.literal]
        assert len(dynamic) == 1
        assert dynamic[0].target_spec == "./locales/"
        assert any("non-literal" in w for w in facts.parse_warnings)

    def test_variable_require_has_empty_prefix(self, parser: ModuleParser):
        facts = parser.parse_source("src/a.js", "const mod = require(name);\n")
        assert facts.imports[0].literal is False
        assert facts.imports[0].target_spec == ""

    def test_commented_imports_are_ignored(self, parser: ModuleParser):
        facts = parser.parse_source("src/a.ts", (
            "// import './ghost';\n"
            "/* import { x } from './block'; */\n"
            "const url = 'https://example.com/a.png'; // trailing\n"
        ))
        assert facts.imports == ()

    def test_unrecognized_import_becomes_warning(self, parser: ModuleParser):
        facts = parser.parse_source("src/a.ts", "import `./weird`;\n")
        assert facts.imports == ()
        assert any("unrecognized import" in w for w in facts.parse_warnings)


class TestExports:
    """Export and re-export extraction."""

    def test_declarations(self, parser: ModuleParser):
        facts = parser.parse_source("src/a.ts", (
            "export const a = 1;\n"
            "export async function load() {}\n"
            "export class Store {}\n"
            "export interface Props {}\n"
            "export type Id = string;\n"
            "export const { first, second: renamed } = pair;\n"
            "export default function () {}\n"
        ), "typed")
        names = {d.symbol: d.kind for d in facts.exports}
        assert names == {
            "a": ExportKind.NAMED,
            "load": ExportKind.NAMED,
            "Store": ExportKind.NAMED,
            "Props": ExportKind.NAMED,
            "Id": ExportKind.NAMED,
            "first": ExportKind.NAMED,
            "renamed": ExportKind.NAMED,
            "default": ExportKind.DEFAULT,
        }

    def test_export_list(self, parser: ModuleParser):
        facts = parser.parse_source("src/a.ts", "const x = 1, y = 2;\nexport { x, y as why };\n")
        assert {d.symbol for d in facts.exports} == {"x", "why"}
        assert facts.imports == ()

    def test_reexports(self, parser: ModuleParser):
        facts = parser.parse_source("src/index.ts", (
            "export { helper as util } from './helper';\n"
            "export * from './all';\n"
            "export * as ns from './ns';\n"
        ))
        edges = _by_spec(facts)
        assert edges["./helper"].kind == ImportKind.REEXPORT
        assert edges["./helper"].symbols == frozenset({"helper"})
        assert edges["./all"].wildcard
        assert not edges["./ns"].wildcard
        assert facts.has_export_all

        util = next(d for d in facts.exports if d.symbol == "util")
        assert util.kind == ExportKind.REEXPORT
        assert util.source == "./helper"
        assert util.original == "helper"
        ns = next(d for d in facts.exports if d.symbol == "ns")
        assert ns.original == "*"


class TestGlobsAndAssets:
    """Glob imports and asset-like literals."""

    def test_meta_glob_array_with_negation(self, parser: ModuleParser):
        facts = parser.parse_source(
            "src/routes.ts",
            "const pages = import.meta.glob(['./pages/*.tsx', '!./pages/_draft.tsx']);\n",
        )
        globs = [e.target_spec for e in facts.imports if e.is_glob]
        assert globs == ["./pages/*.tsx", "!./pages/_draft.tsx"]
        assert [r.raw_spec for r in facts.asset_refs if r.is_glob] == ["./pages/*.tsx"]

    def test_require_context(self, parser: ModuleParser):
        facts = parser.parse_source("src/icons.js", "const ctx = require.context('./icons', false);\n")
        assert [e.target_spec for e in facts.imports if e.is_glob] == ["./icons/*"]

    def test_asset_literals(self, parser: ModuleParser):
        facts = parser.parse_source("src/a.ts", (
            "const hero = '/images/hero.webp';\n"
            "const label = 'hello world';\n"
            "const style = { background: 'url(./bg.png)' };\n"
        ))
        refs = {r.raw_spec for r in facts.asset_refs}
        assert "/images/hero.webp" in refs
        assert "./bg.png" in refs
        assert "hello world" not in refs

    def test_vue_single_file_component(self, parser: ModuleParser):
        source = (
            "<template>\n"
            '  <img src="./assets/logo.png" alt="logo">\n'
            "</template>\n"
            "<script setup>\n"
            "import Foo from './Foo.vue';\n"
            "</script>\n"
        )
        facts = parser.parse_source("src/App.vue", source, "markup")
        edge = _by_spec(facts)["./Foo.vue"]
        assert edge.symbols == frozenset({"default"})
        assert edge.line == 5
        assert "./assets/logo.png" in {r.raw_spec for r in facts.asset_refs}


class TestRegexLiterals:
    """Regex literals must not be mistaken for comments or strings."""

    def test_slashes_in_regex_do_not_hide_following_require(self, parser: ModuleParser):
        facts = parser.parse_source("src/entry.js", (
            "const isUrl = (s) => /^\\/\\//.test(s); const used = require('./used');\n"
        ))
        assert "./used" in _by_spec(facts)

    def test_quote_in_regex_does_not_open_a_string(self, parser: ModuleParser):
        facts = parser.parse_source("src/entry.js", (
            "const parts = text.split(/'/);\n"
            "const used = require('./used');\n"
        ))
        assert "./used" in _by_spec(facts)

    def test_lexical_fallback_handles_regex_literals(self, parser: ModuleParser):
        # The stray template import makes the tree invalid, so the lexical scanner runs.
        facts = parser.parse_source("src/entry.js", (
            "import `./weird`;\n"
            "const isUrl = (s) => /^\\/\\//.test(s); const used = require('./used');\n"
            "const parts = text.split(/'/); const other = require('./other');\n"
        ))
        edges = _by_spec(facts)
        assert "./used" in edges
        assert "./other" in edges
        assert edges["./used"].line == 2

    def test_strip_comments_blanks_regex_bodies(self):
        code = "const re = /^\\/\\//; const q = /'/; const half = a / b; // note\n"
        stripped = strip_comments(code)
        assert "const half = a / b;" in stripped
        assert "note" not in stripped
        assert "'" not in stripped
        assert len(stripped.splitlines()[0]) <= len(code.splitlines()[0])

    def test_division_is_not_a_regex(self):
        code = "const r = total / count / 2; // ratio\nconst s = 'x';\n"
        stripped = strip_comments(code)
        assert "total / count / 2;" in stripped
        assert "ratio" not in stripped
        assert "'x'" in stripped


class TestGrammars:
    """Grammar selection per file type."""

    def test_tsx_component(self, parser: ModuleParser):
        facts = parser.parse_source("src/App.tsx", (
            "import Button from './Button';\n"
            "export const App = (): JSX.Element => <Button label=\"go\" />;\n"
        ), "typed")
        assert _by_spec(facts)["./Button"].symbols == frozenset({"default"})
        assert [d.symbol for d in facts.exports] == ["App"]
        assert facts.parse_warnings == ()

    def test_jsx_in_plain_script(self, parser: ModuleParser):
        facts = parser.parse_source("src/App.jsx", (
            "import { Card } from './Card';\n"
            "export default function App() { return <Card />; }\n"
        ))
        assert _by_spec(facts)["./Card"].symbols == frozenset({"Card"})
        assert {d.symbol for d in facts.exports} == {"default"}

    def test_identifiers_skip_comments(self, parser: ModuleParser):
        facts = parser.parse_source("src/a.ts", "// ghostName\nconst realName = 1;\n")
        assert "realName" in facts.identifiers
        assert "ghostName" not in facts.identifiers


class TestGlobCallSites:
    """Patterns of one glob call share a call site; separate calls do not."""

    def test_two_glob_calls_on_one_line(self, parser: ModuleParser):
        facts = parser.parse_source("src/routes.ts", (
            "const a = import.meta.glob('./a/*.ts'), "
            "b = import.meta.glob(['./b/*.ts', '!./a/x.ts']);\n"
        ))
        sites = {e.target_spec: (e.line, e.column) for e in facts.imports if e.is_glob}
        assert sites["./b/*.ts"] == sites["!./a/x.ts"]
        assert sites["./a/*.ts"] != sites["!./a/x.ts"]
        assert sites["./a/*.ts"][0] == sites["!./a/x.ts"][0] == 1


class TestParseProject:
    """File-level and project-level parsing."""

    def test_parse_project_in_parallel(self, temp_dir: Path):
        records = []
        for i in range(5):
            path = temp_dir / f"m{i}.ts"
            path.write_text(f"export const v{i} = {i};\n")
            records.append(FileRecord(path, path.name, FileKind.SOURCE))

        facts = ModuleParser(jobs=4).parse_project(records)
        assert sorted(facts) == [f"m{i}.ts" for i in range(5)]
        assert facts["m3.ts"].exports[0].symbol == "v3"
        assert facts["m3.ts"].dialect == "typed"

    def test_unreadable_file_keeps_unknown_edge(self, temp_dir: Path):
        path = temp_dir / "gone.ts"
        record = FileRecord(path, "gone.ts", FileKind.SOURCE)
        facts = ModuleParser(jobs=1).parse_file(record)
        assert facts.imports[0].literal is False
        assert facts.parse_warnings


class TestHelpers:
    """Tests for the small parsing helpers."""

    def test_strip_comments_keeps_strings_and_lines(self):
        code = 'const a = "// not a comment"; // gone\n/* x\ny */ const b = 1;\n'
        stripped = strip_comments(code)
        assert '"// not a comment"' in stripped
        assert "gone" not in stripped
        assert stripped.count("\n") == code.count("\n")

    def test_read_call_argument(self):
        literal = read_call_argument("'./a')", 0)
        assert literal.literal and literal.value == "./a"
        concatenated = read_call_argument("'./pages/' + name)", 0)
        assert not concatenated.literal and concatenated.value == "./pages/"
        template = read_call_argument("`./x/${y}`)", 0)
        assert not template.literal and template.value == "./x/"

    def test_parse_import_clause(self):
        assert parse_import_clause("React, { useEffect }") == ({"default", "useEffect"}, False)
        assert parse_import_clause("* as ns") == (set(), True)

    def test_parse_export_list(self):
        assert parse_export_list("a, b as c, type D") == [("a", "a"), ("b", "c"), ("D", "D")]

    @pytest.mark.parametrize("value,expected", [
        ("./img/a.png", True),
        ("logo.svg", True),
        ("assets/fonts", True),
        ("https://cdn.example.com/a.png", False),
        ("data:image/png;base64,AAAA", False),
        ("hello world", False),
        ("", False),
    ])
    def test_looks_like_path(self, value: str, expected: bool):
        assert looks_like_path(value) is expected
