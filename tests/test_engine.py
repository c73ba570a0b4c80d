"""End-to-end tests for the analysis engine and report shape."""

import json
from pathlib import Path

import pytest

from deadweight_cli.config_manager import AnalysisOptions
from deadweight_cli.engine import AnalysisEngine, analyze
from deadweight_cli.errors import EntryNotFoundError, MissingRootError
from deadweight_cli.models import Confidence


class TestSampleProject:
    """The bundled sample project exercises every finding kind."""

    def test_findings(self, sample_project_path: Path, options_for):
        report = analyze(options_for(sample_project_path))

        assert [f.subject.path for f in report.unused_files] == ["src/legacy/oldWidget.ts"]
        assert [(f.subject.path, f.subject.symbol) for f in report.unused_exports] == [
            ("src/components/Button.tsx", "ButtonGroup"),
            ("src/utils/format.ts", "formatCurrency"),
        ]
        assert [f.subject.name for f in report.unused_dependencies] == ["left-pad"]
        assert [f.subject.path for f in report.unused_assets] == ["src/assets/unused-banner.png"]
        assert all(f.confidence == Confidence.HIGH for f in report.findings())

    def test_summary(self, sample_project_path: Path, options_for):
        summary = analyze(options_for(sample_project_path)).summary
        assert summary.total_source_files == 6
        assert summary.reached_files == 5
        assert summary.entry_origin == "manifest"
        assert summary.entry_count == 2
        assert summary.confidence_status == "full"
        assert summary.assets_considered == 4
        assert summary.assets_used == 3
        assert summary.dependencies_checked == 2
        assert summary.omitted_low_confidence == 0

    def test_json_shape(self, sample_project_path: Path, options_for):
        payload = json.loads(analyze(options_for(sample_project_path)).to_json())
        assert set(payload) == {
            "root", "summary", "entries", "unused_files", "unused_exports",
            "unused_dependencies", "unused_assets", "warnings",
        }
        assert payload["unused_files"][0] == {
            "type": "file",
            "path": "src/legacy/oldWidget.ts",
            "kind": "unused-file",
            "confidence": "high",
            "reason": "not reachable from any entry point",
        }
        assert payload["unused_dependencies"][0]["name"] == "left-pad"
        assert payload["unused_dependencies"][0]["dep_type"] == "dependencies"
        assert payload["entries"] == ["src/index.test.ts", "src/index.ts"]

    def test_analysis_is_idempotent(self, sample_project_path: Path, options_for):
        first = analyze(options_for(sample_project_path)).to_dict()
        second = analyze(options_for(sample_project_path, jobs=1)).to_dict()
        assert first == second

    def test_analysis_does_not_touch_the_tree(self, sample_project: Path, options_for):
        before = sorted(p.relative_to(sample_project).as_posix() for p in sample_project.rglob("*"))
        analyze(options_for(sample_project))
        after = sorted(p.relative_to(sample_project).as_posix() for p in sample_project.rglob("*"))
        assert before == after


class TestDegradedMode:
    """Projects without any discoverable entry."""

    @pytest.fixture
    def root(self, make_project) -> Path:
        return make_project({
            "lib/foo.js": "module.exports = require('./bar');\n",
            "lib/bar.js": "export const bar = 1;\n",
            "lib/baz.js": "",
        })

    def test_default_output_hides_everything(self, root: Path, options_for):
        report = analyze(options_for(root))
        assert report.findings() == []
        assert report.summary.confidence_status == "degraded"
        assert report.summary.omitted_low_confidence == 3
        assert any("no entry points" in w for w in report.warnings)

    def test_low_confidence_findings_on_request(self, root: Path, options_for):
        report = analyze(options_for(root, include_low_confidence=True))
        assert [f.subject.path for f in report.unused_files] == ["lib/bar.js", "lib/baz.js", "lib/foo.js"]
        assert all(f.confidence == Confidence.LOW for f in report.findings())
        assert report.unused_exports == []

    def test_dependencies_are_capped(self, make_project, options_for):
        root = make_project({
            "package.json": json.dumps({"dependencies": {"left-pad": "1"}}),
            "lib/a.js": "",
        })
        report = analyze(options_for(root, include_low_confidence=True))
        assert [f.confidence for f in report.unused_dependencies] == [Confidence.LOW]


class TestInputErrors:
    """Invalid input is rejected before any work starts."""

    def test_missing_root(self, temp_dir: Path):
        with pytest.raises(MissingRootError):
            AnalysisEngine(AnalysisOptions(root=temp_dir / "nope"))

    def test_missing_explicit_entry(self, sample_project_path: Path, options_for):
        engine = AnalysisEngine(options_for(sample_project_path, entries=["src/main.ts"]))
        with pytest.raises(EntryNotFoundError):
            engine.run()
        assert engine.facts == {}

    def test_explicit_entry_changes_reachability(self, sample_project_path: Path, options_for):
        report = analyze(options_for(sample_project_path, entries=["src/legacy/oldWidget.ts"]))
        reported = {f.subject.path for f in report.unused_files}
        assert "src/legacy/oldWidget.ts" not in reported
        assert "src/index.ts" in reported
        assert report.summary.entry_origin == "explicit"

    def test_config_aliases_reach_files(self, make_project, options_for):
        root = make_project({
            "src/index.ts": "import { x } from '~lib/x';\n",
            "src/lib/x.ts": "export const x = 1;\n",
        })
        report = analyze(options_for(root, aliases={"~lib": "src/lib"}))
        assert report.unused_files == []
        assert report.summary.unresolved_imports == 0


class TestScenarios:
    """Small projects covering one finding kind each."""

    def test_unimported_file(self, make_project, options_for):
        root = make_project({
            "package.json": json.dumps({"main": "entry.js"}),
            "entry.js": "import './used.js';\n",
            "used.js": "",
            "dead.js": "",
        })
        report = analyze(options_for(root))
        assert [(f.subject.path, f.confidence) for f in report.unused_files] == [("dead.js", Confidence.HIGH)]

    @pytest.mark.parametrize("source,expected", [
        ("console.log('hi');\n", ["lodash"]),
        ("const _ = require('lodash');\n", []),
    ])
    def test_declared_dependency(self, make_project, options_for, source, expected):
        root = make_project({
            "package.json": json.dumps({"main": "entry.js", "dependencies": {"lodash": "^4.17.21"}}),
            "entry.js": source,
        })
        report = analyze(options_for(root))
        assert [f.subject.name for f in report.unused_dependencies] == expected
        assert all(f.confidence == Confidence.HIGH for f in report.unused_dependencies)

    def test_unimported_export_of_reachable_file(self, make_project, options_for):
        root = make_project({
            "package.json": json.dumps({"main": "entry.js"}),
            "entry.js": "import { used } from './util.js';\n",
            "util.js": "export function helper() {}\nexport const used = 1;\n",
        })
        report = analyze(options_for(root))
        assert report.unused_files == []
        assert [(f.subject.path, f.subject.symbol, f.confidence) for f in report.unused_exports] == [
            ("util.js", "helper", Confidence.HIGH),
        ]

    def test_glob_matched_assets_are_low_confidence(self, make_project, options_for):
        root = make_project({
            "package.json": json.dumps({"main": "src/index.ts"}),
            "src/index.ts": "export const images = import.meta.glob('@/assets/*');\n",
            "src/assets/icon.png": "",
            "public/logo.png": "",
        })
        aliases = {"@": "src"}

        report = analyze(options_for(root, aliases=aliases))
        assert report.unused_assets == []
        assert report.summary.omitted_low_confidence >= 2

        report = analyze(options_for(root, aliases=aliases, include_low_confidence=True))
        assert {f.subject.path: f.confidence for f in report.unused_assets} == {
            "public/logo.png": Confidence.LOW,
            "src/assets/icon.png": Confidence.LOW,
        }
