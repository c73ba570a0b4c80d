"""Tests for TOML configuration loading and merging."""

from pathlib import Path

import pytest
import toml

from deadweight_cli import config
from deadweight_cli.config_manager import (
    AnalysisOptions,
    load_toml,
    parse_alias_options,
    save_project_config,
    split_csv,
)


def _write_project_config(root: Path, payload: dict) -> None:
    (root / config.PROJECT_CONFIG_NAME).write_text(toml.dumps(payload))


class TestAnalysisOptions:
    """Tests for AnalysisOptions.from_sources()."""

    def test_defaults(self, temp_dir: Path):
        options = AnalysisOptions.from_sources(temp_dir)
        assert options.entries == []
        assert options.aliases == {}
        assert not options.include_low_confidence
        assert options.jobs == config.DEFAULT_JOBS

    def test_project_file(self, temp_dir: Path):
        _write_project_config(temp_dir, {
            "analysis": {
                "entries": ["src/main.ts"],
                "asset_roots": "public,src/assets",
                "include_non_prod_deps": True,
                "jobs": 3,
            },
            "aliases": {"@": "src"},
        })
        options = AnalysisOptions.from_sources(temp_dir)
        assert options.entries == ["src/main.ts"]
        assert options.asset_roots == ["public", "src/assets"]
        assert options.include_non_prod_deps
        assert options.jobs == 3
        assert options.aliases == {"@": "src"}

    def test_precedence(self, temp_dir: Path):
        config.USER_CONFIG_FILE.write_text(toml.dumps({
            "analysis": {"entries": ["user.ts"], "jobs": 2},
            "aliases": {"~": "lib", "@": "app"},
        }))
        _write_project_config(temp_dir, {"analysis": {"entries": ["project.ts"]}, "aliases": {"@": "src"}})

        options = AnalysisOptions.from_sources(temp_dir, {"entries": [], "jobs": None})
        assert options.entries == ["project.ts"]
        assert options.jobs == 2
        assert options.aliases == {"~": "lib", "@": "src"}

        overridden = AnalysisOptions.from_sources(
            temp_dir, {"entries": ["cli.ts"], "aliases": {"@": "web"}, "jobs": 5},
        )
        assert overridden.entries == ["cli.ts"]
        assert overridden.aliases == {"~": "lib", "@": "web"}
        assert overridden.jobs == 5

    def test_user_config_can_be_skipped(self, temp_dir: Path):
        config.USER_CONFIG_FILE.write_text(toml.dumps({"analysis": {"entries": ["user.ts"]}}))
        assert AnalysisOptions.from_sources(temp_dir, use_user_config=False).entries == []

    def test_invalid_jobs_falls_back(self, temp_dir: Path):
        _write_project_config(temp_dir, {"analysis": {"jobs": "many"}})
        assert AnalysisOptions.from_sources(temp_dir).jobs == config.DEFAULT_JOBS


class TestConfigFiles:
    """Tests for reading and writing TOML files."""

    def test_broken_file_is_ignored(self, temp_dir: Path):
        path = temp_dir / "broken.toml"
        path.write_text("[analysis\nentries = ")
        assert load_toml(path) == {}
        assert load_toml(temp_dir / "missing.toml") == {}

    def test_save_preserves_other_sections(self, temp_dir: Path):
        _write_project_config(temp_dir, {"analysis": {"jobs": 4}, "team": {"owner": "web"}})
        path = save_project_config(temp_dir, {"entries": ["src/index.ts"]}, {"@": "src"})

        saved = toml.load(str(path))
        assert saved["analysis"] == {"jobs": 4, "entries": ["src/index.ts"]}
        assert saved["aliases"] == {"@": "src"}
        assert saved["team"] == {"owner": "web"}


class TestOptionParsing:
    """Tests for command-line value helpers."""

    def test_split_csv(self):
        assert split_csv(["public,src/assets", " docs "]) == ["public", "src/assets", "docs"]
        assert split_csv("a,,b") == ["a", "b"]
        assert split_csv(None) == []

    def test_parse_alias_options(self):
        assert parse_alias_options(["@=src", "~lib = src/lib"]) == {"@": "src", "~lib": "src/lib"}

    @pytest.mark.parametrize("raw", ["nosep", "=src", "@="])
    def test_parse_alias_options_rejects(self, raw: str):
        with pytest.raises(ValueError):
            parse_alias_options([raw])
