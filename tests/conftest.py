"""Pytest configuration and fixtures for deadweight tests."""

import shutil
import tempfile
from pathlib import Path
from typing import Callable, Dict, Generator

import pytest

from deadweight_cli.config_manager import AnalysisOptions
from deadweight_cli.trash import TrashManager


@pytest.fixture(autouse=True)
def _isolated_user_config(tmp_path_factory, monkeypatch):
    """Point the per-user config at an empty directory so a developer's
    ~/.deadweight/config.toml never leaks into test runs."""
    home = tmp_path_factory.mktemp("deadweight_home")
    monkeypatch.setattr("deadweight_cli.config.BASE_DIR", home)
    monkeypatch.setattr("deadweight_cli.config.USER_CONFIG_FILE", home / "config.toml")


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmp = Path(tempfile.mkdtemp()).resolve()
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def sample_project_path() -> Path:
    """Get path to sample test project (read-only)."""
    return Path(__file__).parent / "fixtures" / "sample_project"


@pytest.fixture
def sample_project(temp_dir: Path, sample_project_path: Path) -> Path:
    """Writable copy of the sample project, for tests that move files."""
    target = temp_dir / "sample_project"
    shutil.copytree(sample_project_path, target)
    return target


@pytest.fixture
def make_project(temp_dir: Path) -> Callable[[Dict[str, str]], Path]:
    """Build a project tree from ``{relative path: content}``."""

    def _make(files: Dict[str, str], name: str = "project") -> Path:
        root = temp_dir / name
        root.mkdir(parents=True, exist_ok=True)
        for rel_path, content in files.items():
            path = root / rel_path
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        return root

    return _make


@pytest.fixture
def options_for() -> Callable[..., AnalysisOptions]:
    """AnalysisOptions for a root, without reading any config file."""

    def _options(root: Path, **kwargs) -> AnalysisOptions:
        kwargs.setdefault("jobs", 2)
        return AnalysisOptions(root=root, **kwargs)

    return _options


@pytest.fixture
def trash_manager(make_project) -> TrashManager:
    """TrashManager over a small project with a few files to delete."""
    root = make_project({
        "src/a.ts": "export const a = 1;\n",
        "src/b.ts": "export const b = 2;\n",
        "src/lib/c.ts": "export const c = 3;\n",
        "src/lib/d.ts": "export const d = 4;\n",
        "public/logo.svg": "<svg></svg>\n",
    })
    return TrashManager(root)
