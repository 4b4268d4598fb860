"""Pytest configuration and fixtures for depslice tests."""

import shutil
import tempfile
from pathlib import Path
from typing import Callable, Dict, Generator

import pytest

from depslice.indexer import index_paths
from depslice.reader import DiskFileReader, MemoryFileReader


@pytest.fixture(autouse=True)
def _isolated_config(tmp_path: Path, monkeypatch):
    """Point the user config file at an empty temp location.

    Keeps a developer's real ``~/.depslice/config.toml`` from leaking aliases,
    budgets, or model profiles into test runs.
    """
    home = tmp_path / "depslice_home"
    monkeypatch.setattr("depslice.config.BASE_DIR", home)
    monkeypatch.setattr("depslice.config.CONFIG_FILE", home / "config.toml")


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmp = Path(tempfile.mkdtemp())
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def sample_project_path() -> Path:
    """Get path to the sample TypeScript project."""
    return Path(__file__).parent / "fixtures" / "sample_ts_project"


@pytest.fixture
def sample_reader(sample_project_path: Path) -> DiskFileReader:
    return DiskFileReader(sample_project_path)


@pytest.fixture
def copied_project(sample_project_path: Path, temp_dir: Path) -> Path:
    """A writable copy of the sample project."""
    dest = temp_dir / "project"
    shutil.copytree(sample_project_path, dest)
    return dest


@pytest.fixture
def memory_repo() -> Callable[[Dict[str, str]], tuple]:
    """Build an in-memory repository: returns (reader, records)."""

    def _make(files: Dict[str, str]):
        reader = MemoryFileReader(files)
        records = index_paths(files.keys(), reader)
        return reader, records

    return _make
