"""
Shared fixtures for testing the worksheet evaluator.

Provides:
- Temporary source and working directories
- A Python configuration that materializes into the temporary directory
- A helper for laying out plain Python modules on a classpath
"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from worksheet_eval.config import EvaluatorConfig


@pytest.fixture
def source_dir(tmp_path):
    """Directory that instrumented sources are materialized into."""
    directory = tmp_path / "sources"
    directory.mkdir()
    return directory


@pytest.fixture
def work_dir(tmp_path):
    """Working directory for child processes."""
    directory = tmp_path / "work"
    directory.mkdir()
    return directory


@pytest.fixture
def config(source_dir):
    """Python configuration writing sources into source_dir."""
    return EvaluatorConfig(source_directory=str(source_dir), timeout_sec=60)


@pytest.fixture
def write_module():
    """Write a dotted module below a root directory and return its path."""
    def _write(root: Path, module: str, source: str) -> Path:
        path = root.joinpath(*module.split(".")).with_suffix(".py")
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(source, encoding="utf-8")
        return path
    return _write
