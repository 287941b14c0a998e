"""
Pytest configuration for the semedit test suite.

This conftest.py provides:
- Machine-mode logging (suppresses console output)
- An isolated, empty config file so a developer's semedit.toml never leaks in
- Sample source files and workspace fixtures
"""

import os
import shutil
import tempfile
from pathlib import Path

import pytest

os.environ.setdefault("SEMEDIT_MACHINE_MODE", "1")

from semedit.cache import DocumentCache
from semedit.logging_config import setup_logging
from semedit.workspace import EditWorkspace


# ============================================================================
# LOGGING AND CONFIG FIXTURES
# ============================================================================

@pytest.fixture(autouse=True)
def setup_test_logging():
    """
    Machine mode by default - suppress console logs for clean test output.
    """
    setup_logging(level="DEBUG", suppress_console=True)


@pytest.fixture(autouse=True)
def isolated_config(tmp_path_factory, monkeypatch):
    """Point SEMEDIT_CONFIG at an empty file so DEFAULTS apply."""
    config_file = tmp_path_factory.mktemp("config") / "semedit.toml"
    config_file.write_text("")
    monkeypatch.setenv("SEMEDIT_CONFIG", str(config_file))
    return config_file


# ============================================================================
# SAMPLE SOURCES
# ============================================================================

RUST_POINT = "struct Point { x: i32, y: i32 }\n"

RUST_IMPL = '''struct Point {
    x: i32,
    y: i32,
}

impl Point {
    fn new(x: i32, y: i32) -> Self {
        Point { x, y }
    }
}
'''

PYTHON_DUPLICATE_PARSE = '''def parse(text):
    return text.split()


def helper():
    return 1


def parse(data):
    return data
'''

PYTHON_GREETER = '''def greet(name):
    return "Hello, " + name


def farewell(name):
    return "Bye, " + name
'''


# ============================================================================
# TEMPORARY DIRECTORY FIXTURES
# ============================================================================

@pytest.fixture
def temp_dir():
    """Create a temporary directory that's cleaned up after the test."""
    tmp = Path(tempfile.mkdtemp(prefix="semedit_test_"))
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def temp_project(temp_dir):
    """
    Create a temporary project directory with sample files.

    Returns:
        Path to the temp directory containing sample files.
    """
    (temp_dir / "point.rs").write_text(RUST_POINT)
    (temp_dir / "shapes.rs").write_text(RUST_IMPL)
    (temp_dir / "parsers.py").write_text(PYTHON_DUPLICATE_PARSE)
    (temp_dir / "greeter.py").write_text(PYTHON_GREETER)
    (temp_dir / "settings.json").write_text('{\n    "name": "demo",\n    "debug": false\n}\n')
    yield temp_dir


# ============================================================================
# WORKSPACE FIXTURES
# ============================================================================

@pytest.fixture
def workspace():
    """A fresh EditWorkspace with a small cache, shut down after the test."""
    ws = EditWorkspace(cache=DocumentCache(capacity=8, force_eviction=False))
    yield ws
    ws.shutdown()


@pytest.fixture
def open_file(workspace, temp_project):
    """Open a file from temp_project and return its Document."""
    def _open(name: str, language=None):
        return workspace.open_document(temp_project / name, language_hint=language)
    return _open
