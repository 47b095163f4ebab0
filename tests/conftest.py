"""
Pytest configuration and fixtures for actionhost tests.
"""

import base64
import io
import itertools
import json
import sys
import textwrap
import zipfile
from pathlib import Path

import pytest

# Add the repository root to path for imports
# This allows `from actionhost.runtime import ...` to work
repo_root = Path(__file__).parent.parent
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))


ECHO_SOURCE = """
from actionhost.api import ActionRouteBuilder


class Echo(ActionRouteBuilder):
    def configure(self):
        self.from_().process(lambda body, headers: {"input": body, "env": headers})
"""


@pytest.fixture
def make_archive(tmp_path):
    """Build a zip archive from ``{arcname: source}`` under tmp_path."""
    counter = itertools.count()

    def _make(files: dict[str, str], name: str | None = None) -> Path:
        path = tmp_path / (name or f"action-{next(counter)}.zip")
        with zipfile.ZipFile(path, "w") as zf:
            for arcname, source in files.items():
                zf.writestr(arcname, textwrap.dedent(source))
        return path

    return _make


@pytest.fixture
def echo_source():
    """Source of the echo action module."""
    return ECHO_SOURCE


@pytest.fixture
def echo_archive(make_archive):
    """Archive whose ``demo.Echo`` returns its input and environment."""
    return make_archive({"demo/__init__.py": ECHO_SOURCE})


@pytest.fixture
def extract_dir(tmp_path):
    """Empty directory for extracted inline archives."""
    path = tmp_path / "extracted"
    path.mkdir()
    return path


@pytest.fixture
def init_body():
    """Build an init request body referencing an archive by path."""

    def _body(archive: Path, main: str) -> io.BytesIO:
        doc = {"value": {"main": main, "code": str(archive)}}
        return io.BytesIO(json.dumps(doc).encode("utf-8"))

    return _body


@pytest.fixture
def inline_init_body():
    """Build an init request body carrying the archive inline as base64."""

    def _body(archive: Path, main: str) -> io.BytesIO:
        encoded = base64.b64encode(archive.read_bytes()).decode("ascii")
        doc = {"value": {"main": main, "code": {"binary": True, "value": encoded}}}
        return io.BytesIO(json.dumps(doc).encode("utf-8"))

    return _body


@pytest.fixture
def run_body():
    """Build a run request body from an input object and environment."""

    def _body(value=None, **env) -> io.BytesIO:
        doc = dict(env)
        if value is not None:
            doc["value"] = value
        return io.BytesIO(json.dumps(doc).encode("utf-8"))

    return _body
