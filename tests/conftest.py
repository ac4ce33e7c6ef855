"""
pytest configuration and shared fixtures for houseforge tests.

Fixtures
--------
project_dir : Path
    A directory holding a minimal package.json.

context : TemplateContext
    Rendering context for the ``my-lib`` package.

fake_store : FakeObjectStore
    In-memory object store recording uploads.

credentials_file : Path
    A valid credential file.
"""

import json
from pathlib import Path

import pytest

from houseforge.models import TemplateContext


class FakeObjectStore:
    """
    Object store keeping uploads in memory.

    Keys listed in ``fail_keys`` raise on upload, mimicking a transport
    error.
    """

    def __init__(self, fail_keys: set[str] | None = None) -> None:
        self.objects: dict[str, bytes] = {}
        self.calls: list[str] = []
        self.fail_keys = fail_keys or set()

    def put(self, key: str, local_path: Path) -> None:
        self.calls.append(key)
        if key in self.fail_keys:
            raise ConnectionError(f"simulated failure for {key}")
        self.objects[key] = local_path.read_bytes()


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """Create a project directory with a minimal package.json."""
    project = tmp_path / "my-lib"
    project.mkdir()
    (project / "package.json").write_text(
        json.dumps({"name": "@acme/my-lib", "version": "1.0.0"}, indent=4) + "\n",
        encoding="utf-8",
    )
    return project


@pytest.fixture
def context() -> TemplateContext:
    """Rendering context with default settings."""
    return TemplateContext(name="@acme/my-lib", year=2025)


@pytest.fixture
def fake_store() -> FakeObjectStore:
    """In-memory object store."""
    return FakeObjectStore()


@pytest.fixture
def credentials_file(tmp_path: Path) -> Path:
    """Write a valid credential file."""
    path = tmp_path / "oss_config.json"
    path.write_text(
        json.dumps({
            "region": "eu-west-1",
            "accessKeyId": "AKIDEXAMPLE",
            "accessKeySecret": "secret",
            "bucket": "assets",
            "baseUrl": "https://cdn.example.com/",
        }),
        encoding="utf-8",
    )
    return path


# =============================================================================
# pytest Configuration
# =============================================================================

def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
