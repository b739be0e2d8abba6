"""
Pytest configuration and shared fixtures for PrebuiltKit tests.
"""

import io
import tarfile
from pathlib import Path
from typing import Dict

import pytest


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )


# ============================================================================
# Shared Test Fixtures
# ============================================================================


CONFIG_YAML = """app: my_nif
version: 0.1.0
base_url: https://example.com/releases/download/v0.1.0
convention: zig
targets:
  - x86_64-linux-gnu
  - aarch64-linux-gnu
runtime_versions: ["2.15", "2.16"]
runtime_version: "2.16"
"""


@pytest.fixture
def cache_dir(tmp_path: Path, monkeypatch) -> Path:
    """Point the cache root at a temporary directory."""
    path = tmp_path / "cache"
    monkeypatch.setenv("PREBUILTKIT_CACHE_DIR", str(path))
    return path


@pytest.fixture
def project_root(tmp_path: Path) -> Path:
    """Create a project directory with a prebuiltkit.yaml."""
    root = tmp_path / "project"
    root.mkdir()
    (root / "prebuiltkit.yaml").write_text(CONFIG_YAML)
    return root


@pytest.fixture
def clean_target_env(monkeypatch):
    """Remove TARGET_* and PrebuiltKit variables that would leak into detection."""
    for name in (
        "TARGET_ARCH",
        "TARGET_VENDOR",
        "TARGET_OS",
        "TARGET_ABI",
        "PREBUILTKIT_RUNTIME_VERSION",
        "PREBUILTKIT_APP_NAME",
        "PREBUILTKIT_APP_VERSION",
        "PREBUILTKIT_TARGETS",
        "PREBUILTKIT_ALWAYS_USE_ZIG",
    ):
        monkeypatch.delenv(name, raising=False)


def build_tar_gz(path: Path, files: Dict[str, bytes], symlinks: Dict[str, str] = None) -> Path:
    """Write a tar.gz with the given regular files and symlinks."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with tarfile.open(path, "w:gz") as tar:
        for name, data in files.items():
            info = tarfile.TarInfo(name)
            info.size = len(data)
            info.mode = 0o644
            tar.addfile(info, io.BytesIO(data))
        for name, target in (symlinks or {}).items():
            info = tarfile.TarInfo(name)
            info.type = tarfile.SYMTYPE
            info.linkname = target
            tar.addfile(info)
    return path


@pytest.fixture
def make_tar_gz():
    """Factory fixture building tar.gz archives."""
    return build_tar_gz


@pytest.fixture(autouse=True)
def reset_caches():
    """Reset module-level caches between tests."""
    from prebuiltkit.core import platform

    platform.clear_platform_cache()
    yield
    platform.clear_platform_cache()
