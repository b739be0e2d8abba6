"""
Tests for the target metadata record.
"""

import pytest

from prebuiltkit.config.metadata import (
    available_urls,
    build_metadata,
    current_target_url,
    metadata_file,
    read_metadata,
    write_metadata,
)
from prebuiltkit.config.parser import config_from_dict
from prebuiltkit.core.exceptions import ConfigurationError

BASE_URL = "https://example.com/releases/download/v0.1.0"


@pytest.fixture
def env(tmp_path):
    return {"PREBUILTKIT_CACHE_DIR": str(tmp_path / "cache")}


@pytest.fixture
def config():
    return config_from_dict(
        {
            "app": "my_nif",
            "version": "0.1.0",
            "base_url": BASE_URL,
            "targets": ["x86_64-linux-gnu", "aarch64-linux-gnu"],
            "runtime_version": "2.16",
        },
        project_root="/project",
        environ={},
    )


class TestMetadataRecord:
    """Test reading and writing the record."""

    def test_location(self, env, tmp_path):
        assert metadata_file("my_nif", env) == tmp_path / "cache" / "metadata" / "metadata-my_nif.yaml"

    def test_write_then_read(self, config, env):
        record = build_metadata(config, "x86_64-linux-gnu", "/cache/a.tar.gz")

        assert write_metadata("my_nif", record, env)
        assert read_metadata("my_nif", env) == {
            "app": "my_nif",
            "base_url": BASE_URL,
            "cached_archive": "/cache/a.tar.gz",
            "target": "x86_64-linux-gnu",
            "targets": ["x86_64-linux-gnu", "aarch64-linux-gnu"],
            "version": "0.1.0",
        }

    def test_unchanged_record_not_rewritten(self, config, env):
        record = build_metadata(config, "x86_64-linux-gnu", "/cache/a.tar.gz")
        write_metadata("my_nif", record, env)
        path = metadata_file("my_nif", env)
        mtime = path.stat().st_mtime_ns

        assert not write_metadata("my_nif", record, env)
        assert path.stat().st_mtime_ns == mtime

    def test_changed_record_rewritten(self, config, env):
        write_metadata("my_nif", build_metadata(config, "x86_64-linux-gnu", "/a"), env)
        assert write_metadata("my_nif", build_metadata(config, "aarch64-linux-gnu", "/b"), env)
        assert read_metadata("my_nif", env)["target"] == "aarch64-linux-gnu"

    def test_missing_record(self, env):
        assert read_metadata("my_nif", env) == {}

    def test_unreadable_record(self, env, caplog):
        metadata_file("my_nif", env).write_text("target: [x86")
        assert read_metadata("my_nif", env) == {}
        assert "Cannot read metadata file" in caplog.text


class TestUrls:
    """Test URL reconstruction from the record."""

    def test_available_urls(self, config, env):
        write_metadata("my_nif", build_metadata(config, "x86_64-linux-gnu", "/a"), env)

        assert available_urls("my_nif", ["2.15", "2.16"], env) == [
            f"{BASE_URL}/my_nif-nif-2.15-x86_64-linux-gnu-0.1.0.tar.gz",
            f"{BASE_URL}/my_nif-nif-2.16-x86_64-linux-gnu-0.1.0.tar.gz",
            f"{BASE_URL}/my_nif-nif-2.15-aarch64-linux-gnu-0.1.0.tar.gz",
            f"{BASE_URL}/my_nif-nif-2.16-aarch64-linux-gnu-0.1.0.tar.gz",
        ]

    def test_current_target_url(self, config, env):
        write_metadata("my_nif", build_metadata(config, "aarch64-linux-gnu", "/a"), env)

        assert (
            current_target_url("my_nif", "2.16", env)
            == f"{BASE_URL}/my_nif-nif-2.16-aarch64-linux-gnu-0.1.0.tar.gz"
        )

    def test_legacy_record_without_version(self, env):
        write_metadata(
            "my_nif",
            {
                "app": "my_nif",
                "base_url": BASE_URL,
                "target": "x86_64-linux-gnu",
                "targets": ["x86_64-linux-gnu", "aarch64-linux-gnu"],
            },
            env,
        )

        assert available_urls("my_nif", ["2.15", "2.16"], env) == [
            f"{BASE_URL}/x86_64-linux-gnu.tar.gz",
            f"{BASE_URL}/aarch64-linux-gnu.tar.gz",
        ]
        assert current_target_url("my_nif", "2.16", env) == f"{BASE_URL}/x86_64-linux-gnu.tar.gz"

    def test_version_recovered_from_cached_archive(self, env):
        write_metadata(
            "my_nif",
            {
                "app": "my_nif",
                "base_url": BASE_URL,
                "cached_archive": "/cache/my_nif-nif-2.16-x86_64-linux-gnu-0.1.0-dev.tar.gz",
                "target": "x86_64-linux-gnu",
                "targets": ["x86_64-linux-gnu"],
            },
            env,
        )

        assert available_urls("my_nif", ["2.15", "2.16"], env) == [
            f"{BASE_URL}/my_nif-nif-2.15-x86_64-linux-gnu-0.1.0-dev.tar.gz",
            f"{BASE_URL}/my_nif-nif-2.16-x86_64-linux-gnu-0.1.0-dev.tar.gz",
        ]
        assert current_target_url("my_nif", "2.16", env) == (
            f"{BASE_URL}/my_nif-nif-2.16-x86_64-linux-gnu-0.1.0-dev.tar.gz"
        )

    def test_legacy_cached_archive_keeps_legacy_urls(self, env):
        write_metadata(
            "my_nif",
            {
                "app": "my_nif",
                "base_url": BASE_URL,
                "cached_archive": "/cache/x86_64-linux-gnu.tar.gz",
                "target": "x86_64-linux-gnu",
                "targets": ["x86_64-linux-gnu"],
            },
            env,
        )

        assert current_target_url("my_nif", "2.16", env) == f"{BASE_URL}/x86_64-linux-gnu.tar.gz"

    def test_missing_record_names_precompile(self, env):
        with pytest.raises(ConfigurationError, match="pbkit precompile"):
            available_urls("my_nif", ["2.16"], env)
        with pytest.raises(ConfigurationError, match="pbkit precompile"):
            current_target_url("my_nif", "2.16", env)
