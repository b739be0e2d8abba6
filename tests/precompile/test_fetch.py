"""
Tests for fetching published archives and regenerating checksums.
"""

import hashlib

import pytest
import responses

from prebuiltkit.config.metadata import build_metadata, write_metadata
from prebuiltkit.config.parser import config_from_dict
from prebuiltkit.core.exceptions import ConfigurationError, TransportError
from prebuiltkit.core.verification import load_manifest, save_manifest
from prebuiltkit.precompile.fetch import artifact_urls, fetch_artifacts

BASE_URL = "https://example.com/releases/download/v0.1.0"


def url(runtime_version, target):
    return f"{BASE_URL}/my_nif-nif-{runtime_version}-{target}-0.1.0.tar.gz"


def sha256(data):
    return f"sha256:{hashlib.sha256(data).hexdigest()}"


@pytest.fixture
def env(tmp_path):
    return {"PREBUILTKIT_CACHE_DIR": str(tmp_path / "cache")}


@pytest.fixture
def config(tmp_path, env):
    root = tmp_path / "project"
    root.mkdir()
    config = config_from_dict(
        {
            "app": "my_nif",
            "version": "0.1.0",
            "base_url": BASE_URL,
            "targets": ["x86_64-linux-gnu", "aarch64-linux-gnu"],
            "runtime_versions": ["2.15", "2.16"],
            "runtime_version": "2.16",
        },
        project_root=root,
        environ={},
    )
    write_metadata("my_nif", build_metadata(config, "x86_64-linux-gnu", "/unused"), env)
    return config


class TestArtifactUrls:
    """Test URL listing."""

    def test_all_targets(self, config, env):
        assert artifact_urls(config, environ=env) == [
            url("2.15", "x86_64-linux-gnu"),
            url("2.16", "x86_64-linux-gnu"),
            url("2.15", "aarch64-linux-gnu"),
            url("2.16", "aarch64-linux-gnu"),
        ]

    def test_only_local(self, config, env):
        assert artifact_urls(config, only_local=True, environ=env) == [
            url("2.15", "x86_64-linux-gnu"),
            url("2.16", "x86_64-linux-gnu"),
        ]

    def test_without_metadata(self, config, tmp_path):
        other_env = {"PREBUILTKIT_CACHE_DIR": str(tmp_path / "empty")}
        with pytest.raises(ConfigurationError, match="pbkit precompile"):
            artifact_urls(config, environ=other_env)


class TestFetchArtifacts:
    """Test downloads and manifest regeneration."""

    @responses.activate
    def test_only_local_writes_manifest(self, config, env, tmp_path):
        for version in ("2.15", "2.16"):
            responses.add(
                responses.GET,
                url(version, "x86_64-linux-gnu"),
                body=f"archive {version}".encode(),
                status=200,
            )

        artifacts = fetch_artifacts(config, only_local=True, environ=env, proxies={})

        assert [a.path.parent for a in artifacts] == [tmp_path / "cache"] * 2
        assert load_manifest(config.checksum_path) == {
            "my_nif-nif-2.15-x86_64-linux-gnu-0.1.0.tar.gz": sha256(b"archive 2.15"),
            "my_nif-nif-2.16-x86_64-linux-gnu-0.1.0.tar.gz": sha256(b"archive 2.16"),
        }

    @responses.activate
    def test_manifest_replaced_by_fetched_set(self, config, env):
        save_manifest(config.checksum_path, {"old.tar.gz": "sha256:" + "0" * 64})
        for target in ("x86_64-linux-gnu", "aarch64-linux-gnu"):
            responses.add(responses.GET, url("2.15", target), status=404)
            responses.add(responses.GET, url("2.16", target), body=b"ok", status=200)

        artifacts = fetch_artifacts(
            config, ignore_unavailable=True, environ=env, proxies={}
        )

        assert len(artifacts) == 2
        assert sorted(load_manifest(config.checksum_path)) == [
            "my_nif-nif-2.16-aarch64-linux-gnu-0.1.0.tar.gz",
            "my_nif-nif-2.16-x86_64-linux-gnu-0.1.0.tar.gz",
        ]

    @responses.activate
    def test_strict_failure_keeps_manifest(self, config, env):
        save_manifest(config.checksum_path, {"old.tar.gz": "sha256:" + "0" * 64})
        responses.add(responses.GET, url("2.15", "x86_64-linux-gnu"), status=404)
        responses.add(responses.GET, url("2.16", "x86_64-linux-gnu"), body=b"ok", status=200)

        with pytest.raises(TransportError):
            fetch_artifacts(config, only_local=True, environ=env, proxies={})

        assert list(load_manifest(config.checksum_path)) == ["old.tar.gz"]
