"""
Unit tests for download module.

Tests download functionality with mocked network requests.
"""

import hashlib

import pytest
import requests
import responses

from prebuiltkit.core.download import (
    FetchedArtifact,
    basename_from_url,
    fetch_many,
    fetch_one,
    proxies_from_env,
)
from prebuiltkit.core.exceptions import TransportError

BASE = "https://example.com/releases/download/v0.1.0"


class TestProxiesFromEnv:
    """Test proxy configuration."""

    def test_no_proxies(self):
        assert proxies_from_env({}) == {}

    def test_upper_and_lower_case(self):
        env = {"http_proxy": "http://p:80", "HTTPS_PROXY": "http://s:3128"}
        assert proxies_from_env(env) == {"http": "http://p:80", "https": "http://s:3128"}

    def test_upper_case_wins(self):
        env = {"HTTPS_PROXY": "http://upper", "https_proxy": "http://lower"}
        assert proxies_from_env(env) == {"https": "http://upper"}


class TestBasenameFromUrl:
    """Test URL basename extraction."""

    def test_last_segment(self):
        assert basename_from_url(f"{BASE}/a.tar.gz?x=1") == "a.tar.gz"

    def test_no_segment(self):
        with pytest.raises(ValueError):
            basename_from_url("https://example.com/")


class TestFetchOne:
    """Test fetch_one."""

    @responses.activate
    def test_success(self):
        responses.add(responses.GET, f"{BASE}/a.tar.gz", body=b"data", status=200)
        assert fetch_one(f"{BASE}/a.tar.gz", proxies={}) == b"data"

    @responses.activate
    def test_not_found(self):
        url = f"{BASE}/missing.tar.gz"
        responses.add(responses.GET, url, status=404)

        with pytest.raises(TransportError) as exc_info:
            fetch_one(url, proxies={})

        assert exc_info.value.url == url
        assert "404" in str(exc_info.value)

    @responses.activate
    def test_non_200_success_code_is_failure(self):
        responses.add(responses.GET, f"{BASE}/a.tar.gz", status=204)
        with pytest.raises(TransportError):
            fetch_one(f"{BASE}/a.tar.gz", proxies={})

    @responses.activate
    def test_connection_error(self):
        url = f"{BASE}/a.tar.gz"
        responses.add(
            responses.GET, url, body=requests.exceptions.ConnectionError("refused")
        )

        with pytest.raises(TransportError) as exc_info:
            fetch_one(url, proxies={})

        assert isinstance(exc_info.value.cause, requests.exceptions.ConnectionError)

    @responses.activate
    def test_no_retry(self):
        url = f"{BASE}/a.tar.gz"
        responses.add(responses.GET, url, status=503)

        with pytest.raises(TransportError):
            fetch_one(url, proxies={})

        assert len(responses.calls) == 1


class TestFetchMany:
    """Test fetch_many."""

    @responses.activate
    def test_lenient_drops_unavailable(self, tmp_path):
        urls = [f"{BASE}/a.tar.gz", f"{BASE}/b.tar.gz", f"{BASE}/c.tar.gz"]
        responses.add(responses.GET, urls[0], body=b"aaa", status=200)
        responses.add(responses.GET, urls[1], status=404)
        responses.add(responses.GET, urls[2], body=b"ccc", status=200)

        results = fetch_many(urls, ignore_unavailable=True, cache_dir=tmp_path, proxies={})

        assert len(results) == 2
        assert [r.url for r in results] == [urls[0], urls[2]]
        assert (tmp_path / "a.tar.gz").read_bytes() == b"aaa"
        assert not (tmp_path / "b.tar.gz").exists()

    @responses.activate
    def test_strict_raises(self, tmp_path):
        urls = [f"{BASE}/a.tar.gz", f"{BASE}/b.tar.gz"]
        responses.add(responses.GET, urls[0], body=b"aaa", status=200)
        responses.add(responses.GET, urls[1], status=404)

        with pytest.raises(TransportError) as exc_info:
            fetch_many(urls, ignore_unavailable=False, cache_dir=tmp_path, proxies={})

        assert exc_info.value.url == urls[1]

    @responses.activate
    def test_checksums_computed(self, tmp_path):
        url = f"{BASE}/a.tar.gz"
        responses.add(responses.GET, url, body=b"payload", status=200)

        results = fetch_many([url], cache_dir=tmp_path, proxies={})

        assert results == [
            FetchedArtifact(
                url=url,
                path=tmp_path / "a.tar.gz",
                checksum=hashlib.sha256(b"payload").hexdigest(),
                algorithm="sha256",
            )
        ]

    def test_creates_cache_dir_even_without_urls(self, tmp_path):
        cache = tmp_path / "new" / "cache"
        assert fetch_many([], cache_dir=cache, proxies={}) == []
        assert cache.is_dir()

    @responses.activate
    def test_write_failure_raises_even_when_lenient(self, tmp_path):
        url = f"{BASE}/a.tar.gz"
        responses.add(responses.GET, url, body=b"payload", status=200)
        (tmp_path / "a.tar.gz").mkdir()

        with pytest.raises(OSError):
            fetch_many([url], ignore_unavailable=True, cache_dir=tmp_path, proxies={})
