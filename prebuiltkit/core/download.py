"""
Artifact downloads for PrebuiltKit.

This module provides:
- HTTPS downloads with TLS peer and hostname verification (certifi roots)
- Proxy configuration from HTTP_PROXY/HTTPS_PROXY (and lower-case variants)
- Concurrent batch downloads into the cache directory, with digests

There is no retry and no timeout at this layer: large artifacts on slow links
are never abandoned, and retry policy belongs to the caller.
"""

import hashlib
import logging
import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence, Union
from urllib.parse import unquote, urlsplit

import requests
from requests.exceptions import RequestException

from prebuiltkit.core.cache import cache_root
from prebuiltkit.core.exceptions import TransportError
from prebuiltkit.core.filesystem import atomic_write
from prebuiltkit.core.verification import DEFAULT_ALGORITHM

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FetchedArtifact:
    """An archive downloaded into the cache."""

    url: str
    path: Path
    checksum: str
    algorithm: str = DEFAULT_ALGORITHM


def proxies_from_env(environ: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    """
    Read proxy settings for plain and secure transports.

    Upper-case variables win over lower-case ones.

    Example:
        >>> proxies_from_env({"https_proxy": "http://proxy:3128"})
        {'https': 'http://proxy:3128'}
    """
    if environ is None:
        environ = os.environ

    proxies = {}
    for scheme, keys in (
        ("http", ("HTTP_PROXY", "http_proxy")),
        ("https", ("HTTPS_PROXY", "https_proxy")),
    ):
        for key in keys:
            value = environ.get(key)
            if value:
                proxies[scheme] = value
                break
    return proxies


def basename_from_url(url: str) -> str:
    """
    Return the last path segment of a URL.

    Raises:
        ValueError: If the URL path has no final segment
    """
    name = unquote(urlsplit(url).path.rsplit("/", 1)[-1])
    if not name:
        raise ValueError(f"Cannot derive a file name from URL: {url}")
    return name


def fetch_one(url: str, proxies: Optional[Dict[str, str]] = None) -> bytes:
    """
    Download a single URL into memory.

    Args:
        url: Artifact URL
        proxies: requests-style proxy mapping (default: from environment)

    Returns:
        Response body

    Raises:
        TransportError: On TLS/connection failure or any non-200 status

    Example:
        >>> data = fetch_one("https://example.com/my_nif-nif-2.16-x86_64-linux-gnu-0.1.0.tar.gz")
    """
    if proxies is None:
        proxies = proxies_from_env()

    logger.debug(f"Downloading {url}")
    try:
        response = requests.get(
            url, proxies=proxies or None, verify=True, timeout=None, allow_redirects=True
        )
    except RequestException as e:
        raise TransportError(url, e) from e

    if response.status_code != 200:
        raise TransportError(url, f"HTTP status {response.status_code}")

    return response.content


def fetch_many(
    urls: Sequence[str],
    ignore_unavailable: bool = False,
    cache_dir: Union[str, Path, None] = None,
    proxies: Optional[Dict[str, str]] = None,
) -> List[FetchedArtifact]:
    """
    Download several artifacts concurrently into the cache.

    The cache directory is created once before any download starts. Each URL
    gets its own worker. Bodies are written to ``<cache_dir>/<last path
    segment>`` in URL order.

    Args:
        urls: Artifact URLs
        ignore_unavailable: Drop URLs that fail to download instead of raising
        cache_dir: Destination directory (default: cache_root())
        proxies: requests-style proxy mapping (default: from environment)

    Returns:
        One FetchedArtifact per successful URL, in input order

    Raises:
        TransportError: If any URL fails and ignore_unavailable is False
        OSError: If a downloaded body cannot be written

    Example:
        >>> results = fetch_many(urls, ignore_unavailable=True)
        >>> for artifact in results:
        ...     print(artifact.path, artifact.checksum)
    """
    cache_dir = Path(cache_dir) if cache_dir is not None else cache_root()
    cache_dir.mkdir(parents=True, exist_ok=True)

    if proxies is None:
        proxies = proxies_from_env()

    if not urls:
        return []

    results = []
    with ThreadPoolExecutor(max_workers=len(urls)) as executor:
        futures = [executor.submit(fetch_one, url, proxies) for url in urls]

        for url, future in zip(urls, futures):
            try:
                body = future.result()
            except TransportError as e:
                if ignore_unavailable:
                    logger.debug(f"Skipping unavailable artifact: {e}")
                    continue
                logger.error(f"Download failed: {e}")
                raise

            path = cache_dir / basename_from_url(url)
            atomic_write(path, body)
            checksum = hashlib.new(DEFAULT_ALGORITHM, body).hexdigest()
            logger.info(f"Downloaded {url}")
            results.append(
                FetchedArtifact(url=url, path=path, checksum=checksum)
            )

    return results


__all__ = [
    "FetchedArtifact",
    "proxies_from_env",
    "basename_from_url",
    "fetch_one",
    "fetch_many",
]
