"""
Fetch published archives and generate the checksum manifest.

Package maintainers run this after publishing a release: it downloads every
archive named by the metadata record (or only the current host's, for each
runtime version) and writes ``checksum-{app}.yaml`` from what was fetched.
"""

import logging
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from prebuiltkit.config.metadata import available_urls, current_target_url
from prebuiltkit.config.parser import PrecompileConfig
from prebuiltkit.core.cache import cache_root
from prebuiltkit.core.download import FetchedArtifact, fetch_many
from prebuiltkit.core.verification import checksum_entries, save_manifest

logger = logging.getLogger(__name__)


def artifact_urls(
    config: PrecompileConfig,
    only_local: bool = False,
    environ: Optional[Mapping[str, str]] = None,
) -> List[str]:
    """
    URLs of the published archives, from the metadata record.

    Args:
        config: Project configuration
        only_local: Only the stored (current) target, once per runtime version
        environ: Environment mapping (default: os.environ)

    Raises:
        ConfigurationError: If no metadata has been recorded yet
    """
    if only_local:
        return [
            current_target_url(config.app, runtime_version, environ)
            for runtime_version in config.runtime_versions
        ]
    return available_urls(config.app, config.runtime_versions, environ)


def fetch_artifacts(
    config: PrecompileConfig,
    only_local: bool = False,
    ignore_unavailable: bool = False,
    cache_dir: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
    proxies: Optional[Dict[str, str]] = None,
) -> List[FetchedArtifact]:
    """
    Download archives into the cache and rewrite the checksum manifest.

    The manifest is replaced by entries for exactly the fetched archives.

    Returns:
        The fetched artifacts, in URL order

    Raises:
        ConfigurationError: If no metadata has been recorded yet
        TransportError: If a download fails and ignore_unavailable is False
    """
    urls = artifact_urls(config, only_local, environ)
    logger.info(f"Fetching {len(urls)} precompiled archive(s)")

    artifacts = fetch_many(
        urls,
        ignore_unavailable=ignore_unavailable,
        cache_dir=cache_dir if cache_dir is not None else cache_root("", environ),
        proxies=proxies,
    )

    save_manifest(config.checksum_path, checksum_entries(artifacts))
    return artifacts


__all__ = ["artifact_urls", "fetch_artifacts"]
