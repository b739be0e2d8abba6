"""
Ensure-install workflow for precompiled archives.

This module orchestrates getting the native library for the running host into
place: local check, target resolution, cache lookup, download, checksum
verification and extraction. Each step runs strictly after the previous one.

    CHECK_LOCAL -> CHECK_CACHE -> DOWNLOAD -> VERIFY -> INSTALL -> DONE
                                     \\          \\         \\
                                      +----------+---------+--> FAILED
"""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Mapping, Optional

from prebuiltkit.config.metadata import build_metadata, write_metadata
from prebuiltkit.config.parser import PrecompileConfig
from prebuiltkit.core.cache import CacheStore, artifact_url, cache_root
from prebuiltkit.core.download import fetch_one
from prebuiltkit.core.exceptions import (
    ChecksumMismatchError,
    ExtractionError,
    InstallError,
    InstallStage,
    IntegrityError,
    TransportError,
)
from prebuiltkit.core.filesystem import extract_archive
from prebuiltkit.core.platform import PlatformDescriptor, detect_descriptor
from prebuiltkit.core.verification import load_manifest, verify_checksum
from prebuiltkit.targets.resolver import TargetResolver

logger = logging.getLogger(__name__)

BUILD_REMEDIATION = "pbkit precompile"


class InstallState(str, Enum):
    """States of the ensure-install workflow."""

    CHECK_LOCAL = "check_local"
    CHECK_CACHE = "check_cache"
    DOWNLOAD = "download"
    VERIFY = "verify"
    INSTALL = "install"
    DONE = "done"
    FAILED = "failed"


@dataclass
class InstallResult:
    """Result of an ensure-install run."""

    load_path: Path
    """File the runtime loader should load"""

    load_data: Any = 0
    """Initialization payload to pass to the loader"""

    target: Optional[str] = None
    """Resolved target (None when the local file short-circuited resolution)"""

    archive_path: Optional[Path] = None
    """Cached archive that was installed"""

    downloaded: bool = False
    """Whether the archive had to be downloaded"""

    skipped: bool = False
    """Whether the library was already installed"""


class PrecompiledInstaller:
    """
    Install the precompiled library for the running host.

    Example:
        >>> installer = PrecompiledInstaller(load_config())
        >>> result = installer.ensure_installed()
        >>> print(f"Load {result.load_path} with {result.load_data}")
    """

    def __init__(
        self,
        config: PrecompileConfig,
        descriptor: Optional[PlatformDescriptor] = None,
        cache_dir: Optional[Path] = None,
        environ: Optional[Mapping[str, str]] = None,
        fetcher: Callable[[str], bytes] = fetch_one,
    ):
        self.config = config
        self.descriptor = descriptor
        self.cache_dir = cache_dir
        self.environ = environ
        self.fetcher = fetcher
        self.state = InstallState.CHECK_LOCAL

    def _transition(self, state: InstallState) -> None:
        logger.debug(f"ensure-install: {self.state.value} -> {state.value}")
        self.state = state

    def _fail(self, stage: InstallStage, message: str, cause: Exception) -> InstallError:
        self._transition(InstallState.FAILED)
        message = (
            f"{message}: {cause}\n"
            f"You can force the project to build from scratch with: "
            f"`{BUILD_REMEDIATION}`"
        )
        logger.error(message)
        return InstallError(stage, message)

    def ensure_installed(self) -> InstallResult:
        """
        Run the workflow until DONE.

        Returns:
            InstallResult describing what was loaded and whether work was done

        Raises:
            ResolutionError: If the host has no precompiled artifact
            InstallError: If download, verification or extraction fails
        """
        config = self.config
        self.state = InstallState.CHECK_LOCAL

        descriptor = self.descriptor or detect_descriptor(
            config.runtime_version, self.environ
        )
        load_path = config.load_path(descriptor.is_windows)

        if load_path.exists():
            logger.debug(f"Native library already installed at {load_path}")
            self._transition(InstallState.DONE)
            return InstallResult(
                load_path=load_path, load_data=config.load_data, skipped=True
            )

        resolver = TargetResolver(
            config.convention, config.targets, config.runtime_versions
        )
        resolved = resolver.resolve(descriptor)

        store = CacheStore(
            self.cache_dir if self.cache_dir is not None else cache_root("", self.environ)
        )
        archive_path = store.entry_path(
            config.app, resolved.runtime_version, resolved.target, config.version
        )
        write_metadata(
            config.app,
            build_metadata(config, resolved.target, archive_path),
            self.environ,
        )

        self._transition(InstallState.CHECK_CACHE)
        downloaded = False
        if not store.exists(archive_path):
            self._transition(InstallState.DOWNLOAD)
            url = artifact_url(config.base_url, archive_path.name)
            logger.info(f"Downloading precompiled archive from {url}")
            try:
                store.write(archive_path, self.fetcher(url))
            except (TransportError, OSError) as e:
                raise self._fail(
                    InstallStage.DOWNLOAD, "Cannot download the precompiled archive", e
                ) from e
            downloaded = True
        else:
            logger.debug(f"Using cached archive {archive_path}")

        self._transition(InstallState.VERIFY)
        try:
            verify_checksum(load_manifest(config.checksum_path), archive_path)
        except ChecksumMismatchError as e:
            # Next run downloads a fresh copy instead of reusing a bad entry
            archive_path.unlink(missing_ok=True)
            raise self._fail(
                InstallStage.VERIFY, "Integrity check of the precompiled archive failed", e
            ) from e
        except (IntegrityError, OSError) as e:
            raise self._fail(
                InstallStage.VERIFY, "Integrity check of the precompiled archive failed", e
            ) from e

        self._transition(InstallState.INSTALL)
        try:
            extract_archive(archive_path, config.install_path)
        except ExtractionError as e:
            raise self._fail(
                InstallStage.INSTALL, "Cannot install the precompiled archive", e
            ) from e

        self._transition(InstallState.DONE)
        logger.info(f"Installed {resolved.target} into {config.install_path}")
        return InstallResult(
            load_path=load_path,
            load_data=config.load_data,
            target=resolved.target,
            archive_path=archive_path,
            downloaded=downloaded,
        )


def ensure_installed(config: PrecompileConfig, **kwargs) -> InstallResult:
    """
    Convenience function to install the precompiled library.

    Args:
        config: Project configuration
        **kwargs: Forwarded to PrecompiledInstaller

    Returns:
        InstallResult

    Example:
        >>> result = ensure_installed(load_config())
    """
    return PrecompiledInstaller(config, **kwargs).ensure_installed()


__all__ = [
    "InstallState",
    "InstallResult",
    "PrecompiledInstaller",
    "ensure_installed",
]
