"""
Content-addressed artifact cache for PrebuiltKit.

Precompiled archives are stored under a per-user cache root, one file per
(app, runtime version, target, version) combination:

    <cache root>/
        my_nif-nif-2.16-x86_64-linux-gnu-0.1.0.tar.gz
        my_nif-nif-2.16-aarch64-macos-0.1.0.tar.gz
        metadata/
            metadata-my_nif.yaml

Entries are never modified in place. A new archive is written to a temporary
file and renamed over the entry, so an interrupted write never leaves a
half-written file under the final name.
"""

import logging
import os
import platform
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Union
from urllib.parse import urlsplit, urlunsplit

from prebuiltkit.core.filesystem import atomic_write

logger = logging.getLogger(__name__)

CACHE_DIR_ENV = "PREBUILTKIT_CACHE_DIR"
XDG_ENV = "PREBUILTKIT_XDG"
CACHE_NAMESPACE = "prebuiltkit"
ARCHIVE_SUFFIX = ".tar.gz"

_ARTIFACT_RE = re.compile(
    r"^(?P<app>.+?)-nif-(?P<runtime_version>\d+(?:\.\d+)*)-"
    r"(?P<target>.+?)-(?P<version>\d+(?:\.\d+)*(?:[-+][0-9A-Za-z.+-]*)?)"
    + re.escape(ARCHIVE_SUFFIX)
    + "$"
)


def _user_cache_dir(environ: Mapping[str, str]) -> Path:
    """Per-user cache directory for the current OS."""
    if not environ.get(XDG_ENV):
        system = platform.system().lower()
        if system == "windows" or os.name == "nt":
            local = environ.get("LOCALAPPDATA")
            if local:
                return Path(local)
            return Path.home() / "AppData" / "Local"
        if system == "darwin":
            return Path.home() / "Library" / "Caches"

    xdg = environ.get("XDG_CACHE_HOME")
    if xdg:
        return Path(xdg)
    return Path.home() / ".cache"


def cache_root(subdir: str = "", environ: Optional[Mapping[str, str]] = None) -> Path:
    """
    Return (and create) the cache root, or a subdirectory of it.

    PREBUILTKIT_CACHE_DIR wins when set. Otherwise the per-user cache
    directory is used (%LOCALAPPDATA% on Windows, ~/Library/Caches on macOS,
    $XDG_CACHE_HOME or ~/.cache elsewhere), namespaced by 'prebuiltkit'.
    Setting PREBUILTKIT_XDG forces the XDG layout on every OS.

    Args:
        subdir: Optional subdirectory, e.g. 'metadata'
        environ: Environment mapping (default: os.environ)

    Returns:
        Existing directory path

    Example:
        >>> cache_root()
        PosixPath('/home/user/.cache/prebuiltkit')
        >>> cache_root("metadata")
        PosixPath('/home/user/.cache/prebuiltkit/metadata')
    """
    if environ is None:
        environ = os.environ

    override = environ.get(CACHE_DIR_ENV)
    if override:
        root = Path(override).expanduser()
    else:
        root = _user_cache_dir(environ) / CACHE_NAMESPACE

    if subdir:
        root = root / subdir

    root.mkdir(parents=True, exist_ok=True)
    return root


def archive_filename(app: str, runtime_version: str, target: str, version: str) -> str:
    """
    Build the cache/remote filename of a precompiled archive.

    Example:
        >>> archive_filename("my_nif", "2.16", "x86_64-linux-gnu", "0.1.0")
        'my_nif-nif-2.16-x86_64-linux-gnu-0.1.0.tar.gz'
    """
    return f"{app}-nif-{runtime_version}-{target}-{version}{ARCHIVE_SUFFIX}"


@dataclass(frozen=True)
class ArtifactName:
    """Fields recovered from an archive filename; legacy names carry only target."""

    target: str
    app: Optional[str] = None
    runtime_version: Optional[str] = None
    version: Optional[str] = None

    @property
    def is_legacy(self) -> bool:
        return self.app is None


def parse_artifact_name(basename: str) -> Optional[ArtifactName]:
    """
    Parse an archive basename in either the current or the legacy shape.

    Current: '{app}-nif-{runtime_version}-{target}-{version}.tar.gz'
    Legacy:  '{target}.tar.gz'

    Returns:
        ArtifactName, or None if basename is not an archive name

    Example:
        >>> parse_artifact_name("my_nif-nif-2.16-aarch64-macos-0.1.0.tar.gz").target
        'aarch64-macos'
        >>> parse_artifact_name("x86_64-linux-gnu.tar.gz").is_legacy
        True
    """
    match = _ARTIFACT_RE.match(basename)
    if match:
        return ArtifactName(
            target=match.group("target"),
            app=match.group("app"),
            runtime_version=match.group("runtime_version"),
            version=match.group("version"),
        )

    if basename.endswith(ARCHIVE_SUFFIX) and "/" not in basename:
        target = basename[: -len(ARCHIVE_SUFFIX)]
        if target and "-nif-" not in target:
            return ArtifactName(target=target)

    return None


def artifact_url(base_url: str, filename: str) -> str:
    """
    Join an archive filename onto a base URL, keeping any query string.

    Example:
        >>> artifact_url("https://example.com/releases/v0.1.0/", "a.tar.gz")
        'https://example.com/releases/v0.1.0/a.tar.gz'
    """
    parts = urlsplit(base_url)
    path = parts.path.rstrip("/") + "/" + filename
    return urlunsplit((parts.scheme, parts.netloc, path, parts.query, parts.fragment))


class CacheStore:
    """
    Read/write access to cached archives.

    Example:
        >>> store = CacheStore(cache_root())
        >>> path = store.entry_path("my_nif", "2.16", "x86_64-linux-gnu", "0.1.0")
        >>> if not store.exists(path):
        ...     store.write(path, data)
    """

    def __init__(self, root: Union[str, Path, None] = None):
        self.root = Path(root) if root is not None else cache_root()

    def entry_path(
        self, app: str, runtime_version: str, target: str, version: str
    ) -> Path:
        """Path of the entry for a combination; no I/O."""
        return self.root / archive_filename(app, runtime_version, target, version)

    def exists(self, path: Union[str, Path]) -> bool:
        return Path(path).is_file()

    def write(self, path: Union[str, Path], data: bytes) -> Path:
        """Write an entry atomically, creating parent directories."""
        path = Path(path)
        atomic_write(path, data)
        logger.debug(f"Cached {len(data)} bytes at {path}")
        return path


__all__ = [
    "CACHE_DIR_ENV",
    "XDG_ENV",
    "cache_root",
    "archive_filename",
    "ArtifactName",
    "parse_artifact_name",
    "artifact_url",
    "CacheStore",
]
