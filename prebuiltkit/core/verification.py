"""
Checksum manifest and hash verification for PrebuiltKit.

The checksum manifest is a YAML file in the project root that maps each
archive basename to its recorded digest:

    my_nif-nif-2.16-aarch64-macos-0.1.0.tar.gz: sha256:9f86d08...
    my_nif-nif-2.16-x86_64-linux-gnu-0.1.0.tar.gz: sha256:60303ae...

Every archive fetched remotely must have an entry here and match it before
it is extracted; a missing entry is a hard failure, not a skip.

Features:
- Streaming file hashing
- Deterministic manifest files (sorted keys, byte-identical for equal input)
- Timing-attack resistant digest comparison
"""

import hashlib
import logging
import secrets
from pathlib import Path
from typing import Dict, Iterable, Mapping, Union

import yaml

from prebuiltkit.core.exceptions import (
    ChecksumMismatchError,
    MissingChecksumError,
    UnsupportedChecksumAlgorithmError,
)
from prebuiltkit.core.filesystem import atomic_write

logger = logging.getLogger(__name__)

SUPPORTED_ALGORITHMS = ("sha256",)
DEFAULT_ALGORITHM = "sha256"
FETCH_REMEDIATION = "pbkit fetch --only-local"


def checksum_file_path(project_root: Union[str, Path], app: str) -> Path:
    """
    Location of the checksum manifest for an app.

    Example:
        >>> checksum_file_path("/project", "my_nif")
        PosixPath('/project/checksum-my_nif.yaml')
    """
    return Path(project_root) / f"checksum-{app}.yaml"


def compute_file_hash(
    file_path: Union[str, Path], algorithm: str = DEFAULT_ALGORITHM
) -> str:
    """
    Compute the hex digest of a file.

    Args:
        file_path: Path to file
        algorithm: Hash algorithm (only 'sha256' is accepted)

    Returns:
        Hex string of hash

    Raises:
        FileNotFoundError: If file doesn't exist
        UnsupportedChecksumAlgorithmError: If algorithm is not supported
    """
    file_path = Path(file_path)
    algorithm = algorithm.lower()

    if algorithm not in SUPPORTED_ALGORITHMS:
        raise UnsupportedChecksumAlgorithmError(algorithm, SUPPORTED_ALGORITHMS)

    if not file_path.exists():
        raise FileNotFoundError(f"File not found: {file_path}")

    hasher = hashlib.new(algorithm)
    with open(file_path, "rb") as f:
        while chunk := f.read(8192):
            hasher.update(chunk)

    return hasher.hexdigest()


def _constant_time_compare(a: str, b: str) -> bool:
    return secrets.compare_digest(a.encode("utf-8"), b.encode("utf-8"))


# ============================================================================
# Manifest persistence
# ============================================================================


def load_manifest(path: Union[str, Path]) -> Dict[str, str]:
    """
    Load a checksum manifest.

    A missing file yields an empty manifest. An unreadable or malformed file
    also yields an empty manifest, with a warning, so the caller fails later
    with a missing-entry error that names the remediation.

    Args:
        path: Manifest path

    Returns:
        Mapping of basename -> 'algo:hexdigest'
    """
    path = Path(path)
    if not path.exists():
        logger.debug(f"Checksum file {path} does not exist")
        return {}

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Cannot read checksum file {path}: {e}")
        return {}

    if data is None:
        return {}
    if not isinstance(data, dict):
        logger.warning(f"Ignoring checksum file {path}: expected a mapping")
        return {}

    return {str(k): str(v) for k, v in data.items()}


def save_manifest(path: Union[str, Path], mapping: Mapping[str, str]) -> Path:
    """
    Write a checksum manifest with sorted keys.

    Equal mappings always produce byte-identical files.

    Args:
        path: Manifest path
        mapping: basename -> 'algo:hexdigest'

    Returns:
        Path written
    """
    path = Path(path)
    content = yaml.safe_dump(
        {str(k): str(v) for k, v in mapping.items()},
        default_flow_style=False,
        sort_keys=True,
    )
    atomic_write(path, content)
    logger.info(f"Checksum file written to {path} ({len(mapping)} entries)")
    return path


def checksum_entries(artifacts: Iterable) -> Dict[str, str]:
    """
    Build manifest entries from artifacts with path/algorithm/checksum fields.

    Example:
        >>> checksum_entries([FetchedArtifact(url, Path("/c/a.tar.gz"), "ab12", "sha256")])
        {'a.tar.gz': 'sha256:ab12'}
    """
    return {
        Path(a.path).name: f"{a.algorithm}:{a.checksum}" for a in artifacts
    }


# ============================================================================
# Verification
# ============================================================================


def verify_checksum(
    manifest: Mapping[str, str],
    file_path: Union[str, Path],
    remediation: str = FETCH_REMEDIATION,
) -> str:
    """
    Verify a file against its manifest entry.

    Args:
        manifest: Loaded checksum manifest
        file_path: File to verify; looked up by basename
        remediation: Command named in the missing-entry error

    Returns:
        The verified hex digest

    Raises:
        MissingChecksumError: If the manifest has no entry for the file
        UnsupportedChecksumAlgorithmError: If the entry's algorithm is unknown
        ChecksumMismatchError: If the digest differs

    Example:
        >>> manifest = load_manifest(checksum_file_path(".", "my_nif"))
        >>> verify_checksum(manifest, cached_archive)
    """
    file_path = Path(file_path)
    basename = file_path.name

    entry = manifest.get(basename)
    if entry is None:
        raise MissingChecksumError(basename, remediation)

    algorithm, sep, expected = entry.partition(":")
    algorithm = algorithm.strip().lower()
    if not sep or algorithm not in SUPPORTED_ALGORITHMS:
        raise UnsupportedChecksumAlgorithmError(algorithm, SUPPORTED_ALGORITHMS)

    expected = expected.strip().lower()
    actual = compute_file_hash(file_path, algorithm)

    if not _constant_time_compare(actual, expected):
        raise ChecksumMismatchError(str(file_path), entry, f"{algorithm}:{actual}")

    logger.debug(f"Checksum verified for {basename}")
    return actual


__all__ = [
    "SUPPORTED_ALGORITHMS",
    "DEFAULT_ALGORITHM",
    "checksum_file_path",
    "compute_file_hash",
    "load_manifest",
    "save_manifest",
    "checksum_entries",
    "verify_checksum",
]
