"""
Core functionality for PrebuiltKit.

This package contains the foundational modules that other components depend on.
"""

from .platform import (
    PlatformDescriptor,
    apply_env_overrides,
    detect_descriptor,
    clear_platform_cache,
)

from .cache import (
    CacheStore,
    cache_root,
    archive_filename,
    parse_artifact_name,
)

from .verification import (
    load_manifest,
    save_manifest,
    verify_checksum,
    compute_file_hash,
)

from .exceptions import (
    PrebuiltKitError,
    ConfigurationError,
    ResolutionError,
    UnsupportedTargetError,
    UnsupportedRuntimeVersionError,
    TransportError,
    IntegrityError,
    MissingChecksumError,
    ChecksumMismatchError,
    UnsupportedChecksumAlgorithmError,
    ExtractionError,
    BuildError,
    InstallError,
    InstallStage,
)

__all__ = [
    # Platform
    "PlatformDescriptor",
    "apply_env_overrides",
    "detect_descriptor",
    "clear_platform_cache",
    # Cache
    "CacheStore",
    "cache_root",
    "archive_filename",
    "parse_artifact_name",
    # Verification
    "load_manifest",
    "save_manifest",
    "verify_checksum",
    "compute_file_hash",
    # Exceptions
    "PrebuiltKitError",
    "ConfigurationError",
    "ResolutionError",
    "UnsupportedTargetError",
    "UnsupportedRuntimeVersionError",
    "TransportError",
    "IntegrityError",
    "MissingChecksumError",
    "ChecksumMismatchError",
    "UnsupportedChecksumAlgorithmError",
    "ExtractionError",
    "BuildError",
    "InstallError",
    "InstallStage",
]
