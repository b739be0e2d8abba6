"""
Centralized exception hierarchy for PrebuiltKit.

Every failure the resolver, cache, fetcher, installer and build loop can report
has its own exception type so callers can tell configuration problems apart
from unsupported hosts, network failures, integrity failures and build failures.
"""

from enum import Enum
from typing import Iterable, Optional


# ============================================================================
# Base Exceptions
# ============================================================================


class PrebuiltKitError(Exception):
    """Base exception for all PrebuiltKit errors."""

    pass


class ConfigurationError(PrebuiltKitError):
    """Missing or malformed settings (base URL, targets, app name, ...)."""

    pass


# ============================================================================
# Resolution Exceptions
# ============================================================================


def _bullet_list(items: Iterable[str]) -> str:
    return "\n - ".join(items)


class ResolutionError(PrebuiltKitError):
    """Base exception when no precompiled artifact matches the running host."""

    pass


class UnsupportedTargetError(ResolutionError):
    """Raised when the host's target triple is not in the supported set."""

    def __init__(self, target: str, supported: Iterable[str]):
        self.target = target
        self.supported = list(supported)
        super().__init__(
            f"precompiled artifact is not available for this target: {target!r}.\n"
            f"The available targets are:\n - {_bullet_list(self.supported)}"
        )


class UnsupportedRuntimeVersionError(ResolutionError):
    """Raised when the running runtime ABI version has no compatible build."""

    def __init__(self, version: str, supported: Iterable[str]):
        self.version = version
        self.supported = list(supported)
        super().__init__(
            f"precompiled artifact is not available for this runtime version: "
            f"{version!r}.\n"
            f"The available runtime versions are:\n - {_bullet_list(self.supported)}"
        )


# ============================================================================
# Transport Exceptions
# ============================================================================


class TransportError(PrebuiltKitError):
    """Raised when an artifact cannot be fetched (TLS, connection, non-200)."""

    def __init__(self, url: str, cause: object):
        self.url = url
        self.cause = cause
        super().__init__(f"couldn't fetch artifact from {url}: {cause}")


# ============================================================================
# Integrity Exceptions
# ============================================================================


class IntegrityError(PrebuiltKitError):
    """Base exception for checksum verification failures."""

    pass


class MissingChecksumError(IntegrityError):
    """The artifact has no entry in the checksum manifest."""

    def __init__(self, basename: str, remediation: str):
        self.basename = basename
        self.remediation = remediation
        super().__init__(
            f"the precompiled artifact {basename!r} does not exist in the checksum "
            f"file. Please consider running: `{remediation}` to generate the "
            f"checksum file."
        )


class UnsupportedChecksumAlgorithmError(IntegrityError):
    """The manifest entry names an algorithm this tool does not accept."""

    def __init__(self, algorithm: str, supported: Iterable[str]):
        self.algorithm = algorithm
        self.supported = list(supported)
        super().__init__(
            f"checksum algorithm is not supported: {algorithm!r}. "
            f"The supported ones are:\n - {_bullet_list(self.supported)}"
        )


class ChecksumMismatchError(IntegrityError):
    """The file digest differs from the recorded one."""

    def __init__(self, file_path: str, expected: str, actual: str):
        self.file_path = file_path
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"the integrity check failed because the checksum of {file_path} "
            f"does not match: expected {expected}, got {actual}"
        )


# ============================================================================
# Extraction / Build Exceptions
# ============================================================================


class ExtractionError(PrebuiltKitError):
    """Raised when an archive cannot be read or written to disk."""

    pass


class BuildError(PrebuiltKitError):
    """The external build collaborator failed for a target."""

    def __init__(
        self, target: Optional[str], returncode: int, output: Optional[str] = None
    ):
        self.target = target
        self.returncode = returncode
        self.output = output
        where = f" for target {target}" if target else ""
        msg = f"native build failed{where} with exit code {returncode}"
        if output:
            msg += f"\n{output}"
        super().__init__(msg)


# ============================================================================
# Orchestration Exceptions
# ============================================================================


class InstallStage(str, Enum):
    """Terminal stage reached by a failed ensure-install run."""

    DOWNLOAD = "download"
    VERIFY = "verify"
    INSTALL = "install"


class InstallError(PrebuiltKitError):
    """Raised by ensure-install; ``stage`` tells which remediation applies."""

    def __init__(self, stage: InstallStage, message: str):
        self.stage = stage
        super().__init__(message)
