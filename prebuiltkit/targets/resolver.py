"""
Target resolution for PrebuiltKit.

Turns a PlatformDescriptor into the canonical target string for a naming
convention, and checks it against the catalog of targets and runtime ABI
versions for which precompiled artifacts exist.
"""

import logging
from dataclasses import dataclass
from typing import List, Mapping, Optional, Sequence

from prebuiltkit.core.exceptions import (
    UnsupportedRuntimeVersionError,
    UnsupportedTargetError,
)
from prebuiltkit.core.platform import PlatformDescriptor, detect_descriptor
from prebuiltkit.targets.conventions import (
    DEFAULT_RUNTIME_VERSIONS,
    Convention,
    default_targets,
    normalize,
    render,
    synthesize_windows,
)

logger = logging.getLogger(__name__)


def canonical_target(
    descriptor: PlatformDescriptor,
    convention: Convention,
    supported_targets: Sequence[str] = (),
) -> str:
    """
    Render the canonical target string for a descriptor, without validation.

    On Windows, a raw descriptor that already spells a supported target (set
    through TARGET_* overrides) is used verbatim.
    """
    convention = Convention.parse(convention)

    if not descriptor.is_windows:
        return render(normalize(descriptor, convention), convention)

    existing = render(descriptor, convention)
    if existing and existing in supported_targets:
        return existing

    return render(synthesize_windows(descriptor, convention), convention)


def resolve_target(
    descriptor: PlatformDescriptor,
    convention: Convention,
    supported_targets: Sequence[str],
    supported_runtime_versions: Sequence[str],
) -> str:
    """
    Resolve the canonical target for a descriptor.

    Args:
        descriptor: Host descriptor (overrides already applied)
        convention: Naming convention
        supported_targets: Targets with published artifacts
        supported_runtime_versions: Runtime ABI versions with published artifacts

    Returns:
        Canonical target string

    Raises:
        UnsupportedTargetError: If the target is not in supported_targets
        UnsupportedRuntimeVersionError: If no supported runtime version is
            compatible with descriptor.runtime_abi_version

    Example:
        >>> d = PlatformDescriptor("unix", "linux", arch="amd64", os="linux",
        ...                        runtime_abi_version="2.16")
        >>> resolve_target(d, Convention.ZIG, ["x86_64-linux-gnu"], ["2.16"])
        'x86_64-linux-gnu'
    """
    target = canonical_target(descriptor, convention, supported_targets)

    if target not in supported_targets:
        raise UnsupportedTargetError(target, supported_targets)

    version = descriptor.runtime_abi_version
    if find_compatible_version(version, supported_runtime_versions) is None:
        raise UnsupportedRuntimeVersionError(version, supported_runtime_versions)

    return target


def find_compatible_version(
    version: str, available: Sequence[str]
) -> Optional[str]:
    """
    Find the catalog runtime version usable by a running runtime.

    An exact match wins. Otherwise the highest available version with the same
    major component and a minor component not above the running one is chosen.

    Args:
        version: Running runtime ABI version, e.g. '2.17'
        available: Catalog versions

    Returns:
        Compatible catalog version, or None

    Example:
        >>> find_compatible_version("2.17", ["2.14", "2.15", "2.16"])
        '2.16'
        >>> find_compatible_version("3.0", ["2.16"]) is None
        True
    """
    if version in available:
        return version

    running = _parse_version(version)
    if running is None or len(running) < 2:
        return None
    major, minor = running[0], running[1]

    candidates = []
    for candidate in available:
        parsed = _parse_version(candidate)
        if parsed is None or len(parsed) < 2:
            continue
        if parsed[0] == major and parsed[1] <= minor:
            candidates.append(parsed)

    if not candidates:
        return None
    return ".".join(str(part) for part in max(candidates))


def _parse_version(version: str) -> Optional[List[int]]:
    try:
        return [int(part) for part in str(version).split(".")]
    except ValueError:
        return None


@dataclass(frozen=True)
class ResolvedTarget:
    """A validated target plus the catalog runtime version to download."""

    target: str
    runtime_version: str


class TargetResolver:
    """
    Resolve targets against a fixed catalog.

    Example:
        >>> resolver = TargetResolver(Convention.ZIG, ["x86_64-linux-gnu"], ["2.16"])
        >>> resolved = resolver.current_target()
        >>> print(resolved.target, resolved.runtime_version)
    """

    def __init__(
        self,
        convention: Convention = Convention.ZIG,
        targets: Optional[Sequence[str]] = None,
        runtime_versions: Optional[Sequence[str]] = None,
    ):
        self.convention = Convention.parse(convention)
        self.targets = (
            list(targets) if targets is not None else default_targets(self.convention)
        )
        self.runtime_versions = (
            list(runtime_versions)
            if runtime_versions is not None
            else list(DEFAULT_RUNTIME_VERSIONS)
        )

    def resolve(self, descriptor: PlatformDescriptor) -> ResolvedTarget:
        """Resolve a descriptor; raises ResolutionError subclasses."""
        target = resolve_target(
            descriptor, self.convention, self.targets, self.runtime_versions
        )
        runtime_version = find_compatible_version(
            descriptor.runtime_abi_version, self.runtime_versions
        )
        logger.debug(
            f"Resolved {descriptor} to {target} (runtime {runtime_version})"
        )
        return ResolvedTarget(target=target, runtime_version=runtime_version)

    def current_target(
        self,
        runtime_abi_version: Optional[str] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> ResolvedTarget:
        """Detect the running host and resolve it."""
        descriptor = detect_descriptor(runtime_abi_version, environ)
        return self.resolve(descriptor)
