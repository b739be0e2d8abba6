"""
Target triple naming conventions.

Different toolchains spell the same physical platform differently: zig calls
an Apple Silicon Mac 'aarch64-macos' while rust calls it
'aarch64-apple-darwin'. A Convention bundles the normalization and rendering
rules for one naming scheme, plus the default catalog of targets for which
precompiled artifacts are usually published.
"""

import dataclasses
import platform
from enum import Enum
from typing import List, Optional, Tuple

from prebuiltkit.core.platform import PlatformDescriptor


class Convention(str, Enum):
    """Supported target naming schemes."""

    ZIG = "zig"
    RUST = "rust"

    @classmethod
    def parse(cls, value) -> "Convention":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            valid = ", ".join(c.value for c in cls)
            raise ValueError(
                f"Unknown target convention: {value!r} (expected one of {valid})"
            ) from None

    @property
    def fields(self) -> Tuple[str, ...]:
        """Descriptor fields rendered by this convention, in order."""
        if self is Convention.RUST:
            return ("arch", "vendor", "os", "abi")
        return ("arch", "os", "abi")

    def windows_arch(self, word_size: int) -> str:
        """Architecture token synthesized from the pointer size on Windows."""
        if self is Convention.RUST:
            tokens = {4: "i686", 8: "x86_64"}
        else:
            tokens = {4: "x86", 8: "x86_64"}
        return tokens.get(word_size, "unknown")

    @property
    def windows_abi(self) -> str:
        return "msvc" if self is Convention.RUST else "gnu"


ZIG_MACOS_TARGETS = [
    "x86_64-macos",
    "aarch64-macos",
]

ZIG_COMMON_TARGETS = [
    "x86_64-linux-gnu",
    "x86_64-linux-musl",
    "x86_64-windows-gnu",
    "aarch64-linux-gnu",
    "aarch64-linux-musl",
    "riscv64-linux-musl",
]

RUST_TARGETS = [
    "aarch64-apple-darwin",
    "x86_64-apple-darwin",
    "x86_64-unknown-linux-gnu",
    "x86_64-unknown-linux-musl",
    "arm-unknown-linux-gnueabihf",
    "aarch64-unknown-linux-gnu",
    "x86_64-pc-windows-msvc",
    "x86_64-pc-windows-gnu",
]

DEFAULT_RUNTIME_VERSIONS = ["2.14", "2.15", "2.16"]


def default_runtime_versions(running: str) -> List[str]:
    """
    Runtime version catalog to use when a project does not list one.

    The running version must be in the catalog, otherwise archives built for
    it are never listed and the host never resolves.

    Example:
        >>> default_runtime_versions("2.15")
        ['2.14', '2.15', '2.16']
        >>> default_runtime_versions("3.12")
        ['3.12']
    """
    if running in DEFAULT_RUNTIME_VERSIONS:
        return list(DEFAULT_RUNTIME_VERSIONS)
    return [running]


def default_targets(convention: Convention, host_os: Optional[str] = "") -> List[str]:
    """
    Return the default target catalog for a convention.

    zig can only produce Apple binaries on an Apple host, so the macOS targets
    are listed only when the host is macOS.

    Args:
        convention: Naming convention
        host_os: Lower-case host system name ('darwin', 'linux', ...); an empty
            string detects the running host, None returns every target

    Returns:
        Ordered list of canonical target strings
    """
    convention = Convention.parse(convention)
    if convention is Convention.RUST:
        return list(RUST_TARGETS)

    if host_os == "":
        host_os = platform.system().lower()

    if host_os is None or host_os == "darwin":
        return ZIG_MACOS_TARGETS + ZIG_COMMON_TARGETS
    return list(ZIG_COMMON_TARGETS)


def render(descriptor: PlatformDescriptor, convention: Convention) -> str:
    """
    Join the convention's fields with '-' skipping empty ones.

    Example:
        >>> d = PlatformDescriptor("unix", arch="x86_64", vendor="pc", os="linux", abi="gnu")
        >>> render(d, Convention.ZIG)
        'x86_64-linux-gnu'
        >>> render(d, Convention.RUST)
        'x86_64-pc-linux-gnu'
    """
    fields = descriptor.triple_fields()
    return "-".join(fields[key] for key in convention.fields if fields[key])


def _is_apple(descriptor: PlatformDescriptor) -> bool:
    os_name = descriptor.os or ""
    return (
        "darwin" in os_name
        or "darwin" in (descriptor.abi or "")
        or os_name == "macos"
    )


def normalize(
    descriptor: PlatformDescriptor, convention: Convention
) -> PlatformDescriptor:
    """
    Rewrite unix architecture/OS synonyms for a convention.

    Apple hosts: 'arm'/'arm64' become 'aarch64'; zig uses the short 'macos'
    token and drops vendor and OS version, rust uses 'apple-darwin'.
    Linux hosts: 'amd64' becomes 'x86_64', 'arm64' becomes 'aarch64', and a
    missing ABI defaults to 'gnu'; rust spells the vendor 'unknown'.
    """
    convention = Convention.parse(convention)

    if _is_apple(descriptor):
        arch = descriptor.arch
        if arch in ("arm", "arm64"):
            arch = "aarch64"
        if convention is Convention.ZIG:
            return dataclasses.replace(
                descriptor, arch=arch, vendor=None, os="macos", abi=None
            )
        return dataclasses.replace(
            descriptor, arch=arch, vendor="apple", os="darwin", abi=None
        )

    if "linux" in (descriptor.os or ""):
        arch = {"amd64": "x86_64", "arm64": "aarch64"}.get(
            descriptor.arch, descriptor.arch
        )
        changes = {"arch": arch, "abi": descriptor.abi or "gnu"}
        if convention is Convention.RUST and descriptor.vendor in (None, "pc"):
            changes["vendor"] = "unknown"
        return dataclasses.replace(descriptor, **changes)

    return descriptor


def synthesize_windows(
    descriptor: PlatformDescriptor, convention: Convention
) -> PlatformDescriptor:
    """
    Fill missing Windows triple fields with convention defaults.

    Fields already present (from TARGET_* overrides) are kept.
    """
    convention = Convention.parse(convention)
    changes = {
        "arch": descriptor.arch or convention.windows_arch(descriptor.word_size),
        "os": descriptor.os or "windows",
        "abi": descriptor.abi or convention.windows_abi,
    }
    if convention is Convention.RUST:
        changes["vendor"] = descriptor.vendor or "pc"
    return dataclasses.replace(descriptor, **changes)
