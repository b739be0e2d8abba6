"""
Host platform detection for PrebuiltKit.

This module collects the raw facts about the running host (architecture,
vendor, OS, ABI, word size) that the target resolver turns into a canonical
target triple.

Features:
- Raw triple detection from the interpreter's host GNU type
- Fallback detection from platform.machine()/platform.system() and libc
- Environment overrides (TARGET_ARCH, TARGET_VENDOR, TARGET_OS, TARGET_ABI)
  for embedded and cross environments
- Fast detection with caching

Usage:
    from prebuiltkit.core.platform import detect_descriptor

    descriptor = detect_descriptor(runtime_abi_version="2.16")
    print(descriptor.arch, descriptor.os, descriptor.abi)
"""

import dataclasses
import functools
import logging
import os
import platform
import struct
import subprocess
import sys
import sysconfig
from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)

UNIX = "unix"
WINDOWS = "windows"

# Environment variable -> descriptor field
ENV_OVERRIDES: Tuple[Tuple[str, str], ...] = (
    ("arch", "TARGET_ARCH"),
    ("vendor", "TARGET_VENDOR"),
    ("os", "TARGET_OS"),
    ("abi", "TARGET_ABI"),
)

RUNTIME_VERSION_ENV = "PREBUILTKIT_RUNTIME_VERSION"


@dataclass(frozen=True)
class PlatformDescriptor:
    """
    Raw facts about a host, before convention-specific normalization.

    Attributes:
        os_family: 'unix' or 'windows'
        os_variant: OS flavour when known ('linux', 'darwin', ...)
        arch: CPU architecture as reported ('x86_64', 'amd64', 'arm', ...)
        vendor: Vendor component of the triple ('pc', 'apple', 'unknown')
        os: OS component of the triple ('linux', 'apple', 'windows', ...)
        abi: ABI component ('gnu', 'musl', 'msvc', 'darwin21.4.0', ...)
        word_size: Pointer size in bytes (4 or 8)
        runtime_abi_version: Native-extension ABI version the host runtime needs
    """

    os_family: str
    os_variant: Optional[str] = None
    arch: Optional[str] = None
    vendor: Optional[str] = None
    os: Optional[str] = None
    abi: Optional[str] = None
    word_size: int = 8
    runtime_abi_version: str = ""

    @property
    def is_windows(self) -> bool:
        return self.os_family == WINDOWS

    def triple_fields(self) -> Dict[str, Optional[str]]:
        """Return the four triple fields as a mapping."""
        return {
            "arch": self.arch,
            "vendor": self.vendor,
            "os": self.os,
            "abi": self.abi,
        }

    def __str__(self) -> str:
        raw = "-".join(v for v in self.triple_fields().values() if v) or "?"
        return f"{self.os_family}/{self.os_variant or '?'} {raw} [{self.word_size * 8}-bit]"


def apply_env_overrides(
    descriptor: PlatformDescriptor, environ: Optional[Mapping[str, str]] = None
) -> PlatformDescriptor:
    """
    Replace triple fields with TARGET_* environment values.

    Only the four recognized variables are consulted; a variable that is unset
    or empty leaves the detected value in place.

    Args:
        descriptor: Detected descriptor
        environ: Environment mapping (default: os.environ)

    Returns:
        New descriptor with overrides applied

    Example:
        >>> d = PlatformDescriptor("unix", "linux", "arm", None, "linux", "gnueabihf")
        >>> apply_env_overrides(d, {"TARGET_ARCH": "aarch64"}).arch
        'aarch64'
    """
    if environ is None:
        environ = os.environ

    changes = {}
    for field_name, env_key in ENV_OVERRIDES:
        value = environ.get(env_key)
        if value:
            logger.debug(f"Overriding {field_name} with {env_key}={value}")
            changes[field_name] = value

    if not changes:
        return descriptor
    return dataclasses.replace(descriptor, **changes)


def detect_descriptor(
    runtime_abi_version: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
    allow_env_override: bool = True,
) -> PlatformDescriptor:
    """
    Detect the descriptor of the running host.

    Args:
        runtime_abi_version: Runtime ABI version; defaults to current_runtime_version()
        environ: Environment mapping used for overrides (default: os.environ)
        allow_env_override: Whether TARGET_* variables may replace detected fields

    Returns:
        PlatformDescriptor for this host
    """
    if environ is None:
        environ = os.environ

    os_family, os_variant, fields = _detect_host()
    descriptor = PlatformDescriptor(
        os_family=os_family,
        os_variant=os_variant,
        word_size=_detect_word_size(),
        runtime_abi_version=runtime_abi_version or current_runtime_version(environ),
        **fields,
    )

    if allow_env_override:
        descriptor = apply_env_overrides(descriptor, environ)

    logger.debug(f"Detected host: {descriptor}")
    return descriptor


def descriptor_from_target(
    target: str, field_names: Tuple[str, ...], runtime_abi_version: str = ""
) -> PlatformDescriptor:
    """
    Build a unix descriptor whose fields spell out ``target``.

    Args:
        target: Canonical target string, e.g. 'aarch64-linux-musl'
        field_names: Field order used to render the target; shorter targets
            fill the leading fields
        runtime_abi_version: Runtime ABI version for the descriptor

    Returns:
        PlatformDescriptor with os_family 'unix'
    """
    parts = target.split("-")
    if len(parts) > len(field_names):
        raise ValueError(f"Target {target!r} has more parts than {field_names}")

    fields = dict(zip(field_names, parts))
    os_name = fields.get("os") or ""
    variant = "darwin" if os_name in ("macos", "darwin") else os_name or None
    return PlatformDescriptor(
        os_family=UNIX,
        os_variant=variant,
        runtime_abi_version=runtime_abi_version,
        **fields,
    )


def current_runtime_version(environ: Optional[Mapping[str, str]] = None) -> str:
    """
    Return the runtime ABI version of the running process.

    PREBUILTKIT_RUNTIME_VERSION wins; otherwise the interpreter's
    'major.minor' version is used.
    """
    if environ is None:
        environ = os.environ

    override = environ.get(RUNTIME_VERSION_ENV)
    if override:
        return override
    return f"{sys.version_info.major}.{sys.version_info.minor}"


def clear_platform_cache():
    """
    Clear the host detection cache.

    Useful for testing or when the process environment changes.
    """
    _detect_host.cache_clear()


@functools.lru_cache(maxsize=1)
def _detect_host() -> Tuple[str, Optional[str], Dict[str, str]]:
    """Return (os_family, os_variant, raw triple fields) for this host."""
    system = platform.system().lower()

    if system == "windows" or os.name == "nt":
        # The host type of a Windows interpreter carries no usable triple;
        # fields are synthesized by the resolver or come from overrides.
        return WINDOWS, "windows", {}

    fields = _split_host_type(sysconfig.get_config_var("HOST_GNU_TYPE") or "")
    if not fields:
        fields = _fallback_fields(system)

    return UNIX, system or None, fields


def _split_host_type(host_type: str) -> Dict[str, str]:
    """
    Split a GNU host type into triple fields.

    'x86_64-pc-linux-gnu' -> arch, vendor, os, abi
    'aarch64-apple-darwin21.4.0' -> arch, os, abi
    Anything else is too ambiguous and yields an empty mapping.
    """
    parts = host_type.split("-") if host_type else []

    if len(parts) == 4:
        keys = ("arch", "vendor", "os", "abi")
    elif len(parts) == 3:
        keys = ("arch", "os", "abi")
    else:
        return {}

    return dict(zip(keys, parts))


def _fallback_fields(system: str) -> Dict[str, str]:
    """Build raw fields when the interpreter does not expose a host type."""
    arch = platform.machine().lower()

    if system == "darwin":
        release = platform.release()
        return {"arch": arch, "os": "apple", "abi": f"darwin{release}"}

    if system == "linux":
        return {"arch": arch, "os": "linux", "abi": _detect_linux_abi()}

    return {"arch": arch, "os": system}


def _detect_linux_abi() -> str:
    """
    Detect the Linux C library flavour.

    Returns:
        'gnu' for glibc, 'musl' for musl
    """
    libc, _ = platform.libc_ver()
    if libc == "glibc":
        return "gnu"

    try:
        result = subprocess.run(
            ["ldd", "--version"], capture_output=True, text=True, timeout=5
        )
        output = result.stdout.lower() + result.stderr.lower()
        if "musl" in output:
            return "musl"
    except (OSError, subprocess.SubprocessError) as e:
        logger.debug(f"Could not run ldd to detect libc: {e}")

    return "gnu"


def _detect_word_size() -> int:
    return struct.calcsize("P")


__all__ = [
    "PlatformDescriptor",
    "UNIX",
    "WINDOWS",
    "ENV_OVERRIDES",
    "apply_env_overrides",
    "detect_descriptor",
    "descriptor_from_target",
    "current_runtime_version",
    "clear_platform_cache",
]
