"""
Multi-target build-and-package loop.

For every configured target the loop cleans the output directory, points the
compiler-selection variables (CC, CXX, CPP) at a cross compiler for that
target, runs the external build command, packages the output directory into
the cache and records the archive checksum. Targets are processed one at a
time because they share the output directory and the process environment.

Features:
- Explicit per-target environment handed to the build command
- Scoped save/restore of compiler variables, including on failure
- Native Apple compilers on macOS hosts, 'zig cc -target' everywhere else
- Checksum manifest written after the loop

Usage:
    from prebuiltkit.precompile.builder import precompile

    artifacts = precompile(config, ["x86_64-linux-gnu", "aarch64-linux-gnu"])
    for target, artifact in artifacts.items():
        print(target, artifact.path, artifact.checksum)
"""

import logging
import os
import platform
import subprocess
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping, MutableMapping, Optional, Sequence

from prebuiltkit.config.parser import (
    PrecompileConfig,
    always_use_zig,
    targets_override,
)
from prebuiltkit.core.cache import CacheStore, cache_root
from prebuiltkit.core.exceptions import BuildError, ConfigurationError
from prebuiltkit.core.filesystem import create_archive, extract_archive, safe_rmtree
from prebuiltkit.core.platform import detect_descriptor
from prebuiltkit.core.verification import (
    DEFAULT_ALGORITHM,
    checksum_entries,
    compute_file_hash,
    save_manifest,
)
from prebuiltkit.targets.resolver import TargetResolver, canonical_target

logger = logging.getLogger(__name__)

COMPILER_VARIABLES = ("CC", "CXX", "CPP")

TARGET_ENV = "PREBUILTKIT_TARGET"
OUTPUT_DIR_ENV = "PREBUILTKIT_OUTPUT_DIR"


@dataclass(frozen=True)
class PrecompiledArtifact:
    """A packaged archive for one target."""

    target: str
    path: Path
    checksum: str
    algorithm: str = DEFAULT_ALGORITHM


# ============================================================================
# Compiler selection
# ============================================================================


@contextmanager
def compiler_environment(
    values: Mapping[str, str], environ: Optional[MutableMapping[str, str]] = None
):
    """
    Set compiler variables for the duration of a block.

    Prior values are restored on every exit path; variables that were unset
    before are unset again.

    Args:
        values: Variables to set (only CC, CXX and CPP are touched)
        environ: Mapping to mutate (default: os.environ)

    Example:
        >>> with compiler_environment({"CC": "zig cc -target x86_64-linux-gnu"}):
        ...     run_build()
    """
    if environ is None:
        environ = os.environ

    saved = {name: environ.get(name) for name in COMPILER_VARIABLES}
    try:
        for name in COMPILER_VARIABLES:
            if name in values:
                environ[name] = values[name]
        yield
    finally:
        for name, value in saved.items():
            if value is None:
                environ.pop(name, None)
            else:
                environ[name] = value


class CompilerSelector:
    """
    Choose CC/CXX/CPP for a target.

    On a macOS host, macOS targets use the system compiler with an explicit
    '-arch' flag; everything else goes through 'zig cc -target'.
    """

    def __init__(self, host_os: Optional[str] = None, native_apple_compilers: bool = True):
        self.host_os = (host_os or platform.system()).lower()
        self.native_apple_compilers = native_apple_compilers

    def select(self, target: str) -> Dict[str, str]:
        cc, cxx = self._compilers(target)
        return {"CC": cc, "CXX": cxx, "CPP": cxx}

    def _compilers(self, target: str):
        if self.native_apple_compilers and self.host_os == "darwin":
            if target.startswith("x86_64-macos"):
                return "gcc -arch x86_64", "g++ -arch x86_64"
            if target.startswith("aarch64-macos"):
                return "gcc -arch arm64", "g++ -arch arm64"
        return f"zig cc -target {target}", f"zig c++ -target {target}"


# ============================================================================
# Build collaborator
# ============================================================================


class MakeCollaborator:
    """Runs the project's build command (``make`` by default)."""

    def __init__(self, command: Optional[Sequence[str]] = None, cwd: Optional[Path] = None):
        self.command = list(command) if command else ["make"]
        self.cwd = cwd

    def run(
        self,
        args: Sequence[str],
        env: Mapping[str, str],
        target: Optional[str] = None,
    ) -> None:
        """
        Run the build command once.

        Raises:
            BuildError: If the command cannot be started or exits non-zero
        """
        cmd = self.command + list(args)
        logger.debug(f"Running build command: {' '.join(cmd)}")

        try:
            result = subprocess.run(
                cmd,
                cwd=self.cwd,
                env=dict(env),
                capture_output=True,
                text=True,
            )
        except OSError as e:
            raise BuildError(target, -1, str(e)) from e

        if result.stdout:
            logger.debug(result.stdout.rstrip())

        if result.returncode != 0:
            output = (result.stderr or result.stdout or "").strip()
            raise BuildError(target, result.returncode, output or None)


# ============================================================================
# Build loop
# ============================================================================


def _build_env(
    base: Mapping[str, str], compilers: Mapping[str, str], target: str, output_dir: Path
) -> Dict[str, str]:
    env = dict(base)
    env.update(compilers)
    env[TARGET_ENV] = target
    env[OUTPUT_DIR_ENV] = str(output_dir)
    return env


def precompile(
    config: PrecompileConfig,
    targets: Optional[Sequence[str]] = None,
    args: Sequence[str] = (),
    collaborator: Optional[MakeCollaborator] = None,
    selector: Optional[CompilerSelector] = None,
    cache_dir: Optional[Path] = None,
    environ: Optional[MutableMapping[str, str]] = None,
    restore_current: bool = True,
) -> Dict[str, PrecompiledArtifact]:
    """
    Build, package and checksum the extension for each target in turn.

    Args:
        config: Project configuration
        targets: Targets to build (default: PREBUILTKIT_TARGETS, then config.targets)
        args: Extra arguments for the build command
        collaborator: Build command runner (default: config.build_command)
        selector: Compiler selection policy (default: host-based)
        cache_dir: Where archives go (default: cache_root())
        environ: Process environment (default: os.environ)
        restore_current: Extract the host's archive into the output directory
            afterwards

    Returns:
        Mapping of target -> PrecompiledArtifact, in build order

    Raises:
        BuildError: If the build fails for any target; remaining targets are
            not built and the manifest is not written
    """
    if environ is None:
        environ = os.environ

    targets = list(targets or targets_override(environ) or config.targets)
    if not targets:
        raise ConfigurationError("No targets to build")

    collaborator = collaborator or MakeCollaborator(
        config.build_command, cwd=config.project_root
    )
    selector = selector or CompilerSelector()
    store = CacheStore(cache_dir if cache_dir is not None else cache_root("", environ))
    output_dir = config.install_path

    artifacts: Dict[str, PrecompiledArtifact] = {}
    for target in targets:
        logger.info(f"Current compiling target: {target}")

        _clear_install_dir(config)
        output_dir.mkdir(parents=True, exist_ok=True)

        compilers = selector.select(target)
        env = _build_env(environ, compilers, target, output_dir)
        with compiler_environment(compilers, environ):
            collaborator.run(args, env, target)

        archive_path = store.entry_path(
            config.app, config.runtime_version, target, config.version
        )
        create_archive(output_dir, archive_path)
        checksum = compute_file_hash(archive_path, DEFAULT_ALGORITHM)
        artifacts[target] = PrecompiledArtifact(target, archive_path, checksum)
        logger.debug(f"Packaged {target} as {archive_path}")

    save_manifest(config.checksum_path, checksum_entries(artifacts.values()))

    if restore_current:
        _restore_current_target(config, artifacts, environ)

    return artifacts


def _clear_install_dir(config: PrecompileConfig) -> None:
    try:
        safe_rmtree(config.install_path, require_prefix=config.project_root)
    except ValueError as e:
        raise ConfigurationError(f"install_dir {config.install_dir!r}: {e}") from e


def _restore_current_target(
    config: PrecompileConfig,
    artifacts: Mapping[str, PrecompiledArtifact],
    environ: Mapping[str, str],
) -> None:
    descriptor = detect_descriptor(config.runtime_version, environ)
    current = canonical_target(descriptor, config.convention, list(artifacts))
    artifact = artifacts.get(current)
    if artifact is None:
        logger.debug(f"Current target {current} was not built; nothing to restore")
        return

    _clear_install_dir(config)
    extract_archive(artifact.path, config.install_path)
    logger.info(f"Restored {current} into {config.install_path}")


def build_native(
    config: PrecompileConfig,
    args: Sequence[str] = (),
    collaborator: Optional[MakeCollaborator] = None,
    environ: Optional[MutableMapping[str, str]] = None,
    **kwargs,
) -> Dict[str, PrecompiledArtifact]:
    """
    Build the extension for the running host only.

    With force_build_using_zig or PREBUILTKIT_ALWAYS_USE_ZIG the build loop
    runs for the current target; otherwise the build command runs once with
    the unmodified environment.

    Returns:
        Artifacts built by the loop (empty for a plain native build)
    """
    if environ is None:
        environ = os.environ

    collaborator = collaborator or MakeCollaborator(
        config.build_command, cwd=config.project_root
    )
    args = list(args) or list(config.force_build_args)

    if config.force_build_using_zig or always_use_zig(environ):
        resolver = TargetResolver(
            config.convention, config.targets, config.runtime_versions
        )
        resolved = resolver.current_target(config.runtime_version, environ)
        logger.info(f"Building {resolved.target} with zig")
        return precompile(
            config,
            [resolved.target],
            args,
            collaborator=collaborator,
            environ=environ,
            **kwargs,
        )

    logger.info("Building native library with the system compiler")
    collaborator.run(args, dict(environ))
    return {}


__all__ = [
    "COMPILER_VARIABLES",
    "PrecompiledArtifact",
    "compiler_environment",
    "CompilerSelector",
    "MakeCollaborator",
    "precompile",
    "build_native",
]
