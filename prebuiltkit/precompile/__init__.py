"""
Precompilation workflows: ensure-install, build loop and fetch.
"""

from .installer import InstallResult, InstallState, PrecompiledInstaller, ensure_installed
from .builder import (
    CompilerSelector,
    MakeCollaborator,
    PrecompiledArtifact,
    build_native,
    compiler_environment,
    precompile,
)
from .fetch import artifact_urls, fetch_artifacts

__all__ = [
    "InstallResult",
    "InstallState",
    "PrecompiledInstaller",
    "ensure_installed",
    "CompilerSelector",
    "MakeCollaborator",
    "PrecompiledArtifact",
    "build_native",
    "compiler_environment",
    "precompile",
    "artifact_urls",
    "fetch_artifacts",
]
