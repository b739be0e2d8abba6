"""
Target triple resolution for PrebuiltKit.
"""

from .conventions import (
    Convention,
    default_runtime_versions,
    default_targets,
    DEFAULT_RUNTIME_VERSIONS,
)
from .resolver import (
    ResolvedTarget,
    TargetResolver,
    canonical_target,
    find_compatible_version,
    resolve_target,
)

__all__ = [
    "Convention",
    "default_targets",
    "DEFAULT_RUNTIME_VERSIONS",
    "default_runtime_versions",
    "ResolvedTarget",
    "TargetResolver",
    "canonical_target",
    "find_compatible_version",
    "resolve_target",
]
