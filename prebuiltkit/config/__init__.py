"""Configuration module for PrebuiltKit.

This module provides YAML configuration parsing and validation for
prebuiltkit.yaml, and the metadata record of the last resolved target.
"""

from prebuiltkit.config.parser import (
    CONFIG_FILENAME,
    PrecompileConfig,
    load_config,
    config_from_dict,
    is_truthy,
    always_use_zig,
    targets_override,
)
from prebuiltkit.config.metadata import (
    metadata_file,
    read_metadata,
    write_metadata,
    available_urls,
    current_target_url,
)

__all__ = [
    "CONFIG_FILENAME",
    "PrecompileConfig",
    "load_config",
    "config_from_dict",
    "is_truthy",
    "always_use_zig",
    "targets_override",
    "metadata_file",
    "read_metadata",
    "write_metadata",
    "available_urls",
    "current_target_url",
]
