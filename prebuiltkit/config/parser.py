"""YAML configuration parser for PrebuiltKit.

This module provides parsing and validation for prebuiltkit.yaml configuration
files. All validation happens here, before any network or cache access.
"""

import logging
import os
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Mapping, Optional, Union
from urllib.parse import urlsplit

import yaml

from prebuiltkit.core.exceptions import ConfigurationError
from prebuiltkit.core.filesystem import is_relative_to
from prebuiltkit.core.platform import current_runtime_version
from prebuiltkit.core.verification import checksum_file_path
from prebuiltkit.targets.conventions import (
    Convention,
    default_runtime_versions,
    default_targets,
)

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "prebuiltkit.yaml"

APP_NAME_ENV = "PREBUILTKIT_APP_NAME"
APP_VERSION_ENV = "PREBUILTKIT_APP_VERSION"
TARGETS_ENV = "PREBUILTKIT_TARGETS"
ALWAYS_USE_ZIG_ENV = "PREBUILTKIT_ALWAYS_USE_ZIG"

TRUTHY_VALUES = ("true", "TRUE", "yes", "YES", "y", "on", "ON", "1")


@dataclass
class PrecompileConfig:
    """Settings for one native extension."""

    app: str
    version: str
    base_url: str
    project_root: Path = field(default_factory=Path.cwd)
    nif_filename: Optional[str] = None
    convention: Convention = Convention.ZIG
    targets: List[str] = field(default_factory=list)
    runtime_versions: List[str] = field(default_factory=list)
    runtime_version: str = ""
    force_build: bool = False
    force_build_args: List[str] = field(default_factory=list)
    force_build_using_zig: bool = False
    load_data: Any = 0
    build_command: List[str] = field(default_factory=lambda: ["make"])
    install_dir: str = "priv"
    environ: Optional[Mapping[str, str]] = field(
        default=None, repr=False, compare=False
    )

    def __post_init__(self):
        self.convention = Convention.parse(self.convention)
        if not self.nif_filename:
            self.nif_filename = self.app
        if not self.targets:
            self.targets = default_targets(self.convention)
        if not self.runtime_version:
            self.runtime_version = current_runtime_version(self.environ)
        if not self.runtime_versions:
            self.runtime_versions = default_runtime_versions(self.runtime_version)

    @property
    def install_path(self) -> Path:
        """Directory archives are extracted into."""
        return Path(self.project_root) / self.install_dir

    def load_path(self, windows: bool = False) -> Path:
        """File the runtime loader expects after install."""
        suffix = ".dll" if windows else ".so"
        return self.install_path / f"{self.nif_filename}{suffix}"

    @property
    def checksum_path(self) -> Path:
        return checksum_file_path(self.project_root, self.app)


def is_truthy(value: Optional[str]) -> bool:
    """Return True for the accepted spellings of an enabled toggle."""
    return value in TRUTHY_VALUES


def always_use_zig(environ: Optional[Mapping[str, str]] = None) -> bool:
    if environ is None:
        environ = os.environ
    return is_truthy(environ.get(ALWAYS_USE_ZIG_ENV))


def targets_override(environ: Optional[Mapping[str, str]] = None) -> Optional[List[str]]:
    """
    Targets from PREBUILTKIT_TARGETS, or None when unset.

    Example:
        >>> targets_override({"PREBUILTKIT_TARGETS": "x86_64-linux-gnu, aarch64-linux-gnu"})
        ['x86_64-linux-gnu', 'aarch64-linux-gnu']
    """
    if environ is None:
        environ = os.environ
    value = environ.get(TARGETS_ENV)
    if not value:
        return None
    return [t.strip() for t in value.split(",") if t.strip()]


def is_pre_release(version: str) -> bool:
    """
    Check if a version is a 'dev' pre-release ('0.1.0-dev', '1.0.0-dev.2').
    """
    _, sep, pre = str(version).partition("-")
    if not sep:
        return False
    pre = pre.split("+", 1)[0]
    return "dev" in pre.split(".")


def load_config(
    config_path: Union[str, Path, None] = None,
    environ: Optional[Mapping[str, str]] = None,
    project_root: Union[str, Path, None] = None,
) -> PrecompileConfig:
    """
    Parse a prebuiltkit.yaml configuration file.

    Args:
        config_path: Path to the file (default: <project_root>/prebuiltkit.yaml)
        environ: Environment mapping (default: os.environ)
        project_root: Project root (default: directory of the config file)

    Returns:
        Parsed and validated configuration

    Raises:
        ConfigurationError: If configuration is missing or invalid
    """
    if config_path is None:
        config_path = Path(project_root or Path.cwd()) / CONFIG_FILENAME
    config_path = Path(config_path)

    if not config_path.exists():
        raise ConfigurationError(f"Configuration file not found: {config_path}")

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML syntax in {config_path}: {e}") from e

    if data is None:
        raise ConfigurationError(f"Configuration file is empty: {config_path}")

    if project_root is None:
        project_root = config_path.resolve().parent

    return config_from_dict(data, project_root=project_root, environ=environ)


def config_from_dict(
    data: Mapping[str, Any],
    project_root: Union[str, Path, None] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> PrecompileConfig:
    """Validate raw settings and build a PrecompileConfig."""
    if environ is None:
        environ = os.environ

    if not isinstance(data, Mapping):
        raise ConfigurationError("Configuration must be a mapping")

    app = environ.get(APP_NAME_ENV) or data.get("app")
    if not app:
        raise ConfigurationError(
            f"Missing required field: app (or set {APP_NAME_ENV})"
        )

    version = environ.get(APP_VERSION_ENV) or data.get("version")
    if version is None or str(version) == "":
        raise ConfigurationError(
            f"Missing required field: version (or set {APP_VERSION_ENV})"
        )
    version = str(version)

    base_url = _validate_base_url(data.get("base_url"))

    try:
        convention = Convention.parse(data.get("convention", Convention.ZIG.value))
    except ValueError as e:
        raise ConfigurationError(str(e)) from e

    targets = _string_list(data, "targets")
    runtime_versions = _string_list(data, "runtime_versions")

    runtime_version = data.get("runtime_version")
    if runtime_version is not None and not isinstance(runtime_version, str):
        raise ConfigurationError(
            "runtime_version must be a quoted string, e.g. \"2.16\""
        )

    force_build = bool(data.get("force_build", False))
    if is_pre_release(version):
        logger.debug(f"Version {version} is a dev pre-release, forcing a local build")
        force_build = True

    build_command = data.get("build_command", ["make"])
    if isinstance(build_command, str):
        build_command = shlex.split(build_command)
    if not isinstance(build_command, list) or not build_command:
        raise ConfigurationError("build_command must be a non-empty list or string")

    project_root = Path(project_root) if project_root is not None else Path.cwd()
    install_dir = _validate_install_dir(data.get("install_dir", "priv"), project_root)

    return PrecompileConfig(
        app=str(app),
        version=version,
        base_url=base_url,
        project_root=project_root,
        nif_filename=data.get("nif_filename"),
        convention=convention,
        targets=targets or [],
        runtime_versions=runtime_versions,
        runtime_version=runtime_version or "",
        force_build=force_build,
        force_build_args=[str(a) for a in _list(data, "force_build_args")],
        force_build_using_zig=bool(data.get("force_build_using_zig", False)),
        load_data=data.get("load_data", 0),
        build_command=[str(c) for c in build_command],
        install_dir=install_dir,
        environ=environ,
    )


def _validate_install_dir(install_dir: Any, project_root: Path) -> str:
    """The install directory is wiped on every build, so it must sit inside the project."""
    if not isinstance(install_dir, str) or not install_dir:
        raise ConfigurationError(
            f"install_dir must be a non-empty string, got {install_dir!r}"
        )

    root = project_root.resolve()
    path = (root / install_dir).resolve()
    if Path(install_dir).is_absolute() or path == root or not is_relative_to(path, root):
        raise ConfigurationError(
            f"install_dir must be a directory inside the project root {root}, "
            f"got {install_dir!r}"
        )
    return install_dir


def _validate_base_url(base_url: Any) -> str:
    if not base_url:
        raise ConfigurationError("Missing required field: base_url")

    if not isinstance(base_url, str):
        raise ConfigurationError(f"base_url must be a string, got {base_url!r}")

    parts = urlsplit(base_url)
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise ConfigurationError(
            f"base_url is invalid: {base_url!r} (expected an http(s) URL with a host)"
        )
    return base_url


def _list(data: Mapping[str, Any], key: str) -> list:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise ConfigurationError(f"{key} must be a list")
    return value


def _string_list(data: Mapping[str, Any], key: str) -> List[str]:
    values = _list(data, key)
    for value in values:
        if not isinstance(value, str):
            raise ConfigurationError(
                f"{key} entries must be quoted strings, got {value!r}"
            )
    return values


__all__ = [
    "CONFIG_FILENAME",
    "PrecompileConfig",
    "load_config",
    "config_from_dict",
    "is_truthy",
    "always_use_zig",
    "targets_override",
    "is_pre_release",
]
