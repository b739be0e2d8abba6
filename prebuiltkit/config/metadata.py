"""
Metadata record of the last successful target resolution.

The record lives at ``<cache root>/metadata/metadata-{app}.yaml`` and is what
the fetch and urls commands use to rebuild artifact URLs without resolving the
host again:

    app: my_nif
    base_url: https://example.com/releases/download/v0.1.0
    cached_archive: /home/user/.cache/prebuiltkit/my_nif-nif-2.16-x86_64-linux-gnu-0.1.0.tar.gz
    target: x86_64-linux-gnu
    targets: [...]
    version: 0.1.0

Records written by older releases may lack ``version``. When ``cached_archive``
still carries the current filename shape the version is read from it;
otherwise URLs use the legacy ``{base_url}/{target}.tar.gz`` shape.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

import yaml

from prebuiltkit.core.cache import (
    archive_filename,
    artifact_url,
    cache_root,
    parse_artifact_name,
)
from prebuiltkit.core.exceptions import ConfigurationError
from prebuiltkit.core.filesystem import atomic_write

logger = logging.getLogger(__name__)

PRECOMPILE_REMEDIATION = "pbkit precompile"

METADATA_FIELDS = ("app", "cached_archive", "base_url", "target", "targets", "version")


def metadata_file(app: str, environ: Optional[Mapping[str, str]] = None) -> Path:
    """Path of the metadata record for an app."""
    return cache_root("metadata", environ) / f"metadata-{app}.yaml"


def build_metadata(
    config, target: str, cached_archive: Union[str, Path]
) -> Dict[str, Any]:
    """Assemble a metadata record from a config and a resolved target."""
    return {
        "app": config.app,
        "cached_archive": str(cached_archive),
        "base_url": config.base_url,
        "target": target,
        "targets": list(config.targets),
        "version": config.version,
    }


def read_metadata(
    app: str, environ: Optional[Mapping[str, str]] = None
) -> Dict[str, Any]:
    """
    Read the metadata record for an app.

    Returns:
        The stored record, or an empty dict when missing or unreadable
    """
    path = metadata_file(app, environ)
    if not path.exists():
        return {}

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Cannot read metadata file {path}: {e}")
        return {}

    if not isinstance(data, dict):
        logger.warning(f"Ignoring metadata file {path}: expected a mapping")
        return {}
    return data


def write_metadata(
    app: str, record: Mapping[str, Any], environ: Optional[Mapping[str, str]] = None
) -> bool:
    """
    Store the metadata record unless an identical one is already stored.

    Returns:
        True if the file was written
    """
    record = {k: record[k] for k in METADATA_FIELDS if k in record}
    if read_metadata(app, environ) == record:
        logger.debug(f"Metadata for {app} is unchanged")
        return False

    path = metadata_file(app, environ)
    atomic_write(path, yaml.safe_dump(record, default_flow_style=False, sort_keys=True))
    logger.debug(f"Metadata for {app} written to {path}")
    return True


def _require(record: Mapping[str, Any], app: str, *keys: str) -> None:
    if not record or any(record.get(k) is None for k in keys):
        raise ConfigurationError(
            f"metadata about current target for the app {app!r} is not available. "
            f"Please compile the project again with: `{PRECOMPILE_REMEDIATION}`"
        )


def _with_archive_version(record: Dict[str, Any]) -> Dict[str, Any]:
    """Fill a missing version from the cached archive's filename, when it has one."""
    if record.get("version") is not None or not record.get("cached_archive"):
        return record

    name = parse_artifact_name(Path(str(record["cached_archive"])).name)
    if name is None or name.is_legacy:
        return record

    logger.debug(
        f"Metadata for {record['app']} has no version; using {name.version} "
        f"from {record['cached_archive']}"
    )
    return {**record, "version": name.version}


def _url_for(record: Mapping[str, Any], target: str, runtime_version: str) -> str:
    version = record.get("version")
    if version is None:
        return artifact_url(record["base_url"], f"{target}.tar.gz")

    filename = archive_filename(record["app"], runtime_version, target, str(version))
    return artifact_url(record["base_url"], filename)


def available_urls(
    app: str,
    runtime_versions: Sequence[str],
    environ: Optional[Mapping[str, str]] = None,
) -> List[str]:
    """
    Every artifact URL for the stored targets, one per target and runtime version.

    Raises:
        ConfigurationError: If no metadata has been recorded for the app

    Example:
        >>> available_urls("my_nif", ["2.15", "2.16"])
        ['https://.../my_nif-nif-2.15-x86_64-linux-gnu-0.1.0.tar.gz', ...]
    """
    record = read_metadata(app, environ)
    _require(record, app, "targets", "base_url")
    record = _with_archive_version({"app": app, **record})

    if record.get("version") is None:
        return [_url_for(record, target, "") for target in record["targets"]]

    return [
        _url_for(record, target, runtime_version)
        for target in record["targets"]
        for runtime_version in runtime_versions
    ]


def current_target_url(
    app: str, runtime_version: str, environ: Optional[Mapping[str, str]] = None
) -> str:
    """
    The artifact URL for the stored target and a runtime version.

    Raises:
        ConfigurationError: If no metadata has been recorded for the app
    """
    record = read_metadata(app, environ)
    _require(record, app, "target", "base_url")
    record = _with_archive_version({"app": app, **record})
    return _url_for(record, record["target"], runtime_version)


__all__ = [
    "metadata_file",
    "build_metadata",
    "read_metadata",
    "write_metadata",
    "available_urls",
    "current_target_url",
]
