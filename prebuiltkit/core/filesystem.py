"""
File system utilities for PrebuiltKit.

This module provides the file operations the installer and build loop rely on:
- Path-traversal-safe extraction of precompiled tar.gz archives
- Packaging of a build output tree into a tar.gz archive
- Safe file operations (atomic writes, guarded deletion)

Archive members that would land outside the destination are skipped with a
warning instead of aborting the whole restore.
"""

import logging
import os
import shutil
import stat
import sys
import tarfile
import tempfile
from pathlib import Path
from typing import Iterator, List, Optional, Set, Tuple, Union

from prebuiltkit.core.exceptions import ExtractionError

logger = logging.getLogger(__name__)

IS_WINDOWS = os.name == "nt"


# ============================================================================
# Path Utilities
# ============================================================================


def is_relative_to(path: Path, parent: Path) -> bool:
    """
    Check if path is relative to (under) parent directory.

    Example:
        >>> is_relative_to(Path("/home/user/project/file.txt"), Path("/home/user"))
        True
    """
    return Path(path).is_relative_to(parent)


def _real_path(path: Path) -> Optional[Path]:
    """Resolve symlinks on disk; None when they loop."""
    try:
        return path.resolve()
    except (OSError, RuntimeError):
        return None


def _member_destination(member: tarfile.TarInfo, root: Path) -> Path:
    """Absolute destination of a member, without following the member itself."""
    return Path(os.path.normpath(root / member.name))


def _is_contained_member(member: tarfile.TarInfo, root: Path) -> bool:
    """Lexical check: the normalized member name stays under root."""
    if os.path.isabs(member.name):
        return False

    destination = _member_destination(member, root)
    if destination == root:
        return member.isdir()
    return is_relative_to(destination, root)


def _is_safe_member(member: tarfile.TarInfo, root: Path) -> bool:
    """
    Check a member against what is on disk right now.

    Must be called just before the member is written, once every earlier
    member is on disk: symlinks extracted earlier change where later paths
    really lead.

    Args:
        member: Archive member
        root: Resolved extraction root

    Returns:
        True if the member can be written
    """
    if not _is_contained_member(member, root):
        return False

    destination = _member_destination(member, root)
    if destination == root:
        return True

    parent = _real_path(destination.parent)
    if parent is None or not is_relative_to(parent, root):
        return False

    if member.issym():
        link_target = Path(member.linkname)
        if not link_target.is_absolute():
            link_target = parent / link_target
        target = _real_path(link_target)
        if target is None or not is_relative_to(target, root):
            return False

    return True


# ============================================================================
# Archive Extraction
# ============================================================================


def extract_archive(
    archive_path: Union[str, Path], dest_root: Union[str, Path]
) -> List[str]:
    """
    Extract a precompiled tar.gz archive into dest_root.

    Members whose destination (or symlink target) escapes dest_root are
    skipped with a warning; the remaining members are still extracted. The
    check runs as each member is written, so paths are resolved through any
    symlinks the archive itself created. Only regular files, directories and
    symbolic links are written.

    Every directory that already exists and will receive regular files is
    wiped and recreated once before anything is written, so files from a
    previous install are not left mixed with the new ones.

    Args:
        archive_path: Path to the .tar.gz archive
        dest_root: Directory to extract into (created if missing)

    Returns:
        Names of the members that were extracted

    Raises:
        ExtractionError: If the archive cannot be read or a write fails

    Example:
        >>> extract_archive("cache/my_nif-nif-2.16-x86_64-linux-gnu-0.1.0.tar.gz", "priv")
        ['libmy_nif.so']
    """
    archive_path = Path(archive_path)

    if not archive_path.exists():
        raise ExtractionError(f"Archive not found: {archive_path}")

    try:
        root = Path(dest_root)
        root.mkdir(parents=True, exist_ok=True)
        root = root.resolve()

        with tarfile.open(archive_path, "r:gz") as tar:
            members = _select_members(tar.getmembers(), root)
            _wipe_receiving_directories(members, root)

            extracted = []
            for member in members:
                if not _is_safe_member(member, root):
                    _skip(member, f"path escapes {root}")
                    continue
                _extract_member(tar, member, root)
                extracted.append(member.name)
    except ExtractionError:
        raise
    except (tarfile.TarError, OSError) as e:
        raise ExtractionError(f"Failed to extract {archive_path}: {e}") from e

    logger.debug(f"Extracted {len(extracted)} member(s) from {archive_path} to {root}")
    return extracted


def _skip(member: tarfile.TarInfo, reason: str) -> None:
    logger.warning(f"Skipping archive member {member.name!r}: {reason}")


def _select_members(
    members: List[tarfile.TarInfo], root: Path
) -> List[tarfile.TarInfo]:
    selected = []
    for member in members:
        if not (member.isfile() or member.isdir() or member.issym()):
            _skip(member, "unsupported member type")
            continue
        if not _is_contained_member(member, root):
            _skip(member, f"path escapes {root}")
            continue
        selected.append(member)
    return selected


def _wipe_receiving_directories(
    members: List[tarfile.TarInfo], root: Path
) -> None:
    receiving: Set[Path] = {
        _member_destination(m, root).parent for m in members if m.isfile()
    }

    wiped: List[Path] = []
    for directory in sorted(receiving, key=lambda p: len(p.parts)):
        if any(is_relative_to(directory, done) for done in wiped):
            continue
        # Only real directories under root; never through a leftover symlink
        if directory.is_dir() and _real_path(directory) == directory:
            logger.debug(f"Removing previous contents of {directory}")
            shutil.rmtree(directory)
            directory.mkdir(parents=True)
            wiped.append(directory)


def _extract_member(tar: tarfile.TarFile, member: tarfile.TarInfo, root: Path) -> None:
    destination = _member_destination(member, root)

    if member.isdir():
        destination.mkdir(parents=True, exist_ok=True)
        return

    destination.parent.mkdir(parents=True, exist_ok=True)
    if destination.is_symlink() or destination.is_file():
        destination.unlink()

    if member.issym():
        os.symlink(member.linkname, destination)
        return

    source = tar.extractfile(member)
    if source is None:
        raise ExtractionError(f"Cannot read archive member {member.name!r}")
    with source, open(destination, "wb") as f:
        shutil.copyfileobj(source, f)
    os.chmod(destination, stat.S_IMODE(member.mode) or 0o644)


# ============================================================================
# Archive Creation
# ============================================================================


def _walk_tree(source_dir: Path) -> Iterator[Tuple[Path, str]]:
    """
    Yield (path, archive name) for every node under source_dir.

    A symlink to a directory is yielded as a single node and not descended
    into, which keeps cyclic links from looping.
    """
    for entry in sorted(source_dir.iterdir(), key=lambda p: p.name):
        yield entry, entry.name
        if entry.is_dir() and not entry.is_symlink():
            for child, name in _walk_tree(entry):
                yield child, f"{entry.name}/{name}"


def create_archive(
    source_dir: Union[str, Path], archive_path: Union[str, Path]
) -> Path:
    """
    Package a build output tree into a gzip-compressed tarball.

    Member names are relative to source_dir. The archive is written to a
    temporary file next to archive_path and renamed into place.

    Args:
        source_dir: Directory to package
        archive_path: Destination .tar.gz path

    Returns:
        Path to the created archive

    Raises:
        ExtractionError: If the tree cannot be read or the archive written
    """
    source_dir = Path(source_dir)
    archive_path = Path(archive_path)

    if not source_dir.is_dir():
        raise ExtractionError(f"Build output directory not found: {source_dir}")

    archive_path.parent.mkdir(parents=True, exist_ok=True)
    temp_fd, temp_path_str = tempfile.mkstemp(
        dir=archive_path.parent, prefix=f".{archive_path.name}.", suffix=".tmp"
    )
    os.close(temp_fd)
    temp_path = Path(temp_path_str)

    try:
        with tarfile.open(temp_path, "w:gz") as tar:
            for path, name in _walk_tree(source_dir):
                tar.add(path, arcname=name, recursive=False)
        temp_path.replace(archive_path)
    except (tarfile.TarError, OSError) as e:
        temp_path.unlink(missing_ok=True)
        raise ExtractionError(f"Failed to create archive {archive_path}: {e}") from e

    logger.debug(f"Created archive {archive_path} from {source_dir}")
    return archive_path


# ============================================================================
# Safe File Operations
# ============================================================================


def atomic_write(
    file_path: Union[str, Path], content: Union[str, bytes], encoding: str = "utf-8"
) -> None:
    """
    Write file atomically using temp file + rename.

    The file is never observed in a partially-written state; if the write
    fails, the original file (if any) remains unchanged.

    Args:
        file_path: Path to write to
        content: Content to write (string or bytes)
        encoding: Text encoding (used only for string content)

    Example:
        >>> atomic_write('checksum-my_nif.yaml', 'a.tar.gz: sha256:...')
        >>> atomic_write('archive.tar.gz', b'\\x1f\\x8b...')
    """
    file_path = Path(file_path)
    file_path.parent.mkdir(parents=True, exist_ok=True)

    # Same directory keeps the rename on one filesystem
    temp_fd, temp_path_str = tempfile.mkstemp(
        dir=file_path.parent, prefix=f".{file_path.name}.", suffix=".tmp"
    )
    temp_path = Path(temp_path_str)

    try:
        if isinstance(content, str):
            with open(temp_fd, "w", encoding=encoding) as f:
                f.write(content)
        else:
            with open(temp_fd, "wb") as f:
                f.write(content)

        temp_path.replace(file_path)

    except BaseException:
        temp_path.unlink(missing_ok=True)
        raise


def _remove_readonly(func, failed_path, exc: BaseException) -> None:
    """Clear the read-only bit Windows leaves on some files and retry once."""
    if not os.access(failed_path, os.W_OK):
        os.chmod(failed_path, 0o777)
        func(failed_path)
    else:
        raise exc


def _rmtree_readonly(path: Path) -> None:
    # onerror is deprecated from 3.12 on; onexc passes the exception itself
    if sys.version_info >= (3, 12):
        shutil.rmtree(path, onexc=_remove_readonly)
    else:
        shutil.rmtree(
            path, onerror=lambda func, p, info: _remove_readonly(func, p, info[1])
        )


def safe_rmtree(
    path: Union[str, Path], require_prefix: Union[str, Path, None] = None
) -> None:
    """
    Remove a directory tree, refusing paths outside require_prefix.

    Args:
        path: Directory to remove (missing is fine)
        require_prefix: If specified, path must be under this directory

    Raises:
        ValueError: If path is not under require_prefix
        ExtractionError: If deletion fails

    Example:
        >>> safe_rmtree('/project/priv', require_prefix='/project')
    """
    path = Path(path).resolve()

    if require_prefix is not None:
        require_prefix = Path(require_prefix).resolve()
        if not is_relative_to(path, require_prefix):
            raise ValueError(
                f"Refusing to delete '{path}': not under required prefix '{require_prefix}'"
            )

    if not path.exists():
        return

    if not path.is_dir():
        raise ExtractionError(f"Path is not a directory: {path}")

    try:
        if IS_WINDOWS:
            _rmtree_readonly(path)
        else:
            shutil.rmtree(path)
    except OSError as e:
        raise ExtractionError(f"Failed to remove directory '{path}': {e}") from e


__all__ = [
    "is_relative_to",
    "extract_archive",
    "create_archive",
    "atomic_write",
    "safe_rmtree",
]
