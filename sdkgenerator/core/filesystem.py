"""
File system utilities for the SDK generator.

This module provides:
- Safe tarball extraction (path traversal checks, absolute symlink rewriting)
- Safe file operations (atomic writes, guarded recursive deletion)
- Tree copying that preserves symlinks
- Sysroot symlink normalization
"""

import copy
import logging
import os
import posixpath
import shutil
import tarfile
import tempfile
from pathlib import Path
from typing import Callable, Optional, Union

from sdkgenerator.core.exceptions import (
    ExtractionFailed,
    GeneratorError,
    InsecureArchiveError,
)

logger = logging.getLogger(__name__)


class FilesystemError(GeneratorError):
    """Base exception for filesystem operations."""

    pass


# ============================================================================
# Tarball Extraction
# ============================================================================


def _validate_archive_path(path: str, destination: Path) -> None:
    """
    Validate that an archive member path is safe to extract.

    Raises:
        InsecureArchiveError: If path attempts directory traversal
    """
    member_path = (destination / path).resolve()

    if not member_path.is_relative_to(destination.resolve()):
        raise InsecureArchiveError(
            f"Archive member '{path}' attempts directory traversal. "
            "This is a security risk and extraction has been blocked."
        )


def _rebase_absolute_symlink(member: tarfile.TarInfo) -> tarfile.TarInfo:
    """
    Make an absolute symlink relative to the archive root.

    Distribution packages link e.g. `usr/lib/x86_64-linux-gnu/libm.so` to
    `/lib/x86_64-linux-gnu/libm.so.6`; inside a sysroot that target must
    resolve against the sysroot, not the host.
    """
    if not (member.issym() and member.linkname.startswith("/")):
        return member
    link_dir = posixpath.dirname(posixpath.normpath(member.name))
    target = posixpath.normpath(member.linkname.lstrip("/"))
    rebased = copy.copy(member)
    rebased.linkname = posixpath.relpath(target, link_dir or ".")
    return rebased


def extract_tarball(
    archive_path: Union[str, Path],
    destination: Union[str, Path],
    progress_callback: Optional[Callable[[int, int], None]] = None,
) -> None:
    """
    Extract a compressed tarball (gzip, xz, bzip2 or uncompressed).

    Absolute symlinks are rewritten relative to the destination and every
    member path is validated before anything is written.

    Args:
        archive_path: Path to the tarball
        destination: Directory to extract to
        progress_callback: Optional callback(current, total) for progress

    Raises:
        InsecureArchiveError: If archive contains malicious paths
        ExtractionFailed: If the tarball is unreadable or truncated
    """
    archive_path = Path(archive_path)
    destination = Path(destination)
    destination.mkdir(parents=True, exist_ok=True)

    try:
        with tarfile.open(archive_path, "r:*") as tar:
            members = tar.getmembers()
            total = len(members)

            for member in members:
                _validate_archive_path(member.name, destination)

            if hasattr(tarfile, "data_filter"):

                def sysroot_filter(member, dest_path):
                    return tarfile.data_filter(_rebase_absolute_symlink(member), dest_path)

                tar.extractall(destination, filter=sysroot_filter)
            else:
                tar.extractall(
                    destination, members=[_rebase_absolute_symlink(m) for m in members]
                )

            if progress_callback:
                progress_callback(total, total)
    except InsecureArchiveError:
        raise
    except (tarfile.TarError, OSError, EOFError) as e:
        raise ExtractionFailed(archive_path, str(e)) from e


def normalize_root_directory(extract_dir: Path) -> Path:
    """
    Return the real content root of an extracted archive.

    Some archives have a single root folder, others extract directly.
    """
    items = list(extract_dir.iterdir())

    if len(items) == 1 and items[0].is_dir() and not items[0].is_symlink():
        return items[0]

    return extract_dir


# ============================================================================
# Safe File Operations
# ============================================================================


def atomic_write(
    file_path: Union[str, Path], content: Union[str, bytes], encoding: str = "utf-8"
) -> None:
    """
    Write file atomically using temp file + rename.

    This ensures the file is never in a partially-written state.
    If the write fails, the original file (if any) remains unchanged.

    Example:
        >>> atomic_write('info.json', '{"schemaVersion": "1.0"}')
    """
    file_path = Path(file_path)
    file_path.parent.mkdir(parents=True, exist_ok=True)

    # Create temp file in same directory (ensures same filesystem)
    temp_fd, temp_path_str = tempfile.mkstemp(
        dir=file_path.parent, prefix=f".{file_path.name}.", suffix=".tmp"
    )
    temp_path = Path(temp_path_str)

    try:
        if isinstance(content, str):
            with open(temp_fd, "w", encoding=encoding, newline="\n") as f:
                f.write(content)
        else:
            with open(temp_fd, "wb") as f:
                f.write(content)

        temp_path.replace(file_path)

    except Exception:
        temp_path.unlink(missing_ok=True)
        raise


def safe_rmtree(
    path: Union[str, Path], require_prefix: Optional[Union[str, Path]] = None
) -> None:
    """
    Safely remove a directory tree with safeguards.

    Args:
        path: Directory to remove
        require_prefix: If specified, path must be under this directory

    Raises:
        ValueError: If path is not under require_prefix
        FilesystemError: If deletion fails

    Example:
        >>> safe_rmtree('Build/swift-5.8-RELEASE-osx', require_prefix='Build')
    """
    path = Path(path).absolute()

    if require_prefix is not None:
        require_prefix = Path(require_prefix).absolute()
        if not path.is_relative_to(require_prefix):
            raise ValueError(
                f"Refusing to delete '{path}': not under required prefix '{require_prefix}'"
            )

    if path.is_symlink():
        path.unlink()
        return

    if not path.exists():
        return  # Already gone, nothing to do

    if not path.is_dir():
        raise FilesystemError(f"Path is not a directory: {path}")

    try:
        shutil.rmtree(path)
    except OSError as e:
        raise FilesystemError(f"Failed to remove directory '{path}': {e}") from e


def recursive_copy(source: Union[str, Path], destination: Union[str, Path]) -> None:
    """
    Recursively copy a directory tree, copying symlinks as symlinks.

    Example:
        >>> recursive_copy('Build/swift/usr/lib/swift', 'sdk/usr/lib/swift')
    """
    source = Path(source)
    destination = Path(destination)

    if not source.is_dir():
        raise FilesystemError(f"Source is not a directory: {source}")

    shutil.copytree(source, destination, symlinks=True, dirs_exist_ok=True)


def ensure_directory(path: Union[str, Path]) -> Path:
    """Ensure a directory exists (idempotent)."""
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path


def relativize_absolute_symlinks(root: Union[str, Path]) -> int:
    """
    Rewrite absolute symlinks under root so they resolve inside root.

    A link `root/usr/lib/libz.so -> /lib/libz.so.1` becomes
    `root/usr/lib/libz.so -> ../../lib/libz.so.1`.

    Returns:
        Number of symlinks rewritten
    """
    root = Path(root)
    rewritten = 0

    for dirpath, dirnames, filenames in os.walk(root):
        for name in dirnames + filenames:
            link = Path(dirpath) / name
            if not link.is_symlink():
                continue
            target = os.readlink(link)
            if not target.startswith("/"):
                continue

            rooted_target = root / target.lstrip("/")
            relative = os.path.relpath(rooted_target, link.parent)
            link.unlink()
            os.symlink(relative, link)
            rewritten += 1
            logger.debug(f"Rewrote symlink {link} -> {relative}")

    return rewritten
