"""
Artifact Verification.

This module fingerprints plugin directory trees.

The checksum is computed from the sorted list of "/relative/path:sha256"
entries of every regular file, joined with "|" and hashed again with
SHA-256. Sorting makes the result independent of filesystem iteration order,
so the registry and every client compute the same value for the same content.
"""

import hashlib
import os
from dataclasses import dataclass
from pathlib import Path

from plugpm.errors import CorruptArtifact, DirectoryNotFound

_CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class DirectoryMetadata:
    """
    Size, file count and content checksum of a directory tree.

    Attributes:
        total_bytes: Sum of file sizes
        file_count: Number of regular files
        checksum: SHA-256 hex digest of the sorted file entries
    """

    total_bytes: int
    file_count: int
    checksum: str


def hash_file(file_path: Path) -> str:
    """Return the SHA-256 hex digest of a file's raw bytes."""
    digest = hashlib.sha256()
    with open(file_path, "rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def compute_metadata(directory: Path | str) -> DirectoryMetadata:
    """
    Compute size, file count and checksum of a directory tree.

    Args:
        directory: Directory to fingerprint (symlinks are resolved)

    Returns:
        DirectoryMetadata for the tree

    Raises:
        DirectoryNotFound: If the directory does not exist
    """
    root = Path(directory).resolve()
    if not root.is_dir():
        raise DirectoryNotFound(f"Could not get metadata of directory {root}")

    entries = []
    total_bytes = 0
    file_count = 0

    for current, _dirs, files in os.walk(root):
        for name in files:
            file_path = Path(current) / name
            if not file_path.is_file():
                continue

            relative = "/" + file_path.relative_to(root).as_posix()
            entries.append(f"{relative}:{hash_file(file_path)}")

            total_bytes += file_path.stat().st_size
            file_count += 1

    entries.sort()
    checksum = hashlib.sha256("|".join(entries).encode("utf-8")).hexdigest()

    return DirectoryMetadata(total_bytes=total_bytes, file_count=file_count, checksum=checksum)


def verify_checksum(
    directory: Path | str, expected: str, plugin_key: str | None = None
) -> DirectoryMetadata:
    """
    Check a directory tree against a declared checksum.

    Args:
        directory: Directory to verify
        expected: Declared SHA-256 checksum
        plugin_key: Plugin key used for error context

    Returns:
        DirectoryMetadata of the verified tree

    Raises:
        DirectoryNotFound: If the directory does not exist
        CorruptArtifact: If the checksums differ
    """
    metadata = compute_metadata(directory)

    if metadata.checksum != expected.strip().lower():
        raise CorruptArtifact(
            f"Checksum mismatch for {plugin_key or directory}",
            expected=expected,
            actual=metadata.checksum,
            plugin_key=plugin_key,
        )

    return metadata


__all__ = ["DirectoryMetadata", "hash_file", "compute_metadata", "verify_checksum"]
