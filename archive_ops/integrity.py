"""
Integrity metadata for finished archives.

Computes MD5 and SHA-256 digests and the byte size of an archive after its
writer has been closed.
"""

import hashlib
import os
from dataclasses import dataclass
from typing import Tuple, Union

from colored_logger import get_colored_logger

from .errors import ChecksumError

logger = get_colored_logger(__name__)

CHUNK_SIZE = 1024 * 1024


@dataclass(frozen=True)
class ArchiveResult:
    """Digests and size of a closed archive."""

    sha256: str
    md5: str
    size: int


def checksums(source: Union[str, os.PathLike, bytes]) -> Tuple[str, str]:
    """
    Compute MD5 and SHA-256 hex digests in a single pass.

    Args:
        source: Path to a file, or the raw bytes to digest

    Returns:
        Tuple of (md5_hex, sha256_hex), lowercase

    Raises:
        ChecksumError: If the file cannot be read
    """
    md5_hash = hashlib.md5()
    sha256_hash = hashlib.sha256()

    if isinstance(source, (bytes, bytearray, memoryview)):
        md5_hash.update(source)
        sha256_hash.update(source)
        return md5_hash.hexdigest(), sha256_hash.hexdigest()

    try:
        with open(source, "rb") as f:
            for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
                md5_hash.update(chunk)
                sha256_hash.update(chunk)
    except OSError as e:
        raise ChecksumError(f"Cannot read {source} for checksums: {e}") from e

    return md5_hash.hexdigest(), sha256_hash.hexdigest()


def size(path: Union[str, os.PathLike]) -> int:
    """Return the size of ``path`` in bytes."""
    try:
        return os.stat(path).st_size
    except OSError as e:
        raise ChecksumError(f"Cannot stat {path}: {e}") from e


def compute_archive_result(path: Union[str, os.PathLike]) -> ArchiveResult:
    """Compute the full integrity record of a closed archive."""
    md5_hex, sha256_hex = checksums(path)
    byte_count = size(path)
    logger.debug("Checksums for %s: md5=%s sha256=%s", path, md5_hex, sha256_hex)
    return ArchiveResult(sha256=sha256_hex, md5=md5_hex, size=byte_count)
