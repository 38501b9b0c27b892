"""
Path resolution helpers for archive writers.

Stateless functions that absolutize paths, follow symbolic links one hop and
normalize exclude lists.
"""

import os
import stat
from typing import Iterable, List, Tuple

from colored_logger import get_colored_logger

from .errors import PathResolutionError

logger = get_colored_logger(__name__)


def absolute_path(path) -> str:
    """
    Return the absolute, normalized form of ``path``.

    Raises:
        PathResolutionError: If the value is not a usable filesystem path.
    """
    try:
        text = os.fspath(path)
    except TypeError as e:
        raise PathResolutionError(f"Invalid path {path!r}: {e}") from e

    if isinstance(text, bytes):
        text = os.fsdecode(text)

    if "\x00" in text:
        raise PathResolutionError(f"Invalid path {text!r}: embedded null byte")

    try:
        return os.path.abspath(text)
    except (OSError, ValueError) as e:
        raise PathResolutionError(f"Cannot absolutize {text!r}: {e}") from e


def resolve_symlink(path) -> str:
    """
    Resolve a symbolic link to the absolute path of its target.

    Only one hop is followed. A relative link target is interpreted relative
    to the directory holding the link. Paths that are not links are returned
    unchanged.

    Args:
        path: Path to inspect (not followed while inspecting)

    Returns:
        Absolute target path for a link, otherwise ``path`` itself

    Raises:
        PathResolutionError: If the path cannot be stat'd or the link read
    """
    try:
        info = os.lstat(path)
    except (OSError, ValueError) as e:
        raise PathResolutionError(f"Cannot stat {path}: {e}") from e

    if not stat.S_ISLNK(info.st_mode):
        return os.fspath(path)

    try:
        target = os.readlink(path)
    except OSError as e:
        raise PathResolutionError(f"Cannot read symlink {path}: {e}") from e

    link_dir = os.path.dirname(absolute_path(path))
    resolved = absolute_path(os.path.join(link_dir, target))
    logger.trace("Resolved symlink %s -> %s", path, resolved)
    return resolved


def resolve_exclude_list(raw_paths: Iterable) -> List[str]:
    """
    Absolutize every entry of an exclude list.

    Raises:
        PathResolutionError: If any entry cannot be absolutized
    """
    return [absolute_path(p) for p in raw_paths]


def clean_path(path) -> Tuple[str, str]:
    """
    Split a user supplied path into its absolute form and an entry name.

    The entry name is the normalized path with every leading ``../``
    removed, so ``../../data/file.txt`` is stored as ``data/file.txt``.

    Returns:
        Tuple of (absolute_path, relative_entry_name)
    """
    abs_path = absolute_path(path)
    rel_path = os.path.normpath(os.fspath(path))
    if os.sep != "/":
        rel_path = rel_path.replace(os.sep, "/")

    while rel_path.startswith("../"):
        rel_path = rel_path[3:]

    return abs_path, rel_path
