"""
Archive writer implementations for the supported container formats.

Both writers follow the same lifecycle: ``open`` creates the output file and
the format encoder, ``add_file``/``add_dir``/``add_content`` append entries in
submission order and ``close`` flushes every layer. Entries are never
rewritten once they hit the stream.
"""

import gzip
import io
import os
import shutil
import stat
import tarfile
import time
import zipfile
from dataclasses import dataclass
from enum import Enum
from typing import BinaryIO, Callable, FrozenSet, List, Optional, Protocol

from colored_logger import get_colored_logger

from .archive_settings import ArchiveSettings
from .errors import (
    ArchiveCloseError,
    ArchiveEntryError,
    ArchiveError,
    ArchiveOpenError,
    WriterStateError,
)
from .path_resolver import absolute_path, resolve_exclude_list, resolve_symlink

logger = get_colored_logger(__name__)

CONTENT_FILE_MODE = 0o644
COPY_CHUNK_SIZE = 64 * 1024

# Range of timestamps representable in a zip header.
ZIP_MIN_DATE_TIME = (1980, 1, 1, 0, 0, 0)
ZIP_MAX_DATE_TIME = (2107, 12, 31, 23, 59, 58)


class WriterState(Enum):
    """Lifecycle of a single archive writer."""

    UNOPENED = "unopened"
    OPEN = "open"
    CLOSED = "closed"


@dataclass(frozen=True)
class EntryFailure:
    """A file a directory walk could not add to the archive."""

    path: str
    error: Exception


class ArchiveWriter(Protocol):
    """Protocol defining the interface shared by all archive writers."""

    format_name: str

    def open(self, output_path: str, settings: Optional[ArchiveSettings] = None) -> None:
        """Create the output file and initialize the encoder."""
        ...

    def add_file(self, source_path: str, dest_path: str) -> bool:
        """Write one file under ``dest_path``; False when it was excluded."""
        ...

    def add_dir(self, source_dir: str, dest_prefix: str) -> List[EntryFailure]:
        """Recursively add a directory, returning the entries that failed."""
        ...

    def add_content(self, data: bytes, dest_path: str) -> None:
        """Write in-memory bytes as a new entry."""
        ...

    def close(self) -> None:
        """Flush and close every layer of the archive."""
        ...


def rewrite_destination(path: str, dest_prefix: str) -> str:
    """
    Compute the entry name of a file found while walking a directory.

    The name is the suffix of ``path`` starting at ``dest_prefix``. An
    occurrence that begins a path segment wins over one inside a segment, so
    a prefix of ``data`` maps ``/srv/mydata/data/a.txt`` to ``data/a.txt``.
    An occurrence inside a segment only counts when it lies in the directory
    part, never in the file name. Otherwise the full path is returned.

    Args:
        path: Absolute traversal path of the file
        dest_prefix: Destination prefix supplied for the directory

    Returns:
        Entry name for the file
    """
    if not dest_prefix:
        return path

    index = path.find(dest_prefix)
    first_match = index

    while index != -1:
        if index == 0 or path[index - 1] in ("/", os.sep):
            return path[index:]
        index = path.find(dest_prefix, index + 1)

    name_start = max(path.rfind("/"), path.rfind(os.sep)) + 1
    if first_match != -1 and first_match + len(dest_prefix) <= name_start:
        return path[first_match:]

    return path


def _entry_name(entry_path: str, walk_root: str, dest_prefix: str, flatten: bool) -> str:
    if flatten:
        return os.path.basename(entry_path)
    if not dest_prefix or os.path.normpath(dest_prefix) == ".":
        return os.path.relpath(entry_path, walk_root).replace(os.sep, "/")
    return rewrite_destination(entry_path, dest_prefix)


def walk_directory(
    root: str,
    dest_prefix: str,
    add_file: Callable[[str, str], bool],
    flatten: bool = False,
    walk_root: Optional[str] = None,
) -> List[EntryFailure]:
    """
    Walk ``root`` in name order and hand every non-directory to ``add_file``.

    Failures below the root are logged and collected, never raised. With an
    empty or ``.`` prefix, entries are named relative to ``walk_root``
    (``root`` of the outermost call).

    Raises:
        ArchiveEntryError: If ``root`` itself cannot be listed
    """
    walk_root = walk_root or root

    try:
        with os.scandir(root) as it:
            entries = sorted(it, key=lambda e: e.name)
    except OSError as e:
        raise ArchiveEntryError(f"Cannot read directory {root}: {e}") from e

    failures: List[EntryFailure] = []

    for entry in entries:
        entry_path = os.path.join(root, entry.name)

        try:
            is_dir = entry.is_dir(follow_symlinks=False)
        except OSError:
            is_dir = False

        if is_dir:
            try:
                failures.extend(
                    walk_directory(entry_path, dest_prefix, add_file, flatten, walk_root)
                )
            except ArchiveError as e:
                logger.warning("Skipping directory %s: %s", entry_path, e)
                failures.append(EntryFailure(entry_path, e))
            continue

        dest = _entry_name(entry_path, walk_root, dest_prefix, flatten)

        try:
            add_file(entry_path, dest)
        except ArchiveError as e:
            logger.warning("Skipping %s: %s", entry_path, e)
            failures.append(EntryFailure(entry_path, e))

    return failures


def _prepare_exclude_set(settings: ArchiveSettings) -> FrozenSet[str]:
    """Absolutize the exclude list into the set consulted by every add call."""
    excluded = resolve_exclude_list(settings.exclude_list)

    if settings.resolve_symlink:
        excluded = [resolve_symlink(p) if os.path.islink(p) else p for p in excluded]

    return frozenset(excluded)


def _create_output_file(output_path: str, file_mode: int) -> BinaryIO:
    """Create or truncate the archive file with the requested permissions."""
    flags = os.O_WRONLY | os.O_CREAT | os.O_TRUNC | getattr(os, "O_BINARY", 0)
    try:
        fd = os.open(output_path, flags, file_mode)
    except (OSError, ValueError) as e:
        raise ArchiveOpenError(f"Cannot create archive {output_path}: {e}") from e

    return os.fdopen(fd, "wb")


def _close_layers(layers) -> List[Exception]:
    """Close every layer in order, collecting rather than stopping on errors."""
    errors: List[Exception] = []

    for name, layer in layers:
        if layer is None:
            continue
        try:
            layer.close()
        except Exception as e:
            logger.debug("Closing %s layer failed: %s", name, e)
            errors.append(e)

    return errors


class _WriterLifecycle:
    """State bookkeeping for a writer; carries no format logic."""

    format_name = ""

    def __init__(self):
        self.archive_path: Optional[str] = None
        self.settings: Optional[ArchiveSettings] = None
        self._exclude: FrozenSet[str] = frozenset()
        self._state = WriterState.UNOPENED

    @property
    def state(self) -> WriterState:
        return self._state

    @property
    def excluded_paths(self) -> FrozenSet[str]:
        """Absolute paths this writer will never archive."""
        return self._exclude

    def _require_state(self, expected: WriterState, operation: str) -> None:
        if self._state is not expected:
            raise WriterStateError(
                f"Cannot {operation} {self.format_name} archive: writer is {self._state.value}"
            )

    def _resolve_source(self, source_path: str) -> str:
        source = absolute_path(source_path)
        if self.settings.resolve_symlink:
            source = resolve_symlink(source)
        return source

    def _require_regular_file(self, source: str) -> None:
        # Opening a FIFO or device for reading can block indefinitely.
        try:
            info = os.stat(source)
        except OSError as e:
            raise ArchiveEntryError(f"Cannot stat {source}: {e}") from e
        if not stat.S_ISREG(info.st_mode):
            raise ArchiveEntryError(f"Not a regular file: {source}")

    def _is_excluded(self, source: str) -> bool:
        if source in self._exclude:
            logger.debug("Excluded from archive: %s", source)
            return True
        return False

    def add_dir(self, source_dir: str, dest_prefix: str) -> List[EntryFailure]:
        """
        Recursively add every file under ``source_dir``.

        Entry names follow :func:`rewrite_destination` (or the base name when
        the settings flatten the tree). The walk is best effort: failures are
        logged, returned, and do not stop the remaining files.

        Args:
            source_dir: Directory to walk
            dest_prefix: Prefix locating the entry name inside each path

        Returns:
            One EntryFailure per file or directory that was not archived

        Raises:
            ArchiveEntryError: If the root directory cannot be read
        """
        self._require_state(WriterState.OPEN, "add directory to")

        root = absolute_path(source_dir)
        if self.settings.resolve_symlink:
            root = resolve_symlink(root)

        failures = walk_directory(root, dest_prefix, self.add_file, self.settings.flatten)

        if failures:
            logger.warning(
                "%d entries under %s were not archived", len(failures), root
            )

        return failures

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._state is WriterState.OPEN:
            self.close()
        return False


class ZipArchiveWriter(_WriterLifecycle):
    """Writes ZIP archives; every entry is deflated independently."""

    format_name = "zip"

    def __init__(self, compression: int = zipfile.ZIP_DEFLATED, chunk_size: int = COPY_CHUNK_SIZE):
        super().__init__()
        self.compression = compression
        self.chunk_size = max(1024, chunk_size)
        self._file: Optional[BinaryIO] = None
        self._zipf: Optional[zipfile.ZipFile] = None

    def open(self, output_path: str, settings: Optional[ArchiveSettings] = None) -> None:
        """
        Create the ZIP file and its central-directory writer.

        Raises:
            PathResolutionError: If an exclude path cannot be absolutized
            ArchiveOpenError: If the output file cannot be created
            WriterStateError: If the writer was already opened
        """
        self._require_state(WriterState.UNOPENED, "open")

        settings = settings or ArchiveSettings()
        exclude = _prepare_exclude_set(settings)
        output_path = os.fspath(output_path)

        raw_file = _create_output_file(output_path, settings.file_mode)
        try:
            zipf = zipfile.ZipFile(raw_file, "w", self.compression, allowZip64=True)
        except (OSError, ValueError, RuntimeError) as e:
            raw_file.close()
            raise ArchiveOpenError(f"Cannot initialize zip writer for {output_path}: {e}") from e

        self._file = raw_file
        self._zipf = zipf
        self.archive_path = output_path
        self.settings = settings
        self._exclude = exclude
        self._state = WriterState.OPEN
        logger.debug("Opened zip archive %s (mode %o)", output_path, settings.file_mode)

    def _make_zipinfo(self, dest_path: str, mtime: float, st_mode: int) -> zipfile.ZipInfo:
        try:
            date_time = time.localtime(mtime)[:6]
        except (OverflowError, OSError, ValueError):
            date_time = ZIP_MIN_DATE_TIME if mtime < 0 else ZIP_MAX_DATE_TIME
        date_time = min(max(date_time, ZIP_MIN_DATE_TIME), ZIP_MAX_DATE_TIME)

        zinfo = zipfile.ZipInfo(dest_path, date_time=date_time)
        zinfo.compress_type = self.compression
        zinfo.external_attr = (st_mode & 0xFFFF) << 16
        return zinfo

    def add_file(self, source_path: str, dest_path: str) -> bool:
        """
        Stream one file into a new ZIP entry named ``dest_path``.

        Returns:
            True if the entry was written, False if the source is excluded

        Raises:
            ArchiveEntryError: If the source cannot be read or the entry written
        """
        self._require_state(WriterState.OPEN, "add file to")

        source = self._resolve_source(source_path)
        if self._is_excluded(source):
            return False

        self._require_regular_file(source)

        try:
            with open(source, "rb") as src:
                info = os.fstat(src.fileno())
                if not stat.S_ISREG(info.st_mode):
                    raise ArchiveEntryError(f"Not a regular file: {source}")

                zinfo = self._make_zipinfo(dest_path, info.st_mtime, info.st_mode)
                force_zip64 = info.st_size > zipfile.ZIP64_LIMIT
                with self._zipf.open(zinfo, "w", force_zip64=force_zip64) as dst:
                    shutil.copyfileobj(src, dst, self.chunk_size)
        except (OSError, OverflowError, ValueError, RuntimeError, zipfile.LargeZipFile) as e:
            raise ArchiveEntryError(f"Cannot add {source} to zip as {dest_path}: {e}") from e

        logger.debug("Added %s as %s", source, dest_path)
        return True

    def add_content(self, data: bytes, dest_path: str) -> None:
        """Write ``data`` as a new ZIP entry stamped with the current time."""
        self._require_state(WriterState.OPEN, "add content to")

        zinfo = self._make_zipinfo(dest_path, time.time(), stat.S_IFREG | CONTENT_FILE_MODE)
        try:
            self._zipf.writestr(zinfo, bytes(data))
        except (OSError, OverflowError, ValueError, RuntimeError, zipfile.LargeZipFile) as e:
            raise ArchiveEntryError(f"Cannot write content to zip as {dest_path}: {e}") from e

        logger.debug("Added %d bytes as %s", len(data), dest_path)

    def close(self) -> None:
        """
        Write the central directory and close the file.

        Raises:
            ArchiveCloseError: With every layer failure, if any layer failed
            WriterStateError: If the writer is not open
        """
        self._require_state(WriterState.OPEN, "close")

        errors = _close_layers([("zip", self._zipf), ("file", self._file)])
        self._zipf = None
        self._file = None
        self._state = WriterState.CLOSED

        if errors:
            raise ArchiveCloseError(errors)

        logger.debug("Closed zip archive %s", self.archive_path)


class TarGzArchiveWriter(_WriterLifecycle):
    """Writes gzip-compressed TAR streams with explicit per-entry headers."""

    format_name = "tar.gz"

    def __init__(self, compression_level: int = 9, chunk_size: int = COPY_CHUNK_SIZE):
        super().__init__()
        self.compression_level = compression_level
        self.chunk_size = max(1024, chunk_size)
        self._file: Optional[BinaryIO] = None
        self._gzip: Optional[gzip.GzipFile] = None
        self._tar: Optional[tarfile.TarFile] = None

    def open(self, output_path: str, settings: Optional[ArchiveSettings] = None) -> None:
        """
        Create the output file with a TAR stream layered over gzip.

        Raises:
            PathResolutionError: If an exclude path cannot be absolutized
            ArchiveOpenError: If the output file cannot be created
            WriterStateError: If the writer was already opened
        """
        self._require_state(WriterState.UNOPENED, "open")

        settings = settings or ArchiveSettings()
        exclude = _prepare_exclude_set(settings)
        output_path = os.fspath(output_path)

        raw_file = _create_output_file(output_path, settings.file_mode)
        gzip_layer = None
        try:
            gzip_layer = gzip.GzipFile(
                filename=output_path,
                mode="wb",
                compresslevel=self.compression_level,
                fileobj=raw_file,
            )
            tar = tarfile.open(fileobj=gzip_layer, mode="w|", format=tarfile.PAX_FORMAT)
        except (OSError, ValueError, tarfile.TarError) as e:
            _close_layers([("gzip", gzip_layer), ("file", raw_file)])
            raise ArchiveOpenError(f"Cannot initialize tar writer for {output_path}: {e}") from e

        self._file = raw_file
        self._gzip = gzip_layer
        self._tar = tar
        self.archive_path = output_path
        self.settings = settings
        self._exclude = exclude
        self._state = WriterState.OPEN
        logger.debug("Opened tar.gz archive %s (mode %o)", output_path, settings.file_mode)

    def add_file(self, source_path: str, dest_path: str) -> bool:
        """
        Write a header mirroring the source's stat, then stream its bytes.

        Returns:
            True if the entry was written, False if the source is excluded

        Raises:
            ArchiveEntryError: If the source cannot be read or the entry written
        """
        self._require_state(WriterState.OPEN, "add file to")

        source = self._resolve_source(source_path)
        if self._is_excluded(source):
            return False

        self._require_regular_file(source)

        try:
            with open(source, "rb") as src:
                info = os.fstat(src.fileno())
                if not stat.S_ISREG(info.st_mode):
                    raise ArchiveEntryError(f"Not a regular file: {source}")

                tarinfo = tarfile.TarInfo(dest_path)
                tarinfo.type = tarfile.REGTYPE
                tarinfo.size = info.st_size
                tarinfo.mode = stat.S_IMODE(info.st_mode)
                tarinfo.mtime = int(info.st_mtime)
                tarinfo.uid = getattr(info, "st_uid", 0)
                tarinfo.gid = getattr(info, "st_gid", 0)

                self._tar.addfile(tarinfo, src)
        except (OSError, OverflowError, ValueError, tarfile.TarError) as e:
            raise ArchiveEntryError(f"Cannot add {source} to tar as {dest_path}: {e}") from e

        logger.debug("Added %s as %s", source, dest_path)
        return True

    def add_content(self, data: bytes, dest_path: str) -> None:
        """Write ``data`` as a regular-file entry stamped with the current time."""
        self._require_state(WriterState.OPEN, "add content to")

        payload = bytes(data)
        tarinfo = tarfile.TarInfo(dest_path)
        tarinfo.type = tarfile.REGTYPE
        tarinfo.size = len(payload)
        tarinfo.mode = CONTENT_FILE_MODE
        tarinfo.mtime = int(time.time())

        try:
            self._tar.addfile(tarinfo, io.BytesIO(payload))
        except (OSError, ValueError, tarfile.TarError) as e:
            raise ArchiveEntryError(f"Cannot write content to tar as {dest_path}: {e}") from e

        logger.debug("Added %d bytes as %s", len(payload), dest_path)

    def close(self) -> None:
        """
        Close the TAR stream, then the gzip layer, then the file.

        Raises:
            ArchiveCloseError: With every layer failure, if any layer failed
            WriterStateError: If the writer is not open
        """
        self._require_state(WriterState.OPEN, "close")

        errors = _close_layers(
            [("tar", self._tar), ("gzip", self._gzip), ("file", self._file)]
        )
        self._tar = None
        self._gzip = None
        self._file = None
        self._state = WriterState.CLOSED

        if errors:
            raise ArchiveCloseError(errors)

        logger.debug("Closed tar.gz archive %s", self.archive_path)
