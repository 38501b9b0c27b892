from .errors import (
    ArchiveError,
    ConfigurationError,
    UnsupportedFormatError,
    InvalidFileModeError,
    PathResolutionError,
    ArchiveOpenError,
    ArchiveEntryError,
    ArchiveCloseError,
    WriterStateError,
    ChecksumError,
)
from .archive_settings import ArchiveSettings, parse_file_mode
from .path_resolver import (
    absolute_path,
    clean_path,
    resolve_exclude_list,
    resolve_symlink,
)
from .integrity import ArchiveResult, checksums, compute_archive_result, size

# Writers and their factory
from .archive_writers import (
    ArchiveWriter,
    EntryFailure,
    TarGzArchiveWriter,
    WriterState,
    ZipArchiveWriter,
    rewrite_destination,
)
from .archive_factory import ArchiveWriterFactory
from .archive_verifier import ArchiveVerifier, TarGzArchiveReader, ZipArchiveReader

# Build orchestration
from .archive_builder import (
    ArchiveBuilder,
    ArchiveBuildResult,
    ArchiveBuildSpec,
    ContentBlock,
)

__all__ = [
    # Errors
    "ArchiveError",
    "ConfigurationError",
    "UnsupportedFormatError",
    "InvalidFileModeError",
    "PathResolutionError",
    "ArchiveOpenError",
    "ArchiveEntryError",
    "ArchiveCloseError",
    "WriterStateError",
    "ChecksumError",
    # Settings and paths
    "ArchiveSettings",
    "parse_file_mode",
    "absolute_path",
    "clean_path",
    "resolve_exclude_list",
    "resolve_symlink",
    # Integrity metadata
    "ArchiveResult",
    "checksums",
    "compute_archive_result",
    "size",
    # Writers
    "ArchiveWriter",
    "EntryFailure",
    "TarGzArchiveWriter",
    "WriterState",
    "ZipArchiveWriter",
    "rewrite_destination",
    "ArchiveWriterFactory",
    # Reading back
    "ArchiveVerifier",
    "TarGzArchiveReader",
    "ZipArchiveReader",
    # Builds
    "ArchiveBuilder",
    "ArchiveBuildResult",
    "ArchiveBuildSpec",
    "ContentBlock",
]
