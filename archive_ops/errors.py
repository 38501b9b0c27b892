"""
Exception hierarchy for archive operations.

Configuration errors are raised before any file is touched, open errors abort
a build before the first entry, entry errors belong to a single add call and
close errors aggregate every layer that failed to flush.
"""

from typing import List, Optional


class ArchiveError(Exception):
    """Base class for all archive errors."""

    pass


class ConfigurationError(ArchiveError, ValueError):
    """Raised when user supplied build options are invalid."""

    pass


class UnsupportedFormatError(ConfigurationError):
    """Raised when an archive format name has no writer."""

    def __init__(self, format_name: str, supported: Optional[List[str]] = None):
        self.format_name = format_name
        self.supported = supported or []
        message = f"Unsupported archive type: {format_name!r}"
        if self.supported:
            message += f" (supported: {', '.join(self.supported)})"
        super().__init__(message)


class InvalidFileModeError(ConfigurationError):
    """Raised when an output permission string cannot be parsed."""

    pass


class PathResolutionError(ArchiveError):
    """Raised when a path cannot be absolutized or a link cannot be read."""

    pass


class ArchiveOpenError(ArchiveError):
    """Raised when the output archive cannot be created."""

    pass


class ArchiveEntryError(ArchiveError):
    """Raised when a single entry cannot be read or written."""

    pass


class ArchiveCloseError(ArchiveError):
    """Raised when one or more writer layers fail to close.

    Every failure is kept in ``errors`` in the order the layers were closed.
    """

    def __init__(self, errors: List[BaseException]):
        self.errors = list(errors)
        details = "; ".join(f"{type(e).__name__}: {e}" for e in self.errors)
        super().__init__(f"Failed to close archive: {details}")


class WriterStateError(ArchiveError, RuntimeError):
    """Raised when a writer is used outside its open/close lifecycle."""

    pass


class ChecksumError(ArchiveError):
    """Raised when archive integrity metadata cannot be computed."""

    pass
