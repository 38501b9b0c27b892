"""
Per-build archive settings.

Settings are created once per build from caller options and copied by the
writer that consumes them.
"""

from dataclasses import dataclass, field
from typing import Iterable, Optional, Tuple, Union

from .errors import InvalidFileModeError

DEFAULT_ARCHIVE_MODE = 0o666
MAX_FILE_MODE = 0o7777


@dataclass(frozen=True)
class ArchiveSettings:
    """
    Immutable options for one archive build.

    Attributes:
        exclude_list: Paths that must never be written into the archive.
            Relative entries are absolutized when the writer is opened.
        file_mode: Permission bits of the created archive file.
        resolve_symlink: Replace symbolic links by their targets before
            reading or matching against the exclude list.
        flatten: Keep only the base name of files found by a directory walk.
    """

    exclude_list: Tuple[str, ...] = field(default_factory=tuple)
    file_mode: int = DEFAULT_ARCHIVE_MODE
    resolve_symlink: bool = False
    flatten: bool = False

    def __post_init__(self):
        # Accept any iterable but store a tuple so the instance stays hashable.
        if not isinstance(self.exclude_list, tuple):
            object.__setattr__(self, "exclude_list", tuple(self.exclude_list))

    @classmethod
    def from_options(
        cls,
        exclude_list: Optional[Iterable[str]] = None,
        out_mode: Union[str, int, None] = None,
        resolve_symlink: bool = False,
        flatten: bool = False,
    ) -> "ArchiveSettings":
        """Build settings from raw user options, parsing the mode string."""
        return cls(
            exclude_list=tuple(exclude_list or ()),
            file_mode=parse_file_mode(out_mode),
            resolve_symlink=bool(resolve_symlink),
            flatten=bool(flatten),
        )


def parse_file_mode(value: Union[str, int, None]) -> int:
    """
    Parse an output permission value.

    Strings are read as octal ("644", "0644" and "0o644" are equivalent);
    integers are taken as already-decoded permission bits. ``None`` or an
    empty string gives the default mode 0o666.

    Raises:
        InvalidFileModeError: If the value is not a valid permission mode.
    """
    if value is None:
        return DEFAULT_ARCHIVE_MODE

    if isinstance(value, bool):
        raise InvalidFileModeError(f"Invalid file mode: {value!r}")

    if isinstance(value, int):
        mode = value
    elif isinstance(value, str):
        text = value.strip().lower()
        if not text:
            return DEFAULT_ARCHIVE_MODE
        if text.startswith("0o"):
            text = text[2:]
        try:
            mode = int(text, 8)
        except ValueError:
            raise InvalidFileModeError(
                f"Invalid file mode {value!r}: expected an octal string like '644'"
            ) from None
    else:
        raise InvalidFileModeError(f"Invalid file mode: {value!r}")

    if not 0 <= mode <= MAX_FILE_MODE:
        raise InvalidFileModeError(f"File mode out of range: {value!r}")

    return mode
