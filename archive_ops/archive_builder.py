"""
Archive build orchestration.

Drives one writer through a complete build (open, add the configured files,
directories and content blocks, close) and computes the integrity record of
the result. Also re-reads existing archives to detect drift.
"""

import base64
import binascii
import os
import time
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from colored_logger import get_colored_logger

from .archive_factory import ArchiveWriterFactory
from .archive_settings import ArchiveSettings
from .archive_writers import ArchiveWriter, EntryFailure
from .integrity import ArchiveResult, compute_archive_result
from .errors import ArchiveError, ChecksumError
from .path_resolver import absolute_path, clean_path

logger = get_colored_logger(__name__)


@dataclass(frozen=True)
class ContentBlock:
    """Base64 encoded bytes stored in the archive as ``file_path``."""

    src: str
    file_path: str


@dataclass(frozen=True)
class ArchiveBuildSpec:
    """
    Everything needed to produce one archive.

    Attributes:
        name: Output archive path (relative paths resolve against the cwd)
        type: Archive format, "zip" or "tar.gz"
        out_mode: Octal permission string for the output file
        resolve_symlink: Archive link targets instead of the links
        flatten: Store files found in directories under their base name
        exclude_list: Paths never written into the archive
        files: Files to add, each stored under its cleaned relative path
        dirs: Directories to add recursively
        contents: In-memory content blocks
    """

    name: str
    type: str = "zip"
    out_mode: Optional[str] = None
    resolve_symlink: bool = False
    flatten: bool = False
    exclude_list: Sequence[str] = field(default_factory=tuple)
    files: Sequence[str] = field(default_factory=tuple)
    dirs: Sequence[str] = field(default_factory=tuple)
    contents: Sequence[ContentBlock] = field(default_factory=tuple)


@dataclass
class ArchiveBuildResult:
    """Outcome of a build: where the archive is and what went wrong."""

    name: str
    abs_path: str
    archive_type: str
    result: Optional[ArchiveResult] = None
    failures: List[EntryFailure] = field(default_factory=list)
    elapsed_seconds: float = 0.0

    @property
    def has_failures(self) -> bool:
        return bool(self.failures)


class ArchiveBuilder:
    """
    Builds archives from ArchiveBuildSpec definitions.

    Configuration problems (unknown type, bad mode) and open/close failures
    raise. Problems with individual files, directories or content blocks are
    logged and reported in ``ArchiveBuildResult.failures``; the rest of the
    archive is still written.
    """

    def __init__(self, factory: Optional[ArchiveWriterFactory] = None):
        self.factory = factory or ArchiveWriterFactory()

    def build(self, spec: ArchiveBuildSpec) -> ArchiveBuildResult:
        """
        Build the archive described by ``spec``.

        Returns:
            Build result with checksums (None if they could not be computed)

        Raises:
            ConfigurationError: If the type or output mode is invalid
            PathResolutionError: If the output or an exclude path is invalid
            ArchiveOpenError: If the archive cannot be created
            ArchiveCloseError: If the archive cannot be finalized
        """
        writer = self.factory.create_or_raise(spec.type)
        settings = ArchiveSettings.from_options(
            exclude_list=spec.exclude_list,
            out_mode=spec.out_mode,
            resolve_symlink=spec.resolve_symlink,
            flatten=spec.flatten,
        )
        abs_path = absolute_path(spec.name)

        build_result = ArchiveBuildResult(
            name=spec.name, abs_path=abs_path, archive_type=spec.type
        )
        start_time = time.time()

        logger.progress("Creating %s archive: %s", spec.type, abs_path)
        writer.open(abs_path, settings)

        try:
            self._append_files(writer, spec.files, build_result.failures)
            self._append_dirs(writer, spec.dirs, build_result.failures)
            self._append_contents(writer, spec.contents, build_result.failures)
        finally:
            writer.close()

        try:
            build_result.result = compute_archive_result(abs_path)
        except ChecksumError as e:
            logger.warning("Could not compute md5 and sha256 of %s: %s", abs_path, e)

        build_result.elapsed_seconds = time.time() - start_time

        if build_result.has_failures:
            logger.warning(
                "Archive %s created with %d skipped inputs",
                abs_path,
                len(build_result.failures),
            )
        else:
            logger.success(
                "Archive created successfully: %s (%.2f seconds)",
                abs_path,
                build_result.elapsed_seconds,
            )

        return build_result

    def _append_files(
        self, writer: ArchiveWriter, files: Sequence[str], failures: List[EntryFailure]
    ) -> None:
        for org_path in files:
            try:
                abs_path, rel_path = clean_path(org_path)
                writer.add_file(abs_path, rel_path)
            except ArchiveError as e:
                logger.error("Cannot add file %s to archive: %s", org_path, e)
                failures.append(EntryFailure(str(org_path), e))

    def _append_dirs(
        self, writer: ArchiveWriter, dirs: Sequence[str], failures: List[EntryFailure]
    ) -> None:
        for org_path in dirs:
            try:
                abs_path, rel_path = clean_path(org_path)
                failures.extend(writer.add_dir(abs_path, rel_path))
            except ArchiveError as e:
                logger.error("Cannot add directory %s to archive: %s", org_path, e)
                failures.append(EntryFailure(str(org_path), e))

    def _append_contents(
        self,
        writer: ArchiveWriter,
        contents: Sequence[ContentBlock],
        failures: List[EntryFailure],
    ) -> None:
        for block in contents:
            # Line breaks are allowed; any other non-alphabet byte is an error.
            encoded = block.src.replace("\r", "").replace("\n", "")
            try:
                data = base64.b64decode(encoded, validate=True)
            except (binascii.Error, ValueError) as e:
                logger.error("Cannot decode content for %s: %s", block.file_path, e)
                failures.append(EntryFailure(block.file_path, e))
                continue

            try:
                _, rel_path = clean_path(block.file_path)
                writer.add_content(data, rel_path)
            except ArchiveError as e:
                logger.error("Cannot add content %s to archive: %s", block.file_path, e)
                failures.append(EntryFailure(block.file_path, e))

    def refresh(self, abs_path: str) -> Optional[ArchiveResult]:
        """
        Recompute the integrity record of an existing archive.

        Returns:
            Fresh ArchiveResult, or None when the archive no longer exists
        """
        if not os.path.exists(abs_path):
            logger.info("Archive %s no longer exists", abs_path)
            return None

        return compute_archive_result(abs_path)

    def detect_drift(self, abs_path: str, previous: ArchiveResult) -> bool:
        """True if the archive is missing or its size or digests changed."""
        current = self.refresh(abs_path)
        if current != previous:
            logger.notice("Archive %s drifted from its recorded state", abs_path)
            return True
        return False
