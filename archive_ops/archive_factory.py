"""Factory for selecting an archive writer by format name."""

from typing import Dict, List, Optional, Type

from .archive_writers import ArchiveWriter, TarGzArchiveWriter, ZipArchiveWriter
from .errors import UnsupportedFormatError


class ArchiveWriterFactory:
    """Creates fresh, unopened writers for the supported formats."""

    @staticmethod
    def _writer_classes() -> Dict[str, Type]:
        return {
            ZipArchiveWriter.format_name: ZipArchiveWriter,
            TarGzArchiveWriter.format_name: TarGzArchiveWriter,
        }

    @staticmethod
    def create(format_name: str) -> Optional[ArchiveWriter]:
        """
        Create a writer for ``format_name``.

        Args:
            format_name: "zip" or "tar.gz"

        Returns:
            A new writer, or None when the format is not supported
        """
        writer_class = ArchiveWriterFactory._writer_classes().get(format_name)
        if writer_class is None:
            return None
        return writer_class()

    @staticmethod
    def create_or_raise(format_name: str) -> ArchiveWriter:
        """Create a writer, raising UnsupportedFormatError for unknown names."""
        writer = ArchiveWriterFactory.create(format_name)
        if writer is None:
            raise UnsupportedFormatError(
                format_name, ArchiveWriterFactory.get_supported_formats()
            )
        return writer

    @staticmethod
    def get_supported_formats() -> List[str]:
        """Get list of supported archive formats."""
        return list(ArchiveWriterFactory._writer_classes())
