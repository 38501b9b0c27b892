"""
Archive reading and integrity verification.

Reads back the archives produced by the writers: lists entries, extracts
single entries and checks that every entry decompresses cleanly.
"""

import tarfile
import zipfile
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from colored_logger import get_colored_logger

from .integrity import compute_archive_result

logger = get_colored_logger(__name__)

ZIP_MAGIC = b"PK"
GZIP_MAGIC = b"\x1f\x8b"


class ZipArchiveReader:
    """Reads and verifies ZIP archives."""

    format_name = "zip"

    def list_entries(self, archive_path: str) -> List[str]:
        """Entry names in archive order."""
        with zipfile.ZipFile(archive_path, "r") as zipf:
            return zipf.namelist()

    def read_entry(self, archive_path: str, name: str) -> bytes:
        """Return the content of entry ``name``."""
        with zipfile.ZipFile(archive_path, "r") as zipf:
            return zipf.read(name)

    def verify_integrity(self, archive_path: str) -> bool:
        """Check the CRC of every entry."""
        try:
            with zipfile.ZipFile(archive_path, "r") as zipf:
                bad_file = zipf.testzip()
                if bad_file is not None:
                    logger.debug("ZIP integrity check failed on entry: %s", bad_file)
                    return False
                return True
        except (OSError, zipfile.BadZipFile, zipfile.LargeZipFile) as e:
            logger.debug("ZIP integrity verification failed: %s", e)
            return False

    def get_archive_info(self, archive_path: str) -> Dict[str, Any]:
        """Entry count and sizes of a ZIP archive."""
        with zipfile.ZipFile(archive_path, "r") as zipf:
            file_list = zipf.infolist()
            return {
                "file_count": len(file_list),
                "compressed_size": sum(f.compress_size for f in file_list),
                "uncompressed_size": sum(f.file_size for f in file_list),
                "entries": [
                    {"name": f.filename, "size": f.file_size} for f in file_list
                ],
            }


class TarGzArchiveReader:
    """Reads and verifies gzip-compressed TAR archives."""

    format_name = "tar.gz"

    def list_entries(self, archive_path: str) -> List[str]:
        """Entry names in archive order."""
        with tarfile.open(archive_path, "r:gz") as tar:
            return [member.name for member in tar]

    def read_entry(self, archive_path: str, name: str) -> bytes:
        """Return the content of entry ``name``."""
        with tarfile.open(archive_path, "r:gz") as tar:
            member = tar.getmember(name)
            extracted = tar.extractfile(member)
            if extracted is None:
                raise KeyError(f"Entry {name!r} is not a regular file")
            with extracted:
                return extracted.read()

    def verify_integrity(self, archive_path: str) -> bool:
        """Decompress the whole stream and read every regular entry."""
        try:
            with tarfile.open(archive_path, "r|gz") as tar:
                for member in tar:
                    if not member.isfile():
                        continue
                    extracted = tar.extractfile(member)
                    if extracted is None:
                        continue
                    with extracted:
                        while extracted.read(1024 * 1024):
                            pass
            return True
        except (OSError, EOFError, tarfile.TarError) as e:
            logger.debug("TAR.GZ integrity verification failed: %s", e)
            return False

    def get_archive_info(self, archive_path: str) -> Dict[str, Any]:
        """Entry count and sizes of a TAR.GZ archive."""
        with tarfile.open(archive_path, "r:gz") as tar:
            members = tar.getmembers()

        return {
            "file_count": len(members),
            "compressed_size": Path(archive_path).stat().st_size,
            "uncompressed_size": sum(m.size for m in members if m.isfile()),
            "entries": [{"name": m.name, "size": m.size} for m in members],
        }


class ArchiveVerifier:
    """High-level archive reading interface with format detection."""

    def __init__(self):
        self.readers = {
            ZipArchiveReader.format_name: ZipArchiveReader(),
            TarGzArchiveReader.format_name: TarGzArchiveReader(),
        }

    def detect_format(self, archive_path: str) -> Optional[str]:
        """Detect the archive format from magic bytes, then the file name."""
        try:
            with open(archive_path, "rb") as f:
                header = f.read(4)
        except OSError as e:
            logger.debug("Cannot read archive header %s: %s", archive_path, e)
            header = b""

        if header.startswith(ZIP_MAGIC):
            return "zip"
        if header.startswith(GZIP_MAGIC):
            return "tar.gz"

        name = str(archive_path).lower()
        if name.endswith(".zip"):
            return "zip"
        if name.endswith((".tar.gz", ".tgz")):
            return "tar.gz"

        return None

    def _reader_for(self, archive_path: str):
        archive_format = self.detect_format(archive_path)
        if archive_format is None:
            raise ValueError(f"Unknown archive format: {archive_path}")
        return self.readers[archive_format]

    def list_entries(self, archive_path: str) -> List[str]:
        return self._reader_for(archive_path).list_entries(archive_path)

    def read_entry(self, archive_path: str, name: str) -> bytes:
        return self._reader_for(archive_path).read_entry(archive_path, name)

    def verify_archive_integrity(self, archive_path: str) -> bool:
        """Verify archive integrity based on its detected format."""
        archive_format = self.detect_format(archive_path)
        if archive_format is None:
            logger.debug("Unknown archive format for integrity check: %s", archive_path)
            return False
        return self.readers[archive_format].verify_integrity(archive_path)

    def get_archive_info(self, archive_path: str) -> Dict[str, Any]:
        """Get comprehensive information about an archive."""
        path = Path(archive_path)

        if not path.exists():
            raise FileNotFoundError(f"Archive not found: {archive_path}")

        result = compute_archive_result(path)
        info: Dict[str, Any] = {
            "path": str(path),
            "size_bytes": result.size,
            "md5": result.md5,
            "sha256": result.sha256,
            "modified_time": datetime.fromtimestamp(path.stat().st_mtime).isoformat(),
            "format": self.detect_format(archive_path) or "unknown",
            "valid": False,
            "file_count": 0,
        }

        if info["format"] in self.readers:
            try:
                info.update(self.readers[info["format"]].get_archive_info(archive_path))
            except (OSError, EOFError, zipfile.BadZipFile, tarfile.TarError) as e:
                logger.warning("Could not read archive entries of %s: %s", archive_path, e)
                return info
            info["valid"] = self.verify_archive_integrity(archive_path)

        return info
