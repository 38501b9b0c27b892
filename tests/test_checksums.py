"""Tests for archive integrity metadata."""

import hashlib
import os
import shutil
import tempfile
import unittest
from unittest.mock import patch

from archive_ops import ArchiveResult, ChecksumError, checksums, compute_archive_result, size
from archive_ops import integrity


class TestChecksums(unittest.TestCase):
    """Test digest and size computation."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.path = os.path.join(self.temp_dir, "archive.bin")
        self.data = os.urandom(3 * 1024) + b"tail"
        with open(self.path, "wb") as f:
            f.write(self.data)

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_file_digests_match_hashlib(self):
        md5_hex, sha256_hex = checksums(self.path)

        self.assertEqual(md5_hex, hashlib.md5(self.data).hexdigest())
        self.assertEqual(sha256_hex, hashlib.sha256(self.data).hexdigest())

    def test_bytes_digests_match_hashlib(self):
        self.assertEqual(
            checksums(b"content"),
            (hashlib.md5(b"content").hexdigest(), hashlib.sha256(b"content").hexdigest()),
        )

    def test_chunked_read_matches_single_read(self):
        """Files larger than one chunk hash the same as a single update."""
        with patch.object(integrity, "CHUNK_SIZE", 1000):
            md5_hex, sha256_hex = checksums(self.path)

        self.assertEqual(md5_hex, hashlib.md5(self.data).hexdigest())
        self.assertEqual(sha256_hex, hashlib.sha256(self.data).hexdigest())

    def test_empty_file(self):
        empty = os.path.join(self.temp_dir, "empty")
        open(empty, "wb").close()

        self.assertEqual(checksums(empty)[0], "d41d8cd98f00b204e9800998ecf8427e")
        self.assertEqual(size(empty), 0)

    def test_size(self):
        self.assertEqual(size(self.path), len(self.data))

    def test_missing_file_raises(self):
        missing = os.path.join(self.temp_dir, "missing")

        with self.assertRaises(ChecksumError):
            checksums(missing)
        with self.assertRaises(ChecksumError):
            size(missing)

    def test_compute_archive_result(self):
        result = compute_archive_result(self.path)

        self.assertEqual(
            result,
            ArchiveResult(
                sha256=hashlib.sha256(self.data).hexdigest(),
                md5=hashlib.md5(self.data).hexdigest(),
                size=len(self.data),
            ),
        )


if __name__ == "__main__":
    unittest.main()
