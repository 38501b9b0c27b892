"""Tests for the command-line interface."""

import hashlib
import io
import json
import logging
import os
import shutil
import tarfile
import tempfile
import unittest
import zipfile
from pathlib import Path
from unittest.mock import patch

from cli_archive import ArchiveCLI
from colored_logger import TRACE_LEVEL


class TestArchiveCLI(unittest.TestCase):
    """Test each subcommand end to end against temporary files."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.cli = ArchiveCLI()

        self.source_dir = Path(self.temp_dir) / "public"
        (self.source_dir / "img").mkdir(parents=True)
        (self.source_dir / "index.html").write_text("<html></html>")
        (self.source_dir / "img" / "logo.svg").write_text("<svg/>")

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _path(self, name: str) -> str:
        return os.path.join(self.temp_dir, name)

    def test_no_command_prints_help(self):
        with patch("sys.stdout", new_callable=io.StringIO):
            self.assertEqual(self.cli.run([]), 1)

    def test_create_with_content(self):
        output = self._path("hello.zip")

        exit_code = self.cli.run(["create", output, "--content", "hello.txt=aGVsbG8K"])

        self.assertEqual(exit_code, 0)
        with zipfile.ZipFile(output) as zipf:
            self.assertEqual(zipf.read("hello.txt"), b"hello\n")

    def test_create_tar_with_dir_and_exclude(self):
        output = self._path("site.tar.gz")

        exit_code = self.cli.run(
            [
                "create", output,
                "--type", "tar.gz",
                "--dir", str(self.source_dir),
                "--exclude", str(self.source_dir / "img" / "logo.svg"),
                "--mode", "600",
            ]
        )

        self.assertEqual(exit_code, 0)
        with tarfile.open(output, "r:gz") as tar:
            names = tar.getnames()
        self.assertEqual(len(names), 1)
        self.assertTrue(names[0].endswith("public/index.html"))
        self.assertEqual(os.stat(output).st_mode & 0o777, 0o600)

    def test_create_requires_inputs(self):
        self.assertEqual(self.cli.run(["create", self._path("empty.zip")]), 1)
        self.assertFalse(os.path.exists(self._path("empty.zip")))

    def test_create_rejects_malformed_content(self):
        exit_code = self.cli.run(["create", self._path("x.zip"), "--content", "aGVsbG8K"])
        self.assertEqual(exit_code, 1)

    def test_create_unknown_type_fails(self):
        exit_code = self.cli.run(
            ["create", self._path("x.rar"), "--type", "rar", "--dir", str(self.source_dir)]
        )
        self.assertEqual(exit_code, 1)

    def test_build_from_config(self):
        config = Path(self.temp_dir) / "archives.yml"
        config.write_text(
            "archives:\n"
            f"  - name: {self._path('a.zip')}\n"
            f"    dir: [{self.source_dir}]\n"
            "    flatten: true\n"
            f"  - name: {self._path('b.tar.gz')}\n"
            "    type: tar.gz\n"
            "    content:\n"
            "      - src: aGVsbG8K\n"
            "        file_path: hello.txt\n"
        )

        with patch.dict(os.environ, {}, clear=True):
            self.assertEqual(self.cli.run(["build", str(config)]), 0)

        with zipfile.ZipFile(self._path("a.zip")) as zipf:
            self.assertEqual(sorted(zipf.namelist()), ["index.html", "logo.svg"])
        with tarfile.open(self._path("b.tar.gz"), "r:gz") as tar:
            self.assertEqual(tar.getnames(), ["hello.txt"])

    def test_build_reports_failed_archive(self):
        config = Path(self.temp_dir) / "archives.yml"
        config.write_text(
            "archives:\n"
            f"  - name: {self._path('ok.zip')}\n"
            f"    dir: [{self.source_dir}]\n"
            f"  - name: {self._path('bad.rar')}\n"
            "    type: rar\n"
        )

        with patch.dict(os.environ, {}, clear=True):
            self.assertEqual(self.cli.run(["build", str(config)]), 1)
        self.assertTrue(os.path.exists(self._path("ok.zip")))

    def test_build_invalid_config_fails(self):
        self.assertEqual(self.cli.run(["build", self._path("absent.yml")]), 1)

    def test_checksum_json(self):
        output = self._path("sum.zip")
        self.cli.run(["create", output, "--content", "a.txt=YQ=="])
        data = Path(output).read_bytes()

        with patch("sys.stdout", new_callable=io.StringIO) as stdout:
            exit_code = self.cli.run(["checksum", output, "--json"])

        self.assertEqual(exit_code, 0)
        payload = json.loads(stdout.getvalue())
        self.assertEqual(payload["size"], len(data))
        self.assertEqual(payload["md5"], hashlib.md5(data).hexdigest())
        self.assertEqual(payload["sha256"], hashlib.sha256(data).hexdigest())

    def test_checksum_missing_archive(self):
        self.assertEqual(self.cli.run(["checksum", self._path("absent.zip")]), 1)

    def test_info_and_verify(self):
        output = self._path("inspect.tar.gz")
        self.cli.run(["create", output, "--type", "tar.gz", "--dir", str(self.source_dir)])

        self.assertEqual(self.cli.run(["info", output, "--detailed"]), 0)
        self.assertEqual(self.cli.run(["verify", output]), 0)

    def test_verify_corrupt_archive(self):
        corrupt = Path(self._path("corrupt.zip"))
        corrupt.write_bytes(b"PK\x03\x04 definitely not a zip")

        self.assertEqual(self.cli.run(["verify", str(corrupt)]), 1)
        self.assertEqual(self.cli.run(["verify", self._path("absent.zip")]), 1)

    def test_formats(self):
        self.assertEqual(self.cli.run(["formats"]), 0)

    def test_keyboard_interrupt_returns_130(self):
        with patch.object(self.cli, "_handle_formats", side_effect=KeyboardInterrupt):
            self.assertEqual(self.cli.run(["formats"]), 130)

    def test_verbose_flag_sets_trace_level(self):
        root_logger = logging.getLogger()
        previous_level = root_logger.level
        try:
            self.assertEqual(self.cli.run(["-vv", "formats"]), 0)
            self.assertEqual(root_logger.level, TRACE_LEVEL)
        finally:
            root_logger.setLevel(previous_level)


if __name__ == "__main__":
    unittest.main()
