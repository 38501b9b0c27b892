"""Tests for writer selection and per-build settings."""

import dataclasses
import unittest

from archive_ops import (
    ArchiveSettings,
    ArchiveWriterFactory,
    ConfigurationError,
    InvalidFileModeError,
    TarGzArchiveWriter,
    UnsupportedFormatError,
    WriterState,
    ZipArchiveWriter,
    parse_file_mode,
)


class TestArchiveWriterFactory(unittest.TestCase):
    """Test the format name to writer mapping."""

    def test_create_known_formats(self):
        self.assertIsInstance(ArchiveWriterFactory.create("zip"), ZipArchiveWriter)
        self.assertIsInstance(ArchiveWriterFactory.create("tar.gz"), TarGzArchiveWriter)

    def test_unknown_format_returns_none(self):
        for name in ("rar", "", "ZIP", "tar"):
            with self.subTest(name=name):
                self.assertIsNone(ArchiveWriterFactory.create(name))

    def test_create_or_raise(self):
        with self.assertRaises(UnsupportedFormatError) as ctx:
            ArchiveWriterFactory.create_or_raise("7z")

        self.assertEqual(ctx.exception.format_name, "7z")
        self.assertEqual(ctx.exception.supported, ["zip", "tar.gz"])
        self.assertIsInstance(ctx.exception, ConfigurationError)
        self.assertIsInstance(ctx.exception, ValueError)

    def test_every_call_returns_fresh_unopened_writer(self):
        first = ArchiveWriterFactory.create("zip")
        second = ArchiveWriterFactory.create("zip")

        self.assertIsNot(first, second)
        self.assertEqual(first.state, WriterState.UNOPENED)

    def test_supported_formats(self):
        self.assertEqual(ArchiveWriterFactory.get_supported_formats(), ["zip", "tar.gz"])


class TestArchiveSettings(unittest.TestCase):
    """Test settings construction and output mode parsing."""

    def test_defaults(self):
        settings = ArchiveSettings()

        self.assertEqual(settings.file_mode, 0o666)
        self.assertEqual(settings.exclude_list, ())
        self.assertFalse(settings.resolve_symlink)
        self.assertFalse(settings.flatten)

    def test_settings_are_immutable(self):
        settings = ArchiveSettings(exclude_list=["a", "b"])

        self.assertEqual(settings.exclude_list, ("a", "b"))
        with self.assertRaises(dataclasses.FrozenInstanceError):
            settings.file_mode = 0o600

    def test_from_options(self):
        settings = ArchiveSettings.from_options(
            exclude_list=["x"], out_mode="640", resolve_symlink=True, flatten=True
        )

        self.assertEqual(settings, ArchiveSettings(("x",), 0o640, True, True))

    def test_parse_file_mode_accepts_octal_forms(self):
        cases = {"644": 0o644, "0644": 0o644, "0o755": 0o755, " 600 ": 0o600, "0": 0}
        for text, expected in cases.items():
            with self.subTest(text=text):
                self.assertEqual(parse_file_mode(text), expected)

    def test_parse_file_mode_defaults(self):
        self.assertEqual(parse_file_mode(None), 0o666)
        self.assertEqual(parse_file_mode(""), 0o666)
        self.assertEqual(parse_file_mode(0o600), 0o600)

    def test_parse_file_mode_rejects_invalid(self):
        for value in ("rw-r--r--", "989", "-644", "17777", True, 1.5):
            with self.subTest(value=value):
                with self.assertRaises(InvalidFileModeError):
                    parse_file_mode(value)


if __name__ == "__main__":
    unittest.main()
