#!/usr/bin/env python3
"""
File Archiver CLI Tool

Builds zip and tar.gz archives from files, directories and inline content,
and inspects the archives afterwards.

Usage:
    python3 cli_archive.py build archives.yml
    python3 cli_archive.py create out.tar.gz --type tar.gz --dir ./site
    python3 cli_archive.py checksum out.tar.gz
    python3 cli_archive.py info out.zip --detailed
    python3 cli_archive.py verify out.zip
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from archive_ops import (
    ArchiveBuilder,
    ArchiveBuildResult,
    ArchiveBuildSpec,
    ArchiveError,
    ArchiveVerifier,
    ArchiveWriterFactory,
    ContentBlock,
    compute_archive_result,
)
from build_settings import load_build_config
from colored_logger import get_colored_logger, level_for_verbosity, setup_colored_logging

logger = get_colored_logger(__name__)


class ArchiveCLI:
    """Command-line interface for building and inspecting archives."""

    def __init__(self, builder: Optional[ArchiveBuilder] = None):
        self.builder = builder or ArchiveBuilder()
        self.verifier = ArchiveVerifier()
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        """Create the argument parser with all commands and options."""
        parser = argparse.ArgumentParser(
            prog="file-archiver",
            description="Build zip and tar.gz archives from files, directories and inline content",
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog="""
Examples:
  # Build every archive described in a YAML file
  file-archiver build archives.yml

  # Ad-hoc tar.gz of a directory, skipping one file
  file-archiver create site.tar.gz --type tar.gz --dir public --exclude public/.env

  # Inline content (base64) stored as hello.txt, archive readable by owner only
  file-archiver create hello.zip --content hello.txt=aGVsbG8K --mode 600

  # Integrity metadata of a finished archive
  file-archiver checksum site.tar.gz --json
            """,
        )
        parser.add_argument(
            "--verbose",
            "-v",
            action="count",
            default=0,
            help="Increase log detail (-v debug, -vv trace)",
        )

        subparsers = parser.add_subparsers(dest="command", help="Available commands")

        # Build command
        build_parser = subparsers.add_parser(
            "build", help="Build the archives defined in a YAML config file"
        )
        build_parser.add_argument("config", help="Path to the YAML build config")

        # Create command
        create_parser = subparsers.add_parser(
            "create", help="Build a single archive from command-line options"
        )
        create_parser.add_argument("output", help="Path of the archive to create")
        create_parser.add_argument(
            "--type",
            "-t",
            default="zip",
            help="Archive format (%s)" % ", ".join(ArchiveWriterFactory.get_supported_formats()),
        )
        create_parser.add_argument(
            "--file", "-f", action="append", default=[], dest="files",
            help="File to add (repeatable)",
        )
        create_parser.add_argument(
            "--dir", "-d", action="append", default=[], dest="dirs",
            help="Directory to add recursively (repeatable)",
        )
        create_parser.add_argument(
            "--content", "-c", action="append", default=[], dest="contents",
            metavar="DEST=BASE64",
            help="Inline base64 content stored as DEST (repeatable)",
        )
        create_parser.add_argument(
            "--exclude", "-x", action="append", default=[], dest="exclude_list",
            help="Path to leave out of the archive (repeatable)",
        )
        create_parser.add_argument(
            "--mode", "-m", help="Octal permissions of the archive file (default: 666)"
        )
        create_parser.add_argument(
            "--resolve-symlink", action="store_true",
            help="Archive symlink targets instead of the links",
        )
        create_parser.add_argument(
            "--flatten", action="store_true",
            help="Store files found in directories under their base name only",
        )

        # Checksum command
        checksum_parser = subparsers.add_parser(
            "checksum", help="Print size, md5 and sha256 of an archive"
        )
        checksum_parser.add_argument("archive_path", help="Path to the archive file")
        checksum_parser.add_argument(
            "--json", action="store_true", help="Print the result as JSON on stdout"
        )

        # Info command
        info_parser = subparsers.add_parser(
            "info", help="Display information about an existing archive"
        )
        info_parser.add_argument("archive_path", help="Path to the archive file")
        info_parser.add_argument(
            "--detailed", action="store_true", help="Show detailed file listing"
        )

        # Verify command
        verify_parser = subparsers.add_parser("verify", help="Verify archive integrity")
        verify_parser.add_argument(
            "archive_path", help="Path to the archive file to verify"
        )

        # Formats command
        subparsers.add_parser("formats", help="List supported archive formats")

        return parser

    def run(self, args: Optional[List[str]] = None) -> int:
        """Run the CLI with the given arguments."""
        parsed_args = self.parser.parse_args(args)

        if parsed_args.verbose:
            logging.getLogger().setLevel(level_for_verbosity(parsed_args.verbose))

        if not parsed_args.command:
            self.parser.print_help()
            return 1

        handlers = {
            "build": self._handle_build,
            "create": self._handle_create,
            "checksum": self._handle_checksum,
            "info": self._handle_info,
            "verify": self._handle_verify,
            "formats": self._handle_formats,
        }

        try:
            return handlers[parsed_args.command](parsed_args)
        except KeyboardInterrupt:
            logger.info("Operation cancelled by user")
            return 130
        except (ArchiveError, OSError, ValueError) as e:
            logger.failure("Error: %s", e)
            logger.debug("Full error details:", exc_info=True)
            return 1

    def _handle_build(self, args) -> int:
        """Handle the 'build' command."""
        specs = load_build_config(args.config)
        logger.info("Building %d archive(s) from %s", len(specs), args.config)

        failed = 0
        for spec in specs:
            try:
                self._report_build(self.builder.build(spec))
            except ArchiveError as e:
                logger.error("Failed to build %s: %s", spec.name, e)
                failed += 1

        if failed:
            logger.error("%d of %d archives failed", failed, len(specs))
            return 1
        return 0

    def _handle_create(self, args) -> int:
        """Handle the 'create' command."""
        if not (args.files or args.dirs or args.contents):
            logger.error("Nothing to archive: give at least one --file, --dir or --content")
            return 1

        contents = []
        for item in args.contents:
            dest, sep, src = item.partition("=")
            if not sep or not dest:
                logger.error("Invalid --content %r: expected DEST=BASE64", item)
                return 1
            contents.append(ContentBlock(src=src, file_path=dest))

        spec = ArchiveBuildSpec(
            name=args.output,
            type=args.type,
            out_mode=args.mode,
            resolve_symlink=args.resolve_symlink,
            flatten=args.flatten,
            exclude_list=tuple(args.exclude_list),
            files=tuple(args.files),
            dirs=tuple(args.dirs),
            contents=tuple(contents),
        )

        self._report_build(self.builder.build(spec))
        return 0

    def _report_build(self, build_result: ArchiveBuildResult) -> None:
        for failure in build_result.failures:
            logger.warning("  not archived: %s (%s)", failure.path, failure.error)

        if build_result.result is not None:
            logger.info("  size: %d bytes", build_result.result.size)
            logger.info("  md5: %s", build_result.result.md5)
            logger.info("  sha256: %s", build_result.result.sha256)

    def _handle_checksum(self, args) -> int:
        """Handle the 'checksum' command."""
        archive_path = Path(args.archive_path)

        if not archive_path.is_file():
            logger.error("Archive file does not exist: %s", archive_path)
            return 1

        result = compute_archive_result(archive_path)

        if args.json:
            print(
                json.dumps(
                    {
                        "path": str(archive_path),
                        "size": result.size,
                        "md5": result.md5,
                        "sha256": result.sha256,
                    },
                    indent=2,
                )
            )
        else:
            logger.info("Archive: %s", archive_path)
            logger.info("Size: %d bytes", result.size)
            logger.info("MD5: %s", result.md5)
            logger.info("SHA256: %s", result.sha256)
        return 0

    def _handle_info(self, args) -> int:
        """Handle the 'info' command."""
        archive_path = Path(args.archive_path)

        if not archive_path.exists():
            logger.error("Archive file does not exist: %s", archive_path)
            return 1

        info = self.verifier.get_archive_info(str(archive_path))

        logger.info("Archive: %s", info["path"])
        logger.info("Format: %s", info["format"].upper())
        logger.info(
            "Size: %.2f MB (%d bytes)",
            info["size_bytes"] / (1024 * 1024),
            info["size_bytes"],
        )
        logger.info("Modified: %s", info["modified_time"])
        logger.info("MD5: %s", info["md5"])
        logger.info("SHA256: %s", info["sha256"])

        if info["format"] == "unknown":
            logger.warning("Unknown archive format")
            return 0

        logger.info("Files: %d", info["file_count"])
        uncompressed = info.get("uncompressed_size", 0)
        if uncompressed:
            compression_ratio = (1 - info["compressed_size"] / uncompressed) * 100
            logger.info("Uncompressed size: %.2f MB", uncompressed / (1024 * 1024))
            logger.info("Compression ratio: %.1f%%", compression_ratio)
        logger.info("Integrity: %s", "OK" if info["valid"] else "FAILED")

        if args.detailed:
            logger.info("")
            logger.info("File listing:")
            for entry in info.get("entries", []):
                logger.info("  %s (%.1f KB)", entry["name"], entry["size"] / 1024)

        return 0

    def _handle_verify(self, args) -> int:
        """Handle the 'verify' command."""
        archive_path = Path(args.archive_path)

        if not archive_path.exists():
            logger.error("Archive file does not exist: %s", archive_path)
            return 1

        logger.info("Verifying archive integrity: %s", archive_path)

        if self.verifier.verify_archive_integrity(str(archive_path)):
            logger.success("Archive integrity check passed")
            return 0

        logger.error("Archive integrity check failed")
        return 1

    def _handle_formats(self, args) -> int:
        """Handle the 'formats' command."""
        descriptions = {
            "zip": "Deflate per entry, random access, universal support",
            "tar.gz": "PAX tar stream compressed with gzip, keeps owner and mode",
        }

        logger.info("Supported archive formats:")
        for format_name in ArchiveWriterFactory.get_supported_formats():
            logger.info("  %s: %s", format_name, descriptions.get(format_name, ""))
        return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    setup_colored_logging(level=logging.INFO)

    cli = ArchiveCLI()
    return cli.run(argv)


if __name__ == "__main__":
    sys.exit(main())
