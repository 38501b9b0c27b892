"""Tests for console logging helpers."""

import io
import logging
import unittest

from colored_logger import (
    PROGRESS_LEVEL,
    SUCCESS_LEVEL,
    TRACE_LEVEL,
    ColoredFormatter,
    get_colored_logger,
    level_for_verbosity,
    setup_colored_logging,
)


class TestColoredLogger(unittest.TestCase):
    def setUp(self):
        self.root_logger = logging.getLogger()
        self.saved_handlers = self.root_logger.handlers[:]
        self.saved_level = self.root_logger.level

    def tearDown(self):
        self.root_logger.handlers = self.saved_handlers
        self.root_logger.setLevel(self.saved_level)

    def _record(self, level: int) -> logging.LogRecord:
        return logging.LogRecord("test", level, __file__, 1, "message", None, None)

    def test_custom_level_names(self):
        self.assertEqual(logging.getLevelName(TRACE_LEVEL), "TRACE")
        self.assertEqual(logging.getLevelName(PROGRESS_LEVEL), "PROGRESS")
        self.assertEqual(logging.getLevelName(SUCCESS_LEVEL), "SUCCESS")

    def test_formatter_colors_when_enabled(self):
        formatter = ColoredFormatter("%(levelname)s %(message)s", use_color=True)
        output = formatter.format(self._record(SUCCESS_LEVEL))

        self.assertTrue(output.startswith(ColoredFormatter.COLORS["SUCCESS"]))
        self.assertTrue(output.endswith(ColoredFormatter.RESET))

    def test_formatter_plain_when_disabled(self):
        formatter = ColoredFormatter("%(levelname)s %(message)s", use_color=False)
        self.assertEqual(formatter.format(self._record(logging.ERROR)), "ERROR message")

    def test_level_for_verbosity(self):
        self.assertEqual(level_for_verbosity(0), logging.INFO)
        self.assertEqual(level_for_verbosity(1), logging.DEBUG)
        self.assertEqual(level_for_verbosity(3), TRACE_LEVEL)

    def test_setup_replaces_handlers(self):
        stream = io.StringIO()
        setup_colored_logging(logging.DEBUG, stream=stream)
        setup_colored_logging(logging.DEBUG, stream=stream)

        self.assertEqual(len(self.root_logger.handlers), 1)

        get_colored_logger("archiver.test").success("archive done")
        self.assertIn("SUCCESS", stream.getvalue())
        self.assertIn("archive done", stream.getvalue())

    def test_custom_methods_log_at_their_level(self):
        logger = get_colored_logger("archiver.levels")

        with self.assertLogs("archiver.levels", level=TRACE_LEVEL) as captured:
            logger.trace("walking %s", "dir")
            logger.progress("step")
            logger.info("plain")

        self.assertEqual(
            [record.levelno for record in captured.records],
            [TRACE_LEVEL, PROGRESS_LEVEL, logging.INFO],
        )


if __name__ == "__main__":
    unittest.main()
