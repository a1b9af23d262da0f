import io
import logging
import os
import struct
import tempfile
import unittest
from contextlib import redirect_stdout
from pathlib import Path
from unittest import mock

from pymsh import cli
from pymsh.errors import ValidationError
from pymsh.log import LOG_FORMAT, setup_logging

MINIMAL = """MSHX1
GROUPS 1
GEOM 3 1
0 0 0 0 0 1 0 0
1 0 0 0 0 1 1 0
0 1 0 0 0 1 0 1
0 1 2
"""


class CliTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = self._tmp.name
        self.src = os.path.join(self.tmp, "tri.msh")
        with open(self.src, "w") as f:
            f.write(MINIMAL)
        patcher = mock.patch("pymsh.cli.setup_logging")
        patcher.start()
        self.addCleanup(patcher.stop)

    def tearDown(self):
        self._tmp.cleanup()

    def _bits(self, path):
        with open(path, "rb") as f:
            return struct.unpack_from("<I", f.read(), 20)[0]

    def test_no_input_prints_help(self):
        buf = io.StringIO()
        with redirect_stdout(buf):
            self.assertEqual(cli.main([]), 0)
        self.assertIn("usage", buf.getvalue())

    def test_default_output_path(self):
        self.assertEqual(cli.main([self.src]), 0)
        out = os.path.join(self.tmp, "tri.cmsh")
        self.assertTrue(os.path.exists(out))
        self.assertEqual(self._bits(out), 0x03)
        self.assertEqual(cli.default_output_path("a/b.msh"), Path("a/b.cmsh"))
        self.assertEqual(cli.default_output_path("noext"), Path("noext.cmsh"))

    def test_flags_and_explicit_output(self):
        out = os.path.join(self.tmp, "x.bin")
        self.assertEqual(cli.main(["-s", "-m", "-i", self.src, "-o", out]), 0)
        self.assertEqual(self._bits(out), 0x00)

    def test_positional_output_after_input_option(self):
        out = os.path.join(self.tmp, "y.cmsh")
        self.assertEqual(cli.main(["-i", self.src, out, "-s"]), 0)
        self.assertEqual(self._bits(out), 0x02)

    def test_positional_before_input_option_is_overridden(self):
        other = os.path.join(self.tmp, "other.msh")
        with open(other, "w") as f:
            f.write(MINIMAL)
        self.assertEqual(cli.main([self.src, "-i", other]), 0)
        with open(self.src, "rb") as f:
            self.assertEqual(f.read(), MINIMAL.encode())
        self.assertTrue(os.path.exists(os.path.join(self.tmp, "other.cmsh")))
        self.assertFalse(os.path.exists(os.path.join(self.tmp, "tri.cmsh")))

    def test_attached_input_option_value(self):
        out = os.path.join(self.tmp, "z.cmsh")
        self.assertEqual(cli.main(["-i" + self.src, out]), 0)
        self.assertTrue(os.path.exists(out))

    def test_output_equal_to_input_is_refused(self):
        self.assertEqual(cli.main([self.src, self.src]), 5)
        with open(self.src, "rb") as f:
            self.assertEqual(f.read(), MINIMAL.encode())

    def test_missing_input(self):
        self.assertEqual(cli.main([os.path.join(self.tmp, "missing.msh")]), 3)

    def test_unconvertible_input(self):
        bad = os.path.join(self.tmp, "bad.msh")
        with open(bad, "w") as f:
            f.write(MINIMAL.replace("MSHX1", "MESH"))
        self.assertEqual(cli.main([bad]), 4)
        self.assertFalse(os.path.exists(os.path.join(self.tmp, "bad.cmsh")))

    def test_no_groups_is_a_conversion_failure(self):
        empty = os.path.join(self.tmp, "empty.msh")
        with open(empty, "w") as f:
            f.write("MSHX1\nGROUPS 0\n")
        self.assertEqual(cli.main([empty]), 4)

    def test_unwritable_output(self):
        out = os.path.join(self.tmp, "no", "such", "dir", "out.cmsh")
        self.assertEqual(cli.main([self.src, out]), 5)

    def test_validation_failure(self):
        with mock.patch("pymsh.cli.validate", side_effect=ValidationError(0, "broken")):
            self.assertEqual(cli.main([self.src]), 10)
        self.assertFalse(os.path.exists(os.path.join(self.tmp, "tri.cmsh")))

    def test_verbose_sets_debug_level(self):
        self.assertEqual(cli.main(["-v", self.src]), 0)
        cli.setup_logging.assert_called_once_with(10)


class SetupLoggingTests(unittest.TestCase):
    def tearDown(self):
        logger = logging.getLogger("pymsh")
        logger.handlers.clear()
        logger.setLevel(logging.NOTSET)

    def test_repeated_setup_keeps_one_handler(self):
        setup_logging(logging.DEBUG)
        logger = setup_logging(logging.WARNING)
        self.assertEqual(logger.name, "pymsh")
        self.assertEqual(logger.level, logging.WARNING)
        self.assertEqual(len(logger.handlers), 1)
        self.assertEqual(logger.handlers[0].formatter._fmt, LOG_FORMAT)


if __name__ == "__main__":
    unittest.main()
