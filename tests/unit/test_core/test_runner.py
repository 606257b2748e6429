# SPDX-License-Identifier: LGPL-3.0-or-later
import logging
import subprocess
import sys
import unittest
from pathlib import Path
from unittest.mock import patch

from netshift.core.exceptions import Fatal, PreconditionError
from netshift.core.logger import TRACE
from netshift.core.utils import U

logger = logging.getLogger(__name__)


class TestRunCmd(unittest.TestCase):
    def test_capture_output(self):
        cp = U.run_cmd(logger, [sys.executable, "-c", "print('hi')"], capture=True)
        self.assertEqual(cp.returncode, 0)
        self.assertEqual(cp.stdout.strip(), "hi")

    def test_captured_output_traced(self):
        with self.assertLogs(logger, level=TRACE) as logs:
            U.run_cmd(logger, [sys.executable, "-c", "print('hi')"], capture=True)
        self.assertTrue(any(r.levelno == TRACE and "hi" in r.getMessage() for r in logs.records))

    def test_check_false_returns_rc(self):
        cp = U.run_cmd(logger, [sys.executable, "-c", "raise SystemExit(3)"], check=False, capture=True)
        self.assertEqual(cp.returncode, 3)

    def test_check_true_raises(self):
        with self.assertRaises(subprocess.CalledProcessError):
            U.run_cmd(logger, [sys.executable, "-c", "raise SystemExit(3)"], capture=True)

    def test_fatal_wraps_failure(self):
        with self.assertRaises(Fatal) as ctx:
            U.run_cmd(logger, [sys.executable, "-c", "raise SystemExit(3)"], capture=True, fatal=True)
        self.assertEqual(ctx.exception.code, 3)

    def test_input_text(self):
        cp = U.run_cmd(
            logger,
            [sys.executable, "-c", "import sys; print(sys.stdin.read().upper())"],
            capture=True,
            input_text="abc",
        )
        self.assertEqual(cp.stdout.strip(), "ABC")


class TestPreconditions(unittest.TestCase):
    def test_require_root_raises_for_non_root(self):
        with patch("netshift.core.utils.os.geteuid", return_value=1000):
            with self.assertRaises(PreconditionError):
                U.require_root(logger)

    def test_require_root_skipped_for_read_only(self):
        with patch("netshift.core.utils.os.geteuid", return_value=1000):
            U.require_root(logger, write_actions=False)

    def test_require_writable(self):
        with patch("netshift.core.utils.os.access", return_value=False):
            with self.assertRaises(PreconditionError):
                U.require_writable(Path("/etc/network/interfaces"))

    def test_die_raises_fatal(self):
        with self.assertRaises(Fatal) as ctx:
            U.die(logger, "bad config", 2)
        self.assertEqual(ctx.exception.code, 2)
