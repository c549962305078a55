"""Tests for CLI parameter parsing, validation and session output."""

import contextlib
import io
import json
import os
import tempfile
import unittest
from unittest import mock

from aiohttp.test_utils import AioHTTPTestCase

from client.constants import (
    FILE_SIZES_MB,
    MAX_CYCLES,
    MAX_PING_ATTEMPTS,
    MAX_SIZE_MB,
    MAX_TRIALS,
    MEASUREMENTS_PER_SIZE,
    MIN_CYCLES,
    MIN_SIZE_MB,
    MIN_TIMEOUT,
    PING_ATTEMPTS,
    SAMPLE_COUNT,
    TRIAL_TIMEOUT,
)
from server.app import create_app


class TestValidation(unittest.TestCase):
    """Test the _validate function from speedtest.py."""

    def _validate(self, **kwargs):
        # Import here to avoid triggering side effects at module level
        from speedtest import _validate
        defaults = {
            "cycles": SAMPLE_COUNT,
            "sizes_mb": list(FILE_SIZES_MB),
            "trials": MEASUREMENTS_PER_SIZE,
            "ping_attempts": PING_ATTEMPTS,
            "timeout": TRIAL_TIMEOUT,
        }
        defaults.update(kwargs)
        return _validate(**defaults)

    def test_defaults_valid(self):
        self._validate()

    def test_cycles_bounds(self):
        self._validate(cycles=MIN_CYCLES)
        self._validate(cycles=MAX_CYCLES)
        with self.assertRaises(ValueError):
            self._validate(cycles=MIN_CYCLES - 1)
        with self.assertRaises(ValueError):
            self._validate(cycles=MAX_CYCLES + 1)

    def test_size_bounds(self):
        self._validate(sizes_mb=[MIN_SIZE_MB, MAX_SIZE_MB])
        with self.assertRaises(ValueError):
            self._validate(sizes_mb=[2, MAX_SIZE_MB + 1])
        with self.assertRaises(ValueError):
            self._validate(sizes_mb=[0.1])

    def test_trials_too_high(self):
        with self.assertRaises(ValueError):
            self._validate(trials=MAX_TRIALS + 1)

    def test_trials_zero(self):
        with self.assertRaises(ValueError):
            self._validate(trials=0)

    def test_ping_attempts_too_high(self):
        with self.assertRaises(ValueError):
            self._validate(ping_attempts=MAX_PING_ATTEMPTS + 1)

    def test_timeout_too_low(self):
        with self.assertRaises(ValueError):
            self._validate(timeout=MIN_TIMEOUT - 0.5)


class TestParseSizes(unittest.TestCase):
    def _parse(self, raw):
        from speedtest import _parse_sizes
        return _parse_sizes(raw)

    def test_list(self):
        self.assertEqual(self._parse("2,5"), [2.0, 5.0])

    def test_whitespace_and_trailing_comma(self):
        self.assertEqual(self._parse(" 0.5, 1 ,"), [0.5, 1.0])

    def test_invalid(self):
        with self.assertRaises(ValueError):
            self._parse("2,abc")

    def test_empty(self):
        with self.assertRaises(ValueError):
            self._parse(" , ")


class TestEventLogExport(AioHTTPTestCase):
    async def get_application(self):
        return create_app()

    async def test_log_file_written(self):
        from speedtest import run_speedtest

        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "events.json")
            stdout = io.StringIO()
            with contextlib.redirect_stdout(stdout):
                result = await run_speedtest(
                    server_url=str(self.server.make_url("")).rstrip("/"),
                    cycles=1,
                    sizes_mb=[0.5],
                    trials=1,
                    ping_attempts=3,
                    timeout=10,
                    json_output=True,
                    log_file=path,
                )
            with open(path) as fh:
                entries = json.load(fh)

        self.assertEqual(json.loads(stdout.getvalue())["cycles"], result["cycles"])
        seen = {(e["category"], e["message"]) for e in entries}
        for category in ("download", "upload", "ping"):
            self.assertIn((category, "aggregate"), seen)
        self.assertEqual(entries[-1]["category"], "series")
        self.assertEqual(entries[-1]["message"], "complete")
        self.assertEqual(entries[-1]["data"]["cycles"], 1)


class TestSaveDefaults(unittest.TestCase):
    def test_parameters_persisted(self):
        import speedtest

        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "config.json")
            argv = ["speedtest.py", "--cycles", "4", "--sizes", "1,2", "--sequential", "--save-defaults"]
            with mock.patch("client.config._config_path", return_value=path), \
                    mock.patch("sys.argv", argv), \
                    mock.patch.object(speedtest, "setup_logging"), \
                    mock.patch.object(speedtest, "asyncio") as fake_asyncio:
                speedtest.main()
            with open(path) as fh:
                saved = json.load(fh)

        fake_asyncio.run.assert_not_called()
        self.assertEqual(saved["cycles"], 4)
        self.assertEqual(saved["sizes_mb"], [1.0, 2.0])
        self.assertTrue(saved["sequential"])

    def test_invalid_parameters_not_saved(self):
        import speedtest

        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "config.json")
            argv = ["speedtest.py", "--cycles", "0", "--save-defaults"]
            with mock.patch("client.config._config_path", return_value=path), \
                    mock.patch("sys.argv", argv), \
                    mock.patch.object(speedtest, "setup_logging"):
                with self.assertRaises(SystemExit):
                    speedtest.main()
            self.assertFalse(os.path.exists(path))


if __name__ == "__main__":
    unittest.main()
