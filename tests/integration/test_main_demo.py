#!/usr/bin/env python3
"""
Demo Entry Point Integration Tests
"""

import io
import logging
import os
import sys
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from parkpool.main import main, build_parser


class TestMainDemo(unittest.TestCase):
    """Run the demo end to end"""

    def tearDown(self):
        logging.getLogger().handlers.clear()

    def run_main(self, argv):
        output = io.StringIO()
        with redirect_stdout(output):
            exit_code = main(argv + ["--log-level", "WARNING"])
        return exit_code, output.getvalue()

    def test_default_layout(self):
        exit_code, output = self.run_main(["--arrivals", "6", "--workers", "3"])
        self.assertEqual(exit_code, 0)
        self.assertIn("Parking Lot: Downtown Parking", output)
        self.assertIn("PARKING STATUS AFTER CONCURRENT ARRIVALS", output)
        self.assertIn("Total revenue: $", output)

    def test_yaml_config_and_strategy(self):
        content = (
            "name: Tiny Lot\n"
            "floors:\n"
            "  - spots:\n"
            "      - {size: small, count: 2}\n"
            "      - {size: medium, count: 2}\n"
            "      - {size: large, count: 1}\n"
        )
        with tempfile.NamedTemporaryFile("w", suffix=".yaml", delete=False) as handle:
            handle.write(content)
            path = handle.name
        try:
            exit_code, output = self.run_main(
                ["--config", path, "--strategy", "first_fit", "--arrivals", "4"]
            )
        finally:
            os.unlink(path)

        self.assertEqual(exit_code, 0)
        self.assertIn("Parking Lot: Tiny Lot", output)
        self.assertIn("(first_fit)", output)

    def test_bad_config_fails(self):
        exit_code, _ = self.run_main(["--config", "does-not-exist.yaml"])
        self.assertEqual(exit_code, 1)

    def test_parser_rejects_unknown_strategy(self):
        with self.assertRaises(SystemExit):
            with redirect_stderr(io.StringIO()):
                build_parser().parse_args(["--strategy", "worst_fit"])


if __name__ == "__main__":
    unittest.main()
