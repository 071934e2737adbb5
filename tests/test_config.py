import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from depaudit import config


class TestConfig(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.path = Path(self.tmp.name) / "config.toml"

    def tearDown(self):
        self.tmp.cleanup()

    def test_load_config_reads_depaudit_table(self):
        self.path.write_text('[depaudit]\nmax_depth = 12\nosv_url = "http://localhost:8080/v1"\n', encoding="utf-8")

        self.assertEqual(config.load_config(self.path), {"max_depth": 12, "osv_url": "http://localhost:8080/v1"})

    def test_missing_config_is_empty(self):
        self.assertEqual(config.load_config(self.path), {})

    def test_malformed_config_is_ignored(self):
        self.path.write_text("[depaudit\nmax_depth = = 3\n", encoding="utf-8")

        with self.assertLogs("depaudit.config", level="WARNING") as logs:
            self.assertEqual(config.load_config(self.path), {})

        self.assertIn("Ignoring config file", logs.output[0])

    def test_environment_overrides_file(self):
        with patch.object(config, "_toml_config", {"max_depth": 12}), \
                patch.dict(os.environ, {"DEPAUDIT_MAX_DEPTH": "7"}):
            self.assertEqual(config._setting("max_depth", 50, int), 7)

    def test_invalid_environment_value_falls_back_to_default(self):
        with patch.dict(os.environ, {"DEPAUDIT_MAX_DEPTH": "abc"}), \
                self.assertLogs("depaudit.config", level="WARNING") as logs:
            self.assertEqual(config._setting("max_depth", 50, int), 50)

        self.assertIn("DEPAUDIT_MAX_DEPTH", logs.output[0])

    def test_invalid_file_value_falls_back_to_default(self):
        with patch.object(config, "_toml_config", {"osv_timeout": "soon"}), \
                patch.dict(os.environ, {"DEPAUDIT_OSV_TIMEOUT": ""}), \
                self.assertLogs("depaudit.config", level="WARNING"):
            self.assertEqual(config._setting("osv_timeout", 45.0, float), 45.0)

    def test_optional_timeout(self):
        self.assertIsNone(config._optional_float("none"))
        self.assertEqual(config._optional_float("2.5"), 2.5)
