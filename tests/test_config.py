"""Tests for TOML configuration loading."""

import os
import shutil
import tempfile
import unittest

from shared.config import XrayConfig


class TestXrayConfig(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.tmpdir)

    def _write(self, text):
        path = os.path.join(self.tmpdir, "xray.toml")
        with open(path, "w", encoding="utf-8") as f:
            f.write(text)
        return path

    def test_defaults(self):
        config = XrayConfig()
        self.assertEqual(config.global_settings.log_level, "WARNING")
        self.assertEqual(config.inspector.max_workers, 4)
        self.assertEqual(config.inspector.max_file_size, 256 * 1024 * 1024)
        self.assertEqual(config.output.max_rows, 0)

    def test_load_sections(self):
        path = self._write(
            '[global]\nlog_level = "DEBUG"\nlog_json = true\n'
            "[inspector]\nmax_workers = 8\n"
            "[output]\nmax_rows = 25\nshow_symbols = false\n"
        )
        config = XrayConfig.load(path)
        self.assertEqual(config.global_settings.log_level, "DEBUG")
        self.assertTrue(config.global_settings.log_json)
        self.assertEqual(config.inspector.max_workers, 8)
        self.assertEqual(config.inspector.max_file_size, 256 * 1024 * 1024)
        self.assertEqual(config.output.max_rows, 25)
        self.assertFalse(config.output.show_symbols)

    def test_unknown_keys_and_sections_are_ignored(self):
        path = self._write("[inspector]\nmax_workers = 2\nturbo = true\n[plugins]\nx = 1\n")
        config = XrayConfig.load(path)
        self.assertEqual(config.inspector.max_workers, 2)
        self.assertFalse(hasattr(config.inspector, "turbo"))

    def test_default_file_follows_working_directory(self):
        self._write("[inspector]\nmax_workers = 6\n")
        previous = os.getcwd()
        os.chdir(self.tmpdir)
        try:
            config = XrayConfig.load()
        finally:
            os.chdir(previous)
        self.assertEqual(config.inspector.max_workers, 6)

    def test_explicit_missing_path_raises(self):
        with self.assertRaises(FileNotFoundError):
            XrayConfig.load(os.path.join(self.tmpdir, "missing.toml"))

    def test_invalid_toml_raises_value_error(self):
        path = self._write("[inspector\nmax_workers = ")
        with self.assertRaises(ValueError):
            XrayConfig.load(path)

    def test_to_dict(self):
        data = XrayConfig().to_dict()
        self.assertEqual(set(data), {"global_settings", "inspector", "output"})
        self.assertEqual(data["inspector"]["max_workers"], 4)


if __name__ == "__main__":
    unittest.main()
