"""Tests for the xray command line."""

import json
import logging
import os
import shutil
import tempfile
import unittest

from click.testing import CliRunner

from xray.cli import xray_cli

from tests.images import build_elf, build_pe


class TestCli(unittest.TestCase):

    def setUp(self):
        self.runner = CliRunner()
        self.tmpdir = tempfile.mkdtemp()
        self.elf = self._write("libfoo.so", build_elf(soname="libfoo.so.1"))
        self.pe = self._write("app.exe", build_pe(imports={"KERNEL32.dll": ["ExitProcess"]}))
        self.text = self._write("notes.txt", b"This is not an executable file.")
        self.corrupt = self._write("broken.so", build_elf()[:-1])

    def tearDown(self):
        for handler in list(logging.getLogger("xray.engine").handlers):
            handler.close()
        shutil.rmtree(self.tmpdir)

    def _write(self, name, data):
        path = os.path.join(self.tmpdir, name)
        with open(path, "wb") as f:
            f.write(data)
        return path

    def test_all_parsed_exits_zero(self):
        result = self.runner.invoke(xray_cli, [self.elf, self.pe])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("libc.so.6", result.output)
        self.assertIn("ExitProcess", result.output)
        self.assertIn("2 of 2 file(s) parsed", result.output)

    def test_unrecognized_only_exits_three(self):
        result = self.runner.invoke(xray_cli, [self.elf, self.text])
        self.assertEqual(result.exit_code, 3)
        self.assertIn("UNRECOGNIZED", result.output)

    def test_corrupt_input_exits_one(self):
        result = self.runner.invoke(xray_cli, [self.text, self.corrupt])
        self.assertEqual(result.exit_code, 1)
        self.assertIn("out_of_bounds", result.output)

    def test_missing_input_exits_one(self):
        result = self.runner.invoke(xray_cli, [os.path.join(self.tmpdir, "gone.bin")])
        self.assertEqual(result.exit_code, 1)
        self.assertIn("UNREADABLE", result.output)

    def test_json_output(self):
        result = self.runner.invoke(xray_cli, [self.elf, self.pe, "--json"])
        self.assertEqual(result.exit_code, 0, result.output)
        data = json.loads(result.output)
        self.assertEqual([r["source"] for r in data["results"]], [self.elf, self.pe])
        self.assertEqual(data["results"][0]["report"]["soname"], "libfoo.so.1")
        self.assertEqual(data["results"][1]["report"]["imports"][0]["name"], "ExitProcess")

    def test_report_file(self):
        out = os.path.join(self.tmpdir, "report.json")
        result = self.runner.invoke(xray_cli, [self.pe, "--output", out])
        self.assertEqual(result.exit_code, 0, result.output)
        with open(out, encoding="utf-8") as f:
            self.assertEqual(json.load(f)["results"][0]["status"], "parsed")

    def test_config_and_log_file(self):
        config = os.path.join(self.tmpdir, "xray.toml")
        with open(config, "w", encoding="utf-8") as f:
            f.write("[output]\nmax_rows = 1\n")
        log_file = os.path.join(self.tmpdir, "logs", "xray.log")
        result = self.runner.invoke(
            xray_cli, [self.elf, "--config", config, "--log-file", log_file, "--verbose"],
        )
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("showing 1 of 6", result.output)
        with open(log_file, encoding="utf-8") as f:
            self.assertIn("parsed elf image", f.read())

    def test_missing_config_is_a_usage_error(self):
        result = self.runner.invoke(
            xray_cli, [self.elf, "--config", os.path.join(self.tmpdir, "nope.toml")],
        )
        self.assertEqual(result.exit_code, 2)

    def test_invalid_config(self):
        config = self._write("bad.toml", b"[output\n")
        result = self.runner.invoke(xray_cli, [self.elf, "--config", config])
        self.assertEqual(result.exit_code, 2)
        self.assertIn("Cannot load configuration", result.output)

    def test_paths_are_required(self):
        result = self.runner.invoke(xray_cli, [])
        self.assertEqual(result.exit_code, 2)


if __name__ == "__main__":
    unittest.main()
