from __future__ import annotations

import tempfile
import unittest
from datetime import time
from pathlib import Path

from alarm_reports.data_processing.windowing import WindowPolicy
from alarm_reports.utils.config import DEFAULT_CONFIG, ensure_dirs, load_config


class LoadConfigTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _write(self, name: str, text: str) -> Path:
        p = self.tmp / name
        p.write_text(text, encoding="utf-8")
        return p

    def test_defaults_without_file(self) -> None:
        cfg = load_config()
        self.assertEqual(cfg["report"]["uf"], "SE")
        self.assertIsNone(cfg["_meta"]["config_path"])
        # defaults are copied, not shared
        cfg["report"]["uf"] = "AL"
        self.assertEqual(DEFAULT_CONFIG["report"]["uf"], "SE")

    def test_extends_and_override(self) -> None:
        self._write(
            "base.yaml",
            "report:\n  uf: SE\n  windows:\n    opening:\n      start: '06:00:00'\nlogging:\n  level: WARNING\n",
        )
        child = self._write("child.yaml", "extends: base.yaml\nreport:\n  uf: AL\n")

        cfg = load_config(child)
        self.assertEqual(cfg["report"]["uf"], "AL")
        self.assertEqual(cfg["logging"]["level"], "WARNING")
        self.assertEqual(cfg["report"]["windows"]["opening"]["start"], "06:00:00")
        self.assertEqual(cfg["report"]["windows"]["opening"]["end"], "08:30:00")
        self.assertNotIn("extends", cfg)
        self.assertEqual(cfg["_meta"]["config_path"], str(child.resolve()))

    def test_unquoted_times_still_parse(self) -> None:
        path = self._write("times.yaml", "report:\n  windows:\n    closing:\n      start: 22:45:00\n")
        cfg = load_config(path)
        policy = WindowPolicy.from_config(cfg["report"]["windows"])
        self.assertEqual(policy.closing_start, time(22, 45))
        self.assertEqual(policy.closing_end, time(1, 30))

    def test_bad_files(self) -> None:
        with self.assertRaises(FileNotFoundError):
            load_config(self.tmp / "missing.yaml")
        with self.assertRaises(ValueError):
            load_config(self._write("list.yaml", "- a\n- b\n"))
        with self.assertRaises(ValueError):
            load_config(self._write("bad_extends.yaml", "extends: 3\n"))

    def test_ensure_dirs(self) -> None:
        cfg = load_config()
        cfg["output"]["report"] = str(self.tmp / "a" / "b" / "relatorio.xlsx")
        ensure_dirs(cfg)
        self.assertTrue((self.tmp / "a" / "b").is_dir())


if __name__ == "__main__":
    unittest.main()
