from __future__ import annotations

import contextlib
import io
import json
import tempfile
import unittest
from datetime import datetime
from pathlib import Path

import pandas as pd

from alarm_reports.cli.build_report import main as cli_main
from alarm_reports.data_processing.preprocess_alarms import (
    REPORT_SHEET,
    default_report_path,
    frame_to_records,
    preprocess_alarms,
    resolve_input_files,
    validate_input_file,
    write_report,
)
from alarm_reports.data_processing.report import build_open_close_report
from alarm_reports.data_processing.schemas import REPORT_COLUMNS, CellKind
from alarm_reports.utils.config import load_config


def _events_frame() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "Empresa": ["ACME"] * 4,
            "Conta": ["PAGUE MENOS (LOJA 318)", "PAGUE MENOS (LOJA 318)", "ESCRITÓRIO CENTRAL", "ESCRITÓRIO CENTRAL"],
            "Data de recebimento": [
                "31/10/2025 05:57:03",
                "31/10/2025 22:48:07",
                "31/10/2025 07:01:00",
                "01/11/2025 00:20:00",
            ],
            "Código do evento": [1401, 3401, 1401, 3401],
            "Descrição": [
                "DESARMADO PELO USUARIO - SRA. JOSEFA",
                "ARMADO PELO USUARIO - SR. PAULO",
                "DESARMADO PELO USUARIO - CARLA",
                "ARME REMOTO",
            ],
        }
    )


class PreprocessAlarmsTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)
        self.csv_path = self.tmp / "eventos.csv"
        _events_frame().to_csv(self.csv_path, index=False)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_csv_in_csv_out(self) -> None:
        cfg = load_config()
        cfg["input"]["path"] = str(self.csv_path)
        cfg["output"]["report"] = str(self.tmp / "out" / "relatorio.csv")

        result = preprocess_alarms(cfg)

        report = pd.read_csv(result["report_path"], dtype=str, keep_default_na=False, encoding="utf-8-sig")
        self.assertEqual(list(report.columns), REPORT_COLUMNS)
        self.assertEqual(list(report["FILIAL"]), ["318", "ESCRITÓRIO", "ESCRITÓRIO"])
        self.assertEqual(report.loc[0, "ABERTURA"], "31/10/2025 05:57:03")
        self.assertEqual(report.loc[0, "FECHAMENTO"], "31/10/2025 22:48:07")
        self.assertEqual(report.loc[1, "FECHAMENTO"], "01/11/2025 00:20:00")
        self.assertEqual(report.loc[1, "OPERADOR(A) FECHAMENTO"], "ARME REMOTO")

        meta = json.loads(Path(result["meta_path"]).read_text(encoding="utf-8"))
        self.assertEqual(meta["stats"]["n_rows"], 3)
        self.assertEqual(meta["uf"], "SE")
        self.assertIn("load", meta["timings_sec"])
        self.assertTrue(result["meta_path"].endswith("relatorio_meta.json"))

    def test_xlsx_report(self) -> None:
        records = frame_to_records(_events_frame())
        rows = build_open_close_report(records)
        path = write_report(rows, self.tmp / "relatorio.xlsx")

        df = pd.read_excel(path, sheet_name=REPORT_SHEET, dtype=str)
        self.assertEqual(list(df.columns), REPORT_COLUMNS)
        self.assertEqual(len(df), len(rows))

    def test_unsupported_report_suffix(self) -> None:
        with self.assertRaises(ValueError):
            write_report([], self.tmp / "relatorio.txt")

    def test_no_rows_is_an_error(self) -> None:
        noise = pd.DataFrame({"Conta": ["LOJA 1"], "Data de recebimento": ["31/10/2025 10:00:00"], "Código do evento": [1602]})
        path = self.tmp / "ruido.csv"
        noise.to_csv(path, index=False)
        cfg = load_config()
        cfg["input"]["path"] = str(path)
        cfg["output"]["report"] = str(self.tmp / "ruido_out.csv")
        with self.assertRaises(RuntimeError):
            preprocess_alarms(cfg)

    def test_missing_input_path(self) -> None:
        with self.assertRaises(ValueError):
            preprocess_alarms(load_config())

    def test_records_are_tagged(self) -> None:
        (first, *_) = frame_to_records(_events_frame())
        self.assertIs(first["Código do evento"].kind, CellKind.NUMBER)
        self.assertIs(first["Conta"].kind, CellKind.TEXT)


class InputFilesTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_validate_csv(self) -> None:
        path = self.tmp / "eventos.csv"
        _events_frame().to_csv(path, index=False)
        info = validate_input_file(path)
        self.assertEqual(info["filename"], "eventos.csv")
        self.assertEqual(info["records"], 4)
        self.assertIn("Data de recebimento", info["columns"])
        self.assertGreater(info["size"], 0)

    def test_validate_rejects_extension(self) -> None:
        path = self.tmp / "eventos.txt"
        path.write_text("Conta\nLOJA 1\n", encoding="utf-8")
        with self.assertRaises(ValueError):
            validate_input_file(path)

    def test_validate_rejects_empty_sheet(self) -> None:
        path = self.tmp / "vazio.xlsx"
        pd.DataFrame(columns=["Conta", "Data de recebimento"]).to_excel(path, index=False)
        with self.assertRaises(ValueError):
            validate_input_file(path)

    def test_resolve_folder(self) -> None:
        _events_frame().to_csv(self.tmp / "b.csv", index=False)
        _events_frame().to_csv(self.tmp / "a.csv", index=False)
        (self.tmp / "notas.txt").write_text("x", encoding="utf-8")
        files = resolve_input_files(self.tmp)
        self.assertEqual([f.name for f in files], ["a.csv", "b.csv"])

    def test_resolve_missing(self) -> None:
        with self.assertRaises(FileNotFoundError):
            resolve_input_files(self.tmp / "nada.xlsx")
        with self.assertRaises(FileNotFoundError):
            resolve_input_files(self.tmp)

    def test_default_report_path(self) -> None:
        path = default_report_path(self.tmp / "eventos.xlsx", now=datetime(2025, 11, 1, 8, 30, 0))
        self.assertEqual(path, self.tmp / "eventos-processado-20251101_083000.xlsx")


class CliTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)
        self.csv_path = self.tmp / "eventos.csv"
        _events_frame().to_csv(self.csv_path, index=False)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_build(self) -> None:
        out = self.tmp / "saida" / "relatorio.csv"
        cli_main(["--input", str(self.csv_path), "--output", str(out), "--uf", "AL"])
        report = pd.read_csv(out, dtype=str, encoding="utf-8-sig")
        self.assertEqual(set(report["UF"]), {"AL"})

    def test_validate_only(self) -> None:
        buf = io.StringIO()
        with contextlib.redirect_stdout(buf):
            cli_main(["--input", str(self.csv_path), "--validate-only"])
        summary = json.loads(buf.getvalue())
        self.assertEqual(summary[0]["records"], 4)

    def test_null_sections_in_config(self) -> None:
        cfg_path = self.tmp / "nulos.yaml"
        cfg_path.write_text("input:\noutput:\nreport:\nlogging:\n", encoding="utf-8")
        out = self.tmp / "relatorio.csv"
        cli_main(["--config", str(cfg_path), "--input", str(self.csv_path), "--output", str(out), "--uf", "AL"])
        report = pd.read_csv(out, dtype=str, encoding="utf-8-sig")
        self.assertEqual(list(report.columns), REPORT_COLUMNS)
        self.assertEqual(set(report["UF"]), {"AL"})


if __name__ == "__main__":
    unittest.main()
