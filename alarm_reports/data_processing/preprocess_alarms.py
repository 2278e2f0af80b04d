from __future__ import annotations

import datetime as dt
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import pandas as pd
from openpyxl.utils import get_column_letter
from tqdm import tqdm

from alarm_reports.data_processing.report import ReportStats, build_open_close_report, report_to_frame
from alarm_reports.data_processing.schemas import CellValue, ProcessedRow, to_cell
from alarm_reports.data_processing.windowing import WindowPolicy
from alarm_reports.utils.timer import timed

log = logging.getLogger(__name__)


SUPPORTED_SUFFIXES = (".xlsx", ".xls", ".csv")
REPORT_SHEET = "Relatório Processado"
REPORT_COLUMN_WIDTH = 50


def _find_files(root: Path, globs: List[str]) -> List[Path]:
    files: List[Path] = []
    for g in globs:
        files.extend(root.glob(g))
    return sorted(set([f for f in files if f.is_file()]))


def check_suffix(path: Union[str, Path]) -> None:
    suffix = Path(path).suffix.lower()
    if suffix not in SUPPORTED_SUFFIXES:
        raise ValueError(
            f"Unsupported file type {suffix or '(none)'} for {Path(path).name}; "
            f"expected one of {', '.join(SUPPORTED_SUFFIXES)}"
        )


def resolve_input_files(path: Union[str, Path], file_globs: Optional[List[str]] = None) -> List[Path]:
    path = Path(path)
    if path.is_file():
        check_suffix(path)
        return [path]
    if path.is_dir():
        files = [f for f in _find_files(path, file_globs or ["*.xlsx", "*.xls", "*.csv"])
                 if f.suffix.lower() in SUPPORTED_SUFFIXES]
        if not files:
            raise FileNotFoundError(f"No alarm event files found under: {path}")
        return files
    raise FileNotFoundError(f"Input not found: {path}")


def read_alarm_frame(path: Union[str, Path], sheet: Union[int, str] = 0) -> pd.DataFrame:
    """First sheet (or the named one) of a spreadsheet, or a csv with ',' or ';'."""
    path = Path(path)
    check_suffix(path)
    if path.suffix.lower() == ".csv":
        return pd.read_csv(path, sep=None, engine="python", encoding="utf-8-sig")
    return pd.read_excel(path, sheet_name=sheet)


def frame_to_records(df: pd.DataFrame) -> List[Dict[str, CellValue]]:
    return [{str(k): to_cell(v) for k, v in row.items()} for row in df.to_dict(orient="records")]


def validate_input_file(path: Union[str, Path], sheet: Union[int, str] = 0) -> Dict[str, Any]:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Input not found: {path}")
    df = read_alarm_frame(path, sheet=sheet)
    if df.empty:
        raise ValueError(f"{path.name} is empty or contains no data rows")
    return {
        "filename": path.name,
        "size": path.stat().st_size,
        "records": int(len(df)),
        "columns": [str(c) for c in df.columns],
    }


def load_alarm_records(paths: Sequence[Path], sheet: Union[int, str] = 0) -> List[Dict[str, CellValue]]:
    records: List[Dict[str, CellValue]] = []
    for fp in tqdm(paths, desc="Loading alarm files", disable=len(paths) < 2):
        df = read_alarm_frame(fp, sheet=sheet)
        log.info("Read %d row(s) from %s", len(df), fp.name)
        records.extend(frame_to_records(df))
    return records


def write_report(rows: Sequence[ProcessedRow], path: Union[str, Path]) -> Path:
    path = Path(path)
    suffix = path.suffix.lower()
    df = report_to_frame(rows)
    path.parent.mkdir(parents=True, exist_ok=True)

    if suffix == ".csv":
        df.to_csv(path, index=False, encoding="utf-8-sig")
    elif suffix == ".xlsx":
        with pd.ExcelWriter(path, engine="openpyxl") as writer:
            df.to_excel(writer, sheet_name=REPORT_SHEET, index=False)
            ws = writer.sheets[REPORT_SHEET]
            for i in range(1, len(df.columns) + 1):
                ws.column_dimensions[get_column_letter(i)].width = REPORT_COLUMN_WIDTH
    else:
        raise ValueError(f"Report must be written as .xlsx or .csv, got: {path.name}")
    return path


def default_report_path(input_path: Union[str, Path], now: Optional[dt.datetime] = None) -> Path:
    input_path = Path(input_path)
    tag = (now or dt.datetime.now()).strftime("%Y%m%d_%H%M%S")
    folder = input_path if input_path.is_dir() else input_path.parent
    stem = input_path.name if input_path.is_dir() else input_path.stem
    return folder / f"{stem}-processado-{tag}.xlsx"


def preprocess_alarms(cfg: Dict) -> Dict[str, object]:
    inp = cfg.get("input", {}) or {}
    rep = cfg.get("report", {}) or {}
    out = cfg.get("output", {}) or {}

    if not inp.get("path"):
        raise ValueError("No input configured: set input.path or pass --input")
    input_path = Path(inp["path"])

    out_report = Path(out["report"]) if out.get("report") else default_report_path(input_path)
    out_meta = Path(out["meta"]) if out.get("meta") else out_report.with_name(out_report.stem + "_meta.json")

    policy = WindowPolicy.from_config(rep.get("windows"))
    stats = ReportStats()

    timings: Dict[str, float] = {}
    with timed("load", timings):
        files = resolve_input_files(input_path, inp.get("file_globs"))
        records = load_alarm_records(files, sheet=inp.get("sheet", 0))

    if not records:
        raise ValueError(f"Input contains no data rows: {input_path}")

    with timed("transform", timings):
        rows = build_open_close_report(
            records,
            uf=str(rep.get("uf", "SE")),
            policy=policy,
            stats=stats,
            progress=bool(rep.get("progress", False)),
        )

    with timed("persist", timings):
        if not rows:
            raise RuntimeError("No report rows created. Check input columns / timestamps / event codes.")

        write_report(rows, out_report)

        meta = {
            "input_files": [f.as_posix() for f in files],
            "report": out_report.as_posix(),
            "uf": str(rep.get("uf", "SE")),
            "windows": {
                "opening": [policy.opening_start.isoformat(), policy.opening_end.isoformat()],
                "closing": [policy.closing_start.isoformat(), policy.closing_end.isoformat()],
            },
            "stats": stats.to_dict(),
            "timings_sec": timings,
        }
        out_meta.parent.mkdir(parents=True, exist_ok=True)
        out_meta.write_text(json.dumps(meta, indent=2, ensure_ascii=False), encoding="utf-8")

    log.info("Open/close report complete: %s", out_report.as_posix())
    return {
        "report_path": str(out_report),
        "meta_path": str(out_meta),
        "timings": timings,
        "stats": stats.to_dict(),
    }
