from __future__ import annotations

import argparse
import json
import logging
from typing import Any, Dict, List, Optional

from alarm_reports.data_processing.preprocess_alarms import preprocess_alarms, resolve_input_files, validate_input_file
from alarm_reports.utils.config import ensure_dirs, load_config
from alarm_reports.utils.logging import setup_logging

log = logging.getLogger(__name__)


def _section(cfg: Dict[str, Any], name: str) -> Dict[str, Any]:
    # A null section in YAML overrides the default mapping
    section = cfg.get(name) or {}
    cfg[name] = section
    return section


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Build the daily open/close report from alarm arm/disarm event logs.")
    p.add_argument("--config", default=None, help="Path to YAML config (supports extends).")
    p.add_argument("--input", default=None, help="Event log file (.xlsx/.xls/.csv) or a folder of them.")
    p.add_argument("--output", default=None, help="Report path (.xlsx or .csv).")
    p.add_argument("--uf", default=None, help="State code written on every row.")
    p.add_argument("--validate-only", action="store_true", help="Only check the input files and print a summary.")
    return p.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    cfg = load_config(args.config)

    inp = _section(cfg, "input")
    if args.input:
        inp["path"] = args.input
    if args.output:
        _section(cfg, "output")["report"] = args.output
    if args.uf:
        _section(cfg, "report")["uf"] = args.uf

    setup_logging(level=_section(cfg, "logging").get("level", "INFO"))

    if args.validate_only:
        if not inp.get("path"):
            raise ValueError("No input path: pass --input or set input.path in the config")
        files = resolve_input_files(inp.get("path"), inp.get("file_globs"))
        summary = [validate_input_file(f, sheet=inp.get("sheet", 0)) for f in files]
        print(json.dumps(summary, indent=2, ensure_ascii=False))
        return

    ensure_dirs(cfg)
    try:
        result = preprocess_alarms(cfg)
    except Exception:
        log.exception("Report generation failed")
        raise
    log.info("Rows written: %s", result["stats"]["n_rows"])


if __name__ == "__main__":
    main()
