from __future__ import annotations

import logging
from collections.abc import Sequence as SequenceABC
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd
from tqdm import tqdm

from alarm_reports.data_processing.classifier import classify
from alarm_reports.data_processing.scheduler import branch_date_ranges, branch_sort_key, group_by_branch
from alarm_reports.data_processing.schemas import REPORT_COLUMNS, Event, ProcessedRow, RawRecord
from alarm_reports.data_processing.uniqueness import enforce_unique_instants
from alarm_reports.data_processing.windowing import WindowPolicy, resolve_branch

log = logging.getLogger(__name__)


DEFAULT_UF = "SE"


@dataclass
class ReportStats:
    n_records: int = 0
    n_discarded: int = 0
    n_events: int = 0
    n_branches: int = 0
    n_rows: int = 0
    openings_kept: int = 0
    openings_synthesized: int = 0
    closings_kept: int = 0
    closings_synthesized: int = 0
    uniqueness_adjustments: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


def classify_records(records: Sequence[RawRecord], stats: Optional[ReportStats] = None) -> List[Event]:
    events: List[Event] = []
    for record in records:
        ev = classify(record)
        if ev is not None:
            events.append(ev)
    if stats is not None:
        stats.n_records = len(records)
        stats.n_events = len(events)
        stats.n_discarded = len(records) - len(events)
    return events


def sort_report(rows: Sequence[ProcessedRow]) -> List[ProcessedRow]:
    """Branches in branch order, each branch chronological by opening."""
    return sorted(rows, key=lambda r: (branch_sort_key(r.branch), r.opening))


def build_open_close_report(
    records: Sequence[RawRecord],
    uf: str = DEFAULT_UF,
    policy: Optional[WindowPolicy] = None,
    stats: Optional[ReportStats] = None,
    progress: bool = False,
) -> List[ProcessedRow]:
    """
    Turn raw alarm rows into one opening/closing row per branch and day.

    Bad rows are dropped, missing days are filled with synthetic times and
    every opening and closing instant in the result is unique.
    """
    if isinstance(records, (str, bytes)) or not isinstance(records, SequenceABC):
        raise TypeError(f"records must be a sequence of mappings, got {type(records).__name__}")

    policy = policy or WindowPolicy()
    stats = stats if stats is not None else ReportStats()

    events = classify_records(records, stats)
    by_branch = group_by_branch(events)
    spans = branch_date_ranges(events)
    stats.n_branches = len(spans)

    rows: List[ProcessedRow] = []
    for span in tqdm(spans, desc="Resolving branches", disable=not progress):
        for res in resolve_branch(span, by_branch[span.branch], policy=policy, uf=uf):
            rows.append(res.row)
            if res.opening_kept:
                stats.openings_kept += 1
            else:
                stats.openings_synthesized += 1
            if res.closing_kept:
                stats.closings_kept += 1
            else:
                stats.closings_synthesized += 1

    rows, moved = enforce_unique_instants(rows)
    stats.uniqueness_adjustments = moved

    rows = sort_report(rows)
    stats.n_rows = len(rows)
    log.info(
        "Report built: records=%d events=%d branches=%d rows=%d (discarded=%d)",
        stats.n_records,
        stats.n_events,
        stats.n_branches,
        stats.n_rows,
        stats.n_discarded,
    )
    return rows


def report_records(rows: Sequence[ProcessedRow]) -> List[Dict[str, Any]]:
    return [r.to_record() for r in rows]


def report_to_frame(rows: Sequence[ProcessedRow]) -> pd.DataFrame:
    if not rows:
        return pd.DataFrame(columns=REPORT_COLUMNS)
    return pd.DataFrame(report_records(rows), columns=REPORT_COLUMNS)
