from __future__ import annotations

import re
from datetime import date, timedelta
from typing import Dict, Iterator, List, Sequence, Tuple

from alarm_reports.data_processing.schemas import BranchDayRange, Event

_NUMERIC_RE = re.compile(r"^[0-9]+$")


def is_numeric_branch(branch: str) -> bool:
    return bool(_NUMERIC_RE.match(branch))


def branch_sort_key(branch: str) -> Tuple[int, int, str]:
    """
    Numeric branch ids first (by value), then the rest lexicographically.
    The raw id breaks ties so "0007" and "7" never interleave.
    """
    if is_numeric_branch(branch):
        return (0, int(branch), branch)
    return (1, 0, branch)


def group_by_branch(events: Sequence[Event]) -> Dict[str, List[Event]]:
    out: Dict[str, List[Event]] = {}
    for ev in events:
        out.setdefault(ev.branch, []).append(ev)
    return out


def branch_date_ranges(events: Sequence[Event]) -> List[BranchDayRange]:
    """Inclusive observed date span per branch, in branch processing order."""
    spans: Dict[str, List[date]] = {}
    for ev in events:
        d = ev.calendar_date
        span = spans.get(ev.branch)
        if span is None:
            spans[ev.branch] = [d, d]
        else:
            span[0] = min(span[0], d)
            span[1] = max(span[1], d)

    ranges = [BranchDayRange(branch=b, min_date=s[0], max_date=s[1]) for b, s in spans.items()]
    return sorted(ranges, key=lambda r: branch_sort_key(r.branch))


def iter_days(span: BranchDayRange) -> Iterator[date]:
    day = span.min_date
    while day <= span.max_date:
        yield day
        day += timedelta(days=1)
