from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timedelta
from typing import List, Sequence, Set, Tuple

from alarm_reports.data_processing.schemas import ProcessedRow

log = logging.getLogger(__name__)

ONE_SECOND = timedelta(seconds=1)


def _whole_second(ts: datetime) -> datetime:
    return ts.replace(microsecond=0)


def enforce_unique_instants(rows: Sequence[ProcessedRow]) -> Tuple[List[ProcessedRow], int]:
    """
    Walk rows in order with one global set of used instants, nudging any
    opening or closing that collides forward one second at a time. A closing
    may also never equal its own row's opening.

    Returns the adjusted rows and how many instants had to move.
    """
    seen: Set[datetime] = set()
    out: List[ProcessedRow] = []
    moved = 0

    for row in rows:
        opening = _whole_second(row.opening)
        closing = _whole_second(row.closing)

        if opening in seen:
            moved += 1
            while opening in seen:
                opening += ONE_SECOND
        seen.add(opening)

        if closing in seen or closing == opening:
            moved += 1
            while closing in seen or closing == opening:
                closing += ONE_SECOND
        seen.add(closing)

        out.append(replace(row, opening=opening, closing=closing))

    if moved:
        log.info("Adjusted %d colliding instant(s) to keep timestamps unique", moved)
    return out, moved
