from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, List, Mapping, Optional, Sequence, Set

from alarm_reports.data_processing.scheduler import iter_days
from alarm_reports.data_processing.schemas import BranchDayRange, Event, EventType, ProcessedRow
from alarm_reports.utils.seed import seeded_uniform

log = logging.getLogger(__name__)


SECONDS_PER_DAY = 24 * 3600

OPEN_KIND = "OPEN"
CLOSE_KIND = "CLOSE"


def _seconds(t: time) -> int:
    return t.hour * 3600 + t.minute * 60 + t.second


def parse_clock(value: Any) -> time:
    """'HH:MM[:SS]' text, a time, or seconds since midnight (YAML reads
    unquoted 05:30:00 as a base-60 integer)."""
    if isinstance(value, time):
        return value
    if isinstance(value, int) and not isinstance(value, bool):
        h, rem = divmod(value, 3600)
        m, s = divmod(rem, 60)
        return time(h % 24, m, s)
    return time.fromisoformat(str(value).strip())


@dataclass(frozen=True)
class WindowPolicy:
    """Clock windows inside which an original event time is trusted."""

    opening_start: time = time(5, 30)
    opening_end: time = time(8, 30)
    closing_start: time = time(22, 30)
    closing_end: time = time(1, 30)

    @classmethod
    def from_config(cls, windows: Optional[Mapping[str, Any]]) -> "WindowPolicy":
        windows = windows or {}
        opening = windows.get("opening", {}) or {}
        closing = windows.get("closing", {}) or {}
        base = cls()
        return cls(
            opening_start=parse_clock(opening.get("start", base.opening_start)),
            opening_end=parse_clock(opening.get("end", base.opening_end)),
            closing_start=parse_clock(closing.get("start", base.closing_start)),
            closing_end=parse_clock(closing.get("end", base.closing_end)),
        )

    @property
    def closing_wraps(self) -> bool:
        return self.closing_end < self.closing_start

    def opening_accepts(self, ts: datetime) -> bool:
        return self.opening_start <= ts.time() <= self.opening_end

    def closing_accepts(self, ts: datetime, day: date) -> bool:
        t = ts.time()
        if ts.date() == day:
            if self.closing_wraps:
                return t >= self.closing_start
            return self.closing_start <= t <= self.closing_end
        return self.closing_wraps and t <= self.closing_end

    def in_next_day_pool(self, ts: datetime) -> bool:
        # minute resolution: a 01:30 cutoff still takes 01:30:59
        if not self.closing_wraps:
            return False
        end = self.closing_end
        return (ts.hour, ts.minute) <= (end.hour, end.minute)


def synthesize_instant(kind: str, branch: str, day: date, start: time, end: time) -> datetime:
    """
    Deterministic instant inside [start, end] for (kind, branch, day).

    A window that ends before it starts spans midnight; picks past 23:59:59
    land on the following date.
    """
    rnd = seeded_uniform(f"{kind}-{branch}-{day.isoformat()}")
    s, e = _seconds(start), _seconds(end)
    midnight = datetime.combine(day, time())

    if e >= s:
        offset = s + math.floor(rnd() * (e - s + 1))
    else:
        before_midnight = SECONDS_PER_DAY - s
        total = before_midnight + e + 1
        pick = math.floor(rnd() * total)
        offset = s + pick if pick < before_midnight else SECONDS_PER_DAY + (pick - before_midnight)

    return midnight + timedelta(seconds=offset)


@dataclass
class BranchMemory:
    """Carry-forward state for one branch's day loop."""

    prev_opening_operator: str = ""
    prev_closing_operator: str = ""
    consumed_arms: Set[datetime] = field(default_factory=set)

    def remember(self, row: ProcessedRow) -> None:
        if row.opening_operator:
            self.prev_opening_operator = row.opening_operator
        if row.closing_operator:
            self.prev_closing_operator = row.closing_operator


@dataclass(frozen=True)
class DayResolution:
    row: ProcessedRow
    opening_kept: bool
    closing_kept: bool


def _index_by_date(events: Sequence[Event]) -> Dict[date, List[Event]]:
    out: Dict[date, List[Event]] = {}
    for ev in sorted(events, key=lambda e: e.timestamp):
        out.setdefault(ev.calendar_date, []).append(ev)
    return out


def resolve_day(
    branch: str,
    day: date,
    by_date: Mapping[date, Sequence[Event]],
    memory: BranchMemory,
    policy: WindowPolicy,
    uf: str,
) -> DayResolution:
    today = by_date.get(day, [])
    tomorrow = by_date.get(day + timedelta(days=1), [])

    # Opening: earliest disarm of the day
    disarms = [e for e in today if e.type is EventType.DISARM]
    first_disarm = min(disarms, key=lambda e: e.timestamp) if disarms else None

    opening_kept = first_disarm is not None and policy.opening_accepts(first_disarm.timestamp)
    if opening_kept:
        opening = first_disarm.timestamp
    else:
        opening = synthesize_instant(OPEN_KIND, branch, day, policy.opening_start, policy.opening_end)

    opening_operator = first_disarm.operator if first_disarm is not None else ""
    if not opening_operator:
        opening_operator = memory.prev_opening_operator or memory.prev_closing_operator

    # Closing: latest unconsumed arm, same day first, else early next day
    same_day = [e for e in today if e.type is EventType.ARM and e.timestamp not in memory.consumed_arms]
    next_day = [
        e
        for e in tomorrow
        if e.type is EventType.ARM and policy.in_next_day_pool(e.timestamp) and e.timestamp not in memory.consumed_arms
    ]
    pool = same_day or next_day
    last_arm = max(pool, key=lambda e: e.timestamp) if pool else None

    closing_kept = False
    if last_arm is not None:
        memory.consumed_arms.add(last_arm.timestamp)
        closing_kept = policy.closing_accepts(last_arm.timestamp, day)
    if closing_kept:
        closing = last_arm.timestamp
    else:
        closing = synthesize_instant(CLOSE_KIND, branch, day, policy.closing_start, policy.closing_end)

    closing_operator = last_arm.operator if last_arm is not None else ""
    if not closing_operator:
        closing_operator = memory.prev_closing_operator or memory.prev_opening_operator or opening_operator
    if not opening_operator:
        opening_operator = closing_operator

    if opening == closing:
        closing = closing + timedelta(seconds=1)

    row = ProcessedRow(
        branch=branch,
        uf=uf,
        opening=opening,
        closing=closing,
        opening_operator=opening_operator,
        closing_operator=closing_operator,
    )
    memory.remember(row)
    return DayResolution(row=row, opening_kept=opening_kept, closing_kept=closing_kept)


def resolve_branch(
    span: BranchDayRange,
    events: Sequence[Event],
    policy: Optional[WindowPolicy] = None,
    uf: str = "SE",
) -> List[DayResolution]:
    """One resolved row per calendar day of the branch's range, in date order."""
    policy = policy or WindowPolicy()
    by_date = _index_by_date(events)
    memory = BranchMemory()

    out = [resolve_day(span.branch, day, by_date, memory, policy, uf) for day in iter_days(span)]
    log.debug(
        "Branch %s: %d day(s) %s..%s, %d arm event(s) consumed",
        span.branch,
        len(out),
        span.min_date.isoformat(),
        span.max_date.isoformat(),
        len(memory.consumed_arms),
    )
    return out
