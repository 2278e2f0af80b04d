from __future__ import annotations

import logging
import re
from datetime import date, datetime, time
from typing import Optional

import pandas as pd

from alarm_reports.data_processing.fields import (
    ACCOUNT_CANDS,
    DESCRIPTION_CANDS,
    TIMESTAMP_CANDS,
    get_cell,
    get_event_code,
    get_text,
)
from alarm_reports.data_processing.operators import extract_operator
from alarm_reports.data_processing.schemas import CellKind, CellValue, Event, EventType, RawRecord

log = logging.getLogger(__name__)


DISARM_CODE = 1401
ARM_CODE = 3401

UNKNOWN_BRANCH = "INDEFINIDO"
OFFICE_BRANCH = "ESCRITÓRIO"

BR_DATETIME_RE = re.compile(r"(\d{2})/(\d{2})/(\d{4})\s+(\d{2}):(\d{2})(?::(\d{2}))?")
STORE_RE = re.compile(r"LOJA\s*(\d+)", re.IGNORECASE)
STORE_SUFFIX_RE = re.compile(r"\s*\(LOJA\s*\d+\)\s*", re.IGNORECASE)
# Free text must carry a calendar date before it reaches pandas
_DATE_PART_RE = re.compile(r"\d{1,4}[/\-.]\d{1,2}[/\-.]\d{1,4}|\b\d{4}\b")

# Spreadsheet serial day numbers count from this date
SERIAL_ORIGIN = pd.Timestamp("1899-12-30")


def _naive(ts: datetime) -> datetime:
    # Keep wall-clock time; the report is about local store hours.
    if isinstance(ts, pd.Timestamp):
        ts = ts.to_pydatetime()
    return ts.replace(tzinfo=None) if ts.tzinfo is not None else ts


def parse_timestamp(cell: CellValue) -> Optional[datetime]:
    """
    Accepts a native datetime, "dd/mm/yyyy HH:mm[:ss]" text, or anything
    pandas can parse as long as it carries a date. Time-only text ("23:10")
    and relative words ("now") are rejected. Returns None instead of raising.
    """
    if cell.kind is CellKind.ABSENT:
        return None

    if cell.kind is CellKind.INSTANT:
        v = cell.value
        if isinstance(v, datetime):
            return _naive(v)
        if isinstance(v, date):
            return datetime.combine(v, time())
        return None

    if cell.kind is CellKind.NUMBER:
        try:
            ts = SERIAL_ORIGIN + pd.to_timedelta(float(cell.value), unit="D")
        except (OverflowError, ValueError):
            return None
        return _naive(ts.round("s"))

    text = cell.as_text()
    m = BR_DATETIME_RE.search(text)
    if m:
        day, month, year, hour, minute, second = m.groups()
        try:
            return datetime(int(year), int(month), int(day), int(hour), int(minute), int(second or 0))
        except ValueError:
            return None

    if not _DATE_PART_RE.search(text):
        return None

    try:
        ts = pd.to_datetime(text, errors="coerce")
    except (TypeError, ValueError, OverflowError):
        return None
    if pd.isna(ts):
        return None
    return _naive(ts)


def classify_type(code: Optional[int], description: str) -> EventType:
    desc = (description or "").upper()
    if code == DISARM_CODE:
        return EventType.DISARM
    if code == ARM_CODE:
        return EventType.ARM
    if "DESARM" in desc:
        return EventType.DISARM
    if "ARM" in desc:
        return EventType.ARM
    return EventType.OTHER


def extract_branch(account: str) -> str:
    """
    Branch id from the account text, first rule that applies:
      "... (LOJA 19) ..."      -> "19"
      "ESCRITÓRIO CENTRAL"     -> "ESCRITÓRIO"
      "3691 - SÃO LUIZ (X)"    -> the text itself, minus any "(LOJA n)"
      "318"                    -> "318"
    """
    text = (account or "").strip()
    if not text:
        return UNKNOWN_BRANCH
    upper = text.upper()

    m = STORE_RE.search(upper)
    if m:
        return m.group(1)

    if OFFICE_BRANCH in upper:
        return OFFICE_BRANCH

    stripped = STORE_SUFFIX_RE.sub("", text).strip()
    if stripped:
        return stripped

    if text.isdigit():
        return text

    return account


def classify(record: RawRecord) -> Optional[Event]:
    """Typed Event for a raw row, or None when the row is to be discarded."""
    timestamp = parse_timestamp(get_cell(record, TIMESTAMP_CANDS))
    if timestamp is None:
        log.debug("Discarding row without a usable timestamp")
        return None

    event_type = classify_type(get_event_code(record), get_text(record, DESCRIPTION_CANDS))
    if event_type is EventType.OTHER:
        return None

    return Event(
        timestamp=timestamp,
        type=event_type,
        operator=extract_operator(record),
        branch=extract_branch(get_text(record, ACCOUNT_CANDS)),
    )
