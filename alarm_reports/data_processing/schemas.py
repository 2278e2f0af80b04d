from __future__ import annotations

import math
import numbers
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional

import pandas as pd


# Output columns of the open/close report, in spreadsheet order
COL_BRANCH = "FILIAL"
COL_UF = "UF"
COL_OPENING = "ABERTURA"
COL_CLOSING = "FECHAMENTO"
COL_OPENING_OPERATOR = "OPERADOR(A) ABERTURA"
COL_CLOSING_OPERATOR = "OPERADOR(A) FECHAMENTO"

REPORT_COLUMNS = [
    COL_BRANCH,
    COL_UF,
    COL_OPENING,
    COL_CLOSING,
    COL_OPENING_OPERATOR,
    COL_CLOSING_OPERATOR,
]

TIMESTAMP_FORMAT = "%d/%m/%Y %H:%M:%S"


class CellKind(str, Enum):
    TEXT = "text"
    NUMBER = "number"
    INSTANT = "instant"
    ABSENT = "absent"


@dataclass(frozen=True)
class CellValue:
    """One spreadsheet cell, tagged with what the reader actually gave us."""

    kind: CellKind
    value: Any = None

    @property
    def is_absent(self) -> bool:
        return self.kind is CellKind.ABSENT

    def as_text(self) -> str:
        if self.kind is CellKind.ABSENT:
            return ""
        if self.kind is CellKind.NUMBER and float(self.value).is_integer():
            return str(int(self.value))
        return str(self.value).strip()


ABSENT = CellValue(CellKind.ABSENT)


def to_cell(value: Any) -> CellValue:
    if isinstance(value, CellValue):
        return value
    if value is None or value is pd.NaT:
        return ABSENT
    if isinstance(value, (datetime, date)):
        return CellValue(CellKind.INSTANT, value)
    if isinstance(value, bool):
        return CellValue(CellKind.TEXT, str(value))
    if isinstance(value, numbers.Real):
        if math.isnan(value):
            return ABSENT
        return CellValue(CellKind.NUMBER, value)
    text = str(value)
    if not text.strip():
        return ABSENT
    return CellValue(CellKind.TEXT, text)


# A raw record as handed over by the spreadsheet reader. Values may be
# CellValue already or loose python/pandas values.
RawRecord = Mapping[str, Any]


class EventType(str, Enum):
    DISARM = "DESARME"
    ARM = "ARME"
    OTHER = "OTHER"


@dataclass(frozen=True)
class Event:
    timestamp: datetime
    type: EventType
    operator: str
    branch: str

    @property
    def calendar_date(self) -> date:
        return self.timestamp.date()


@dataclass(frozen=True)
class BranchDayRange:
    branch: str
    min_date: date
    max_date: date


@dataclass(frozen=True)
class ProcessedRow:
    branch: str
    uf: str
    opening: datetime
    closing: datetime
    opening_operator: str = ""
    closing_operator: str = ""

    def to_record(self) -> Dict[str, str]:
        return {
            COL_BRANCH: self.branch,
            COL_UF: self.uf,
            COL_OPENING: format_timestamp(self.opening),
            COL_CLOSING: format_timestamp(self.closing),
            COL_OPENING_OPERATOR: self.opening_operator or "",
            COL_CLOSING_OPERATOR: self.closing_operator or "",
        }


def format_timestamp(ts: Optional[datetime]) -> str:
    if ts is None:
        return ""
    return ts.strftime(TIMESTAMP_FORMAT)
