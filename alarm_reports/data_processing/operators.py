from __future__ import annotations

import logging
import re
from typing import Optional

from alarm_reports.data_processing.fields import DESCRIPTION_CANDS, get_text, matching_keys, pick_key
from alarm_reports.data_processing.schemas import RawRecord, to_cell

log = logging.getLogger(__name__)


REMOTE_ARMING = "ARME REMOTO"
REMOTE_MARKERS = ("ARME REMOTO", "ARMADO REMOTO")

# Probed in order, case-insensitively
OPERATOR_CANDS = [
    "Usuário",
    "Usuario",
    "Operador",
    "Usuário(a)",
    "Usuario(a)",
    "Operador(a)",
    "User",
    "Nome",
    "Nome do Usuário",
    "Nome do Usuario",
    "Nome do Operador",
]
OPERATOR_KEYWORDS = ["usuario", "usuário", "operador", "user", "nome"]

_USER_PHRASE = r"(?:PELO|POR)\s+USU[ÁA]RIO"
_HONORIFIC = r"(?:SR\.|SRA\.)"
_NAME = r"([^\s][^\d\-–—]+?)"
_NAME_END = r"(?:\s*[-–—]|\s*$|\s*\d)"

# Most specific first; the last one is the catch-all.
DESCRIPTION_PATTERNS = [
    re.compile(_USER_PHRASE + r"\s*[-\s]+\s*" + _HONORIFIC + r"\s+" + _NAME + _NAME_END, re.IGNORECASE),
    re.compile(_USER_PHRASE + r"\s+" + _HONORIFIC + r"\s+" + _NAME + _NAME_END, re.IGNORECASE),
    re.compile(_USER_PHRASE + r"\s*[-\s]+\s*" + _NAME + _NAME_END, re.IGNORECASE),
    re.compile(_USER_PHRASE + r"\s*[:\-\s]+\s*(.+?)" + _NAME_END, re.IGNORECASE),
]

_HONORIFIC_ONLY_RE = re.compile(r"^(?:SR\.|SRA\.)$", re.IGNORECASE)
_LEADING_HONORIFIC_RE = re.compile(r"^(?:SR\.|SRA\.)\s+", re.IGNORECASE)
_LOOSE_HONORIFIC_RE = re.compile(r"^(?:SR\.|SRA\.)\s*", re.IGNORECASE)
_LEADING_PHRASE_RE = re.compile(r"^(?:PELO|POR)\s+USU[ÁA]RIO\s*", re.IGNORECASE)
_DASH_SUFFIX_RE = re.compile(r"[-–—]+.*$")


def clean_operator_name(name: Optional[str]) -> str:
    """
    Strip honorific, the "PELO/POR USUARIO" phrase and any trailing
    dash-delimited suffix. An honorific on its own cleans to "".
    """
    if not name:
        return ""
    cleaned = str(name).strip()
    if not cleaned or _HONORIFIC_ONLY_RE.match(cleaned):
        return ""
    cleaned = _LEADING_HONORIFIC_RE.sub("", cleaned)
    cleaned = _LEADING_PHRASE_RE.sub("", cleaned).strip()
    cleaned = _DASH_SUFFIX_RE.sub("", cleaned).strip()
    if not cleaned or _HONORIFIC_ONLY_RE.match(cleaned):
        return ""
    return cleaned


def _valid_name(name: str) -> bool:
    return len(name) >= 2 and not _HONORIFIC_ONLY_RE.match(name)


def _from_known_columns(record: RawRecord) -> Optional[str]:
    for cand in OPERATOR_CANDS:
        key = pick_key(record, [cand])
        if key is None:
            continue
        value = to_cell(record[key]).as_text()
        if value:
            return clean_operator_name(value)
    return None


def _from_any_column(record: RawRecord) -> Optional[str]:
    for key in matching_keys(record, OPERATOR_KEYWORDS):
        value = to_cell(record[key]).as_text()
        if value:
            return clean_operator_name(value)
    return None


def operator_from_description(description: str) -> str:
    text = (description or "").strip()
    if not text:
        return ""
    last = len(DESCRIPTION_PATTERNS) - 1
    for i, pattern in enumerate(DESCRIPTION_PATTERNS):
        m = pattern.search(text)
        if not m:
            continue
        captured = m.group(1).strip()
        if i == last:
            captured = _LOOSE_HONORIFIC_RE.sub("", captured).strip()
            captured = _DASH_SUFFIX_RE.sub("", captured).strip()
        if not _valid_name(captured):
            continue
        cleaned = clean_operator_name(captured)
        if _valid_name(cleaned):
            return cleaned
    return ""


def extract_operator(record: RawRecord) -> str:
    """Best available operator name for a raw row, "" when nothing fits."""
    description = get_text(record, DESCRIPTION_CANDS)
    upper = description.upper()
    if any(marker in upper for marker in REMOTE_MARKERS):
        return REMOTE_ARMING

    for strategy in (_from_known_columns, _from_any_column):
        name = strategy(record)
        if name is not None:
            return name

    name = operator_from_description(description)
    if not name:
        log.debug("No operator found for row (description=%r)", description)
    return name

