from __future__ import annotations

from typing import List, Optional, Sequence

from alarm_reports.data_processing.schemas import ABSENT, CellKind, CellValue, RawRecord, to_cell


ACCOUNT_CANDS = ["Conta", "Filial", "Loja", "Account", "Cliente"]
TIMESTAMP_CANDS = [
    "Data de recebimento",
    "Data/Hora",
    "Data Hora",
    "Data e Hora",
    "Timestamp",
    "Datetime",
    "Data",
]
CODE_CANDS = ["Código do evento", "Codigo do evento", "Código", "Codigo", "Event code", "Code"]
DESCRIPTION_CANDS = ["Descrição", "Descricao", "Description", "Desc"]


def _norm(name: object) -> str:
    return str(name).strip().casefold()


def pick_key(record: RawRecord, candidates: Sequence[str]) -> Optional[str]:
    """Return the first record key matching a candidate, case-insensitively.

    Candidate order decides, not column order: with both "Data" and
    "Data de recebimento" present the latter wins.
    """
    by_norm = {}
    for k in record.keys():
        by_norm.setdefault(_norm(k), k)
    for c in candidates:
        k = by_norm.get(_norm(c))
        if k is not None:
            return k
    return None


def get_cell(record: RawRecord, candidates: Sequence[str]) -> CellValue:
    key = pick_key(record, candidates)
    if key is None:
        return ABSENT
    return to_cell(record[key])


def get_text(record: RawRecord, candidates: Sequence[str]) -> str:
    return get_cell(record, candidates).as_text()


def get_event_code(record: RawRecord) -> Optional[int]:
    cell = get_cell(record, CODE_CANDS)
    if cell.kind is CellKind.NUMBER:
        v = float(cell.value)
        return int(v) if v.is_integer() else None
    if cell.kind is CellKind.TEXT:
        text = cell.as_text()
        return int(text) if text.isascii() and text.isdigit() else None
    return None


def matching_keys(record: RawRecord, keywords: Sequence[str]) -> List[str]:
    """Keys whose lowercase name contains any keyword, in record order."""
    out: List[str] = []
    for k in record.keys():
        name = _norm(k)
        if any(kw in name for kw in keywords):
            out.append(k)
    return out
