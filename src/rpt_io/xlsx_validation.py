"""Workbook inspection helpers for rendered reports."""
from __future__ import annotations

from dataclasses import dataclass
from io import BytesIO
from typing import Iterable

from openpyxl import load_workbook


@dataclass(frozen=True)
class FormulaCheck:
    sheet: str
    cells: Iterable[str]


def load_workbook_bytes(content: bytes):
    return load_workbook(BytesIO(content), data_only=False)


def find_missing_formulas(wb, checks: Iterable[FormulaCheck]) -> list[str]:
    missing: list[str] = []
    for check in checks:
        ws = wb[check.sheet]
        for cell in check.cells:
            value = ws[cell].value
            if not (isinstance(value, str) and value.startswith("=")):
                missing.append(f"{check.sheet}!{cell}")
    return missing


def header_values(ws, header_row: int) -> list:
    return [cell.value for cell in ws[header_row] if cell.value is not None]


def merged_ranges(ws) -> set[str]:
    return {str(rng) for rng in ws.merged_cells.ranges}
