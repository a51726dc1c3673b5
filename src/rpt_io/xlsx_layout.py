"""
XLSX Report Layout

Row addressing for the preamble / header / data model. Template snapshots are
0-based; worksheet rows are 1-based.
"""
from __future__ import annotations

from dataclasses import dataclass

from openpyxl.utils import get_column_letter


@dataclass(frozen=True)
class SheetLayout:
    """Layout for a sheet with start_row preamble rows above the header."""
    start_row: int = 0

    @property
    def header_row(self) -> int:
        return self.start_row + 1

    @property
    def first_data_row(self) -> int:
        return self.start_row + 2

    def data_row(self, index: int) -> int:
        return self.first_data_row + index

    def header_range(self, n_cols: int) -> str:
        return f"{self.cell(1, self.header_row)}:{self.cell(n_cols, self.header_row)}"

    def default_freeze(self) -> str:
        """First cell below the frozen preamble and header rows."""
        return self.cell(1, self.first_data_row)

    @staticmethod
    def cell(col: int, row: int) -> str:
        return f"{get_column_letter(col)}{row}"
