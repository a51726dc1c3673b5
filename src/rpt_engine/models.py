"""
Report Engine Core Data Models

Pydantic models for column configuration, captured sheet templates and query
results. Persisted payloads keep their camelCase keys through field aliases.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator


# Excel default column width in character units
DEFAULT_CONFIG_WIDTH = 8.43

# Template format versions
LEGACY_TEMPLATE_VERSION = 1
IDENTITY_TEMPLATE_VERSION = 2


# ============================================================================
# COLUMN CONFIGURATION
# ============================================================================

class ColumnConfig(BaseModel):
    """One logical output column bound to a query column or a formula."""
    id: str = Field(..., min_length=1, description="Stable opaque token, never reused")
    source_column: Optional[str] = Field(None, alias="sourceColumn", description="Query column name (None = formula column)")
    display_name: str = Field(..., min_length=1, alias="displayName", description="Header text in the output sheet")
    visible: bool = Field(True, description="Whether the column is rendered")
    formula: Optional[str] = Field(None, description="Spreadsheet formula authored against data row 2")
    width: float = Field(DEFAULT_CONFIG_WIDTH, gt=0, description="Width in Excel character units")

    model_config = {"populate_by_name": True}

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


# ============================================================================
# TEMPLATE SNAPSHOT
# ============================================================================

class StyleData(BaseModel):
    """
    Cell cosmetics captured from the editing surface.

    Keys follow the editor's short names: bl/it/ul/st font flags, fs size,
    ff family, cl/bg colours, ht/vt alignment, tb wrap, n number format and
    bd borders. Every field is resolved leniently at render time, so a
    malformed value costs that one attribute rather than the whole template.
    """
    bl: Any = None
    it: Any = None
    ul: Any = None
    st: Any = None
    fs: Any = None
    ff: Any = None
    cl: Any = None
    bg: Any = None
    ht: Any = None
    vt: Any = None
    tb: Any = None
    n: Any = None
    bd: Any = None

    model_config = {"extra": "allow"}


class CellTemplate(BaseModel):
    """A single captured cell: literal value, style reference and/or formula."""
    v: Any = None
    s: Union[str, StyleData, None] = None
    f: Optional[str] = None
    si: Optional[str] = None

    model_config = {"extra": "allow"}

    @property
    def has_formula(self) -> bool:
        return bool(self.f) or bool(self.si)


class ColumnData(BaseModel):
    w: Optional[float] = Field(None, description="Width in pixels")
    hd: Optional[int] = None

    model_config = {"extra": "allow"}


class FreezeSpec(BaseModel):
    start_row: int = Field(-1, alias="startRow")
    start_column: int = Field(-1, alias="startColumn")
    x_split: int = Field(0, ge=0, alias="xSplit")
    y_split: int = Field(0, ge=0, alias="ySplit")

    model_config = {"populate_by_name": True, "extra": "allow"}


class MergeRange(BaseModel):
    """Merged rectangle, 0-based and inclusive on both ends."""
    start_row: int = Field(..., alias="startRow")
    start_column: int = Field(..., alias="startColumn")
    end_row: int = Field(..., alias="endRow")
    end_column: int = Field(..., alias="endColumn")

    model_config = {"populate_by_name": True, "extra": "allow"}


class SheetSnapshot(BaseModel):
    id: Optional[str] = None
    name: Optional[str] = None
    cell_data: dict[int, dict[int, CellTemplate]] = Field(default_factory=dict, alias="cellData")
    column_data: dict[int, ColumnData] = Field(default_factory=dict, alias="columnData")
    freeze: Optional[FreezeSpec] = None
    merge_data: list[MergeRange] = Field(default_factory=list, alias="mergeData")

    model_config = {"populate_by_name": True, "extra": "allow"}

    def cell(self, row: int, col: int) -> Optional[CellTemplate]:
        return self.cell_data.get(row, {}).get(col)


class WorkbookSnapshot(BaseModel):
    """Opaque cosmetic payload saved by the editing surface."""
    id: Optional[str] = None
    name: Optional[str] = None
    styles: dict[str, Optional[StyleData]] = Field(default_factory=dict)
    sheet_order: list[str] = Field(default_factory=list, alias="sheetOrder")
    sheets: dict[str, SheetSnapshot] = Field(default_factory=dict)

    model_config = {"populate_by_name": True, "extra": "allow"}

    def first_sheet(self) -> Optional[SheetSnapshot]:
        """The sheet the renderer reads: first in sheet order, else first stored."""
        for sheet_id in self.sheet_order:
            if sheet_id in self.sheets:
                return self.sheets[sheet_id]
        for sheet in self.sheets.values():
            return sheet
        return None


class SheetTemplate(BaseModel):
    """Captured cosmetics keyed by column identity rather than position."""
    snapshot: WorkbookSnapshot = Field(default_factory=WorkbookSnapshot)
    column_map: Optional[dict[str, int]] = Field(None, alias="columnMap", description="Column id -> position at save time")
    start_row: int = Field(0, ge=0, alias="startRow", description="Number of preamble rows above the header")
    version: Optional[int] = Field(None, ge=1)

    model_config = {"populate_by_name": True}

    @model_validator(mode="after")
    def infer_version(self) -> "SheetTemplate":
        if self.version is None:
            self.version = IDENTITY_TEMPLATE_VERSION if self.column_map is not None else LEGACY_TEMPLATE_VERSION
        return self

    @property
    def is_identity_mapped(self) -> bool:
        return self.column_map is not None and (self.version or 0) >= IDENTITY_TEMPLATE_VERSION

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


# ============================================================================
# QUERY INPUTS AND REPORT STATE
# ============================================================================

class QueryResult(BaseModel):
    """Rows handed over by the query-execution collaborator."""
    columns: list[str] = Field(default_factory=list)
    rows: list[dict[str, Any]] = Field(default_factory=list)

    @model_validator(mode="after")
    def fill_columns(self) -> "QueryResult":
        if not self.columns and self.rows:
            self.columns = list(self.rows[0].keys())
        return self


class ReportDefinition(BaseModel):
    """Per-report persisted state consumed by the runner."""
    name: str = Field(..., min_length=1)
    column_config: Optional[list[ColumnConfig]] = Field(None, alias="columnConfig")
    formatting: Optional[SheetTemplate] = None

    model_config = {"populate_by_name": True}

    @field_validator("column_config")
    @classmethod
    def empty_config_is_unset(cls, v: Optional[list[ColumnConfig]]) -> Optional[list[ColumnConfig]]:
        return v or None

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


# ============================================================================
# OPERATION RESULTS
# ============================================================================

@dataclass
class ReconcileResult:
    config: list[ColumnConfig]
    warnings: list[str] = field(default_factory=list)


@dataclass
class AppliedColumns:
    """Visible display columns, rows keyed by display name, and parallel ids."""
    columns: list[str]
    rows: list[dict[str, Any]]
    config_ids: list[str]
