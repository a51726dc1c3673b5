"""
Report Workbook Writers

Composes the final XLSX artifact from mapped query data, the column config
and the captured sheet template. Template cosmetics are located through the
column identity position map, never by raw position.
"""
from __future__ import annotations

import logging
import re
from datetime import date, datetime, time, timedelta, timezone
from io import BytesIO
from numbers import Number
from pathlib import Path
from typing import Any, Mapping, Optional, Sequence

from openpyxl import Workbook
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.cell_range import CellRange

from rpt_engine.config import RenderSettings, load_render_settings
from rpt_engine.formulas import adjust_formula_row, translate_formula
from rpt_engine.log_utils import log_event, log_timing
from rpt_engine.models import ColumnConfig, SheetSnapshot, SheetTemplate, StyleData
from rpt_engine.position_map import build_position_map, invert_position_map
from rpt_engine.validation import validate_render_inputs, validate_unique_ids
from rpt_io.xlsx_layout import SheetLayout
from rpt_io.xlsx_styles import (
    build_xlsx_style,
    header_default_style,
    merge_styles,
    resolve_style_ref,
)

logger = logging.getLogger(__name__)

# Column formulas are authored against the first data row of a sheet with no
# preamble: 0-based row 1, worksheet row 2.
COLUMN_FORMULA_ROW = 1

_ILLEGAL_TITLE_CHARS = re.compile(r"[\[\]:*?/\\]")
_FILENAME_UNSAFE = re.compile(r"[^a-zA-Z0-9\-_ ]")
_PLAIN_TYPES = (str, bool, Number, date, time, timedelta)


def _sheet_title(title: str, settings: RenderSettings) -> str:
    clean = _ILLEGAL_TITLE_CHARS.sub("", title).strip().strip("'")
    return clean[: settings.max_sheet_title] or "Report"


def _as_formula(formula: str) -> str:
    return formula if formula.startswith("=") else "=" + formula


def _excel_value(value: Any) -> Any:
    """Coerce a scalar to something a cell can hold; Excel has no timezones."""
    if isinstance(value, datetime):
        if value.tzinfo is not None and value.utcoffset() is not None:
            return value.astimezone(timezone.utc).replace(tzinfo=None)
        return value.replace(tzinfo=None)
    if isinstance(value, time) and value.tzinfo is not None:
        offset = value.utcoffset() or timedelta(0)
        shifted = datetime.combine(date(2000, 1, 1), value.replace(tzinfo=None)) - offset
        return shifted.time()
    if not isinstance(value, _PLAIN_TYPES):
        return str(value)
    return value


def _write_value(cell, value: Any) -> None:
    """Write raw query data; strings that look like formulas stay text."""
    if value is None or value == "":
        return
    value = _excel_value(value)
    cell.value = value
    if isinstance(value, str) and value.startswith("="):
        cell.data_type = "s"


def _write_template_value(cell, value: Any) -> None:
    if value is None:
        return
    cell.value = _excel_value(value)


def _apply_column_widths(
    ws,
    config_ids: Sequence[str],
    config_by_id: Mapping[str, ColumnConfig],
    sheet: Optional[SheetSnapshot],
    current_to_saved: Mapping[int, int],
    settings: RenderSettings,
) -> None:
    for col, config_id in enumerate(config_ids):
        width: Optional[float] = None
        saved = current_to_saved.get(col)
        if sheet is not None and saved is not None:
            column_data = sheet.column_data.get(saved)
            if column_data is not None and column_data.w and column_data.w > 0:
                width = column_data.w / settings.px_per_unit
        if width is None:
            entry = config_by_id.get(config_id)
            width = entry.width if entry is not None else settings.default_column_width
        ws.column_dimensions[get_column_letter(col + 1)].width = round(width, 2)


def _write_preamble(
    ws,
    sheet: SheetSnapshot,
    layout: SheetLayout,
    styles: Mapping[str, Optional[StyleData]],
    settings: RenderSettings,
) -> None:
    for row_idx in sorted(sheet.cell_data):
        if row_idx < 0 or row_idx >= layout.start_row:
            continue
        for col_idx, template_cell in sorted(sheet.cell_data[row_idx].items()):
            if col_idx < 0:
                continue
            cell = ws.cell(row=row_idx + 1, column=col_idx + 1)
            if template_cell.f:
                cell.value = _as_formula(template_cell.f)
            else:
                _write_template_value(cell, template_cell.v)
            style = resolve_style_ref(template_cell.s, styles)
            build_xlsx_style(style, settings).apply(cell)


def _write_header(
    ws,
    columns: Sequence[str],
    layout: SheetLayout,
    sheet: Optional[SheetSnapshot],
    styles: Mapping[str, Optional[StyleData]],
    current_to_saved: Mapping[int, int],
    settings: RenderSettings,
) -> None:
    defaults = header_default_style(settings)
    for col, name in enumerate(columns):
        cell = ws.cell(row=layout.header_row, column=col + 1, value=name)
        template_style = None
        saved = current_to_saved.get(col)
        if sheet is not None and saved is not None:
            template_cell = sheet.cell(layout.start_row, saved)
            if template_cell is not None:
                template_style = resolve_style_ref(template_cell.s, styles)
        build_xlsx_style(merge_styles(defaults, template_style), settings).apply(cell)


def _write_data(ws, columns: Sequence[str], rows: Sequence[Mapping[str, Any]], layout: SheetLayout) -> None:
    for idx, row in enumerate(rows):
        excel_row = layout.data_row(idx)
        for col, name in enumerate(columns):
            _write_value(ws.cell(row=excel_row, column=col + 1), row.get(name))


def _propagate_template_rows(
    ws,
    n_rows: int,
    layout: SheetLayout,
    sheet: SheetSnapshot,
    styles: Mapping[str, Optional[StyleData]],
    pos_map: Mapping[int, int],
    settings: RenderSettings,
) -> None:
    """Replicate the representative template data row onto every output row."""
    for row_idx in sorted(sheet.cell_data):
        if row_idx <= layout.start_row:
            continue
        for col_idx, template_cell in sorted(sheet.cell_data[row_idx].items()):
            current = pos_map.get(col_idx)
            if current is None:
                continue
            style = resolve_style_ref(template_cell.s, styles)
            formula = template_cell.f
            if style is None and not formula:
                continue
            xlsx_style = build_xlsx_style(style, settings)
            for idx in range(n_rows):
                excel_row = layout.data_row(idx)
                cell = ws.cell(row=excel_row, column=current + 1)
                xlsx_style.apply(cell)
                if formula:
                    translated = translate_formula(formula, pos_map, row_idx, excel_row - 1)
                    cell.value = _as_formula(translated)


def _write_column_formulas(
    ws,
    n_rows: int,
    layout: SheetLayout,
    config_ids: Sequence[str],
    config_by_id: Mapping[str, ColumnConfig],
) -> None:
    for col, config_id in enumerate(config_ids):
        entry = config_by_id.get(config_id)
        if entry is None or not entry.formula:
            continue
        for idx in range(n_rows):
            excel_row = layout.data_row(idx)
            adjusted = adjust_formula_row(entry.formula, COLUMN_FORMULA_ROW, excel_row - 1)
            ws.cell(row=excel_row, column=col + 1).value = _as_formula(adjusted)


def _apply_merges(ws, sheet: SheetSnapshot, layout: SheetLayout, pos_map: Mapping[int, int]) -> None:
    placed: list[CellRange] = []
    for merge in sheet.merge_data:
        if merge.start_row < layout.start_row:
            start_col, end_col = merge.start_column, merge.end_column
        else:
            start_col = pos_map.get(merge.start_column)
            end_col = pos_map.get(merge.end_column)
            if start_col is None or end_col is None:
                log_event(logger, "merge.dropped", level=logging.DEBUG, reason="unmapped column")
                continue
        min_col, max_col = sorted((start_col, end_col))
        min_row, max_row = sorted((merge.start_row, merge.end_row))
        if min_row < 0 or min_col < 0 or (min_row == max_row and min_col == max_col):
            log_event(logger, "merge.dropped", level=logging.DEBUG, reason="invalid range")
            continue
        try:
            target = CellRange(
                min_col=min_col + 1, min_row=min_row + 1, max_col=max_col + 1, max_row=max_row + 1
            )
        except ValueError as exc:
            log_event(logger, "merge.dropped", level=logging.DEBUG, reason=str(exc))
            continue
        if any(not target.isdisjoint(existing) for existing in placed):
            log_event(logger, "merge.dropped", level=logging.DEBUG, reason="overlap", range=target.coord)
            continue
        ws.merge_cells(target.coord)
        placed.append(target)


def _apply_freeze(ws, sheet: Optional[SheetSnapshot], layout: SheetLayout) -> None:
    if sheet is not None and sheet.freeze is not None:
        freeze = sheet.freeze
        if freeze.x_split or freeze.y_split:
            ws.freeze_panes = ws.cell(row=freeze.y_split + 1, column=freeze.x_split + 1)
        return
    ws.freeze_panes = layout.default_freeze()


def generate_excel(
    title: str,
    columns: Sequence[str],
    rows: Sequence[Mapping[str, Any]],
    config_ids: Sequence[str],
    column_config: Sequence[ColumnConfig],
    template: Optional[SheetTemplate] = None,
    *,
    settings: Optional[RenderSettings] = None,
) -> bytes:
    """
    Render mapped query data into XLSX bytes.

    Args:
        title: Sheet title (truncated to Excel's limit)
        columns: Display column names, in output order
        rows: Rows keyed by display name
        config_ids: Column ids parallel to columns
        column_config: Full column config (visible or not)
        template: Captured cosmetics, if any

    Returns:
        The complete workbook. Structural input errors raise before any
        output is produced.
    """
    settings = settings or load_render_settings()
    validate_render_inputs(columns, rows, config_ids)
    validate_unique_ids([entry.id for entry in column_config], "column config")

    layout = SheetLayout(start_row=template.start_row if template is not None else 0)
    sheet = template.snapshot.first_sheet() if template is not None else None
    styles = template.snapshot.styles if template is not None else {}
    pos_map = build_position_map(template, config_ids)
    current_to_saved = invert_position_map(pos_map)
    config_by_id = {entry.id: entry for entry in column_config}

    with log_timing(logger, "workbook.render", title=title, rows=len(rows), columns=len(columns)):
        wb = Workbook()
        ws = wb.active
        ws.title = _sheet_title(title, settings)

        _apply_column_widths(ws, config_ids, config_by_id, sheet, current_to_saved, settings)
        if sheet is not None:
            _write_preamble(ws, sheet, layout, styles, settings)
        _write_header(ws, columns, layout, sheet, styles, current_to_saved, settings)
        _write_data(ws, columns, rows, layout)
        if sheet is not None:
            _propagate_template_rows(ws, len(rows), layout, sheet, styles, pos_map, settings)
        _write_column_formulas(ws, len(rows), layout, config_ids, config_by_id)
        if sheet is not None:
            _apply_merges(ws, sheet, layout, pos_map)
        _apply_freeze(ws, sheet, layout)
        if columns:
            ws.auto_filter.ref = layout.header_range(len(columns))

        buffer = BytesIO()
        wb.save(buffer)
    return buffer.getvalue()


def report_filename(name: str, on_date: date) -> str:
    """Attachment name: unsafe characters stripped, ISO date appended."""
    stem = _FILENAME_UNSAFE.sub("", name).strip() or "report"
    return f"{stem}_{on_date.isoformat()}.xlsx"


def export_xlsx(content: bytes, path: str | Path) -> Path:
    """
    Write rendered workbook bytes to disk.

    Args:
        content: Output of generate_excel
        path: Output file path

    Returns:
        The written path
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
    return path
