"""
Column Registry

Assigns stable column identities and reconciles them against evolving query
result shapes. Every entry carries an opaque id that survives reorders and is
the key template cosmetics are stored under.
"""
from __future__ import annotations

import logging
import re
import secrets
from typing import Any, Iterable, Mapping, Sequence

from rpt_engine.config import LEGACY_PIXEL_THRESHOLD, PX_PER_EXCEL_WIDTH
from rpt_engine.log_utils import log_event
from rpt_engine.models import (
    DEFAULT_CONFIG_WIDTH,
    AppliedColumns,
    ColumnConfig,
    ReconcileResult,
)
from rpt_engine.validation import validate_unique_ids

logger = logging.getLogger(__name__)

_CAMEL_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")
_SEPARATORS = re.compile(r"[_\-\s]+")
_WORD_START = re.compile(r"\b\w")


def generate_id() -> str:
    """16 hex chars from the OS CSPRNG; no shared state between calls."""
    return secrets.token_hex(8)


def prettify_column_name(name: str) -> str:
    """
    Turn a SQL column name into a header label.

    "employee_id" -> "Employee Id", "firstName" -> "First Name"
    """
    spaced = _CAMEL_BOUNDARY.sub(r"\1 \2", name)
    spaced = _SEPARATORS.sub(" ", spaced).strip()
    return _WORD_START.sub(lambda m: m.group(0).upper(), spaced)


def _new_entry(column: str, position: int) -> ColumnConfig:
    return ColumnConfig(
        id=generate_id(),
        source_column=column,
        display_name=prettify_column_name(column) or column.strip() or f"Column {position + 1}",
        visible=True,
        width=DEFAULT_CONFIG_WIDTH,
    )


def generate_column_config(columns: Sequence[str]) -> list[ColumnConfig]:
    """Auto-generate a config from query result columns (first run)."""
    return [_new_entry(col, idx) for idx, col in enumerate(columns)]


def reconcile_column_config(
    existing: Sequence[ColumnConfig],
    new_columns: Sequence[str],
) -> ReconcileResult:
    """
    Reconcile a saved config against a fresh query's columns.

    - Matched entries are kept in place.
    - Entries whose source disappeared are kept and flagged (formula entries
      are never flagged).
    - Query columns nobody references are appended with defaults.

    Existing entries are never reordered or removed.
    """
    warnings: list[str] = []
    new_column_set = set(new_columns)
    used_sources: set[str] = set()

    reconciled: list[ColumnConfig] = []
    for entry in existing:
        if entry.source_column and entry.source_column not in new_column_set and not entry.formula:
            warnings.append(
                f'Column "{entry.display_name}" (source: {entry.source_column}) '
                "is no longer in the query results"
            )
        if entry.source_column:
            used_sources.add(entry.source_column)
        reconciled.append(entry.model_copy(deep=True))

    for col in new_columns:
        if col in used_sources:
            continue
        reconciled.append(_new_entry(col, len(reconciled)))
        used_sources.add(col)
        warnings.append(f'New column "{col}" added to config')

    for message in warnings:
        log_event(logger, "columns.reconcile.warning", level=logging.WARNING, detail=message)
    return ReconcileResult(config=reconciled, warnings=warnings)


def apply_column_config(
    config: Sequence[ColumnConfig],
    raw_columns: Sequence[str],
    raw_rows: Iterable[Mapping[str, Any]],
) -> AppliedColumns:
    """Project raw query rows onto the visible config entries, in config order."""
    visible = [entry for entry in config if entry.visible]
    validate_unique_ids([entry.id for entry in visible])
    columns = [entry.display_name for entry in visible]
    config_ids = [entry.id for entry in visible]

    rows: list[dict[str, Any]] = []
    for raw_row in raw_rows:
        mapped: dict[str, Any] = {}
        for entry in visible:
            if entry.formula:
                # Computed by the spreadsheet at open time
                mapped[entry.display_name] = ""
            elif entry.source_column is not None and entry.source_column in raw_row:
                mapped[entry.display_name] = raw_row[entry.source_column]
            else:
                mapped[entry.display_name] = ""
        rows.append(mapped)

    return AppliedColumns(columns=columns, rows=rows, config_ids=config_ids)


def is_missing(entry: ColumnConfig, query_columns: Sequence[str]) -> bool:
    if entry.source_column is None:
        return False
    return entry.source_column not in query_columns


def create_formula_column(display_name: str, formula: str) -> ColumnConfig:
    return ColumnConfig(
        id=generate_id(),
        source_column=None,
        display_name=display_name,
        visible=True,
        formula=formula,
        width=DEFAULT_CONFIG_WIDTH,
    )


def migrate_config_widths(config: Sequence[ColumnConfig]) -> list[ColumnConfig]:
    """
    Convert legacy pixel widths (> 50) to character units.

    Converted widths are capped at the threshold so a second pass never
    divides again. The cost is that very wide legacy columns (over 350 px,
    e.g. 400 px -> 57.14) come out at 50 instead of their exact converted
    width; the alternative would be re-dividing on every run.
    """
    migrated: list[ColumnConfig] = []
    for entry in config:
        width = entry.width
        if width > LEGACY_PIXEL_THRESHOLD:
            width = min(round(width / PX_PER_EXCEL_WIDTH, 2), float(LEGACY_PIXEL_THRESHOLD))
        migrated.append(entry.model_copy(update={"width": width}))
    return migrated
