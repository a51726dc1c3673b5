"""
Template Extraction Contract

The editing surface hands the core exactly one thing: the current template,
captured on demand. This module holds the capture rules and the fallback to
the last persisted template when no editing session is active.
"""
from __future__ import annotations

import logging
from typing import Optional, Protocol, Sequence

from rpt_engine.log_utils import log_event
from rpt_engine.models import IDENTITY_TEMPLATE_VERSION, SheetTemplate, WorkbookSnapshot
from rpt_engine.validation import validate_unique_ids

logger = logging.getLogger(__name__)


class TemplateSource(Protocol):
    """Anything that can capture the live template, e.g. an editor session."""

    def extract_template(self) -> Optional[SheetTemplate]:
        ...


def extract_template(
    snapshot: WorkbookSnapshot,
    config_ids: Sequence[str],
    start_row: int = 0,
) -> SheetTemplate:
    """
    Capture a saveable template from an editor snapshot.

    Data-area cells (rows >= start_row) lose their literal values unless they
    hold a formula; preamble rows keep everything. The column map records
    each column id's position at capture time.
    """
    validate_unique_ids(config_ids, "captured column ids")
    captured = snapshot.model_copy(deep=True)
    for sheet in captured.sheets.values():
        for row_idx, row_cells in sheet.cell_data.items():
            if row_idx < start_row:
                continue
            for cell in row_cells.values():
                if not cell.has_formula:
                    cell.v = None

    column_map = {col_id: idx for idx, col_id in enumerate(config_ids)}
    return SheetTemplate(
        snapshot=captured,
        column_map=column_map,
        start_row=start_row,
        version=IDENTITY_TEMPLATE_VERSION,
    )


def resolve_template(
    source: Optional[TemplateSource],
    persisted: Optional[SheetTemplate],
) -> Optional[SheetTemplate]:
    """Prefer the live session's template; fall back to the persisted one."""
    if source is not None:
        live = source.extract_template()
        if live is not None:
            log_event(logger, "template.live", start_row=live.start_row)
            return live
    return persisted
