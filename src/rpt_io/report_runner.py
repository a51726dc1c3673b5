"""
Report Runner

Coordinates one report execution: reconcile the saved column config against
fresh query results, render the workbook with the current template, and
prepare everything the delivery side needs (bytes, filename, variables).
"""
from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from rpt_engine.column_config import (
    apply_column_config,
    generate_column_config,
    migrate_config_widths,
    reconcile_column_config,
)
from rpt_engine.config import RenderSettings
from rpt_engine.extraction import TemplateSource, resolve_template
from rpt_engine.log_utils import log_event
from rpt_engine.models import ColumnConfig, QueryResult, ReportDefinition, SheetTemplate
from rpt_io.writers import generate_excel, report_filename

logger = logging.getLogger(__name__)

_TEMPLATE_VAR = re.compile(r"\{(\w+)\}")


@dataclass
class ReportRun:
    """Outcome of a single report execution."""
    content: bytes
    filename: str
    column_config: list[ColumnConfig]
    template: Optional[SheetTemplate]
    row_count: int
    warnings: list[str] = field(default_factory=list)
    variables: dict[str, str] = field(default_factory=dict)


def replace_template_vars(text: str, variables: dict[str, str]) -> str:
    """Substitute {name} placeholders; unknown names are left as written."""
    return _TEMPLATE_VAR.sub(lambda m: variables.get(m.group(1), m.group(0)), text)


def run_report(
    report: ReportDefinition,
    result: QueryResult,
    *,
    template_source: Optional[TemplateSource] = None,
    on_date: Optional[date] = None,
    settings: Optional[RenderSettings] = None,
) -> ReportRun:
    """
    Execute a report against an already-fetched query result.

    The reconciled column config is returned so the caller can persist it;
    warnings are informational and never stop generation.
    """
    started = time.perf_counter()
    on_date = on_date or date.today()

    warnings: list[str] = []
    if report.column_config:
        reconciled = reconcile_column_config(report.column_config, result.columns)
        config = reconciled.config
        warnings.extend(reconciled.warnings)
    else:
        config = generate_column_config(result.columns)
    config = migrate_config_widths(config)

    applied = apply_column_config(config, result.columns, result.rows)
    template = resolve_template(template_source, report.formatting)

    content = generate_excel(
        report.name,
        applied.columns,
        applied.rows,
        applied.config_ids,
        config,
        template,
        settings=settings,
    )

    run_time = f"{time.perf_counter() - started:.1f}s"
    variables: dict[str, str] = {
        "report_name": report.name,
        "date": on_date.isoformat(),
        "day_of_week": on_date.strftime("%A"),
        "row_count": str(len(result.rows)),
        "run_time": run_time,
    }
    log_event(
        logger,
        "report.run.complete",
        report=report.name,
        rows=len(result.rows),
        warnings=len(warnings),
        run_time=run_time,
    )
    return ReportRun(
        content=content,
        filename=report_filename(report.name, on_date),
        column_config=config,
        template=template,
        row_count=len(result.rows),
        warnings=warnings,
        variables=variables,
    )
