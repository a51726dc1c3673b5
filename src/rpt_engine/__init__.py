"""
Report Engine

Column identity and template reconciliation for report workbooks:
- Stable column ids reconciled against changing query results
- Identity-keyed sheet templates captured from the editing surface
- Saved-to-current column position mapping
- Formula translation for column moves and row replication
"""
from rpt_engine.column_config import (
    apply_column_config,
    create_formula_column,
    generate_column_config,
    is_missing,
    migrate_config_widths,
    reconcile_column_config,
)
from rpt_engine.extraction import TemplateSource, extract_template, resolve_template
from rpt_engine.formulas import adjust_formula_row, remap_formula_columns
from rpt_engine.models import ColumnConfig, QueryResult, ReportDefinition, SheetTemplate
from rpt_engine.position_map import build_position_map

__all__ = [
    "ColumnConfig",
    "SheetTemplate",
    "QueryResult",
    "ReportDefinition",
    "generate_column_config",
    "reconcile_column_config",
    "apply_column_config",
    "create_formula_column",
    "is_missing",
    "migrate_config_widths",
    "build_position_map",
    "remap_formula_columns",
    "adjust_formula_row",
    "extract_template",
    "resolve_template",
    "TemplateSource",
]
