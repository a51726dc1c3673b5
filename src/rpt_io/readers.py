"""
Report I/O Readers

YAML / JSON parsing for report definitions and query results. Query results
may also come as CSV.
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pandas as pd
import yaml
from pydantic import ValidationError

from rpt_engine.models import QueryResult, ReportDefinition, SheetTemplate
from rpt_engine.validation import TemplateFormatError


def _load_structured(path: Path) -> Any:
    """Load a YAML or JSON document, chosen by extension."""
    with open(path, encoding="utf-8") as f:
        if path.suffix.lower() in (".yaml", ".yml"):
            return yaml.safe_load(f)
        return json.load(f)


def _check_file(path: str | Path) -> Path:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Input file not found: {path}")
    return path


def parse_report_dict(data: dict[str, Any]) -> ReportDefinition:
    """
    Parse a report document into a ReportDefinition.

    Raises TemplateFormatError when the column config or formatting payload
    does not match the data model.
    """
    try:
        return ReportDefinition.model_validate(data)
    except ValidationError as exc:
        raise TemplateFormatError(f"Invalid report definition: {exc}") from exc


def parse_template_dict(data: dict[str, Any]) -> SheetTemplate:
    try:
        return SheetTemplate.model_validate(data)
    except ValidationError as exc:
        raise TemplateFormatError(f"Invalid sheet template: {exc}") from exc


def read_report_file(path: str | Path) -> ReportDefinition:
    path = _check_file(path)
    data = _load_structured(path)
    if not isinstance(data, dict):
        raise TemplateFormatError(f"Report file must contain a mapping: {path}")
    return parse_report_dict(data)


def write_report_file(report: ReportDefinition, path: str | Path) -> Path:
    """Persist a report definition in the format implied by the extension."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = report.to_payload()
    with open(path, "w", encoding="utf-8") as f:
        if path.suffix.lower() in (".yaml", ".yml"):
            yaml.safe_dump(payload, f, default_flow_style=False, sort_keys=False, allow_unicode=True)
        else:
            json.dump(payload, f, indent=2, default=str)
    return path


def _read_csv(path: Path) -> QueryResult:
    df = pd.read_csv(path)
    df = df.astype(object).where(df.notna(), None)
    return QueryResult(columns=[str(c) for c in df.columns], rows=df.to_dict(orient="records"))


def read_query_result(path: str | Path) -> QueryResult:
    """
    Read a query result file.

    JSON/YAML may hold {"columns": [...], "rows": [...]} or a bare list of
    row mappings; CSV headers become the column list.
    """
    path = _check_file(path)
    if path.suffix.lower() == ".csv":
        return _read_csv(path)

    data = _load_structured(path)
    if isinstance(data, list):
        data = {"rows": data}
    try:
        return QueryResult.model_validate(data)
    except ValidationError as exc:
        raise TemplateFormatError(f"Invalid query result in {path}: {exc}") from exc
