"""
Report CLI Application

Typer-based command-line interface for rendering report workbooks.
"""
from __future__ import annotations

from datetime import date, datetime
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from rpt_engine.column_config import (
    create_formula_column,
    generate_column_config,
    reconcile_column_config,
)
from rpt_engine.log_utils import configure_logging
from rpt_engine.models import ReportDefinition
from rpt_io.readers import read_query_result, read_report_file, write_report_file
from rpt_io.report_runner import run_report
from rpt_io.writers import export_xlsx
from rpt_ui_cli.display import display_column_config, display_warnings


app = typer.Typer(
    name="rpt",
    help="Render query results into formatted report workbooks",
    add_completion=False,
)

console = Console()


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        help="Logging level (defaults to RPT_LOG_LEVEL or WARNING)",
    ),
) -> None:
    configure_logging(log_level)


def _resolve_file(path: Path, label: str) -> Path:
    if not path.exists():
        raise typer.BadParameter(f"{label} not found: {path}")
    if not path.is_file():
        raise typer.BadParameter(f"{label} is not a file: {path}")
    return path


def _parse_date(value: Optional[str]) -> date:
    if value is None:
        return date.today()
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        raise typer.BadParameter(f"Invalid date (expected YYYY-MM-DD): {value}")


@app.command()
def render(
    report_file: Path = typer.Argument(..., help="Report definition (YAML or JSON)"),
    data: Path = typer.Option(..., "--data", "-d", help="Query result (JSON, YAML or CSV)"),
    output: Path = typer.Option(
        Path("output"),
        "--output", "-o",
        help="Output .xlsx path, or a directory for the dated filename",
    ),
    run_date: Optional[str] = typer.Option(None, "--date", help="Run date for the filename (YYYY-MM-DD)"),
    save_config: bool = typer.Option(
        False,
        "--save-config",
        help="Write the reconciled column config back into the report file",
    ),
) -> None:
    """
    Render a report workbook.

    Reconciles the saved column config against the query result, applies the
    saved formatting template and writes the workbook.
    """
    try:
        report_file = _resolve_file(report_file, "Report file")
        data = _resolve_file(data, "Data file")
        on_date = _parse_date(run_date)

        console.print(f"[dim]Reading report: {report_file}[/dim]")
        report = read_report_file(report_file)
        result = read_query_result(data)

        run = run_report(report, result, on_date=on_date)
        display_warnings(run.warnings)

        target = output if output.suffix.lower() == ".xlsx" else output / run.filename
        export_xlsx(run.content, target)
        console.print(f"[green]✓ Exported {run.row_count} rows to {target}[/green]")

        if save_config:
            updated = report.model_copy(update={"column_config": run.column_config})
            write_report_file(updated, report_file)
            console.print(f"[green]✓ Saved column config to {report_file}[/green]")

    except typer.BadParameter:
        raise
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1)


@app.command()
def reconcile(
    report_file: Path = typer.Argument(..., help="Report definition (YAML or JSON)"),
    data: Path = typer.Option(..., "--data", "-d", help="Query result (JSON, YAML or CSV)"),
    write: bool = typer.Option(False, "--write", "-w", help="Save the reconciled config"),
) -> None:
    """Show how the saved column config lines up with a fresh query result."""
    try:
        report_file = _resolve_file(report_file, "Report file")
        data = _resolve_file(data, "Data file")
        report = read_report_file(report_file)
        result = read_query_result(data)

        if report.column_config:
            reconciled = reconcile_column_config(report.column_config, result.columns)
            config, warnings = reconciled.config, reconciled.warnings
        else:
            config, warnings = generate_column_config(result.columns), []

        display_column_config(config, result.columns)
        display_warnings(warnings)

        if write:
            write_report_file(report.model_copy(update={"column_config": config}), report_file)
            console.print(f"[green]✓ Saved column config to {report_file}[/green]")

    except typer.BadParameter:
        raise
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1)


@app.command("init-config")
def init_config(
    data: Path = typer.Option(..., "--data", "-d", help="Query result (JSON, YAML or CSV)"),
    name: str = typer.Option(..., "--name", "-n", help="Report name"),
    output: Path = typer.Option(
        Path("reports/report.yaml"),
        "--output", "-o",
        help="Report definition file to create",
    ),
) -> None:
    """Create a report definition with a generated column config."""
    try:
        data = _resolve_file(data, "Data file")
        result = read_query_result(data)
        report = ReportDefinition(name=name, column_config=generate_column_config(result.columns))
        write_report_file(report, output)
        display_column_config(report.column_config or [], result.columns)
        console.print(f"[green]✓ Created report definition: {output}[/green]")
    except typer.BadParameter:
        raise
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1)


@app.command("add-formula")
def add_formula(
    report_file: Path = typer.Argument(..., help="Report definition (YAML or JSON)"),
    display_name: str = typer.Option(..., "--name", "-n", help="Header for the new column"),
    formula: str = typer.Option(..., "--formula", "-f", help="Formula written against row 2, e.g. =B2*1.1"),
) -> None:
    """Append a formula column to a report's column config."""
    try:
        report_file = _resolve_file(report_file, "Report file")
        report = read_report_file(report_file)
        config = list(report.column_config or [])
        config.append(create_formula_column(display_name, formula))
        write_report_file(report.model_copy(update={"column_config": config}), report_file)
        console.print(f"[green]✓ Added formula column '{display_name}'[/green]")
    except typer.BadParameter:
        raise
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
