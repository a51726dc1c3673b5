"""
Report CLI Display

Rich table formatting for terminal output.
"""
from __future__ import annotations

from typing import Sequence

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from rpt_engine.column_config import is_missing
from rpt_engine.models import ColumnConfig


console = Console()


def display_header(title: str) -> None:
    """Display a section header."""
    console.print()
    console.print(Panel(Text(title, style="bold white"), style="blue"))


def display_column_config(config: Sequence[ColumnConfig], query_columns: Sequence[str]) -> None:
    """Display the column config with missing sources highlighted."""
    display_header("Column Configuration")

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Id", style="dim")
    table.add_column("Display Name")
    table.add_column("Source")
    table.add_column("Visible", justify="center")
    table.add_column("Width", justify="right")
    table.add_column("Formula")

    for idx, entry in enumerate(config):
        source = entry.source_column or "-"
        if is_missing(entry, query_columns):
            source = f"[red]{source} (missing)[/red]"
        table.add_row(
            str(idx),
            entry.id,
            entry.display_name,
            source,
            "✓" if entry.visible else "",
            f"{entry.width:.2f}",
            entry.formula or "",
        )

    console.print(table)


def display_warnings(warnings: Sequence[str]) -> None:
    if not warnings:
        return
    display_header("Warnings")
    for message in warnings:
        console.print(f"[yellow]! {message}[/yellow]")
