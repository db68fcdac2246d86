"""
CLI: ``analysis-spine config`` — configuration inspection.
"""

from __future__ import annotations

import json

import typer

from analysis_spine.cli.utils import console, err_console

app = typer.Typer(no_args_is_help=True)


@app.command("show")
def show_config(
    format: str = typer.Option("table", "--format", "-f", help="Output format: table, json, env"),
) -> None:
    """Show the effective orchestration settings."""
    from analysis_spine.core.settings import get_settings

    settings = get_settings()
    values = settings.model_dump(mode="json")

    if format == "json":
        console.print_json(json.dumps(values))
        return

    if format == "env":
        for key, value in sorted(values.items()):
            console.print(f"ANALYSIS_{key.upper()}={'' if value is None else value}")
        return

    if format != "table":
        err_console.print(f"[red]Unknown format:[/red] {format}")
        raise typer.Exit(1)

    from rich.table import Table

    table = Table(title="Orchestration settings")
    table.add_column("Setting")
    table.add_column("Value")
    for key, value in sorted(values.items()):
        table.add_row(key, str(value))
    console.print(table)
