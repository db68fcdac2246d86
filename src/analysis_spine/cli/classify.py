"""
CLI: ``analysis-spine classify`` — show how a failure would be classified.
"""

from __future__ import annotations

import typer

from analysis_spine.cli.utils import console


def classify_command(
    text: str = typer.Argument(..., help="Error message to classify"),
    status: int | None = typer.Option(None, "--status", "-s", help="HTTP status of the failure"),
    as_json: bool = typer.Option(False, "--json", help="Print JSON instead of a table"),
) -> None:
    """Classify an error message (and optional HTTP status)."""
    from analysis_spine.core.classifier import classify, should_notify_user
    from analysis_spine.core.errors import UpstreamHTTPError

    raw = UpstreamHTTPError(status, text) if status is not None else text
    error = classify(raw)

    if as_json:
        console.print_json(
            data={**error.to_log_dict(), "notify_user": should_notify_user(error)}
        )
        return

    from rich.table import Table

    table = Table(show_header=False)
    table.add_row("kind", error.kind.value)
    table.add_row("retryable", str(error.retryable))
    table.add_row("notify user", str(should_notify_user(error)))
    table.add_row("message", error.message)
    table.add_row("details", error.details or "")
    console.print(table)
