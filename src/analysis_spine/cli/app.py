"""
Root Typer application for the analysis-spine CLI.

Sub-commands import their heavy dependencies (FastAPI, uvicorn) only when
they run.
"""

from __future__ import annotations

import typer
from typer import Typer

app = Typer(
    name="analysis-spine",
    help="analysis-spine — cached, rate-limited, retrying AI analysis requests.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from analysis_spine import __version__

        typer.echo(f"analysis-spine {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """analysis-spine CLI — serve the API, inspect config, classify errors."""


# ── Sub-command registration ─────────────────────────────────────────────

from analysis_spine.cli.classify import classify_command  # noqa: E402
from analysis_spine.cli.config import app as config_app  # noqa: E402
from analysis_spine.cli.serve import serve  # noqa: E402

app.command("serve")(serve)
app.command("classify")(classify_command)
app.add_typer(config_app, name="config", help="Configuration inspection.")


if __name__ == "__main__":
    app()
