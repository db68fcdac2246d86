"""
CLI: ``analysis-spine serve`` — start the API server.
"""

from __future__ import annotations

import typer

from analysis_spine.cli.utils import console, load_upstream


def serve(
    upstream: str = typer.Option(
        ...,
        "--upstream",
        "-u",
        help="Provider callable as 'package.module:function'",
    ),
    host: str = typer.Option("0.0.0.0", "--host", "-h", help="Bind address"),
    port: int = typer.Option(12000, "--port", "-p", help="Bind port"),
    log_level: str | None = typer.Option(None, "--log-level", help="Override ANALYSIS_LOG_LEVEL"),
) -> None:
    """Start the analysis REST API around an upstream provider."""
    import uvicorn

    from analysis_spine.api import create_app
    from analysis_spine.core.logging import configure_logging
    from analysis_spine.core.settings import get_settings

    provider = load_upstream(upstream)
    settings = get_settings()
    level = (log_level or settings.log_level).upper()
    configure_logging(level=level, json_format=settings.log_json)

    console.print(f"[bold green]Starting analysis-spine API[/bold green] on {host}:{port}")
    uvicorn.run(
        create_app(settings=settings, upstream=provider),
        host=host,
        port=port,
        log_level=level.lower(),
    )
