"""
CLI utility helpers — output consoles and upstream loading.
"""

from __future__ import annotations

import importlib

import typer
from rich.console import Console

from analysis_spine.orchestration.analysis import Upstream

console = Console()
err_console = Console(stderr=True)


def load_upstream(path: str) -> Upstream:
    """Resolve ``"package.module:attr"`` to an async upstream callable.

    Raises:
        typer.BadParameter: If the path is malformed, cannot be imported, or
            does not name a callable.
    """
    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        raise typer.BadParameter(f"Expected 'module:attr', got {path!r}")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise typer.BadParameter(f"Cannot import {module_name!r}: {e}") from e

    target = module
    for part in attr.split("."):
        try:
            target = getattr(target, part)
        except AttributeError as e:
            raise typer.BadParameter(f"{module_name!r} has no attribute {attr!r}") from e

    if not callable(target):
        raise typer.BadParameter(f"{path!r} is not callable")
    return target
