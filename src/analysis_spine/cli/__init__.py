"""``analysis-spine`` command-line interface (Typer + rich)."""
