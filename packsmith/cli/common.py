"""Option defaults and setup shared by every CLI command."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape

from packsmith.config import PacksmithConfig, config
from packsmith.core.errors import PacksmithError
from packsmith.core.structured_log import configure_logging

INSTANCE_OPTION = typer.Option(
    None,
    "--instance",
    "-i",
    help="Instance id (defaults to PACKSMITH_DEFAULT_INSTANCE_ID).",
)
BASE_DIR_OPTION = typer.Option(
    None,
    "--base-dir",
    "-b",
    help="Directory holding instances/ (defaults to PACKSMITH_BASE_DIR).",
)


def resolve_settings(base_dir: Path | None = None, **overrides: object) -> PacksmithConfig:
    """The global config with command-line overrides applied, logging configured."""
    update = {k: v for k, v in overrides.items() if v is not None}
    if base_dir is not None:
        update["base_dir"] = base_dir
    settings = config.model_copy(update=update) if update else config
    configure_logging(settings.effective_log_level, settings.log_format)
    return settings


def fail(console: Console, exc: PacksmithError) -> typer.Exit:
    """Print a one-line error and return the exit to raise."""
    console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}", soft_wrap=True, highlight=False)
    return typer.Exit(code=1)
