"""``packsmith plan`` — show what an install would do, without doing it."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from packsmith.cli.common import BASE_DIR_OPTION, INSTANCE_OPTION, fail, resolve_settings
from packsmith.core.errors import PacksmithError
from packsmith.core.lockfile_loader import load_lockfile
from packsmith.install.planner import InstallPlanner
from packsmith.models.install import Disposition

console = Console()

_STYLES = {
    Disposition.NEEDS_INSTALL: "yellow",
    Disposition.NEEDS_VERIFICATION: "red",
    Disposition.SATISFIED: "green",
}


def plan_cmd(
    instance_id: str = INSTANCE_OPTION,
    base_dir: Path = BASE_DIR_OPTION,
    lockfile_path: Path = typer.Option(
        None,
        "--lockfile",
        "-l",
        help="Lockfile to plan against (defaults to the instance's pack/lock.json).",
    ),
) -> None:
    """Diff the lockfile against the instance tree."""
    settings = resolve_settings(base_dir)
    try:
        paths = settings.instance_paths(instance_id)
        lockfile = load_lockfile(lockfile_path or paths.lockfile_path)
        entries = InstallPlanner(paths).plan(lockfile)
    except PacksmithError as exc:
        raise fail(console, exc)

    if not entries:
        console.print("[dim]Lockfile pins no artifacts.[/dim]")
        return

    table = Table(title=f"Install plan — {paths.instance_id}")
    table.add_column("Artifact", style="cyan")
    table.add_column("Kind")
    table.add_column("Path")
    table.add_column("Disposition")
    for entry in entries:
        style = _STYLES[entry.disposition]
        table.add_row(
            entry.artifact.name,
            entry.artifact.kind.value,
            entry.artifact.path,
            f"[{style}]{entry.disposition.value}[/{style}]",
        )
    console.print(table)
