"""``packsmith install`` — make an instance match its lockfile.

Loads ``pack/lock.json`` (or ``--lockfile``), runs staging recovery, fetches
and verifies what is missing, promotes atomically, and records a
last-known-good snapshot.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel

from packsmith.api import install
from packsmith.cli.common import BASE_DIR_OPTION, INSTANCE_OPTION, fail, resolve_settings
from packsmith.core.errors import PacksmithError
from packsmith.core.lockfile_loader import load_lockfile

console = Console()


def install_cmd(
    instance_id: str = INSTANCE_OPTION,
    base_dir: Path = BASE_DIR_OPTION,
    lockfile_path: Path = typer.Option(
        None,
        "--lockfile",
        "-l",
        help="Lockfile to install (defaults to the instance's pack/lock.json).",
    ),
    snapshot: Optional[bool] = typer.Option(
        None,
        "--snapshot/--no-snapshot",
        help="Record a last-known-good snapshot (defaults to the snapshots_enabled setting).",
    ),
) -> None:
    """Install every artifact pinned by the lockfile."""
    settings = resolve_settings(base_dir, snapshots_enabled=snapshot)
    try:
        paths = settings.instance_paths(instance_id)
        lockfile = load_lockfile(lockfile_path or paths.lockfile_path)
        result = install(lockfile, paths.instance_id, settings=settings)
    except PacksmithError as exc:
        raise fail(console, exc)

    console.print()
    console.print(
        Panel(
            "\n".join([
                "[bold green]Install complete![/bold green]",
                "",
                f"[bold]Instance:[/bold]     {paths.instance_id}",
                f"[bold]Target:[/bold]       {lockfile.target_id}",
                f"[bold]Installed:[/bold]    {result.installed}",
                f"[bold]Verified:[/bold]     {result.verified}",
                f"[bold]Skipped:[/bold]      {result.skipped}",
                f"[bold]Promoted:[/bold]     {result.promoted}",
                f"[bold]Quarantined:[/bold]  {result.quarantined}",
                f"[bold]Snapshot:[/bold]     {result.snapshot_id or '[dim]none[/dim]'}",
            ]),
            title="[bold]Packsmith[/bold]",
            border_style="green",
            padding=(1, 2),
        )
    )
