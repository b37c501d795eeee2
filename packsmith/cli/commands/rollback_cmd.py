"""``packsmith rollback`` — restore an instance from a snapshot.

Every snapshot file is verified before the live tree is touched; an invalid
or legacy snapshot is refused outright.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel

from packsmith.api import rollback
from packsmith.cli.common import BASE_DIR_OPTION, INSTANCE_OPTION, fail, resolve_settings
from packsmith.core.errors import PacksmithError

console = Console()


def rollback_cmd(
    snapshot_id: str = typer.Option(
        None,
        "--snapshot",
        "-s",
        help="Snapshot id to restore (defaults to the latest).",
    ),
    instance_id: str = INSTANCE_OPTION,
    base_dir: Path = BASE_DIR_OPTION,
) -> None:
    """Restore the instance to a last-known-good snapshot."""
    settings = resolve_settings(base_dir)
    try:
        result = rollback(instance_id, snapshot_id, settings=settings)
    except PacksmithError as exc:
        raise fail(console, exc)

    console.print()
    console.print(
        Panel(
            "\n".join([
                "[bold green]Rollback complete![/bold green]",
                "",
                f"[bold]Snapshot:[/bold]  {result.snapshot_id}",
                f"[bold]Restored:[/bold]  {result.restored_count}",
            ]),
            title="[bold]Packsmith[/bold]",
            border_style="green",
            padding=(1, 2),
        )
    )
