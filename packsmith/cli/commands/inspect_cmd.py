"""``packsmith snapshots`` and ``packsmith quarantine`` — read-only listings."""

from __future__ import annotations

from pathlib import Path

from rich.console import Console
from rich.table import Table

from packsmith.cli.common import BASE_DIR_OPTION, INSTANCE_OPTION, fail, resolve_settings
from packsmith.core.errors import InvalidSnapshotError, LegacySnapshotError, PacksmithError
from packsmith.install.quarantine import QuarantineStore
from packsmith.install.rollback import RollbackExecutor

console = Console()


def snapshots_cmd(
    instance_id: str = INSTANCE_OPTION,
    base_dir: Path = BASE_DIR_OPTION,
) -> None:
    """List snapshots, oldest first, with their restore status."""
    settings = resolve_settings(base_dir)
    try:
        executor = RollbackExecutor(settings.instance_paths(instance_id))
        snapshot_ids = executor.list_snapshots()
    except PacksmithError as exc:
        raise fail(console, exc)

    if not snapshot_ids:
        console.print("[dim]No snapshots recorded.[/dim]")
        return

    table = Table(title="Snapshots")
    table.add_column("Snapshot", style="cyan")
    table.add_column("Target")
    table.add_column("Artifacts", justify="right")
    table.add_column("Status")
    for snapshot_id in snapshot_ids:
        try:
            manifest = executor.load_manifest(snapshot_id)
        except LegacySnapshotError:
            table.add_row(snapshot_id, "-", "-", "[yellow]legacy[/yellow]")
            continue
        except InvalidSnapshotError:
            table.add_row(snapshot_id, "-", "-", "[red]invalid[/red]")
            continue
        table.add_row(
            snapshot_id,
            manifest.target_id,
            str(manifest.artifact_count),
            "[green]ok[/green]",
        )
    console.print(table)


def quarantine_cmd(
    instance_id: str = INSTANCE_OPTION,
    base_dir: Path = BASE_DIR_OPTION,
) -> None:
    """List files moved to quarantine."""
    settings = resolve_settings(base_dir)
    try:
        entries = QuarantineStore(settings.instance_paths(instance_id)).entries()
    except PacksmithError as exc:
        raise fail(console, exc)

    if not entries:
        console.print("[dim]Quarantine is empty.[/dim]")
        return

    table = Table(title="Quarantined files")
    table.add_column("Artifact", style="cyan")
    table.add_column("Original path")
    table.add_column("Reason", no_wrap=True)
    table.add_column("Stored as")
    for entry in entries:
        table.add_row(
            entry.original_name,
            entry.original_path,
            entry.reason,
            Path(entry.quarantine_path).name,
        )
    console.print(table)
