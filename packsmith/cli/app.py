"""Main Typer application — imports and registers all CLI commands.

Entry point: ``packsmith`` (configured via pyproject.toml console_scripts).

Commands: install, plan, rollback, snapshots, quarantine.
"""

from __future__ import annotations

import typer

from packsmith.cli.commands.inspect_cmd import quarantine_cmd, snapshots_cmd
from packsmith.cli.commands.install_cmd import install_cmd
from packsmith.cli.commands.plan_cmd import plan_cmd
from packsmith.cli.commands.rollback_cmd import rollback_cmd

app = typer.Typer(
    name="packsmith",
    help="Packsmith: deterministic lockfile-driven artifact installer.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

# Register subcommands
app.command(name="install", help="Install every artifact pinned by the lockfile.")(install_cmd)
app.command(name="plan", help="Show what an install would do.")(plan_cmd)
app.command(name="rollback", help="Restore the instance from a snapshot.")(rollback_cmd)
app.command(name="snapshots", help="List recorded snapshots.")(snapshots_cmd)
app.command(name="quarantine", help="List quarantined files.")(quarantine_cmd)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
