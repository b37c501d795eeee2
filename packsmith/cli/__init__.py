"""Packsmith CLI — Typer-based command-line interface.

Provides the ``packsmith`` command with subcommands for installing a
lockfile, previewing the install plan, rolling back to a snapshot, and
inspecting snapshots and quarantined files.

All output uses Rich for formatted terminal display.
"""
