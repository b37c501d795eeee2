"""Install pipeline: recovery, planning, fetch, promotion, snapshots, rollback."""

from packsmith.install.installer import DeterministicInstaller
from packsmith.install.planner import InstallPlanner
from packsmith.install.rollback import RollbackExecutor
from packsmith.install.snapshot_writer import SnapshotWriter

__all__ = ["DeterministicInstaller", "InstallPlanner", "RollbackExecutor", "SnapshotWriter"]
