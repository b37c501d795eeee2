"""Packsmith: deterministic, lockfile-driven artifact installer.

  - Staging recovery: interrupted installs resume without re-fetching
  - Quarantine: corrupted files are moved aside, never deleted
  - Atomic promotion: final files are replaced by rename only
  - Materialized snapshots with verified rollback
"""

__version__ = "0.3.0"
__description__ = "Deterministic lockfile-driven artifact installer with verified rollback"

from packsmith.api import install, rollback
from packsmith.core.lockfile_loader import load_lockfile

__all__ = ["install", "rollback", "load_lockfile", "__version__"]
