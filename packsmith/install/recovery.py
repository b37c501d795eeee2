"""Staging recovery scanner.

Runs once per install, before planning.  Staged files left behind by an
interrupted run are checked against the lockfile: valid ones are resumed
without re-fetching, corrupt ones are deleted on the spot so no later step can
pick up a poisoned file.  Staging entries that sit where an artifact needs a
directory (or a directory where it needs a file) are removed as well.
Final-location files are never touched here.
"""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path

from packsmith.core.hasher import verify_file
from packsmith.core.paths import InstancePaths
from packsmith.install.decisions import DecisionLog
from packsmith.models.install import DecisionKind
from packsmith.models.lockfile import Artifact, Lockfile

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecoveryScan:
    resumable: frozenset[str]
    discarded: frozenset[str]


class StagingRecoveryScanner:
    """Classifies leftover staged artifacts as resumable or corrupt."""

    def __init__(self, paths: InstancePaths, decisions: DecisionLog | None = None) -> None:
        self._paths = paths
        self._decisions = decisions if decisions is not None else DecisionLog()

    def scan(self, lockfile: Lockfile) -> RecoveryScan:
        if not self._paths.staging_root.is_dir():
            return RecoveryScan(resumable=frozenset(), discarded=frozenset())

        logger.info("checking staging area for recoverable artifacts")
        resumable: set[str] = set()
        discarded: set[str] = set()

        for artifact in lockfile.installable_artifacts():
            staged = self._paths.staging_path(artifact)
            self._clear_blockers(artifact, staged)
            if not staged.is_file():
                continue
            check = verify_file(staged, artifact.checksum)
            if check.ok:
                resumable.add(artifact.name)
                self._decisions.record(DecisionKind.RESUME, artifact, check)
            else:
                staged.unlink(missing_ok=True)
                discarded.add(artifact.name)
                self._decisions.record(DecisionKind.REDOWNLOAD_CORRUPT, artifact, check)

        logger.info(
            "staging recovery complete",
            extra={"meta": {"resumable": len(resumable), "discarded": len(discarded)}},
        )
        return RecoveryScan(resumable=frozenset(resumable), discarded=frozenset(discarded))

    def _clear_blockers(self, artifact: Artifact, staged: Path) -> None:
        root = self._paths.staging_root
        blockers = [
            parent
            for parent in staged.parents
            if parent != root and root in parent.parents and parent.is_file()
        ]
        if staged.is_dir():
            blockers.append(staged)
        for blocker in blockers:
            if blocker.is_dir():
                shutil.rmtree(blocker)
            else:
                blocker.unlink(missing_ok=True)
            logger.warning(
                "stale staging entry blocks artifact path, removed",
                extra={
                    "meta": {
                        "name": artifact.name,
                        "path": artifact.path,
                        "removed": blocker.relative_to(root).as_posix(),
                    }
                },
            )
