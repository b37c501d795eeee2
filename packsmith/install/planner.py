"""Install planner — diffs the lockfile against the final tree.

Deterministic: the same lockfile and the same files on disk always produce the
same plan.  Only lockfile checksums are consulted.
"""

from __future__ import annotations

import logging
from collections import Counter

from packsmith.core.errors import UnsupportedArtifactKindError
from packsmith.core.hasher import verify_file
from packsmith.core.paths import InstancePaths
from packsmith.models.install import Disposition, PlanEntry
from packsmith.models.lockfile import ArtifactKind, Lockfile

logger = logging.getLogger(__name__)


def reject_unsupported_kinds(lockfile: Lockfile) -> None:
    """Fail before any work if the lockfile pins kinds we cannot install."""
    runtimes = lockfile.runtime_artifacts()
    if runtimes:
        raise UnsupportedArtifactKindError(
            ArtifactKind.MANAGED_RUNTIME.value, [a.name for a in runtimes]
        )


class InstallPlanner:
    def __init__(self, paths: InstancePaths) -> None:
        self._paths = paths

    def plan(self, lockfile: Lockfile) -> list[PlanEntry]:
        """Return one ``PlanEntry`` per installable artifact, in lockfile order.

        Missing final file -> needs-install.  Present and matching size and
        digest -> satisfied.  Present but different -> needs-verification.
        """
        reject_unsupported_kinds(lockfile)

        entries: list[PlanEntry] = []
        for artifact in lockfile.installable_artifacts():
            final = self._paths.final_path(artifact)
            if not final.is_file():
                disposition = Disposition.NEEDS_INSTALL
            elif artifact.size is not None and final.stat().st_size != artifact.size:
                disposition = Disposition.NEEDS_VERIFICATION
            elif verify_file(final, artifact.checksum).ok:
                disposition = Disposition.SATISFIED
            else:
                disposition = Disposition.NEEDS_VERIFICATION
            entries.append(PlanEntry(artifact=artifact, disposition=disposition))

        counts = Counter(e.disposition.value for e in entries)
        logger.info(
            "installation plan complete",
            extra={"meta": {"totalArtifacts": len(entries), **dict(counts)}},
        )
        return entries
