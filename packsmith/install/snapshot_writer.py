"""Snapshot writer — materializes a validated artifact set for rollback.

A snapshot is assembled in ``.rollback/.build-<snapshotId>/``: every artifact is
copied under ``files/`` and its copy verified immediately, the manifest is
written last, and the whole directory is renamed into place.  A reader
therefore sees either a complete snapshot or none at all.  Any failure discards
the build directory and raises ``SnapshotError``; no partial snapshot survives.
"""

from __future__ import annotations

import logging
import os
import re
import shutil
from collections.abc import Iterable
from datetime import datetime, timezone
from pathlib import Path

from packsmith.core.errors import PacksmithError, SnapshotError
from packsmith.core.hasher import verify_file
from packsmith.core.paths import InstancePaths
from packsmith.models.lockfile import Artifact, Lockfile
from packsmith.models.snapshot import (
    SNAPSHOT_FILES_DIR,
    SNAPSHOT_MANIFEST_NAME,
    SnapshotArtifact,
    SnapshotManifest,
)

logger = logging.getLogger(__name__)

BUILD_PREFIX = ".build-"

_TARGET_SAFE_RE = re.compile(r"[^A-Za-z0-9._-]")


def make_snapshot_id(target_id: str, now: datetime | None = None) -> str:
    """``<UTC timestamp>-<target>``; lexical order equals chronological order."""
    now = now or datetime.now(timezone.utc)
    target = _TARGET_SAFE_RE.sub("_", target_id).strip(".") or "target"
    return f"{now.strftime('%Y%m%dT%H%M%S%fZ')}-{target}"


class SnapshotWriter:
    def __init__(self, paths: InstancePaths) -> None:
        self._paths = paths

    def create_snapshot(
        self, lockfile: Lockfile, validated_artifacts: Iterable[Artifact]
    ) -> str:
        """Build and publish a snapshot; return its id."""
        artifacts = list(validated_artifacts)
        now = datetime.now(timezone.utc)
        snapshot_id = make_snapshot_id(lockfile.target_id, now)
        rollback_root = self._paths.rollback_root
        build_dir = rollback_root / f"{BUILD_PREFIX}{snapshot_id}"
        final_dir = rollback_root / snapshot_id

        try:
            if final_dir.exists():
                raise SnapshotError(f"Snapshot {snapshot_id} already exists")
            build_dir.mkdir(parents=True, exist_ok=False)
            entries = [self._materialize(artifact, build_dir) for artifact in artifacts]
            manifest = SnapshotManifest(
                snapshot_id=snapshot_id,
                created_at=now,
                target_id=lockfile.target_id,
                artifact_count=len(entries),
                artifacts=tuple(entries),
            )
            manifest_path = build_dir / SNAPSHOT_MANIFEST_NAME
            with manifest_path.open("w", encoding="utf-8") as fh:
                fh.write(manifest.to_json())
                fh.flush()
                os.fsync(fh.fileno())
            os.rename(build_dir, final_dir)
        except (OSError, PacksmithError) as exc:
            shutil.rmtree(build_dir, ignore_errors=True)
            logger.error(
                "failed to create snapshot",
                extra={"meta": {"snapshotId": snapshot_id, "error": str(exc)}},
            )
            if isinstance(exc, SnapshotError):
                raise
            raise SnapshotError(f"Failed to create snapshot {snapshot_id}: {exc}") from exc

        logger.info(
            "last-known-good snapshot created",
            extra={"meta": {"snapshotId": snapshot_id, "artifactCount": len(artifacts)}},
        )
        return snapshot_id

    def _materialize(self, artifact: Artifact, build_dir: Path) -> SnapshotArtifact:
        source = self._paths.final_path(artifact)
        dest = build_dir / SNAPSHOT_FILES_DIR / artifact.path
        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(source, dest)
        check = verify_file(dest, artifact.checksum)
        if not check.ok:
            raise SnapshotError(
                f"Snapshot copy of {artifact.name!r} does not match the lockfile "
                f"(expected {artifact.checksum.value}, got {check.observed})"
            )
        return SnapshotArtifact.from_artifact(artifact, size=check.size or 0)
