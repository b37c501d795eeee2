"""Rollback executor — restores the live tree from a snapshot.

The snapshot manifest is the source of truth.  Restoring happens in two
phases: first every materialized copy is verified against the manifest (an
invalid snapshot is refused before a single live file changes), then each
artifact is staged, committed with the same primitive as promotion, and
re-verified in place.  Live files that do not match are quarantined rather
than overwritten blindly.  Neither the lockfile nor any snapshot is modified.
"""

from __future__ import annotations

import json
import logging
import shutil
from pathlib import Path

from pydantic import ValidationError

from packsmith.core.errors import (
    InvalidSnapshotError,
    LegacySnapshotError,
    PathEscapeError,
    RollbackError,
    SnapshotNotFoundError,
)
from packsmith.core.hasher import hash_prefix, verify_file
from packsmith.core.paths import InstancePaths
from packsmith.install.promoter import commit_file
from packsmith.install.quarantine import QuarantineStore
from packsmith.install.snapshot_writer import BUILD_PREFIX
from packsmith.models.install import RollbackResult
from packsmith.models.lockfile import Artifact, ArtifactKind
from packsmith.models.snapshot import (
    LEGACY_MANIFEST_NAME,
    SNAPSHOT_FILES_DIR,
    SNAPSHOT_MANIFEST_NAME,
    SnapshotArtifact,
    SnapshotManifest,
)

logger = logging.getLogger(__name__)

_AUTHORITY_META = {"authority": "snapshot_manifest", "remoteMetadataUsed": False}


def _as_artifact(entry: SnapshotArtifact) -> Artifact:
    # Reuses lockfile path rules; the kind is irrelevant for restore.
    return Artifact(
        name=entry.logical_name,
        kind=ArtifactKind.ASSET,
        url="",
        path=entry.relative_path,
        checksum=entry.checksum,
        size=entry.size,
    )


class RollbackExecutor:
    def __init__(
        self,
        paths: InstancePaths,
        quarantine_store: QuarantineStore | None = None,
    ) -> None:
        self._paths = paths
        self._quarantine = quarantine_store or QuarantineStore(paths)

    # ------------------------------------------------------------------
    # Snapshot discovery
    # ------------------------------------------------------------------

    def list_snapshots(self) -> list[str]:
        """Snapshot ids holding a manifest file, oldest first."""
        root = self._paths.rollback_root
        if not root.is_dir():
            return []
        ids = []
        for child in sorted(root.iterdir(), key=lambda p: p.name):
            if not child.is_dir() or child.name.startswith(BUILD_PREFIX):
                continue
            if (child / SNAPSHOT_MANIFEST_NAME).is_file() or (child / LEGACY_MANIFEST_NAME).is_file():
                ids.append(child.name)
        return ids

    def latest_snapshot_id(self) -> str:
        snapshots = self.list_snapshots()
        if not snapshots:
            raise SnapshotNotFoundError(
                f"No snapshots found for instance {self._paths.instance_id!r}. "
                "Run a successful install first."
            )
        return snapshots[-1]

    def load_manifest(self, snapshot_id: str) -> SnapshotManifest:
        try:
            snapshot_dir = self._paths.snapshot_dir(snapshot_id)
        except PathEscapeError as exc:
            raise SnapshotNotFoundError(f"Invalid snapshot id: {snapshot_id!r}") from exc
        if snapshot_id.startswith(BUILD_PREFIX) or not snapshot_dir.is_dir():
            raise SnapshotNotFoundError(f"Snapshot not found: {snapshot_id}")

        manifest_path = snapshot_dir / SNAPSHOT_MANIFEST_NAME
        if not manifest_path.is_file():
            if (snapshot_dir / LEGACY_MANIFEST_NAME).is_file():
                logger.warning(
                    "rollback_snapshot_legacy_format",
                    extra={"meta": {"snapshotId": snapshot_id, **_AUTHORITY_META}},
                )
                raise LegacySnapshotError(
                    f"Snapshot {snapshot_id} uses the legacy metadata-only format and "
                    "cannot be used for rollback. Run install again to create a new snapshot."
                )
            raise SnapshotNotFoundError(
                f"Snapshot manifest not found: {snapshot_id}. Expected {SNAPSHOT_MANIFEST_NAME}."
            )

        try:
            raw = json.loads(manifest_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise InvalidSnapshotError(
                f"Snapshot manifest {snapshot_id}/{SNAPSHOT_MANIFEST_NAME} is unreadable: {exc}"
            ) from exc
        if isinstance(raw, dict) and raw.get("version") is None:
            raise LegacySnapshotError(
                f"Snapshot {snapshot_id} manifest has no schema version and cannot be used "
                "for rollback. Run install again to create a new snapshot."
            )
        try:
            manifest = SnapshotManifest.model_validate(raw)
        except ValidationError as exc:
            raise InvalidSnapshotError(
                f"Snapshot manifest {snapshot_id}/{SNAPSHOT_MANIFEST_NAME} is invalid: "
                f"{exc.error_count()} validation error(s)"
            ) from exc
        if manifest.snapshot_id != snapshot_id:
            raise InvalidSnapshotError(
                f"Snapshot manifest id {manifest.snapshot_id!r} does not match "
                f"directory {snapshot_id!r}"
            )
        return manifest

    # ------------------------------------------------------------------
    # Rollback
    # ------------------------------------------------------------------

    def rollback(self, snapshot_id: str | None = None) -> RollbackResult:
        logger.info(
            "rollback_start",
            extra={"meta": {"snapshotId": snapshot_id or "latest", **_AUTHORITY_META}},
        )
        target_id = snapshot_id or self.latest_snapshot_id()
        manifest = self.load_manifest(target_id)
        logger.info(
            "rollback_snapshot_selected",
            extra={
                "meta": {
                    "snapshotId": target_id,
                    "artifactCount": manifest.artifact_count,
                    **_AUTHORITY_META,
                }
            },
        )

        sources = self._verify_snapshot(target_id, manifest)
        staging = self._paths.rollback_staging_root / target_id
        restored = 0
        try:
            for entry, source in sources:
                self._restore_one(target_id, entry, source, staging)
                restored += 1
        finally:
            shutil.rmtree(staging, ignore_errors=True)

        logger.info(
            "rollback_complete",
            extra={"meta": {"snapshotId": target_id, "restoredCount": restored, **_AUTHORITY_META}},
        )
        return RollbackResult(snapshot_id=target_id, restored_count=restored)

    def _verify_snapshot(
        self, snapshot_id: str, manifest: SnapshotManifest
    ) -> list[tuple[SnapshotArtifact, Path]]:
        files_root = self._paths.snapshot_dir(snapshot_id) / SNAPSHOT_FILES_DIR
        verified: list[tuple[SnapshotArtifact, Path]] = []
        for entry in manifest.artifacts:
            try:
                _as_artifact(entry)
                self._paths.final_path(entry.relative_path)
            except (ValidationError, PathEscapeError) as exc:
                raise InvalidSnapshotError(
                    f"Snapshot {snapshot_id} lists an unsafe path for "
                    f"{entry.logical_name!r}: {entry.relative_path!r}"
                ) from exc
            source = files_root / entry.relative_path
            check = verify_file(source, entry.checksum)
            if not check.ok:
                reason = "snapshot_artifact_missing" if check.observed is None else "checksum_mismatch"
                logger.error(
                    "rollback_verify_failed",
                    extra={
                        "meta": {
                            "snapshotId": snapshot_id,
                            "artifactName": entry.logical_name,
                            "reason": reason,
                            "expectedHashPrefix": hash_prefix(entry.checksum.value),
                            "observedHashPrefix": hash_prefix(check.observed),
                            **_AUTHORITY_META,
                        }
                    },
                )
                raise InvalidSnapshotError(
                    f"Snapshot {snapshot_id} copy of {entry.logical_name!r} is "
                    f"{'missing' if check.observed is None else 'corrupted'} "
                    f"(expected {entry.checksum.value}, got {check.observed or '<missing>'}). "
                    "Nothing was restored."
                )
            verified.append((entry, source))
        logger.info(
            "rollback_verify_ok",
            extra={"meta": {"snapshotId": snapshot_id, "verifiedCount": len(verified), **_AUTHORITY_META}},
        )
        return verified

    def _restore_one(
        self, snapshot_id: str, entry: SnapshotArtifact, source: Path, staging: Path
    ) -> None:
        final = self._paths.final_path(entry.relative_path)
        staged = staging / entry.relative_path
        try:
            if final.exists() and not verify_file(final, entry.checksum).ok:
                self._quarantine.quarantine(
                    final, _as_artifact(entry), reason="rollback-replaced"
                )
            staged.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(source, staged)
            if not verify_file(staged, entry.checksum).ok:
                raise RollbackError(
                    f"Staged copy of {entry.logical_name!r} does not match snapshot "
                    f"{snapshot_id}. Rollback aborted."
                )
            commit_file(staged, final)
        except OSError as exc:
            logger.error(
                "rollback_promote_failed",
                extra={
                    "meta": {
                        "snapshotId": snapshot_id,
                        "artifactName": entry.logical_name,
                        "reason": "promote_error",
                        "error": str(exc),
                        **_AUTHORITY_META,
                    }
                },
            )
            raise RollbackError(
                f"Failed to restore {entry.logical_name!r} from snapshot {snapshot_id}: "
                f"{exc}. Rollback aborted."
            ) from exc

        check = verify_file(final, entry.checksum)
        if not check.ok:
            logger.error(
                "rollback_promote_failed",
                extra={
                    "meta": {
                        "snapshotId": snapshot_id,
                        "artifactName": entry.logical_name,
                        "reason": "final_verification_failed",
                        "expectedHashPrefix": hash_prefix(entry.checksum.value),
                        "observedHashPrefix": hash_prefix(check.observed),
                        **_AUTHORITY_META,
                    }
                },
            )
            raise RollbackError(
                f"Restored {entry.logical_name!r} failed verification "
                f"(expected {entry.checksum.value}, got {check.observed or '<missing>'}). "
                "Rollback aborted."
            )
        logger.debug(
            "artifact restored",
            extra={"meta": {"snapshotId": snapshot_id, "artifactName": entry.logical_name}},
        )
