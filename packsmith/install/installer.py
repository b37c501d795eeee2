"""Deterministic installer — makes the instance tree match the lockfile.

The lockfile is the only authority.  One run proceeds as:

1. Pre-flight: reject artifact kinds this installer cannot handle, before any
   filesystem or network activity.
2. Staging recovery: resume valid leftovers, delete corrupt ones.
3. Planning: diff the lockfile against the final tree.
4. Acquisition, in lockfile order: reuse resumable staged files, fetch the
   rest, re-verify suspicious finals and quarantine the corrupt ones.
5. Promotion, in lockfile order; the first failure aborts the run.
6. Snapshot of the now-valid set, then cleanup of the staging area.

A run killed at any point is safe to repeat: staged files survive for resume
and final files are only ever replaced atomically.
"""

from __future__ import annotations

import logging
import shutil

import httpx

from packsmith.core.errors import ChecksumMismatchError, FetchError, SnapshotError
from packsmith.core.hasher import verify_file
from packsmith.core.paths import InstancePaths
from packsmith.core.structured_log import redact_url
from packsmith.install.decisions import DecisionLog
from packsmith.install.extractor import BundleExtractor, ZipBundleExtractor
from packsmith.install.fetcher import DownloadError, Fetcher
from packsmith.install.planner import InstallPlanner, reject_unsupported_kinds
from packsmith.install.promoter import AtomicPromoter
from packsmith.install.quarantine import QuarantineStore
from packsmith.install.recovery import StagingRecoveryScanner
from packsmith.install.snapshot_writer import SnapshotWriter
from packsmith.models.install import DecisionKind, Disposition, InstallResult
from packsmith.models.lockfile import Artifact, ChecksumAlgo, Lockfile

logger = logging.getLogger(__name__)


class DeterministicInstaller:
    """Installs one lockfile into one instance directory.

    Parameters
    ----------
    paths:
        The instance layout to install into.
    fetcher:
        Collaborator that downloads an artifact URL to a staging path.
    extractor:
        Collaborator for native bundles (defaults to ``ZipBundleExtractor``).
    snapshots_enabled:
        Whether a successful run records a last-known-good snapshot.
    decisions:
        Optional shared ``DecisionLog``; a fresh one is created otherwise.
    """

    def __init__(
        self,
        paths: InstancePaths,
        fetcher: Fetcher,
        extractor: BundleExtractor | None = None,
        *,
        snapshots_enabled: bool = True,
        decisions: DecisionLog | None = None,
    ) -> None:
        self._paths = paths
        self._fetcher = fetcher
        self._extractor = extractor or ZipBundleExtractor()
        self._snapshots_enabled = snapshots_enabled
        self.decisions = decisions if decisions is not None else DecisionLog()
        self._quarantine = QuarantineStore(paths)
        self._scanner = StagingRecoveryScanner(paths, self.decisions)
        self._planner = InstallPlanner(paths)
        self._snapshots = SnapshotWriter(paths)

    @property
    def paths(self) -> InstancePaths:
        return self._paths

    def install(self, lockfile: Lockfile) -> InstallResult:
        reject_unsupported_kinds(lockfile)
        logger.info(
            "install started",
            extra={
                "meta": {
                    "packId": lockfile.pack_id,
                    "packVersion": lockfile.pack_version,
                    "targetId": lockfile.target_id,
                    "artifacts": len(lockfile.artifacts),
                }
            },
        )

        scan = self._scanner.scan(lockfile)
        plan = self._planner.plan(lockfile)

        installed = verified = skipped = promoted = quarantined = 0
        staged: list[Artifact] = []

        for entry in plan:
            artifact = entry.artifact
            if entry.disposition is Disposition.SATISFIED:
                skipped += 1
                continue

            if entry.disposition is Disposition.NEEDS_VERIFICATION:
                final = self._paths.final_path(artifact)
                check = verify_file(final, artifact.checksum)
                if check.ok:
                    self.decisions.record(DecisionKind.SKIP_VALID, artifact, check)
                    verified += 1
                    continue
                self.decisions.record(DecisionKind.QUARANTINE_CORRUPT, artifact, check)
                if self._quarantine.quarantine(final, artifact) is not None:
                    quarantined += 1

            if artifact.name in scan.resumable:
                logger.info(
                    "reusing staged artifact",
                    extra={"meta": {"name": artifact.name, "path": artifact.path}},
                )
            else:
                self._fetch(artifact)
            installed += 1
            staged.append(artifact)

        promoter = AtomicPromoter(
            self._quarantine,
            self._extractor,
            self._paths.natives_dir(lockfile.target_id),
        )
        for artifact in staged:
            outcome = promoter.promote(
                artifact,
                self._paths.staging_path(artifact),
                self._paths.final_path(artifact),
            )
            if outcome.committed:
                promoted += 1
            if outcome.quarantine is not None:
                quarantined += 1

        snapshot_id = self._snapshot(lockfile)
        self._clear_staging()

        result = InstallResult(
            installed=installed,
            verified=verified,
            skipped=skipped,
            promoted=promoted,
            quarantined=quarantined,
            snapshot_id=snapshot_id,
        )
        logger.info("install complete", extra={"meta": result.model_dump(mode="json")})
        return result

    def _fetch(self, artifact: Artifact) -> None:
        staged = self._paths.staging_path(artifact)
        url = redact_url(artifact.url)
        expected_sha1 = (
            artifact.checksum.value if artifact.checksum.algo is ChecksumAlgo.SHA1 else None
        )
        logger.info(
            "fetching artifact",
            extra={"meta": {"name": artifact.name, "url": url, "size": artifact.size}},
        )
        try:
            staged.parent.mkdir(parents=True, exist_ok=True)
            result = self._fetcher.fetch(
                artifact.url,
                staged,
                expected_size=artifact.size,
                expected_sha1=expected_sha1,
            )
        except (DownloadError, httpx.HTTPError, OSError) as exc:
            reason = str(exc).replace(artifact.url, url)
            logger.error(
                "artifact fetch failed",
                extra={"meta": {"name": artifact.name, "url": url, "error": reason}},
            )
            raise FetchError(artifact.name, reason) from exc

        check = verify_file(staged, artifact.checksum)
        if not check.ok:
            staged.unlink(missing_ok=True)
            logger.error(
                "fetched artifact failed verification",
                extra={
                    "meta": {
                        "name": artifact.name,
                        "algo": artifact.checksum.algo.value,
                        "expected": artifact.checksum.value,
                        "actual": check.observed,
                    }
                },
            )
            raise ChecksumMismatchError(
                artifact.name,
                artifact.checksum.algo.value,
                artifact.checksum.value,
                check.observed,
            )
        logger.info(
            "artifact fetched and verified",
            extra={
                "meta": {
                    "name": artifact.name,
                    "downloaded": result.downloaded,
                    "bytes": check.size,
                }
            },
        )

    def _snapshot(self, lockfile: Lockfile) -> str | None:
        if not self._snapshots_enabled:
            return None
        artifacts = lockfile.installable_artifacts()
        if not artifacts:
            logger.info("no validated artifacts, snapshot skipped")
            return None
        try:
            return self._snapshots.create_snapshot(lockfile, artifacts)
        except SnapshotError as exc:
            logger.warning(
                "snapshot creation failed, install result unaffected",
                extra={"meta": {"error": str(exc)}},
            )
            return None

    def _clear_staging(self) -> None:
        staging = self._paths.staging_root
        if not staging.exists():
            return
        try:
            shutil.rmtree(staging)
        except OSError as exc:
            logger.debug(
                "could not clear staging area",
                extra={"meta": {"path": str(staging), "error": str(exc)}},
            )
