"""Atomic promoter — commits a validated staged artifact to its final location.

A final file is only ever replaced by ``os.replace`` of a complete file, so a
kill at any instant leaves either the old file or the new one, never a partial
write.  When the staging area and the final tree sit on different volumes the
rename is impossible (``EXDEV``); the fallback copies into a temporary sibling
of the final path, fsyncs it, and renames that into place.  The copy step is
not crash-atomic with respect to removing the staged source: a kill in
between leaves a valid final file *and* a staged copy, which the next run
resumes harmlessly.

Promotion is atomic per artifact, not per batch.
"""

from __future__ import annotations

import errno
import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path

from packsmith.core.errors import PromotionError, UnsupportedArtifactKindError
from packsmith.core.hasher import verify_file
from packsmith.install.extractor import BundleExtractor, ExtractionError
from packsmith.install.quarantine import QuarantineStore
from packsmith.models.install import QuarantineEntry
from packsmith.models.lockfile import Artifact, ArtifactKind

logger = logging.getLogger(__name__)

_TMP_SUFFIX = ".packsmith-tmp"


def commit_file(source: Path, final_path: Path) -> None:
    """Move ``source`` onto ``final_path`` without exposing a partial file.

    Raises ``OSError`` if neither the rename nor the copy fallback succeeds.
    """
    final_path.parent.mkdir(parents=True, exist_ok=True)
    try:
        os.replace(source, final_path)
        return
    except OSError as exc:
        if exc.errno != errno.EXDEV:
            raise

    tmp = final_path.with_name(final_path.name + _TMP_SUFFIX)
    try:
        shutil.copyfile(source, tmp)
        with tmp.open("rb") as fh:
            os.fsync(fh.fileno())
        os.replace(tmp, final_path)
    finally:
        tmp.unlink(missing_ok=True)
    source.unlink(missing_ok=True)
    logger.debug(
        "promoted via copy fallback (cross-device)",
        extra={"meta": {"final": final_path.name}},
    )


@dataclass(frozen=True)
class PromotionOutcome:
    committed: bool
    quarantine: QuarantineEntry | None = None


class AtomicPromoter:
    """Commits staged files and runs kind-specific post-processing.

    Parameters
    ----------
    quarantine_store:
        Where an invalid pre-existing final file is moved before commit.
    extractor:
        Collaborator used for native bundles.
    natives_dir:
        Destination directory for extracted native bundles.
    """

    def __init__(
        self,
        quarantine_store: QuarantineStore,
        extractor: BundleExtractor,
        natives_dir: Path,
    ) -> None:
        self._quarantine = quarantine_store
        self._extractor = extractor
        self._natives_dir = Path(natives_dir)

    def promote(self, artifact: Artifact, staged_path: Path, final_path: Path) -> PromotionOutcome:
        quarantined: QuarantineEntry | None = None
        try:
            if final_path.exists():
                check = verify_file(final_path, artifact.checksum)
                if check.ok:
                    staged_path.unlink(missing_ok=True)
                    logger.debug(
                        "artifact already valid, skipping promote",
                        extra={"meta": {"name": artifact.name, "path": artifact.path}},
                    )
                    return PromotionOutcome(committed=False)
                logger.warning(
                    "corrupted final artifact found at promotion, quarantining",
                    extra={"meta": {"name": artifact.name, "path": artifact.path}},
                )
                quarantined = self._quarantine.quarantine(final_path, artifact)

            commit_file(staged_path, final_path)
        except OSError as exc:
            logger.error(
                "artifact promotion failed",
                extra={"meta": {"name": artifact.name, "error": str(exc)}},
            )
            raise PromotionError(artifact.name, str(exc)) from exc

        logger.info(
            "artifact promoted from staging",
            extra={"meta": {"name": artifact.name, "kind": artifact.kind.value}},
        )
        self._post_process(artifact, final_path)
        return PromotionOutcome(committed=True, quarantine=quarantined)

    def _post_process(self, artifact: Artifact, final_path: Path) -> None:
        """The single dispatch point for kind-specific work after a commit."""
        kind = artifact.kind
        if kind is ArtifactKind.NATIVE_BUNDLE:
            try:
                count = self._extractor.extract(final_path, self._natives_dir)
            except (ExtractionError, OSError) as exc:
                logger.error(
                    "native bundle extraction failed",
                    extra={"meta": {"name": artifact.name, "error": str(exc)}},
                )
                raise PromotionError(artifact.name, f"extraction failed: {exc}") from exc
            logger.info(
                "native bundle extracted",
                extra={"meta": {"name": artifact.name, "files": count}},
            )
        elif kind is ArtifactKind.MANAGED_RUNTIME:
            raise UnsupportedArtifactKindError(kind.value, [artifact.name])
        elif kind in (
            ArtifactKind.VERSION_DESCRIPTOR,
            ArtifactKind.PRIMARY_BINARY,
            ArtifactKind.ASSET_INDEX,
            ArtifactKind.ASSET,
            ArtifactKind.LIBRARY,
        ):
            return
        else:
            raise AssertionError(f"unhandled artifact kind: {kind!r}")
