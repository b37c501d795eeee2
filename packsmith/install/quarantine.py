"""Quarantine store — corrupted files are moved aside, never deleted.

Each quarantined file lands at ``.quarantine/<timestamp>-<sanitized-name>``
and an entry is appended to ``.quarantine/index.jsonl``.  Nothing here ever
removes quarantined files.

A failed quarantine is logged and reported as ``None``; the caller goes on to
overwrite the corrupted location.  Forward progress wins over forensic
completeness.
"""

from __future__ import annotations

import logging
import re
import shutil
from datetime import datetime, timezone
from pathlib import Path

from packsmith.core.paths import InstancePaths
from packsmith.models.install import QuarantineEntry
from packsmith.models.lockfile import Artifact

logger = logging.getLogger(__name__)

INDEX_FILENAME = "index.jsonl"

_UNSAFE_CHARS_RE = re.compile(r'[<>:"/\\|?*\s\x00-\x1f]')


def sanitize_name(name: str) -> str:
    """Filesystem-safe rendering of an artifact name."""
    safe = _UNSAFE_CHARS_RE.sub("_", name).strip(".")
    return safe[:200] or "artifact"


def quarantine_timestamp(now: datetime | None = None) -> str:
    """UTC timestamp with no characters that are illegal in file names."""
    now = now or datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H-%M-%S-%fZ")


class QuarantineStore:
    def __init__(self, paths: InstancePaths) -> None:
        self._paths = paths

    @property
    def root(self) -> Path:
        return self._paths.quarantine_root

    def _destination(self, artifact_name: str, now: datetime) -> Path:
        base = f"{quarantine_timestamp(now)}-{sanitize_name(artifact_name)}"
        candidate = self.root / base
        suffix = 1
        while candidate.exists():
            candidate = self.root / f"{base}.{suffix}"
            suffix += 1
        return candidate

    def quarantine(
        self, file_path: Path, artifact: Artifact, reason: str = "checksum-mismatch"
    ) -> QuarantineEntry | None:
        """Move ``file_path`` out of the live tree.  Returns ``None`` on failure."""
        file_path = Path(file_path)
        now = datetime.now(timezone.utc)
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            dest = self._destination(artifact.name, now)
        except OSError as exc:
            logger.error(
                "failed to quarantine artifact",
                extra={"meta": {"name": artifact.name, "error": str(exc)}},
            )
            return None

        via = "rename"
        try:
            file_path.rename(dest)
        except OSError:
            via = "copy"
            try:
                shutil.copy2(file_path, dest)
            except OSError as exc:
                logger.error(
                    "failed to quarantine artifact",
                    extra={"meta": {"name": artifact.name, "path": artifact.path, "error": str(exc)}},
                )
                return None
            try:
                file_path.unlink()
            except OSError as exc:
                logger.warning(
                    "quarantined copy made but original could not be removed",
                    extra={"meta": {"name": artifact.name, "error": str(exc)}},
                )

        entry = QuarantineEntry(
            original_name=artifact.name,
            original_path=artifact.path,
            quarantine_path=str(dest.relative_to(self._paths.root)),
            reason=reason,
            quarantined_at=now,
        )
        self._append_index(entry)
        logger.warning(
            "artifact quarantined",
            extra={
                "meta": {
                    "name": artifact.name,
                    "originalPath": artifact.path,
                    "quarantinePath": entry.quarantine_path,
                    "reason": reason,
                    "via": via,
                }
            },
        )
        return entry

    def _append_index(self, entry: QuarantineEntry) -> None:
        try:
            with (self.root / INDEX_FILENAME).open("a", encoding="utf-8") as fh:
                fh.write(entry.model_dump_json(by_alias=True) + "\n")
        except OSError as exc:
            logger.warning(
                "quarantine index could not be updated",
                extra={"meta": {"name": entry.original_name, "error": str(exc)}},
            )

    def entries(self) -> list[QuarantineEntry]:
        """All recorded quarantine entries, oldest first."""
        index = self.root / INDEX_FILENAME
        if not index.is_file():
            return []
        entries: list[QuarantineEntry] = []
        with index.open(encoding="utf-8") as fh:
            for line in fh:
                line = line.strip()
                if line:
                    entries.append(QuarantineEntry.model_validate_json(line))
        return entries
