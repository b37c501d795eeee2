"""Install-run models: plan entries, recovery decisions, quarantine records, results."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from packsmith.models.lockfile import Artifact, ChecksumAlgo


class Disposition(str, Enum):
    """What the planner decided for an artifact."""

    NEEDS_INSTALL = "needs-install"
    NEEDS_VERIFICATION = "needs-verification"
    SATISFIED = "satisfied"


class PlanEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    artifact: Artifact
    disposition: Disposition


class DecisionKind(str, Enum):
    RESUME = "resume"
    REDOWNLOAD_CORRUPT = "redownload-corrupt"
    QUARANTINE_CORRUPT = "quarantine-corrupt"
    SKIP_VALID = "skip-valid"


class DigestObservation(BaseModel):
    """Algorithm, size, and digest prefix of a file — expected or observed."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    algo: ChecksumAlgo
    size: int | None = None
    hash_prefix: str | None = Field(default=None, alias="hashPrefix")


class RecoveryDecision(BaseModel):
    """A logged determination derived only from the lockfile and local files.

    Never built from remote metadata; ``authority`` is fixed to ``"lockfile"``.
    """

    model_config = ConfigDict(frozen=True)

    decision: DecisionKind
    artifact: str
    authority: Literal["lockfile"] = "lockfile"
    expected: DigestObservation
    observed: DigestObservation

    def as_meta(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class QuarantineEntry(BaseModel):
    """Record of a corrupted file moved out of the live tree.  Append-only."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    original_name: str = Field(alias="originalName")
    original_path: str = Field(alias="originalPath")
    quarantine_path: str = Field(alias="quarantinePath")
    reason: str
    quarantined_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        alias="quarantinedAt",
    )


class InstallResult(BaseModel):
    """Counts returned by a successful install run."""

    model_config = ConfigDict(frozen=True)

    installed: int = 0
    verified: int = 0
    skipped: int = 0
    promoted: int = 0
    quarantined: int = 0
    snapshot_id: str | None = None


class RollbackResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    snapshot_id: str
    restored_count: int
