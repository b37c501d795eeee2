"""Packsmith data models — all Pydantic v2, all frozen (immutable)."""

from packsmith.models.install import (
    DecisionKind,
    DigestObservation,
    Disposition,
    InstallResult,
    PlanEntry,
    QuarantineEntry,
    RecoveryDecision,
    RollbackResult,
)
from packsmith.models.lockfile import (
    Artifact,
    ArtifactKind,
    Checksum,
    ChecksumAlgo,
    Lockfile,
)
from packsmith.models.snapshot import SnapshotArtifact, SnapshotManifest

__all__ = [
    # lockfile
    "Artifact",
    "ArtifactKind",
    "Checksum",
    "ChecksumAlgo",
    "Lockfile",
    # install
    "DecisionKind",
    "DigestObservation",
    "Disposition",
    "InstallResult",
    "PlanEntry",
    "QuarantineEntry",
    "RecoveryDecision",
    "RollbackResult",
    # snapshot
    "SnapshotArtifact",
    "SnapshotManifest",
]
