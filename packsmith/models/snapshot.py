"""Snapshot manifest models (schema version 1).

A snapshot is an immutable directory under ``.rollback/<snapshotId>/`` holding
``snapshot.v1.json`` plus a byte copy of every artifact under ``files/``.
Manifests from before files were materialized (``snapshot.json`` with no
``version``) are refused by the rollback executor.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from packsmith.models.lockfile import Artifact, Checksum

SNAPSHOT_SCHEMA_VERSION = 1
SNAPSHOT_MANIFEST_NAME = "snapshot.v1.json"
LEGACY_MANIFEST_NAME = "snapshot.json"
SNAPSHOT_FILES_DIR = "files"


class SnapshotArtifact(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    logical_name: str = Field(alias="logicalName", min_length=1)
    relative_path: str = Field(alias="relativePath", min_length=1)
    checksum: Checksum
    size: int = Field(ge=0)

    @classmethod
    def from_artifact(cls, artifact: Artifact, size: int) -> "SnapshotArtifact":
        return cls(
            logical_name=artifact.name,
            relative_path=artifact.path,
            checksum=artifact.checksum,
            size=size,
        )


class SnapshotManifest(BaseModel):
    """``snapshot.v1.json``: the authoritative record of a validated artifact set."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    version: Literal[1] = SNAPSHOT_SCHEMA_VERSION
    snapshot_id: str = Field(alias="snapshotId", min_length=1)
    created_at: datetime = Field(alias="createdAt")
    target_id: str = Field(alias="targetId")
    authority: Literal["lockfile"] = "lockfile"
    artifact_count: int = Field(alias="artifactCount", ge=0)
    artifacts: tuple[SnapshotArtifact, ...]

    @model_validator(mode="after")
    def _check_count(self) -> "SnapshotManifest":
        if self.artifact_count != len(self.artifacts):
            raise ValueError(
                f"artifactCount {self.artifact_count} does not match "
                f"{len(self.artifacts)} listed artifacts"
            )
        return self

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2)
