"""Lockfile models — the immutable, authoritative artifact manifest.

The lockfile pins every artifact's URL, relative path, checksum, and (optionally)
size.  It is produced upstream and only ever read here: nothing in packsmith
writes ``pack/lock.json``.
"""

from __future__ import annotations

import re
from datetime import datetime
from enum import Enum
from pathlib import PurePosixPath

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

LOCKFILE_SCHEMA_VERSION = "1"

# First path segments owned by the installer itself.  Lockfile artifacts may
# never be placed there.
RESERVED_TOP_LEVEL = frozenset({"pack", ".staging", ".quarantine", ".rollback"})

_HEX_LENGTHS = {"sha1": 40, "sha256": 64}
_HEX_RE = re.compile(r"^[0-9a-f]+$")


class ArtifactKind(str, Enum):
    """What an artifact is.  Drives pre-flight checks and post-promotion work."""

    VERSION_DESCRIPTOR = "version-descriptor"
    PRIMARY_BINARY = "primary-binary"
    ASSET_INDEX = "asset-index"
    ASSET = "asset"
    LIBRARY = "library"
    NATIVE_BUNDLE = "native-bundle"
    MANAGED_RUNTIME = "managed-runtime"


class ChecksumAlgo(str, Enum):
    SHA1 = "sha1"
    SHA256 = "sha256"


class Checksum(BaseModel):
    """An algorithm-tagged, lower-case hex digest."""

    model_config = ConfigDict(frozen=True)

    algo: ChecksumAlgo
    value: str

    @field_validator("value", mode="before")
    @classmethod
    def _normalize_hex(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @model_validator(mode="after")
    def _check_length(self) -> "Checksum":
        expected = _HEX_LENGTHS[self.algo.value]
        if len(self.value) != expected or not _HEX_RE.match(self.value):
            raise ValueError(
                f"{self.algo.value} checksum must be {expected} hex characters, "
                f"got {self.value!r}"
            )
        return self


class Artifact(BaseModel):
    """One lockfile entry: the unit of install, verify, promote, and quarantine."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    kind: ArtifactKind
    url: str
    path: str
    checksum: Checksum
    size: int | None = Field(default=None, ge=0)

    @field_validator("path")
    @classmethod
    def _validate_relative_path(cls, value: str) -> str:
        if not value or "\\" in value:
            raise ValueError(f"artifact path must be a relative POSIX path: {value!r}")
        pure = PurePosixPath(value)
        if pure.is_absolute() or re.match(r"^[A-Za-z]:", value):
            raise ValueError(f"artifact path must be relative: {value!r}")
        parts = value.split("/")
        if any(part in ("", ".", "..") for part in parts):
            raise ValueError(f"artifact path has empty or dot segments: {value!r}")
        if parts[0] in RESERVED_TOP_LEVEL:
            raise ValueError(
                f"artifact path {value!r} points into reserved directory {parts[0]!r}"
            )
        return value

    @property
    def is_runtime(self) -> bool:
        return self.kind is ArtifactKind.MANAGED_RUNTIME


class Lockfile(BaseModel):
    """The immutable, versioned pack lockfile (``pack/lock.json``)."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    schema_version: str = Field(alias="schemaVersion")
    pack_id: str | None = Field(default=None, alias="packId")
    pack_version: str | None = Field(default=None, alias="packVersion")
    target_id: str = Field(alias="targetId", min_length=1)
    generated_at: datetime = Field(alias="generatedAt")
    artifacts: tuple[Artifact, ...] = ()

    @field_validator("schema_version")
    @classmethod
    def _check_schema(cls, value: str) -> str:
        if value != LOCKFILE_SCHEMA_VERSION:
            raise ValueError(
                f"unsupported lockfile schemaVersion {value!r} "
                f"(expected {LOCKFILE_SCHEMA_VERSION!r})"
            )
        return value

    @model_validator(mode="after")
    def _check_unique(self) -> "Lockfile":
        seen_names: set[str] = set()
        seen_paths: set[str] = set()
        for artifact in self.artifacts:
            if artifact.name in seen_names:
                raise ValueError(f"duplicate artifact name {artifact.name!r}")
            if artifact.path in seen_paths:
                raise ValueError(f"duplicate artifact path {artifact.path!r}")
            seen_names.add(artifact.name)
            seen_paths.add(artifact.path)
        return self

    def installable_artifacts(self) -> list[Artifact]:
        """Artifacts in lockfile order, excluding managed runtimes."""
        return [a for a in self.artifacts if not a.is_runtime]

    def runtime_artifacts(self) -> list[Artifact]:
        return [a for a in self.artifacts if a.is_runtime]
