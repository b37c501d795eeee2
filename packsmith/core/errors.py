"""Packsmith exception hierarchy.

Every failure the installer reports to its caller derives from
``PacksmithError`` so the CLI (and embedding applications) can catch one base
class without swallowing unrelated errors.  Recoverable conditions (corrupt
final files, quarantine-move failures, snapshot build failures) are handled
inside the installer and never surface as exceptions.
"""

from __future__ import annotations


class PacksmithError(RuntimeError):
    """Base exception for all packsmith errors."""


class LockfileError(PacksmithError):
    """Raised when a lockfile is missing, unparseable, or structurally invalid."""


class PathEscapeError(PacksmithError):
    """Raised when a resolved path would leave its instance directory."""


class UnsupportedArtifactKindError(PacksmithError):
    """Raised pre-flight when the lockfile pins an artifact kind we cannot install.

    Carries the offending artifact names so callers can report them.
    """

    def __init__(self, kind: str, artifact_names: list[str]) -> None:
        self.kind = kind
        self.artifact_names = list(artifact_names)
        names = ", ".join(repr(n) for n in self.artifact_names)
        super().__init__(
            f"Unsupported artifact kind {kind!r} in lockfile "
            f"({len(self.artifact_names)} artifact(s): {names}). "
            "Managed runtime installation is not supported by this installer. "
            "Regenerate pack/lock.json without runtime artifacts, or point the "
            "launcher at an externally installed runtime."
        )


class FetchError(PacksmithError):
    """Raised when the fetch collaborator cannot deliver an artifact."""

    def __init__(self, artifact_name: str, reason: str) -> None:
        self.artifact_name = artifact_name
        self.reason = reason
        super().__init__(f"Failed to fetch artifact {artifact_name!r}: {reason}")


class ChecksumMismatchError(PacksmithError):
    """Raised when a freshly fetched artifact does not match its lockfile digest."""

    def __init__(
        self,
        artifact_name: str,
        algo: str,
        expected: str,
        actual: str | None,
    ) -> None:
        self.artifact_name = artifact_name
        self.algo = algo
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Artifact {artifact_name!r} {algo} checksum mismatch. "
            f"Expected {expected}, got {actual or '<missing>'}. "
            "The download may be corrupted or the upstream file has changed."
        )


class PromotionError(PacksmithError):
    """Raised when a staged artifact cannot be committed to its final location."""

    def __init__(self, artifact_name: str, reason: str) -> None:
        self.artifact_name = artifact_name
        self.reason = reason
        super().__init__(f"Failed to promote artifact {artifact_name!r}: {reason}")


class SnapshotError(PacksmithError):
    """Raised when a snapshot cannot be built.  Non-fatal for installs."""


class SnapshotNotFoundError(PacksmithError):
    """Raised when a requested (or latest) snapshot does not exist."""


class InvalidSnapshotError(PacksmithError):
    """Raised when a snapshot manifest or its materialized files are invalid."""


class LegacySnapshotError(InvalidSnapshotError):
    """Raised for metadata-only snapshots written before files were materialized."""


class RollbackError(PacksmithError):
    """Raised when a restored artifact fails verification or cannot be written."""
