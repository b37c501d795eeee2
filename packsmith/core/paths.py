"""Instance directory layout and artifact path resolution.

Layout under ``<base_dir>/instances/<instance_id>/``::

    pack/lock.json                   authoritative lockfile (read-only here)
    .staging/pack-install/<path>     staged downloads, mirrors the final tree
    .staging/rollback/<snapshotId>/  restore staging during rollback
    .quarantine/<ts>-<name>          corrupted files moved out of the tree
    .quarantine/index.jsonl          append-only quarantine records
    .rollback/<snapshotId>/          immutable snapshots
    natives/<targetId>/              extracted native bundles
    <path>                           final artifact locations

Every resolved path is checked to stay inside its root.
"""

from __future__ import annotations

import re
from pathlib import Path

from packsmith.core.errors import PathEscapeError
from packsmith.models.lockfile import Artifact

DEFAULT_INSTANCE_ID = "default"

_INSTANCE_ID_RE = re.compile(r"^[A-Za-z0-9._-]+$")


def validate_instance_id(instance_id: str) -> str:
    """Return ``instance_id`` unchanged, or raise if it is not a safe directory name."""
    if not _INSTANCE_ID_RE.match(instance_id) or instance_id in (".", ".."):
        raise PathEscapeError(f"Invalid instance id: {instance_id!r}")
    return instance_id


def _contained(root: Path, relative: str) -> Path:
    candidate = (root / relative).resolve()
    resolved_root = root.resolve()
    if candidate != resolved_root and resolved_root not in candidate.parents:
        raise PathEscapeError(
            f"Path {relative!r} resolves outside of {resolved_root}"
        )
    return root / relative


def _relative(target: Artifact | str) -> str:
    return target.path if isinstance(target, Artifact) else target


class InstancePaths:
    """Resolves every on-disk location for one instance.

    Parameters
    ----------
    base_dir:
        Directory holding ``instances/``.
    instance_id:
        The instance directory name.
    """

    def __init__(self, base_dir: Path, instance_id: str = DEFAULT_INSTANCE_ID) -> None:
        self.base_dir = Path(base_dir)
        self.instance_id = validate_instance_id(instance_id)
        self.root = self.base_dir / "instances" / instance_id

    @property
    def lockfile_path(self) -> Path:
        return self.root / "pack" / "lock.json"

    @property
    def staging_root(self) -> Path:
        return self.root / ".staging" / "pack-install"

    @property
    def rollback_staging_root(self) -> Path:
        return self.root / ".staging" / "rollback"

    @property
    def quarantine_root(self) -> Path:
        return self.root / ".quarantine"

    @property
    def rollback_root(self) -> Path:
        return self.root / ".rollback"

    @property
    def natives_root(self) -> Path:
        return self.root / "natives"

    def final_path(self, target: Artifact | str) -> Path:
        """Final location for an artifact (or a lockfile-relative path)."""
        return _contained(self.root, _relative(target))

    def staging_path(self, target: Artifact | str) -> Path:
        """Staging location mirroring the final relative path."""
        return _contained(self.staging_root, _relative(target))

    def snapshot_dir(self, snapshot_id: str) -> Path:
        return _contained(self.rollback_root, snapshot_id)

    def natives_dir(self, target_id: str) -> Path:
        return _contained(self.natives_root, target_id)

    def __repr__(self) -> str:
        return f"InstancePaths(root={str(self.root)!r})"
