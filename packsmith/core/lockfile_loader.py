"""Lockfile provider — loads ``pack/lock.json`` read-only.

The lockfile is authoritative.  A missing or invalid lockfile is a hard
failure; it is never regenerated or rewritten from here.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from packsmith.core.errors import LockfileError
from packsmith.models.lockfile import Lockfile

logger = logging.getLogger(__name__)


def parse_lockfile(raw: str | bytes, *, source: str = "<memory>") -> Lockfile:
    """Parse and validate lockfile JSON text."""
    try:
        data = json.loads(raw)
    except ValueError as exc:
        raise LockfileError(f"Lockfile {source} is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise LockfileError(f"Lockfile {source} must be a JSON object")
    try:
        return Lockfile.model_validate(data)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
            for err in exc.errors()
        )
        raise LockfileError(f"Lockfile {source} is invalid: {problems}") from exc


def load_lockfile(path: Path) -> Lockfile:
    """Read and validate the lockfile at ``path`` without modifying it."""
    path = Path(path)
    try:
        raw = path.read_bytes()
    except FileNotFoundError as exc:
        raise LockfileError(f"Lockfile not found: {path}") from exc
    except OSError as exc:
        raise LockfileError(f"Lockfile {path} could not be read: {exc}") from exc

    lockfile = parse_lockfile(raw, source=str(path))
    logger.info(
        "lockfile loaded",
        extra={
            "meta": {
                "targetId": lockfile.target_id,
                "packId": lockfile.pack_id,
                "artifactCount": len(lockfile.artifacts),
            }
        },
    )
    return lockfile
