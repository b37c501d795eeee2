"""Digest helpers for lockfile verification.

Every verification in packsmith compares a file on disk against the digest
pinned in the lockfile (or a snapshot manifest copied from it).  Files are
streamed in 1 MiB chunks so large binaries never load into memory at once.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from pathlib import Path

from packsmith.models.lockfile import Checksum, ChecksumAlgo

_CHUNK_SIZE = 1 << 20
HASH_PREFIX_LENGTH = 8


def file_digest(path: Path, algo: ChecksumAlgo | str) -> str:
    """Stream ``path`` through ``algo`` and return the lower-case hex digest."""
    name = ChecksumAlgo(algo).value
    hasher = hashlib.new(name)
    with Path(path).open("rb") as stream:
        for chunk in iter(lambda: stream.read(_CHUNK_SIZE), b""):
            hasher.update(chunk)
    return hasher.hexdigest()


def hash_prefix(digest: str | None) -> str | None:
    """First eight hex characters of a digest, for logs."""
    if digest is None:
        return None
    return digest.lower()[:HASH_PREFIX_LENGTH]


@dataclass(frozen=True)
class DigestCheck:
    """Outcome of comparing a file against an expected checksum."""

    ok: bool
    observed: str | None
    size: int | None


def verify_file(path: Path, checksum: Checksum) -> DigestCheck:
    """Compare ``path`` against ``checksum``.

    A missing file yields ``ok=False`` with no observed digest or size.
    Other I/O errors propagate.
    """
    path = Path(path)
    try:
        size = path.stat().st_size
    except FileNotFoundError:
        return DigestCheck(ok=False, observed=None, size=None)
    observed = file_digest(path, checksum.algo)
    return DigestCheck(ok=observed == checksum.value, observed=observed, size=size)
