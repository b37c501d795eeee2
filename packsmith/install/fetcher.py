"""Fetch collaborator — downloads one URL to one destination path.

The installer only depends on the ``Fetcher`` protocol.  ``HttpFetcher`` is
the default implementation: it streams through ``httpx`` into a ``.part``
sibling of the destination, enforces the expected size and SHA-1, retries a
bounded number of times, and moves the verified file into place.  Retry and
timeout policy live here, never in the installer.
"""

from __future__ import annotations

import hashlib
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, runtime_checkable

import httpx

from packsmith.core.hasher import file_digest, hash_prefix
from packsmith.core.structured_log import redact_url

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT: float = 60.0
DEFAULT_RETRIES: int = 3
USER_AGENT: str = "packsmith/0.3"

_CHUNK_SIZE = 1 << 16


class DownloadError(RuntimeError):
    """Raised by ``HttpFetcher`` when every attempt failed."""


@dataclass(frozen=True)
class FetchResult:
    downloaded: bool
    bytes: int = 0


@runtime_checkable
class Fetcher(Protocol):
    """Anything that can place the bytes behind ``url`` at ``dest``.

    Implementations must fail loudly (raise) when the expected size or SHA-1
    does not match, and must not leave a partial file at ``dest``.
    """

    def fetch(
        self,
        url: str,
        dest: Path,
        *,
        expected_size: int | None = None,
        expected_sha1: str | None = None,
    ) -> FetchResult: ...


def _remove_quietly(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as exc:
        logger.debug("could not remove %s: %s", path, exc)


class HttpFetcher:
    """Blocking HTTP(S) downloader built on ``httpx.Client``.

    Parameters
    ----------
    timeout:
        Per-request timeout in seconds.
    retries:
        Total attempts before giving up.
    client:
        Optional pre-built client (tests inject one with a mock transport).
    """

    def __init__(
        self,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        retries: int = DEFAULT_RETRIES,
        user_agent: str = USER_AGENT,
        client: httpx.Client | None = None,
    ) -> None:
        self._retries = max(1, retries)
        self._client = client or httpx.Client(
            timeout=timeout,
            headers={"User-Agent": user_agent},
            follow_redirects=True,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "HttpFetcher":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def fetch(
        self,
        url: str,
        dest: Path,
        *,
        expected_size: int | None = None,
        expected_sha1: str | None = None,
    ) -> FetchResult:
        dest = Path(dest)
        expected_sha1 = expected_sha1.lower() if expected_sha1 else None

        safe_url = redact_url(url)
        if self._already_present(dest, expected_size, expected_sha1):
            logger.debug("fetch skipped, destination already matches", extra={"meta": {"url": safe_url}})
            return FetchResult(downloaded=False)

        dest.parent.mkdir(parents=True, exist_ok=True)
        part = dest.with_name(dest.name + ".part")
        last_error = ""

        for attempt in range(1, self._retries + 1):
            try:
                written = self._download_once(url, part, expected_size, expected_sha1)
                os.replace(part, dest)
                logger.debug(
                    "download complete",
                    extra={"meta": {"url": safe_url, "attempt": attempt, "bytes": written}},
                )
                return FetchResult(downloaded=True, bytes=written)
            except (httpx.HTTPError, DownloadError, OSError) as exc:
                # httpx status errors embed the full request URL
                last_error = str(exc).replace(url, safe_url)
                logger.warning(
                    "download attempt failed",
                    extra={"meta": {"url": safe_url, "attempt": attempt, "error": last_error}},
                )
                _remove_quietly(part)
                _remove_quietly(dest)

        raise DownloadError(
            f"Download failed after {self._retries} attempt(s): {last_error}"
        )

    def _already_present(
        self, dest: Path, expected_size: int | None, expected_sha1: str | None
    ) -> bool:
        if expected_size is None or not dest.is_file():
            return False
        if dest.stat().st_size != expected_size:
            return False
        return expected_sha1 is None or file_digest(dest, "sha1") == expected_sha1

    def _download_once(
        self,
        url: str,
        part: Path,
        expected_size: int | None,
        expected_sha1: str | None,
    ) -> int:
        hasher = hashlib.sha1()
        written = 0
        with self._client.stream("GET", url) as response:
            response.raise_for_status()
            with part.open("wb") as out:
                for chunk in response.iter_bytes(chunk_size=_CHUNK_SIZE):
                    out.write(chunk)
                    hasher.update(chunk)
                    written += len(chunk)
                out.flush()
                os.fsync(out.fileno())

        if expected_size is not None and written != expected_size:
            raise DownloadError(
                f"size mismatch: expected {expected_size} bytes, got {written}"
            )
        if expected_sha1 is not None:
            actual = hasher.hexdigest()
            if actual != expected_sha1:
                raise DownloadError(
                    f"SHA1 mismatch: expected {hash_prefix(expected_sha1)}…, "
                    f"got {hash_prefix(actual)}…"
                )
        return written
