"""Shared test fixtures for Packsmith."""

from __future__ import annotations

import hashlib
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pytest

from packsmith.core.paths import InstancePaths
from packsmith.install.fetcher import DownloadError, FetchResult
from packsmith.install.installer import DeterministicInstaller
from packsmith.models.lockfile import (
    Artifact,
    ArtifactKind,
    Checksum,
    ChecksumAlgo,
    Lockfile,
)

BASE_URL = "https://artifacts.example.test"


class FakeFetcher:
    """In-memory fetch collaborator: serves ``payloads[url]`` and records calls.

    It does not enforce the expected size or digest, so verification after
    fetch is exercised by the installer itself.
    """

    def __init__(self, payloads: dict[str, bytes]) -> None:
        self.payloads = payloads
        self.calls: list[str] = []

    def fetch(
        self,
        url: str,
        dest: Path,
        *,
        expected_size: int | None = None,
        expected_sha1: str | None = None,
    ) -> FetchResult:
        self.calls.append(url)
        if url not in self.payloads:
            raise DownloadError(f"404 Not Found: {url}")
        data = self.payloads[url]
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(data)
        return FetchResult(downloaded=True, bytes=len(data))

    def close(self) -> None:
        pass


@pytest.fixture
def instance_paths(tmp_path: Path) -> InstancePaths:
    """Provide an instance layout rooted in a temp directory."""
    return InstancePaths(tmp_path / "packsmith", "test-instance")


@pytest.fixture
def payloads() -> dict[str, bytes]:
    """URL -> bytes served by the fake fetcher."""
    return {}


@pytest.fixture
def fetcher(payloads: dict[str, bytes]) -> FakeFetcher:
    return FakeFetcher(payloads)


@pytest.fixture
def installer(instance_paths: InstancePaths, fetcher: FakeFetcher) -> DeterministicInstaller:
    """Provide a DeterministicInstaller wired to the fake fetcher."""
    return DeterministicInstaller(instance_paths, fetcher)


# ---------------------------------------------------------------------------
# Lockfile factories, shared across test modules
# ---------------------------------------------------------------------------


@pytest.fixture
def make_artifact(payloads: dict[str, bytes]) -> Callable[..., Artifact]:
    """Factory fixture: build an Artifact for ``content`` and serve it.

    Pass ``serve=False`` to leave the URL unregistered, or ``served=...`` to
    serve different bytes than the checksum describes.
    """

    def _factory(
        name: str,
        content: bytes,
        *,
        kind: ArtifactKind = ArtifactKind.ASSET,
        path: str | None = None,
        algo: ChecksumAlgo = ChecksumAlgo.SHA1,
        serve: bool = True,
        served: bytes | None = None,
        **overrides: Any,
    ) -> Artifact:
        url = f"{BASE_URL}/{name}"
        digest = hashlib.new(ChecksumAlgo(algo).value, content).hexdigest()
        if serve:
            payloads[url] = content if served is None else served
        defaults: dict[str, Any] = {
            "name": name,
            "kind": kind,
            "url": url,
            "path": path or f"assets/{name}",
            "checksum": Checksum(algo=algo, value=digest),
            "size": len(content),
        }
        defaults.update(overrides)
        return Artifact(**defaults)

    return _factory


@pytest.fixture
def make_lockfile() -> Callable[..., Lockfile]:
    """Factory fixture: build a Lockfile around the given artifacts."""

    def _factory(*artifacts: Artifact, target_id: str = "1.20.1", **overrides: Any) -> Lockfile:
        defaults: dict[str, Any] = {
            "schema_version": "1",
            "pack_id": "test-pack",
            "pack_version": "1.0.0",
            "target_id": target_id,
            "generated_at": datetime(2024, 1, 1, tzinfo=timezone.utc),
            "artifacts": tuple(artifacts),
        }
        defaults.update(overrides)
        return Lockfile(**defaults)

    return _factory


@pytest.fixture
def write_lockfile(instance_paths: InstancePaths) -> Callable[[Lockfile], Path]:
    """Write a lockfile to the instance's ``pack/lock.json`` and return the path."""

    def _write(lockfile: Lockfile) -> Path:
        path = instance_paths.lockfile_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(lockfile.model_dump_json(by_alias=True, indent=2), encoding="utf-8")
        return path

    return _write
