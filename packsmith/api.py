"""Top-level entry points: install a lockfile, roll back an instance.

These wire the default collaborators from ``PacksmithConfig``.  Embedders that
need custom fetchers or extractors can pass their own, or use
``DeterministicInstaller`` and ``RollbackExecutor`` directly.
"""

from __future__ import annotations

from pathlib import Path

from packsmith.config import PacksmithConfig
from packsmith.config import config as default_config
from packsmith.core.lockfile_loader import load_lockfile
from packsmith.install.extractor import BundleExtractor
from packsmith.install.fetcher import Fetcher, HttpFetcher
from packsmith.install.installer import DeterministicInstaller
from packsmith.install.rollback import RollbackExecutor
from packsmith.models.install import InstallResult, RollbackResult
from packsmith.models.lockfile import Lockfile


def install(
    lockfile: Lockfile | Path | str,
    instance_id: str | None = None,
    *,
    settings: PacksmithConfig | None = None,
    fetcher: Fetcher | None = None,
    extractor: BundleExtractor | None = None,
) -> InstallResult:
    """Install ``lockfile`` (a model or a path to one) into ``instance_id``."""
    settings = settings or default_config
    if not isinstance(lockfile, Lockfile):
        lockfile = load_lockfile(Path(lockfile))
    paths = settings.instance_paths(instance_id)

    owned: HttpFetcher | None = None
    if fetcher is None:
        owned = HttpFetcher(
            timeout=settings.fetch_timeout_seconds,
            retries=settings.fetch_retries,
            user_agent=settings.user_agent,
        )
        fetcher = owned
    try:
        installer = DeterministicInstaller(
            paths,
            fetcher,
            extractor,
            snapshots_enabled=settings.snapshots_enabled,
        )
        return installer.install(lockfile)
    finally:
        if owned is not None:
            owned.close()


def rollback(
    instance_id: str | None = None,
    snapshot_id: str | None = None,
    *,
    settings: PacksmithConfig | None = None,
) -> RollbackResult:
    """Restore ``instance_id`` from ``snapshot_id`` (latest when omitted)."""
    settings = settings or default_config
    return RollbackExecutor(settings.instance_paths(instance_id)).rollback(snapshot_id)
