"""Integration tests: full install / re-install / recovery / rollback cycles.

Each test drives DeterministicInstaller (or the top-level API) against a real
temp directory with the in-memory fetcher, checking the invariants the
installer promises across runs.
"""

from __future__ import annotations

import io
import json
import logging
import zipfile

import pytest

import packsmith
from packsmith.config import PacksmithConfig
from packsmith.core.errors import (
    ChecksumMismatchError,
    FetchError,
    PromotionError,
    SnapshotError,
    UnsupportedArtifactKindError,
)
from packsmith.core.hasher import file_digest
from packsmith.install import promoter as promoter_module
from packsmith.install.installer import DeterministicInstaller
from packsmith.install.quarantine import QuarantineStore
from packsmith.install.recovery import RecoveryScan, StagingRecoveryScanner
from packsmith.install.rollback import RollbackExecutor
from packsmith.install.snapshot_writer import SnapshotWriter
from packsmith.models.install import DecisionKind
from packsmith.models.lockfile import ArtifactKind
from packsmith.models.snapshot import SNAPSHOT_FILES_DIR

GAME = b"\x7fGAME" * 200_000
LIB = b"library-x-bytes"


@pytest.fixture
def game_lockfile(make_artifact, make_lockfile):
    """A primary binary and a library, as a fresh instance would pin them."""
    return make_lockfile(
        make_artifact("game-1.0", GAME, kind=ArtifactKind.PRIMARY_BINARY, path="versions/game-1.0.jar"),
        make_artifact("lib-x", LIB, kind=ArtifactKind.LIBRARY, path="libraries/lib-x.jar"),
    )


def _assert_tree_matches(paths, lockfile) -> None:
    for artifact in lockfile.installable_artifacts():
        final = paths.final_path(artifact)
        assert file_digest(final, artifact.checksum.algo) == artifact.checksum.value, artifact.name


# ---------------------------------------------------------------------------
# Fresh install and idempotency
# ---------------------------------------------------------------------------


class TestFreshInstall:
    def test_fresh_then_rerun(self, installer, fetcher, instance_paths, game_lockfile):
        first = installer.install(game_lockfile)
        assert (first.installed, first.promoted, first.verified, first.skipped, first.quarantined) == (
            2, 2, 0, 0, 0,
        )
        assert first.snapshot_id is not None
        _assert_tree_matches(instance_paths, game_lockfile)
        assert not instance_paths.staging_root.exists()

        calls_after_first = len(fetcher.calls)
        second = installer.install(game_lockfile)
        assert (second.installed, second.skipped, second.promoted) == (0, 2, 0)
        assert len(fetcher.calls) == calls_after_first

    def test_snapshot_lists_every_artifact(self, installer, instance_paths, game_lockfile):
        result = installer.install(game_lockfile)
        manifest = RollbackExecutor(instance_paths).load_manifest(result.snapshot_id)
        assert manifest.artifact_count == 2
        files_root = instance_paths.snapshot_dir(result.snapshot_id) / SNAPSHOT_FILES_DIR
        for entry in manifest.artifacts:
            copy = files_root / entry.relative_path
            assert file_digest(copy, entry.checksum.algo) == entry.checksum.value

    def test_sha256_artifacts(self, installer, instance_paths, make_artifact, make_lockfile):
        lockfile = make_lockfile(make_artifact("idx", b'{"objects": {}}', algo="sha256", kind="asset-index"))
        result = installer.install(lockfile)
        assert result.installed == 1
        _assert_tree_matches(instance_paths, lockfile)

    def test_native_bundle_extracted(self, installer, instance_paths, make_artifact, make_lockfile):
        buf = io.BytesIO()
        with zipfile.ZipFile(buf, "w") as zf:
            zf.writestr("liblwjgl.so", b"elf")
        bundle = buf.getvalue()
        lockfile = make_lockfile(
            make_artifact("natives", bundle, kind=ArtifactKind.NATIVE_BUNDLE, path="libraries/natives.jar")
        )
        installer.install(lockfile)
        assert (instance_paths.natives_dir("1.20.1") / "liblwjgl.so").read_bytes() == b"elf"

    def test_snapshots_disabled(self, instance_paths, fetcher, game_lockfile):
        installer = DeterministicInstaller(instance_paths, fetcher, snapshots_enabled=False)
        assert installer.install(game_lockfile).snapshot_id is None
        assert not instance_paths.rollback_root.exists()

    def test_empty_lockfile_writes_no_snapshot(self, installer, fetcher, instance_paths, make_lockfile):
        result = installer.install(make_lockfile())
        assert result.snapshot_id is None
        assert result.installed == 0
        assert fetcher.calls == []
        assert not instance_paths.rollback_root.exists()


# ---------------------------------------------------------------------------
# Recovery and self-healing
# ---------------------------------------------------------------------------


class TestRecovery:
    def test_valid_staged_copy_is_not_refetched(self, installer, fetcher, instance_paths, game_lockfile):
        game = game_lockfile.artifacts[0]
        staged = instance_paths.staging_path(game)
        staged.parent.mkdir(parents=True)
        staged.write_bytes(GAME)

        result = installer.install(game_lockfile)

        assert game.url not in fetcher.calls
        assert result.installed == 2
        assert [d.artifact for d in installer.decisions.of_kind(DecisionKind.RESUME)] == ["game-1.0"]
        _assert_tree_matches(instance_paths, game_lockfile)

    def test_truncated_staged_copy_is_refetched(
        self, installer, fetcher, instance_paths, game_lockfile, caplog
    ):
        game = game_lockfile.artifacts[0]
        staged = instance_paths.staging_path(game)
        staged.parent.mkdir(parents=True)
        staged.write_bytes(GAME[:10])

        with caplog.at_level(logging.INFO, logger="packsmith"):
            installer.install(game_lockfile)

        assert game.url in fetcher.calls
        assert any(r.getMessage() == "redownload-corrupt" for r in caplog.records)
        assert file_digest(instance_paths.final_path(game), "sha1") == game.checksum.value

    def test_corrupt_final_is_quarantined_and_repaired(
        self, installer, instance_paths, game_lockfile, caplog
    ):
        installer.install(game_lockfile)
        lib = game_lockfile.artifacts[1]
        instance_paths.final_path(lib).write_bytes(b"garbage")

        with caplog.at_level(logging.INFO, logger="packsmith"):
            result = installer.install(game_lockfile)

        assert result.quarantined == 1
        assert result.installed == 1
        assert result.skipped == 1
        entries = QuarantineStore(instance_paths).entries()
        assert [e.original_name for e in entries] == ["lib-x"]
        assert (instance_paths.root / entries[0].quarantine_path).read_bytes() == b"garbage"
        quarantine_logs = [r for r in caplog.records if r.getMessage() == "quarantine-corrupt"]
        assert [r.meta["artifact"] for r in quarantine_logs] == ["lib-x"]
        _assert_tree_matches(instance_paths, game_lockfile)

    def test_wrong_declared_size_but_valid_digest_is_verified(
        self, installer, instance_paths, make_artifact, make_lockfile
    ):
        artifact = make_artifact("a", b"aaa", size=999)
        final = instance_paths.final_path(artifact)
        final.parent.mkdir(parents=True)
        final.write_bytes(b"aaa")

        result = installer.install(make_lockfile(artifact))

        assert result.verified == 1
        assert result.installed == 0
        assert len(installer.decisions.of_kind(DecisionKind.SKIP_VALID)) == 1

    def test_failed_quarantine_still_repairs(
        self, installer, instance_paths, game_lockfile, monkeypatch
    ):
        installer.install(game_lockfile)
        lib = game_lockfile.artifacts[1]
        instance_paths.final_path(lib).write_bytes(b"garbage")
        monkeypatch.setattr(QuarantineStore, "quarantine", lambda self, *a, **kw: None)

        result = installer.install(game_lockfile)

        assert result.quarantined == 0
        _assert_tree_matches(instance_paths, game_lockfile)

    def test_stale_staged_file_from_older_lockfile_does_not_wedge(
        self, installer, fetcher, instance_paths, make_artifact, make_lockfile
    ):
        stale = instance_paths.staging_path("assets/x")
        stale.parent.mkdir(parents=True)
        stale.write_bytes(b"interrupted run of an older lockfile")
        lockfile = make_lockfile(make_artifact("y", b"yyy", path="assets/x/y.jar"))

        result = installer.install(lockfile)

        assert result.promoted == 1
        assert instance_paths.final_path("assets/x/y.jar").read_bytes() == b"yyy"
        assert not instance_paths.staging_root.exists()


# ---------------------------------------------------------------------------
# Fatal failures
# ---------------------------------------------------------------------------


class TestFailures:
    def test_runtime_rejected_before_any_work(
        self, installer, fetcher, instance_paths, make_artifact, make_lockfile
    ):
        lockfile = make_lockfile(
            make_artifact("lib", b"l"),
            make_artifact("jre-17", b"j", kind=ArtifactKind.MANAGED_RUNTIME, path="runtime/jre"),
        )
        with pytest.raises(UnsupportedArtifactKindError) as exc_info:
            installer.install(lockfile)
        assert exc_info.value.artifact_names == ["jre-17"]
        assert "managed-runtime" in str(exc_info.value)
        assert fetcher.calls == []
        assert not instance_paths.root.exists()

    def test_checksum_mismatch_after_fetch(self, installer, instance_paths, make_artifact, make_lockfile):
        artifact = make_artifact("a", b"expected", served=b"tampered")
        with pytest.raises(ChecksumMismatchError) as exc_info:
            installer.install(make_lockfile(artifact))
        assert exc_info.value.artifact_name == "a"
        assert exc_info.value.expected == artifact.checksum.value
        assert exc_info.value.actual is not None
        assert not instance_paths.staging_path(artifact).exists()
        assert not instance_paths.final_path(artifact).exists()

    def test_fetch_failure_names_artifact(self, installer, make_artifact, make_lockfile):
        with pytest.raises(FetchError) as exc_info:
            installer.install(make_lockfile(make_artifact("gone", b"x", serve=False)))
        assert exc_info.value.artifact_name == "gone"

    def test_unusable_staging_dir_raises_fetch_error(
        self, installer, instance_paths, make_artifact, make_lockfile, monkeypatch
    ):
        blocker = instance_paths.staging_path("assets/x")
        blocker.parent.mkdir(parents=True)
        blocker.write_bytes(b"not a directory")
        monkeypatch.setattr(
            StagingRecoveryScanner,
            "scan",
            lambda self, lockfile: RecoveryScan(resumable=frozenset(), discarded=frozenset()),
        )

        with pytest.raises(FetchError) as exc_info:
            installer.install(make_lockfile(make_artifact("y", b"yyy", path="assets/x/y.jar")))
        assert exc_info.value.artifact_name == "y"

    def test_signed_url_query_not_logged(
        self, caplog, installer, make_artifact, make_lockfile
    ):
        artifact = make_artifact("gone", b"x", serve=False, url="https://cdn.example.test/gone.jar?sig=s3cr3t")
        with caplog.at_level(logging.INFO, logger="packsmith"):
            with pytest.raises(FetchError) as exc_info:
                installer.install(make_lockfile(artifact))
        assert "s3cr3t" not in str(exc_info.value)
        urls = [r.meta["url"] for r in caplog.records if "url" in getattr(r, "meta", {})]
        assert urls == ["https://cdn.example.test/gone.jar", "https://cdn.example.test/gone.jar"]

    def test_interrupted_fetch_leaves_no_finals_and_resumes(
        self, installer, fetcher, instance_paths, make_artifact, make_lockfile
    ):
        first = make_artifact("first", b"one")
        second = make_artifact("second", b"two", serve=False)
        lockfile = make_lockfile(first, second)

        with pytest.raises(FetchError):
            installer.install(lockfile)
        assert not instance_paths.final_path(first).exists()
        assert not instance_paths.final_path(second).exists()
        assert instance_paths.staging_path(first).exists()

        fetcher.payloads[second.url] = b"two"
        fetcher.calls.clear()
        installer.install(lockfile)
        assert fetcher.calls == [second.url]
        _assert_tree_matches(instance_paths, lockfile)

    def test_promotion_failure_keeps_earlier_promotions(
        self, installer, fetcher, instance_paths, game_lockfile, monkeypatch
    ):
        real_commit = promoter_module.commit_file
        lib_final = instance_paths.final_path(game_lockfile.artifacts[1])

        def failing_commit(source, final_path):
            if final_path == lib_final:
                raise OSError("disk full")
            real_commit(source, final_path)

        monkeypatch.setattr(promoter_module, "commit_file", failing_commit)
        with pytest.raises(PromotionError) as exc_info:
            installer.install(game_lockfile)
        assert exc_info.value.artifact_name == "lib-x"
        game_final = instance_paths.final_path(game_lockfile.artifacts[0])
        assert file_digest(game_final, "sha1") == game_lockfile.artifacts[0].checksum.value
        assert not lib_final.exists()
        assert not instance_paths.rollback_root.exists()

        monkeypatch.setattr(promoter_module, "commit_file", real_commit)
        fetcher.calls.clear()
        result = installer.install(game_lockfile)
        assert fetcher.calls == []
        assert (result.skipped, result.installed) == (1, 1)
        _assert_tree_matches(instance_paths, game_lockfile)

    def test_snapshot_failure_is_not_fatal(self, installer, instance_paths, game_lockfile, monkeypatch):
        def broken(self, lockfile, artifacts):
            raise SnapshotError("no space left")

        monkeypatch.setattr(SnapshotWriter, "create_snapshot", broken)
        result = installer.install(game_lockfile)
        assert result.snapshot_id is None
        assert result.promoted == 2
        _assert_tree_matches(instance_paths, game_lockfile)


# ---------------------------------------------------------------------------
# Rollback and the top-level API
# ---------------------------------------------------------------------------


class TestRollbackCycle:
    def test_rollback_restores_corrupted_finals(self, installer, instance_paths, game_lockfile):
        installed = installer.install(game_lockfile)
        for artifact in game_lockfile.artifacts:
            instance_paths.final_path(artifact).write_bytes(b"corrupted")

        result = RollbackExecutor(instance_paths).rollback()

        assert result.snapshot_id == installed.snapshot_id
        assert result.restored_count == 2
        _assert_tree_matches(instance_paths, game_lockfile)
        reasons = {e.reason for e in QuarantineStore(instance_paths).entries()}
        assert reasons == {"rollback-replaced"}

    def test_api_round_trip_leaves_lockfile_untouched(
        self, fetcher, instance_paths, game_lockfile, write_lockfile
    ):
        lockfile_path = write_lockfile(game_lockfile)
        before = lockfile_path.read_bytes()
        settings = PacksmithConfig(_env_file=None, base_dir=instance_paths.base_dir)

        result = packsmith.install(
            lockfile_path, instance_paths.instance_id, settings=settings, fetcher=fetcher
        )
        assert result.installed == 2
        instance_paths.final_path(game_lockfile.artifacts[0]).write_bytes(b"drift")

        restored = packsmith.rollback(instance_paths.instance_id, settings=settings)

        assert restored.restored_count == 2
        assert lockfile_path.read_bytes() == before
        assert json.loads(before)["targetId"] == "1.20.1"
        _assert_tree_matches(instance_paths, game_lockfile)
