"""Recovery decision log — every resume/redownload/quarantine/skip determination.

Decisions are derived only from the lockfile and local files.  Each one is
logged as a structured record whose ``meta`` carries ``authority``,
``expected``, and ``observed``, and is kept in an append-only in-memory list so
callers can inspect what a run decided.
"""

from __future__ import annotations

import logging

from packsmith.core.hasher import DigestCheck, hash_prefix
from packsmith.models.install import DecisionKind, DigestObservation, RecoveryDecision
from packsmith.models.lockfile import Artifact

logger = logging.getLogger(__name__)

_LEVELS = {
    DecisionKind.RESUME: logging.INFO,
    DecisionKind.SKIP_VALID: logging.INFO,
    DecisionKind.REDOWNLOAD_CORRUPT: logging.WARNING,
    DecisionKind.QUARANTINE_CORRUPT: logging.WARNING,
}


def build_decision(
    decision: DecisionKind, artifact: Artifact, check: DigestCheck
) -> RecoveryDecision:
    """Describe what the lockfile expected versus what is on disk."""
    return RecoveryDecision(
        decision=decision,
        artifact=artifact.name,
        expected=DigestObservation(
            algo=artifact.checksum.algo,
            size=artifact.size,
            hash_prefix=hash_prefix(artifact.checksum.value),
        ),
        observed=DigestObservation(
            algo=artifact.checksum.algo,
            size=check.size,
            hash_prefix=hash_prefix(check.observed),
        ),
    )


class DecisionLog:
    """Append-only record of recovery decisions for one run."""

    def __init__(self) -> None:
        self._decisions: list[RecoveryDecision] = []

    def record(
        self, decision: DecisionKind, artifact: Artifact, check: DigestCheck
    ) -> RecoveryDecision:
        entry = build_decision(decision, artifact, check)
        self._decisions.append(entry)
        logger.log(
            _LEVELS[decision],
            decision.value,
            extra={"meta": {"path": artifact.path, **entry.as_meta()}},
        )
        return entry

    def all(self) -> list[RecoveryDecision]:
        return list(self._decisions)

    def of_kind(self, decision: DecisionKind) -> list[RecoveryDecision]:
        return [d for d in self._decisions if d.decision == decision]

    def __len__(self) -> int:
        return len(self._decisions)
