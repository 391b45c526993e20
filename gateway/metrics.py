"""Process-lifetime outcome counters for the privacy gateway.

``MetricsRegistry`` is the only shared mutable state in the gateway. It is
created once in the lifespan, handed to the pipeline constructor, and read by
the metrics endpoint. Tests build a fresh registry each time.

Counters only ever increase. Every recorded outcome bumps ``total_requests``
and exactly one outcome counter under the same lock, so a snapshot always
satisfies ``total_requests == sum(outcomes)``.
"""

from __future__ import annotations

import threading
from enum import Enum

from gateway.models.verdict import RejectReason, Verdict


class Outcome(str, Enum):
    """Counter name for each terminal outcome."""

    ALLOWED = "allowed"
    BLOCKED_PII = "blocked_pii"
    BLOCKED_PRIVACY_THRESHOLD = "blocked_privacy_threshold"
    BLOCKED_INVALID = "blocked_invalid"


_REASON_OUTCOME: dict[RejectReason, Outcome] = {
    RejectReason.PII_DETECTED: Outcome.BLOCKED_PII,
    RejectReason.PRIVACY_THRESHOLD: Outcome.BLOCKED_PRIVACY_THRESHOLD,
    RejectReason.INVALID_REQUEST: Outcome.BLOCKED_INVALID,
}


def outcome_for(verdict: Verdict) -> Outcome:
    if verdict.accepted:
        return Outcome.ALLOWED
    assert verdict.reason is not None
    return _REASON_OUTCOME[verdict.reason]


class MetricsRegistry:
    """Thread-safe monotonic counters.

    Usage:
        metrics = MetricsRegistry()
        metrics.record(Outcome.ALLOWED)
        metrics.snapshot()  # {"total_requests": 1, "allowed": 1, ...}
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._total = 0
        self._counts: dict[Outcome, int] = {outcome: 0 for outcome in Outcome}

    def record(self, outcome: Outcome) -> None:
        with self._lock:
            self._total += 1
            self._counts[outcome] += 1

    def record_verdict(self, verdict: Verdict) -> None:
        self.record(outcome_for(verdict))

    def snapshot(self) -> dict[str, int]:
        """Consistent copy of all five counters as plain integers."""
        with self._lock:
            counts = {"total_requests": self._total}
            counts.update({outcome.value: n for outcome, n in self._counts.items()})
        return counts
