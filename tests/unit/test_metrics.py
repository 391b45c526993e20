"""Unit tests for gateway/metrics.py: outcome counters."""

from __future__ import annotations

import threading

from gateway.metrics import MetricsRegistry, Outcome, outcome_for
from gateway.models.verdict import RejectReason, Verdict

COUNTER_NAMES = {
    "total_requests",
    "allowed",
    "blocked_pii",
    "blocked_privacy_threshold",
    "blocked_invalid",
}


def test_fresh_registry_is_all_zero() -> None:
    snapshot = MetricsRegistry().snapshot()
    assert set(snapshot) == COUNTER_NAMES
    assert all(value == 0 for value in snapshot.values())


def test_record_bumps_total_and_one_outcome() -> None:
    metrics = MetricsRegistry()
    metrics.record(Outcome.BLOCKED_PII)
    metrics.record(Outcome.ALLOWED)
    metrics.record(Outcome.BLOCKED_PII)
    assert metrics.snapshot() == {
        "total_requests": 3,
        "allowed": 1,
        "blocked_pii": 2,
        "blocked_privacy_threshold": 0,
        "blocked_invalid": 0,
    }


def test_outcome_for_each_verdict() -> None:
    assert outcome_for(Verdict.accept({})) is Outcome.ALLOWED
    assert outcome_for(Verdict.reject(RejectReason.PII_DETECTED)) is Outcome.BLOCKED_PII
    assert (
        outcome_for(Verdict.reject(RejectReason.PRIVACY_THRESHOLD))
        is Outcome.BLOCKED_PRIVACY_THRESHOLD
    )
    assert outcome_for(Verdict.reject(RejectReason.INVALID_REQUEST)) is Outcome.BLOCKED_INVALID


def test_snapshot_is_a_copy() -> None:
    metrics = MetricsRegistry()
    snapshot = metrics.snapshot()
    snapshot["allowed"] = 99
    assert metrics.snapshot()["allowed"] == 0


def test_concurrent_records_are_not_lost() -> None:
    """8 threads × 1,000 records: totals must be exact and consistent."""
    metrics = MetricsRegistry()
    outcomes = list(Outcome)

    def worker(offset: int) -> None:
        for i in range(1000):
            metrics.record(outcomes[(i + offset) % len(outcomes)])

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    snapshot = metrics.snapshot()
    assert snapshot["total_requests"] == 8000
    assert sum(snapshot[o.value] for o in outcomes) == snapshot["total_requests"]
    assert all(snapshot[o.value] == 2000 for o in outcomes)
