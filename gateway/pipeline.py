"""Validation pipeline: one accept/reject decision per request.

    Start → Allowlisted → Normalized → DeepScanned → (analytics) ThresholdChecked → Accepted
      └──────────────┴──────────────┴──────────────┴─────→ Rejected(reason)

``ValidationPipeline.validate()`` NEVER raises. Any exception inside the
pipeline becomes ``Rejected(invalid_request)``. Each call records exactly one
outcome in the MetricsRegistry.

A PII finding in an allowed field is a hard reject: donor PII is never
redacted and passed on. Injection sequences are neutralized in place by
default (``InjectionPolicy.REDACT``) or rejected (``InjectionPolicy.BLOCK``).

Nothing from the payload is logged: only category, verdict and reason code.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from gateway.allowlist.filter import filter_payload
from gateway.allowlist.loader import AllowlistRegistry
from gateway.constants import DEFAULT_MAX_TEXT_TOKENS
from gateway.metrics import MetricsRegistry
from gateway.models.payload import is_well_formed, iter_strings, map_strings
from gateway.models.verdict import Category, RejectReason, Verdict
from gateway.privacy.threshold import check_threshold
from gateway.sanitizer.normalize import budget, needs_normalize, neutralize_injection, normalize
from gateway.scanner.regex_engine import deep_scan, has_injection, has_pii
from gateway.utils.logger import PerformanceLogger, get_logger

logger = get_logger(__name__)


class InjectionPolicy(str, Enum):
    """What to do with adversarial instruction sequences in allowed text."""

    REDACT = "redact"
    BLOCK = "block"


def _normalize_leaf(text: str) -> str:
    return normalize(text) if needs_normalize(text) else text


def _joined_has_pii(text: str) -> bool:
    return needs_normalize(text) and has_pii(normalize(text, separator=""))


def _neutralize_leaf(text: str) -> str:
    clean, _ = neutralize_injection(text)
    return clean


class ValidationPipeline:
    """Compose allowlist filter, normalizer, scanner and threshold gate.

    Usage:
        pipeline = ValidationPipeline(AllowlistRegistry.defaults(), MetricsRegistry())
        verdict = pipeline.validate({"metric": "retention", ...}, "analytics")
    """

    def __init__(
        self,
        allowlists: AllowlistRegistry,
        metrics: MetricsRegistry,
        max_text_tokens: int = DEFAULT_MAX_TEXT_TOKENS,
        injection_policy: InjectionPolicy = InjectionPolicy.REDACT,
    ) -> None:
        self._allowlists = allowlists
        self._metrics = metrics
        self._max_text_tokens = max_text_tokens
        self._injection_policy = InjectionPolicy(injection_policy)

    @property
    def metrics(self) -> MetricsRegistry:
        return self._metrics

    def validate(self, payload: Any, category: Any) -> Verdict:
        """Return the Verdict for ``payload`` under ``category``."""
        try:
            with PerformanceLogger("validate", logger, warn_after_ms=25.0):
                verdict = self._evaluate(payload, category)
        except Exception:  # noqa: BLE001  (PerformanceLogger has logged the type)
            verdict = Verdict.reject(RejectReason.INVALID_REQUEST)

        self._metrics.record_verdict(verdict)
        resolved = Category.resolve(category)
        logger.info(
            "Payload accepted" if verdict.accepted else "Payload rejected",
            category=resolved.value if resolved else None,
            reason=verdict.reason.value if verdict.reason else None,
        )
        return verdict

    def _evaluate(self, payload: Any, category: Any) -> Verdict:
        # ── Start ────────────────────────────────────────────────────────────
        resolved = Category.resolve(category)
        if resolved is None:
            return Verdict.reject(RejectReason.INVALID_REQUEST)
        if not isinstance(payload, dict) or not is_well_formed(payload):
            return Verdict.reject(RejectReason.INVALID_REQUEST)

        # ── Allowlisted ──────────────────────────────────────────────────────
        reduced = filter_payload(payload, self._allowlists.get(resolved))

        # ── Normalized: markup and entities out before scanning ─────────────
        # Inline markup can split a value across text nodes, so each marked-up
        # leaf is also scanned with its text nodes joined directly.
        if any(_joined_has_pii(text) for text in iter_strings(reduced)):
            return Verdict.reject(RejectReason.PII_DETECTED)
        reduced = map_strings(reduced, _normalize_leaf)

        # ── DeepScanned ──────────────────────────────────────────────────────
        if deep_scan(reduced, pii_only=True):
            return Verdict.reject(RejectReason.PII_DETECTED)
        # Nothing survived the allowlist: a submission made only of PII is
        # reported as such rather than accepted as an empty payload.
        if not reduced and deep_scan(payload, pii_only=True):
            return Verdict.reject(RejectReason.PII_DETECTED)

        if self._injection_policy is InjectionPolicy.BLOCK:
            if any(has_injection(text) for text in iter_strings(reduced)):
                return Verdict.reject(RejectReason.PII_DETECTED)
        else:
            reduced = map_strings(reduced, _neutralize_leaf)

        # Budget after scanning, so truncation never hides a partial match.
        reduced = map_strings(reduced, lambda text: budget(text, self._max_text_tokens))

        # ── ThresholdChecked (analytics only; N is read from the raw payload) ─
        if resolved is Category.ANALYTICS:
            reason = check_threshold(payload)
            if reason is not None:
                return Verdict.reject(reason)

        return Verdict.accept(reduced)
