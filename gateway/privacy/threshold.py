"""Cohort threshold gate for analytics payloads.

An aggregate over fewer than PRIVACY_THRESHOLD donors is re-identifying even
when no named field survives the allowlist, so the gate runs in addition to
field filtering.

The cohort size N is supplied by the collaborator that computed the
aggregate, as ``cohort_size`` at the top level or under ``result``. The gate
does not recompute N. A payload that does not state N is rejected.
"""

from __future__ import annotations

import math
from typing import Any, Optional

from gateway.constants import PRIVACY_THRESHOLD, UPSTREAM_PRIVACY_ERROR_MARKER
from gateway.models.verdict import RejectReason

COHORT_SIZE_FIELD = "cohort_size"


def _as_count(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if value < 0:
        return None
    return value


def cohort_size(payload: Any) -> Optional[float]:
    """Return the stated cohort size, or None if absent or not a count."""
    if not isinstance(payload, dict):
        return None
    if COHORT_SIZE_FIELD in payload:
        return _as_count(payload[COHORT_SIZE_FIELD])
    result = payload.get("result")
    if isinstance(result, dict) and COHORT_SIZE_FIELD in result:
        return _as_count(result[COHORT_SIZE_FIELD])
    return None


def upstream_threshold_failed(payload: Any) -> bool:
    """True if the store's own cohort check already failed for this result."""
    if not isinstance(payload, dict):
        return False
    result = payload.get("result")
    if not isinstance(result, dict):
        return False
    error = result.get("error")
    return isinstance(error, str) and UPSTREAM_PRIVACY_ERROR_MARKER in error


def check_threshold(payload: Any) -> Optional[RejectReason]:
    """Return PRIVACY_THRESHOLD if the payload must be blocked, else None.

    ``N == PRIVACY_THRESHOLD`` passes; the floor is inclusive.
    """
    if upstream_threshold_failed(payload):
        return RejectReason.PRIVACY_THRESHOLD
    n = cohort_size(payload)
    if n is None or n < PRIVACY_THRESHOLD:
        return RejectReason.PRIVACY_THRESHOLD
    return None
