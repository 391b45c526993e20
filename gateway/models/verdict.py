"""Pipeline contracts: Category, RejectReason and Verdict.

These types are the single source of truth for the gateway decision API.
A ``Verdict`` is either accepted (carrying the reduced payload) or rejected
(carrying ONLY a reason code: never a payload fragment, matched text, or the
path of the field that triggered the block).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class Category(str, Enum):
    """Request class selecting an allowlist and downstream rule set."""

    CAMPAIGN = "campaign"
    ANALYTICS = "analytics"

    @classmethod
    def resolve(cls, value: object) -> Optional["Category"]:
        """Map a caller-supplied category string to a Category.

        Exact, case-sensitive match only. Returns None for anything else
        (unknown names, non-strings): the pipeline turns that into
        ``invalid_request``.
        """
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value)
        except ValueError:
            return None


class RejectReason(str, Enum):
    """Fixed set of rejection codes returned to the caller."""

    PII_DETECTED = "pii_detected_blocked"
    PRIVACY_THRESHOLD = "privacy_threshold_blocked"
    INVALID_REQUEST = "invalid_request"


@dataclass(frozen=True)
class Verdict:
    """Terminal result of ``ValidationPipeline.validate()``.

    Build with ``Verdict.accept()`` / ``Verdict.reject()``: the constructors
    enforce that a rejected verdict never carries a payload.
    """

    accepted: bool
    payload: Optional[dict[str, Any]] = None
    reason: Optional[RejectReason] = None

    @classmethod
    def accept(cls, payload: dict[str, Any]) -> "Verdict":
        return cls(accepted=True, payload=payload)

    @classmethod
    def reject(cls, reason: RejectReason) -> "Verdict":
        return cls(accepted=False, reason=reason)

    def to_response(self) -> dict[str, Any]:
        """Caller-facing body.

        Rejected: ``{"ok": False, "error": <code>}`` and nothing else: the
        UI maps the code to its own fixed message.
        Accepted: ``{"ok": True, "payload": <reduced payload>}``.
        """
        if self.accepted:
            return {"ok": True, "payload": self.payload}
        assert self.reason is not None
        return {"ok": False, "error": self.reason.value}
