"""Pattern definitions for the privacy gateway scanner.

Two batteries, both pre-compiled at module load time using google-re2:

  - PII_PATTERNS       : literal donor-identifying data (email, phone,
                          street address, national ID, payment card, IBAN).
  - INJECTION_PATTERNS : adversarial instruction sequences aimed at the AI
                          collaborator (disregard-prior-context, role
                          reassignment, chat-template control tokens).

The lists are policy data: adding a pattern means adding a PatternEntry here
and bumping PATTERNS_VERSION. The scan engine and pipeline do not change.

IMPORT RULES:
  - ``import re2`` ONLY: ``import re`` is PROHIBITED in this file and any
    gateway/scanner/ file. re2 is linear-time, so no pattern here can be
    driven into catastrophic backtracking by an adversarial payload.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

import re2  # google-re2: NOT stdlib re

#: Bump on every change to the pattern lists below.
PATTERNS_VERSION: str = "1.3.0"


class FindingKind(str, Enum):
    """Kind of sensitive or adversarial content a pattern detects."""

    EMAIL = "email"
    PHONE = "phone"
    ADDRESS = "address"
    NATIONAL_ID = "national_id"
    CARD = "card"
    IBAN = "iban"
    INJECTION = "injection"

    @property
    def is_pii(self) -> bool:
        return self is not FindingKind.INJECTION


#: Replacement token written by redact() for each kind.
PLACEHOLDERS: dict[FindingKind, str] = {
    FindingKind.EMAIL: "[EMAIL]",
    FindingKind.PHONE: "[PHONE]",
    FindingKind.ADDRESS: "[ADDRESS]",
    FindingKind.NATIONAL_ID: "[SSN]",
    FindingKind.CARD: "[CARD]",
    FindingKind.IBAN: "[IBAN]",
    FindingKind.INJECTION: "[user instruction redacted]",
}


@dataclass(frozen=True)
class PatternEntry:
    """A single compiled pattern with metadata.

    Fields:
        pattern: Pre-compiled re2 pattern object. Compiled at module load time.
        kind:    FindingKind reported for a match.
        slug:    Kebab-case identifier, used in tests and debug logs
                 (never the match text).
    """
    pattern: Any           # re2._Regexp: pre-compiled at module load
    kind: FindingKind
    slug: str


# Street suffixes recognised by the address heuristic.
_STREET_SUFFIXES = (
    "Street|St|Avenue|Ave|Road|Rd|Boulevard|Blvd|Lane|Ln|Drive|Dr|Court|Ct|"
    "Way|Circle|Cir|Parkway|Pkwy|Place|Pl|Terrace|Ter|Highway|Hwy|Square|Sq|"
    "Trail|Trl"
)


# ===========================================================================
# PII PATTERNS
# Ordered most-specific first. When overlapping findings are equally wide, the
# one listed first names the placeholder redact() writes.
# ===========================================================================

PII_PATTERNS: list[PatternEntry] = [
    # ─── Payment cards ────────────────────────────────────────────────────
    PatternEntry(
        # 13–19 digits, optional single space/dash between any digits
        pattern=re2.compile(r'\b(?:\d[ -]?){12,18}\d\b'),
        kind=FindingKind.CARD,
        slug="card-number",
    ),
    # ─── National ID (US SSN) ─────────────────────────────────────────────
    PatternEntry(
        pattern=re2.compile(r'\b\d{3}[- ]\d{2}[- ]\d{4}\b'),
        kind=FindingKind.NATIONAL_ID,
        slug="us-ssn",
    ),
    PatternEntry(
        # Unformatted SSN introduced by a label
        pattern=re2.compile(r'(?i)\b(?:ssn|social security(?: number)?)\W{0,3}\d{9}\b'),
        kind=FindingKind.NATIONAL_ID,
        slug="us-ssn-labelled",
    ),
    # ─── IBAN ─────────────────────────────────────────────────────────────
    PatternEntry(
        # Country code + check digits + at least three 4-char groups (spaced or
        # packed), one of the first three all digits. Plain uppercase words
        # after a code like "FY24" do not qualify.
        pattern=re2.compile(
            r'\b[A-Z]{2}\d{2}'
            r'(?:(?: ?\d{4})(?: ?[A-Z0-9]{4}){2}'
            r'|(?: ?[A-Z0-9]{4})(?: ?\d{4})(?: ?[A-Z0-9]{4})'
            r'|(?: ?[A-Z0-9]{4}){2}(?: ?\d{4}))'
            r'(?: ?[A-Z0-9]{4}){0,4}(?: ?[A-Z0-9]{1,4})?\b'
        ),
        kind=FindingKind.IBAN,
        slug="iban",
    ),
    # ─── Email ────────────────────────────────────────────────────────────
    PatternEntry(
        pattern=re2.compile(r'(?i)\b[a-z0-9._%+\-]+@[a-z0-9.\-]+\.[a-z]{2,}\b'),
        kind=FindingKind.EMAIL,
        slug="email-address",
    ),
    # ─── Phone ────────────────────────────────────────────────────────────
    PatternEntry(
        # 10-digit: 555-123-4567, (555) 123-4567, +1 555.123.4567, 5551234567
        pattern=re2.compile(
            r'(?:\+\d{1,3}[-.\s]?)?(?:\(\d{3}\)|\b\d{3})[-.\s]?\d{3}[-.\s]?\d{4}\b'
        ),
        kind=FindingKind.PHONE,
        slug="phone-10-digit",
    ),
    PatternEntry(
        # 7-digit local number; separator required so bare amounts don't match
        pattern=re2.compile(r'\b\d{3}[-.\s]\d{4}\b'),
        kind=FindingKind.PHONE,
        slug="phone-7-digit",
    ),
    # ─── Street address ───────────────────────────────────────────────────
    PatternEntry(
        # "123 Main Street", "4500 Old Mill Rd."
        pattern=re2.compile(
            r"(?i)\b\d{1,6}\s+[a-z0-9.'\-]+(?:\s+[a-z0-9.'\-]+)?\s+(?:" + _STREET_SUFFIXES + r")\b"
        ),
        kind=FindingKind.ADDRESS,
        slug="street-address",
    ),
    PatternEntry(
        pattern=re2.compile(r'(?i)\bp\.?\s?o\.?\s+box\s+\d+'),
        kind=FindingKind.ADDRESS,
        slug="po-box",
    ),
]


# ===========================================================================
# PROMPT INJECTION PATTERNS
# All patterns use (?i) inline flag for case-insensitivity
# ===========================================================================

INJECTION_PATTERNS: list[PatternEntry] = [
    # ─── Disregard prior context ──────────────────────────────────────────
    PatternEntry(
        pattern=re2.compile(
            r'(?i)\bignore\s+(?:all\s+|any\s+)?(?:the\s+)?(?:previous|prior|above|earlier)\s+'
            r'(?:instructions?|prompts?|directions?|rules|context)'
        ),
        kind=FindingKind.INJECTION,
        slug="ignore-previous-instructions",
    ),
    PatternEntry(
        pattern=re2.compile(
            r'(?i)\bdisregard\s+(?:all\s+|any\s+|your\s+)?(?:previous|prior|above|safety|system|the\s+system)'
        ),
        kind=FindingKind.INJECTION,
        slug="disregard-instructions",
    ),
    PatternEntry(
        pattern=re2.compile(r'(?i)\bforget\s+(?:everything|all\s+(?:previous|prior)\s+instructions)'),
        kind=FindingKind.INJECTION,
        slug="forget-instructions",
    ),
    PatternEntry(
        pattern=re2.compile(r'(?i)\bnew\s+instructions?\s*:'),
        kind=FindingKind.INJECTION,
        slug="new-instructions-label",
    ),
    PatternEntry(
        pattern=re2.compile(
            r'(?i)\boverride\s+(?:your\s+|the\s+)?(?:safety|content|system|privacy)\s+'
            r'(?:filters?|guidelines|restrictions|rules|prompt)'
        ),
        kind=FindingKind.INJECTION,
        slug="override-safety-filters",
    ),
    # ─── Role reassignment ────────────────────────────────────────────────
    PatternEntry(
        pattern=re2.compile(
            r'(?i)\byou\s+are\s+now\s+(?:dan\b|in\s+\w+\s+mode|an?\s+(?:unrestricted|unfiltered|jailbroken|different|evil)\b)'
        ),
        kind=FindingKind.INJECTION,
        slug="role-reassignment-now",
    ),
    PatternEntry(
        pattern=re2.compile(r'(?i)\bfrom\s+now\s+on,?\s+you\s+(?:are|will|must|shall)\b'),
        kind=FindingKind.INJECTION,
        slug="from-now-on-directive",
    ),
    PatternEntry(
        pattern=re2.compile(
            r'(?i)\b(?:act|behave|respond)\s+as\s+(?:an?\s+)?(?:unrestricted|unfiltered|jailbroken|different)\s+'
            r'(?:ai|assistant|model|llm|version)'
        ),
        kind=FindingKind.INJECTION,
        slug="act-as-unrestricted",
    ),
    PatternEntry(
        pattern=re2.compile(r'(?i)\bpretend\s+(?:you|that\s+you)\s+(?:are|have)\s+no\s+(?:restrictions|limits|rules|guidelines)'),
        kind=FindingKind.INJECTION,
        slug="pretend-no-restrictions",
    ),
    PatternEntry(
        pattern=re2.compile(r'(?i)\b(?:do\s+anything\s+now|jailbreak|developer\s+mode|god\s+mode)\b'),
        kind=FindingKind.INJECTION,
        slug="jailbreak-keyword",
    ),
    # ─── System prompt extraction ─────────────────────────────────────────
    PatternEntry(
        pattern=re2.compile(
            r'(?i)\b(?:reveal|print|show|repeat|output|dump)\s+(?:me\s+)?(?:the|your)\s+'
            r'(?:raw\s+|full\s+|original\s+)?(?:system\s+prompt|hidden\s+instructions|initial\s+instructions)'
        ),
        kind=FindingKind.INJECTION,
        slug="extract-system-prompt",
    ),
    PatternEntry(
        pattern=re2.compile(r'(?i)\bbegin\s+system\s+prompt\b'),
        kind=FindingKind.INJECTION,
        slug="begin-system-prompt",
    ),
    # ─── Embedded control tokens / role markers ───────────────────────────
    PatternEntry(
        pattern=re2.compile(r'(?i)\[/?INST\]|<</?SYS>>'),
        kind=FindingKind.INJECTION,
        slug="llama-control-token",
    ),
    PatternEntry(
        pattern=re2.compile(r'(?i)<\|\s*(?:im_start|im_end|system|user|assistant|endoftext)\s*\|>'),
        kind=FindingKind.INJECTION,
        slug="chatml-control-token",
    ),
    PatternEntry(
        pattern=re2.compile(r'(?im)^\s*(?:system|assistant)\s*:'),
        kind=FindingKind.INJECTION,
        slug="line-role-marker",
    ),
    PatternEntry(
        pattern=re2.compile(r'(?i)\brole\s*:\s*system\b'),
        kind=FindingKind.INJECTION,
        slug="role-system-marker",
    ),
    PatternEntry(
        pattern=re2.compile(r'(?i)\[(?:NEW INSTRUCTIONS|SYSTEM UPDATE|ADMIN OVERRIDE|SYSTEM MESSAGE)\]'),
        kind=FindingKind.INJECTION,
        slug="injected-instruction-block",
    ),
]


# ===========================================================================
# ALL_PATTERNS: PII first, then injection (used by redact() and tests)
# ===========================================================================

ALL_PATTERNS: list[PatternEntry] = PII_PATTERNS + INJECTION_PATTERNS
