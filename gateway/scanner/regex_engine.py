"""Regex scan engine for the privacy gateway.

Provides:
  - ``ScanFinding``: frozen dataclass holding a kind and a matched span. It never
    carries the matched text.
  - ``scan()``:       every finding in a string, ordered by position.
  - ``has_any()``:    True if any pattern (PII or injection) matches.
  - ``has_pii()``:    True if a PII pattern matches.
  - ``deep_scan()``:  recursive ``has_any`` over a payload tree; short-circuits.

The boolean helpers are fail-closed: if a pattern raises for any reason, they
report a hit rather than letting the text through.

IMPORT RULES:
  - ``import re2`` ONLY: ``import re`` is PROHIBITED in this file.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from gateway.models.payload import Node, iter_strings
from gateway.scanner.definitions import (
    ALL_PATTERNS,
    INJECTION_PATTERNS,
    PII_PATTERNS,
    FindingKind,
    PatternEntry,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScanFinding:
    """One detected occurrence.

    Fields:
        kind:  FindingKind of the pattern that matched.
        start: Character offset where the match begins.
        end:   Character offset where the match ends (exclusive).
        slug:  PatternEntry.slug: identifies the rule, not the content.
    """

    kind: FindingKind
    start: int
    end: int
    slug: str

    @property
    def span(self) -> tuple[int, int]:
        return (self.start, self.end)


def _entries_for(kinds: Optional[Iterable[FindingKind]]) -> list[PatternEntry]:
    if kinds is None:
        return ALL_PATTERNS
    wanted = set(kinds)
    return [entry for entry in ALL_PATTERNS if entry.kind in wanted]


def scan(text: str, kinds: Optional[Iterable[FindingKind]] = None) -> list[ScanFinding]:
    """Return every finding in ``text``, ordered by (start, end).

    Overlapping findings from different patterns are all reported: a card
    number may also yield a phone finding. Callers that need one decision use
    ``has_any()`` / ``has_pii()``.

    Args:
        text:  String to scan. Non-strings yield no findings.
        kinds: Restrict to these kinds (default: all patterns).
    """
    if not isinstance(text, str) or not text:
        return []

    findings: list[ScanFinding] = []
    for entry in _entries_for(kinds):
        for m in entry.pattern.finditer(text):
            if m.end() == m.start():
                continue
            findings.append(
                ScanFinding(kind=entry.kind, start=m.start(), end=m.end(), slug=entry.slug)
            )
    findings.sort(key=lambda f: (f.start, f.end))
    return findings


def _search_any(text: str, entries: list[PatternEntry]) -> bool:
    """First-hit search across ``entries``. Fail-closed on engine errors."""
    if not isinstance(text, str) or not text:
        return False
    try:
        for entry in entries:
            if entry.pattern.search(text):
                return True
        return False
    except Exception as exc:  # noqa: BLE001
        logger.error(
            "Pattern engine error: %s: treating text as a hit",
            type(exc).__name__,
        )
        return True


def has_any(text: str) -> bool:
    """True if ``text`` contains any PII literal or injection sequence."""
    return _search_any(text, ALL_PATTERNS)


def has_pii(text: str) -> bool:
    """True if ``text`` contains a PII literal."""
    return _search_any(text, PII_PATTERNS)


def has_injection(text: str) -> bool:
    """True if ``text`` contains an adversarial instruction sequence."""
    return _search_any(text, INJECTION_PATTERNS)


def deep_scan(tree: Node, pii_only: bool = False) -> bool:
    """Apply ``has_any`` (or ``has_pii``) to every string leaf of ``tree``.

    Short-circuits on the first hit. Dict keys are not scanned: by the time
    this runs they have been checked against the allowlist.
    """
    check = has_pii if pii_only else has_any
    return any(check(value) for value in iter_strings(tree))
