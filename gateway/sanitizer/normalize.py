"""Text normalizer and redactor.

  - ``normalize(html)``         rich text → plain text. Executable and
                                structural elements are removed with their
                                content; whitespace is collapsed.
  - ``redact(text)``            every scanner finding span → placeholder token.
  - ``neutralize_injection()``  redact injection findings only.
  - ``budget(text, units)``     truncate to ~units tokens without splitting a
                                placeholder.
  - ``sanitize_to_plain_text``  normalize → redact → budget.

None of these raise. Unparsable markup degrades to stripping all
angle-bracket content.

IMPORT RULES:
  - ``import re2`` ONLY: ``import re`` is PROHIBITED in this file.
"""

from __future__ import annotations

import html as html_lib
from typing import Iterable, Optional

import re2  # google-re2. NEVER: import re
from bs4 import BeautifulSoup, Comment

from gateway.constants import CHARS_PER_TOKEN, DEFAULT_MAX_TEXT_TOKENS
from gateway.scanner.definitions import ALL_PATTERNS, PLACEHOLDERS, FindingKind
from gateway.scanner.regex_engine import ScanFinding, scan
from gateway.utils.logger import get_logger

logger = get_logger(__name__)

# Removed together with everything inside them.
DANGEROUS_TAGS: frozenset[str] = frozenset({
    "script", "iframe", "frame", "frameset", "object", "embed", "applet",
    "link", "meta", "base", "style", "svg", "math", "template", "slot",
    "form", "input", "select", "button", "textarea", "noscript",
})

_TAG_RE = re2.compile(r'<[^>]*>')
_OPEN_BRACKET_RE = re2.compile(r'<([A-Za-z!/?])')
_WHITESPACE_RE = re2.compile(r'\s+')

_PATTERN_PRIORITY: dict[str, int] = {entry.slug: i for i, entry in enumerate(ALL_PATTERNS)}
_MAX_PLACEHOLDER_LEN = max(len(token) for token in PLACEHOLDERS.values())


# ─── HTML cleaning ────────────────────────────────────────────────────────────


def _clean_tree(soup: BeautifulSoup) -> None:
    """Remove dangerous elements and comments in place.

    Attributes (handlers, URIs, styles) never reach ``get_text()`` output, so
    only element content needs removing.
    """
    for comment in soup.find_all(string=lambda s: isinstance(s, Comment)):
        comment.extract()
    for tag in soup.find_all(list(DANGEROUS_TAGS)):
        if not tag.decomposed:  # already gone with an enclosing dangerous tag
            tag.decompose()


def strip_tags(text: str, separator: str = " ") -> str:
    """Replace angle-bracket content with ``separator``; drop dangling tag openers."""
    text = _TAG_RE.sub(separator, text)
    return _OPEN_BRACKET_RE.sub(lambda m: m.group(1), text)


def collapse_whitespace(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", text).strip()


def normalize(html: str, separator: str = " ") -> str:
    """Convert rich text to plain text.

    Text nodes are joined with ``separator``. With ``separator=""`` a value
    split by inline markup (``john<b></b>@example.com``) reads back whole,
    which is what the pipeline scans alongside the spaced form.

    Entities are decoded by the parser. Entity-encoded tags that only appear
    after decoding (``&lt;script&gt;``) are stripped on the second pass, so the
    result never contains a tag.
    """
    if not isinstance(html, str) or not html:
        return ""
    try:
        soup = BeautifulSoup(html, "html.parser")
        _clean_tree(soup)
        text = soup.get_text(separator)
    except Exception as exc:  # noqa: BLE001
        logger.warning("HTML parse failed: stripping tags", error_type=type(exc).__name__)
        text = html_lib.unescape(strip_tags(html, separator))
    return collapse_whitespace(strip_tags(text, separator))


def needs_normalize(text: str) -> bool:
    """True if ``text`` could hold markup or entities."""
    return "<" in text or "&" in text


# ─── Redaction ────────────────────────────────────────────────────────────────


def _rank(finding: ScanFinding) -> tuple[int, int]:
    return (finding.start - finding.end, _PATTERN_PRIORITY[finding.slug])


def _replace_spans(text: str, findings: list[ScanFinding]) -> str:
    """Replace the union of finding spans; overlaps merge into one token.

    A merged span takes the placeholder of its widest finding, ties going to
    the pattern listed first in ALL_PATTERNS.
    """
    merged: list[list] = []  # [start, end, finding]
    for finding in findings:
        if merged and finding.start < merged[-1][1]:
            group = merged[-1]
            group[1] = max(group[1], finding.end)
            if _rank(finding) < _rank(group[2]):
                group[2] = finding
        else:
            merged.append([finding.start, finding.end, finding])

    parts: list[str] = []
    pos = 0
    for start, end, finding in merged:
        parts.append(text[pos:start])
        parts.append(PLACEHOLDERS[finding.kind])
        pos = end
    parts.append(text[pos:])
    return "".join(parts)


def redact(text: str, kinds: Optional[Iterable[FindingKind]] = None) -> str:
    """Replace every finding span in ``text`` with its placeholder token."""
    if not isinstance(text, str) or not text:
        return text
    findings = scan(text, kinds)
    if not findings:
        return text
    return _replace_spans(text, findings)


def neutralize_injection(text: str) -> tuple[str, bool]:
    """Redact adversarial instruction sequences.

    Returns:
        (clean_text, detected): ``detected`` is True if anything was replaced.
    """
    if not isinstance(text, str) or not text:
        return text, False
    findings = scan(text, (FindingKind.INJECTION,))
    if not findings:
        return text, False
    return _replace_spans(text, findings), True


# ─── Budget ───────────────────────────────────────────────────────────────────


def budget(text: str, max_units: int) -> str:
    """Truncate ``text`` to ``max_units * CHARS_PER_TOKEN`` characters.

    If the cut would fall inside a placeholder token, the cut moves back to
    the token's start so the token is dropped whole.
    """
    if max_units <= 0:
        return ""
    limit = max_units * CHARS_PER_TOKEN
    if len(text) <= limit:
        return text

    cut = limit
    window_start = max(0, limit - _MAX_PLACEHOLDER_LEN + 1)
    for start in range(window_start, limit):
        if any(
            text.startswith(token, start) and start + len(token) > limit
            for token in PLACEHOLDERS.values()
        ):
            cut = start
            break
    return text[:cut].rstrip()


def sanitize_to_plain_text(text: str, max_units: int = DEFAULT_MAX_TEXT_TOKENS) -> str:
    """normalize → redact (PII and injection) → budget."""
    return budget(redact(normalize(text)), max_units)
