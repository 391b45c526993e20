"""ReDoS Audit Gate: CI Required Step.

Re2 uses linear-time finite automata. Patterns that re2.compile() rejects
(backreferences, lookaround) are exactly the ones that can backtrack
exponentially under Python's stdlib ``re`` engine, so compiling every
detection pattern with re2 is the ReDoS defence.

Any change adding a pattern to gateway/scanner/definitions.py MUST pass this
gate, and no module that matches untrusted payload text may import stdlib
``re``.
"""

from __future__ import annotations

import pathlib
import subprocess
import time

import pytest
import re2

from gateway.scanner.definitions import ALL_PATTERNS, INJECTION_PATTERNS, PII_PATTERNS
from gateway.scanner.regex_engine import has_any

_Re2PatternType = type(re2.compile(r'test'))

PROJECT_ROOT = pathlib.Path(__file__).parent.parent.parent

ALL_GROUPS: dict = {
    "PII_PATTERNS": PII_PATTERNS,
    "INJECTION_PATTERNS": INJECTION_PATTERNS,
}

UNTRUSTED_TEXT_DIRS = ["gateway/scanner/", "gateway/allowlist/", "gateway/sanitizer/"]


@pytest.mark.parametrize(
    "group_name,entry",
    [(group_name, entry) for group_name, entries in ALL_GROUPS.items() for entry in entries],
    ids=[f"{group_name}::{entry.slug}" for group_name, entries in ALL_GROUPS.items() for entry in entries],
)
def test_pattern_is_re2_safe(group_name: str, entry: object) -> None:
    """Each pattern is a compiled re2 object that can execute a search."""
    assert isinstance(entry.pattern, _Re2PatternType), (  # type: ignore[attr-defined]
        f"[{group_name}] {entry.slug!r} is not a compiled re2 pattern"  # type: ignore[attr-defined]
    )
    try:
        entry.pattern.search("test input for re2 safety validation")  # type: ignore[attr-defined]
    except re2.error as e:
        pytest.fail(f"[{group_name}] {entry.slug!r} raises re2.error on search: {e}")  # type: ignore[attr-defined]


@pytest.mark.parametrize("directory", UNTRUSTED_TEXT_DIRS)
def test_no_bare_import_re(directory: str) -> None:
    """CI lint gate: stdlib re is never used on payload text."""
    result = subprocess.run(
        ["grep", "-rn", r"^import re$|^from re import|^import re ", directory],
        capture_output=True,
        text=True,
        cwd=str(PROJECT_ROOT),
    )
    assert result.returncode != 0, (
        f"LINT GATE FAILURE: bare 'import re' found in {directory}:\n{result.stdout}"
    )


@pytest.mark.parametrize(
    "attack",
    [
        "a" * 200_000 + "@",
        "1 " * 100_000,
        "ignore " * 50_000,
        "<" * 100_000,
        "x." * 100_000 + "@",
    ],
    ids=["email-tail", "digit-runs", "keyword-repeat", "angle-brackets", "dotted-local-part"],
)
def test_pathological_input_scans_quickly(attack: str) -> None:
    """Inputs that blow up backtracking engines stay linear under re2."""
    start = time.perf_counter()
    has_any(attack)
    elapsed = time.perf_counter() - start
    assert elapsed < 2.0, f"scan took {elapsed:.2f}s on a {len(attack)}-char input"


def test_all_patterns_compiled_at_module_load() -> None:
    assert len(ALL_PATTERNS) == len(PII_PATTERNS) + len(INJECTION_PATTERNS) > 0
