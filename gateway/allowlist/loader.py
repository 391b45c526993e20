"""Allowlist definitions and loader for the privacy gateway.

One ordered list of field-path patterns per Category. Paths are dotted; a
``[]`` suffix on a segment means "every element of this array"::

    profile.name         : the ``name`` key of the ``profile`` object
    snippets[].content   : ``content`` of every element of ``snippets``
    params.channels      : a scalar, or an array of scalars, at that path

Allowlists are built once at startup from the built-in definitions below, each
optionally replaced per category by a YAML file. They are read-only after.

YAML file format::

    version: 1
    categories:
      campaign:
        - profile.name
        - snippets[].content
      analytics:
        - metric

A malformed file aborts startup (``AllowlistConfigError``): allowlists are
security configuration, so there is no "keep going with something else".
Individual malformed entries are skipped with a WARNING.

IMPORT RULES:
  - ``import re2`` ONLY: ``import re`` is PROHIBITED in this file.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional

import re2  # google-re2. NEVER: import re
import yaml

from gateway.models.payload import ARRAY_MARKER
from gateway.models.verdict import Category
from gateway.utils.logger import get_logger

logger = get_logger(__name__)

# ─── Schema constants ─────────────────────────────────────────────────────────

SUPPORTED_ALLOWLIST_VERSIONS: frozenset[int] = frozenset({1})

# segment := name ("[]")*   path := segment ("." segment)*
_PATH_RE = re2.compile(r'^[A-Za-z0-9_\-]+(?:\[\])*(?:\.[A-Za-z0-9_\-]+(?:\[\])*)*$')


# ─── Built-in allowlists ─────────────────────────────────────────────────────

# Campaign designer: brand identity + campaign parameters only. No donor rows.
CAMPAIGN_ALLOWLIST: tuple[str, ...] = (
    "profile.name",
    "profile.mission_statement",
    "profile.tone_of_voice",
    "profile.brand_personality",
    "profile.style_keywords",
    "profile.primary_colors",
    "profile.typography",
    "snippets[].title",
    "snippets[].content",
    "params.name",
    "params.type",
    "params.season",
    "params.audience",
    "params.goal",
    "params.tone",
    "params.channels",
    "params.durationWeeks",
    "postage.unit",
    "postage.total",
    "postage.quantity",
    "postage.mailClass",
    "postage.savings",
    "system",
    "turns[].role",
    "turns[].content",
)

# Analytics: aggregates and summary strings only.
ANALYTICS_ALLOWLIST: tuple[str, ...] = (
    "metric",
    "data[].consecutive_years",
    "data[].donor_count",
    "data[].year",
    "data[].quarter",
    "data[].month",
    "data[].gift_count",
    "data[].total_amount",
    "data[].avg_amount",
    "data[].median_gift",
    "data[].recency_bucket",
    "data[].pct_change",
    "data[].amount_from",
    "data[].amount_to",
    "data[].median_days_between",
    "summary",
    "summary_only",
)

DEFAULT_ALLOWLISTS: Mapping[Category, tuple[str, ...]] = MappingProxyType({
    Category.CAMPAIGN: CAMPAIGN_ALLOWLIST,
    Category.ANALYTICS: ANALYTICS_ALLOWLIST,
})


class AllowlistConfigError(ValueError):
    """Allowlist file could not be read or does not match the schema."""


# ─── Allowlist ───────────────────────────────────────────────────────────────


def _boundary_prefixes(entry: str) -> list[str]:
    """Every proper prefix of ``entry`` that ends on a segment boundary.

    ``"data[].year"`` → ``["data", "data[]"]``.
    """
    prefixes: list[str] = []
    for i, ch in enumerate(entry):
        if ch == "." or entry.startswith(ARRAY_MARKER, i):
            prefixes.append(entry[:i])
    return prefixes


@dataclass(frozen=True)
class Allowlist:
    """Immutable set of permitted field paths for one Category.

    Fields:
        category: The Category this list applies to.
        entries:  Ordered, de-duplicated path patterns.
    """

    category: Category
    entries: tuple[str, ...]
    _exact: frozenset[str] = field(init=False, repr=False, compare=False)
    _prefixes: frozenset[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        prefixes: set[str] = set()
        for entry in self.entries:
            prefixes.update(_boundary_prefixes(entry))
        object.__setattr__(self, "_exact", frozenset(self.entries))
        object.__setattr__(self, "_prefixes", frozenset(prefixes))

    def admits_leaf(self, path: str) -> bool:
        """True if a scalar may appear at ``path``.

        A scalar inside an array collapses to ``<path>[]``; it is admitted when
        the array's own path is an entry (``params.channels`` admits
        ``params.channels[]``).
        """
        while True:
            if path in self._exact:
                return True
            if not path.endswith(ARRAY_MARKER):
                return False
            path = path[: -len(ARRAY_MARKER)]

    def permits_descent(self, path: str) -> bool:
        """True if some entry lies strictly below ``path``."""
        return path in self._prefixes


# ─── Registry ────────────────────────────────────────────────────────────────


class AllowlistRegistry:
    """Read-only Category → Allowlist mapping built at startup.

    Usage (in lifespan):
        registry = AllowlistRegistry.from_file(config.gateway.allowlist_path)
        app.state.allowlists = registry
    """

    def __init__(self, definitions: Optional[Mapping[Category, tuple[str, ...]]] = None) -> None:
        merged = dict(DEFAULT_ALLOWLISTS)
        if definitions:
            merged.update(definitions)
        self._allowlists: Mapping[Category, Allowlist] = MappingProxyType({
            category: Allowlist(category=category, entries=tuple(dict.fromkeys(paths)))
            for category, paths in merged.items()
        })

    def get(self, category: Category) -> Allowlist:
        return self._allowlists[category]

    def counts(self) -> dict[str, int]:
        return {category.value: len(al.entries) for category, al in self._allowlists.items()}

    @classmethod
    def defaults(cls) -> "AllowlistRegistry":
        return cls()

    @classmethod
    def from_file(cls, path: Optional[str]) -> "AllowlistRegistry":
        """Build the registry from a YAML file, or the built-ins when ``path`` is None.

        Categories missing from the file keep their built-in list.

        Raises:
            AllowlistConfigError: file missing/unreadable, invalid YAML, bad
                                  version, or wrong top-level shape.
        """
        if not path:
            return cls.defaults()

        try:
            with open(path) as fh:
                raw = yaml.safe_load(fh)
        except FileNotFoundError as exc:
            raise AllowlistConfigError(f"Allowlist file not found: {path}") from exc
        except yaml.YAMLError as exc:
            raise AllowlistConfigError(f"Allowlist file is not valid YAML: {path}: {exc}") from exc
        except OSError as exc:
            raise AllowlistConfigError(f"Could not read allowlist file {path}: {exc}") from exc

        definitions = parse_allowlist_document(raw, source=path)
        registry = cls(definitions)
        logger.info("Allowlists loaded", path=path, counts=registry.counts())
        return registry


# ─── Parsing helpers ──────────────────────────────────────────────────────────


def parse_allowlist_document(raw: object, source: str = "<memory>") -> dict[Category, tuple[str, ...]]:
    """Validate a parsed YAML document and return per-category path tuples."""
    if not isinstance(raw, dict):
        raise AllowlistConfigError(f"{source}: top level must be a mapping")

    version = raw.get("version")
    if version not in SUPPORTED_ALLOWLIST_VERSIONS:
        raise AllowlistConfigError(
            f"{source}: unsupported or missing allowlist version: {version!r}. "
            f"Supported versions: {sorted(SUPPORTED_ALLOWLIST_VERSIONS)}"
        )

    categories_raw = raw.get("categories")
    if not isinstance(categories_raw, dict):
        raise AllowlistConfigError(f"{source}: 'categories' must be a mapping")

    definitions: dict[Category, tuple[str, ...]] = {}
    for name, entries_raw in categories_raw.items():
        category = Category.resolve(name)
        if category is None:
            logger.warning("Unknown allowlist category: ignoring", category=str(name))
            continue
        if not isinstance(entries_raw, list):
            raise AllowlistConfigError(f"{source}: entries for '{name}' must be a list")
        definitions[category] = _parse_entries(entries_raw, category)
    return definitions


def _parse_entries(raw_list: list, category: Category) -> tuple[str, ...]:
    """Keep well-formed path strings; skip the rest with a WARNING."""
    entries: list[str] = []
    for i, item in enumerate(raw_list):
        if not isinstance(item, str) or not _PATH_RE.match(item):
            logger.warning(
                "Allowlist entry is not a valid field path: skipping",
                category=category.value,
                index=i,
            )
            continue
        entries.append(item)
    return tuple(entries)
