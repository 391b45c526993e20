"""Field allowlist filter.

``filter_payload(payload, allowlist)`` walks an untrusted payload depth-first
and rebuilds it from the permitted parts only:

  - A scalar survives when its collapsed path is an allowlist entry.
  - An object survives when some entry lies below its path; its keys are
    filtered recursively. An object left empty is dropped.
  - An array survives when its ``[]`` path is permitted; every element is
    filtered by the same rule. An array left empty is dropped.

Disallowed keys are removed outright, never blanked to null or "". The filter
cannot fail: any input yields a (possibly empty) dict, and applying it twice
gives the same result as applying it once.

Keys containing path syntax (``.``, ``[`` or ``]``) are dropped, so
``{"profile.name": ...}`` can never impersonate ``{"profile": {"name": ...}}``.
"""

from __future__ import annotations

from typing import Union

from gateway.allowlist.loader import Allowlist
from gateway.models.payload import ARRAY_MARKER, Node, is_scalar, join_path

_PATH_SYNTAX = frozenset(".[]")


class _Dropped:
    __slots__ = ()

    def __repr__(self) -> str:
        return "<dropped>"


_DROP = _Dropped()


def filter_payload(payload: object, allowlist: Allowlist) -> dict[str, Node]:
    """Return a new tree holding only the fields ``allowlist`` permits.

    Non-object payloads reduce to ``{}``. The input is never mutated.
    """
    if not isinstance(payload, dict):
        return {}
    return _filter_object(payload, "", allowlist)


def _filter_object(obj: dict, prefix: str, allowlist: Allowlist) -> dict[str, Node]:
    kept: dict[str, Node] = {}
    for key, value in obj.items():
        if not isinstance(key, str) or not key or _PATH_SYNTAX.intersection(key):
            continue
        result = _filter_value(value, join_path(prefix, key), allowlist)
        if result is not _DROP:
            kept[key] = result
    return kept


def _filter_value(value: object, path: str, allowlist: Allowlist) -> Union[Node, _Dropped]:
    if isinstance(value, dict):
        if not allowlist.permits_descent(path):
            return _DROP
        reduced = _filter_object(value, path, allowlist)
        return reduced if reduced else _DROP
    if isinstance(value, list):
        return _filter_array(value, path + ARRAY_MARKER, allowlist)
    if is_scalar(value) and allowlist.admits_leaf(path):
        return value
    return _DROP


def _filter_array(items: list, base: str, allowlist: Allowlist) -> Union[Node, _Dropped]:
    # base is the collapsed path shared by every element, e.g. "snippets[]"
    if not allowlist.admits_leaf(base) and not allowlist.permits_descent(base):
        return _DROP
    kept: list[Node] = []
    for item in items:
        result = _filter_value(item, base, allowlist)
        if result is not _DROP:
            kept.append(result)
    return kept if kept else _DROP
