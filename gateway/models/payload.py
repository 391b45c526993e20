"""Payload tree model.

A payload is an untrusted tree of JSON-shaped nodes::

    Node = None | bool | int | float | str | list[Node] | dict[str, Node]

Anything else (bytes, sets, tuples, custom objects, non-string keys,
non-finite floats, nesting beyond MAX_PAYLOAD_DEPTH) makes the tree
malformed. The helpers here dispatch on those node kinds explicitly; no
other shape is ever probed.
"""

from __future__ import annotations

import math
from typing import Callable, Iterator, Union

from gateway.constants import MAX_PAYLOAD_DEPTH

Scalar = Union[None, bool, int, float, str]
Node = Union[Scalar, list["Node"], dict[str, "Node"]]

#: Path segment appended for "every element of this array".
ARRAY_MARKER = "[]"


def is_scalar(node: object) -> bool:
    if node is None or isinstance(node, (bool, str)):
        return True
    if isinstance(node, int):
        return True
    if isinstance(node, float):
        return math.isfinite(node)
    return False


def is_well_formed(node: object, max_depth: int = MAX_PAYLOAD_DEPTH) -> bool:
    """Return True when ``node`` is a finite JSON-shaped tree.

    Iterative walk with an explicit depth bound, so self-referencing
    containers terminate (they exceed the bound) instead of recursing forever.
    """
    stack: list[tuple[object, int]] = [(node, 0)]
    while stack:
        current, depth = stack.pop()
        if depth > max_depth:
            return False
        if isinstance(current, dict):
            for key, value in current.items():
                if not isinstance(key, str):
                    return False
                stack.append((value, depth + 1))
        elif isinstance(current, list):
            stack.extend((item, depth + 1) for item in current)
        elif not is_scalar(current):
            return False
    return True


def join_path(prefix: str, key: str) -> str:
    """Dotted path for ``key`` under ``prefix`` (``"" + "a" -> "a"``)."""
    return f"{prefix}.{key}" if prefix else key


def iter_strings(node: Node) -> Iterator[str]:
    """Yield every string leaf of the tree, depth-first."""
    if isinstance(node, str):
        yield node
    elif isinstance(node, dict):
        for value in node.values():
            yield from iter_strings(value)
    elif isinstance(node, list):
        for item in node:
            yield from iter_strings(item)


def map_strings(node: Node, fn: Callable[[str], str]) -> Node:
    """Return a copy of the tree with ``fn`` applied to every string leaf.

    Dict keys are left untouched: they have already been checked against
    the allowlist and are not free text.
    """
    if isinstance(node, str):
        return fn(node)
    if isinstance(node, dict):
        return {key: map_strings(value, fn) for key, value in node.items()}
    if isinstance(node, list):
        return [map_strings(item, fn) for item in node]
    return node


def leaf_paths(node: Node, prefix: str = "") -> set[str]:
    """Collect the collapsed path of every scalar leaf.

    Array indices collapse to ``[]``: ``{"a": [{"b": 1}, 2]}`` yields
    ``{"a[].b", "a[]"}``. Containers contribute only through their leaves.
    """
    paths: set[str] = set()
    if isinstance(node, dict):
        for key, value in node.items():
            paths |= leaf_paths(value, join_path(prefix, key))
    elif isinstance(node, list):
        base = prefix + ARRAY_MARKER
        for item in node:
            paths |= leaf_paths(item, base)
    else:
        paths.add(prefix)
    return paths
