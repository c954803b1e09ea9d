"""Tagged rule tree nodes.

A rule tree maps keys to either a ``Scope`` (the key is a selector list and the
scope holds nested entries) or a ``Value`` (the key is a property name). Plain
nested dicts are tagged once by :func:`to_scope`: a ``dict`` becomes a
``Scope`` and anything that is not a mapping becomes a ``Value``. Wrap a dict
in ``Value`` to assign it as a property value.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from .errors import RuleTreeError


class Value:
    __slots__ = ("value",)

    value: Any

    def __init__(self, value: Any) -> None:
        self.value = value

    def __repr__(self) -> str:
        return f"Value({self.value!r})"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Value) and other.value == self.value

    __hash__ = None  # type: ignore[assignment]


class Scope:
    __slots__ = ("entries",)

    entries: dict[str, Scope | Value]

    def __init__(self, entries: Mapping[str, Any] | None = None) -> None:
        if entries is not None and not isinstance(entries, Mapping):
            raise RuleTreeError("scope-not-mapping", entries)
        self.entries = {}
        for key, node in (entries or {}).items():
            if not isinstance(key, str):
                raise RuleTreeError("non-string-key", key)
            self.entries[key] = _tag(key, node)

    def __repr__(self) -> str:
        return f"Scope({self.entries!r})"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Scope) and other.entries == self.entries

    __hash__ = None  # type: ignore[assignment]


RuleNode = Scope | Value


def _tag(key: str, node: Any) -> RuleNode:
    if isinstance(node, (Scope, Value)):
        return node
    if type(node) is dict:
        return Scope(node)
    if isinstance(node, Mapping):
        raise RuleTreeError("ambiguous-mapping", key)
    return Value(node)


def to_scope(tree: Mapping[str, Any] | Scope) -> Scope:
    """Tag a plain rule tree, leaving an already tagged ``Scope`` as is.

    Raises:
        RuleTreeError: If a key is not a string, or a value is a mapping other
            than a plain dict, ``Scope`` or ``Value``.
    """
    if isinstance(tree, Scope):
        return tree
    if not isinstance(tree, Mapping):
        raise RuleTreeError("root-not-mapping")
    return Scope(tree)
