"""Tagged-variant classification and an iterative structural walk."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Callable, Hashable, Iterator, Optional, Tuple


class ValueKind(Enum):
    MAPPING = "mapping"
    SEQUENCE = "sequence"
    INSTANT = "instant"
    PRIMITIVE = "primitive"
    OPAQUE = "opaque"


_PRIMITIVES = (str, int, float, bool, type(None))
_CONTAINERS = (ValueKind.MAPPING, ValueKind.SEQUENCE)

LeafFn = Callable[[ValueKind, Any, Optional[Hashable]], Any]


def classify(value: Any) -> ValueKind:
    """Return the variant a value belongs to.

    Only plain ``dict``, ``list`` and ``tuple`` are containers; subclasses
    such as named tuples are treated as opaque instances.
    """
    if isinstance(value, datetime):
        return ValueKind.INSTANT
    value_type = type(value)
    if value_type is dict:
        return ValueKind.MAPPING
    if value_type is list or value_type is tuple:
        return ValueKind.SEQUENCE
    if isinstance(value, _PRIMITIVES):
        return ValueKind.PRIMITIVE
    return ValueKind.OPAQUE


class _Frame:
    __slots__ = ("kind", "slot", "is_tuple", "children", "out")

    def __init__(self, source: Any, kind: ValueKind, slot: Optional[Hashable]) -> None:
        self.kind = kind
        self.slot = slot
        self.is_tuple = type(source) is tuple
        self.children: Iterator[Tuple[Any, Any]]
        if kind is ValueKind.MAPPING:
            self.children = iter(list(source.items()))
            self.out: Any = {}
        else:
            self.children = iter(enumerate(source))
            self.out = []

    def add(self, slot: Any, value: Any) -> None:
        if self.kind is ValueKind.MAPPING:
            self.out[slot] = value
        else:
            self.out.append(value)

    def build(self) -> Any:
        return tuple(self.out) if self.is_tuple else self.out


_DONE = object()


def transform(value: Any, leaf: LeafFn) -> Any:
    """Rebuild ``value`` with every non-container leaf replaced by ``leaf``.

    ``leaf`` receives the leaf's kind, the leaf and the mapping key it sits
    under (``None`` for sequence items and the root). The walk keeps its own
    stack, so nesting depth is not limited by the recursion limit. Input
    structures must be acyclic.
    """
    kind = classify(value)
    if kind not in _CONTAINERS:
        return leaf(kind, value, None)

    stack = [_Frame(value, kind, None)]
    while True:
        frame = stack[-1]
        step = next(frame.children, _DONE)
        if step is _DONE:
            stack.pop()
            built = frame.build()
            if not stack:
                return built
            stack[-1].add(frame.slot, built)
            continue

        slot, child = step
        child_kind = classify(child)
        if child_kind in _CONTAINERS:
            stack.append(_Frame(child, child_kind, slot))
            continue
        key = slot if frame.kind is ValueKind.MAPPING else None
        frame.add(slot, leaf(child_kind, child, key))
