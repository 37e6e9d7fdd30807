"""Traversal and cloning engine.

The engine walks an arbitrary value graph and returns an independent copy in
which every node matched by a filter is replaced. The input is never mutated.

Traversal never raises on irregular input. Values that cannot be rebuilt
degrade to the zero value of their shape, opaque handles are shared as they
are, and recursion stops at ``max_depth``. Exceptions raised by user-supplied
censors and redactors propagate to the caller.
"""
from __future__ import annotations

import collections
import logging
import types
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional

from redactkit import accessor
from redactkit.censors import DEFAULT_TAG_KEY, Censor
from redactkit.errors import ErrorCode, make_error
from redactkit.redactors import (
    DEFAULT_REDACT_MESSAGE,
    Redactor,
    apply_redactors,
    default_redactor,
)
from redactkit.shapes import (
    EMPTY_TAGS,
    MISSING,
    Node,
    Shape,
    classify,
    is_namedtuple,
    zero_value,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 32

_CONTAINER_SHAPES = frozenset({
    Shape.REFERENCE,
    Shape.SUM_TYPE,
    Shape.AGGREGATE,
    Shape.SEQUENCE,
    Shape.MAP,
})


@dataclass(frozen=True)
class Filter:
    """A censor with the redactors to try when it matches."""

    censor: Censor
    redactors: tuple[Redactor, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "redactors", tuple(self.redactors))


@dataclass(frozen=True)
class EngineConfig:
    """Immutable engine configuration.

    Build it with :class:`redactkit.options.EngineBuilder` or construct it
    directly. Invalid values raise :class:`redactkit.errors.RedactKitError`.
    """

    filters: tuple[Filter, ...] = ()
    allowed_types: frozenset[type] = field(default_factory=frozenset)
    allowed_shapes: frozenset[Shape] = field(default_factory=frozenset)
    tag_key: str = DEFAULT_TAG_KEY
    redact_message: str = DEFAULT_REDACT_MESSAGE
    max_depth: int = DEFAULT_MAX_DEPTH

    def __post_init__(self) -> None:
        if not self.tag_key:
            raise make_error(ErrorCode.E001)
        if isinstance(self.max_depth, bool) or not isinstance(self.max_depth, int):
            raise make_error(ErrorCode.E003, f"expected an integer, got {type(self.max_depth).__name__}")
        if self.max_depth < 0:
            raise make_error(ErrorCode.E003, str(self.max_depth))

        object.__setattr__(self, "filters", tuple(self.filters))
        object.__setattr__(self, "allowed_types", frozenset(self.allowed_types))
        object.__setattr__(self, "allowed_shapes", frozenset(Shape(s) for s in self.allowed_shapes))


def _is_atom(key: Any) -> bool:
    """Check whether a map key can be copied without cloning."""
    if classify(key) in (Shape.SCALAR, Shape.STRING):
        return True
    if type(key) in (tuple, frozenset):
        return all(_is_atom(item) for item in key)
    return False


class Engine:
    """Redacts values according to an :class:`EngineConfig`.

    Example:
        engine = Engine(EngineConfig(filters=(Filter(FieldNameCensor("password")),)))
        safe = engine.redact("user", user)
    """

    def __init__(self, config: Optional[EngineConfig] = None) -> None:
        self.config = config or EngineConfig()
        self._default = default_redactor(self.config.redact_message)
        self._visitors: dict[Shape, Callable[[Node, int], Any]] = {
            Shape.SCALAR: self._visit_scalar,
            Shape.STRING: self._visit_string,
            Shape.REFERENCE: self._visit_reference,
            Shape.SUM_TYPE: self._visit_sum_type,
            Shape.AGGREGATE: self._visit_aggregate,
            Shape.SEQUENCE: self._visit_sequence,
            Shape.MAP: self._visit_map,
            Shape.OPAQUE: self._visit_opaque,
        }

    def redact(self, name: str, value: Any) -> Any:
        """Return a redacted deep copy of ``value``.

        Args:
            name: Name of the value, matched by field-name censors at the root
            value: Any Python object

        Returns:
            The redacted copy. ``None`` stays ``None``.
        """
        if value is None:
            return None
        return self._visit(Node(value, name=name), 0)

    def __call__(self, name: str, value: Any) -> Any:
        return self.redact(name, value)

    def _visit(self, node: Node, depth: int) -> Any:
        value = node.value
        shape = None if value is MISSING else classify(value)
        if self._at_bound(shape, depth):
            logger.debug(
                "depth bound %d reached; %s replaced by its zero value",
                self.config.max_depth,
                type(value).__name__,
            )
            return zero_value(value, shape)

        if shape is not None and self._is_allowed(value, shape):
            return value

        for flt in self.config.filters:
            if flt.censor(node.name, value, node.tags):
                if value is MISSING:
                    return MISSING
                return apply_redactors(value, flt.redactors, self._default)

        if shape is None:
            return MISSING
        return self._visitors[shape](node, depth)

    def _at_bound(self, shape: Optional[Shape], depth: int) -> bool:
        # A container at max_depth would only hold children past the bound.
        if depth == self.config.max_depth:
            return shape in _CONTAINER_SHAPES
        return depth > self.config.max_depth

    def _is_allowed(self, value: Any, shape: Shape) -> bool:
        return type(value) in self.config.allowed_types or shape in self.config.allowed_shapes

    def _visit_scalar(self, node: Node, depth: int) -> Any:
        if isinstance(node.value, bytearray):
            return bytearray(node.value)
        return node.value

    def _visit_string(self, node: Node, depth: int) -> Any:
        return node.value

    def _visit_opaque(self, node: Node, depth: int) -> Any:
        return node.value

    def _visit_reference(self, node: Node, depth: int) -> Any:
        try:
            contents = node.value.cell_contents
        except ValueError:
            return types.CellType()
        return types.CellType(self._visit(self._child(node, contents), depth + 1))

    def _visit_sum_type(self, node: Node, depth: int) -> Any:
        referent = node.value()
        if referent is None:
            logger.debug("dead %s replaced by None", type(node.value).__name__)
            return None
        return self._visit(self._child(node, referent), depth + 1)

    @staticmethod
    def _child(node: Node, value: Any) -> Node:
        # References and sum types are transparent: the pointee keeps the path.
        return Node(value, name=node.name, tags=node.tags, visibility=node.visibility)

    def _visit_aggregate(self, node: Node, depth: int) -> Any:
        value = node.value
        specs = accessor.fields(value)

        if is_namedtuple(value):
            items = [self._visit_field(value, spec, depth) for spec in specs]
            items = [None if item is MISSING else item for item in items]
            try:
                return accessor.rebuild_namedtuple(value, items)
            except Exception as exc:
                logger.debug("cannot rebuild %s (%s)", type(value).__name__, type(exc).__name__)
                return None

        try:
            clone = accessor.allocate(value)
        except Exception as exc:
            logger.debug("cannot allocate %s (%s)", type(value).__name__, type(exc).__name__)
            return None

        for spec in specs:
            copied = self._visit_field(value, spec, depth)
            if copied is not MISSING:
                accessor.write(clone, spec, copied)
        return clone

    def _visit_field(self, owner: Any, spec: accessor.FieldSpec, depth: int) -> Any:
        value, _ = accessor.extract(owner, spec)
        child = Node(value, name=spec.name, tags=spec.tags, visibility=spec.visibility)
        return self._visit(child, depth + 1)

    def _visit_sequence(self, node: Node, depth: int) -> Any:
        value = node.value
        items = [self._visit(Node(item), depth + 1) for item in value]
        try:
            if isinstance(value, collections.deque):
                return type(value)(items, value.maxlen)
            return type(value)(items)
        except Exception as exc:
            logger.debug("cannot rebuild %s (%s)", type(value).__name__, type(exc).__name__)
            return zero_value(value, Shape.SEQUENCE)

    def _visit_map(self, node: Node, depth: int) -> Any:
        value = node.value
        if not self._can_rebuild_map(value):
            logger.debug("%s has entries that cannot be rebuilt; emptied", type(value).__name__)
            return zero_value(value, Shape.MAP)

        items = []
        for key, item in value.items():
            name = key if isinstance(key, str) else ""
            items.append((key, self._visit(Node(item, name=name, tags=EMPTY_TAGS), depth + 1)))

        try:
            return self._rebuild_map(value, items)
        except Exception as exc:
            logger.debug("cannot rebuild %s (%s)", type(value).__name__, type(exc).__name__)
            return zero_value(value, Shape.MAP)

    @staticmethod
    def _can_rebuild_map(value: Any) -> bool:
        for key, item in value.items():
            if not _is_atom(key):
                return False
            if classify(item) is Shape.AGGREGATE and not accessor.can_allocate(item):
                return False
        return True

    @staticmethod
    def _rebuild_map(value: Any, items: Iterable[tuple[Any, Any]]) -> Any:
        entries = dict(items)
        if isinstance(value, collections.defaultdict):
            return type(value)(value.default_factory, entries)
        if isinstance(value, types.MappingProxyType):
            return types.MappingProxyType(entries)
        return type(value)(entries)
