"""Structural classification of runtime values.

Every value met during traversal falls into exactly one Shape. The engine
dispatches on the shape, never on concrete types, so new classes need no
registration to be cloned.
"""
from __future__ import annotations

import collections
import collections.abc
import dataclasses
import datetime
import functools
import io
import ipaddress
import types
import uuid
import weakref
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from fractions import Fraction
from pathlib import PurePath
from typing import Any, Mapping


class Shape(str, Enum):
    """Structural shape of a node."""

    SCALAR = "scalar"
    STRING = "string"
    REFERENCE = "reference"
    AGGREGATE = "aggregate"
    SEQUENCE = "sequence"
    MAP = "map"
    SUM_TYPE = "sum_type"
    OPAQUE = "opaque"


class Visibility(str, Enum):
    """Whether a field is part of its owner's public surface."""

    NORMAL = "normal"
    RESTRICTED = "restricted"


class _Missing:
    """Sentinel for a field whose value could not be extracted."""

    _instance: _Missing | None = None

    def __new__(cls) -> _Missing:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "<MISSING>"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()

EMPTY_TAGS: Mapping[str, Any] = types.MappingProxyType({})


@dataclass(frozen=True)
class Node:
    """A value plus the path metadata of where it was found."""

    value: Any
    name: str = ""
    tags: Mapping[str, Any] = field(default_factory=lambda: EMPTY_TAGS)
    visibility: Visibility = Visibility.NORMAL

    @property
    def extractable(self) -> bool:
        return self.value is not MISSING


_SCALAR_TYPES: tuple[type, ...] = (
    type(None),
    bool,
    int,
    float,
    complex,
    bytes,
    bytearray,
    Decimal,
    Fraction,
    datetime.date,
    datetime.time,
    datetime.timedelta,
    datetime.tzinfo,
    uuid.UUID,
    PurePath,
    Enum,
    range,
    ipaddress.IPv4Address,
    ipaddress.IPv6Address,
    ipaddress.IPv4Network,
    ipaddress.IPv6Network,
    ipaddress.IPv4Interface,
    ipaddress.IPv6Interface,
)

# Scalars whose type can be called without arguments to get a zero.
_ZERO_CONSTRUCTIBLE: tuple[type, ...] = (
    bool,
    int,
    float,
    complex,
    bytes,
    bytearray,
    Decimal,
    Fraction,
)

_SEQUENCE_TYPES: tuple[type, ...] = (list, tuple, set, frozenset, collections.deque)

_OPAQUE_TYPES: tuple[type, ...] = (
    type,
    types.ModuleType,
    types.FunctionType,
    types.MethodType,
    types.BuiltinFunctionType,
    types.MethodWrapperType,
    types.WrapperDescriptorType,
    types.MethodDescriptorType,
    types.ClassMethodDescriptorType,
    types.GetSetDescriptorType,
    types.MemberDescriptorType,
    functools.partial,
    staticmethod,
    classmethod,
    property,
    types.GeneratorType,
    types.CoroutineType,
    types.AsyncGeneratorType,
    types.FrameType,
    types.TracebackType,
    types.CodeType,
    io.IOBase,
    memoryview,
)


def is_namedtuple(value: Any) -> bool:
    return isinstance(value, tuple) and hasattr(type(value), "_fields")


def classify(value: Any) -> Shape:
    """Return the structural shape of ``value``."""
    # Checked on the exact type first: proxies forward isinstance() checks.
    value_type = type(value)
    if issubclass(value_type, weakref.ReferenceType):
        return Shape.SUM_TYPE
    if issubclass(value_type, (weakref.ProxyType, weakref.CallableProxyType)):
        return Shape.OPAQUE

    if isinstance(value, str):
        return Shape.STRING
    if isinstance(value, _SCALAR_TYPES):
        return Shape.SCALAR
    if isinstance(value, types.CellType):
        return Shape.REFERENCE
    if is_namedtuple(value):
        return Shape.AGGREGATE
    if isinstance(value, collections.abc.Mapping):
        return Shape.MAP
    if isinstance(value, _SEQUENCE_TYPES):
        return Shape.SEQUENCE
    if isinstance(value, _OPAQUE_TYPES):
        return Shape.OPAQUE
    # User instances stay aggregates even when they are callable or iterable.
    if isinstance(value, BaseException) or dataclasses.is_dataclass(value):
        return Shape.AGGREGATE
    if hasattr(value_type, "__attrs_attrs__"):
        return Shape.AGGREGATE
    if hasattr(value, "__dict__") or _has_slots(value_type):
        return Shape.AGGREGATE
    return Shape.OPAQUE


def _has_slots(cls: type) -> bool:
    return any("__slots__" in vars(klass) for klass in cls.__mro__ if klass is not object)


def zero_value(value: Any, shape: Shape | None = None) -> Any:
    """Return the zero value for the shape of ``value``.

    Strings, numbers and containers keep their concrete type where it can be
    built without arguments; everything else collapses to ``None``.
    """
    if value is MISSING:
        return MISSING
    if shape is None:
        shape = classify(value)

    if shape is Shape.STRING:
        return coerce_str(value, "")
    if shape is Shape.SCALAR:
        if isinstance(value, Enum) or not isinstance(value, _ZERO_CONSTRUCTIBLE):
            return None
        return _construct_empty(type(value))
    if shape is Shape.SEQUENCE:
        return _construct_empty(type(value))
    if shape is Shape.MAP:
        if isinstance(value, collections.defaultdict):
            return type(value)(value.default_factory)
        if isinstance(value, types.MappingProxyType):
            return types.MappingProxyType({})
        return _construct_empty(type(value))
    if shape is Shape.REFERENCE:
        return types.CellType()
    return None


def _construct_empty(cls: type) -> Any:
    try:
        return cls()
    except Exception:
        return None


def coerce_str(original: str, text: str) -> str:
    """Return ``text`` as an instance of ``original``'s str type when possible."""
    str_type = type(original)
    if str_type is str:
        return text
    try:
        return str_type(text)
    except Exception:
        return text
