"""Visibility-safe field access for aggregate values.

The standard attribute protocol is always tried first. When a class refuses
it (a ``__getattribute__`` hiding private names, a raising property, a frozen
``__setattr__``), the accessor falls back to the raw storage behind the field:
the slot member descriptor or the instance ``__dict__``. Content censors can
then still inspect restricted fields, and clones can still be written.
"""
from __future__ import annotations

import dataclasses
import logging
import types
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from redactkit.shapes import EMPTY_TAGS, MISSING, Visibility, is_namedtuple

logger = logging.getLogger(__name__)

_SKIPPED_SLOTS = frozenset({"__dict__", "__weakref__"})


@dataclass(frozen=True)
class FieldSpec:
    """A declared field of an aggregate."""

    name: str
    tags: Mapping[str, Any] = field(default_factory=lambda: EMPTY_TAGS)
    visibility: Visibility = Visibility.NORMAL


def _field_spec(name: str, tags: Optional[Mapping[str, Any]] = None) -> FieldSpec:
    return FieldSpec(
        name=name,
        tags=types.MappingProxyType(dict(tags)) if tags else EMPTY_TAGS,
        visibility=Visibility.RESTRICTED if name.startswith("_") else Visibility.NORMAL,
    )


def fields(obj: Any) -> list[FieldSpec]:
    """Enumerate every declared field of ``obj``, irrespective of visibility.

    Declared fields (named tuple, dataclass, attrs) come first and carry their
    metadata as tags. Slots along the MRO and instance ``__dict__`` entries
    follow, so state set outside the declaration is cloned too.
    """
    if is_namedtuple(obj):
        return [_field_spec(name) for name in type(obj)._fields]

    specs: dict[str, FieldSpec] = {}
    if isinstance(obj, BaseException):
        specs["args"] = _field_spec("args")
    if dataclasses.is_dataclass(obj):
        for f in dataclasses.fields(obj):
            specs.setdefault(f.name, _field_spec(f.name, f.metadata))
    for attribute in getattr(type(obj), "__attrs_attrs__", ()):
        specs.setdefault(attribute.name, _field_spec(attribute.name, attribute.metadata))
    for name in _slot_names(type(obj)):
        specs.setdefault(name, _field_spec(name))
    for name in _instance_dict(obj):
        if isinstance(name, str):
            specs.setdefault(name, _field_spec(name))
    return list(specs.values())


def _slot_names(cls: type) -> list[str]:
    names: list[str] = []
    for klass in reversed(cls.__mro__):
        slots = vars(klass).get("__slots__", ())
        if isinstance(slots, str):
            slots = (slots,)
        for slot in slots:
            if slot not in _SKIPPED_SLOTS:
                names.append(_mangle(klass, slot))
    return names


def _mangle(klass: type, name: str) -> str:
    # Private slot names are stored under the interpreter's mangled name.
    if name.startswith("__") and not name.endswith("__"):
        owner = klass.__name__.lstrip("_")
        if owner:
            return f"_{owner}{name}"
    return name


def _instance_dict(obj: Any) -> dict[str, Any]:
    try:
        storage = object.__getattribute__(obj, "__dict__")
    except AttributeError:
        return {}
    return storage if isinstance(storage, dict) else {}


def _slot_descriptor(cls: type, name: str) -> Any:
    for klass in cls.__mro__:
        descriptor = vars(klass).get(name)
        if isinstance(descriptor, types.MemberDescriptorType):
            return descriptor
    return None


def _raw_get(obj: Any, name: str) -> Any:
    descriptor = _slot_descriptor(type(obj), name)
    if descriptor is not None:
        return descriptor.__get__(obj, type(obj))
    storage = _instance_dict(obj)
    if name not in storage:
        raise AttributeError(name)
    return storage[name]


def _raw_set(obj: Any, name: str, value: Any) -> None:
    descriptor = _slot_descriptor(type(obj), name)
    if descriptor is not None:
        descriptor.__set__(obj, value)
        return
    object.__getattribute__(obj, "__dict__")[name] = value


def extract(obj: Any, spec: FieldSpec) -> tuple[Any, bool]:
    """Read a field, falling back to raw storage when access is refused.

    Returns:
        ``(value, True)`` on success, ``(MISSING, False)`` when the field has
        no readable value at all (for example an unset slot).
    """
    try:
        return getattr(obj, spec.name), True
    except Exception as exc:
        logger.debug(
            "attribute access to %s.%s failed (%s); reading raw storage",
            type(obj).__name__,
            spec.name,
            type(exc).__name__,
        )

    try:
        return _raw_get(obj, spec.name), True
    except (AttributeError, TypeError):
        logger.debug("%s.%s has no readable value", type(obj).__name__, spec.name)
        return MISSING, False


def write(obj: Any, spec: FieldSpec, value: Any) -> bool:
    """Write a field, falling back to raw storage when assignment is refused.

    Returns:
        True when the value was stored.
    """
    try:
        setattr(obj, spec.name, value)
        return True
    except Exception as exc:
        logger.debug(
            "assignment to %s.%s refused (%s); writing raw storage",
            type(obj).__name__,
            spec.name,
            type(exc).__name__,
        )

    try:
        _raw_set(obj, spec.name, value)
        return True
    except (AttributeError, TypeError):
        logger.debug("%s.%s cannot be written; left unset", type(obj).__name__, spec.name)
        return False


def allocate(obj: Any) -> Any:
    """Create an uninitialised instance of ``obj``'s class.

    ``__init__`` is not run; fields are written afterwards.

    Raises:
        Exception: whatever the class's ``__new__`` raises when it needs arguments.
    """
    cls = type(obj)
    return cls.__new__(cls)


def can_allocate(obj: Any) -> bool:
    """Check whether ``obj`` can be rebuilt field by field."""
    if is_namedtuple(obj):
        return True
    try:
        allocate(obj)
    except Exception as exc:
        logger.debug("%s cannot be allocated (%s)", type(obj).__name__, type(exc).__name__)
        return False
    return True


def rebuild_namedtuple(obj: tuple, values: list[Any]) -> tuple:
    return type(obj)._make(values)
