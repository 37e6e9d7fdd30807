"""Censors decide whether a node must be redacted.

A censor is called with the node's field name, its value (or ``MISSING`` when
the value could not be extracted) and the tags attached by the enclosing
aggregate. It returns True when the node should be redacted.

Content censors (type, substring, regex) look at the value only. Name and tag
censors never touch the value, so they keep working on unextractable fields.
"""
from __future__ import annotations

import operator
import re
from dataclasses import dataclass
from functools import partial
from typing import Any, Callable, Mapping, Optional, Pattern, Union

from redactkit.errors import ErrorCode, make_error
from redactkit.shapes import MISSING

Censor = Callable[[str, Any, Mapping[str, Any]], bool]

DEFAULT_TAG_KEY = "redact"


def compile_pattern(pattern: Union[str, Pattern[str]]) -> Pattern[str]:
    """Compile ``pattern``, raising RK-E002 when it is not a valid regex."""
    if isinstance(pattern, re.Pattern):
        return pattern
    try:
        return re.compile(pattern)
    except re.error as exc:
        raise make_error(ErrorCode.E002, f"{pattern!r} ({exc})") from exc


@dataclass(frozen=True)
class TypeCensor:
    """Match values whose runtime type is exactly ``target``."""

    target: type

    def __call__(self, name: str, value: Any, tags: Mapping[str, Any]) -> bool:
        if value is MISSING:
            return False
        return type(value) is self.target


@dataclass(frozen=True)
class ContainCensor:
    """Match string values containing ``target``."""

    target: str

    def __call__(self, name: str, value: Any, tags: Mapping[str, Any]) -> bool:
        return isinstance(value, str) and self.target in value


@dataclass(frozen=True)
class RegexCensor:
    """Match string values where ``pattern`` is found anywhere."""

    pattern: Pattern[str]

    def __post_init__(self) -> None:
        object.__setattr__(self, "pattern", compile_pattern(self.pattern))

    def __call__(self, name: str, value: Any, tags: Mapping[str, Any]) -> bool:
        return isinstance(value, str) and self.pattern.search(value) is not None


@dataclass(frozen=True)
class TagCensor:
    """Match nodes whose tag value under ``key`` satisfies ``match``.

    A censor with ``key=None`` is unbound: the options builder binds it to the
    engine's tag key. Used on its own it reads ``DEFAULT_TAG_KEY``.
    """

    match: Callable[[Any], bool]
    key: Optional[str] = None

    def __call__(self, name: str, value: Any, tags: Mapping[str, Any]) -> bool:
        key = DEFAULT_TAG_KEY if self.key is None else self.key
        if key not in tags:
            return False
        return bool(self.match(tags[key]))


@dataclass(frozen=True)
class FieldNameCensor:
    """Match nodes whose field name equals ``name``."""

    name: str

    def __call__(self, name: str, value: Any, tags: Mapping[str, Any]) -> bool:
        return name == self.name


@dataclass(frozen=True)
class FieldPrefixCensor:
    """Match nodes whose field name starts with ``prefix``."""

    prefix: str

    def __call__(self, name: str, value: Any, tags: Mapping[str, Any]) -> bool:
        return name.startswith(self.prefix)


def _search(pattern: Pattern[str], tag_value: Any) -> bool:
    return isinstance(tag_value, str) and pattern.search(tag_value) is not None


def _contains(target: str, tag_value: Any) -> bool:
    return isinstance(tag_value, str) and target in tag_value


def tag_equals(expected: Any, key: Optional[str] = None) -> TagCensor:
    """Match when the tag value equals ``expected``."""
    return TagCensor(match=partial(operator.eq, expected), key=key)


def tag_matches(pattern: Union[str, Pattern[str]], key: Optional[str] = None) -> TagCensor:
    """Match when ``pattern`` is found in the tag value."""
    return TagCensor(match=partial(_search, compile_pattern(pattern)), key=key)


def tag_contains(target: str, key: Optional[str] = None) -> TagCensor:
    """Match when the tag value contains ``target``."""
    return TagCensor(match=partial(_contains, target), key=key)


def tag_satisfies(predicate: Callable[[Any], bool], key: Optional[str] = None) -> TagCensor:
    """Match when ``predicate(tag_value)`` is true."""
    return TagCensor(match=predicate, key=key)
