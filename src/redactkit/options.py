"""Option constructors for building an engine.

Each ``with_*`` function returns an option: a callable applied to an
:class:`EngineBuilder`. Arguments are validated when the option is created, so
a bad regex or an empty tag key fails at the call site.

Example:
    engine = new_engine(
        with_field_name("password"),
        with_regex(r"^\\d{3}-\\d{4}-\\d{4}$", mask_with_symbol("*", 4)),
        with_tag("secret"),
    )
"""
from __future__ import annotations

import dataclasses
from typing import Any, Callable, Optional, Pattern, Union

from redactkit.censors import (
    DEFAULT_TAG_KEY,
    Censor,
    ContainCensor,
    FieldNameCensor,
    FieldPrefixCensor,
    RegexCensor,
    TagCensor,
    TypeCensor,
    compile_pattern,
    tag_contains,
    tag_equals,
    tag_matches,
    tag_satisfies,
)
from redactkit.engine import DEFAULT_MAX_DEPTH, Engine, EngineConfig, Filter
from redactkit.errors import ErrorCode, make_error
from redactkit.redactors import DEFAULT_REDACT_MESSAGE, Redactor, replace_substring
from redactkit.shapes import Shape

Option = Callable[["EngineBuilder"], None]
FilterFactory = Callable[["EngineBuilder"], Filter]


class EngineBuilder:
    """Mutable accumulator of options; ``build()`` freezes it."""

    def __init__(self) -> None:
        self.filters: list[FilterFactory] = []
        self.allowed_types: set[type] = set()
        self.allowed_shapes: set[Shape] = set()
        self.tag_key: str = DEFAULT_TAG_KEY
        self.redact_message: str = DEFAULT_REDACT_MESSAGE
        self.max_depth: int = DEFAULT_MAX_DEPTH

    def apply(self, *options: Option) -> EngineBuilder:
        for option in options:
            option(self)
        return self

    def add_filter(self, censor: Censor, redactors: tuple[Redactor, ...] = ()) -> None:
        self.filters.append(lambda builder: Filter(builder.bind(censor), redactors))

    def bind(self, censor: Censor) -> Censor:
        """Bind an unbound tag censor to this builder's tag key."""
        if isinstance(censor, TagCensor) and censor.key is None:
            return dataclasses.replace(censor, key=self.tag_key)
        return censor

    def build(self) -> EngineConfig:
        return EngineConfig(
            filters=tuple(factory(self) for factory in self.filters),
            allowed_types=frozenset(self.allowed_types),
            allowed_shapes=frozenset(self.allowed_shapes),
            tag_key=self.tag_key,
            redact_message=self.redact_message,
            max_depth=self.max_depth,
        )


def new_engine(*options: Option) -> Engine:
    """Build an engine from options."""
    return Engine(EngineBuilder().apply(*options).build())


def _require_type(cls: Any) -> type:
    if not isinstance(cls, type):
        raise make_error(ErrorCode.E004, f"{cls!r} is not a type")
    return cls


def with_censor(censor: Censor, *redactors: Redactor) -> Option:
    """Redact nodes matched by an arbitrary censor."""

    def _apply(builder: EngineBuilder) -> None:
        builder.add_filter(censor, redactors)

    return _apply


def with_contain(target: str, *redactors: Redactor) -> Option:
    """Redact strings containing ``target``."""
    return with_censor(ContainCensor(target), *redactors)


def with_regex(pattern: Union[str, Pattern[str]], *redactors: Redactor) -> Option:
    """Redact strings where ``pattern`` is found."""
    return with_censor(RegexCensor(compile_pattern(pattern)), *redactors)


def with_type(cls: type, *redactors: Redactor) -> Option:
    """Redact values whose type is exactly ``cls``."""
    return with_censor(TypeCensor(_require_type(cls)), *redactors)


def with_tag(value: Any, *redactors: Redactor, key: Optional[str] = None) -> Option:
    """Redact fields whose tag equals ``value``."""
    return with_censor(tag_equals(value, key=key), *redactors)


def with_tag_regex(
    pattern: Union[str, Pattern[str]], *redactors: Redactor, key: Optional[str] = None
) -> Option:
    """Redact fields whose tag matches ``pattern``."""
    return with_censor(tag_matches(pattern, key=key), *redactors)


def with_tag_contain(target: str, *redactors: Redactor, key: Optional[str] = None) -> Option:
    """Redact fields whose tag contains ``target``."""
    return with_censor(tag_contains(target, key=key), *redactors)


def with_tag_predicate(
    predicate: Callable[[Any], bool], *redactors: Redactor, key: Optional[str] = None
) -> Option:
    """Redact fields whose tag satisfies ``predicate``."""
    return with_censor(tag_satisfies(predicate, key=key), *redactors)


def with_field_name(name: str, *redactors: Redactor) -> Option:
    """Redact fields and map entries named ``name``."""
    return with_censor(FieldNameCensor(name), *redactors)


def with_field_prefix(prefix: str, *redactors: Redactor) -> Option:
    """Redact fields and map entries whose name starts with ``prefix``."""
    return with_censor(FieldPrefixCensor(prefix), *redactors)


def with_string(target: str) -> Option:
    """Replace only the occurrences of ``target`` inside strings.

    The rest of the string is kept; each occurrence becomes the redact message.
    """

    def _factory(builder: EngineBuilder) -> Filter:
        return Filter(ContainCensor(target), (replace_substring(target, builder.redact_message),))

    def _apply(builder: EngineBuilder) -> None:
        builder.filters.append(_factory)

    return _apply


def with_allowed_type(*types: type) -> Option:
    """Return values of these exact types unchanged, without cloning."""
    checked = [_require_type(cls) for cls in types]

    def _apply(builder: EngineBuilder) -> None:
        builder.allowed_types.update(checked)

    return _apply


def with_allowed_shape(*shapes: Union[Shape, str]) -> Option:
    """Return values of these shapes unchanged, without cloning."""
    checked = [Shape(shape) for shape in shapes]

    def _apply(builder: EngineBuilder) -> None:
        builder.allowed_shapes.update(checked)

    return _apply


def with_custom_tag_key(key: str) -> Option:
    """Read tags from field metadata under ``key`` instead of ``"redact"``.

    Raises:
        RedactKitError: RK-E001 when ``key`` is empty
    """
    if not key:
        raise make_error(ErrorCode.E001)

    def _apply(builder: EngineBuilder) -> None:
        builder.tag_key = key

    return _apply


def with_redact_message(message: str) -> Option:
    """Use ``message`` as the replacement for redacted strings."""

    def _apply(builder: EngineBuilder) -> None:
        builder.redact_message = message

    return _apply


def with_max_depth(depth: int) -> Option:
    """Bound recursion at ``depth`` levels below the root.

    Raises:
        RedactKitError: RK-E003 when ``depth`` is negative or not an integer
    """
    if isinstance(depth, bool) or not isinstance(depth, int):
        raise make_error(ErrorCode.E003, f"expected an integer, got {type(depth).__name__}")
    if depth < 0:
        raise make_error(ErrorCode.E003, str(depth))

    def _apply(builder: EngineBuilder) -> None:
        builder.max_depth = depth

    return _apply
