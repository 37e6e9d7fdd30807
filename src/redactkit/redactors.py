"""Redactors produce the replacement for a matched node.

A redactor takes the original value and returns ``(replacement, applied)``.
When ``applied`` is False the next redactor of the filter is tried, and when
none applies the engine's default redactor runs.
"""
from __future__ import annotations

from typing import Any, Callable, Iterable

from redactkit.shapes import Shape, classify, coerce_str, zero_value

Redactor = Callable[[Any], tuple[Any, bool]]

DEFAULT_REDACT_MESSAGE = "[REDACTED]"


def redact_string(transform: Callable[[str], str]) -> Redactor:
    """Build a redactor that rewrites strings with ``transform``.

    Non-string values are left to the next redactor.
    """

    def _redact(value: Any) -> tuple[Any, bool]:
        if not isinstance(value, str):
            return value, False
        return coerce_str(value, transform(value)), True

    return _redact


def mask_with_symbol(symbol: str, max_length: int) -> Redactor:
    """Build a redactor that masks strings while hinting at their length.

    >>> mask_with_symbol("*", 4)("secret-token")
    ('**** (remained 8 chars)', True)
    """

    def _mask(text: str) -> str:
        if len(text) > max_length:
            return symbol * max_length + f" (remained {len(text) - max_length} chars)"
        return symbol * len(text)

    return redact_string(_mask)


def replace_with(text: str) -> Redactor:
    """Build a redactor that replaces strings with a fixed text."""
    return redact_string(lambda _: text)


def replace_substring(target: str, replacement: str) -> Redactor:
    """Build a redactor that replaces every occurrence of ``target``."""
    return redact_string(lambda s: s.replace(target, replacement))


def default_redactor(message: str = DEFAULT_REDACT_MESSAGE) -> Redactor:
    """Build the fallback redactor.

    Strings become ``message``; every other shape becomes its zero value.
    """

    def _redact(value: Any) -> tuple[Any, bool]:
        shape = classify(value)
        if shape is Shape.STRING:
            return coerce_str(value, message), True
        return zero_value(value, shape), True

    return _redact


def apply_redactors(value: Any, redactors: Iterable[Redactor], fallback: Redactor) -> Any:
    """Run ``redactors`` in order and return the first applied replacement."""
    for redactor in redactors:
        replacement, applied = redactor(value)
        if applied:
            return replacement
    replacement, _ = fallback(value)
    return replacement
