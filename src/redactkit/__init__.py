"""Redact sensitive data from arbitrary Python values without mutating them."""
from redactkit.censors import (
    ContainCensor,
    FieldNameCensor,
    FieldPrefixCensor,
    RegexCensor,
    TagCensor,
    TypeCensor,
    tag_contains,
    tag_equals,
    tag_matches,
    tag_satisfies,
)
from redactkit.engine import Engine, EngineConfig, Filter
from redactkit.errors import ErrorCode, RedactKitError
from redactkit.logfilter import RedactingFilter
from redactkit.options import (
    EngineBuilder,
    new_engine,
    with_allowed_shape,
    with_allowed_type,
    with_censor,
    with_contain,
    with_custom_tag_key,
    with_field_name,
    with_field_prefix,
    with_max_depth,
    with_redact_message,
    with_regex,
    with_string,
    with_tag,
    with_tag_contain,
    with_tag_predicate,
    with_tag_regex,
    with_type,
)
from redactkit.redactors import mask_with_symbol, redact_string
from redactkit.shapes import MISSING, Shape, classify

__all__ = [
    "ContainCensor",
    "FieldNameCensor",
    "FieldPrefixCensor",
    "RegexCensor",
    "TagCensor",
    "TypeCensor",
    "tag_contains",
    "tag_equals",
    "tag_matches",
    "tag_satisfies",
    "Engine",
    "EngineConfig",
    "Filter",
    "ErrorCode",
    "RedactKitError",
    "RedactingFilter",
    "EngineBuilder",
    "new_engine",
    "with_allowed_shape",
    "with_allowed_type",
    "with_censor",
    "with_contain",
    "with_custom_tag_key",
    "with_field_name",
    "with_field_prefix",
    "with_max_depth",
    "with_redact_message",
    "with_regex",
    "with_string",
    "with_tag",
    "with_tag_contain",
    "with_tag_predicate",
    "with_tag_regex",
    "with_type",
    "mask_with_symbol",
    "redact_string",
    "MISSING",
    "Shape",
    "classify",
]
