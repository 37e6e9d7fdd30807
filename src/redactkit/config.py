"""redactkit configuration management.

Handles:
- YAML policy files validated against the bundled JSON schema
- REDACTKIT_* environment variables
- Precedence: overrides > env vars > policy file > defaults
- Conversion of the loaded configuration into engine options
"""

from __future__ import annotations

import builtins
import importlib
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml

from redactkit.censors import DEFAULT_TAG_KEY
from redactkit.engine import DEFAULT_MAX_DEPTH, Engine
from redactkit.errors import ErrorCode, make_error
from redactkit.options import (
    Option,
    new_engine,
    with_allowed_type,
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
    with_tag_regex,
    with_type,
)
from redactkit.redactors import DEFAULT_REDACT_MESSAGE, Redactor, mask_with_symbol, replace_with
from redactkit.validation import validate_policy_dict

logger = logging.getLogger(__name__)

FILTER_KINDS = (
    "field_name",
    "field_prefix",
    "contain",
    "regex",
    "type",
    "tag",
    "tag_regex",
    "tag_contain",
    "string",
)


def import_type(dotted_path: str) -> type:
    """Resolve ``module.Name`` (or a builtin name such as ``int``) to a type.

    Raises:
        RedactKitError: RK-E004 when the path does not name an importable type
    """
    module_name, _, attr = dotted_path.rpartition(".")
    try:
        module = importlib.import_module(module_name) if module_name else builtins
        resolved = getattr(module, attr)
    except (ImportError, AttributeError, ValueError) as exc:
        raise make_error(ErrorCode.E004, f"{dotted_path} ({exc})") from exc
    if not isinstance(resolved, type):
        raise make_error(ErrorCode.E004, f"{dotted_path} is not a type")
    return resolved


def build_redactor(spec: Mapping[str, Any]) -> Redactor:
    """Build a redactor from a policy entry (``mask`` or ``replace``).

    Raises:
        RedactKitError: RK-E005 for anything else
    """
    if "mask" in spec:
        mask = spec["mask"] or {}
        try:
            return mask_with_symbol(str(mask.get("symbol", "*")), int(mask["max"]))
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise make_error(ErrorCode.E005, f"mask: {exc}") from exc
    if "replace" in spec:
        return replace_with(str(spec["replace"]))
    raise make_error(ErrorCode.E005, repr(dict(spec)))


@dataclass
class FilterSpec:
    """One filter entry of a policy file."""

    kind: str
    target: str
    tag_key: str | None = None
    redactors: list[dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FilterSpec:
        """Create a FilterSpec from a policy entry."""
        kinds = [k for k in FILTER_KINDS if k in data]
        if len(kinds) != 1:
            raise make_error(ErrorCode.E102, f"filter needs exactly one of {', '.join(FILTER_KINDS)}")
        kind = kinds[0]
        return cls(
            kind=kind,
            target=str(data[kind]),
            tag_key=data.get("tag_key"),
            redactors=list(data.get("redactors", [])),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        result: dict[str, Any] = {self.kind: self.target}
        if self.tag_key:
            result["tag_key"] = self.tag_key
        if self.redactors:
            result["redactors"] = self.redactors
        return result

    def to_option(self) -> Option:
        """Convert to an engine option."""
        if self.kind == "string" and self.redactors:
            raise make_error(ErrorCode.E005, "'string' filters always use redact_message")
        redactors = [build_redactor(spec) for spec in self.redactors]
        if self.kind == "field_name":
            return with_field_name(self.target, *redactors)
        if self.kind == "field_prefix":
            return with_field_prefix(self.target, *redactors)
        if self.kind == "contain":
            return with_contain(self.target, *redactors)
        if self.kind == "regex":
            return with_regex(self.target, *redactors)
        if self.kind == "type":
            return with_type(import_type(self.target), *redactors)
        if self.kind == "tag":
            return with_tag(self.target, *redactors, key=self.tag_key)
        if self.kind == "tag_regex":
            return with_tag_regex(self.target, *redactors, key=self.tag_key)
        if self.kind == "tag_contain":
            return with_tag_contain(self.target, *redactors, key=self.tag_key)
        return with_string(self.target)


@dataclass
class Config:
    """redactkit runtime configuration."""

    redact_message: str = DEFAULT_REDACT_MESSAGE
    tag_key: str = DEFAULT_TAG_KEY
    max_depth: int = DEFAULT_MAX_DEPTH
    allowed_types: list[str] = field(default_factory=list)
    filters: list[FilterSpec] = field(default_factory=list)
    redact_keys: list[str] = field(default_factory=list)
    redact_prefixes: list[str] = field(default_factory=list)
    redact_contains: list[str] = field(default_factory=list)
    redact_patterns: list[str] = field(default_factory=list)
    policy_path: Path | None = None

    def to_options(self) -> list[Option]:
        """Convert to engine options.

        Filters are registered in this order: policy filters, keys, prefixes,
        contains, patterns. The first matching filter wins.
        """
        options: list[Option] = [
            with_redact_message(self.redact_message),
            with_custom_tag_key(self.tag_key),
            with_max_depth(self.max_depth),
        ]
        if self.allowed_types:
            options.append(with_allowed_type(*(import_type(t) for t in self.allowed_types)))
        options.extend(spec.to_option() for spec in self.filters)
        options.extend(with_field_name(key) for key in self.redact_keys)
        options.extend(with_field_prefix(prefix) for prefix in self.redact_prefixes)
        options.extend(with_contain(target) for target in self.redact_contains)
        options.extend(with_regex(pattern) for pattern in self.redact_patterns)
        return options

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        result: dict[str, Any] = {
            "redact_message": self.redact_message,
            "tag_key": self.tag_key,
            "max_depth": self.max_depth,
            "allowed_types": list(self.allowed_types),
            "filters": [spec.to_dict() for spec in self.filters],
            "redact_keys": list(self.redact_keys),
            "redact_prefixes": list(self.redact_prefixes),
            "redact_contains": list(self.redact_contains),
            "redact_patterns": list(self.redact_patterns),
        }
        if self.policy_path:
            result["policy_path"] = str(self.policy_path)
        return result


def load_policy(policy_file: str | Path) -> dict[str, Any]:
    """Load and validate a policy YAML file.

    Args:
        policy_file: Path to the policy file

    Returns:
        The policy as a dictionary (empty for an empty file)

    Raises:
        RedactKitError: RK-E100 (missing), RK-E101 (bad YAML), RK-E102 (schema)
    """
    path = Path(policy_file)
    if not path.exists():
        raise make_error(ErrorCode.E100, str(path))

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise make_error(ErrorCode.E101, str(exc)) from exc

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise make_error(ErrorCode.E101, f"expected a mapping, got {type(data).__name__}")

    result = validate_policy_dict(data)
    if not result.valid:
        first = result.errors[0]
        raise make_error(ErrorCode.E102, f"{first.path} - {first.message}")

    logger.debug("loaded policy %s with %d filter(s)", path, len(data.get("filters", [])))
    return data


def _split(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def _parse_depth(value: Any) -> int:
    try:
        depth = int(value)
    except (TypeError, ValueError) as exc:
        raise make_error(ErrorCode.E003, repr(value)) from exc
    if depth < 0:
        raise make_error(ErrorCode.E003, str(depth))
    return depth


def load_config(
    policy_file: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> Config:
    """Load configuration with precedence: overrides > env vars > policy > defaults.

    Args:
        policy_file: Path to a policy YAML file (falls back to REDACTKIT_POLICY)
        overrides: Values that win over everything else, keyed by Config field

    Returns:
        Loaded Config instance
    """
    overrides = overrides or {}
    env_vars = dict(os.environ)
    config = Config()

    # Step 1: Policy file
    policy_path = policy_file or env_vars.get("REDACTKIT_POLICY")
    if policy_path:
        policy = load_policy(policy_path)
        config.policy_path = Path(policy_path)
        config.redact_message = policy.get("redact_message", config.redact_message)
        config.tag_key = policy.get("tag_key", config.tag_key)
        config.max_depth = policy.get("max_depth", config.max_depth)
        config.allowed_types = list(policy.get("allowed_types", []))
        config.filters = [FilterSpec.from_dict(item) for item in policy.get("filters", [])]
        logger.info("using redaction policy %s", policy_path)

    # Step 2: Environment variables
    if "REDACTKIT_REDACT_MESSAGE" in env_vars:
        config.redact_message = env_vars["REDACTKIT_REDACT_MESSAGE"]
    if "REDACTKIT_TAG_KEY" in env_vars:
        config.tag_key = env_vars["REDACTKIT_TAG_KEY"]
    if "REDACTKIT_MAX_DEPTH" in env_vars:
        config.max_depth = _parse_depth(env_vars["REDACTKIT_MAX_DEPTH"])
    config.redact_keys = _split(env_vars.get("REDACTKIT_REDACT_KEYS", ""))
    config.redact_prefixes = _split(env_vars.get("REDACTKIT_REDACT_PREFIXES", ""))
    config.redact_contains = _split(env_vars.get("REDACTKIT_REDACT_CONTAINS", ""))
    config.redact_patterns = _split(env_vars.get("REDACTKIT_REDACT_PATTERNS", ""))

    # Step 3: Explicit overrides
    for key, value in overrides.items():
        if not hasattr(config, key):
            raise ValueError(f"Unknown config field: {key}")
        setattr(config, key, value)

    if not config.tag_key:
        raise make_error(ErrorCode.E001)
    config.max_depth = _parse_depth(config.max_depth)
    return config


def build_engine(config: Config | None = None) -> Engine:
    """Build an engine from a Config (loaded from the environment if omitted)."""
    return new_engine(*(config or load_config()).to_options())
