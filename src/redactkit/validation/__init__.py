"""Schema validation for redactkit policy files."""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any

import jsonschema
import yaml

# Ships inside the redactkit package.
POLICY_SCHEMA_PATH = Path(__file__).parent.parent / "schemas" / "redactkit.policy.schema.json"


@dataclass
class ValidationError:
    """A single validation error, located by its JSON path."""

    path: str
    message: str


@dataclass
class ValidationResult:
    """Result of validating a policy."""

    valid: bool
    errors: list[ValidationError] = field(default_factory=list)
    file_path: str = ""

    def fail(self, path: str, message: str) -> ValidationResult:
        self.valid = False
        self.errors.append(ValidationError(path=path, message=message))
        return self

    def summary(self) -> str:
        """Return a human-readable summary."""
        if self.valid:
            return f"✓ {self.file_path}: Valid"
        details = [f"  {err.path} - {err.message}" for err in self.errors]
        return "\n".join([f"✗ {self.file_path}: {len(self.errors)} error(s)", *details])


@lru_cache(maxsize=1)
def _policy_validator() -> jsonschema.Draft202012Validator:
    schema = json.loads(POLICY_SCHEMA_PATH.read_text(encoding="utf-8"))
    return jsonschema.Draft202012Validator(schema)


def _check(data: Any, result: ValidationResult) -> ValidationResult:
    errors = sorted(_policy_validator().iter_errors(data), key=lambda err: list(err.absolute_path))
    for err in errors:
        result.fail(err.json_path, err.message)
    return result


def validate_policy(policy_path: str | Path) -> ValidationResult:
    """Validate a policy YAML file against the bundled policy schema.

    An empty file is a valid, empty policy.

    Args:
        policy_path: Path to the policy YAML file.

    Returns:
        ValidationResult with any errors found.
    """
    policy_path = Path(policy_path)
    result = ValidationResult(valid=True, file_path=str(policy_path))

    if not policy_path.exists():
        return result.fail("$", f"File not found: {policy_path}")

    try:
        policy_data = yaml.safe_load(policy_path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        return result.fail("$", f"Invalid YAML: {e}")

    return _check({} if policy_data is None else policy_data, result)


def validate_policy_dict(policy: dict[str, Any]) -> ValidationResult:
    """Validate a policy dictionary without file I/O."""
    return _check(policy, ValidationResult(valid=True, file_path="<dict>"))
