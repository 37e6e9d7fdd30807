"""redactkit error code registry.

Provides structured configuration-time errors with helpful messages and next steps.
Each error has:
- Code: RK-EXXX format
- Message: Human-readable description
- Next step: Actionable command or instruction

Traversal never raises these; they are only produced while options, policies
and input documents are being loaded.
"""
from __future__ import annotations

import sys
from enum import Enum
from typing import Optional


class ErrorCode(Enum):
    """redactkit error codes."""

    # Option errors (E001-E099)
    E001 = "E001"  # Empty tag key
    E002 = "E002"  # Invalid regular expression
    E003 = "E003"  # Invalid depth bound
    E004 = "E004"  # Type cannot be imported
    E005 = "E005"  # Invalid redactor specification

    # Policy errors (E100-E199)
    E100 = "E100"  # Policy file not found
    E101 = "E101"  # Policy YAML invalid
    E102 = "E102"  # Policy schema validation failed

    # Input errors (E200-E299)
    E200 = "E200"  # Input document not found
    E201 = "E201"  # Input document cannot be parsed


class RedactKitError(ValueError):
    """Structured redactkit error with code, message, and next step."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        next_step: str,
        details: Optional[str] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.next_step = next_step
        self.details = details
        super().__init__(self.render())

    def render(self) -> str:
        lines = [
            f"RK-{self.code.value}: {self.message}",
        ]
        if self.details:
            lines.append(f"  Details: {self.details}")
        lines.append(f"  Next step: {self.next_step}")
        return "\n".join(lines)

    def print(self, file=None) -> None:
        """Print the error to stderr (or specified file)."""
        print(self.render(), file=file or sys.stderr)


# Pre-defined error templates
ERROR_TEMPLATES: dict[ErrorCode, tuple[str, str]] = {
    # (message_template, next_step)
    ErrorCode.E001: (
        "Tag key must not be empty",
        "Pass a non-empty key to with_custom_tag_key() or set REDACTKIT_TAG_KEY"
    ),
    ErrorCode.E002: (
        "Invalid regular expression: {details}",
        "Check the pattern syntax (Python re module)"
    ),
    ErrorCode.E003: (
        "Invalid depth bound: {details}",
        "Use a non-negative integer for max_depth"
    ),
    ErrorCode.E004: (
        "Cannot import type: {details}",
        "Use a dotted path such as 'datetime.datetime' and check the module is installed"
    ),
    ErrorCode.E005: (
        "Invalid redactor specification: {details}",
        "Use 'mask: {symbol, max}' or 'replace: <text>'"
    ),
    ErrorCode.E100: (
        "Policy file not found: {details}",
        "Check the --policy path or REDACTKIT_POLICY"
    ),
    ErrorCode.E101: (
        "Policy YAML is invalid: {details}",
        "Run 'redactkit validate --policy <file>' to see details"
    ),
    ErrorCode.E102: (
        "Policy failed schema validation: {details}",
        "Run 'redactkit validate --policy <file>' to see schema errors"
    ),
    ErrorCode.E200: (
        "Input document not found: {details}",
        "Check the --input path"
    ),
    ErrorCode.E201: (
        "Input document cannot be parsed: {details}",
        "Input must be a JSON or YAML document"
    ),
}


def make_error(code: ErrorCode, details: Optional[str] = None) -> RedactKitError:
    """Create a RedactKitError from a code with optional details.

    Args:
        code: The error code
        details: Optional details to include in the message

    Returns:
        RedactKitError instance ready to raise or print
    """
    template = ERROR_TEMPLATES.get(code, ("Unknown error", "Run with --verbose"))
    message_template, next_step = template

    # Format message with details if present
    if details and "{details}" in message_template:
        message = message_template.format(details=details)
    elif details:
        message = f"{message_template}: {details}"
    else:
        message = message_template.replace(": {details}", "")

    return RedactKitError(
        code=code,
        message=message,
        next_step=next_step,
        details=details if "{details}" not in message_template else None,
    )


# Verbose mode flag (set by CLI)
_verbose_mode: bool = False


def set_verbose(verbose: bool) -> None:
    """Set verbose mode for error output."""
    global _verbose_mode
    _verbose_mode = verbose


def is_verbose() -> bool:
    """Check if verbose mode is enabled."""
    return _verbose_mode


def handle_exception(exc: Exception, code: ErrorCode, details: Optional[str] = None) -> None:
    """Handle an exception with proper error formatting.

    RedactKitErrors are printed as they are; other exceptions are wrapped in
    the given code. In verbose mode, prints the full traceback.

    Args:
        exc: The exception that occurred
        code: The error code to use for foreign exceptions
        details: Optional additional details
    """
    import traceback

    err = exc if isinstance(exc, RedactKitError) else make_error(code, details or str(exc))
    err.print()

    if _verbose_mode:
        print("\n--- Full Traceback ---", file=sys.stderr)
        traceback.print_exc()
