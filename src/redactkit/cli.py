from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

import yaml

from redactkit.config import build_engine, load_config
from redactkit.errors import ErrorCode, RedactKitError, handle_exception, make_error, set_verbose


def _read_document(input_path: str | None) -> Any:
    """Read a JSON or YAML document from a file or stdin."""
    if input_path and input_path != "-":
        path = Path(input_path)
        if not path.exists():
            raise make_error(ErrorCode.E200, str(path))
        text = path.read_text(encoding="utf-8")
    else:
        text = sys.stdin.read()

    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass
    # YAML is a superset of JSON; try it second so JSON errors stay cheap
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise make_error(ErrorCode.E201, str(e)) from e


def _cmd_redact(args: argparse.Namespace) -> int:
    """Redact a JSON/YAML document and print it as JSON."""
    config = load_config(policy_file=args.policy)
    engine = build_engine(config)

    document = _read_document(args.input)
    redacted = engine.redact(args.name, document)

    print(json.dumps(redacted, indent=2, ensure_ascii=False, default=str))
    return 0


def _cmd_validate(args: argparse.Namespace) -> int:
    """Validate a policy file against the policy schema."""
    from redactkit.validation import validate_policy

    result = validate_policy(args.policy)
    print(result.summary())
    return 0 if result.valid else 1


def _cmd_show_config(args: argparse.Namespace) -> int:
    """Print the effective configuration."""
    config = load_config(policy_file=args.policy)
    print(json.dumps(config.to_dict(), indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="redactkit",
        description="Redact sensitive values from structured documents",
    )

    # Global flags
    p.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Show debug logging and full tracebacks on errors",
    )
    p.add_argument(
        "--version",
        action="version",
        version="%(prog)s 0.1.0",
    )

    sub = p.add_subparsers(dest="cmd", required=True)

    # redact
    p_redact = sub.add_parser("redact", help="Redact a JSON or YAML document")
    p_redact.add_argument("--input", "-i", default=None, help="Input file (default: stdin)")
    p_redact.add_argument("--policy", default=None, help="Policy YAML file")
    p_redact.add_argument(
        "--name",
        default="",
        help="Name of the root value, matched by field-name filters (default: empty)",
    )
    p_redact.set_defaults(func=_cmd_redact)

    # validate
    p_validate = sub.add_parser("validate", help="Validate a policy file")
    p_validate.add_argument("--policy", required=True, help="Policy YAML file")
    p_validate.set_defaults(func=_cmd_validate)

    # show-config
    p_show = sub.add_parser("show-config", help="Print the effective configuration as JSON")
    p_show.add_argument("--policy", default=None, help="Policy YAML file")
    p_show.set_defaults(func=_cmd_show_config)

    return p


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)

    set_verbose(args.verbose)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        rc = args.func(args)
        raise SystemExit(rc)
    except SystemExit:
        raise
    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        raise SystemExit(130)
    except RedactKitError as e:
        handle_exception(e, e.code)
        raise SystemExit(1)
    except Exception as e:
        # Generic exception handler
        from redactkit.errors import is_verbose
        if is_verbose():
            import traceback
            traceback.print_exc()
        else:
            print(f"Error: {e}", file=sys.stderr)
            print("Run with --verbose for full traceback", file=sys.stderr)
        raise SystemExit(1)


if __name__ == "__main__":
    main()
