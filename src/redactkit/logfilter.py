"""logging integration.

Attach :class:`RedactingFilter` to a handler (or a logger) and every record
passing through it is redacted before formatting:

    handler.addFilter(RedactingFilter(with_field_name("password")))
    logger.info("login", extra={"user": user})
"""
from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Optional

from redactkit.engine import Engine
from redactkit.options import Option, new_engine

# Attributes every LogRecord carries; anything else came in through ``extra=``.
_STANDARD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None))
) | {"message", "asctime", "taskName"}


class RedactingFilter(logging.Filter):
    """Redacts record payloads with an :class:`Engine`."""

    def __init__(self, *options: Option, engine: Optional[Engine] = None, name: str = "") -> None:
        super().__init__(name)
        if engine is not None and options:
            raise ValueError("pass either an engine or options, not both")
        self.engine = engine if engine is not None else new_engine(*options)

    def filter(self, record: logging.LogRecord) -> bool:
        # Our own debug output only carries type names.
        if record.name == "redactkit" or record.name.startswith("redactkit."):
            return True

        for key, value in list(vars(record).items()):
            if key not in _STANDARD_ATTRS:
                setattr(record, key, self.engine.redact(key, value))

        if isinstance(record.msg, str):
            redacted = self.engine.redact("msg", record.msg)
            if redacted != record.msg:
                record.msg = redacted
                record.args = None
        else:
            record.msg = self.engine.redact("msg", record.msg)

        record.args = self._redact_args(record.args)
        return True

    def _redact_args(self, args: Any) -> Any:
        if not args:
            return args
        if isinstance(args, Mapping):
            return self.engine.redact("", args)
        return tuple(self.engine.redact("", arg) for arg in args)
