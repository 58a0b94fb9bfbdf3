from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from typing import Any, Protocol

from corehttp.core.context import RequestContext


KEY_ERROR = "error"
KEY_STACK = "stack"
KEY_REQID = "reqid"

KeyVals = Sequence[tuple[str, Any]]


class Logger(Protocol):
    """Structured sink for one ordered list of key-value pairs."""

    def write(self, ctx: RequestContext | None, keyvals: KeyVals) -> None: ...


def _needs_quoting(text: str) -> bool:
    if not text:
        return True
    return any(c in text for c in ' ="\\') or not text.isprintable()


def format_value(value: Any) -> str:
    if value is None:
        return "nil"
    if isinstance(value, bool):
        return "true" if value else "false"
    text = str(value)
    if _needs_quoting(text):
        return json.dumps(text, ensure_ascii=False)
    return text


def format_logfmt(keyvals: KeyVals) -> str:
    return " ".join(f"{key}={format_value(value)}" for key, value in keyvals)


class LogfmtLogger:
    """Write key-value records as logfmt lines through stdlib logging.

    The ``stack`` value is never inlined; it follows the line as a raw block.
    Records with a stack are logged at ERROR, everything else at WARNING. The
    ordered pairs are attached to the LogRecord as ``keyvals``.
    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger(__name__)

    def write(self, ctx: RequestContext | None, keyvals: KeyVals) -> None:
        pairs = list(keyvals)
        fields: list[tuple[str, Any]] = []
        if ctx is not None and ctx.request_id:
            fields.append((KEY_REQID, ctx.request_id))

        stack: str | None = None
        for key, value in pairs:
            if key == KEY_STACK:
                stack = str(value)
                continue
            fields.append((key, value))

        line = format_logfmt(fields)
        level = logging.WARNING
        if stack is not None:
            level = logging.ERROR
            line = f"{line}\n{stack.rstrip()}"
        self._logger.log(level, line, extra={"keyvals": pairs})
