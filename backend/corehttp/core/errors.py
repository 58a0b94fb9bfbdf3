from __future__ import annotations

import dataclasses
import traceback
from typing import Any


@dataclasses.dataclass(slots=True)
class APIError(Exception):
    """Error that carries its own classification into the error envelope."""

    code: str
    message: str
    status_code: int = 400
    detail: str | None = None
    data: Any | None = None

    def __str__(self) -> str:
        return self.message


class BadRequestError(Exception):
    """The request body could not be decoded into the handler's input."""


class BadRequestHeaderError(Exception):
    """A request header was malformed or had an unexpected datatype."""


class NotFoundError(Exception):
    pass


class RateLimitedError(Exception):
    temporary = True


class NotAuthenticatedError(Exception):
    pass


class UnconfiguredError(Exception):
    pass


class UnknownError(Exception):
    """Stand-in for a missing error value on the error path."""


class PanicError(Exception):
    """A handler aborted with something that is not an ``Exception``.

    Only the payload's type survives; its value is dropped.
    """

    def __init__(self, type_name: str) -> None:
        super().__init__(f"panic with {type_name}")
        self.type_name = type_name

    @classmethod
    def from_payload(cls, payload: BaseException) -> PanicError:
        err = cls(type_name_of(payload))
        # Keep the frames of the original raise; the payload itself is not chained.
        err.__suppress_context__ = True
        return err.with_traceback(payload.__traceback__)


def type_name_of(value: object) -> str:
    t = type(value)
    if t.__module__ == "builtins":
        return t.__qualname__
    return f"{t.__module__}.{t.__qualname__}"


def root_cause(err: BaseException) -> BaseException:
    """Follow explicit ``raise ... from ...`` links down to the original error."""

    seen: set[int] = set()
    while err.__cause__ is not None and id(err) not in seen:
        seen.add(id(err))
        err = err.__cause__
    return err


def safe_str(err: BaseException) -> str:
    try:
        return str(err)
    except Exception:
        return type_name_of(err)


def error_message(err: BaseException | None) -> str:
    """Human-readable message for ``err`` with no traceback text in it.

    Wrapped errors read outermost first, e.g. ``"load config: file missing"``.
    """

    if err is None:
        return ""

    parts: list[str] = []
    seen: set[int] = set()
    cur: BaseException | None = err
    while cur is not None and id(cur) not in seen:
        seen.add(id(cur))
        text = safe_str(cur)
        if text and (not parts or parts[-1] != text):
            parts.append(text)
        cur = cur.__cause__
    if not parts:
        return type_name_of(err)
    return ": ".join(parts)


def error_detail(err: BaseException) -> str | None:
    details: list[str] = []
    for e in (err, root_cause(err)):
        own = getattr(e, "detail", None)
        if isinstance(own, str) and own and own not in details:
            details.append(own)
        for note in getattr(e, "__notes__", ()):
            if isinstance(note, str) and note and note not in details:
                details.append(note)
    if not details:
        return None
    return "; ".join(details)


def format_stack(err: BaseException | None) -> str:
    """Full multi-frame trace for ``err``, including chained causes."""

    if err is None:
        return ""
    return "".join(traceback.format_exception(type(err), err, err.__traceback__))
