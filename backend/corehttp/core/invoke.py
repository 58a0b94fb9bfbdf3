from __future__ import annotations

import asyncio
import dataclasses
import inspect
from collections.abc import Awaitable, Callable
from typing import Any, Union

from corehttp.core.context import RequestContext
from corehttp.core.errors import PanicError
from corehttp.core.responder import ErrorResponder


# Process control, not request faults: these always propagate.
PASSTHROUGH: tuple[type[BaseException], ...] = (
    KeyboardInterrupt,
    SystemExit,
    GeneratorExit,
    asyncio.CancelledError,
)


@dataclasses.dataclass(frozen=True, slots=True)
class Success:
    value: Any


@dataclasses.dataclass(frozen=True, slots=True)
class Failure:
    """A handler's error outcome. Handlers may also return one directly."""

    error: BaseException


@dataclasses.dataclass(frozen=True, slots=True)
class RecoveredFault:
    """Something raised out of a handler body and was caught at the boundary."""

    payload: BaseException

    def to_failure(self) -> Failure:
        if isinstance(self.payload, Exception):
            return Failure(self.payload)
        return Failure(PanicError.from_payload(self.payload))


Outcome = Union[Success, Failure]


def settle(value: Any) -> Outcome:
    if isinstance(value, Failure):
        return value
    return Success(value)


def capture(body: Callable[[], Any]) -> Outcome:
    """Run ``body`` once and fold whatever happens into one Outcome."""

    try:
        value = body()
        if inspect.isawaitable(value):
            if inspect.iscoroutine(value):
                value.close()
            raise TypeError("async handler bodies must be run with ainvoke")
    except PASSTHROUGH:
        raise
    except BaseException as exc:
        return RecoveredFault(exc).to_failure()
    return settle(value)


async def acapture(body: Callable[[], Any]) -> Outcome:
    try:
        value = body()
        if inspect.isawaitable(value):
            value = await value
    except PASSTHROUGH:
        raise
    except BaseException as exc:
        return RecoveredFault(exc).to_failure()
    return settle(value)


class PanicSafeInvoker:
    """Recovery boundary around a single handler call.

    The result is the handler's value on success, or the classified error body
    when the handler returned a ``Failure`` or raised. Failures are logged
    through the responder; successes are not.
    """

    def __init__(self, responder: ErrorResponder | None = None) -> None:
        self.responder = responder or ErrorResponder()

    def resolve(self, ctx: RequestContext | None, outcome: Outcome) -> Any:
        if isinstance(outcome, Success):
            return outcome.value
        return self.responder.log_error(ctx, outcome.error).body

    def invoke(self, ctx: RequestContext | None, body: Callable[[], Any]) -> Any:
        return self.resolve(ctx, capture(body))

    async def ainvoke(
        self,
        ctx: RequestContext | None,
        body: Callable[[], Any | Awaitable[Any]],
    ) -> Any:
        return self.resolve(ctx, await acapture(body))
