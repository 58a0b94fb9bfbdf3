from __future__ import annotations

import asyncio
import dataclasses
import inspect
import json
import logging
import typing
from collections.abc import Awaitable, Callable
from typing import Any

from pydantic import TypeAdapter, ValidationError
from starlette.concurrency import run_in_threadpool
from starlette.requests import Request
from starlette.responses import Response

from corehttp.core.context import RequestContext, request_context
from corehttp.core.errors import BadRequestError
from corehttp.core.invoke import Failure, PanicSafeInvoker, acapture
from corehttp.core.responder import ErrorResponder, json_content, write_json


logger = logging.getLogger(__name__)

Endpoint = Callable[[Request], Awaitable[Response]]


@dataclasses.dataclass(frozen=True, slots=True)
class HandlerBinding:
    """How to call a plain function from a request: context and/or decoded body."""

    func: Callable[..., Any]
    takes_ctx: bool
    payload: TypeAdapter[Any] | None
    is_async: bool

    @classmethod
    def of(cls, func: Callable[..., Any]) -> HandlerBinding:
        params = list(inspect.signature(func).parameters.values())
        try:
            hints = typing.get_type_hints(func)
        except Exception:
            hints = {}

        takes_ctx = False
        if params and (
            params[0].name == "ctx" or hints.get(params[0].name) is RequestContext
        ):
            takes_ctx = True
            params = params[1:]
        if len(params) > 1:
            raise TypeError(
                f"{getattr(func, '__name__', func)!r} takes too many arguments; "
                "expected at most (ctx, payload)"
            )

        payload = None
        if params:
            payload = TypeAdapter(hints.get(params[0].name, Any))
        return cls(
            func=func,
            takes_ctx=takes_ctx,
            payload=payload,
            is_async=inspect.iscoroutinefunction(func),
        )

    def decode(self, data: Any) -> Any:
        if self.payload is None:
            raise TypeError("handler takes no payload argument")
        try:
            return self.payload.validate_python(data)
        except ValidationError as exc:
            err = BadRequestError("request body does not match the handler input")
            for item in exc.errors():
                loc = ".".join(str(p) for p in item.get("loc", ())) or "body"
                err.add_note(f"{loc}: {item.get('msg')}")
            raise err from None

    async def call(self, ctx: RequestContext, data: Any = None) -> Any:
        args: list[Any] = []
        if self.takes_ctx:
            args.append(ctx)
        if self.payload is not None:
            args.append(self.decode(data))
        if self.is_async:
            return await self.func(*args)
        return await run_in_threadpool(self.func, *args)


async def read_json(request: Request) -> Any:
    raw = await request.body()
    if not raw.strip():
        return None
    try:
        return json.loads(raw)
    except ValueError:
        raise BadRequestError("request body is not valid JSON") from None


def json_handler(
    func: Callable[..., Any], responder: ErrorResponder | None = None
) -> Endpoint:
    """Build a POST endpoint around ``func``.

    ``func`` may take ``()``, ``(ctx)``, ``(payload)`` or ``(ctx, payload)``
    and may be sync or async. The payload is the decoded JSON body, validated
    against the parameter's annotation. A returned ``Failure`` or any raise is
    written as the classified error response.
    """

    responder = responder or ErrorResponder()
    binding = HandlerBinding.of(func)

    async def endpoint(request: Request) -> Response:
        ctx = request_context(request)

        async def body() -> Any:
            data = await read_json(request) if binding.payload is not None else None
            value = await binding.call(ctx, data)
            if value is None or isinstance(value, Failure):
                return value
            # Rendering can fail too (NaN, unencodable objects).
            return write_json(200, value)

        outcome = await acapture(body)
        if isinstance(outcome, Failure):
            return responder.write_error(ctx, outcome.error)
        if outcome.value is None:
            return Response(status_code=204)
        return outcome.value

    endpoint.__name__ = getattr(func, "__name__", "endpoint")
    return endpoint


def batch_handler(
    func: Callable[..., Any], responder: ErrorResponder | None = None
) -> Endpoint:
    """Build a POST endpoint that runs ``func`` once per item of a JSON array.

    Items run concurrently and independently. The response is always 200 with
    one entry per item: the item's result or its classified error body. Only a
    body that is not an array fails the whole request.
    """

    invoker = PanicSafeInvoker(responder)
    binding = HandlerBinding.of(func)
    if binding.payload is None:
        raise TypeError("batch handlers must take a payload argument")

    async def endpoint(request: Request) -> Response:
        ctx = request_context(request)
        try:
            items = await read_json(request)
            if not isinstance(items, list):
                raise BadRequestError("batch request body must be a JSON array")
        except BadRequestError as exc:
            return invoker.responder.write_error(ctx, exc)

        logger.debug("batch path=%s items=%d", ctx.path, len(items))
        results = await asyncio.gather(
            *(invoker.ainvoke(ctx, _bound(binding, ctx, item)) for item in items)
        )
        return write_json(200, list(results))

    endpoint.__name__ = getattr(func, "__name__", "batch_endpoint")
    return endpoint


def _bound(
    binding: HandlerBinding, ctx: RequestContext, item: Any
) -> Callable[[], Awaitable[Any]]:
    async def run() -> Any:
        value = await binding.call(ctx, item)
        if isinstance(value, Failure):
            return value
        return json_content(value)

    return run


def always_error(err: BaseException, responder: ErrorResponder | None = None) -> Endpoint:
    """Endpoint that ignores its input and always fails with ``err``."""

    return json_handler(lambda: Failure(err), responder)
