from __future__ import annotations

import dataclasses
import uuid

from starlette.requests import Request

from corehttp.core.settings import get_settings


@dataclasses.dataclass(frozen=True, slots=True)
class RequestContext:
    """Per-request values the error path reads. Never shared across requests."""

    path: str = ""
    request_id: str | None = None


def path_of(ctx: RequestContext | None) -> str:
    if ctx is None:
        return ""
    return ctx.path


def new_request_id() -> str:
    return uuid.uuid4().hex[:16]


def request_context(request: Request) -> RequestContext:
    request_id = getattr(request.state, "request_id", None)
    if not request_id:
        request_id = request.headers.get(get_settings().request_id_header)
    return RequestContext(path=request.url.path, request_id=request_id)
