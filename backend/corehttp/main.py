from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any

from fastapi import FastAPI
from fastapi.exception_handlers import http_exception_handler
from starlette.exceptions import HTTPException as StarletteHTTPException

from corehttp.api.health import router as health_router
from corehttp.api.httpjson import always_error, batch_handler, json_handler
from corehttp.core.context import new_request_id, request_context
from corehttp.core.errors import NotFoundError, UnconfiguredError
from corehttp.core.responder import ErrorResponder
from corehttp.core.settings import get_settings


logger = logging.getLogger(__name__)

Handlers = Mapping[str, Callable[..., Any]]


def create_app(
    *,
    responder: ErrorResponder | None = None,
    handlers: Handlers | None = None,
    batch_handlers: Handlers | None = None,
) -> FastAPI:
    """Build the API app.

    ``handlers`` and ``batch_handlers`` map paths to plain functions served
    through ``json_handler`` and ``batch_handler``. Paths listed in
    ``disabled_paths`` answer with a fixed configuration error instead.
    """

    settings = get_settings()
    responder = responder or ErrorResponder()

    logging.getLogger("corehttp").setLevel(settings.log_level.upper())

    app = FastAPI(title=settings.title)
    request_id_header = settings.request_id_header

    @app.middleware("http")
    async def _request_id_middleware(request, call_next):
        request_id = request.headers.get(request_id_header) or new_request_id()
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers[request_id_header] = request_id
        return response

    @app.exception_handler(StarletteHTTPException)
    async def _http_error_handler(request, exc: StarletteHTTPException):
        # Unknown paths get the same envelope as handler errors.
        if exc.status_code != 404:
            return await http_exception_handler(request, exc)
        return responder.write_error(
            request_context(request), NotFoundError(f"no handler for {request.url.path}")
        )

    @app.exception_handler(Exception)
    async def _unhandled_error_handler(request, exc: Exception):
        # Anything raised outside a json_handler boundary still gets the envelope.
        return responder.write_error(request_context(request), exc)

    app.include_router(health_router)

    disabled = set(settings.disabled_paths)
    for path, func in (handlers or {}).items():
        if path not in disabled:
            app.add_route(path, json_handler(func, responder), methods=["POST"])
    for path, func in (batch_handlers or {}).items():
        if path not in disabled:
            app.add_route(path, batch_handler(func, responder), methods=["POST"])

    unconfigured = UnconfiguredError("this core still needs to be configured")
    for path in sorted(disabled):
        logger.info("route disabled path=%s", path)
        app.add_route(path, always_error(unconfigured, responder), methods=["POST"])

    return app


app = create_app()
