from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from corehttp.core.classify import ClassifiedError, ErrorClassifier, default_classifier
from corehttp.core.context import RequestContext, path_of
from corehttp.core.errors import UnknownError, error_message, format_stack
from corehttp.core.log import KEY_ERROR, KEY_STACK, LogfmtLogger, Logger


class ErrorResponder:
    """Turns an error into one log record and one JSON error response.

    Every collaborator is injected. The classifier, path resolver and stack
    formatter are expected not to raise.
    """

    def __init__(
        self,
        classifier: ErrorClassifier | None = None,
        logger: Logger | None = None,
        *,
        path_resolver: Callable[[RequestContext | None], str] = path_of,
        stack_formatter: Callable[[BaseException], str] = format_stack,
    ) -> None:
        self.classifier = classifier or default_classifier
        self.logger = logger or LogfmtLogger()
        self._path_of = path_resolver
        self._stack = stack_formatter

    def log_error(
        self, ctx: RequestContext | None, err: BaseException | None
    ) -> ClassifiedError:
        """Classify ``err`` and emit its log record. Returns the classification."""

        if err is None:
            # Callers must pass an error; fall back to the internal entry.
            err = UnknownError("unknown error")
        message = error_message(err)

        classified = self.classifier(err)
        keyvals: list[tuple[str, Any]] = [
            ("status", classified.http_status),
            ("chaincode", classified.chain_code),
            ("path", self._path_of(ctx)),
            (KEY_ERROR, message),
        ]
        if classified.http_status == 500:
            keyvals.append((KEY_STACK, self._stack(err)))
        self.logger.write(ctx, keyvals)
        return classified

    def write_error(
        self, ctx: RequestContext | None, err: BaseException | None
    ) -> JSONResponse:
        """Log ``err`` and build the JSON response carrying its classification."""

        classified = self.log_error(ctx, err)
        return write_json(classified.http_status, classified.body)


def write_json(status_code: int, body: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


def json_content(body: Any) -> Any:
    """JSON-compatible form of ``body``; raises if it cannot be rendered."""

    content = jsonable_encoder(body)
    json.dumps(content, allow_nan=False)
    return content
