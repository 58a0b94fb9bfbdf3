from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from typing import Any, Protocol

from corehttp.core.errors import (
    APIError,
    BadRequestError,
    BadRequestHeaderError,
    NotAuthenticatedError,
    NotFoundError,
    RateLimitedError,
    UnconfiguredError,
    error_detail,
    root_cause,
)


@dataclasses.dataclass(frozen=True, slots=True)
class ErrorInfo:
    http_status: int
    chain_code: str
    message: str


@dataclasses.dataclass(frozen=True, slots=True)
class ClassifiedError:
    """Response body plus the status and code an error maps to."""

    body: Any
    http_status: int
    chain_code: str


class ErrorClassifier(Protocol):
    """Maps any error (or ``None``) to a ClassifiedError. Must never raise."""

    def __call__(self, err: BaseException | None) -> ClassifiedError: ...


INFO_INTERNAL = ErrorInfo(500, "CH000", "Chain API Error")

TEMPORARY_STATUSES = frozenset({408, 429, 500, 503})

DEFAULT_ERROR_TABLE: dict[type[BaseException], ErrorInfo] = {
    # General error namespace (0xx)
    TimeoutError: ErrorInfo(408, "CH001", "Request timed out"),
    BadRequestError: ErrorInfo(400, "CH003", "Invalid request body"),
    BadRequestHeaderError: ErrorInfo(400, "CH004", "Invalid request header"),
    NotImplementedError: ErrorInfo(501, "CH005", "Not implemented"),
    NotFoundError: ErrorInfo(404, "CH006", "Not found"),
    RateLimitedError: ErrorInfo(429, "CH007", "Request limit exceeded"),
    NotAuthenticatedError: ErrorInfo(401, "CH009", "Request could not be authenticated"),
    # Core configuration (1xx)
    UnconfiguredError: ErrorInfo(400, "CH100", "This core still needs to be configured"),
}


def valid_status(status: object) -> bool:
    return (
        isinstance(status, int)
        and not isinstance(status, bool)
        and 100 <= status <= 599
    )


def make_error_payload(
    *,
    code: str,
    message: str,
    detail: str | None = None,
    data: Any | None = None,
    temporary: bool = False,
) -> dict[str, Any]:
    payload: dict[str, Any] = {"code": code, "message": message}
    if detail:
        payload["detail"] = detail
    if data is not None:
        payload["data"] = data
    if temporary:
        payload["temporary"] = True
    return payload


class TableClassifier:
    """Classify errors by the type of their root cause.

    Lookup walks the root's MRO, so a subclass shares its parent's entry.
    ``APIError`` roots describe themselves and skip the table. Anything else,
    including ``None``, is an internal error.
    """

    def __init__(
        self,
        table: Mapping[type[BaseException], ErrorInfo] | None = None,
        *,
        internal: ErrorInfo = INFO_INTERNAL,
    ) -> None:
        self._table = dict(DEFAULT_ERROR_TABLE if table is None else table)
        self._internal = internal

    def lookup(self, err: BaseException | None) -> ErrorInfo:
        if err is None:
            return self._internal
        root = root_cause(err)
        if isinstance(root, APIError):
            if not valid_status(root.status_code):
                return self._internal
            return ErrorInfo(root.status_code, root.code, root.message)
        for cls in type(root).__mro__:
            info = self._table.get(cls)
            if info is not None:
                return info
        return self._internal

    def __call__(self, err: BaseException | None) -> ClassifiedError:
        try:
            info = self.lookup(err)
            body = self._body(info, err)
        except Exception:
            info = self._internal
            body = make_error_payload(
                code=info.chain_code, message=info.message, temporary=True
            )
        return ClassifiedError(
            body=body, http_status=info.http_status, chain_code=info.chain_code
        )

    def _body(self, info: ErrorInfo, err: BaseException | None) -> dict[str, Any]:
        if err is None:
            return make_error_payload(
                code=info.chain_code,
                message=info.message,
                temporary=info.http_status in TEMPORARY_STATUSES,
            )
        root = root_cause(err)
        temporary = info.http_status in TEMPORARY_STATUSES or bool(
            getattr(root, "temporary", False)
        )
        if info is self._internal:
            # Internal errors never leak their detail or data to the client.
            return make_error_payload(
                code=info.chain_code, message=info.message, temporary=temporary
            )
        data = root.data if isinstance(root, APIError) else getattr(root, "data", None)
        return make_error_payload(
            code=info.chain_code,
            message=info.message,
            detail=error_detail(err),
            data=data,
            temporary=temporary,
        )


default_classifier = TableClassifier()
