from __future__ import annotations

from collections.abc import Callable, Iterator
from pathlib import Path
import sys
from typing import Any

import pytest
from fastapi.testclient import TestClient


# Ensure `import corehttp.*` works when pytest chooses an import mode that
# doesn't automatically add the project root to sys.path.
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from corehttp.core.classify import DEFAULT_ERROR_TABLE, ErrorInfo, TableClassifier  # noqa: E402
from corehttp.core.context import RequestContext  # noqa: E402
from corehttp.core.errors import BadRequestHeaderError  # noqa: E402
from corehttp.core.invoke import PanicSafeInvoker  # noqa: E402
from corehttp.core.responder import ErrorResponder  # noqa: E402


# Default table plus the codes the end-to-end scenarios expect.
SCENARIO_TABLE: dict[type[BaseException], ErrorInfo] = {
    **DEFAULT_ERROR_TABLE,
    BadRequestHeaderError: ErrorInfo(400, "CH001", "bad request header"),
    NotImplementedError: ErrorInfo(501, "CH005", "not implemented"),
}


class CapturingLogger:
    """Logger double that keeps every record in memory."""

    def __init__(self) -> None:
        self.records: list[tuple[RequestContext | None, list[tuple[str, Any]]]] = []

    def write(self, ctx: RequestContext | None, keyvals) -> None:  # noqa: ANN001
        self.records.append((ctx, list(keyvals)))

    def keys(self, index: int = -1) -> list[str]:
        return [k for k, _ in self.records[index][1]]

    def fields(self, index: int = -1) -> dict[str, Any]:
        return dict(self.records[index][1])


@pytest.fixture()
def capture_logger() -> CapturingLogger:
    return CapturingLogger()


@pytest.fixture()
def responder(capture_logger: CapturingLogger) -> ErrorResponder:
    return ErrorResponder(TableClassifier(SCENARIO_TABLE), capture_logger)


@pytest.fixture()
def invoker(responder: ErrorResponder) -> PanicSafeInvoker:
    return PanicSafeInvoker(responder)


@pytest.fixture()
def make_client(
    monkeypatch: pytest.MonkeyPatch, responder: ErrorResponder
) -> Iterator[Callable[..., TestClient]]:
    monkeypatch.setenv("COREHTTP_LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("COREHTTP_REQUEST_ID_HEADER", "X-Request-ID")

    from corehttp.core.settings import get_settings

    def _make(**kwargs: Any) -> TestClient:
        # Env may be changed by the test before the app is built.
        get_settings.cache_clear()

        from corehttp.main import create_app

        return TestClient(create_app(responder=responder, **kwargs))

    yield _make
    get_settings.cache_clear()
