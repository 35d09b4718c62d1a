"""Shared fixtures for perch tests."""

from typing import Any

import pytest

from perch.app import App
from perch.context import Context
from perch.decorators.mapper import Mapper
from perch.http.request import Request


@pytest.fixture
def mapper() -> Mapper:
    """A fresh mapper, isolated from the process-wide default."""
    return Mapper()


@pytest.fixture
def app() -> App:
    return App()


def _make_context(
    method: str = "GET",
    path: str = "/",
    *,
    query: bytes = b"",
    path_params: dict[str, Any] | None = None,
    request_body: Any = None,
) -> Context:
    """Build a Context without going through ASGI."""
    scope = {
        "type": "http",
        "method": method,
        "path": path,
        "query_string": query,
        "headers": [],
    }

    async def receive() -> dict[str, Any]:
        return {"type": "http.request", "body": b"", "more_body": False}

    request = Request.from_asgi(scope, receive).with_path_params(path_params or {})
    return Context(request, request_body=request_body)


@pytest.fixture
def make_context():
    """Factory fixture: ``make_context(method, path, query=..., ...)``."""
    return _make_context

