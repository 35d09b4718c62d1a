"""Tests for perch.http.request — frozen Request with async body access."""

import pytest

from perch.http.request import Request


def _make_scope(**overrides: object) -> dict[str, object]:
    """Build a minimal valid ASGI HTTP scope."""
    base: dict[str, object] = {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": "GET",
        "path": "/",
        "query_string": b"",
        "headers": [],
        "client": ("127.0.0.1", 54321),
    }
    base.update(overrides)
    return base


def _make_receive(*bodies: bytes):
    """Create an ASGI receive callable that yields bodies."""
    messages = []
    for i, body in enumerate(bodies):
        is_last = i == len(bodies) - 1
        messages.append({"type": "http.request", "body": body, "more_body": not is_last})
    if not messages:
        messages.append({"type": "http.request", "body": b"", "more_body": False})
    it = iter(messages)

    async def receive():
        return next(it)

    return receive


class TestRequestFromASGI:
    def test_basic_fields(self) -> None:
        req = Request.from_asgi(_make_scope(method="post", path="/users"), _make_receive())

        assert req.method == "POST"
        assert req.path == "/users"
        assert req.http_version == "1.1"
        assert req.client == ("127.0.0.1", 54321)
        assert req.path_params == {}

    def test_headers_and_query(self) -> None:
        scope = _make_scope(
            headers=[(b"content-type", b"application/json"), (b"content-length", b"12")],
            query_string=b"page=2",
        )
        req = Request.from_asgi(scope, _make_receive())

        assert req.content_type == "application/json"
        assert req.content_length == 12
        assert req.query["page"] == "2"

    def test_invalid_content_length(self) -> None:
        scope = _make_scope(headers=[(b"content-length", b"lots")])
        assert Request.from_asgi(scope, _make_receive()).content_length is None

    @pytest.mark.parametrize(
        ("method", "expected"),
        [("GET", False), ("OPTIONS", False), ("POST", True), ("PUT", True), ("DELETE", True)],
    )
    def test_has_body(self, method: str, expected: bool) -> None:
        req = Request.from_asgi(_make_scope(method=method), _make_receive())
        assert req.has_body is expected

    def test_with_path_params(self) -> None:
        req = Request.from_asgi(_make_scope(), _make_receive())
        matched = req.with_path_params({"id": 42})

        assert matched.path_params == {"id": 42}
        assert req.path_params == {}


class TestRequestBody:
    async def test_body_joins_chunks(self) -> None:
        req = Request.from_asgi(_make_scope(method="POST"), _make_receive(b"hel", b"lo"))
        assert await req.body() == b"hello"

    async def test_body_cached(self) -> None:
        req = Request.from_asgi(_make_scope(method="POST"), _make_receive(b"once"))
        assert await req.body() == b"once"
        assert await req.body() == b"once"

    async def test_cache_shared_with_matched_copy(self) -> None:
        req = Request.from_asgi(_make_scope(method="POST"), _make_receive(b"data"))
        await req.body()
        assert await req.with_path_params({"id": 1}).body() == b"data"

    async def test_json(self) -> None:
        req = Request.from_asgi(_make_scope(method="POST"), _make_receive(b'{"x": 1}'))
        assert await req.json() == {"x": 1}

    async def test_form(self) -> None:
        scope = _make_scope(
            method="POST",
            headers=[(b"content-type", b"application/x-www-form-urlencoded")],
        )
        req = Request.from_asgi(scope, _make_receive(b"name=ada&tag=a&tag=b"))
        form = await req.form()

        assert form["name"] == "ada"
        assert form.get_list("tag") == ["a", "b"]
