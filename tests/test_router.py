"""Tests for perch.routing.router — compiled trie-based router."""

import pytest

from perch.errors import ConfigurationError, MethodNotAllowed, NotFound
from perch.routing.route import Route
from perch.routing.router import Router, parse_path


def _handler() -> str:
    return "ok"


def _route(path: str, methods: frozenset[str] | None = None) -> Route:
    return Route(path=path, handler=_handler, methods=methods or frozenset({"GET"}))


class TestParsePath:
    def test_static(self) -> None:
        segments = parse_path("/users")
        assert len(segments) == 1
        assert segments[0].value == "users"
        assert segments[0].is_param is False

    def test_param(self) -> None:
        segments = parse_path("/users/{id}")
        assert segments[1].is_param is True
        assert segments[1].param_name == "id"
        assert segments[1].param_type == "str"

    def test_typed_param(self) -> None:
        segments = parse_path("/users/{id:int}")
        assert segments[1].param_type == "int"

    def test_root(self) -> None:
        assert parse_path("/") == []

    def test_rejects_angle_param(self) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            parse_path("/share/<slug>")
        assert "<param>" in str(exc_info.value)
        assert "{param}" in str(exc_info.value)

    def test_rejects_missing_leading_slash(self) -> None:
        with pytest.raises(ConfigurationError, match="starting with '/'"):
            parse_path("users")

    def test_rejects_non_string(self) -> None:
        with pytest.raises(ConfigurationError):
            parse_path(42)  # type: ignore[arg-type]

    def test_rejects_unknown_converter(self) -> None:
        with pytest.raises(ConfigurationError, match="Unknown converter"):
            parse_path("/users/{id:uuid}")

    def test_rejects_bad_param_name(self) -> None:
        with pytest.raises(ConfigurationError, match="Invalid parameter name"):
            parse_path("/users/{}")

    def test_path_converter_must_be_last(self) -> None:
        with pytest.raises(ConfigurationError, match="last segment"):
            parse_path("/files/{rest:path}/meta")


class TestRouterStaticRoutes:
    def test_root(self) -> None:
        r = Router()
        r.add(_route("/"))
        r.compile()

        assert r.match("GET", "/").path_params == {}

    def test_trailing_slash_ignored(self) -> None:
        r = Router()
        r.add(_route("/users"))
        r.compile()

        assert r.match("GET", "/users/").route.path == "/users"


class TestRouterParams:
    def test_string_param(self) -> None:
        r = Router()
        r.add(_route("/users/{name}"))
        r.compile()

        assert r.match("GET", "/users/alice").path_params == {"name": "alice"}

    def test_int_param_is_converted(self) -> None:
        r = Router()
        r.add(_route("/users/{id:int}"))
        r.compile()

        assert r.match("GET", "/users/42").path_params == {"id": 42}

    def test_int_param_rejects_non_digit(self) -> None:
        r = Router()
        r.add(_route("/users/{id:int}"))
        r.compile()

        with pytest.raises(NotFound):
            r.match("GET", "/users/alice")

    def test_float_param(self) -> None:
        r = Router()
        r.add(_route("/price/{amount:float}"))
        r.compile()

        assert r.match("GET", "/price/9.99").path_params == {"amount": 9.99}

    def test_path_param(self) -> None:
        r = Router()
        r.add(_route("/files/{filepath:path}"))
        r.compile()

        match = r.match("GET", "/files/docs/api/index.html")
        assert match.path_params == {"filepath": "docs/api/index.html"}

    def test_static_preferred_over_param(self) -> None:
        r = Router()
        r.add(_route("/users/me"))
        r.add(_route("/users/{id}"))
        r.compile()

        assert r.match("GET", "/users/me").route.path == "/users/me"
        assert r.match("GET", "/users/42").route.path == "/users/{id}"

    def test_conflicting_param_names_rejected(self) -> None:
        r = Router()
        r.add(_route("/users/{id}"))
        with pytest.raises(ConfigurationError, match="names parameter"):
            r.add(_route("/users/{name}/posts"))


class TestVerbSurface:
    @pytest.mark.parametrize("verb", ["get", "post", "put", "delete", "options"])
    def test_verb_method_registers_one_binding(self, verb: str) -> None:
        r = Router()
        route = getattr(r, verb)("/items", _handler)
        r.compile()

        assert route.methods == frozenset({verb.upper()})
        assert r.bindings == [(verb.upper(), "/items")]
        assert r.match(verb.upper(), "/items").route is route

    def test_same_path_and_method_replaces(self) -> None:
        def other() -> str:
            return "other"

        r = Router()
        r.get("/items", _handler)
        r.get("/items", other)
        r.compile()

        assert r.bindings == [("GET", "/items")]
        assert r.match("GET", "/items").route.handler is other

    def test_bindings_sorted(self) -> None:
        r = Router()
        r.post("/b", _handler)
        r.get("/b", _handler)
        r.get("/a", _handler)

        assert r.bindings == [("GET", "/a"), ("GET", "/b"), ("POST", "/b")]

    def test_routes_deduplicated(self) -> None:
        r = Router()
        r.add(_route("/users", frozenset({"GET", "POST"})))

        assert len(r.routes) == 1


class TestRouterErrors:
    def test_not_found(self) -> None:
        r = Router()
        r.add(_route("/users"))
        r.compile()

        with pytest.raises(NotFound) as exc_info:
            r.match("GET", "/nonexistent")
        assert exc_info.value.status == 404

    def test_method_not_allowed(self) -> None:
        r = Router()
        r.add(_route("/users", frozenset({"GET"})))
        r.compile()

        with pytest.raises(MethodNotAllowed) as exc_info:
            r.match("POST", "/users")

        assert exc_info.value.status == 405
        assert dict(exc_info.value.headers)["Allow"] == "GET"

    def test_add_after_compile_raises(self) -> None:
        r = Router()
        r.compile()

        with pytest.raises(RuntimeError, match="Cannot add routes after compilation"):
            r.add(_route("/users"))
