"""Compiled router with trie-based path matching.

Routes are added during setup through ``add()`` or the verb methods
(``router.get(path, handler)``, ``router.post(...)``, ...) and the table is
frozen by ``compile()`` when the app starts serving.
"""

import logging
import re
from dataclasses import dataclass, field

from perch._internal.types import Handler
from perch.errors import ConfigurationError, MethodNotAllowed, NotFound
from perch.routing.params import CONVERTERS, convert_param
from perch.routing.route import PathSegment, Route, RouteMatch

logger = logging.getLogger("perch.routing")

# Verb methods exposed on Router, in registration-surface order
ROUTER_VERBS: tuple[str, ...] = ("get", "post", "put", "delete", "options")

_ANGLE_PARAM = re.compile(r"<[^>]*>")


def parse_path(path: str) -> list[PathSegment]:
    """Parse a route path string into segments.

    Examples::

        "/users"             -> [PathSegment("users")]
        "/users/{id}"        -> [..., PathSegment("{id}", is_param=True, param_name="id")]
        "/users/{id:int}"    -> [..., PathSegment("{id:int}", ..., param_type="int")]
        "/files/{path:path}" -> [..., PathSegment("{path:path}", ..., param_type="path")]

    Raises ``ConfigurationError`` for paths that do not start with ``/``,
    ``<param>``-style segments, empty parameter names, unknown converters,
    and ``path`` converters that are not the last segment.
    """
    if not isinstance(path, str) or not path.startswith("/"):
        msg = f"Route path must be a string starting with '/', got {path!r}"
        raise ConfigurationError(msg)
    if _ANGLE_PARAM.search(path):
        msg = f"Route path {path!r} uses <param> syntax; use {{param}} instead."
        raise ConfigurationError(msg)

    segments: list[PathSegment] = []
    parts = [part for part in path.strip("/").split("/") if part]
    for position, part in enumerate(parts):
        if not (part.startswith("{") and part.endswith("}")):
            segments.append(PathSegment(value=part))
            continue

        param_name, _, param_type = part[1:-1].partition(":")
        param_type = param_type or "str"
        if not param_name.isidentifier():
            msg = f"Invalid parameter name {param_name!r} in route path {path!r}"
            raise ConfigurationError(msg)
        if param_type not in CONVERTERS:
            msg = f"Unknown converter {param_type!r} in route path {path!r}"
            raise ConfigurationError(msg)
        if param_type == "path" and position != len(parts) - 1:
            msg = f"'path' converter must be the last segment in {path!r}"
            raise ConfigurationError(msg)
        segments.append(
            PathSegment(value=part, is_param=True, param_name=param_name, param_type=param_type)
        )
    return segments


class _TrieNode:
    """A node in the route trie. Mutable during setup only."""

    __slots__ = ("catch_all", "children", "param_child", "routes_by_method")

    def __init__(self) -> None:
        self.children: dict[str, _TrieNode] = {}
        self.param_child: _ParamEdge | None = None
        self.catch_all: _ParamEdge | None = None
        self.routes_by_method: dict[str, Route] = {}


@dataclass(slots=True)
class _ParamEdge:
    """A parameter edge in the trie (single segment or catch-all)."""

    param_name: str
    param_type: str
    regex: re.Pattern[str]
    node: _TrieNode = field(default_factory=_TrieNode)


class Router:
    """Compiled router with trie-based path matching.

    Usage::

        router = Router()
        router.get("/users", list_users)
        router.post("/users/{id:int}", update_user)
        router.compile()
        match = router.match("GET", "/users")
    """

    __slots__ = ("_compiled", "_root")

    def __init__(self) -> None:
        self._root = _TrieNode()
        self._compiled = False

    # -- Verb registration surface --

    def get(self, path: str, handler: Handler, *, name: str | None = None) -> Route:
        return self.add(Route(path, handler, frozenset({"GET"}), name))

    def post(self, path: str, handler: Handler, *, name: str | None = None) -> Route:
        return self.add(Route(path, handler, frozenset({"POST"}), name))

    def put(self, path: str, handler: Handler, *, name: str | None = None) -> Route:
        return self.add(Route(path, handler, frozenset({"PUT"}), name))

    def delete(self, path: str, handler: Handler, *, name: str | None = None) -> Route:
        return self.add(Route(path, handler, frozenset({"DELETE"}), name))

    def options(self, path: str, handler: Handler, *, name: str | None = None) -> Route:
        return self.add(Route(path, handler, frozenset({"OPTIONS"}), name))

    # -- Table management --

    @property
    def compiled(self) -> bool:
        return self._compiled

    def add(self, route: Route) -> Route:
        """Add a route. Must be called before ``compile()``.

        Registering the same path and method again replaces the earlier
        handler; the table never holds two bindings for one pair.
        """
        if self._compiled:
            msg = "Cannot add routes after compilation."
            raise RuntimeError(msg)

        node = self._root
        for seg in parse_path(route.path):
            if seg.is_param and seg.param_type == "path":
                if node.catch_all is None:
                    node.catch_all = _ParamEdge(
                        seg.param_name or "path", "path", re.compile(r"^.+$")
                    )
                node = node.catch_all.node
                break
            if seg.is_param:
                if node.param_child is None:
                    pattern, _ = CONVERTERS[seg.param_type]
                    node.param_child = _ParamEdge(
                        seg.param_name or "", seg.param_type, re.compile(f"^{pattern}$")
                    )
                elif node.param_child.param_name != seg.param_name:
                    msg = (
                        f"Route {route.path!r} names parameter {seg.param_name!r} where "
                        f"another route already uses {node.param_child.param_name!r}"
                    )
                    raise ConfigurationError(msg)
                node = node.param_child.node
            else:
                node = node.children.setdefault(seg.value, _TrieNode())

        for method in route.methods:
            if method in node.routes_by_method:
                logger.debug("Replacing %s %s", method, route.path)
            node.routes_by_method[method] = route
        return route

    def compile(self) -> None:
        """Freeze the router. No more routes can be added."""
        self._compiled = True

    @property
    def routes(self) -> list[Route]:
        """Every registered Route, in trie order."""
        result: dict[int, Route] = {}
        for node in self._walk(self._root):
            for route in node.routes_by_method.values():
                result.setdefault(id(route), route)
        return list(result.values())

    @property
    def bindings(self) -> list[tuple[str, str]]:
        """Every ``(method, path)`` pair in the table, sorted."""
        pairs = {
            (method, route.path)
            for node in self._walk(self._root)
            for method, route in node.routes_by_method.items()
        }
        return sorted(pairs)

    def _walk(self, node: _TrieNode):
        yield node
        for child in node.children.values():
            yield from self._walk(child)
        if node.param_child is not None:
            yield from self._walk(node.param_child.node)
        if node.catch_all is not None:
            yield from self._walk(node.catch_all.node)

    # -- Matching --

    def match(self, method: str, path: str) -> RouteMatch:
        """Match a request path and method.

        Raises ``NotFound`` if no route matches the path and
        ``MethodNotAllowed`` if the path matches but the method doesn't.
        """
        parts = [p for p in path.strip("/").split("/") if p]
        found = self._match_node(self._root, parts, 0, {})
        if found is None:
            raise NotFound(f"No route matches {method} {path!r}")

        node, params = found
        route = node.routes_by_method.get(method)
        if route is None:
            raise MethodNotAllowed(frozenset(node.routes_by_method))
        return RouteMatch(route=route, path_params=params)

    def _match_node(
        self,
        node: _TrieNode,
        parts: list[str],
        index: int,
        params: dict[str, object],
    ) -> tuple[_TrieNode, dict[str, object]] | None:
        if index == len(parts):
            return (node, params) if node.routes_by_method else None

        part = parts[index]

        # Static children win over parameters
        if part in node.children:
            found = self._match_node(node.children[part], parts, index + 1, params)
            if found is not None:
                return found

        edge = node.param_child
        if edge is not None and edge.regex.match(part):
            value = convert_param(part, edge.param_type)
            found = self._match_node(edge.node, parts, index + 1, {**params, edge.param_name: value})
            if found is not None:
                return found

        if node.catch_all is not None and node.catch_all.node.routes_by_method:
            remaining = "/".join(parts[index:])
            return node.catch_all.node, {**params, node.catch_all.param_name: remaining}

        return None
