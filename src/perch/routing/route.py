"""Route and RouteMatch frozen dataclasses."""

from dataclasses import dataclass
from typing import Any

from perch._internal.types import Handler


@dataclass(frozen=True, slots=True)
class PathSegment:
    """A parsed segment of a route path.

    Static:  ``/users``    (is_param=False)
    Param:   ``/{id}``     (is_param=True, param_name="id")
    Typed:   ``/{id:int}`` (is_param=True, param_name="id", param_type="int")
    """

    value: str
    is_param: bool = False
    param_name: str | None = None
    param_type: str = "str"


@dataclass(frozen=True, slots=True)
class Route:
    """One path bound to one handler for a set of methods."""

    path: str
    handler: Handler
    methods: frozenset[str]
    name: str | None = None


@dataclass(frozen=True, slots=True)
class RouteMatch:
    """Result of a successful route match.

    ``path_params`` hold converted values for typed segments.
    """

    route: Route
    path_params: dict[str, Any]
