"""Declarative route mapping and parameter binding.

Module-level decorators share one process-wide ``Mapper``::

    from perch.decorators import bind_query, map_route, wrap_response_json

    @map_route("/search")
    @bind_query("q", required=True)
    @bind_query("limit", value_type="number", default_value="10")
    @wrap_response_json()
    async def search(q, limit):
        return await index.search(q, limit=limit)

    install(app)  # registers the routes when the app starts

Create a separate ``Mapper()`` to keep a set of routes isolated.
"""

from perch.decorators.binder import bind, convert
from perch.decorators.mapper import Mapper, default_mapper, parameter_index
from perch.decorators.metadata import (
    BindingOptions,
    HandlerBindings,
    MetadataStore,
    ParameterBinding,
    ParamSource,
    QueryCollectionMode,
    ValueType,
)
from perch.decorators.plugin import install
from perch.decorators.registrar import (
    RegistrarState,
    RequestMethod,
    RouteMapping,
    RouteRegistrar,
    RouteSpec,
)

map_route = default_mapper.map_route
bind_path_param = default_mapper.bind_path_param
bind_query = default_mapper.bind_query
bind_body = default_mapper.bind_body
wrap_response_body = default_mapper.wrap_response_body
wrap_response_json = default_mapper.wrap_response_json
init_app = default_mapper.init_app

__all__ = [
    "BindingOptions",
    "HandlerBindings",
    "Mapper",
    "MetadataStore",
    "ParamSource",
    "ParameterBinding",
    "QueryCollectionMode",
    "RegistrarState",
    "RequestMethod",
    "RouteMapping",
    "RouteRegistrar",
    "RouteSpec",
    "ValueType",
    "bind",
    "bind_body",
    "bind_path_param",
    "bind_query",
    "convert",
    "default_mapper",
    "init_app",
    "install",
    "map_route",
    "parameter_index",
    "wrap_response_body",
    "wrap_response_json",
]
