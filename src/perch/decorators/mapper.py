"""Decorator surface — declare routes and parameter bindings on handlers.

Every decorator records data and returns the function unchanged, so they
stack in any order::

    mapper = Mapper()

    @mapper.map_route("/users/{id:int}", methods=["get", "post"])
    @mapper.bind_path_param("id", value_type="number", required=True)
    @mapper.bind_query("verbose", value_type="boolean", default_value="false")
    @mapper.wrap_response_json()
    async def show_user(id, verbose):
        ...

    mapper.init_app(app)  # once, at startup

Parameter decorators target a positional parameter with ``at`` (an index
or a parameter name). Without ``at`` the parameter named like ``key`` is
used; bindings of a whole source (no ``key``) must pass ``at``. For
methods of a ``Controller``, ``self`` is not counted.
"""

import inspect
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, TypeVar

from perch.controller import is_method_like
from perch.decorators.metadata import (
    BindingOptions,
    MetadataStore,
    ParamSource,
    QueryCollectionMode,
    ValueType,
    is_present,
)
from perch.decorators.registrar import RouteMapping, RouteRegistrar, RouteSpec
from perch.decorators.responses import DataWrapper, ErrorWrapper, body_policy, json_policy
from perch.errors import ConfigurationError

if TYPE_CHECKING:
    from perch.app import App

F = TypeVar("F", bound=Callable[..., Any])

_POSITIONAL = (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)


class Mapper:
    """One metadata store plus one registrar, exposed as decorators."""

    __slots__ = ("registrar", "store")

    def __init__(self) -> None:
        self.store = MetadataStore()
        self.registrar = RouteRegistrar(self.store)

    # -- Route declaration --

    def map_route(self, paths: Any, methods: Any = None) -> Callable[[F], F]:
        """Serve the handler at *paths* for *methods* (GET when omitted).

        *paths* is a path, a list of paths, a ``RouteSpec``, or a mapping
        ``{"paths": ..., "methods": ...}``.
        """
        spec = paths if methods is None else RouteSpec(paths, methods)

        def decorator(func: F) -> F:
            self.registrar.declare_route(spec, func)
            return func

        return decorator

    # -- Parameter bindings --

    def bind_path_param(
        self,
        key: str,
        *,
        at: int | str | None = None,
        default_value: Any = None,
        required: bool = False,
        is_required: Callable[[Any], bool] | None = None,
        value_type: ValueType | str = ValueType.STRING,
    ) -> Callable[[F], F]:
        """Bind a route path parameter (then body/query, see the binder)."""
        if not isinstance(key, str) or not key:
            msg = f"bind_path_param needs a non-empty key, got {key!r}"
            raise ConfigurationError(msg)
        options = _options(default_value, required, is_required, value_type)
        return self._binding(ParamSource.PATH_PARAM, key, at, options)

    def bind_query(
        self,
        key: str | None = None,
        *,
        at: int | str | None = None,
        default_value: Any = None,
        required: bool = False,
        is_required: Callable[[Any], bool] | None = None,
        value_type: ValueType | str = ValueType.STRING,
        collection_mode: QueryCollectionMode | str = QueryCollectionMode.FIRST,
    ) -> Callable[[F], F]:
        """Bind a query parameter, or the whole query mapping if *key* is None."""
        options = _options(default_value, required, is_required, value_type, collection_mode)
        return self._binding(ParamSource.QUERY, key, at, options)

    def bind_body(
        self,
        key: str | None = None,
        *,
        at: int | str | None = None,
        default_value: Any = None,
        required: bool = False,
        is_required: Callable[[Any], bool] | None = None,
        value_type: ValueType | str = ValueType.STRING,
    ) -> Callable[[F], F]:
        """Bind a body field, or the whole parsed body if *key* is None."""
        options = _options(default_value, required, is_required, value_type)
        return self._binding(ParamSource.BODY, key, at, options)

    # -- Response policies --

    def wrap_response_body(self, returning: bool = False) -> Callable[[F], F]:
        """Assign the handler's return value to ``ctx.body``."""

        def decorator(func: F) -> F:
            self.store.add_response_policy(func, body_policy(returning=returning))
            return func

        return decorator

    def wrap_response_json(
        self,
        data_wrapper: DataWrapper | None = None,
        error_wrapper: ErrorWrapper | None = None,
    ) -> Callable[[F], F]:
        """Answer with a success/error envelope; handler errors are swallowed."""

        def decorator(func: F) -> F:
            self.store.add_response_policy(func, json_policy(data_wrapper, error_wrapper))
            return func

        return decorator

    # -- Commit --

    def init_app(self, app: "App") -> tuple[RouteMapping, ...]:
        """Register every declared route on *app*. Runs once."""
        return self.registrar.init_app(app)

    def _binding(
        self,
        source: ParamSource,
        key: str | None,
        at: int | str | None,
        options: BindingOptions,
    ) -> Callable[[F], F]:
        def decorator(func: F) -> F:
            index = parameter_index(func, key if at is None else at)
            self.store.record(func, index, source, options, key=key)
            return func

        return decorator


def parameter_index(func: Callable[..., Any], target: int | str | None) -> int:
    """Resolve *target* (index or parameter name) to a positional index."""
    if target is None:
        msg = f"Binding a whole source on {func.__qualname__} needs at=<index or name>"
        raise ConfigurationError(msg)
    if isinstance(target, int) and not isinstance(target, bool):
        return target
    if not isinstance(target, str):
        msg = f"at= must be an int or a parameter name, got {target!r}"
        raise ConfigurationError(msg)

    params = list(inspect.signature(inspect.unwrap(func)).parameters.values())
    if is_method_like(func) and params:
        params = params[1:]
    names = [p.name for p in params if p.kind in _POSITIONAL]
    if target not in names:
        msg = f"{func.__qualname__} has no positional parameter named {target!r}"
        raise ConfigurationError(msg)
    return names.index(target)


def _options(
    default_value: Any,
    required: bool,
    is_required: Callable[[Any], bool] | None,
    value_type: ValueType | str,
    collection_mode: QueryCollectionMode | str = QueryCollectionMode.FIRST,
) -> BindingOptions:
    try:
        parsed_type = ValueType(value_type)
        parsed_mode = QueryCollectionMode(collection_mode)
    except ValueError as exc:
        raise ConfigurationError(str(exc)) from None
    return BindingOptions(
        default_value=default_value,
        required=required,
        is_required=is_required or is_present,
        value_type=parsed_type,
        collection_mode=parsed_mode,
    )


default_mapper = Mapper()
"""The process-wide mapper behind the module-level decorators."""
